"""
Settings model — the explicit configuration object.

Loaded from sullivan.yml (or built from defaults) and passed into every
component constructor. Nothing in the control core reads global shell
state; if a component needs a path, timeout or credential location, it
comes from here.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from sullivan_ctl.core.models.service import ServiceSpec
from sullivan_ctl.core.models.state import EnrollmentOptions


class ClassifierSettings(BaseModel):
    """Signals the environment classifier looks for."""

    cloud_marker_files: list[str] = Field(
        default_factory=lambda: ["/etc/cloud-id", "/var/lib/cloud/data/instance-id"]
    )
    cloud_env_vars: list[str] = Field(
        default_factory=lambda: ["AWS_INSTANCE_ID", "GCP_PROJECT", "AZURE_SUBSCRIPTION_ID"]
    )
    container_marker_files: list[str] = Field(default_factory=lambda: ["/.dockerenv"])
    container_env_vars: list[str] = Field(default_factory=lambda: ["KUBERNETES_SERVICE_HOST"])
    memory_threshold_mb: int = 4096
    hostname_patterns: list[str] = Field(
        default_factory=lambda: ["dev", "staging", "cloud", "vps", "server"]
    )
    # "~" expands to the invoking user's home, relative paths to project_root
    laptop_marker_files: list[str] = Field(default_factory=lambda: ["~/.laptop", ".local"])


class TailscaleSettings(EnrollmentOptions):
    """Control-plane endpoint plus enrollment options."""

    api_base: str = "https://api.tailscale.com/api/v2"
    request_timeout: float = 15


class NetworkRepairSettings(BaseModel):
    """Inputs for ``fix-network``."""

    probe_container: str = "sonarr"
    probe_address: str = "8.8.8.8"


class Settings(BaseModel):
    """Root configuration for sullivan-ctl."""

    project_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = Field(default=None, exclude=True)  # file these settings came from

    # ── Compose stack ────────────────────────────────────────────
    compose_file: str = "docker-compose.yml"
    env_file: str = ".env"
    compose_project: str = "sullivan"

    # ── Provisioning ─────────────────────────────────────────────
    setup_dir: Path = Path("/opt/sullivan-setup")
    unit_name: str = "sullivan-setup-stage2.service"
    unit_dir: Path = Path("/etc/systemd/system")
    stage2_log: Path = Path("/var/log/sullivan-setup-stage2.log")
    package_manager: Literal["dnf", "apt"] = "dnf"
    provision_user: str | None = None  # added to the docker group; default: invoking user

    # ── Timeouts (seconds) ───────────────────────────────────────
    command_timeout: int = 300
    pull_timeout: int = 900
    probe_timeout: float = 5
    settle_delay: float | None = None  # None → profile advisory default
    lock_timeout: float = 0

    classifier: ClassifierSettings = Field(default_factory=ClassifierSettings)
    tailscale: TailscaleSettings = Field(default_factory=TailscaleSettings)
    network: NetworkRepairSettings = Field(default_factory=NetworkRepairSettings)

    # Empty → built-in catalog
    services: list[ServiceSpec] = Field(default_factory=list)

    # ── Resolved paths ───────────────────────────────────────────

    @property
    def compose_path(self) -> Path:
        return self.project_root / self.compose_file

    @property
    def env_path(self) -> Path:
        return self.project_root / self.env_file

    @property
    def token_path(self) -> Path:
        return self.setup_dir / "resume.json"

    @property
    def progress_path(self) -> Path:
        return self.setup_dir / "stage1-progress.json"

    @property
    def unit_path(self) -> Path:
        return self.unit_dir / self.unit_name

    @property
    def lock_path(self) -> Path:
        return self.project_root / ".sullivan.lock"
