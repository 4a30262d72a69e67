"""
Environment classifier — decide what kind of host this is.

The profile only steers advisory defaults (how long to let containers
settle, what to tell the operator). Nothing correctness-critical depends
on it, so classification is a cheap first-match over host signals.

``classify`` is pure: every host observation comes in through
``HostSignals``, which tests build by hand and the CLI builds with
``HostSignals.probe()``.
"""

from __future__ import annotations

import logging
import os
import re
import socket
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from sullivan_ctl.core.models.profile import DeploymentProfile
from sullivan_ctl.core.models.settings import ClassifierSettings, Settings

logger = logging.getLogger(__name__)


@dataclass
class HostSignals:
    """Observable facts about the host, all injectable."""

    environ: Mapping[str, str] = field(default_factory=dict)
    path_exists: Callable[[str], bool] = lambda _path: False
    total_memory_mb: int | None = None
    hostname: str = ""
    home: Path = Path("/nonexistent")
    project_root: Path = Path(".")

    @classmethod
    def probe(cls, project_root: Path) -> HostSignals:
        """Gather signals from the running host."""
        return cls(
            environ=dict(os.environ),
            path_exists=os.path.exists,
            total_memory_mb=read_total_memory_mb(),
            hostname=socket.gethostname(),
            home=Path.home(),
            project_root=project_root,
        )


def read_total_memory_mb(meminfo: Path = Path("/proc/meminfo")) -> int | None:
    """MemTotal in MiB, or None when it cannot be read."""
    try:
        for line in meminfo.read_text(encoding="utf-8").splitlines():
            if line.startswith("MemTotal:"):
                kib = int(line.split()[1])
                return kib // 1024
    except (OSError, ValueError, IndexError) as e:
        logger.debug("Cannot read %s: %s", meminfo, e)
    return None


def _resolve_marker(marker: str, signals: HostSignals) -> str:
    if marker.startswith("~/"):
        return str(signals.home / marker[2:])
    if marker.startswith("/"):
        return marker
    return str(signals.project_root / marker)


def _any_marker(markers: list[str], env_vars: list[str], signals: HostSignals) -> bool:
    if any(signals.environ.get(var) for var in env_vars):
        return True
    return any(signals.path_exists(_resolve_marker(m, signals)) for m in markers)


def classify(signals: HostSignals, config: ClassifierSettings | None = None) -> DeploymentProfile:
    """Map host signals to a deployment profile. First match wins."""
    config = config or ClassifierSettings()

    if _any_marker(config.cloud_marker_files, config.cloud_env_vars, signals):
        return DeploymentProfile.CLOUD

    if _any_marker(config.container_marker_files, config.container_env_vars, signals):
        return DeploymentProfile.CONTAINER

    if signals.total_memory_mb is not None and signals.total_memory_mb < config.memory_threshold_mb:
        return DeploymentProfile.RESOURCE_CONSTRAINED

    if config.hostname_patterns:
        pattern = re.compile("|".join(re.escape(p) for p in config.hostname_patterns), re.IGNORECASE)
        if pattern.search(signals.hostname):
            return DeploymentProfile.DEV_SERVER

    if _any_marker(config.laptop_marker_files, [], signals):
        return DeploymentProfile.LAPTOP

    logger.debug("No host signal matched; defaulting to laptop profile")
    return DeploymentProfile.LAPTOP


# ── Advisory defaults ────────────────────────────────────────────


@dataclass
class AdvisoryDefaults:
    """Hints derived from the profile."""

    settle_delay: float
    notes: list[str] = field(default_factory=list)


_NOTES: dict[DeploymentProfile, list[str]] = {
    DeploymentProfile.CLOUD: [
        "Cloud instance detected: keep media paths on attached volumes, not the root disk.",
        "Expose services through Tailscale rather than public security groups.",
    ],
    DeploymentProfile.CONTAINER: [
        "Running inside a container: Docker-in-Docker needs the host socket mounted.",
        "Provisioning (stage1/stage2) is not meant to run here.",
    ],
    DeploymentProfile.RESOURCE_CONSTRAINED: [
        "Less than 4 GB of memory: start services selectively rather than 'all'.",
        "Transcoding services (Emby, Jellyfin, Plex) may be slow to become ready.",
    ],
    DeploymentProfile.DEV_SERVER: [
        "Server host detected: Watchtower keeps images current automatically.",
    ],
    DeploymentProfile.LAPTOP: [
        "Laptop profile: containers stop when the machine sleeps; run 'start' after resume.",
    ],
}


def advisory_defaults(profile: DeploymentProfile) -> AdvisoryDefaults:
    """Default settle delay and operator notes for ``profile``."""
    delay = 20.0 if profile == DeploymentProfile.RESOURCE_CONSTRAINED else 10.0
    return AdvisoryDefaults(settle_delay=delay, notes=list(_NOTES.get(profile, [])))


def effective_settle_delay(settings: Settings, profile: DeploymentProfile) -> float:
    """Configured settle delay, else the profile default."""
    if settings.settle_delay is not None:
        return settings.settle_delay
    return advisory_defaults(profile).settle_delay
