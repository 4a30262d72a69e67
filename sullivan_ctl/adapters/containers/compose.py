"""
Compose adapter — container lifecycle operations for the stack.

Called directly by the lifecycle manager, not through the step
registry. Uses the docker / docker-compose CLI — never the Docker API
directly. Every compose call is scoped to the project's compose file and env file.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from sullivan_ctl.adapters.shell.command import CommandRunner
from sullivan_ctl.core.errors import PrerequisiteError
from sullivan_ctl.core.models.action import Receipt

logger = logging.getLogger(__name__)


class ComposeAdapter:
    """Docker Compose operations for one compose project.

    An empty service list means every service in the project.
    """

    name = "compose"

    def __init__(
        self,
        runner: CommandRunner,
        compose_file: Path,
        env_file: Path,
        project_name: str = "sullivan",
        pull_timeout: int = 900,
    ):
        self._runner = runner
        self.compose_file = Path(compose_file)
        self.env_file = Path(env_file)
        self.project_name = project_name
        self.pull_timeout = pull_timeout
        self._command: list[str] | None = None

    # ── Detection ───────────────────────────────────────────────

    def detect_command(self) -> list[str] | None:
        """Find the compose CLI: standalone ``docker-compose`` first, then the plugin."""
        if self._command is not None:
            return self._command
        if self._runner.which("docker-compose"):
            self._command = ["docker-compose"]
        elif self._runner.which("docker") and self._runner.run(
            ["docker", "compose", "version"], action_id="compose-version", adapter=self.name,
        ).ok:
            self._command = ["docker", "compose"]
        return self._command

    @property
    def command_label(self) -> str:
        command = self.detect_command()
        return " ".join(command) if command else "not found"

    def check_prerequisites(self) -> None:
        """Raise PrerequisiteError unless docker, its daemon and compose are usable."""
        if not self._runner.which("docker"):
            raise PrerequisiteError("Docker is not installed (docker not found on PATH)")
        info = self._runner.run(["docker", "info"], action_id="docker-info", adapter=self.name, timeout=30)
        if not info.ok:
            raise PrerequisiteError(f"Docker daemon is not running: {info.error}")
        if self.detect_command() is None:
            raise PrerequisiteError("Docker Compose is not installed (neither docker-compose nor 'docker compose')")

    # ── Compose operations ──────────────────────────────────────

    def _base(self) -> list[str]:
        command = self.detect_command() or ["docker", "compose"]
        return [
            *command,
            "-p", self.project_name,
            "-f", str(self.compose_file),
            "--env-file", str(self.env_file),
        ]

    def _compose(self, args: Sequence[str], action_id: str, timeout: int | None = None) -> Receipt:
        return self._runner.run(
            [*self._base(), *args],
            action_id=action_id,
            adapter=self.name,
            timeout=timeout,
            cwd=self.compose_file.parent,
        )

    def pull(self, services: Sequence[str] = (), ignore_failures: bool = True) -> Receipt:
        args = ["pull"]
        if ignore_failures:
            args.append("--ignore-pull-failures")
        return self._compose([*args, *services], "compose-pull", timeout=self.pull_timeout)

    def up(self, services: Sequence[str] = (), detached: bool = True) -> Receipt:
        args = ["up"]
        if detached:
            args.append("-d")
        return self._compose([*args, *services], "compose-up", timeout=self.pull_timeout)

    def down(self, services: Sequence[str] = (), remove_orphans: bool = True) -> Receipt:
        args = ["down"]
        if remove_orphans:
            args.append("--remove-orphans")
        return self._compose([*args, *services], "compose-down")

    def stop(self, services: Sequence[str] = ()) -> Receipt:
        return self._compose(["stop", *services], "compose-stop")

    def ps(self, services: Sequence[str] = ()) -> Receipt:
        return self._compose(["ps", "--all", "--format", "json", *services], "compose-ps")

    def running_services(self) -> set[str]:
        """Names of services whose container is currently running."""
        receipt = self.ps()
        if not receipt.ok:
            logger.warning("Cannot list containers: %s", receipt.error)
            return set()
        return {
            entry["Service"]
            for entry in parse_ps_output(receipt.output)
            if entry.get("State") == "running" and entry.get("Service")
        }

    def logs(self, services: Sequence[str] = (), follow: bool = True, tail: int | None = None) -> int:
        """Stream logs to the terminal; returns the compose exit code."""
        args = ["logs"]
        if tail is not None:
            args.append(f"--tail={tail}")
        if follow:
            args.append("--follow")
        return self._runner.run_attached([*self._base(), *args, *services], cwd=self.compose_file.parent)

    def exec(self, service: str, command: Sequence[str], timeout: float | None = None) -> Receipt:
        return self._compose(["exec", "-T", service, *command], f"exec-{service}", timeout=timeout)

    # ── Network operations ──────────────────────────────────────

    def network_create(self, name: str) -> Receipt:
        return self._runner.run(["docker", "network", "create", name], action_id="network-create", adapter=self.name)

    def network_rm(self, name: str) -> Receipt:
        return self._runner.run(["docker", "network", "rm", name], action_id="network-rm", adapter=self.name)

    def network_inspect(self, name: str) -> dict[str, Any] | None:
        """Return the inspect document for ``name`` or None if absent."""
        receipt = self._runner.run(
            ["docker", "network", "inspect", name], action_id="network-inspect", adapter=self.name,
        )
        if not receipt.ok:
            return None
        try:
            data = json.loads(receipt.output)
        except json.JSONDecodeError:
            logger.warning("Unparseable network inspect output for %s", name)
            return None
        if isinstance(data, list):
            return data[0] if data else None
        return data

    def container_exec(self, container: str, command: Sequence[str], timeout: float | None = None) -> Receipt:
        """``docker exec`` against a container by name (outside compose)."""
        return self._runner.run(
            ["docker", "exec", container, *command],
            action_id=f"docker-exec-{container}",
            adapter=self.name,
            timeout=timeout,
        )


def parse_ps_output(output: str) -> list[dict[str, Any]]:
    """Parse ``ps --format json``.

    Compose v2 emits one JSON object per line; older releases emit a
    single JSON array.
    """
    output = output.strip()
    if not output:
        return []
    if output.startswith("["):
        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            return []
        return [d for d in data if isinstance(d, dict)]
    entries = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(entry, dict):
            entries.append(entry)
    return entries
