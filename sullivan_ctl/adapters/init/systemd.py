"""
Systemd adapter — units, enablement, and the one-shot resume unit.

Provides the host init-system operations the provisioning plans need
(``enable --now tailscaled``), plus writing and removing the boot-time
one-shot unit that runs Stage 2 exactly once after the reboot.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sullivan_ctl.adapters.base import Adapter, ExecutionContext
from sullivan_ctl.adapters.shell.command import CommandRunner
from sullivan_ctl.core.models.action import Receipt

logger = logging.getLogger(__name__)

_UNIT_OPERATIONS = {"enable", "disable", "status", "is-enabled", "start", "stop"}
_FILE_OPERATIONS = {"install-unit", "remove-unit"}
_OPERATIONS = _UNIT_OPERATIONS | _FILE_OPERATIONS | {"daemon-reload", "reboot"}


def render_oneshot_unit(
    *,
    description: str,
    exec_start: str,
    after: list[str],
    log_path: Path | None = None,
    working_directory: Path | None = None,
) -> str:
    """Render a boot-triggered, run-once unit.

    ``RemainAfterExit=yes`` keeps the unit 'active (exited)' once its
    single run finishes, so systemd never restarts it.
    """
    wants = [u for u in after if u.endswith(".target")]
    lines = [
        "[Unit]",
        f"Description={description}",
        f"After={' '.join(after)}",
    ]
    if wants:
        lines.append(f"Wants={' '.join(wants)}")
    lines += [
        "",
        "[Service]",
        "Type=oneshot",
        "RemainAfterExit=yes",
        f"ExecStart={exec_start}",
    ]
    if working_directory is not None:
        lines.append(f"WorkingDirectory={working_directory}")
    if log_path is not None:
        lines += [
            f"StandardOutput=append:{log_path}",
            f"StandardError=append:{log_path}",
        ]
    lines += [
        "",
        "[Install]",
        "WantedBy=multi-user.target",
        "",
    ]
    return "\n".join(lines)


class SystemdAdapter(Adapter):
    """systemctl operations.

    Step params:
        operation (str): One of 'enable', 'disable', 'start', 'stop',
                         'status', 'is-enabled', 'daemon-reload', 'reboot',
                         'install-unit', 'remove-unit'.
        unit (str): Target unit (for unit operations).
        now (bool): Pass ``--now`` to enable/disable (default: False).
        path (str), content (str): Unit file location and body for
            install-unit / remove-unit.
    """

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    @property
    def name(self) -> str:
        return "systemd"

    def is_available(self) -> bool:
        return self._runner.which("systemctl")

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.params.get("operation", "")
        if operation not in _OPERATIONS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_OPERATIONS))}"
        if operation in _UNIT_OPERATIONS and not context.params.get("unit"):
            return False, f"'{operation}' requires 'unit'"
        if operation in _FILE_OPERATIONS and not context.params.get("path"):
            return False, f"'{operation}' requires 'path'"
        if operation == "install-unit" and not context.params.get("content"):
            return False, "'install-unit' requires 'content'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.params
        if params["operation"] == "install-unit":
            return self.install_unit(Path(params["path"]), params["content"])
        if params["operation"] == "remove-unit":
            return self.remove_unit(Path(params["path"]))
        return self.systemctl(
            params["operation"],
            params.get("unit"),
            now=bool(params.get("now", False)),
            action_id=context.step.id,
        )

    # ── Operations ──────────────────────────────────────────────

    def systemctl(
        self,
        operation: str,
        unit: str | None = None,
        *,
        now: bool = False,
        action_id: str | None = None,
    ) -> Receipt:
        argv = ["systemctl", operation]
        if now and operation in ("enable", "disable"):
            argv.append("--now")
        if operation == "status":
            argv.append("--no-pager")
        if unit:
            argv.append(unit)
        return self._runner.run(
            argv,
            action_id=action_id or f"systemctl-{operation}",
            adapter=self.name,
            privileged=operation not in ("status", "is-enabled"),
        )

    def install_unit(self, path: Path, content: str) -> Receipt:
        """Write a unit file. Never raises."""
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id="install-unit",
                error=f"Cannot write unit file {path}: {e}",
            )
        logger.info("Installed unit file %s", path)
        return Receipt.success(adapter=self.name, action_id="install-unit", output=str(path))

    def remove_unit(self, path: Path) -> Receipt:
        """Delete a unit file if present. Never raises."""
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id="remove-unit",
                error=f"Cannot remove unit file {path}: {e}",
            )
        logger.info("Removed unit file %s", path)
        return Receipt.success(adapter=self.name, action_id="remove-unit", output=str(path))
