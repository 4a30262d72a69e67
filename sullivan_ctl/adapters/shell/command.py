"""
Shell command adapter — execute host commands and capture output.

This is the most fundamental adapter: it runs commands and captures
their output. Every other adapter builds its argv and hands it to the
same ``CommandRunner``, so there is one place where timeouts, sudo and
failure capture are handled.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from collections.abc import Sequence
from pathlib import Path

from sullivan_ctl.adapters.base import Adapter, ExecutionContext
from sullivan_ctl.core.models.action import Receipt

logger = logging.getLogger(__name__)


def is_root() -> bool:
    return hasattr(os, "geteuid") and os.geteuid() == 0


class CommandRunner:
    """Run argv lists with a timeout and return Receipts.

    Args:
        default_timeout: Seconds before a command is killed.
        use_sudo: Prefix privileged commands with ``sudo``. Defaults to
            True unless already running as root.
    """

    def __init__(self, default_timeout: int = 300, use_sudo: bool | None = None):
        self.default_timeout = default_timeout
        self.use_sudo = (not is_root()) if use_sudo is None else use_sudo

    def which(self, binary: str) -> bool:
        return shutil.which(binary) is not None

    def _argv(self, argv: Sequence[str], privileged: bool) -> list[str]:
        if privileged and self.use_sudo:
            return ["sudo", *argv]
        return list(argv)

    def run(
        self,
        argv: Sequence[str],
        *,
        action_id: str = "command",
        adapter: str = "shell",
        timeout: int | float | None = None,
        cwd: Path | str | None = None,
        privileged: bool = False,
        mask: Sequence[str] = (),
    ) -> Receipt:
        """Run ``argv`` to completion. Never raises.

        Any string in ``mask`` is replaced by ``****`` in logs and in the
        receipt's recorded command.
        """
        full = self._argv(argv, privileged)
        timeout = timeout or self.default_timeout
        command = " ".join(full)
        for secret in mask:
            if secret:
                command = command.replace(secret, "****")

        logger.debug("Executing: %s (cwd=%s)", command, cwd)
        start = time.monotonic()

        try:
            result = subprocess.run(
                full,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=adapter,
                action_id=action_id,
                error=f"Command timed out after {timeout}s",
                metadata={"command": command, "timeout": timeout},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=adapter,
                action_id=action_id,
                error=f"Command execution error: {e}",
                metadata={"command": command},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = result.stdout.strip()
        stderr = result.stderr.strip()

        if result.returncode == 0:
            return Receipt.success(
                adapter=adapter,
                action_id=action_id,
                output=output,
                duration_ms=elapsed_ms,
                metadata={"command": command, "return_code": 0, "stderr": stderr},
            )
        return Receipt.failure(
            adapter=adapter,
            action_id=action_id,
            error=stderr or f"Command exited with code {result.returncode}",
            output=output,
            duration_ms=elapsed_ms,
            metadata={"command": command, "return_code": result.returncode},
        )

    def run_attached(
        self, argv: Sequence[str], *, cwd: Path | str | None = None, privileged: bool = False,
    ) -> int:
        """Run ``argv`` with the terminal attached (no capture, no timeout).

        Used for following logs and for interactive logins.
        ``KeyboardInterrupt`` propagates to the caller, which decides what
        detaching means.
        """
        full = self._argv(argv, privileged)
        logger.debug("Attached: %s", " ".join(full))
        try:
            return subprocess.call(full, cwd=str(cwd) if cwd else None)
        except OSError as e:
            logger.error("Cannot run %s: %s", argv[0], e)
            return 127


class ShellCommandAdapter(Adapter):
    """Execute a host command as a provisioning step.

    Step params:
        command (list[str]): argv to execute.
        privileged (bool): Run through sudo when not root (default: False).
        timeout (int): Timeout in seconds (default: runner default).
        mask (list[str]): Values to hide when the command is logged.
    """

    def __init__(self, runner: CommandRunner):
        self._runner = runner

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.params.get("command")
        if not command or not isinstance(command, list):
            return False, "Missing required param: 'command' (argv list)"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        return self._runner.run(
            context.params["command"],
            action_id=context.step.id,
            adapter=self.name,
            timeout=context.params.get("timeout"),
            privileged=bool(context.params.get("privileged", False)),
            mask=context.params.get("mask", ()),
        )
