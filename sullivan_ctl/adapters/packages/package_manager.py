"""
Package manager adapter — install, remove and update OS packages.

Command templates are kept per package manager so the same provisioning
plan renders for dnf (Fedora Server, the reference host) or apt.
"""

from __future__ import annotations

import logging

from sullivan_ctl.adapters.base import Adapter, ExecutionContext
from sullivan_ctl.adapters.shell.command import CommandRunner
from sullivan_ctl.core.models.action import Receipt

logger = logging.getLogger(__name__)


# ── PM command templates ─────────────────────────────────────────

_PM_COMMANDS: dict[str, dict[str, list[str]]] = {
    "dnf": {
        "update":   ["dnf", "upgrade", "--refresh", "-y"],
        "install":  ["dnf", "install", "-y"],
        "remove":   ["dnf", "remove", "-y"],
        "add-repo": ["dnf", "config-manager", "addrepo"],
    },
    "apt": {
        "update":   ["apt-get", "update"],
        "install":  ["apt-get", "install", "-y"],
        "remove":   ["apt-get", "remove", "-y"],
    },
}

_OPERATIONS = ("update", "install", "remove", "add-repo")


class PackageManagerAdapter(Adapter):
    """OS package operations.

    Step params:
        operation (str): One of 'update', 'install', 'remove', 'add-repo'.
        packages (list[str]): Package names for install/remove.
        url (str): Repo file URL for add-repo.
    """

    def __init__(self, runner: CommandRunner, manager: str = "dnf", timeout: int = 1800):
        if manager not in _PM_COMMANDS:
            raise ValueError(f"Unsupported package manager: {manager}")
        self._runner = runner
        self._manager = manager
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "packages"

    @property
    def manager(self) -> str:
        return self._manager

    def is_available(self) -> bool:
        binary = _PM_COMMANDS[self._manager]["install"][0]
        return self._runner.which(binary)

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.params.get("operation", "")
        if operation not in _OPERATIONS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(_OPERATIONS)}"
        if operation not in _PM_COMMANDS[self._manager]:
            return False, f"'{operation}' is not supported with {self._manager}"
        if operation in ("install", "remove") and not context.params.get("packages"):
            return False, f"'{operation}' requires 'packages'"
        if operation == "add-repo" and not context.params.get("url"):
            return False, "'add-repo' requires 'url'"
        return True, ""

    def build_command(self, operation: str, packages: list[str] | None = None,
                      url: str | None = None) -> list[str]:
        """Render the argv for one operation."""
        argv = list(_PM_COMMANDS[self._manager][operation])
        if operation in ("install", "remove"):
            argv.extend(packages or [])
        elif operation == "add-repo":
            argv.append(f"--from-repofile={url}")
        return argv

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.params
        argv = self.build_command(
            params["operation"],
            packages=params.get("packages"),
            url=params.get("url"),
        )
        receipt = self._runner.run(
            argv,
            action_id=context.step.id,
            adapter=self.name,
            timeout=params.get("timeout", self._timeout),
            privileged=True,
        )
        if receipt.failed and params["operation"] == "add-repo" and "already exists" in (receipt.error or ""):
            # Re-adding the same repo file is a no-op, not a failure
            return Receipt.success(
                adapter=self.name,
                action_id=context.step.id,
                output=receipt.error or "",
                metadata={**receipt.metadata, "already_present": True},
            )
        return receipt
