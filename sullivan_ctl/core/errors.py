"""
Error taxonomy — every failure the control core can surface.

Fatal errors are raised and end the current command with a non-zero
exit. Degraded and configuration conditions are *collected* into
operation reports instead: they are exception types so that callers
can choose to raise them, but the lifecycle manager never does.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sullivan_ctl.core.models.action import Receipt


class SullivanError(Exception):
    """Base class for all sullivan-ctl errors."""


class ConfigError(SullivanError):
    """Settings file or service catalog is missing, unreadable, or invalid."""


class FatalProvisioningError(SullivanError):
    """A Stage 1/2 step failed; provisioning halts immediately."""

    def __init__(self, step_id: str, message: str, receipt: Receipt | None = None):
        self.step_id = step_id
        self.receipt = receipt
        super().__init__(f"Step '{step_id}' failed: {message}")


class CredentialExchangeError(SullivanError):
    """The VPN control plane rejected a token or key request."""

    def __init__(self, endpoint: str, status: int | None, body: str):
        self.endpoint = endpoint
        self.status = status
        self.body = body
        code = f"HTTP {status}" if status is not None else "no response"
        super().__init__(f"{endpoint} failed ({code}): {body}")


class LifecycleError(SullivanError):
    """A compose operation that cannot be degraded failed (e.g. ``up``)."""


class PrerequisiteError(SullivanError):
    """Docker, the Docker daemon, or Docker Compose is unavailable."""


class SelectionError(SullivanError):
    """A requested service name is not in the declared catalog."""


class LockBusyError(SullivanError):
    """Another sullivan-ctl operation holds the advisory lock."""


# ── Collected (non-fatal) conditions ────────────────────────────


class DegradedStartError(SullivanError):
    """Image pull or health probe failed; execution continues."""

    def __init__(self, target: str, message: str):
        self.target = target
        super().__init__(f"{target}: {message}")


class ConfigurationWarning(SullivanError):
    """Missing media directory or unfilled placeholder; never blocks startup."""

    def __init__(self, target: str, message: str):
        self.target = target
        super().__init__(f"{target}: {message}")
