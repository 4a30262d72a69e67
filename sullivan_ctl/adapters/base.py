"""
Adapter base — the protocol contract between the control core and the
host's collaborators (package manager, init system, VPN, compose).

The stage coordinator only talks to collaborators through this
protocol, never directly to external tools.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from sullivan_ctl.core.models.action import Receipt, Step


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute a step."""

    step: Step
    project_root: str = "."

    @property
    def params(self) -> dict[str, Any]:
        return self.step.params


class Adapter(ABC):
    """A binding to one of the host's external tools.

    Adapters never raise; a failure is a Receipt with status "failed".
    ``validate`` checks step params before anything runs; ``execute``
    performs the side effect.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'shell', 'packages', 'systemd')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the underlying binary is installed. Fast; never raises."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Return ``(ok, message)``; message is empty when the params are usable."""

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Run the step. Failures come back as a failed Receipt."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
