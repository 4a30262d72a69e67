"""
Health aggregation — per-service probe results rolled into one report.

An unreachable service degrades the stack; it never turns the report
into an error. Services without a probe are listed as ``unchecked``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

ComponentStatus = Literal["healthy", "unreachable", "unchecked"]


@dataclass
class ComponentHealth:
    name: str
    status: ComponentStatus
    message: str = ""
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class StackHealth:
    """Health of the selected services at one point in time."""

    components: list[ComponentHealth] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def add(self, component: ComponentHealth) -> None:
        self.components.append(component)

    @property
    def unreachable(self) -> list[ComponentHealth]:
        return [c for c in self.components if c.status == "unreachable"]

    @property
    def status(self) -> str:
        return "degraded" if self.unreachable else "healthy"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "timestamp": self.timestamp,
            "components": [asdict(c) for c in self.components],
        }
