"""
Provisioning plan and stage result models.

A plan is an ordered list of steps. A stage result is the record of
running (part of) a plan: one outcome per step, in execution order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from sullivan_ctl.core.models.action import Receipt, Step

OutcomeStatus = Literal["ok", "skipped", "degraded", "failed"]


class ProvisioningPlan(BaseModel):
    """Ordered sequence of steps. Order is execution order."""

    name: str
    steps: list[Step] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> ProvisioningPlan:
        seen: set[str] = set()
        for step in self.steps:
            if step.id in seen:
                raise ValueError(f"Duplicate step id in plan '{self.name}': {step.id}")
            seen.add(step.id)
        return self


@dataclass
class StepOutcome:
    """What happened to one step."""

    step_id: str
    status: OutcomeStatus
    receipt: Receipt | None = None
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "step": self.step_id,
            "status": self.status,
            "message": self.message,
            "error": self.receipt.error if self.receipt else None,
        }


@dataclass
class StageResult:
    """Result of running a provisioning stage."""

    stage: str
    outcomes: list[StepOutcome] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not any(o.status == "failed" for o in self.outcomes)

    @property
    def degraded(self) -> list[StepOutcome]:
        return [o for o in self.outcomes if o.status == "degraded"]

    def record(self, outcome: StepOutcome) -> None:
        self.outcomes.append(outcome)

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "ok": self.ok,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "notes": list(self.notes),
        }
