"""
Provisioning state — what survives the reboot between stages.

Two documents live under the setup directory:

- ``resume.json``          the ResumeToken: remaining steps plus the
                           enrollment credentials Stage 2 needs. Written at
                           the end of Stage 1, deleted at the end of Stage 2.
- ``stage1-progress.json`` ids of Stage-1 steps already completed, so a
                           re-run after a failure resumes where it stopped.
                           Contains no secrets.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from sullivan_ctl.core.models.action import Step


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class TailscaleCredentials(BaseModel):
    """OAuth client used to mint a single-use enrollment key."""

    client_id: str
    client_secret: str = Field(repr=False)

    def masked_secret(self) -> str:
        return self.client_secret[:10] + "..." if self.client_secret else "(empty)"


class EnrollmentOptions(BaseModel):
    """How the node joins the tailnet."""

    hostname: str = "sullivan"
    tags: list[str] = Field(default_factory=lambda: ["tag:server"])
    expiry_seconds: int = 3600
    accept_routes: bool = True
    advertise_exit_node: bool = True


class ResumeToken(BaseModel):
    """Durable hand-off from Stage 1 to Stage 2.

    Owned by the stage coordinator. Holds secrets, so it is written with
    owner-only permissions and must not outlive a successful Stage 2.
    """

    schema_version: int = 1
    created_at: str = Field(default_factory=_now_iso)
    plan_name: str = "stage2"

    credentials: TailscaleCredentials
    enrollment: EnrollmentOptions = Field(default_factory=EnrollmentOptions)
    remaining_steps: list[Step] = Field(default_factory=list)


class StageProgress(BaseModel):
    """Completed step ids for an in-flight stage."""

    stage: str = "stage1"
    plan_name: str = ""
    completed: list[str] = Field(default_factory=list)
    updated_at: str = Field(default_factory=_now_iso)

    def mark(self, step_id: str) -> None:
        if step_id not in self.completed:
            self.completed.append(step_id)
        self.updated_at = _now_iso()
