"""
Step and Receipt models — what the coordinator asks for, what it gets back.

A Step names an adapter and carries plain parameters; the adapter answers
with a Receipt. Adapters report failure inside the Receipt and do not
raise, so a plan can always decide for itself whether a failure halts it.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

ReceiptStatus = Literal["ok", "failed"]


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class Step(BaseModel):
    """One provisioning operation, executed by a named adapter.

    Steps must be idempotent: re-running a step that already succeeded
    leaves the host in the same state. They are persisted inside the
    resume token, so everything here must be plain data.
    """

    id: str                         # e.g. "install-docker"
    name: str = ""
    adapter: str
    params: dict[str, Any] = Field(default_factory=dict)
    best_effort: bool = False       # failure degrades instead of halting
    expect_output: str | None = None  # substring the output must contain

    @property
    def label(self) -> str:
        return self.name or self.id

    def succeeded(self, receipt: Receipt) -> bool:
        """Apply this step's success predicate to a receipt."""
        if not receipt.ok:
            return False
        return self.expect_output is None or self.expect_output in receipt.output


class Receipt(BaseModel):
    """Outcome of one adapter call.

    ``metadata`` carries adapter-specific extras such as ``return_code``
    for commands or ``status_code`` for HTTP calls.
    """

    adapter: str
    action_id: str
    status: ReceiptStatus = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def return_code(self) -> int | None:
        return self.metadata.get("return_code")

    @property
    def detail(self) -> str:
        """The error text for failures, otherwise the output."""
        if self.failed:
            return self.error or "unknown error"
        return self.output

    # ── Factories ──────────────────────────────────────────────

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="ok", output=output, **kwargs)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)
