"""
Mock adapter — stands in for any collaborator during ``--dry-run`` and tests.

Every step succeeds and echoes its ``expect_output``, so verification
steps pass without touching the host. Individual steps can be scripted
to return a given receipt.
"""

from __future__ import annotations

from sullivan_ctl.adapters.base import Adapter, ExecutionContext
from sullivan_ctl.core.models.action import Receipt


class MockAdapter(Adapter):
    def __init__(self, adapter_name: str = "mock", default_output: str = "[mock] executed"):
        self._name = adapter_name
        self._default_output = default_output
        self._scripted: dict[str, Receipt] = {}
        self.call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def executed_ids(self) -> list[str]:
        return [ctx.step.id for ctx in self.call_log]

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    # ── Scripting ──────────────────────────────────────────────

    def set_response(self, step_id: str, receipt: Receipt) -> None:
        self._scripted[step_id] = receipt

    def set_failure(self, step_id: str, error: str = "Mock failure") -> None:
        self.set_response(step_id, Receipt.failure(adapter=self._name, action_id=step_id, error=error))

    def clear_response(self, step_id: str) -> None:
        self._scripted.pop(step_id, None)

    def reset(self) -> None:
        self.call_log.clear()
        self._scripted.clear()

    def execute(self, context: ExecutionContext) -> Receipt:
        self.call_log.append(context)
        step = context.step
        scripted = self._scripted.get(step.id)
        if scripted is not None:
            return scripted
        return Receipt.success(
            adapter=self._name,
            action_id=step.id,
            output=step.expect_output or self._default_output,
            metadata={"mock": True},
        )
