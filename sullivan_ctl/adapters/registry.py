"""
Adapter registry — the one dispatch point between plans and the host.

Provisioning steps name an adapter (``packages``, ``shell``, ``systemd``,
``tailscale``); the registry resolves the name, validates the step's
params and runs it. In mock mode (``provision --dry-run``) nothing
registered is ever executed.
"""

from __future__ import annotations

import logging
import time
from sullivan_ctl.adapters.base import Adapter, ExecutionContext
from sullivan_ctl.core.models.action import Receipt, Step

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Adapters by name, plus the step dispatcher."""

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode
        self._mock_adapter: Adapter | None = None

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        """Route every step to ``mock_adapter`` (or a canned success) instead."""
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter

    def register(self, adapter: Adapter) -> None:
        if adapter.name in self._adapters:
            logger.warning("Replacing adapter %s", adapter.name)
        self._adapters[adapter.name] = adapter
        logger.debug("Registered adapter %s (%s)", adapter.name, adapter.__class__.__name__)

    def get(self, name: str) -> Adapter | None:
        return self._adapters.get(name)

    # ── Dispatch ───────────────────────────────────────────────

    def _resolve(self, step: Step) -> Adapter | Receipt:
        if not self._mock_mode:
            adapter = self._adapters.get(step.adapter)
            if adapter is None:
                return Receipt.failure(
                    adapter=step.adapter,
                    action_id=step.id,
                    error=f"No adapter registered for '{step.adapter}'",
                )
            return adapter
        if self._mock_adapter is not None:
            return self._mock_adapter
        return Receipt.success(
            adapter=step.adapter,
            action_id=step.id,
            output=step.expect_output or f"[mock] {step.adapter}:{step.id}",
            metadata={"mock": True},
        )

    def execute_step(self, step: Step, project_root: str = ".") -> Receipt:
        """Validate and run one step. Never raises."""
        resolved = self._resolve(step)
        if isinstance(resolved, Receipt):
            return resolved
        adapter = resolved

        context = ExecutionContext(step=step, project_root=project_root)
        valid, message = adapter.validate(context)
        if not valid:
            return Receipt.failure(adapter=step.adapter, action_id=step.id, error=f"Validation failed: {message}")

        started = time.monotonic()
        try:
            receipt = adapter.execute(context)
        except Exception as e:  # noqa: BLE001 - a raising adapter must not abort the plan
            logger.error("Adapter %s raised on %s: %s", step.adapter, step.id, e)
            receipt = Receipt.failure(adapter=step.adapter, action_id=step.id, error=f"Unexpected error: {e}")
        receipt.duration_ms = int((time.monotonic() - started) * 1000)
        return receipt
