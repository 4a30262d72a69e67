"""Adapters — bindings for the host's external collaborators.

Public re-exports for convenient access.
"""

from sullivan_ctl.adapters.base import Adapter, ExecutionContext
from sullivan_ctl.adapters.mock import MockAdapter
from sullivan_ctl.adapters.registry import AdapterRegistry

__all__ = [
    "Adapter",
    "AdapterRegistry",
    "ExecutionContext",
    "MockAdapter",
]
