"""
Central data registry for static catalogs.

Loads base catalogs from ``sullivan_ctl/core/data/catalogs/`` once at first
access and caches them for the process lifetime.  The CLI, the lifecycle
manager and the stage coordinator all read from this single source.

Usage::

    from sullivan_ctl.core.data import get_registry

    registry = get_registry()
    services = registry.services   # list[ServiceSpec]
    keys = registry.env_keys       # list[EnvKey]
"""

from __future__ import annotations

import json
import logging
from functools import cached_property
from pathlib import Path
from typing import Literal

from pydantic import BaseModel

from sullivan_ctl.core.models.plan import ProvisioningPlan
from sullivan_ctl.core.models.service import ServiceSpec

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent

EnvKeyKind = Literal["setting", "path", "internal_secret", "external_secret", "optional"]


class EnvKey(BaseModel):
    """One known key of the compose .env file."""

    key: str
    kind: EnvKeyKind
    section: str = "General"
    default: str | None = None
    dynamic: Literal["uid", "gid"] | None = None
    description: str = ""


def _load_json(relative_path: str) -> list | dict:
    """Load a JSON file relative to the data directory."""
    path = _DATA_DIR / relative_path
    if not path.exists():
        logger.warning("Data file not found: %s", path)
        return [] if relative_path.endswith("s.json") else {}
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class DataRegistry:
    """Central registry for all static data catalogs.

    Each property lazily loads its JSON file on first access and caches
    the result for the lifetime of the instance.
    """

    # ── Compose stack ────────────────────────────────────────────

    @cached_property
    def services(self) -> list[ServiceSpec]:
        """Built-in service catalog (media, downloads, arr stack, utilities)."""
        data = _load_json("catalogs/services.json")
        specs = [ServiceSpec.model_validate(item) for item in data]
        logger.debug("Loaded %d service definitions", len(specs))
        return specs

    # ── .env keys ────────────────────────────────────────────────

    @cached_property
    def env_keys(self) -> list[EnvKey]:
        """Known .env keys with their kind and default."""
        data = _load_json("catalogs/env_keys.json")
        keys = [EnvKey.model_validate(item) for item in data]
        logger.debug("Loaded %d .env key definitions", len(keys))
        return keys

    # ── Provisioning plans ───────────────────────────────────────

    @cached_property
    def plans(self) -> dict[str, ProvisioningPlan]:
        """Stage plans keyed by stage name."""
        data = _load_json("catalogs/plans.json")
        plans = {name: ProvisioningPlan.model_validate(body) for name, body in data.items()}
        logger.debug("Loaded provisioning plans: %s", list(plans))
        return plans


# ── Module-level singleton ───────────────────────────────────────

_registry: DataRegistry | None = None


def get_registry() -> DataRegistry:
    """Return the process-level DataRegistry singleton."""
    global _registry  # noqa: PLW0603
    if _registry is None:
        _registry = DataRegistry()
    return _registry
