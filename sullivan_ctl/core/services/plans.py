"""
Provisioning plans — the Stage 1 and Stage 2 step lists for this host.

The catalog plans are templates. ``{user}`` (the account that joins the
docker group) and ``{hostname}`` (the tailnet hostname) are replaced in
any step name or string param; other braces are left as written.
Package-manager steps are kept as-is; the package adapter renders them
for dnf or apt.

The Netdata step is completed from the .env claim settings, and dropped
when no claim token has been provided.
"""

from __future__ import annotations

import getpass
import logging
import os
import re
from typing import Any

from sullivan_ctl.core.data import get_registry
from sullivan_ctl.core.errors import ConfigError
from sullivan_ctl.core.models.action import Step
from sullivan_ctl.core.models.plan import ProvisioningPlan
from sullivan_ctl.core.models.settings import Settings
from sullivan_ctl.core.persistence.env_file import EnvFile, needs_value

logger = logging.getLogger(__name__)

NETDATA_STEP = "install-netdata"
NETDATA_CLAIM_URL = "https://app.netdata.cloud"

_VARIABLE_RE = re.compile(r"\{(\w+)\}")


def provision_user(settings: Settings) -> str:
    """The non-root account to provision for."""
    if settings.provision_user:
        return settings.provision_user
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user and sudo_user != "root":
        return sudo_user
    return getpass.getuser()


def plan_variables(settings: Settings) -> dict[str, str]:
    return {"user": provision_user(settings), "hostname": settings.tailscale.hostname}


def _substitute(value: Any, variables: dict[str, str]) -> Any:
    if isinstance(value, str):
        return _VARIABLE_RE.sub(lambda m: variables.get(m.group(1), m.group(0)), value)
    if isinstance(value, list):
        return [_substitute(v, variables) for v in value]
    if isinstance(value, dict):
        return {k: _substitute(v, variables) for k, v in value.items()}
    return value


def render_plan(plan: ProvisioningPlan, variables: dict[str, str]) -> ProvisioningPlan:
    """Copy of ``plan`` with known template variables filled in."""
    steps = [
        Step(
            id=step.id,
            name=_substitute(step.name, variables),
            adapter=step.adapter,
            params=_substitute(step.params, variables),
            best_effort=step.best_effort,
            expect_output=step.expect_output,
        )
        for step in plan.steps
    ]
    return ProvisioningPlan(name=plan.name, steps=steps)


def _with_netdata_claim(plan: ProvisioningPlan, settings: Settings) -> ProvisioningPlan:
    """Append the claim arguments to the Netdata step, or drop it."""
    step = next((s for s in plan.steps if s.id == NETDATA_STEP), None)
    if step is None:
        return plan

    env = EnvFile.load(settings.env_path)
    token = env.get("NETDATA_CLAIM_TOKEN")
    if needs_value(token):
        logger.warning("NETDATA_CLAIM_TOKEN is not set in %s; skipping Netdata", settings.env_path)
        return ProvisioningPlan(name=plan.name, steps=[s for s in plan.steps if s.id != NETDATA_STEP])

    claim = ["--claim-token", token, "--claim-url", env.get("NETDATA_CLAIM_URL") or NETDATA_CLAIM_URL]
    rooms = env.get("NETDATA_CLAIM_ROOMS")
    if rooms:
        claim += ["--claim-rooms", rooms]
    params = {**step.params, "command": [*step.params["command"], *claim], "mask": [token]}
    claimed = step.model_copy(update={"params": params})
    return ProvisioningPlan(
        name=plan.name,
        steps=[claimed if s.id == NETDATA_STEP else s for s in plan.steps],
    )


def _load(name: str, settings: Settings) -> ProvisioningPlan:
    plans = get_registry().plans
    if name not in plans:
        raise ConfigError(f"Provisioning plan '{name}' is missing from the catalog")
    variables = plan_variables(settings)
    logger.debug("Rendering plan %s for user %s", name, variables["user"])
    plan = _with_netdata_claim(render_plan(plans[name], variables), settings)

    if settings.package_manager == "apt":
        # Repo files are dnf-specific; apt hosts must have the vendor repos configured
        skipped = [s.id for s in plan.steps if s.params.get("operation") == "add-repo"]
        if skipped:
            logger.warning("apt host: skipping repository steps %s", ", ".join(skipped))
            plan = ProvisioningPlan(
                name=plan.name,
                steps=[s for s in plan.steps if s.id not in skipped],
            )
    return plan


def stage1_plan(settings: Settings) -> ProvisioningPlan:
    return _load("stage1", settings)


def stage2_plan(settings: Settings) -> ProvisioningPlan:
    return _load("stage2", settings)
