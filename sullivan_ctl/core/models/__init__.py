"""
Domain models — Pydantic types for sullivan-ctl.

All models are re-exported here for convenient access:

    from sullivan_ctl.core.models import Step, Receipt, ServiceSpec, Settings
"""

from sullivan_ctl.core.models.action import Receipt, Step
from sullivan_ctl.core.models.plan import ProvisioningPlan, StageResult, StepOutcome
from sullivan_ctl.core.models.profile import DeploymentProfile
from sullivan_ctl.core.models.service import (
    ExecCheck,
    HttpCheck,
    ProbeResult,
    ServiceSpec,
)
from sullivan_ctl.core.models.settings import (
    ClassifierSettings,
    NetworkRepairSettings,
    Settings,
    TailscaleSettings,
)
from sullivan_ctl.core.models.state import (
    EnrollmentOptions,
    ResumeToken,
    StageProgress,
    TailscaleCredentials,
)

__all__ = [
    "ClassifierSettings",
    "DeploymentProfile",
    "EnrollmentOptions",
    "ExecCheck",
    "HttpCheck",
    "NetworkRepairSettings",
    "ProbeResult",
    "ProvisioningPlan",
    "Receipt",
    "ResumeToken",
    "ServiceSpec",
    "Settings",
    "StageProgress",
    "StageResult",
    "Step",
    "StepOutcome",
    "TailscaleCredentials",
    "TailscaleSettings",
]
