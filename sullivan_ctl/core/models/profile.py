"""DeploymentProfile — coarse classification of the host."""

from __future__ import annotations

from enum import Enum


class DeploymentProfile(str, Enum):
    """Chosen once per process by the environment classifier.

    Only advisory defaults depend on it; correctness-critical behaviour
    never does.
    """

    CLOUD = "cloud"
    CONTAINER = "container"
    RESOURCE_CONSTRAINED = "resource_constrained"
    DEV_SERVER = "dev_server"
    LAPTOP = "laptop"
