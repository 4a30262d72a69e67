"""sullivan-ctl — provisioning and service lifecycle for the Sullivan media server."""

__version__ = "0.1.0"
