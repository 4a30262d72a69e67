"""
Configuration loader — reads sullivan.yml into the Settings model.

This is the primary entry point for loading configuration. It reads
YAML, validates against Pydantic schemas, resolves paths relative to
the config file, and checks the service catalog forms a DAG.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from sullivan_ctl.core.data import get_registry
from sullivan_ctl.core.errors import ConfigError
from sullivan_ctl.core.models.service import ServiceSpec
from sullivan_ctl.core.models.settings import Settings
from sullivan_ctl.core.services.dependency import validate_dag

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "sullivan.yml"
CONFIG_ENV_VAR = "SULLIVAN_CONFIG"


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for sullivan.yml starting from the given directory, walking up.

    ``SULLIVAN_CONFIG`` takes precedence when set.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to sullivan.yml, or None if not found.
    """
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        return Path(explicit)

    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_settings(path: Path | None = None) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit path to sullivan.yml. If None, searches upward; if
            nothing is found, defaults rooted at the current directory
            are returned.

    Returns:
        Validated Settings model with an absolute ``project_root``.

    Raises:
        ConfigError: If the file is unreadable or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        logger.debug("No %s found — using defaults rooted at %s", CONFIG_FILE, Path.cwd())
        settings = Settings(project_root=Path.cwd().resolve())
        validate_catalog(service_catalog(settings))
        return settings

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    base = path.parent.resolve()
    root = Path(data.pop("project_root", ".")).expanduser()
    data["project_root"] = root if root.is_absolute() else (base / root).resolve()
    data["config_path"] = path.resolve()

    try:
        settings = Settings.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    validate_catalog(service_catalog(settings))
    logger.info(
        "Loaded settings from %s (root=%s, %d services)",
        path, settings.project_root, len(service_catalog(settings)),
    )
    return settings


def service_catalog(settings: Settings) -> list[ServiceSpec]:
    """Declared services: from settings when given, else the built-in catalog."""
    return settings.services or get_registry().services


def validate_catalog(specs: list[ServiceSpec]) -> None:
    """Raise ConfigError if the services do not form a valid DAG."""
    errors = validate_dag(specs)
    if errors:
        raise ConfigError("Invalid service catalog: " + "; ".join(errors))
