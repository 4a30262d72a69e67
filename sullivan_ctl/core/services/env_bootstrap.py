"""
EnvConfig bootstrap — create, patch and check the compose ``.env`` file.

Three operations, all driven by the env-key catalog:

- ``ensure_env_config``   write the template on first run, or fill gaps
                          in an existing file without clobbering values
- ``generate_secrets``    (re)fill internal secrets that are still unset
- ``validate_mount_points``  make sure media/download directories exist

Nothing here raises for operator-fixable problems. Missing credentials
and missing directories come back as ConfigurationWarnings in the
report, and are logged.
"""

from __future__ import annotations

import logging
import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path

from sullivan_ctl.adapters.shell.command import is_root
from sullivan_ctl.core.data import EnvKey, get_registry
from sullivan_ctl.core.errors import ConfigurationWarning
from sullivan_ctl.core.models.settings import Settings
from sullivan_ctl.core.models.state import TailscaleCredentials
from sullivan_ctl.core.persistence.env_file import PLACEHOLDER, EnvFile, needs_value

logger = logging.getLogger(__name__)


@dataclass
class EnvReport:
    """What ``ensure_env_config`` / ``generate_secrets`` did."""

    path: Path
    created: bool = False
    generated: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)
    warnings: list[ConfigurationWarning] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "created": self.created,
            "generated": self.generated,
            "added": self.added,
            "pending": self.pending,
            "warnings": [str(w) for w in self.warnings],
        }


@dataclass
class MountReport:
    """Outcome of ``validate_mount_points``."""

    ok: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    warnings: list[ConfigurationWarning] = field(default_factory=list)


def generate_secret() -> str:
    return secrets.token_urlsafe(32)


def _invoking_ids() -> tuple[int, int]:
    """uid/gid of the human behind the command (SUDO_UID wins over root)."""
    sudo_uid = os.environ.get("SUDO_UID")
    sudo_gid = os.environ.get("SUDO_GID")
    if sudo_uid and sudo_gid and sudo_uid.isdigit() and sudo_gid.isdigit():
        return int(sudo_uid), int(sudo_gid)
    return os.getuid(), os.getgid()


def _initial_value(key: EnvKey) -> str:
    if key.kind == "internal_secret":
        return generate_secret()
    if key.kind == "external_secret":
        return PLACEHOLDER
    if key.dynamic is not None:
        uid, gid = _invoking_ids()
        return str(uid if key.dynamic == "uid" else gid)
    return key.default or ""


def _catalog() -> list[EnvKey]:
    return get_registry().env_keys


def _pending_manual(env: EnvFile, catalog: list[EnvKey]) -> list[str]:
    return [
        k.key for k in catalog
        if k.kind == "external_secret" and needs_value(env.get(k.key))
    ]


def _write_template(path: Path, catalog: list[EnvKey]) -> EnvReport:
    env = EnvFile(path)
    report = EnvReport(path=path, created=True)
    env.add_comment("Sullivan media server configuration")
    env.add_comment(f"Values set to {PLACEHOLDER} must be filled in before use")

    section = None
    for key in catalog:
        if key.section != section:
            env.add_comment()
            env.add_comment(key.section)
            section = key.section
        if key.description:
            env.add_comment(key.description)
        value = _initial_value(key)
        env.update_env_var(key.key, value)
        if key.kind == "internal_secret":
            report.generated.append(key.key)

    env.save()
    report.pending = _pending_manual(env, catalog)
    logger.info("Created %s from template", path)
    return report


def ensure_env_config(settings: Settings) -> EnvReport:
    """Create the .env file, or patch gaps in an existing one.

    Patching follows the update rule: a key is written only when absent,
    empty or a placeholder. Internal secrets are generated; external
    secrets are left for the operator and reported as pending.
    """
    path = settings.env_path
    catalog = _catalog()

    if not path.is_file():
        report = _write_template(path, catalog)
    else:
        env = EnvFile.load(path)
        report = EnvReport(path=path)
        for key in catalog:
            current = env.get(key.key)
            if key.kind == "internal_secret":
                if needs_value(current) and env.update_env_var(key.key, generate_secret()):
                    report.generated.append(key.key)
            elif key.key not in env:
                env.update_env_var(key.key, _initial_value(key))
                report.added.append(key.key)
            elif key.kind in ("setting", "path") and needs_value(current) and (key.default or key.dynamic):
                if env.update_env_var(key.key, _initial_value(key)):
                    report.added.append(key.key)
        if report.generated or report.added:
            env.save()
            logger.info(
                "Patched %s (generated: %s, added: %s)",
                path, ", ".join(report.generated) or "-", ", ".join(report.added) or "-",
            )
        report.pending = _pending_manual(env, catalog)

    for key in report.pending:
        warning = ConfigurationWarning(key, f"still set to a placeholder in {path.name}; fill it in manually")
        report.warnings.append(warning)
        logger.warning("%s", warning)
    return report


def generate_secrets(settings: Settings) -> EnvReport:
    """Fill every internal secret that is empty or a placeholder."""
    path = settings.env_path
    env = EnvFile.load(path)
    report = EnvReport(path=path, created=not env.exists)

    for key in _catalog():
        if key.kind != "internal_secret":
            continue
        if env.update_env_var(key.key, generate_secret()):
            report.generated.append(key.key)
            logger.info("Generated %s", key.key)
        else:
            logger.debug("Keeping existing %s", key.key)

    if report.generated:
        env.save()
    report.pending = _pending_manual(env, _catalog())
    return report


def validate_mount_points(env: EnvFile, settings: Settings) -> MountReport:
    """Ensure every path-valued key points at an existing directory.

    Directories are created best-effort. When running as root with
    numeric PUID/PGID they are handed to that owner. Anything still
    missing is a warning; startup proceeds regardless.
    """
    report = MountReport()
    values = env.as_dict()
    puid, pgid = values.get("PUID", ""), values.get("PGID", "")
    chown = is_root() and puid.isdigit() and pgid.isdigit()

    for key in _catalog():
        if key.kind != "path":
            continue
        raw = values.get(key.key) or key.default
        if not raw:
            continue
        target = Path(raw).expanduser()
        if not target.is_absolute():
            target = settings.project_root / target

        if target.is_dir():
            report.ok.append(key.key)
            continue

        try:
            target.mkdir(parents=True, exist_ok=True)
            if chown:
                os.chown(target, int(puid), int(pgid))
            report.created.append(key.key)
            logger.info("Created %s (%s)", target, key.key)
        except OSError as e:
            warning = ConfigurationWarning(key.key, f"{target} does not exist and cannot be created: {e}")
            report.warnings.append(warning)
            logger.warning("%s", warning)

    return report


def tailscale_credentials(settings: Settings) -> TailscaleCredentials:
    """OAuth client from the process environment, falling back to the .env file."""
    env = EnvFile.load(settings.env_path)
    return TailscaleCredentials(
        client_id=os.environ.get("TAILSCALE_CLIENT_ID") or env.get("TAILSCALE_CLIENT_ID") or "",
        client_secret=os.environ.get("TAILSCALE_CLIENT_SECRET") or env.get("TAILSCALE_CLIENT_SECRET") or "",
    )


def pending_placeholders(settings: Settings) -> list[str]:
    """Catalog keys whose value is still a placeholder (for show-env)."""
    env = EnvFile.load(settings.env_path)
    return [
        k.key for k in _catalog()
        if k.kind in ("internal_secret", "external_secret") and needs_value(env.get(k.key))
    ]
