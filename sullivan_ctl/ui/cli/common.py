"""
Shared wiring for CLI commands.

Commands never construct collaborators inline; they call the builders
here, so every command sees the same Settings-driven configuration and
tests can swap a builder for a fake.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from sullivan_ctl.adapters.containers.compose import ComposeAdapter
from sullivan_ctl.adapters.init.systemd import SystemdAdapter
from sullivan_ctl.adapters.mock import MockAdapter
from sullivan_ctl.adapters.packages.package_manager import PackageManagerAdapter
from sullivan_ctl.adapters.registry import AdapterRegistry
from sullivan_ctl.adapters.shell.command import CommandRunner, ShellCommandAdapter, is_root
from sullivan_ctl.adapters.vpn.tailscale import TailscaleAdapter, TailscaleAPI
from sullivan_ctl.core.config.loader import load_settings, service_catalog
from sullivan_ctl.core.errors import SullivanError
from sullivan_ctl.core.models.settings import Settings
from sullivan_ctl.core.services.environment import (
    HostSignals,
    classify,
    effective_settle_delay,
)
from sullivan_ctl.core.services.lifecycle import HostProber, ServiceLifecycleManager
from sullivan_ctl.core.services.stage_coordinator import StageCoordinator


def fail(err: Exception | str) -> None:
    """Print a red error line and exit 1."""
    click.secho(f"❌ {err}", fg="red")
    sys.exit(1)


def load(ctx: click.Context) -> Settings:
    """Settings for this invocation (cached on the click context)."""
    settings = ctx.obj.get("settings")
    if settings is None:
        config_path: Path | None = ctx.obj.get("config_path")
        try:
            settings = load_settings(config_path)
        except SullivanError as e:
            fail(e)
        ctx.obj["settings"] = settings
    return settings


def require_root(command: str) -> None:
    if not is_root():
        fail(f"'{command}' must run as root (use sudo), or pass --dry-run")


# ── Builders ────────────────────────────────────────────────────


def build_runner(settings: Settings) -> CommandRunner:
    return CommandRunner(default_timeout=settings.command_timeout)


def build_compose(settings: Settings) -> ComposeAdapter:
    return ComposeAdapter(
        build_runner(settings),
        compose_file=settings.compose_path,
        env_file=settings.env_path,
        project_name=settings.compose_project,
        pull_timeout=settings.pull_timeout,
    )


def build_registry(settings: Settings, dry_run: bool = False) -> AdapterRegistry:
    runner = build_runner(settings)
    registry = AdapterRegistry()
    registry.register(ShellCommandAdapter(runner))
    registry.register(PackageManagerAdapter(runner, manager=settings.package_manager))
    registry.register(SystemdAdapter(runner))
    registry.register(TailscaleAdapter(runner))
    if dry_run:
        registry.set_mock_mode(True, MockAdapter())
    return registry


def build_tailscale_api(settings: Settings) -> TailscaleAPI:
    return TailscaleAPI(
        api_base=settings.tailscale.api_base,
        timeout=settings.tailscale.request_timeout,
    )


def build_coordinator(settings: Settings, dry_run: bool = False) -> StageCoordinator:
    return StageCoordinator(
        settings,
        build_registry(settings, dry_run=dry_run),
        build_tailscale_api(settings),
    )


def build_prober(compose: ComposeAdapter) -> HostProber:
    return HostProber(compose)


def build_manager(settings: Settings) -> ServiceLifecycleManager:
    compose = build_compose(settings)
    profile = classify(HostSignals.probe(settings.project_root), settings.classifier)
    return ServiceLifecycleManager(
        settings,
        compose,
        service_catalog(settings),
        build_prober(compose),
        settle_delay=effective_settle_delay(settings, profile),
    )
