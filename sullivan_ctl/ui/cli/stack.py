"""
CLI commands for the compose stack — start, stop, status, health, logs.

Thin wrappers over ``sullivan_ctl.core.services.lifecycle``.
"""

from __future__ import annotations

import json
import sys

import click

from sullivan_ctl.core.config.loader import service_catalog
from sullivan_ctl.core.errors import SelectionError, SullivanError
from sullivan_ctl.core.reliability.lock import operation_lock
from sullivan_ctl.core.services.dependency import dependents_of
from sullivan_ctl.core.services.lifecycle import Selection, ServiceLifecycleManager
from sullivan_ctl.ui.cli import common

_STATE_ICONS = {
    "running": ("🟢", "green"),
    "restarting": ("🟡", "yellow"),
    "exited": ("🔴", "red"),
    "not created": ("⚪", "white"),
}


def _select(manager: ServiceLifecycleManager, services: tuple[str, ...]) -> Selection:
    try:
        return manager.select(services)
    except SelectionError as e:
        raise click.UsageError(str(e)) from e


# ── start / stop ────────────────────────────────────────────────


@click.command()
@click.argument("services", nargs=-1)
@click.option("--no-pull", is_flag=True, help="Skip pulling images.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def start(ctx: click.Context, services: tuple[str, ...], no_pull: bool, as_json: bool) -> None:
    """Start services (default: all) with their dependencies.

    Examples:

        sullivan-ctl start

        sullivan-ctl start sonarr radarr --no-pull
    """
    settings = common.load(ctx)
    manager = common.build_manager(settings)
    selection = _select(manager, services)

    try:
        with operation_lock(settings.lock_path, settings.lock_timeout, "start"):
            report = manager.start(selection, pull=not no_pull)
    except SullivanError as e:
        common.fail(e)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    click.secho(f"\n🚀 Started: {selection.label()}", fg="cyan", bold=True)
    click.echo(f"   Order: {' → '.join(report.ordered)}")
    if report.skipped_running:
        click.echo(f"   Already running: {', '.join(report.skipped_running)}")
    click.echo()

    for row in report.states:
        icon, color = _STATE_ICONS.get(row.state, ("❔", "white"))
        click.secho(f"   {icon} {row.name:<16}", fg=color, nl=False)
        click.echo(f" {row.state}" + (f"  → {row.url}" if row.url else ""))

    if report.health is not None:
        unreachable = len(report.health.health.unreachable)
        healthy = sum(1 for c in report.health.health.components if c.status == "healthy")
        click.echo()
        click.secho(
            f"   🩺 Health: {healthy} healthy, {unreachable} unreachable",
            fg="yellow" if unreachable else "green",
        )

    if report.warnings or report.degraded:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for item in [*report.degraded, *report.warnings]:
            click.echo(f"   • {item}")
    click.echo()


@click.command()
@click.argument("services", nargs=-1)
@click.pass_context
def stop(ctx: click.Context, services: tuple[str, ...]) -> None:
    """Stop services (default: all, which also removes containers)."""
    settings = common.load(ctx)
    manager = common.build_manager(settings)
    selection = _select(manager, services)

    try:
        with operation_lock(settings.lock_path, settings.lock_timeout, "stop"):
            manager.stop(selection)
    except SullivanError as e:
        common.fail(e)

    click.secho(f"🛑 Stopped: {selection.label()}", fg="green")


# ── Observe ─────────────────────────────────────────────────────


@click.command()
@click.argument("services", nargs=-1)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, services: tuple[str, ...], as_json: bool) -> None:
    """Show the state of each declared service."""
    settings = common.load(ctx)
    manager = common.build_manager(settings)
    selection = _select(manager, services)

    try:
        rows = manager.status(selection)
    except SullivanError as e:
        common.fail(e)

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in rows], indent=2))
        return

    running = sum(1 for r in rows if r.state == "running")
    click.secho(f"\n📦 Services ({running}/{len(rows)} running):", fg="cyan", bold=True)
    for row in rows:
        icon, color = _STATE_ICONS.get(row.state, ("❔", "white"))
        click.secho(f"   {icon} {row.name:<16}", fg=color, nl=False)
        detail = row.status or row.state
        if row.health:
            detail += f" ({row.health})"
        click.echo(f" {detail}")
    click.echo()


@click.command()
@click.argument("services", nargs=-1)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--strict", is_flag=True, help="Exit 1 if any service is unreachable.")
@click.pass_context
def health(ctx: click.Context, services: tuple[str, ...], as_json: bool, strict: bool) -> None:
    """Probe each service's health endpoint once."""
    settings = common.load(ctx)
    manager = common.build_manager(settings)
    selection = _select(manager, services)
    report = manager.health_check(selection)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        icons = {
            "healthy": ("💚", "green"),
            "unreachable": ("🔴", "red"),
            "unchecked": ("⚪", "white"),
        }
        summary_icon, summary_color = {"healthy": ("💚", "green"), "degraded": ("🟡", "yellow")}.get(
            report.health.status, ("❔", "white")
        )
        click.echo()
        click.secho(f"{summary_icon} Stack Health: {report.health.status.upper()}", fg=summary_color, bold=True)
        click.echo(f"   {report.health.timestamp}")
        click.echo()
        for component in report.health.components:
            icon, color = icons.get(component.status, ("❔", "white"))
            click.secho(f"   {icon} {component.name:<16}", fg=color, nl=False)
            click.echo(f" {component.message}")
            if ctx.obj.get("verbose") and component.details:
                for key, val in component.details.items():
                    click.echo(f"      {key}: {val}")
        click.echo()

    if strict and report.degraded:
        sys.exit(1)


@click.command()
@click.argument("services", nargs=-1)
@click.option("--no-follow", is_flag=True, help="Print recent logs and exit.")
@click.option("--tail", type=int, default=None, help="Lines of history per service.")
@click.pass_context
def logs(ctx: click.Context, services: tuple[str, ...], no_follow: bool, tail: int | None) -> None:
    """Attach to service logs (Ctrl-C detaches; services keep running)."""
    settings = common.load(ctx)
    manager = common.build_manager(settings)
    selection = _select(manager, services)

    try:
        code = manager.logs(selection, follow=not no_follow, tail=tail)
    except SullivanError as e:
        common.fail(e)
    if code != 0:
        sys.exit(1)


@click.command("services")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def services_cmd(ctx: click.Context, as_json: bool) -> None:
    """List declared services with dependencies and endpoints."""
    settings = common.load(ctx)
    catalog = service_catalog(settings)

    if as_json:
        click.echo(json.dumps([s.model_dump(mode="json") for s in catalog], indent=2))
        return

    click.secho(f"\n📋 Declared services ({len(catalog)}):", fg="cyan", bold=True)
    for spec in catalog:
        click.secho(f"   • {spec.name}", fg="white", bold=True, nl=False)
        click.echo(f"  {spec.description}" if spec.description else "")
        if spec.depends_on:
            click.echo(f"      depends on: {', '.join(spec.depends_on)}")
        required_by = dependents_of(catalog, spec.name)
        if required_by:
            click.echo(f"      required by: {', '.join(required_by)}")
        if spec.url:
            click.echo(f"      url: {spec.url}")
        if spec.health is not None:
            click.echo(f"      health: {spec.health.describe()}")
    click.echo()
