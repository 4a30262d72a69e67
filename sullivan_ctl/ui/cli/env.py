"""
CLI commands for the host environment and the compose .env file.

Thin wrappers over ``sullivan_ctl.core.services.environment`` and
``sullivan_ctl.core.services.env_bootstrap``.
"""

from __future__ import annotations

import json

import click

from sullivan_ctl.core.errors import SullivanError
from sullivan_ctl.core.reliability.lock import operation_lock
from sullivan_ctl.core.services.env_bootstrap import generate_secrets, pending_placeholders
from sullivan_ctl.core.services.environment import (
    HostSignals,
    advisory_defaults,
    classify,
    effective_settle_delay,
)
from sullivan_ctl.ui.cli import common


@click.command("show-env")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show_env(ctx: click.Context, as_json: bool) -> None:
    """Show the detected host profile and .env readiness."""
    settings = common.load(ctx)
    signals = HostSignals.probe(settings.project_root)
    profile = classify(signals, settings.classifier)
    advice = advisory_defaults(profile)
    compose = common.build_compose(settings)
    pending = pending_placeholders(settings)

    result = {
        "profile": profile.value,
        "hostname": signals.hostname,
        "memory_mb": signals.total_memory_mb,
        "project_root": str(settings.project_root),
        "compose_file": str(settings.compose_path),
        "compose_command": compose.command_label,
        "env_file": str(settings.env_path),
        "env_file_exists": settings.env_path.is_file(),
        "pending": pending,
        "settle_delay": effective_settle_delay(settings, profile),
        "notes": advice.notes,
    }

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.secho(f"\n🖥  Host profile: {profile.value}", fg="cyan", bold=True)
    click.echo(f"   Hostname:  {signals.hostname}")
    memory = f"{signals.total_memory_mb} MB" if signals.total_memory_mb is not None else "unknown"
    click.echo(f"   Memory:    {memory}")
    click.echo(f"   Compose:   {result['compose_command']}")
    click.echo(f"   Settle:    {result['settle_delay']:.0f}s")
    click.echo()

    if result["env_file_exists"]:
        click.secho(f"   📄 {settings.env_path}", fg="green")
    else:
        click.secho(f"   📄 {settings.env_path} (not created yet; 'start' creates it)", fg="yellow")

    if pending:
        click.secho("   ⚠️  Needs a value:", fg="yellow")
        for key in pending:
            click.echo(f"      • {key}")

    if advice.notes:
        click.echo()
        for note in advice.notes:
            click.echo(f"   💡 {note}")
    click.echo()


@click.command("generate-secrets")
@click.pass_context
def generate_secrets_cmd(ctx: click.Context) -> None:
    """Fill internal secrets that are empty or placeholders."""
    settings = common.load(ctx)
    try:
        with operation_lock(settings.lock_path, settings.lock_timeout, "generate-secrets"):
            report = generate_secrets(settings)
    except SullivanError as e:
        common.fail(e)

    if report.generated:
        click.secho(f"🔑 Generated: {', '.join(report.generated)}", fg="green")
    else:
        click.echo("✅ All internal secrets already set")

    if report.pending:
        click.secho("⚠️  Still needs a value (set manually):", fg="yellow")
        for key in report.pending:
            click.echo(f"   • {key}")
