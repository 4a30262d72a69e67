"""
CLI commands for two-stage host provisioning.

Thin wrappers over ``sullivan_ctl.core.services.stage_coordinator``.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from sullivan_ctl.core.errors import CredentialExchangeError, SullivanError
from sullivan_ctl.core.models.plan import StageResult
from sullivan_ctl.core.reliability.lock import operation_lock
from sullivan_ctl.core.services.env_bootstrap import tailscale_credentials
from sullivan_ctl.core.services.plans import stage1_plan, stage2_plan
from sullivan_ctl.ui.cli import common


@click.group()
def provision() -> None:
    """Provision the host — stage1 before reboot, stage2 after."""


def _render(result: StageResult, dry_run: bool) -> None:
    icons = {
        "ok": ("✓", "green"),
        "skipped": ("⊘", "yellow"),
        "degraded": ("⚠", "yellow"),
        "failed": ("✗", "red"),
    }
    mode = "[dry-run] " if dry_run else ""
    click.secho(f"\n🛠  {mode}{result.stage}", fg="cyan", bold=True)
    for outcome in result.outcomes:
        icon, color = icons[outcome.status]
        click.secho(f"   {icon} {outcome.step_id}", fg=color, nl=False)
        click.echo(f"  {outcome.message}" if outcome.message else "")
    for note in result.notes:
        click.echo(f"   • {note}")
    if result.degraded:
        click.secho(f"\n   ⚠️  {len(result.degraded)} best-effort step(s) degraded", fg="yellow")
    click.echo()


@provision.command("stage1")
@click.option("--dry-run", is_flag=True, help="Show every step without touching the host.")
@click.option("--restart", is_flag=True, help="Ignore recorded progress and run every step.")
@click.option("--reboot", is_flag=True, help="Reboot once Stage 2 is scheduled.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def stage1(ctx: click.Context, dry_run: bool, restart: bool, reboot: bool, as_json: bool) -> None:
    """Install the platform and schedule Stage 2 for the next boot."""
    settings = common.load(ctx)
    if not dry_run:
        common.require_root("provision stage1")

    coordinator = common.build_coordinator(settings, dry_run=dry_run)
    try:
        with operation_lock(settings.lock_path, settings.lock_timeout, "provision stage1"):
            result = coordinator.run_stage1(
                stage1_plan(settings),
                tailscale_credentials(settings),
                stage2_plan(settings),
                restart=restart,
            )
            if reboot:
                receipt = coordinator.request_reboot()
                if not receipt.ok:
                    common.fail(f"Reboot request failed: {receipt.error}")
    except SullivanError as e:
        common.fail(e)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    _render(result, dry_run)
    if not reboot:
        click.secho("✅ Stage 1 complete. Reboot to run Stage 2.", fg="green", bold=True)


@provision.command("stage2")
@click.option(
    "--token",
    "token_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Resume token (default: <setup_dir>/resume.json).",
)
@click.option("--dry-run", is_flag=True, help="Show every step without touching the host.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def stage2(ctx: click.Context, token_path: Path | None, dry_run: bool, as_json: bool) -> None:
    """Join the tailnet, finish setup and remove the resume hand-off."""
    settings = common.load(ctx)
    if not dry_run:
        common.require_root("provision stage2")

    coordinator = common.build_coordinator(settings, dry_run=dry_run)
    token_path = token_path or settings.token_path
    try:
        with operation_lock(settings.lock_path, settings.lock_timeout, "provision stage2"):
            result = coordinator.run_stage2(token_path, followup=stage2_plan(settings))
    except CredentialExchangeError as e:
        click.secho(f"❌ Credential exchange failed: {e}", fg="red")
        click.echo(f"   Resume token kept at {token_path}; fix the OAuth client and re-run.")
        sys.exit(1)
    except SullivanError as e:
        common.fail(e)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        _render(result, dry_run)
    if not result.ok:
        failed = ", ".join(o.step_id for o in result.outcomes if o.status == "failed")
        common.fail(f"Stage 2 finished but cleanup failed ({failed}); Stage 2 would run again at next boot")
    if not as_json:
        click.secho("✅ Stage 2 complete. The host is provisioned.", fg="green", bold=True)


@provision.command("enroll")
@click.option(
    "--interactive",
    is_flag=True,
    help="Log in through a browser URL instead of the OAuth client in .env.",
)
@click.option("--dry-run", is_flag=True, help="Show every step without touching the host.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def enroll(ctx: click.Context, interactive: bool, dry_run: bool, as_json: bool) -> None:
    """Join the tailnet now, without the Stage 1 / Stage 2 hand-off.

    Examples:

        sudo sullivan-ctl provision enroll --interactive

        sudo sullivan-ctl provision enroll
    """
    settings = common.load(ctx)
    if not dry_run:
        common.require_root("provision enroll")

    coordinator = common.build_coordinator(settings, dry_run=dry_run)
    credentials = None if interactive else tailscale_credentials(settings)
    try:
        with operation_lock(settings.lock_path, settings.lock_timeout, "provision enroll"):
            result = coordinator.enroll(credentials)
    except SullivanError as e:
        common.fail(e)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    _render(result, dry_run)
    click.secho(f"✅ Joined the tailnet as {settings.tailscale.hostname}.", fg="green", bold=True)


@provision.command("status")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show pending provisioning state (token, progress, boot unit)."""
    settings = common.load(ctx)
    state = common.build_coordinator(settings).pending()

    if as_json:
        click.echo(json.dumps(state.to_dict(), indent=2))
        return

    click.secho("\n🛠  Provisioning", fg="cyan", bold=True)
    if state.progress_completed:
        click.echo(f"   Stage 1 in progress: {len(state.progress_completed)} step(s) done")
        click.echo(f"      {', '.join(state.progress_completed)}")

    if state.token_error:
        click.secho(f"   ❌ Resume token unreadable: {state.token_error}", fg="red")
    elif state.token_present:
        click.secho(f"   📄 Resume token: {state.token_path}", fg="yellow")
        click.echo(f"      Created: {state.token_created_at}")
        click.echo(f"      Remaining: {', '.join(state.remaining_steps) or '(none)'}")
    else:
        click.echo("   📄 No resume token")

    if state.unit_installed:
        enabled = "enabled" if state.unit_enabled else "not enabled"
        click.secho(f"   ⚙️  Stage 2 unit installed ({enabled}): {state.unit_path}", fg="yellow")
    else:
        click.echo("   ⚙️  No Stage 2 unit")

    click.echo()
    if state.stage2_pending:
        click.secho("   Stage 2 is pending.", fg="yellow", bold=True)
    elif not state.progress_completed:
        click.secho("   ✅ Nothing pending.", fg="green")
    click.echo()
