"""
CLI command for repairing container egress.

Thin wrapper over ``sullivan_ctl.core.services.network``.
"""

from __future__ import annotations

import json

import click

from sullivan_ctl.core.errors import SullivanError
from sullivan_ctl.core.reliability.lock import operation_lock
from sullivan_ctl.core.services.network import fix_network
from sullivan_ctl.ui.cli import common


@click.command("fix-network")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def fix_network_cmd(ctx: click.Context, as_json: bool) -> None:
    """Restore NAT/forwarding rules for the stack network and test egress."""
    settings = common.load(ctx)
    compose = common.build_compose(settings)
    runner = common.build_runner(settings)

    try:
        with operation_lock(settings.lock_path, settings.lock_timeout, "fix-network"):
            report = fix_network(settings, compose, runner)
    except SullivanError as e:
        common.fail(e)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return

    click.secho(f"🔧 {report.network}", fg="cyan", bold=True)
    click.echo(f"   Bridge: {report.bridge}")
    click.echo(f"   Subnet: {report.subnet}")
    for rule in report.present_rules:
        click.echo(f"   ✓ present: {rule}")
    for rule in report.added_rules:
        click.secho(f"   + added:   {rule}", fg="yellow")
    click.secho("✅ Container internet connectivity OK", fg="green")
