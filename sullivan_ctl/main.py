"""
sullivan-ctl — CLI entrypoint.

Usage:
    python -m sullivan_ctl.main --help
    python -m sullivan_ctl.main provision stage1 --dry-run
    python -m sullivan_ctl.main start sonarr
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from sullivan_ctl import __version__
from sullivan_ctl.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="sullivan-ctl")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to sullivan.yml (default: auto-detect).",
)
@click.option(
    "--log",
    "log_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also write logs to FILE.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    log_file: str | None,
) -> None:
    """sullivan-ctl — provision and run the Sullivan media server."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    level = resolve_level(
        debug=debug,
        verbose=verbose,
        quiet=quiet,
        env_level=os.environ.get("SULLIVAN_LOG_LEVEL"),
    )
    setup_logging(
        level=level,
        log_file=log_file or os.environ.get("SULLIVAN_LOG_FILE"),
        log_file_level=os.environ.get("SULLIVAN_LOG_FILE_LEVEL"),
        quiet_third_party=not debug,
    )


# ── Register sub-commands from sullivan_ctl/ui/cli/ ──────────────

from sullivan_ctl.ui.cli.env import generate_secrets_cmd, show_env  # noqa: E402
from sullivan_ctl.ui.cli.network import fix_network_cmd  # noqa: E402
from sullivan_ctl.ui.cli.provision import provision  # noqa: E402
from sullivan_ctl.ui.cli.stack import health, logs, services_cmd, start, status, stop  # noqa: E402

for _command in (
    provision,
    start, stop, status, health, logs, services_cmd,
    show_env, generate_secrets_cmd, fix_network_cmd,
):
    cli.add_command(_command)


if __name__ == "__main__":
    cli()
