"""
cce CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys

import typer

from cce import __version__
from cce.cli import envs, launch
from cce.cli.errors import console
from cce.core.config.env import load_layered_env

# Create the main Typer app
app = typer.Typer(
    name="cce",
    help="Launch Claude Code with a chosen environment profile",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"cce {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the cce version and exit",
    ),
) -> None:
    """
    cce - Claude Code environment launcher.

    Starts Claude Code with the base URL, API key, model and headers of a
    configured profile injected into its environment. Terminal I/O and
    signals pass straight through, and cce exits with Claude Code's exit code.

    Quick Start:
        cce list                     # Show configured profiles
        cce check                    # Find the Claude Code executable
        cce launch --env work -- -p "hello"   # Run Claude Code with 'work'
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    # Precedence: OS env > project .env > user .env
    load_layered_env()

    ctx.obj = {"debug": debug}


app.command(
    name="launch",
    context_settings={"allow_extra_args": True, "ignore_unknown_options": True},
)(launch.launch)
app.command(name="check")(launch.check)
app.command(name="list")(envs.list_environments)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
