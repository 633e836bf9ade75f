"""
Launch commands: run Claude Code with a profile, or check that it can be found.
"""

import logging

import typer
from pydantic import ValidationError
from rich.markup import escape

from cce.cli.errors import (
    ExitCode,
    console,
    exit_code_for,
    print_error,
    print_launcher_error,
    print_profile_not_found_error,
)
from cce.core.launch import LauncherError
from cce.core.services.launch import LaunchService, ProfileSelectionError

logger = logging.getLogger(__name__)


def load_service() -> LaunchService:
    try:
        return LaunchService.from_config(console=console)
    except ValidationError as e:
        print_error(
            "Invalid configuration",
            reason=str(e),
            solution="Fix ~/.config/cce/config.json or .cce.json",
        )
        raise typer.Exit(ExitCode.USER_ERROR) from e


def _parse_assignments(assignments: list[str]) -> dict[str, str]:
    env_vars: dict[str, str] = {}
    for assignment in assignments:
        key, sep, value = assignment.partition("=")
        if not sep or not key:
            print_error(
                f"Invalid --set value: {assignment!r}",
                solution="--set KEY=VALUE",
            )
            raise typer.Exit(ExitCode.USER_ERROR)
        env_vars[key] = value
    return env_vars


def launch(
    args: list[str] | None = typer.Argument(
        None,
        help="Arguments passed to Claude Code unchanged",
    ),
    env: str | None = typer.Option(
        None,
        "--env",
        "-e",
        help="Environment profile to use (default: default_env)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Resolve and report the launch without starting Claude Code",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show the executable, arguments and masked environment",
    ),
    direct: bool = typer.Option(
        False,
        "--direct",
        help="Report a non-zero Claude Code exit as an error instead of mirroring it",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Stop Claude Code after this many seconds (1-3600)",
    ),
    cwd: str | None = typer.Option(
        None,
        "--cwd",
        help="Directory to launch Claude Code from",
    ),
    assignments: list[str] = typer.Option(
        [],
        "--set",
        help="Extra environment variable for Claude Code (KEY=VALUE, repeatable)",
    ),
) -> None:
    """
    Launch Claude Code with an environment profile.

    Examples:
        cce launch -- --version
        cce launch --env work -- -p "explain this repo"
        cce launch --env staging --dry-run --verbose -- --continue
    """
    env_vars = _parse_assignments(assignments)
    service = load_service()

    try:
        result = service.launch(
            args or [],
            env_name=env,
            env_vars=env_vars,
            working_dir=cwd,
            timeout=timeout,
            verbose=verbose,
            dry_run=dry_run,
            passthrough=False if direct else None,
        )
    except ProfileSelectionError as e:
        print_profile_not_found_error(str(e), e.available)
        raise typer.Exit(ExitCode.USER_ERROR) from e
    except LauncherError as e:
        print_launcher_error(e)
        raise typer.Exit(exit_code_for(e)) from e

    logger.debug("Launch finished with exit code %d", result.exit_code)
    if result.dry_run and not verbose:
        console.print(f"[dim]Dry run: would execute {escape(result.executable)}[/dim]")


def check() -> None:
    """
    Check that the Claude Code executable can be found.
    """
    service = load_service()

    try:
        path = service.resolve_executable()
    except LauncherError as e:
        print_launcher_error(e)
        raise typer.Exit(exit_code_for(e)) from e

    console.print(f"[green]✓[/green] Claude Code found: {escape(path)}")


__all__ = ["check", "launch", "load_service"]
