"""
Standardized error handling and exit codes for the cce CLI.

This module provides consistent error messaging with actionable guidance
and maps launcher failures to shell exit codes.
"""

from collections.abc import Sequence
from enum import IntEnum

from rich.console import Console

from cce.core.launch import (
    ChildExitError,
    ExecutableNotFoundError,
    LaunchConfigError,
    LauncherError,
    LaunchTimeoutError,
    SpawnError,
)

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for cce CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Generic error."""

    USER_ERROR = 2
    """Configuration or input error (actionable by user)."""

    TIMEOUT = 124
    """Child stopped after its timeout, as timeout(1) reports it."""

    CANNOT_EXECUTE = 126
    """Executable found but could not be started."""

    NOT_FOUND = 127
    """Executable not found, as the shell reports it."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
    suggestions: Sequence[str] | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it
        suggestions: Optional list of remediation hints

    Example:
        >>> print_error(
        ...     "Environment 'work' not found",
        ...     reason="No such profile in ~/.config/cce/config.json",
        ...     solution="cce list",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")

    for suggestion in suggestions or ():
        console.print(f"[cyan]→[/cyan] {suggestion}")


def exit_code_for(error: LauncherError) -> int:
    """Map a launcher error to the exit code the CLI returns for it."""
    if isinstance(error, ChildExitError):
        return error.exit_code
    if isinstance(error, LaunchConfigError):
        return ExitCode.USER_ERROR
    if isinstance(error, ExecutableNotFoundError):
        return ExitCode.NOT_FOUND
    if isinstance(error, SpawnError):
        return ExitCode.CANNOT_EXECUTE
    if isinstance(error, LaunchTimeoutError):
        return ExitCode.TIMEOUT
    return ExitCode.GENERAL_ERROR


def print_launcher_error(error: LauncherError) -> None:
    """Print a launcher error with its cause and suggestions."""
    reason = None
    if isinstance(error, LaunchConfigError):
        reason = f"Invalid launch parameter: {error.field}"
    elif error.cause is not None:
        reason = str(error.cause)

    print_error(error.message, reason=reason, suggestions=error.suggestions)


def print_profile_not_found_error(problem: str, available: Sequence[str]) -> None:
    """Print error when the requested profile does not exist."""
    if available:
        print_error(
            problem,
            reason=f"Configured environments: {', '.join(available)}",
            solution="cce launch --env <name>  # or set default_env",
        )
    else:
        print_error(
            problem,
            reason="No environments are configured",
            solution="Add an entry under 'environments' in ~/.config/cce/config.json",
        )


__all__ = [
    "ExitCode",
    "console",
    "exit_code_for",
    "print_error",
    "print_launcher_error",
    "print_profile_not_found_error",
]
