"""
Typed exceptions for the launch package.

Every launcher failure carries a human-readable message, an optional
underlying cause, and a list of remediation suggestions. None of them
include the API key of the profile being launched.
"""

from __future__ import annotations

from collections.abc import Sequence


class LauncherError(Exception):
    """Base exception for launcher errors."""

    def __init__(
        self,
        message: str,
        *,
        cause: BaseException | None = None,
        suggestions: Sequence[str] | None = None,
    ) -> None:
        self.message = message
        self.cause = cause
        self.suggestions = list(suggestions or [])
        super().__init__(message)

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class LaunchConfigError(LauncherError):
    """Launch parameters failed validation. Never retried."""

    def __init__(
        self,
        field: str,
        message: str,
        *,
        suggestions: Sequence[str] | None = None,
    ) -> None:
        self.field = field
        super().__init__(message, suggestions=suggestions)


class ExecutableNotFoundError(LauncherError):
    """None of the candidate executable names could be found in PATH."""

    def __init__(
        self,
        candidates: Sequence[str],
        *,
        cause: BaseException | None = None,
    ) -> None:
        self.candidates = list(candidates)
        names = ", ".join(f"'{c}'" for c in self.candidates)
        super().__init__(
            f"Claude Code executable not found in PATH (tried {names})",
            cause=cause,
            suggestions=[
                "Install Claude Code and ensure it's in your PATH",
                "Add the directory containing the executable to PATH",
                "Verify the executable name is correct (claude, claude-code, ...)",
                "Set CCE_CLAUDE_PATH to the full path of the executable",
            ],
        )


class SpawnError(LauncherError):
    """The child process could not be started."""

    def __init__(
        self,
        executable: str,
        arguments: Sequence[str],
        *,
        cause: BaseException | None = None,
    ) -> None:
        self.executable = executable
        self.arguments = list(arguments)
        super().__init__(
            f"Failed to start Claude Code process '{executable}'",
            cause=cause,
            suggestions=[
                "Verify Claude Code is properly installed",
                "Check that arguments are valid",
                "Ensure you have permission to execute Claude Code",
            ],
        )


class ChildExitError(LauncherError):
    """The child ran but exited with a non-zero status (direct strategy)."""

    def __init__(self, exit_code: int, arguments: Sequence[str]) -> None:
        self.exit_code = exit_code
        self.arguments = list(arguments)
        super().__init__(
            f"Claude Code process exited with status {exit_code}",
            suggestions=[
                "Check Claude Code documentation for argument usage",
                "Verify API credentials are correct",
                "Try running Claude Code directly to debug",
            ],
        )


class LaunchTimeoutError(LauncherError):
    """The child did not finish before the launch deadline and was stopped."""

    def __init__(self, timeout: float, arguments: Sequence[str]) -> None:
        self.timeout = timeout
        self.arguments = list(arguments)
        super().__init__(
            f"Claude Code process did not finish within {timeout:g} seconds",
            suggestions=[
                "Increase the timeout (maximum is 3600 seconds)",
                "Launch without --timeout for interactive sessions",
            ],
        )


class DelegationError(LauncherError):
    """A delegation plan could not be converted into launch parameters."""


__all__ = [
    "LauncherError",
    "LaunchConfigError",
    "ExecutableNotFoundError",
    "SpawnError",
    "ChildExitError",
    "LaunchTimeoutError",
    "DelegationError",
]
