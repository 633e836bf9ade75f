"""
Data models for the launch package.

Defines the credential profile consumed by the launcher, the per-invocation
launch request, the delegation plan contract, and the launch result.
"""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from cce.core.launch.errors import LaunchConfigError

DEFAULT_TIMEOUT_SECONDS = 5 * 60.0
MIN_TIMEOUT_SECONDS = 1.0
MAX_TIMEOUT_SECONDS = 60 * 60.0


class Environment(BaseModel):
    """
    A named credential profile for the Claude Code CLI.

    Owned by the configuration layer and treated as read-only by the
    launcher. Name and base URL are required to be non-empty; the API key
    is kept verbatim and only ever masked for display.

    Attributes:
        name: Profile name (e.g., "work", "staging")
        base_url: Anthropic-compatible API base URL
        api_key: Secret API key (excluded from repr)
        model: Optional model identifier; empty means "tool default"
        headers: Custom header names mapped to values
        description: Optional free-form description
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Profile name")
    base_url: str = Field(..., min_length=1, description="API base URL")
    api_key: str = Field(default="", repr=False, description="API key (secret)")
    model: str = Field(default="", description="Optional model identifier")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Custom headers exported as ANTHROPIC_HEADER_<name>",
    )
    description: str | None = Field(default=None, description="Profile description")

    @property
    def masked_api_key(self) -> str:
        """API key suitable for display."""
        from cce.core.launch.envvars import mask_sensitive_value

        return mask_sensitive_value(self.api_key)


@dataclass(frozen=True)
class LaunchParameters:
    """
    One launch request.

    Constructed by the caller, validated once before anything is resolved or
    spawned, and consumed by a single launch call.

    Attributes:
        environment: Credential profile to inject (required)
        arguments: Arguments passed to the child, in order (non-empty)
        working_dir: Directory to launch from (None: caller's cwd)
        timeout: Seconds, within [1, 3600]; 0 means the 5 minute default.
            Validated only. The child is stopped when enforce_timeout is set
        verbose: Report what is being launched
        dry_run: Resolve and build everything but never spawn
        passthrough_mode: Mirror the child's exit code as our own
        metrics_enabled: Record this launch in the launcher metrics
        env_vars: Explicit variables layered over the profile
        enforce_timeout: Stop the child when the timeout elapses. The CLI
            and LaunchService set it whenever a timeout is given
    """

    environment: Environment | None
    arguments: Sequence[str] = ()
    working_dir: str | None = None
    timeout: float = 0.0
    verbose: bool = False
    dry_run: bool = False
    passthrough_mode: bool = False
    metrics_enabled: bool = True
    env_vars: Mapping[str, str] = field(default_factory=dict)
    enforce_timeout: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(self, "env_vars", dict(self.env_vars))

    def validate(self) -> None:
        """
        Check the request before any executable resolution or spawn.

        Raises:
            LaunchConfigError: With the offending field and suggestions
        """
        if self.environment is None:
            raise LaunchConfigError(
                "environment",
                "Environment is required",
                suggestions=[
                    "Provide a valid environment configuration",
                    "Select a profile with --env or set default_env",
                ],
            )

        if not self.arguments:
            raise LaunchConfigError(
                "arguments",
                "At least one argument is required",
                suggestions=["Provide Claude Code arguments"],
            )

        if self.timeout != 0 and self.timeout < MIN_TIMEOUT_SECONDS:
            raise LaunchConfigError(
                "timeout",
                "Timeout must be at least 1 second",
                suggestions=["Set timeout to at least 1 second"],
            )

        if self.timeout > MAX_TIMEOUT_SECONDS:
            raise LaunchConfigError(
                "timeout",
                "Timeout cannot exceed 1 hour",
                suggestions=["Set timeout to a value of at most 3600 seconds"],
            )

    def with_defaults(self) -> LaunchParameters:
        """Return a copy with the default timeout applied when unset."""
        if self.timeout == 0:
            return dataclasses.replace(self, timeout=DEFAULT_TIMEOUT_SECONDS)
        return dataclasses.replace(self)

    def with_current_working_dir(self) -> LaunchParameters:
        """Return a copy whose working_dir is the current directory when unset."""
        if self.working_dir:
            return dataclasses.replace(self)
        return dataclasses.replace(self, working_dir=os.getcwd())


@runtime_checkable
class DelegationPlan(Protocol):
    """
    Pre-resolved launch bundle produced by argument parsing.

    The launcher only reads from it. ``get_working_dir`` is optional; when a
    plan provides it, the returned directory is used for the child.
    """

    def get_strategy(self) -> str: ...

    def get_environment(self) -> Environment | None: ...

    def get_claude_args(self) -> list[str]: ...

    def get_env_vars(self) -> dict[str, str]: ...


@dataclass
class StaticDelegationPlan:
    """Plain DelegationPlan implementation built from known values."""

    environment: Environment | None
    claude_args: list[str] = field(default_factory=list)
    env_vars: dict[str, str] = field(default_factory=dict)
    working_dir: str = ""
    strategy: str = "delegate_with_environment"

    def get_strategy(self) -> str:
        return self.strategy

    def get_environment(self) -> Environment | None:
        return self.environment

    def get_claude_args(self) -> list[str]:
        return list(self.claude_args)

    def get_env_vars(self) -> dict[str, str]:
        return dict(self.env_vars)

    def get_working_dir(self) -> str:
        return self.working_dir


@dataclass(frozen=True)
class LaunchResult:
    """
    Outcome of a launch that did not raise.

    Attributes:
        executable: Resolved executable path
        arguments: Arguments passed to the child
        exit_code: Child exit code (0 for dry runs)
        dry_run: Whether the launch was simulated
        duration: Wall time from start to completion
        forwarded_signals: Signals relayed to the child while it ran
    """

    executable: str
    arguments: tuple[str, ...]
    exit_code: int = 0
    dry_run: bool = False
    duration: timedelta = timedelta(0)
    forwarded_signals: tuple[int, ...] = ()


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "MIN_TIMEOUT_SECONDS",
    "MAX_TIMEOUT_SECONDS",
    "Environment",
    "LaunchParameters",
    "DelegationPlan",
    "StaticDelegationPlan",
    "LaunchResult",
]
