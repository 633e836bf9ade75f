"""
Configuration data models for cce.

These models define the structure of .cce.json and ~/.config/cce/config.json
files, with validation and type safety via Pydantic.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cce.core.launch.models import Environment
from cce.core.launch.resolver import DEFAULT_ALTERNATIVES, DEFAULT_EXECUTABLE


class EnvironmentNotFoundError(Exception):
    """Raised when a requested profile is not configured."""

    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = available
        if available:
            message = f"Environment '{name}' not found (available: {', '.join(available)})"
        else:
            message = f"Environment '{name}' not found (no environments configured)"
        super().__init__(message)


class LauncherConfig(BaseModel):
    """
    How the Claude Code executable is found and supervised.
    """
    executable: str = Field(
        default=DEFAULT_EXECUTABLE,
        min_length=1,
        description="Primary executable name looked up in PATH"
    )
    alternatives: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALTERNATIVES),
        description="Fallback executable names, tried in order"
    )
    executable_path: Optional[str] = Field(
        default=None,
        description="Explicit executable path, checked before PATH lookup"
    )
    passthrough: bool = Field(
        default=True,
        description="Exit with the child's exit code instead of reporting an error"
    )
    kill_grace_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between SIGTERM and SIGKILL when a timeout expires"
    )


class CceConfig(BaseModel):
    """
    Top-level cce configuration.

    Loaded from defaults, user config, project config, and env vars.
    Environment entries may omit ``name``; the mapping key is used.

    Example:
        >>> config = CceConfig(
        ...     environments={"work": {"base_url": "https://api.anthropic.com"}},
        ...     default_env="work",
        ... )
        >>> config.get_environment().name
        'work'
    """
    launcher: LauncherConfig = Field(
        default_factory=LauncherConfig,
        description="Executable lookup and supervision"
    )
    environments: dict[str, Environment] = Field(
        default_factory=dict,
        description="Credential profiles keyed by name"
    )
    default_env: Optional[str] = Field(
        default=None,
        description="Profile used when none is selected"
    )

    model_config = ConfigDict(
        extra="allow",  # Keep unknown keys (version, timestamps) from older files
    )

    @model_validator(mode="before")
    @classmethod
    def fill_environment_names(cls, data: Any) -> Any:
        """Use the mapping key as the profile name when it is missing."""
        if not isinstance(data, dict):
            return data
        environments = data.get("environments")
        if not isinstance(environments, dict):
            return data

        filled: dict[str, Any] = {}
        for key, value in environments.items():
            if isinstance(value, dict) and not value.get("name"):
                value = {**value, "name": key}
            filled[key] = value
        return {**data, "environments": filled}

    @field_validator("default_env")
    @classmethod
    def empty_default_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    def list_environments(self) -> list[Environment]:
        """Profiles sorted by name."""
        return [self.environments[name] for name in sorted(self.environments)]

    def get_environment(self, name: Optional[str] = None) -> Environment:
        """
        Look up a profile.

        Without a name, returns ``default_env``, or the only profile when
        exactly one is configured.

        Raises:
            EnvironmentNotFoundError: If no matching profile exists
        """
        available = sorted(self.environments)
        if name is None:
            name = self.default_env
        if name is None:
            if len(available) == 1:
                return self.environments[available[0]]
            raise EnvironmentNotFoundError("<default>", available)

        env = self.environments.get(name)
        if env is None:
            raise EnvironmentNotFoundError(name, available)
        return env
