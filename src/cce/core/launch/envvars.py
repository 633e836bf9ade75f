"""
Environment variable construction for launched processes.

The builder composes the child's environment from three layers, lowest
precedence first:

    base environment < profile variables < explicit variables

Profile variables and explicit variables share one override layer, so the
order in which they are applied decides collisions between them. Every
override key is reduced to ``[A-Za-z0-9_]`` and every override value has
newline and carriage-return characters replaced by spaces before it reaches
the child.

Example:
    >>> builder = EnvironmentVariableBuilder()
    >>> env = (
    ...     builder.set_current_process_environment()
    ...     .apply_profile(profile)
    ...     .set_variable("CCE_ACTIVE", "1")
    ...     .build_map()
    ... )
"""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Mapping

from cce.core.launch.models import Environment

API_KEY_VAR = "ANTHROPIC_API_KEY"
BASE_URL_VAR = "ANTHROPIC_BASE_URL"
MODEL_VAR = "ANTHROPIC_MODEL"
HEADER_VAR_PREFIX = "ANTHROPIC_HEADER_"

SENSITIVE_KEYS = frozenset({API_KEY_VAR})

_INVALID_KEY_CHARS = re.compile(r"[^A-Za-z0-9_]")


def mask_sensitive_value(value: str) -> str:
    """
    Mask a secret for display.

    Values longer than 8 characters keep their first and last four
    characters; anything shorter collapses to ``***``.

    Examples:
        >>> mask_sensitive_value("sk-ant-1234567890")
        'sk-a***7890'
        >>> mask_sensitive_value("short")
        '***'
    """
    if len(value) <= 8:
        return "***"
    return value[:4] + "***" + value[-4:]


def sanitize_env_key(key: str) -> str:
    """Strip every character outside ``[A-Za-z0-9_]`` from a variable name."""
    return _INVALID_KEY_CHARS.sub("", key)


def sanitize_env_value(value: str) -> str:
    """Replace newlines and carriage returns with single spaces."""
    return value.replace("\n", " ").replace("\r", " ")


def _parse_env_entry(entry: str) -> tuple[str, str] | None:
    key, sep, value = entry.partition("=")
    if not sep or not key:
        return None
    return key, value


class EnvironmentVariableBuilder:
    """
    Layered builder for a child process environment.

    Mutators return the builder so calls can be chained. The builder keeps
    no launch-specific state and can be built again after further mutation.
    It is not thread-safe; create one per launch.
    """

    def __init__(self) -> None:
        self._base: list[str] = []
        self._variables: dict[str, str] = {}
        self._mask_sensitive = True

    def set_base(self, env: Iterable[str] | Mapping[str, str]) -> EnvironmentVariableBuilder:
        """Replace the base layer with ``KEY=VALUE`` entries or a mapping."""
        if isinstance(env, Mapping):
            self._base = [f"{k}={v}" for k, v in env.items()]
        else:
            self._base = list(env)
        return self

    def set_current_process_environment(self) -> EnvironmentVariableBuilder:
        """Use a snapshot of the current process environment as the base layer."""
        return self.set_base(dict(os.environ))

    def apply_profile(self, env: Environment | None) -> EnvironmentVariableBuilder:
        """
        Add the variables derived from a credential profile.

        A missing profile adds nothing. Base URL and API key are always set,
        even when empty; the model only when non-empty.
        """
        if env is None:
            return self

        self._variables[BASE_URL_VAR] = env.base_url
        self._variables[API_KEY_VAR] = env.api_key

        if env.model:
            self._variables[MODEL_VAR] = env.model

        return self.apply_headers(env.headers)

    def apply_headers(self, headers: Mapping[str, str]) -> EnvironmentVariableBuilder:
        """Export each header as ``ANTHROPIC_HEADER_<name>`` (name verbatim)."""
        for name, value in headers.items():
            self._variables[f"{HEADER_VAR_PREFIX}{name}"] = value
        return self

    def set_variable(self, key: str, value: str) -> EnvironmentVariableBuilder:
        self._variables[key] = value
        return self

    def set_variables(self, variables: Mapping[str, str]) -> EnvironmentVariableBuilder:
        for key, value in variables.items():
            self._variables[key] = value
        return self

    def set_masking(self, enabled: bool) -> EnvironmentVariableBuilder:
        """Toggle masking for get_masked(); never affects build output."""
        self._mask_sensitive = enabled
        return self

    def _sanitized_overrides(self) -> list[tuple[str, str]]:
        return [
            (sanitize_env_key(key), sanitize_env_value(value))
            for key, value in self._variables.items()
        ]

    def build(self) -> list[str]:
        """Return ``KEY=VALUE`` entries: base layer first, then overrides."""
        result = list(self._base)
        for key, value in self._sanitized_overrides():
            result.append(f"{key}={value}")
        return result

    def build_map(self) -> dict[str, str]:
        """
        Return the final environment as a mapping.

        The base layer is parsed into keys first (malformed entries are
        dropped), so an override always replaces a base entry with the same
        key.
        """
        result: dict[str, str] = {}
        for entry in self._base:
            parsed = _parse_env_entry(entry)
            if parsed is not None:
                result[parsed[0]] = parsed[1]

        for key, value in self._sanitized_overrides():
            result[key] = value

        return result

    def get_masked(self) -> dict[str, str]:
        """Return the override layer with sensitive values masked for display."""
        if not self._mask_sensitive:
            return dict(self._variables)

        return {
            key: mask_sensitive_value(value) if key in SENSITIVE_KEYS else value
            for key, value in self._variables.items()
        }

    def get_variables(self) -> dict[str, str]:
        """Return a copy of the override layer (unsanitized, unmasked)."""
        return dict(self._variables)


__all__ = [
    "API_KEY_VAR",
    "BASE_URL_VAR",
    "MODEL_VAR",
    "HEADER_VAR_PREFIX",
    "EnvironmentVariableBuilder",
    "mask_sensitive_value",
    "sanitize_env_key",
    "sanitize_env_value",
]
