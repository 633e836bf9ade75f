"""
Executable resolution for the Claude Code CLI.

Looks up a primary executable name in PATH, then an ordered list of
alternatives. The first successful resolution is cached for the lifetime of
the resolver.
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
from collections.abc import Sequence

from cce.core.launch.errors import ExecutableNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_EXECUTABLE = "claude-code"
DEFAULT_ALTERNATIVES = ("claude", "claude_code")


def _resolve_candidate(candidate: str) -> str | None:
    """Resolve a name or path to a runnable executable path."""
    has_sep = os.path.sep in candidate or (
        os.path.altsep is not None and os.path.altsep in candidate
    )
    if has_sep:
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate
        return None
    return shutil.which(candidate)


class ExecutableResolver:
    """
    Resolve-once lookup of the Claude Code executable.

    Concurrent callers share one resolution: the lock is held across the
    search so only the first caller walks PATH, and later callers get the
    cached path.

    Example:
        >>> resolver = ExecutableResolver()
        >>> resolver.resolve()
        '/usr/local/bin/claude'
    """

    def __init__(
        self,
        executable: str = DEFAULT_EXECUTABLE,
        alternatives: Sequence[str] = DEFAULT_ALTERNATIVES,
        *,
        explicit_path: str | None = None,
    ) -> None:
        self._executable = executable
        self._alternatives = tuple(alternatives)
        self._explicit_path = explicit_path
        self._lock = threading.Lock()
        self._cached: str | None = None

    @property
    def candidates(self) -> list[str]:
        """Names (and explicit path, if any) tried in order."""
        names = [self._executable, *self._alternatives]
        if self._explicit_path:
            names.insert(0, self._explicit_path)
        return names

    @property
    def cached_path(self) -> str | None:
        return self._cached

    def set_path(self, path: str) -> None:
        """Pin the executable path, bypassing PATH lookup."""
        with self._lock:
            self._cached = path

    def resolve(self) -> str:
        """
        Return the executable path, resolving it on first use.

        Raises:
            ExecutableNotFoundError: If no candidate can be found
        """
        cached = self._cached
        if cached is not None:
            return cached

        with self._lock:
            if self._cached is not None:
                return self._cached

            for candidate in self.candidates:
                path = _resolve_candidate(candidate)
                if path:
                    logger.debug("Resolved Claude Code executable %s -> %s", candidate, path)
                    self._cached = path
                    return path

        raise ExecutableNotFoundError(self.candidates)


__all__ = [
    "DEFAULT_EXECUTABLE",
    "DEFAULT_ALTERNATIVES",
    "ExecutableResolver",
]
