"""
Launch service: clean API for profile selection and Claude Code launching.

Wraps the launch package with configuration: the executable lookup, the
pass-through default and the credential profiles all come from CceConfig.

Usage:
    >>> from cce.core.services.launch import LaunchService
    >>> service = LaunchService.from_config()
    >>> result = service.launch(["--version"], env_name="work")
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from rich.console import Console

from cce.core.config.loader import load_config
from cce.core.config.models import CceConfig, EnvironmentNotFoundError
from cce.core.launch import (
    DirectLauncher,
    Environment,
    ExecutableResolver,
    LaunchParameters,
    LaunchPipeline,
    LaunchResult,
    MetricsRecorder,
    PassthroughLauncher,
    create_launcher,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Typed exceptions
# ============================================================================


class LaunchServiceError(Exception):
    """Base exception for LaunchService errors."""


class ProfileSelectionError(LaunchServiceError):
    """No profile could be selected for the launch."""

    def __init__(self, cause: EnvironmentNotFoundError) -> None:
        self.cause = cause
        self.available = cause.available
        super().__init__(str(cause))


# ============================================================================
# LaunchService
# ============================================================================


class LaunchService:
    """
    Service for launching Claude Code with a configured profile.

    One service owns one pipeline, so the resolved executable path and the
    launch metrics are shared by every launch made through it.

    Example:
        >>> service = LaunchService.from_config()
        >>> service.select_environment("work").base_url
        'https://api.anthropic.com'
    """

    def __init__(
        self,
        config: CceConfig,
        pipeline: LaunchPipeline,
    ) -> None:
        """
        Initialize service with dependencies.

        Args:
            config: cce configuration
            pipeline: Launch pipeline built for this configuration
        """
        self._config = config
        self._pipeline = pipeline

    @classmethod
    def from_config(
        cls,
        config: CceConfig | None = None,
        *,
        console: Console | None = None,
    ) -> LaunchService:
        """
        Create service from configuration.

        Args:
            config: Optional cce configuration (auto-loaded if None)
            console: Console used for verbose and dry-run reports

        Returns:
            Configured LaunchService instance
        """
        if config is None:
            config = load_config()

        launcher_config = config.launcher
        resolver = ExecutableResolver(
            launcher_config.executable,
            launcher_config.alternatives,
            explicit_path=launcher_config.executable_path,
        )
        pipeline = LaunchPipeline(
            resolver,
            MetricsRecorder(),
            console=console,
            kill_grace_seconds=launcher_config.kill_grace_seconds,
        )
        return cls(config, pipeline)

    @property
    def config(self) -> CceConfig:
        """The resolved cce configuration."""
        return self._config

    @property
    def pipeline(self) -> LaunchPipeline:
        return self._pipeline

    def select_environment(self, env_name: str | None = None) -> Environment:
        """
        Resolve the profile for a launch.

        Raises:
            ProfileSelectionError: If the profile does not exist or none is selectable
        """
        try:
            return self._config.get_environment(env_name)
        except EnvironmentNotFoundError as e:
            raise ProfileSelectionError(e) from e

    def list_environments(self) -> list[Environment]:
        return self._config.list_environments()

    def create_launcher(self, *, passthrough: bool | None = None) -> DirectLauncher | PassthroughLauncher:
        """Return a launcher on this service's pipeline (config default if None)."""
        if passthrough is None:
            passthrough = self._config.launcher.passthrough
        return create_launcher(passthrough=passthrough, pipeline=self._pipeline)

    def resolve_executable(self) -> str:
        """
        Return the Claude Code executable path.

        Raises:
            ExecutableNotFoundError: If no candidate can be found
        """
        return self._pipeline.resolver.resolve()

    def launch(
        self,
        arguments: Sequence[str],
        *,
        env_name: str | None = None,
        env_vars: Mapping[str, str] | None = None,
        working_dir: str | None = None,
        timeout: float | None = None,
        verbose: bool = False,
        dry_run: bool = False,
        passthrough: bool | None = None,
    ) -> LaunchResult:
        """
        Launch Claude Code with the selected profile.

        Args:
            arguments: Arguments passed to Claude Code
            env_name: Profile name (default profile if None)
            env_vars: Extra variables layered over the profile
            working_dir: Directory to launch from (cwd if None)
            timeout: Stop the child after this many seconds (no limit if None)
            verbose: Report what is being launched
            dry_run: Resolve and report without spawning
            passthrough: Exit with the child's code (config default if None)

        Returns:
            LaunchResult for the launch

        Raises:
            ProfileSelectionError: If no profile can be selected
            LauncherError: If validation, resolution, spawn or the child fails
            SystemExit: Non-zero child exit under pass-through
        """
        environment = self.select_environment(env_name)
        params = LaunchParameters(
            environment=environment,
            arguments=list(arguments),
            working_dir=working_dir,
            timeout=timeout or 0.0,
            verbose=verbose,
            dry_run=dry_run,
            env_vars=dict(env_vars or {}),
            enforce_timeout=timeout is not None,
        )
        params = params.with_current_working_dir().with_defaults()

        launcher = self.create_launcher(passthrough=passthrough)
        logger.debug(
            "Launching with profile %s via %s strategy", environment.name, launcher.strategy
        )
        return launcher.launch(params)
