"""
Claude Code launcher.

Runs one launch request through a fixed pipeline:

    validate -> resolve executable -> build environment
        -> dry run: report and return
        -> spawn -> forward signals -> wait

Two strategies share the pipeline and differ only in what a non-zero child
exit means:

- DirectLauncher raises ChildExitError.
- PassthroughLauncher exits the whole program with the child's exit code,
  so the wrapper is invisible to whoever invoked it.

Example:
    >>> launcher = create_launcher(passthrough=False)
    >>> params = LaunchParameters(environment=profile, arguments=["--version"])
    >>> result = launcher.launch(params)
    >>> result.exit_code
    0
"""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Callable
from datetime import timedelta
from typing import Any, Protocol, runtime_checkable

from rich.console import Console
from rich.markup import escape

from cce.core.launch.envvars import EnvironmentVariableBuilder
from cce.core.launch.errors import (
    ChildExitError,
    DelegationError,
    LaunchTimeoutError,
    SpawnError,
)
from cce.core.launch.metrics import LauncherMetrics, MetricsRecorder
from cce.core.launch.models import (
    DelegationPlan,
    Environment,
    LaunchParameters,
    LaunchResult,
)
from cce.core.launch.resolver import ExecutableResolver
from cce.core.launch.signals import SignalForwarder

logger = logging.getLogger(__name__)

DEFAULT_KILL_GRACE_SECONDS = 5.0


def exit_code_from_returncode(returncode: int) -> int:
    """Map a Popen returncode to a shell exit code (signal N -> 128 + N)."""
    if returncode < 0:
        return 128 - returncode
    return returncode


@runtime_checkable
class LauncherBase(Protocol):
    """Contract shared by every launcher strategy."""

    def launch(self, params: LaunchParameters) -> LaunchResult: ...

    def launch_with_delegation(self, plan: DelegationPlan) -> LaunchResult: ...

    def launch_legacy(self, env: Environment | None, args: list[str]) -> LaunchResult: ...

    def validate_claude_code(self) -> None: ...

    def get_claude_code_path(self) -> str: ...

    def set_claude_code_path(self, path: str) -> None: ...

    def set_passthrough_mode(self, enabled: bool) -> None: ...

    def get_metrics(self) -> LauncherMetrics: ...


def plan_to_parameters(plan: DelegationPlan) -> LaunchParameters:
    """
    Convert a delegation plan into launch parameters with defaults applied.

    Raises:
        DelegationError: If the object does not expose the plan accessors
    """
    required = ("get_environment", "get_claude_args", "get_env_vars")
    missing = [name for name in required if not callable(getattr(plan, name, None))]
    if missing:
        raise DelegationError(
            "Invalid delegation plan provided",
            suggestions=[
                "Ensure the delegation plan is properly constructed",
                f"Missing accessors: {', '.join(missing)}",
            ],
        )

    working_dir = None
    get_working_dir = getattr(plan, "get_working_dir", None)
    if callable(get_working_dir):
        working_dir = get_working_dir() or None

    params = LaunchParameters(
        environment=plan.get_environment(),
        arguments=plan.get_claude_args() or [],
        env_vars=plan.get_env_vars() or {},
        working_dir=working_dir,
    )
    return params.with_defaults()


class LaunchPipeline:
    """
    The launch pipeline shared by all strategies.

    Owns the executable resolver and the metrics recorder, so strategies
    that share a pipeline also share the cached executable path and the
    metrics.
    """

    def __init__(
        self,
        resolver: ExecutableResolver | None = None,
        metrics: MetricsRecorder | None = None,
        *,
        console: Console | None = None,
        kill_grace_seconds: float = DEFAULT_KILL_GRACE_SECONDS,
        builder_factory: Callable[[], EnvironmentVariableBuilder] = EnvironmentVariableBuilder,
    ) -> None:
        self.resolver = resolver or ExecutableResolver()
        self.metrics = metrics or MetricsRecorder()
        self._console = console or Console()
        self._kill_grace_seconds = kill_grace_seconds
        self._builder_factory = builder_factory

    def build_environment(self, params: LaunchParameters) -> EnvironmentVariableBuilder:
        """Return a fresh builder seeded with os.environ, the profile and params.env_vars."""
        return (
            self._builder_factory()
            .set_current_process_environment()
            .apply_profile(params.environment)
            .set_variables(params.env_vars)
        )

    def run(self, params: LaunchParameters, *, passthrough: bool) -> LaunchResult:
        """
        Execute one launch request.

        Args:
            params: The launch request
            passthrough: Exit the program with the child's code on failure

        Returns:
            LaunchResult for a successful (or simulated) launch

        Raises:
            LaunchConfigError: Invalid parameters
            ExecutableNotFoundError: No executable candidate in PATH
            SpawnError: The child could not be started
            ChildExitError: Non-zero child exit (direct strategy)
            LaunchTimeoutError: The child outlived an enforced timeout
            SystemExit: Non-zero child exit (pass-through strategy)
        """
        profile = params.environment.name if params.environment is not None else None
        ticket = self.metrics.start(profile) if params.metrics_enabled else None
        started = time.monotonic()
        success = False

        try:
            params.validate()
            executable = self.resolver.resolve()
            builder = self.build_environment(params)

            if params.dry_run:
                self._report_dry_run(executable, params, builder)
                success = True
                return LaunchResult(
                    executable=executable,
                    arguments=tuple(params.arguments),
                    dry_run=True,
                    duration=timedelta(seconds=time.monotonic() - started),
                )

            if params.verbose:
                self._console.print(
                    f"[dim]Launching {escape(executable)} with profile '{escape(str(profile))}'[/dim]"
                )

            exit_code, forwarded = self._spawn_and_wait(executable, params, builder.build_map())

            if exit_code == 0:
                success = True
                return LaunchResult(
                    executable=executable,
                    arguments=tuple(params.arguments),
                    exit_code=0,
                    duration=timedelta(seconds=time.monotonic() - started),
                    forwarded_signals=tuple(forwarded),
                )

            if passthrough:
                logger.debug("Child exited with %d; exiting with the same code", exit_code)
                raise SystemExit(exit_code)

            raise ChildExitError(exit_code, params.arguments)
        finally:
            if ticket is not None:
                self.metrics.finish(ticket, success=success)

    def _report_dry_run(
        self,
        executable: str,
        params: LaunchParameters,
        builder: EnvironmentVariableBuilder,
    ) -> None:
        logger.debug("Dry run: %s %s", executable, list(params.arguments))
        if not params.verbose:
            return

        self._console.print(
            f"DRY RUN: Would execute: {executable} {list(params.arguments)}",
            markup=False,
        )
        if params.working_dir:
            self._console.print(f"DRY RUN: Working directory: {params.working_dir}", markup=False)
        masked = builder.set_masking(True).get_masked()
        self._console.print("DRY RUN: Environment variables:", markup=False)
        for key in sorted(masked):
            self._console.print(f"  {key}={masked[key]}", markup=False)

    def _spawn_and_wait(
        self,
        executable: str,
        params: LaunchParameters,
        env: dict[str, str],
    ) -> tuple[int, list[int]]:
        argv = [executable, *params.arguments]
        try:
            # stdin/stdout/stderr are inherited so interactive sessions work unmodified.
            process = subprocess.Popen(argv, env=env, cwd=params.working_dir or None)
        except OSError as e:
            raise SpawnError(executable, params.arguments, cause=e) from e

        logger.debug("Started %s (pid %d)", executable, process.pid)

        with SignalForwarder(process) as forwarder:
            try:
                returncode = self._wait(process, params)
            except BaseException:
                if process.poll() is None:
                    self._stop_process(process)
                raise

        return exit_code_from_returncode(returncode), forwarder.forwarded

    def _wait(self, process: subprocess.Popen[Any], params: LaunchParameters) -> int:
        if not params.enforce_timeout:
            return process.wait()

        timeout = params.with_defaults().timeout
        try:
            return process.wait(timeout=timeout)
        except subprocess.TimeoutExpired as e:
            logger.warning("Child pid %d exceeded %gs timeout; stopping it", process.pid, timeout)
            self._stop_process(process)
            raise LaunchTimeoutError(timeout, params.arguments) from e

    def _stop_process(self, process: subprocess.Popen[Any]) -> None:
        process.terminate()
        try:
            process.wait(timeout=self._kill_grace_seconds)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()


class _LauncherCommon:
    """Contract methods that only depend on the shared pipeline."""

    def __init__(self, pipeline: LaunchPipeline | None, passthrough_mode: bool) -> None:
        self._pipeline = pipeline or LaunchPipeline()
        self._passthrough_mode = passthrough_mode

    @property
    def pipeline(self) -> LaunchPipeline:
        return self._pipeline

    @property
    def passthrough_mode(self) -> bool:
        return self._passthrough_mode

    def set_passthrough_mode(self, enabled: bool) -> None:
        self._passthrough_mode = enabled

    def validate_claude_code(self) -> None:
        """Raise ExecutableNotFoundError unless Claude Code can be resolved."""
        self._pipeline.resolver.resolve()

    def get_claude_code_path(self) -> str:
        return self._pipeline.resolver.resolve()

    def set_claude_code_path(self, path: str) -> None:
        self._pipeline.resolver.set_path(path)

    def get_metrics(self) -> LauncherMetrics:
        return self._pipeline.metrics.snapshot()

    def launch(self, params: LaunchParameters) -> LaunchResult:
        raise NotImplementedError

    def launch_legacy(self, env: Environment | None, args: list[str]) -> LaunchResult:
        """Two-argument call shape kept for older callers."""
        return self.launch(LaunchParameters(environment=env, arguments=args).with_defaults())


class DirectLauncher(_LauncherCommon):
    """
    Launch strategy that reports a non-zero child exit as ChildExitError.

    A request with ``passthrough_mode`` set still gets pass-through exit
    semantics. When the launcher's own pass-through mode is enabled,
    delegated launches are routed to a PassthroughLauncher on the same
    pipeline.
    """

    strategy = "direct"

    def __init__(self, pipeline: LaunchPipeline | None = None, *, passthrough_mode: bool = False):
        super().__init__(pipeline, passthrough_mode)
        self._passthrough = PassthroughLauncher(self._pipeline)

    def launch(self, params: LaunchParameters) -> LaunchResult:
        return self._pipeline.run(params, passthrough=params.passthrough_mode)

    def launch_with_delegation(self, plan: DelegationPlan) -> LaunchResult:
        if self._passthrough_mode:
            return self._passthrough.launch_with_delegation(plan)
        return self.launch(plan_to_parameters(plan))


class PassthroughLauncher(_LauncherCommon):
    """
    Launch strategy that makes the wrapper transparent.

    A non-zero child exit terminates the program with the same exit code.
    Disabling pass-through mode falls back to direct semantics.

    The exit is a ``SystemExit`` raised from ``launch``. It only ends the
    program on the main thread. Called from a worker thread, the thread's
    caller must catch it and propagate ``code`` itself.
    """

    strategy = "passthrough"

    def __init__(self, pipeline: LaunchPipeline | None = None, *, passthrough_mode: bool = True):
        super().__init__(pipeline, passthrough_mode)

    def launch(self, params: LaunchParameters) -> LaunchResult:
        passthrough = self._passthrough_mode or params.passthrough_mode
        return self._pipeline.run(params, passthrough=passthrough)

    def launch_with_delegation(self, plan: DelegationPlan) -> LaunchResult:
        return self.launch(plan_to_parameters(plan))


def create_launcher(
    *,
    passthrough: bool,
    pipeline: LaunchPipeline | None = None,
) -> DirectLauncher | PassthroughLauncher:
    """Return the launcher strategy selected by ``passthrough``."""
    if passthrough:
        return PassthroughLauncher(pipeline)
    return DirectLauncher(pipeline)


__all__ = [
    "DEFAULT_KILL_GRACE_SECONDS",
    "LauncherBase",
    "LaunchPipeline",
    "DirectLauncher",
    "PassthroughLauncher",
    "create_launcher",
    "exit_code_from_returncode",
    "plan_to_parameters",
]
