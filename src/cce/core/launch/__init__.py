"""
Claude Code process launch and delegation.

Builds the child environment from a credential profile, resolves the Claude
Code executable, and supervises the child: signal forwarding, exit code
propagation, dry runs and launch metrics.
"""

from cce.core.launch.envvars import (
    API_KEY_VAR,
    BASE_URL_VAR,
    HEADER_VAR_PREFIX,
    MODEL_VAR,
    EnvironmentVariableBuilder,
    mask_sensitive_value,
    sanitize_env_key,
    sanitize_env_value,
)
from cce.core.launch.errors import (
    ChildExitError,
    DelegationError,
    ExecutableNotFoundError,
    LaunchConfigError,
    LauncherError,
    LaunchTimeoutError,
    SpawnError,
)
from cce.core.launch.launcher import (
    DirectLauncher,
    LauncherBase,
    LaunchPipeline,
    PassthroughLauncher,
    create_launcher,
)
from cce.core.launch.metrics import EnvironmentMetrics, LauncherMetrics, MetricsRecorder
from cce.core.launch.models import (
    DEFAULT_TIMEOUT_SECONDS,
    DelegationPlan,
    Environment,
    LaunchParameters,
    LaunchResult,
    StaticDelegationPlan,
)
from cce.core.launch.resolver import ExecutableResolver
from cce.core.launch.signals import SignalForwarder

__all__ = [
    # Models
    "DEFAULT_TIMEOUT_SECONDS",
    "DelegationPlan",
    "Environment",
    "LaunchParameters",
    "LaunchResult",
    "StaticDelegationPlan",
    # Environment variables
    "API_KEY_VAR",
    "BASE_URL_VAR",
    "HEADER_VAR_PREFIX",
    "MODEL_VAR",
    "EnvironmentVariableBuilder",
    "mask_sensitive_value",
    "sanitize_env_key",
    "sanitize_env_value",
    # Errors
    "ChildExitError",
    "DelegationError",
    "ExecutableNotFoundError",
    "LaunchConfigError",
    "LauncherError",
    "LaunchTimeoutError",
    "SpawnError",
    # Supervision
    "DirectLauncher",
    "ExecutableResolver",
    "LauncherBase",
    "LaunchPipeline",
    "PassthroughLauncher",
    "SignalForwarder",
    "create_launcher",
    # Metrics
    "EnvironmentMetrics",
    "LauncherMetrics",
    "MetricsRecorder",
]
