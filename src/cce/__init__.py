"""
cce - Claude Code environment launcher

Runs the Claude Code CLI with a credential profile injected into its
environment and its exit code passed through unchanged.
"""

__version__ = "0.3.0"

# Re-export core models for convenience
from cce.core.launch.models import Environment, LaunchParameters, LaunchResult

__all__ = ["Environment", "LaunchParameters", "LaunchResult", "__version__"]
