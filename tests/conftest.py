"""
Pytest configuration and shared fixtures.

Provides credential profiles, an isolated configuration environment, and a
launch pipeline whose executable is the running Python interpreter, so tests
can spawn real children with ``-c`` scripts.
"""

import io
import sys

import pytest
from rich.console import Console

from cce.core.config import clear_cache
from cce.core.launch import (
    Environment,
    ExecutableResolver,
    LaunchParameters,
    LaunchPipeline,
    MetricsRecorder,
)

CCE_ENV_VARS = ("CCE_CLAUDE_PATH", "CCE_PASSTHROUGH", "CCE_DEFAULT_ENV")

# ==============================================================================
# Isolation
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user config, CCE_* overrides and the config cache out of every test."""
    xdg_home = tmp_path / "xdg"
    xdg_home.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg_home))
    for name in CCE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    clear_cache()
    yield xdg_home
    clear_cache()


@pytest.fixture
def user_config_dir(isolated_config):
    """Provide the XDG_CONFIG_HOME/cce directory."""
    config_dir = isolated_config / "cce"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


# ==============================================================================
# Profile Fixtures
# ==============================================================================


@pytest.fixture
def work_env():
    """A complete profile with model and a custom header."""
    return Environment(
        name="work",
        base_url="https://api.example.com",
        api_key="sk-ant-REDACTED",
        model="claude-3-5-sonnet-20241022",
        headers={"X-Custom-Header": "custom-value"},
        description="Work account",
    )


@pytest.fixture
def staging_env():
    """A profile without model or headers."""
    return Environment(
        name="staging",
        base_url="https://staging.example.com",
        api_key="sk-staging-0000000099999999",
    )


# ==============================================================================
# Launcher Fixtures
# ==============================================================================


@pytest.fixture
def console_output():
    """StringIO capturing what the launcher prints."""
    return io.StringIO()


@pytest.fixture
def pipeline(console_output):
    """Pipeline whose Claude Code executable is the Python interpreter."""
    resolver = ExecutableResolver()
    resolver.set_path(sys.executable)
    return LaunchPipeline(
        resolver,
        MetricsRecorder(),
        console=Console(file=console_output, width=200),
        kill_grace_seconds=2.0,
    )


@pytest.fixture
def make_params(work_env):
    """Factory for launch parameters running a Python snippet as the child."""

    def _make(code: str = "import sys; sys.exit(0)", *extra: str, **kwargs):
        kwargs.setdefault("environment", work_env)
        return LaunchParameters(arguments=["-c", code, *extra], **kwargs)

    return _make
