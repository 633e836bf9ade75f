"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import CceConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per session
_config_cache: CceConfig | None = None


def get_xdg_config_home() -> Path:
    """
    Get XDG config home directory.

    Returns:
        Path to config directory (defaults to ~/.config)
    """
    if xdg_home := os.environ.get("XDG_CONFIG_HOME"):
        return Path(xdg_home)
    return Path.home() / ".config"


def get_user_config_path() -> Path:
    """
    Get path to user configuration file.

    Returns:
        Path to ~/.config/cce/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "cce" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Working directory to search from (defaults to current directory)

    Returns:
        Path to .cce.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / ".cce.json"


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Nested dicts are merged, not replaced; values in `override` win.

    Example:
        >>> deep_merge({"launcher": {"passthrough": True}}, {"launcher": {"executable": "claude"}})
        {'launcher': {'passthrough': True, 'executable': 'claude'}}
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def load_json_file(path: Path) -> dict[str, Any] | None:
    """
    Load a JSON file, returning None if it doesn't exist or is invalid.

    Args:
        path: Path to JSON file

    Returns:
        Parsed JSON as dict, or None if file doesn't exist or can't be parsed
    """
    if not path.exists():
        return None

    try:
        with path.open() as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None

    if isinstance(data, dict):
        return data
    logger.warning("Ignoring config at %s: top level is not an object", path)
    return None


def _parse_bool(value: str) -> bool:
    return value.lower() not in ("false", "0", "no", "")


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Supported env vars:
        CCE_CLAUDE_PATH - overrides launcher.executable_path
        CCE_PASSTHROUGH - overrides launcher.passthrough
        CCE_DEFAULT_ENV - overrides default_env

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = config_dict.copy()
    launcher = dict(result.get("launcher") or {})

    if claude_path := os.environ.get("CCE_CLAUDE_PATH"):
        launcher["executable_path"] = claude_path

    if passthrough_str := os.environ.get("CCE_PASSTHROUGH"):
        launcher["passthrough"] = _parse_bool(passthrough_str)

    if launcher:
        result["launcher"] = launcher

    if default_env := os.environ.get("CCE_DEFAULT_ENV"):
        result["default_env"] = default_env

    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Returns:
        Dictionary with default configuration values
    """
    return {
        "launcher": {"passthrough": True, "kill_grace_seconds": 5.0},
        "environments": {},
    }


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> CceConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (CCE_*)
        2. Project config (.cce.json)
        3. User config (~/.config/cce/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .cce.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated CceConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    user_config_path = get_user_config_path()
    if user_config := load_json_file(user_config_path):
        logger.debug("Loaded user config from %s", user_config_path)
        merged = deep_merge(merged, user_config)

    project_config_path = get_project_config_path(project_dir)
    if project_config := load_json_file(project_config_path):
        logger.debug("Loaded project config from %s", project_config_path)
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = CceConfig(**merged)
    _config_cache = config

    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
