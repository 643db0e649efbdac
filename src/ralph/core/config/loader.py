"""
Configuration loading with multi-layer merging.

Implements the configuration precedence chain:
    defaults < user config < project config < env vars

CLI flags are applied on top by the caller.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import RalphConfig

logger = logging.getLogger(__name__)

# Global cache to avoid reloading config multiple times per session
_config_cache: RalphConfig | None = None

PROJECT_CONFIG_NAME = ".ralph.json"


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
        Path to ~/.config/ralph/config.json (or XDG equivalent)
    """
    return get_xdg_config_home() / "ralph" / "config.json"


def get_project_config_path(cwd: Path | None = None) -> Path:
    """
    Get path to project configuration file.

    Args:
        cwd: Working directory to search from (defaults to current directory)

    Returns:
        Path to .ralph.json in the project root
    """
    if cwd is None:
        cwd = Path.cwd()
    return cwd / PROJECT_CONFIG_NAME


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Deep merge two dictionaries.

    Values in `override` take precedence over values in `base`. Nested dicts
    are merged, not replaced.

    Example:
        >>> deep_merge({"loop": {"max_iterations": 100}}, {"loop": {"iteration_delay": 0}})
        {'loop': {'max_iterations': 100, 'iteration_delay': 0}}
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
            if isinstance(data, dict):
                return data
            logger.warning("Ignoring config at %s: top level is not an object", path)
            return None
    except (json.JSONDecodeError, OSError) as e:
        # Config system should be resilient: warn and fall back
        logger.warning("Failed to parse config at %s: %s", path, e)
        return None


def _parse_int(name: str, value: str, minimum: int) -> int | None:
    try:
        parsed = int(value)
    except ValueError:
        logger.warning("Invalid %s value '%s', ignoring", name, value)
        return None
    if parsed < minimum:
        logger.warning("%s must be >= %d, got %d, ignoring", name, minimum, parsed)
        return None
    return parsed


def apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Env vars have the highest precedence and override all config files.

    Supported env vars:
        RALPH_MODEL - overrides harness.model
        RALPH_EXECUTABLE - overrides harness.executable
        RALPH_ITERATIONS - overrides loop.max_iterations
        RALPH_MAX_RETRIES - overrides retry.max_retries
        RALPH_DEBUG - overrides debug.enabled

    Args:
        config_dict: Configuration dictionary to override

    Returns:
        Configuration dictionary with env var overrides applied
    """
    result = {k: dict(v) if isinstance(v, dict) else v for k, v in config_dict.items()}

    if model := os.environ.get("RALPH_MODEL"):
        result.setdefault("harness", {})["model"] = model

    if executable := os.environ.get("RALPH_EXECUTABLE"):
        result.setdefault("harness", {})["executable"] = executable

    if iterations_str := os.environ.get("RALPH_ITERATIONS"):
        iterations = _parse_int("RALPH_ITERATIONS", iterations_str, minimum=1)
        if iterations is not None:
            result.setdefault("loop", {})["max_iterations"] = iterations

    if retries_str := os.environ.get("RALPH_MAX_RETRIES"):
        retries = _parse_int("RALPH_MAX_RETRIES", retries_str, minimum=0)
        if retries is not None:
            result.setdefault("retry", {})["max_retries"] = retries

    if debug_str := os.environ.get("RALPH_DEBUG"):
        result.setdefault("debug", {})["enabled"] = debug_str.lower() not in ("false", "0", "")

    return result


def get_default_config() -> dict[str, Any]:
    """
    Get hardcoded default configuration.

    Returns:
        Dictionary with default configuration values
    """
    return RalphConfig().model_dump()


def load_config(project_dir: Path | None = None, use_cache: bool = True) -> RalphConfig:
    """
    Load configuration with multi-layer merging.

    Configuration precedence (highest to lowest):
        1. Environment variables (RALPH_*)
        2. Project config (.ralph.json)
        3. User config (~/.config/ralph/config.json)
        4. Hardcoded defaults

    Args:
        project_dir: Project directory to load .ralph.json from (defaults to cwd)
        use_cache: If True, return cached config from previous load

    Returns:
        Validated RalphConfig instance

    Raises:
        ValidationError: If the merged config fails Pydantic validation
    """
    global _config_cache

    if use_cache and _config_cache is not None:
        return _config_cache

    merged = get_default_config()

    if user_config := load_json_file(get_user_config_path()):
        merged = deep_merge(merged, user_config)

    if project_config := load_json_file(get_project_config_path(project_dir)):
        merged = deep_merge(merged, project_config)

    merged = apply_env_overrides(merged)

    config = RalphConfig(**merged)
    _config_cache = config
    return config


def clear_cache() -> None:
    """
    Clear the cached configuration.

    Useful for testing or when config files change during execution.
    """
    global _config_cache
    _config_cache = None
