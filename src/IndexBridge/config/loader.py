"""
Configuration Loading with File/Env/Override Precedence

Implements three-level config composition:
1. **File level** (YAML/JSON): base configuration
2. **Environment level**: INDEXBRIDGE_* prefixed variables override file
3. **Override level**: programmatic overrides win

Environment variables use double-underscore notation:
  INDEXBRIDGE_REMOTE__API_KEY="xx"  →  remote.api_key="xx"
  INDEXBRIDGE_SEARCH__FAIL_OPEN=false  →  search.fail_open=False

JSON values are automatically parsed; strings are type-coerced when possible.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from .models import IndexBridgeConfig

_LOGGER = logging.getLogger(__name__)

DEFAULT_ENV_PREFIX = "INDEXBRIDGE_"

# ============================================================================
# Helpers
# ============================================================================


def _read_file(path: str | Path) -> dict[str, Any]:
    """
    Read YAML or JSON config file.

    Args:
        path: File path (suffix determines format: .yaml/.yml or .json)

    Returns:
        Parsed config dictionary

    Raises:
        ValueError: If file cannot be read or parsed
    """
    p = Path(path)
    if not p.exists():
        raise ValueError(f"Config file not found: {path}")

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ValueError(f"Cannot read config file {path}: {e}") from e

    suffix = p.suffix.lower()

    if suffix in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}") from e
    elif suffix == ".json":
        try:
            data = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e
    else:
        raise ValueError(f"Unsupported file format: {suffix}. Use .yaml or .json")

    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return data


def _assign_nested(data: dict[str, Any], dotted_key: str, value: Any) -> None:
    """Assign ``value`` into ``data`` following a dot-separated path."""
    keys = dotted_key.split(".")
    current = data

    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]

    current[keys[-1]] = value


def _coerce_env_value(value: str) -> Any:
    """
    Attempt to coerce environment variable string to appropriate type.

    Tries JSON parsing first (handles lists, dicts, bools, numbers).
    Falls back to the raw string if JSON fails.
    """
    try:
        return json.loads(value)
    except (json.JSONDecodeError, ValueError):
        pass

    if value.lower() in ("true", "false"):
        return value.lower() == "true"

    return value


def _merge_env_overrides(
    data: dict[str, Any],
    env_prefix: str = DEFAULT_ENV_PREFIX,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Overlay ``<prefix>SECTION__KEY`` environment variables onto ``data``."""
    source = os.environ if environ is None else environ
    for env_key, env_value in source.items():
        if not env_key.startswith(env_prefix):
            continue

        relative_key = env_key[len(env_prefix) :].lower()
        dotted_key = relative_key.replace("__", ".")
        coerced_value = _coerce_env_value(env_value)
        # Credentials are plain strings even when they look numeric.
        if dotted_key.startswith("remote.") and not isinstance(coerced_value, (dict, list)):
            coerced_value = env_value

        _assign_nested(data, dotted_key, coerced_value)
        _LOGGER.debug("Environment override: %s -> %s", env_key, dotted_key)

    return data


def _merge_overrides(data: dict[str, Any], overrides: Mapping[str, Any] | None) -> dict[str, Any]:
    """Recursively merge ``overrides`` into ``data``; later values win."""
    if not overrides:
        return data

    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(data.get(key), dict):
            data[key] = _merge_overrides(data[key], value)
        else:
            data[key] = dict(value) if isinstance(value, Mapping) else value

    return data


# ============================================================================
# Public API
# ============================================================================


def load_config(
    path: str | Path | None = None,
    env_prefix: str = DEFAULT_ENV_PREFIX,
    overrides: Mapping[str, Any] | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> IndexBridgeConfig:
    """
    Load IndexBridgeConfig from file, environment, and overrides with proper precedence.

    **Precedence:** file < environment < overrides

    Args:
        path: Path to YAML/JSON config file (optional)
        env_prefix: Environment variable prefix (default: INDEXBRIDGE_)
        overrides: Programmatic overrides dict (optional)
        environ: Environment mapping to read instead of ``os.environ``

    Returns:
        Validated IndexBridgeConfig instance

    Raises:
        ValueError: If the file cannot be read or parsed
        pydantic.ValidationError: If the merged data violates the schema
    """
    data: dict[str, Any] = {}

    if path:
        data = _read_file(path)
        _LOGGER.info("Loaded config from %s", path)

    data = _merge_env_overrides(data, env_prefix, environ)
    data = _merge_overrides(data, overrides)

    config = IndexBridgeConfig.model_validate(data)
    _LOGGER.info("Configuration validated. Config hash: %s...", config.config_hash()[:8])
    return config


def export_config_schema() -> dict[str, Any]:
    """Export the JSON Schema for IndexBridgeConfig."""
    return IndexBridgeConfig.model_json_schema()
