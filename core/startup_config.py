"""Startup configuration validation helpers.

Provides strict/non-strict YAML and environment parsing used to resolve the
settings of a collection run before any file is visited.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import yaml

logger = logging.getLogger(__name__)


class ConfigValidationError(RuntimeError):
    """Raised when strict startup validation fails."""


def env_flag(name: str, default: bool = False) -> bool:
    """Read a boolean flag from the environment."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def env_int(name: str, default: int, strict: bool = False) -> int:
    """Read an integer from the environment, falling back to ``default``."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        msg = f"Environment variable {name} must be an integer, got {raw!r}"
        if strict:
            raise ConfigValidationError(msg) from exc
        logger.warning("%s; using default %d", msg, default)
        return default


def resolve_strict_config_validation(default: bool = False) -> bool:
    """Resolve strict validation mode from ``STRICT_CONFIG_VALIDATION`` env."""
    return env_flag("STRICT_CONFIG_VALIDATION", default=default)


def load_yaml_config(
    config_path: str,
    strict: bool = False,
) -> dict[str, Any]:
    """Load and parse a YAML config file.

    In non-strict mode this returns an empty dict on parse/read failures.
    In strict mode this raises ``ConfigValidationError``.
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            payload = yaml.safe_load(f)
    except FileNotFoundError as exc:
        msg = f"Config file not found: {config_path}"
        if strict:
            raise ConfigValidationError(msg) from exc
        logger.warning("%s; continuing with defaults", msg)
        return {}
    except yaml.YAMLError as exc:
        msg = f"Failed to parse YAML config at {config_path}: {exc}"
        if strict:
            raise ConfigValidationError(msg) from exc
        logger.warning("%s; continuing with defaults", msg)
        return {}

    if payload is None:
        msg = f"Config file is empty: {config_path}"
        if strict:
            raise ConfigValidationError(msg)
        logger.warning("%s; continuing with defaults", msg)
        return {}

    if not isinstance(payload, dict):
        msg = f"Unexpected config payload type: {type(payload).__name__}"
        if strict:
            raise ConfigValidationError(msg)
        logger.warning("%s; continuing with defaults", msg)
        return {}

    return payload


def get_config_section(
    payload: dict[str, Any],
    section_name: str,
    strict: bool = False,
) -> dict[str, Any]:
    """Fetch a named section from a config payload."""
    if section_name not in payload:
        return {}
    section = payload[section_name]
    if not isinstance(section, dict):
        msg = f"Config section '{section_name}' must be a mapping"
        if strict:
            raise ConfigValidationError(msg)
        logger.warning("%s; using defaults", msg)
        return {}
    return section


def _matches_type(value: Any, expected_type: type) -> bool:
    # bool is an int subclass; keep the two apart
    if expected_type is int and isinstance(value, bool):
        return False
    if not isinstance(value, expected_type):
        return False
    if expected_type is list:
        return all(isinstance(item, str) for item in value)
    return True


def read_typed_option(
    section: dict[str, Any],
    key: str,
    expected_type: type,
    default: Any,
    strict: bool = False,
) -> Any:
    """Read ``section[key]`` checking its type against ``expected_type``.

    Lists are expected to hold strings only.
    """
    if key not in section:
        return default
    value = section[key]
    if _matches_type(value, expected_type):
        return value

    msg = (
        f"Config option '{key}' must be {expected_type.__name__}, "
        f"got {type(value).__name__}"
    )
    if strict:
        raise ConfigValidationError(msg)
    logger.warning("%s; using default %r", msg, default)
    return default
