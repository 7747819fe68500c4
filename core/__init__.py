"""Core shared contracts and utilities."""

from core.node_id import (
    NODE_ID_SEPARATOR,
    create_node_id,
    relative_node_path,
)
from core.structured_logging import (
    configure_structured_logging,
    file_scope,
    get_run_id,
    phase_scope,
    set_run_id,
)
from core.startup_config import (
    ConfigValidationError,
    env_flag,
    env_int,
    get_config_section,
    load_yaml_config,
    read_typed_option,
    resolve_strict_config_validation,
)

__all__ = [
    "NODE_ID_SEPARATOR",
    "create_node_id",
    "relative_node_path",
    "configure_structured_logging",
    "file_scope",
    "get_run_id",
    "phase_scope",
    "set_run_id",
    "ConfigValidationError",
    "env_flag",
    "env_int",
    "get_config_section",
    "load_yaml_config",
    "read_typed_option",
    "resolve_strict_config_validation",
]
