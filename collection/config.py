"""
Configuration for static test collection.

Defines the tree-sitter node type strings the visitor dispatches on, the
pytest naming conventions, and the runtime options of a collection run.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import FrozenSet, Optional, Set, Tuple

from dotenv import load_dotenv

from core.startup_config import (
    env_flag,
    env_int,
    get_config_section,
    load_yaml_config,
    read_typed_option,
    resolve_strict_config_validation,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# tree-sitter-python node types
# ---------------------------------------------------------------------------
MODULE_NODE: str = "module"
DECORATED_DEFINITION: str = "decorated_definition"
DECORATOR_NODE: str = "decorator"
CLASS_DEFINITION: str = "class_definition"
FUNCTION_DEFINITION: str = "function_definition"
IDENTIFIER_NODE: str = "identifier"
ATTRIBUTE_NODE: str = "attribute"
CALL_NODE: str = "call"
KEYWORD_ARGUMENT: str = "keyword_argument"
STRING_NODE: str = "string"
INTERPOLATION_NODE: str = "interpolation"
COMMENT_NODE: str = "comment"

IMPORT_STATEMENT: str = "import_statement"
IMPORT_FROM_STATEMENT: str = "import_from_statement"
ALIASED_IMPORT: str = "aliased_import"
DOTTED_NAME: str = "dotted_name"
WILDCARD_IMPORT: str = "wildcard_import"

# Statements that never carry tests or fixtures
NOOP_NODE_TYPES: Set[str] = {
    IMPORT_STATEMENT,
    IMPORT_FROM_STATEMENT,
    "future_import_statement",
    "expression_statement",
    COMMENT_NODE,
    "if_statement",
    "try_statement",
    "assert_statement",
    "pass_statement",
}

# Parameter nodes whose name is a fixture dependency
TYPED_PARAMETER: str = "typed_parameter"
NAMED_PARAMETER_TYPES: Set[str] = {
    "default_parameter",
    "typed_default_parameter",
}

# Parameter nodes that never name a fixture
SKIPPED_PARAMETER_TYPES: Set[str] = {
    "list_splat_pattern",
    "dictionary_splat_pattern",
    "keyword_separator",
    "positional_separator",
    COMMENT_NODE,
}

# ---------------------------------------------------------------------------
# File discovery
# ---------------------------------------------------------------------------
SOURCE_EXTENSIONS: Set[str] = {".py"}

IGNORE_FILE_NAMES: Tuple[str, ...] = (".gitignore", ".ignore")

# Repository-local exclude file, relative to the collection root
GIT_INFO_EXCLUDE: str = os.path.join(".git", "info", "exclude")

# pytest's norecursedirs defaults, plus bytecode caches
DEFAULT_EXCLUDED_DIRS: Tuple[str, ...] = (
    "*.egg",
    ".*",
    "_darcs",
    "build",
    "CVS",
    "dist",
    "node_modules",
    "venv",
    "{arch}",
    "__pycache__",
)

# ---------------------------------------------------------------------------
# Naming conventions
# ---------------------------------------------------------------------------
DEFAULT_TEST_FILE_PATTERNS: Tuple[str, ...] = ("test_*.py", "*_test.py")
DEFAULT_TEST_CLASS_PREFIX: str = "Test"
DEFAULT_TEST_FUNCTION_PREFIX: str = "test"
DEFAULT_INSTANCE_PARAMETER: str = "self"

# Fully-qualified decorator paths that register a fixture
DEFAULT_FIXTURE_MARKERS: FrozenSet[Tuple[str, ...]] = frozenset({
    ("pytest", "fixture"),
    ("_pytest", "fixtures", "fixture"),
})

# ---------------------------------------------------------------------------
# Run policy defaults
# ---------------------------------------------------------------------------
DEFAULT_MAX_WORKERS: int = min(8, os.cpu_count() or 1)
DEFAULT_CONTINUE_ON_ERROR: bool = True
DEFAULT_ALLOW_SYNTAX_ERRORS: bool = False

DEFAULT_CONFIG_PATH: str = "collection.yml"
CONFIG_SECTION: str = "collection"


@dataclass(frozen=True)
class CollectionConfig:
    """Naming conventions and run policy for one collection run.

    Attributes:
        test_file_patterns: fnmatch patterns selecting test file names.
        test_class_prefix: Prefix a class name needs to be a test class.
        test_function_prefix: Prefix a function name needs to be a test.
        instance_parameter: Leading parameter name excluded from fixtures.
        fixture_markers: Resolved decorator paths that register a fixture.
        excluded_dirs: fnmatch patterns of directory names never entered.
        max_workers: Upper bound on files visited concurrently.
        continue_on_error: Best-effort (True) or fail-fast (False) policy.
        allow_syntax_errors: Visit files whose tree contains error nodes.
    """

    test_file_patterns: Tuple[str, ...] = DEFAULT_TEST_FILE_PATTERNS
    test_class_prefix: str = DEFAULT_TEST_CLASS_PREFIX
    test_function_prefix: str = DEFAULT_TEST_FUNCTION_PREFIX
    instance_parameter: str = DEFAULT_INSTANCE_PARAMETER
    fixture_markers: FrozenSet[Tuple[str, ...]] = field(
        default=DEFAULT_FIXTURE_MARKERS
    )
    excluded_dirs: Tuple[str, ...] = DEFAULT_EXCLUDED_DIRS
    max_workers: int = DEFAULT_MAX_WORKERS
    continue_on_error: bool = DEFAULT_CONTINUE_ON_ERROR
    allow_syntax_errors: bool = DEFAULT_ALLOW_SYNTAX_ERRORS

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")


def _parse_marker_paths(raw: Tuple[str, ...]) -> FrozenSet[Tuple[str, ...]]:
    return frozenset(tuple(part.strip() for part in item.split(".")) for item in raw)


def load_collection_config(
    config_path: Optional[str] = None,
    strict: Optional[bool] = None,
) -> CollectionConfig:
    """Build a CollectionConfig from defaults, a YAML file and the environment.

    Precedence, lowest first: built-in defaults, the ``collection:`` section
    of the YAML file, then ``COLLECTION_*`` environment variables (a ``.env``
    file is loaded first).

    Args:
        config_path: YAML file to read. When None, ``collection.yml`` in the
            working directory is read if it exists.
        strict: Raise on invalid settings instead of falling back to
            defaults. When None, resolved from ``STRICT_CONFIG_VALIDATION``.

    Returns:
        The resolved configuration.

    Raises:
        ConfigValidationError: In strict mode, for unreadable files or
            invalid values.
    """
    load_dotenv()
    if strict is None:
        strict = resolve_strict_config_validation(default=False)

    section: dict = {}
    if config_path is None and os.path.isfile(DEFAULT_CONFIG_PATH):
        config_path = DEFAULT_CONFIG_PATH
    if config_path is not None:
        payload = load_yaml_config(config_path, strict=strict)
        section = get_config_section(payload, CONFIG_SECTION, strict=strict)

    def option(key, expected_type, default):
        return read_typed_option(section, key, expected_type, default, strict=strict)

    file_patterns = option("test_files", list, list(DEFAULT_TEST_FILE_PATTERNS))
    markers = option(
        "fixture_markers",
        list,
        [".".join(path) for path in sorted(DEFAULT_FIXTURE_MARKERS)],
    )
    excluded = option("excluded_dirs", list, list(DEFAULT_EXCLUDED_DIRS))

    max_workers = option("max_workers", int, DEFAULT_MAX_WORKERS)
    max_workers = env_int("COLLECTION_MAX_WORKERS", max_workers, strict=strict)
    if max_workers < 1:
        logger.warning("max_workers must be >= 1, got %d; using 1", max_workers)
        max_workers = 1

    fail_fast = not option("continue_on_error", bool, DEFAULT_CONTINUE_ON_ERROR)
    fail_fast = env_flag("COLLECTION_FAIL_FAST", default=fail_fast)

    allow_syntax_errors = option(
        "allow_syntax_errors", bool, DEFAULT_ALLOW_SYNTAX_ERRORS
    )
    allow_syntax_errors = env_flag(
        "COLLECTION_ALLOW_SYNTAX_ERRORS", default=allow_syntax_errors
    )

    config = CollectionConfig(
        test_file_patterns=tuple(str(p) for p in file_patterns),
        test_class_prefix=option("test_class_prefix", str, DEFAULT_TEST_CLASS_PREFIX),
        test_function_prefix=option(
            "test_function_prefix", str, DEFAULT_TEST_FUNCTION_PREFIX
        ),
        instance_parameter=option(
            "instance_parameter", str, DEFAULT_INSTANCE_PARAMETER
        ),
        fixture_markers=_parse_marker_paths(tuple(str(m) for m in markers)),
        excluded_dirs=tuple(str(d) for d in excluded),
        max_workers=max_workers,
        continue_on_error=not fail_fast,
        allow_syntax_errors=allow_syntax_errors,
    )
    logger.debug("Resolved collection config: %s", config)
    return config
