"""
Static Test Collection

Tree-sitter-based discovery of pytest tests, test classes and fixtures.
Source files are parsed, never imported or executed.
"""

from collection.config import CollectionConfig, load_collection_config
from collection.errors import (
    CollectionError,
    CollectionIOError,
    SourceParseError,
    StructuralError,
)
from collection.models import (
    CollectedResult,
    CollectionStats,
    Diagnostic,
    DiagnosticKind,
    FailureKind,
    FileFailure,
    Fixture,
    FixtureScope,
    TestDefinition,
    TestFileContents,
)
from collection.parser import (
    ParsedSource,
    count_error_nodes,
    create_parser,
    parse_bytes,
    parse_file,
    parse_source,
)
from collection.discovery import discover_test_files, is_test_file
from collection.visitor import visit_source
from collection.collector import aggregate_results, collect_file, collect_tests

__all__ = [
    # Configuration
    "CollectionConfig",
    "load_collection_config",
    # Errors
    "CollectionError",
    "CollectionIOError",
    "SourceParseError",
    "StructuralError",
    # Data models
    "CollectedResult",
    "CollectionStats",
    "Diagnostic",
    "DiagnosticKind",
    "FailureKind",
    "FileFailure",
    "Fixture",
    "FixtureScope",
    "TestDefinition",
    "TestFileContents",
    # Low-level parsing
    "ParsedSource",
    "count_error_nodes",
    "create_parser",
    "parse_bytes",
    "parse_file",
    "parse_source",
    # Discovery and classification
    "discover_test_files",
    "is_test_file",
    "visit_source",
    # High-level orchestration
    "aggregate_results",
    "collect_file",
    "collect_tests",
]
