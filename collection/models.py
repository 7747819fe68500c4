"""
Data models for statically collected tests and fixtures.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from core.node_id import create_node_id, relative_node_path
from collection.errors import (
    CollectionError,
    CollectionIOError,
    SourceParseError,
    StructuralError,
)


class FixtureScope(Enum):
    """Lifetime of a fixture instance.

    Only per-test ``function`` scope is implemented. Other pytest scopes
    are recognised by ``from_keyword`` but have no member yet.
    """

    FUNCTION = "function"

    @classmethod
    def from_keyword(cls, value: str) -> Optional["FixtureScope"]:
        """Map a ``scope=`` keyword value to a member, or None if unsupported."""
        for member in cls:
            if member.value == value:
                return member
        return None


@dataclass(frozen=True)
class TestDefinition:
    """One collected test.

    Attributes:
        path: Absolute path of the file defining the test.
        class_name: Enclosing test class, or None for module-level tests.
        name: Test function name.
        fixture_names: Parameter names in declaration order, without the
            leading instance parameter.
        line: 1-indexed line of the ``def``; not part of equality.
    """

    __test__ = False

    path: str
    class_name: Optional[str]
    name: str
    fixture_names: Tuple[str, ...] = ()
    line: int = field(default=0, compare=False)

    def node_id(self, root: Optional[str] = None) -> str:
        return create_node_id(
            relative_node_path(self.path, root), self.name, self.class_name
        )

    def to_dict(self, root: Optional[str] = None) -> Dict[str, Any]:
        return {
            "node_id": self.node_id(root),
            "path": self.path,
            "class_name": self.class_name,
            "name": self.name,
            "fixture_names": list(self.fixture_names),
            "line": self.line,
        }


@dataclass(frozen=True)
class Fixture:
    """One collected fixture."""

    name: str
    scope: FixtureScope = FixtureScope.FUNCTION
    line: int = field(default=0, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "scope": self.scope.value, "line": self.line}


class DiagnosticKind(Enum):
    """Recoverable conditions observed while visiting a file."""

    UNRECOGNIZED_CONSTRUCT = "unrecognized_construct"
    STRUCTURAL_ERROR = "structural_error"
    NESTED_CLASS = "nested_class"
    DUPLICATE_FIXTURE = "duplicate_fixture"
    UNSUPPORTED_FIXTURE_SCOPE = "unsupported_fixture_scope"


@dataclass(frozen=True)
class Diagnostic:
    kind: DiagnosticKind
    message: str
    line: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message, "line": self.line}


@dataclass(frozen=True)
class TestFileContents:
    """Everything collected from one file."""

    __test__ = False

    path: str
    tests: Tuple[TestDefinition, ...] = ()
    fixtures: Tuple[Fixture, ...] = ()
    diagnostics: Tuple[Diagnostic, ...] = ()

    def to_dict(self, root: Optional[str] = None) -> Dict[str, Any]:
        return {
            "path": self.path,
            "tests": [test.to_dict(root) for test in self.tests],
            "fixtures": [fixture.to_dict() for fixture in self.fixtures],
            "diagnostics": [diag.to_dict() for diag in self.diagnostics],
        }


class FailureKind(Enum):
    IO = "io"
    PARSE = "parse"
    STRUCTURAL = "structural"
    UNEXPECTED = "unexpected"


@dataclass(frozen=True)
class FileFailure:
    """A file that could not be visited at all."""

    path: str
    kind: FailureKind
    message: str

    @classmethod
    def from_error(cls, path: str, error: Exception) -> "FileFailure":
        """Classify an exception raised while collecting ``path``."""
        if isinstance(error, CollectionIOError):
            kind = FailureKind.IO
        elif isinstance(error, SourceParseError):
            kind = FailureKind.PARSE
        elif isinstance(error, StructuralError):
            kind = FailureKind.STRUCTURAL
        else:
            kind = FailureKind.UNEXPECTED
        message = str(error) if isinstance(error, CollectionError) else repr(error)
        return cls(path=path, kind=kind, message=message)

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "kind": self.kind.value, "message": self.message}


class CollectionStats:
    """Statistics for a collection run."""

    def __init__(self):
        self.files_processed = 0
        self.files_failed = 0
        self.tests_collected = 0
        self.fixtures_collected = 0
        self.diagnostics = 0

    def to_dict(self) -> Dict[str, int]:
        """Convert stats to dictionary."""
        return {
            "files_processed": self.files_processed,
            "files_failed": self.files_failed,
            "tests_collected": self.tests_collected,
            "fixtures_collected": self.fixtures_collected,
            "diagnostics": self.diagnostics,
        }

    def __str__(self) -> str:
        return (
            f"CollectionStats(processed={self.files_processed}, "
            f"failed={self.files_failed}, tests={self.tests_collected}, "
            f"fixtures={self.fixtures_collected}, "
            f"diagnostics={self.diagnostics})"
        )


@dataclass(frozen=True)
class CollectedResult:
    """Output of a full collection run.

    Attributes:
        root: Absolute collection root.
        files: Successfully visited files, in discovery order.
        failures: Files that could not be visited, in discovery order.
    """

    root: str
    files: Tuple[TestFileContents, ...] = ()
    failures: Tuple[FileFailure, ...] = ()

    @property
    def tests(self) -> List[TestDefinition]:
        return [test for contents in self.files for test in contents.tests]

    @property
    def fixtures(self) -> List[Fixture]:
        return [fixture for contents in self.files for fixture in contents.fixtures]

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @property
    def stats(self) -> CollectionStats:
        stats = CollectionStats()
        stats.files_processed = len(self.files)
        stats.files_failed = len(self.failures)
        for contents in self.files:
            stats.tests_collected += len(contents.tests)
            stats.fixtures_collected += len(contents.fixtures)
            stats.diagnostics += len(contents.diagnostics)
        return stats

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to a JSON-serializable dictionary."""
        return {
            "root": self.root,
            "files": [contents.to_dict(self.root) for contents in self.files],
            "failures": [failure.to_dict() for failure in self.failures],
            "stats": self.stats.to_dict(),
        }
