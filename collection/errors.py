"""
Error types raised while collecting a single file.

Each error is scoped to one file; the collector turns them into
``FileFailure`` records under the best-effort policy.
"""

from typing import Optional


class CollectionError(Exception):
    """Base class for per-file collection failures."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class CollectionIOError(CollectionError):
    """A file or directory could not be read."""


class SourceParseError(CollectionError):
    """The parser could not produce a usable tree for a file."""


class StructuralError(CollectionError):
    """A node does not have the shape the visitor expects."""
