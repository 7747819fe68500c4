"""
Tree-sitter parser initialization and file parsing utilities.

This module wraps the tree-sitter Python grammar and exposes the small
surface the visitor needs: the root node, node kinds and children, and exact
text for a node's byte range.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import tree_sitter_python as tspython
from tree_sitter import Language, Node, Parser, Tree

from collection.errors import CollectionIOError, SourceParseError, StructuralError

# Configure logging
logger = logging.getLogger(__name__)

# Module-level language constant
PYTHON_LANGUAGE = Language(tspython.language())


@dataclass(frozen=True, eq=False)
class ParsedSource:
    """A file's bytes together with the tree parsed from them.

    The byte buffer and tree belong to a single file visit and are never
    shared between files.
    """

    path: str
    source_bytes: bytes
    tree: Tree

    @property
    def root_node(self) -> Node:
        return self.tree.root_node

    def text(self, node: Node) -> str:
        """Decode the exact source text spanned by ``node``.

        Raises:
            StructuralError: If the byte range does not fall on UTF-8
                character boundaries.
        """
        chunk = self.source_bytes[node.start_byte:node.end_byte]
        try:
            return chunk.decode("utf-8")
        except UnicodeDecodeError as e:
            raise StructuralError(
                f"Byte range {node.start_byte}..{node.end_byte} of {node.type} "
                f"does not fall on UTF-8 character boundaries",
                path=self.path,
            ) from e


def create_parser() -> Parser:
    """Create and configure a tree-sitter parser for Python.

    Returns:
        A Parser instance configured with the Python language.

    Example:
        >>> parser = create_parser()
        >>> tree = parser.parse(b"def test_x(): pass")
    """
    parser = Parser(PYTHON_LANGUAGE)
    logger.debug("Created tree-sitter Python parser")
    return parser


def parse_bytes(source: bytes) -> Tree:
    """Parse raw bytes of Python source code.

    Args:
        source: UTF-8 encoded bytes of Python source code.

    Returns:
        A Tree object representing the parsed AST.

    Raises:
        TypeError: If source is not bytes.

    Example:
        >>> tree = parse_bytes(b"def test_x(): pass")
        >>> tree.root_node.type
        'module'
    """
    if not isinstance(source, bytes):
        raise TypeError(f"Source must be bytes, got {type(source).__name__}")

    parser = create_parser()
    tree = parser.parse(source)

    if tree.root_node.has_error:
        logger.debug("Parsed tree contains syntax errors")

    logger.debug("Parsed %d bytes of Python code", len(source))
    return tree


def count_error_nodes(tree: Tree) -> int:
    """Count ERROR and MISSING nodes in a tree."""
    count = 0
    stack = [tree.root_node]
    while stack:
        node = stack.pop()
        if node.is_error or node.is_missing:
            count += 1
        if node.has_error:
            stack.extend(node.children)
    return count


def _first_error_line(tree: Tree) -> Optional[int]:
    stack = [tree.root_node]
    while stack:
        node = stack.pop()
        if node.is_error or node.is_missing:
            return node.start_point.row + 1
        # Reverse so the earliest child is examined first
        stack.extend(reversed([c for c in node.children if c.has_error or c.is_missing]))
    return None


def parse_source(
    source: bytes,
    path: str = "<memory>",
    allow_syntax_errors: bool = False,
) -> ParsedSource:
    """Parse source bytes into a ParsedSource.

    Args:
        source: Raw file content.
        path: File path used in errors and logs.
        allow_syntax_errors: Return trees that contain error nodes instead
            of rejecting them.

    Returns:
        The parsed source.

    Raises:
        SourceParseError: If the bytes are not valid UTF-8, or the tree
            contains syntax errors and ``allow_syntax_errors`` is False.
    """
    try:
        source.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SourceParseError(
            f"{path} is not valid UTF-8: {e.reason} at byte {e.start}", path=path
        ) from e

    tree = parse_bytes(source)

    if tree.root_node.has_error:
        error_count = count_error_nodes(tree)
        line = _first_error_line(tree)
        if not allow_syntax_errors:
            raise SourceParseError(
                f"{path} contains syntax errors ({error_count} error nodes, "
                f"first at line {line})",
                path=path,
            )
        logger.warning(
            "File %s contains syntax errors (%d error nodes); visiting anyway",
            path,
            error_count,
        )

    return ParsedSource(path=path, source_bytes=source, tree=tree)


def parse_file(file_path: str, allow_syntax_errors: bool = False) -> ParsedSource:
    """Read and parse a Python source file from disk.

    Args:
        file_path: Path to the .py file.
        allow_syntax_errors: See ``parse_source``.

    Returns:
        The parsed source.

    Raises:
        CollectionIOError: If the file cannot be read.
        SourceParseError: If the file cannot be parsed.
    """
    try:
        with open(file_path, "rb") as f:
            source_bytes = f.read()
    except OSError as e:
        logger.error("Error reading file %s: %s", file_path, e)
        raise CollectionIOError(
            f"Cannot read {file_path}: {e}", path=file_path
        ) from e

    parsed = parse_source(
        source_bytes, path=file_path, allow_syntax_errors=allow_syntax_errors
    )
    logger.debug("Successfully parsed file: %s", file_path)
    return parsed
