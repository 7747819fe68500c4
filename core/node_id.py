"""Node id contract shared by the collector and its consumers.

Node ids follow pytest's ``path::Class::name`` shape so that runners and
reporters can address a collected test without re-reading the source.
"""

from __future__ import annotations

import os
from typing import Optional

NODE_ID_SEPARATOR = "::"


def relative_node_path(file_path: str, root: Optional[str] = None) -> str:
    """Return ``file_path`` relative to ``root`` using forward slashes.

    Paths that cannot be expressed relative to ``root`` (different drive on
    Windows) are returned unchanged apart from separator normalization.
    """
    path = file_path
    if root is not None:
        try:
            path = os.path.relpath(file_path, root)
        except ValueError:
            path = file_path
    return path.replace(os.sep, "/")


def create_node_id(
    file_path: str,
    name: str,
    class_name: Optional[str] = None,
) -> str:
    """Create a node id for a test.

    Args:
        file_path: File path, usually relative to the collection root.
        name: Test function name.
        class_name: Enclosing test class, if any.

    Returns:
        ``file_path::name`` or ``file_path::class_name::name``.
    """
    parts = [file_path]
    if class_name:
        parts.append(class_name)
    parts.append(name)
    return NODE_ID_SEPARATOR.join(parts)
