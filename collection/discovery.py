"""
Test file discovery.

Walks a directory tree, honouring ``.gitignore``/``.ignore`` files and the
excluded-directory patterns, and returns the test files in a deterministic
order.
"""

import fnmatch
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence

import pathspec

from collection.config import (
    GIT_INFO_EXCLUDE,
    IGNORE_FILE_NAMES,
    SOURCE_EXTENSIONS,
    CollectionConfig,
)
from collection.errors import CollectionIOError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IgnoreRules:
    """Compiled ignore patterns anchored at the directory that declared them."""

    base_dir: str
    spec: pathspec.GitIgnoreSpec

    def check(self, path: str, is_dir: bool) -> Optional[bool]:
        """Verdict of this rule set for ``path``.

        Returns:
            True if excluded, False if re-included by a negation, or None
            when no pattern in the set matches.
        """
        relative = os.path.relpath(path, self.base_dir).replace(os.sep, "/")
        if is_dir:
            relative += "/"
        return self.spec.check_file(relative).include


def _read_ignore_lines(file_path: str) -> List[str]:
    try:
        with open(file_path, "r", encoding="utf-8", errors="replace") as f:
            return f.read().splitlines()
    except OSError as e:
        logger.warning("Cannot read ignore file %s: %s", file_path, e)
        return []


def load_ignore_rules(
    directory: str,
    file_names: Sequence[str] = IGNORE_FILE_NAMES,
) -> Optional[IgnoreRules]:
    """Compile the ignore files present in ``directory``, if any.

    Args:
        directory: Directory to look in.
        file_names: Ignore file names to read, in order.

    Returns:
        The compiled rules, or None when no ignore file declares a pattern.
    """
    lines: List[str] = []
    for name in file_names:
        candidate = os.path.join(directory, name)
        if os.path.isfile(candidate):
            lines.extend(_read_ignore_lines(candidate))

    if not any(line.strip() and not line.lstrip().startswith("#") for line in lines):
        return None

    spec = pathspec.GitIgnoreSpec.from_lines(lines)
    logger.debug("Loaded ignore rules from %s", directory)
    return IgnoreRules(base_dir=directory, spec=spec)


def is_test_file(file_name: str, config: CollectionConfig) -> bool:
    """Check whether a base file name is a test file.

    The name must carry a source extension and match one of the configured
    test file patterns (``test_*.py`` or ``*_test.py`` by default).
    """
    if os.path.splitext(file_name)[1] not in SOURCE_EXTENSIONS:
        return False
    return any(fnmatch.fnmatch(file_name, pattern) for pattern in config.test_file_patterns)


def _is_excluded_dir(dir_name: str, config: CollectionConfig) -> bool:
    return any(fnmatch.fnmatch(dir_name, pattern) for pattern in config.excluded_dirs)


def _is_ignored(path: str, is_dir: bool, rules: Sequence[IgnoreRules]) -> bool:
    # Deepest rule set that mentions the path decides
    for rule in reversed(rules):
        verdict = rule.check(path, is_dir)
        if verdict is not None:
            return verdict
    return False


def discover_test_files(
    directory: str,
    config: Optional[CollectionConfig] = None,
) -> List[str]:
    """Recursively discover test files below a directory.

    Args:
        directory: Root directory to search.
        config: Naming conventions and excluded directories.

    Returns:
        Sorted list of absolute paths to test files.

    Raises:
        CollectionIOError: If the directory does not exist or is not readable.

    Example:
        >>> files = discover_test_files("/path/to/repo")
        >>> files[0]
        '/path/to/repo/tests/test_api.py'
    """
    config = config or CollectionConfig()
    directory = os.path.abspath(directory)

    if not os.path.isdir(directory):
        raise CollectionIOError(f"Directory not found: {directory}", path=directory)
    if not os.access(directory, os.R_OK | os.X_OK):
        raise CollectionIOError(f"Directory not readable: {directory}", path=directory)

    logger.info("Discovering test files in %s", directory)

    # Rules declared by each visited directory, keyed by its path
    rules_by_dir = {}
    # Lowest precedence first; later lines win within one rule set
    root_rules = load_ignore_rules(directory, (GIT_INFO_EXCLUDE,) + IGNORE_FILE_NAMES)
    if root_rules is not None:
        rules_by_dir[directory] = [root_rules]
    else:
        rules_by_dir[directory] = []

    def on_walk_error(error: OSError) -> None:
        logger.warning("Skipping unreadable path %s: %s", error.filename, error)

    test_files = []
    for root, dirs, files in os.walk(directory, onerror=on_walk_error):
        active_rules = rules_by_dir.pop(root, [])

        kept_dirs = []
        for d in sorted(dirs):
            dir_path = os.path.join(root, d)
            if _is_excluded_dir(d, config) or _is_ignored(dir_path, True, active_rules):
                logger.debug("Pruning directory %s", dir_path)
                continue
            child_rules = load_ignore_rules(dir_path)
            rules_by_dir[dir_path] = (
                active_rules + [child_rules] if child_rules else active_rules
            )
            kept_dirs.append(d)
        dirs[:] = kept_dirs

        for file in files:
            if file.startswith(".") or not is_test_file(file, config):
                continue
            file_path = os.path.join(root, file)
            if not os.path.isfile(file_path):
                continue
            if _is_ignored(file_path, False, active_rules):
                logger.debug("Ignoring file %s", file_path)
                continue
            test_files.append(file_path)

    logger.info("Found %d test files", len(test_files))
    return sorted(test_files)
