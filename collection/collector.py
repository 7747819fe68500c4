"""
High-level orchestrator for static test collection.

This module provides the main entry points for collecting tests from a
single file or an entire directory tree, and the aggregation step that
joins per-file results in discovery order.
"""

import contextvars
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from core.structured_logging import file_scope, phase_scope
from collection.config import CollectionConfig
from collection.discovery import discover_test_files
from collection.errors import CollectionError
from collection.models import CollectedResult, FileFailure, TestFileContents
from collection.parser import parse_file
from collection.visitor import visit_source

logger = logging.getLogger(__name__)


def collect_file(
    file_path: str,
    config: Optional[CollectionConfig] = None,
) -> TestFileContents:
    """Collect tests and fixtures from a single Python file.

    Args:
        file_path: Absolute or relative path to the file.
        config: Naming conventions and parse policy.

    Returns:
        The file's tests, fixtures and diagnostics.

    Raises:
        CollectionIOError: If the file cannot be read.
        SourceParseError: If the file cannot be parsed.
        StructuralError: If the tree has an unexpected root.

    Example:
        >>> contents = collect_file("tests/test_api.py")
        >>> [test.name for test in contents.tests]
        ['test_get', 'test_post']
    """
    config = config or CollectionConfig()
    file_path = os.path.abspath(file_path)

    with file_scope(file_path):
        source = parse_file(file_path, allow_syntax_errors=config.allow_syntax_errors)
        contents = visit_source(source, config)

    logger.info(
        "Collected %d tests and %d fixtures from %s",
        len(contents.tests),
        len(contents.fixtures),
        file_path,
    )
    return contents


def aggregate_results(
    root: str,
    file_results: Sequence[TestFileContents],
    failures: Sequence[FileFailure] = (),
) -> CollectedResult:
    """Join per-file results into the final collection.

    Both sequences keep the order they are given in; nothing is
    deduplicated, so equally named tests in different files or classes are
    all retained.
    """
    result = CollectedResult(root=root, files=tuple(file_results), failures=tuple(failures))
    logger.info("Collection complete: %s", result.stats)
    return result


def collect_tests(
    root: str,
    config: Optional[CollectionConfig] = None,
) -> CollectedResult:
    """Collect tests from every test file below ``root``.

    Files are discovered sequentially, then read, parsed and visited on a
    thread pool bounded by ``config.max_workers``. The result is assembled
    in discovery order once every file has finished.

    With ``config.continue_on_error`` (the default) a file that fails is
    recorded as a ``FileFailure`` and the run continues. Otherwise the first
    failure in discovery order is raised and pending files are cancelled.

    Args:
        root: Directory to collect from.
        config: Naming conventions and run policy.

    Returns:
        The collected result.

    Raises:
        CollectionIOError: If ``root`` is missing or unreadable.
        CollectionError: The first per-file error, in fail-fast mode.

    Example:
        >>> result = collect_tests("/path/to/repo")
        >>> print(f"Collected {result.stats.tests_collected} tests")
    """
    config = config or CollectionConfig()
    root = os.path.abspath(root)

    with phase_scope("discovery"):
        test_files = discover_test_files(root, config)

    if not test_files:
        logger.warning("No test files found in %s", root)
        return aggregate_results(root, [], [])

    logger.info(
        "Collecting from %d files with up to %d workers",
        len(test_files),
        config.max_workers,
    )

    file_results: List[TestFileContents] = []
    failures: List[FileFailure] = []

    with phase_scope("visit"):
        with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
            futures = [
                executor.submit(contextvars.copy_context().run, collect_file, path, config)
                for path in test_files
            ]
            for file_path, future in zip(test_files, futures):
                try:
                    file_results.append(future.result())

                except CollectionError as e:
                    logger.error("Failed to collect %s: %s", file_path, e)
                    if not config.continue_on_error:
                        for pending in futures:
                            pending.cancel()
                        raise
                    failures.append(FileFailure.from_error(file_path, e))

                except Exception as e:
                    logger.error(
                        "Unexpected error collecting %s: %s", file_path, e, exc_info=True
                    )
                    if not config.continue_on_error:
                        for pending in futures:
                            pending.cancel()
                        raise
                    failures.append(FileFailure.from_error(file_path, e))

    return aggregate_results(root, file_results, failures)
