#!/usr/bin/env python3
"""
Command-line front-end for static test collection.

Collects pytest tests and fixtures below a directory without importing any
of the code, then prints the node ids (or the full result as JSON).

Usage:
    python run_collection.py --root ./tests
    python run_collection.py --root . --json > collected.json
    python run_collection.py --root . --fail-fast --max-workers 4
"""

import argparse
import json
import logging
import sys
import time
from dataclasses import replace
from typing import List, Optional

from core.startup_config import ConfigValidationError
from core.structured_logging import configure_structured_logging, set_run_id
from collection.collector import collect_tests
from collection.config import load_collection_config
from collection.errors import CollectionError
from collection.models import CollectedResult

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Static pytest collection (no imports, no execution)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python run_collection.py --root ./tests\n"
            "  python run_collection.py --root . --json\n"
        ),
    )

    parser.add_argument(
        "--root",
        default=".",
        help="Directory to collect from. Default: current directory.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML config file. Default: collection.yml if present.",
    )
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        default=False,
        help="Abort on the first file that cannot be collected.",
    )
    parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Maximum number of files visited concurrently.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print the full collected result as JSON.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Enable debug logging.",
    )

    return parser.parse_args(argv)


def render_text(result: CollectedResult) -> str:
    """Render collected items as one line per test, fixture and problem."""
    lines = []
    for contents in result.files:
        for test in contents.tests:
            lines.append(test.node_id(result.root))
        for fixture in contents.fixtures:
            lines.append(f"<fixture {fixture.name} scope={fixture.scope.value}>")
        for diagnostic in contents.diagnostics:
            lines.append(
                f"{contents.path}:{diagnostic.line}: "
                f"{diagnostic.kind.value}: {diagnostic.message}"
            )
    for failure in result.failures:
        lines.append(f"ERROR {failure.path}: {failure.kind.value}: {failure.message}")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit status."""
    args = parse_args(argv)
    configure_structured_logging(logging.DEBUG if args.verbose else logging.WARNING)
    run_id = set_run_id()

    try:
        config = load_collection_config(args.config)
        if args.fail_fast:
            config = replace(config, continue_on_error=False)
        if args.max_workers is not None:
            config = replace(config, max_workers=args.max_workers)
    except (ConfigValidationError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 2

    try:
        t0 = time.time()
        result = collect_tests(args.root, config)
        logger.info(
            "Run %s collected in %.2fs: %s", run_id, time.time() - t0, result.stats
        )
    except CollectionError as e:
        logger.error(f"Collection failed: {e}")
        return 1
    except Exception as e:
        logger.error(f"Collection failed: {e}", exc_info=True)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        output = render_text(result)
        if output:
            print(output)
        print(
            f"collected {result.stats.tests_collected} tests, "
            f"{result.stats.fixtures_collected} fixtures "
            f"in {result.stats.files_processed} files"
        )

    return 1 if result.has_failures else 0


if __name__ == "__main__":
    sys.exit(main())
