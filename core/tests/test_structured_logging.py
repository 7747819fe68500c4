"""Tests for run correlation logging context."""

import logging
import unittest

from core.structured_logging import (
    _RunContextFilter,
    file_scope,
    get_file,
    get_phase,
    get_run_id,
    phase_scope,
    set_run_id,
)


class TestStructuredLogging(unittest.TestCase):
    def test_set_run_id_generates_value(self) -> None:
        run_id = set_run_id()
        self.assertTrue(run_id)
        self.assertEqual(get_run_id(), run_id)
        self.assertEqual(set_run_id("fixed"), "fixed")

    def test_scopes_restore_previous_values(self) -> None:
        self.assertEqual(get_phase(), "-")
        with phase_scope("visit"):
            with file_scope("/r/test_a.py"):
                self.assertEqual(get_phase(), "visit")
                self.assertEqual(get_file(), "/r/test_a.py")
            self.assertEqual(get_file(), "-")
        self.assertEqual(get_phase(), "-")

    def test_filter_injects_context_fields(self) -> None:
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
        set_run_id("run-1")
        with phase_scope("discovery"), file_scope("/r/test_b.py"):
            self.assertTrue(_RunContextFilter().filter(record))

        self.assertEqual(record.run_id, "run-1")
        self.assertEqual(record.phase, "discovery")
        self.assertEqual(record.file, "/r/test_b.py")


if __name__ == "__main__":
    unittest.main()
