"""Tests for the run_collection command-line front-end."""

import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

import run_collection


class TestRunCollection(unittest.TestCase):

    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        self.root = Path(self._tmpdir.name)
        patcher = patch.object(run_collection, "configure_structured_logging")
        patcher.start()
        self.addCleanup(patcher.stop)
        env = patch.dict(
            os.environ,
            {k: v for k, v in os.environ.items() if not k.startswith("COLLECTION_")},
            clear=True,
        )
        env.start()
        self.addCleanup(env.stop)

    def tearDown(self):
        self._tmpdir.cleanup()

    def write(self, relative, content):
        path = self.root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    def run_main(self, *args):
        out = io.StringIO()
        with redirect_stdout(out):
            status = run_collection.main(["--root", str(self.root), *args])
        return status, out.getvalue()

    def test_text_output_lists_node_ids(self):
        self.write(
            "pkg/test_a.py",
            "import pytest\n\n"
            "@pytest.fixture\n"
            "def db():\n"
            "    return 1\n\n"
            "class TestA:\n"
            "    def test_one(self, db):\n"
            "        pass\n",
        )

        status, output = self.run_main()

        self.assertEqual(status, 0)
        lines = output.splitlines()
        self.assertIn("pkg/test_a.py::TestA::test_one", lines)
        self.assertIn("<fixture db scope=function>", lines)
        self.assertEqual(lines[-1], "collected 1 tests, 1 fixtures in 1 files")

    def test_json_output(self):
        self.write("test_b.py", "def test_b():\n    pass\n")

        status, output = self.run_main("--json")

        self.assertEqual(status, 0)
        payload = json.loads(output)
        self.assertEqual(payload["files"][0]["tests"][0]["node_id"], "test_b.py::test_b")
        self.assertEqual(payload["failures"], [])

    def test_failures_set_exit_status(self):
        self.write("test_bad.py", "def test_bad(:\n")
        self.write("test_good.py", "def test_good():\n    pass\n")

        status, output = self.run_main()

        self.assertEqual(status, 1)
        self.assertIn("test_good.py::test_good", output)
        self.assertIn("ERROR", output)

    def test_fail_fast_returns_error_status(self):
        self.write("test_bad.py", "def test_bad(:\n")

        status, output = self.run_main("--fail-fast")

        self.assertEqual(status, 1)
        self.assertEqual(output, "")

    def test_invalid_worker_count_is_config_error(self):
        status, _ = self.run_main("--max-workers", "0")
        self.assertEqual(status, 2)

    def test_missing_root_is_collection_error(self):
        status, _ = self.run_main("--root", str(self.root / "missing"))
        self.assertEqual(status, 1)

    def test_unexpected_value_error_during_collection_is_not_config_error(self):
        with patch.object(
            run_collection, "collect_tests", side_effect=ValueError("bad node")
        ):
            status, output = self.run_main("--fail-fast")

        self.assertEqual(status, 1)
        self.assertEqual(output, "")


if __name__ == "__main__":
    unittest.main()
