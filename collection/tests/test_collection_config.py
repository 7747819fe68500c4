"""Tests for collection config loading."""

import os
import tempfile
import unittest
from unittest.mock import patch

from core.startup_config import ConfigValidationError
from collection.config import (
    DEFAULT_FIXTURE_MARKERS,
    DEFAULT_TEST_FILE_PATTERNS,
    CollectionConfig,
    load_collection_config,
)

_ENV_KEYS = (
    "COLLECTION_MAX_WORKERS",
    "COLLECTION_FAIL_FAST",
    "COLLECTION_ALLOW_SYNTAX_ERRORS",
    "STRICT_CONFIG_VALIDATION",
)


def _clean_env():
    return {key: value for key, value in os.environ.items() if key not in _ENV_KEYS}


class TestCollectionConfig(unittest.TestCase):
    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()

    def tearDown(self) -> None:
        self._tmpdir.cleanup()

    def _write_config(self, content: str) -> str:
        path = os.path.join(self._tmpdir.name, "collection.yml")
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        return path

    def test_defaults(self) -> None:
        config = CollectionConfig()
        self.assertEqual(config.test_file_patterns, DEFAULT_TEST_FILE_PATTERNS)
        self.assertEqual(config.test_class_prefix, "Test")
        self.assertEqual(config.test_function_prefix, "test")
        self.assertIn(("pytest", "fixture"), config.fixture_markers)
        self.assertTrue(config.continue_on_error)

    def test_rejects_zero_workers(self) -> None:
        with self.assertRaises(ValueError):
            CollectionConfig(max_workers=0)

    def test_yaml_section_overrides_defaults(self) -> None:
        path = self._write_config(
            "collection:\n"
            "  test_files: ['check_*.py']\n"
            "  test_class_prefix: Check\n"
            "  test_function_prefix: check_\n"
            "  fixture_markers: ['mylib.fixture']\n"
            "  max_workers: 3\n"
            "  continue_on_error: false\n"
        )
        with patch.dict(os.environ, _clean_env(), clear=True):
            config = load_collection_config(path)

        self.assertEqual(config.test_file_patterns, ("check_*.py",))
        self.assertEqual(config.test_class_prefix, "Check")
        self.assertEqual(config.test_function_prefix, "check_")
        self.assertEqual(config.fixture_markers, frozenset({("mylib", "fixture")}))
        self.assertEqual(config.max_workers, 3)
        self.assertFalse(config.continue_on_error)

    def test_environment_overrides_yaml(self) -> None:
        path = self._write_config("collection:\n  max_workers: 3\n")
        env = _clean_env()
        env.update({
            "COLLECTION_MAX_WORKERS": "5",
            "COLLECTION_FAIL_FAST": "true",
            "COLLECTION_ALLOW_SYNTAX_ERRORS": "1",
        })
        with patch.dict(os.environ, env, clear=True):
            config = load_collection_config(path)

        self.assertEqual(config.max_workers, 5)
        self.assertFalse(config.continue_on_error)
        self.assertTrue(config.allow_syntax_errors)

    def test_non_strict_invalid_value_uses_default(self) -> None:
        path = self._write_config("collection:\n  max_workers: many\n  test_files: tests\n")
        with patch.dict(os.environ, _clean_env(), clear=True):
            config = load_collection_config(path, strict=False)

        self.assertEqual(config.max_workers, CollectionConfig().max_workers)
        self.assertEqual(config.test_file_patterns, DEFAULT_TEST_FILE_PATTERNS)

    def test_strict_invalid_value_raises(self) -> None:
        path = self._write_config("collection:\n  max_workers: many\n")
        with patch.dict(os.environ, _clean_env(), clear=True):
            with self.assertRaises(ConfigValidationError):
                load_collection_config(path, strict=True)

    def test_strict_missing_file_raises(self) -> None:
        with patch.dict(os.environ, _clean_env(), clear=True):
            with self.assertRaises(ConfigValidationError):
                load_collection_config("/definitely/missing.yml", strict=True)

    def test_missing_section_keeps_defaults(self) -> None:
        path = self._write_config("other:\n  key: value\n")
        with patch.dict(os.environ, _clean_env(), clear=True):
            config = load_collection_config(path)

        self.assertEqual(config.fixture_markers, DEFAULT_FIXTURE_MARKERS)


if __name__ == "__main__":
    unittest.main()
