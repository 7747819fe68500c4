"""Tests for startup config validation helpers."""

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from core.startup_config import (
    ConfigValidationError,
    env_flag,
    env_int,
    get_config_section,
    load_yaml_config,
    read_typed_option,
)


class TestStartupConfig(unittest.TestCase):
    def _write_yaml(self, content: str) -> str:
        handle = tempfile.NamedTemporaryFile(mode="w", suffix=".yml", delete=False)
        handle.write(content)
        handle.flush()
        handle.close()
        self.addCleanup(lambda: Path(handle.name).unlink(missing_ok=True))
        return handle.name

    def test_load_non_strict_missing_returns_empty(self) -> None:
        payload = load_yaml_config("/definitely/missing.yml", strict=False)
        self.assertEqual(payload, {})

    def test_load_strict_missing_raises(self) -> None:
        with self.assertRaises(ConfigValidationError):
            load_yaml_config("/definitely/missing.yml", strict=True)

    def test_load_strict_invalid_yaml_raises(self) -> None:
        path = self._write_yaml("collection: [unclosed\n")
        with self.assertRaises(ConfigValidationError):
            load_yaml_config(path, strict=True)

    def test_load_non_mapping_payload(self) -> None:
        path = self._write_yaml("- just\n- a list\n")
        self.assertEqual(load_yaml_config(path, strict=False), {})
        with self.assertRaises(ConfigValidationError):
            load_yaml_config(path, strict=True)

    def test_get_config_section(self) -> None:
        payload = {"collection": {"max_workers": 2}, "broken": "scalar"}
        self.assertEqual(get_config_section(payload, "collection"), {"max_workers": 2})
        self.assertEqual(get_config_section(payload, "missing"), {})
        self.assertEqual(get_config_section(payload, "broken"), {})
        with self.assertRaises(ConfigValidationError):
            get_config_section(payload, "broken", strict=True)

    def test_read_typed_option_rejects_bool_for_int(self) -> None:
        section = {"max_workers": True}
        self.assertEqual(read_typed_option(section, "max_workers", int, 4), 4)
        with self.assertRaises(ConfigValidationError):
            read_typed_option(section, "max_workers", int, 4, strict=True)

    def test_read_typed_option_list_of_strings(self) -> None:
        section = {"good": ["a", "b"], "bad": ["a", 1]}
        self.assertEqual(read_typed_option(section, "good", list, []), ["a", "b"])
        self.assertEqual(read_typed_option(section, "bad", list, ["x"]), ["x"])

    def test_env_int(self) -> None:
        with patch.dict(os.environ, {"SOME_INT": "7", "BAD_INT": "seven"}):
            self.assertEqual(env_int("SOME_INT", 1), 7)
            self.assertEqual(env_int("BAD_INT", 1), 1)
            with self.assertRaises(ConfigValidationError):
                env_int("BAD_INT", 1, strict=True)

    def test_env_flag(self) -> None:
        with patch.dict(os.environ, {"FLAG_ON": "Yes", "FLAG_OFF": "0"}):
            self.assertTrue(env_flag("FLAG_ON"))
            self.assertFalse(env_flag("FLAG_OFF", default=True))
        self.assertTrue(env_flag("FLAG_DEFINITELY_UNSET_XYZ", default=True))


if __name__ == "__main__":
    unittest.main()
