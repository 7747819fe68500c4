"""Tests for node id construction."""

import os

from core.node_id import create_node_id, relative_node_path


def test_create_node_id_module_level() -> None:
    assert create_node_id("tests/test_a.py", "test_one") == "tests/test_a.py::test_one"


def test_create_node_id_with_class() -> None:
    node_id = create_node_id("tests/test_a.py", "test_one", class_name="TestA")
    assert node_id == "tests/test_a.py::TestA::test_one"


def test_relative_node_path_uses_forward_slashes() -> None:
    root = os.path.join(os.sep, "repo")
    path = os.path.join(root, "pkg", "tests", "test_d.py")
    assert relative_node_path(path, root) == "pkg/tests/test_d.py"


def test_relative_node_path_without_root_keeps_path() -> None:
    assert relative_node_path("test_e.py") == "test_e.py"
