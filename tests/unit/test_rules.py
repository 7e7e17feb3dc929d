"""Unit tests for Scala rules helper functions."""

from __future__ import annotations

import pytest

pytest.importorskip("pants")

from pants.build_graph.address import Address  # noqa: E402

from scala.rules import _source_set_name, _target_output_dir  # noqa: E402


class TestTargetOutputDir:
    """Tests for _target_output_dir helper function."""

    def test_nested_spec_path(self) -> None:
        """Test that output mirrors the target directory."""
        address = Address("greeter/core", target_name="main")
        assert _target_output_dir(address, "main") == "__pants_scala__/classes/scala/greeter/core/main"

    def test_root_spec_path(self) -> None:
        """Test that root-level targets get a stable directory name."""
        assert _target_output_dir(Address("", target_name="test"), "test") == "__pants_scala__/classes/scala/_root_/test"


class TestSourceSetName:
    """Tests for _source_set_name helper function."""

    def test_explicit_name_wins(self) -> None:
        assert _source_set_name(Address("greeter", target_name="unit"), "test") == "test"

    def test_defaults_to_target_name(self) -> None:
        assert _source_set_name(Address("greeter", target_name="integrationTest"), None) == "integrationTest"

    def test_defaults_to_directory_name(self) -> None:
        assert _source_set_name(Address("greeter/main"), None) == "main"
