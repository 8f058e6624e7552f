"""
Tests for merging discovered scripts into the bundler input option.
"""

import pytest

from bundle_plugins.rollup.inputs import InputShape, classify_input, merge_inputs


class TestMergeInputs:
    """Test that the merged input keeps the shape the user configured."""

    def test_absent(self):
        """Test: No configured input gives the discovered keys."""
        assert merge_inputs(None, ["a.js", "b.js"]) == ["a.js", "b.js"]

    def test_list(self):
        """Test: A list gets the discovered keys appended in order."""
        existing = ["main.js"]
        assert merge_inputs(existing, ["a.js", "b.js"]) == ["main.js", "a.js", "b.js"]
        assert existing == ["main.js"]

    def test_mapping(self):
        """Test: A mapping gets identity entries for each discovered key."""
        existing = {"main": "main.js"}
        merged = merge_inputs(existing, ["extra.js"])

        assert merged == {"main": "main.js", "extra.js": "extra.js"}
        assert existing == {"main": "main.js"}

    def test_mapping_keeps_user_entries(self):
        """Test: A discovered key never replaces a user entry of the same name."""
        merged = merge_inputs({"a.js": "src/custom.js"}, ["a.js", "b.js"])
        assert merged == {"a.js": "src/custom.js", "b.js": "b.js"}

    def test_single(self):
        """Test: A bare string becomes the head of a list."""
        assert merge_inputs("main.js", ["a.js"]) == ["main.js", "a.js"]

    def test_accepts_dict_keys(self):
        """Test: Keys may come straight from a registry view."""
        keys = {"a.js": "a-1.js", "b.js": "b-2.js"}.keys()
        assert merge_inputs(None, keys) == ["a.js", "b.js"]


class TestClassifyInput:
    """Test input shape detection."""

    def test_shapes(self):
        """Test: Every supported value maps to its shape."""
        assert classify_input(None) is InputShape.ABSENT
        assert classify_input(["a.js"]) is InputShape.LIST
        assert classify_input(("a.js",)) is InputShape.LIST
        assert classify_input({"a": "a.js"}) is InputShape.MAPPING
        assert classify_input("a.js") is InputShape.SINGLE

    def test_unsupported(self):
        """Test: Other values are rejected."""
        with pytest.raises(TypeError):
            classify_input(42)
