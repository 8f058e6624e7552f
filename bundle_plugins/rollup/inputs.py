"""
Combine the scripts found while rendering with the `input` the user already
configured for the bundler.
"""

import enum
from typing import Any, Dict, Iterable, List, Union

BundleInput = Union[None, str, List[str], Dict[str, str]]


class InputShape(enum.Enum):
    ABSENT = "absent"
    LIST = "list"
    MAPPING = "mapping"
    SINGLE = "single"


def classify_input(spec: Any) -> InputShape:
    """Return the shape of a bundler `input` option."""
    if spec is None:
        return InputShape.ABSENT
    if isinstance(spec, (list, tuple)):
        return InputShape.LIST
    if isinstance(spec, dict):
        return InputShape.MAPPING
    if isinstance(spec, str):
        return InputShape.SINGLE
    raise TypeError(f"unsupported bundler input of type {type(spec).__name__}")


def merge_inputs(existing: BundleInput, keys: Iterable[str]) -> Union[List[str], Dict[str, str]]:
    """Return a new input option holding `existing` plus the discovered `keys`.

    The result keeps the shape the user chose: a mapping stays a mapping, with
    discovered scripts keyed by their own path, and never replaces a user entry.
    Anything else becomes a list with the user entries first.
    """
    keys = list(keys)
    shape = classify_input(existing)

    if shape is InputShape.ABSENT:
        return keys
    if shape is InputShape.LIST:
        return [*existing, *keys]
    if shape is InputShape.MAPPING:
        merged = dict(existing)
        for key in keys:
            merged.setdefault(key, key)
        return merged
    if shape is InputShape.SINGLE:
        return [existing, *keys]
    raise AssertionError(f"unhandled input shape {shape}")
