"""Structured values produced by literal conversion, and safe field access over them."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class _Sentinel:
    __slots__ = ("_name",)

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name

    def __copy__(self) -> _Sentinel:
        return self

    def __deepcopy__(self, memo: dict) -> _Sentinel:
        return self


# The expression exists in source but has no static value.
UNKNOWN = _Sentinel("UNKNOWN")

# Returned by lookup() when a field is not there at all.
ABSENT = _Sentinel("ABSENT")


@dataclass(frozen=True)
class DynamicKey:
    """Mapping key for an entry whose name is not static (computed key or ** spread)."""
    text: str

    def __str__(self) -> str:
        return self.text


def has_dynamic_entries(mapping: dict) -> bool:
    return any(isinstance(k, DynamicKey) for k in mapping)


def lookup(value: Any, dotted_path: str) -> Any:
    """Traverse nested mappings using a dotted key path.

    Returns ABSENT when the path leads nowhere and UNKNOWN when a value on the
    way could not be converted, or when a mapping with dynamic entries might
    supply the key.
    """
    current: Any = value
    for key in dotted_path.split("."):
        if current is UNKNOWN:
            return UNKNOWN
        if not isinstance(current, dict):
            return ABSENT
        if key in current:
            current = current[key]
        elif has_dynamic_entries(current):
            return UNKNOWN
        else:
            return ABSENT
    return current


def contains_unknown(value: Any) -> bool:
    if value is UNKNOWN:
        return True
    if isinstance(value, list):
        return any(contains_unknown(v) for v in value)
    if isinstance(value, dict):
        return any(contains_unknown(v) for v in value.values())
    return False


def to_plain(value: Any) -> Any:
    """Return a JSON-safe copy: UNKNOWN becomes "<unknown>", dynamic keys their source text."""
    if value is UNKNOWN:
        return "<unknown>"
    if isinstance(value, list):
        return [to_plain(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_plain(v) for k, v in value.items()}
    return value
