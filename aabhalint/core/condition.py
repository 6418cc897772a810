from __future__ import annotations

import re
from typing import Any

from .values import ABSENT, UNKNOWN, contains_unknown, lookup

_UNARY_OPS = {"missing", "present", "absent", "empty"}
_LIST_OPS = {"in", "not_in", "not_ascending", "not_descending"}
_VALID_OPS = {"eq", "ne", "not_matches"} | _UNARY_OPS | _LIST_OPS


def validate_condition(condition: dict) -> list[str]:
    """Return a list of error strings if the condition tree is malformed."""
    errors: list[str] = []
    _validate_node(condition, errors, path="condition")
    return errors


def _validate_node(node: dict, errors: list[str], path: str) -> None:
    if not isinstance(node, dict):
        errors.append(f"{path}: expected dict, got {type(node).__name__}")
        return

    if "all" in node or "any" in node:
        combinator = "all" if "all" in node else "any"
        children = node[combinator]
        if not isinstance(children, list):
            errors.append(f"{path}.{combinator}: expected list, got {type(children).__name__}")
            return
        for i, child in enumerate(children):
            _validate_node(child, errors, path=f"{path}.{combinator}[{i}]")
        return

    # Leaf node: must have field and op; value unless the op is unary
    for key in ("field", "op"):
        if key not in node:
            errors.append(f"{path}: missing required key '{key}'")
    if "field" in node and (not isinstance(node["field"], str) or not node["field"]):
        errors.append(f"{path}: 'field' must be a non-empty dotted path")

    op = node.get("op")
    if op is None:
        return
    if op not in _VALID_OPS:
        errors.append(f"{path}: unknown operator '{op}' (valid: {sorted(_VALID_OPS)})")
        return
    if op not in _UNARY_OPS and "value" not in node:
        errors.append(f"{path}: missing required key 'value'")
        return
    if op in _LIST_OPS and not isinstance(node["value"], (list, tuple)):
        errors.append(f"{path}: '{op}' operator requires a list value, got {type(node['value']).__name__}")
    if op == "not_matches":
        try:
            re.compile(node["value"])
        except (re.error, TypeError) as e:
            errors.append(f"{path}: invalid regular expression {node['value']!r}: {e}")


def evaluate_condition(condition: dict, metadata: Any) -> bool | None:
    """Evaluate an all/any condition tree against annotation metadata.

    Returns None when the outcome depends on a value that could not be
    converted statically. Missing fields make comparisons evaluate to False.
    """
    if "all" in condition:
        results = [evaluate_condition(c, metadata) for c in condition["all"]]
        if False in results:
            return False
        return None if None in results else True
    if "any" in condition:
        results = [evaluate_condition(c, metadata) for c in condition["any"]]
        if True in results:
            return True
        return None if None in results else False

    op = condition["op"]
    actual = lookup(metadata, condition["field"])
    if actual is UNKNOWN:
        return None

    if op in ("missing", "present"):
        # A container holding UNKNOWN parts is non-empty, so it counts as present
        blank = actual is ABSENT or _is_blank(actual)
        return blank if op == "missing" else not blank
    if op == "absent":
        return actual is ABSENT or actual is None
    if op == "empty":
        return actual is not ABSENT and actual is not None and _is_blank(actual)

    if actual is ABSENT:
        return False

    expected = condition.get("value")
    if op in ("eq", "ne", "in", "not_in") and contains_unknown(actual):
        return None
    if op == "eq":
        return actual == expected
    if op == "ne":
        return actual != expected
    if op == "in":
        return actual in expected
    if op == "not_in":
        return actual not in expected
    if op == "not_matches":
        if not isinstance(actual, str):
            return False
        return re.search(expected, actual) is None
    if op in ("not_ascending", "not_descending"):
        return _not_ordered(actual, expected, descending=op == "not_descending")

    raise ValueError(f"Unknown operator: {op}")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _not_ordered(container: Any, keys: list, descending: bool) -> bool | None:
    if not isinstance(container, dict):
        return False
    values = []
    for key in keys:
        v = lookup(container, str(key))
        if v is UNKNOWN:
            return None
        if not isinstance(v, (int, float)) or isinstance(v, bool):
            return False
        values.append(v)
    pairs = list(zip(values, values[1:]))
    if descending:
        return not all(a > b for a, b in pairs)
    return not all(a < b for a, b in pairs)
