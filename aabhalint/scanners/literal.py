"""Convert literal expression syntax into structured values.

Only statically literal shapes convert. Everything else (names, calls,
interpolated f-strings, spreads) becomes UNKNOWN in its own slot, so one
dynamic field never hides its static siblings.
"""
from __future__ import annotations

import ast
from typing import Any

from ..core.values import UNKNOWN, DynamicKey

_PRIMITIVES = (str, int, float, bool, type(None))


def convert(node: ast.AST) -> Any:
    if isinstance(node, ast.Constant):
        return node.value if isinstance(node.value, _PRIMITIVES) else UNKNOWN

    if isinstance(node, ast.UnaryOp):
        return _convert_unary(node)

    if isinstance(node, ast.JoinedStr):
        # f"..." with no placeholders is just a string
        parts = []
        for value in node.values:
            if not isinstance(value, ast.Constant):
                return UNKNOWN
            parts.append(value.value)
        return "".join(parts)

    if isinstance(node, (ast.List, ast.Tuple)):
        return [UNKNOWN if isinstance(el, ast.Starred) else convert(el) for el in node.elts]

    if isinstance(node, ast.Dict):
        return _convert_dict(node)

    return UNKNOWN


def convert_keywords(keywords: list[ast.keyword]) -> dict:
    """Convert call keyword arguments into a mapping, like a dict literal would."""
    result: dict = {}
    for kw in keywords:
        if kw.arg is None:
            result[DynamicKey("**" + ast.unparse(kw.value))] = UNKNOWN
        else:
            result[kw.arg] = convert(kw.value)
    return result


def _convert_unary(node: ast.UnaryOp) -> Any:
    operand = convert(node.operand)
    is_number = isinstance(operand, (int, float)) and not isinstance(operand, bool)
    if isinstance(node.op, ast.USub) and is_number:
        return -operand
    if isinstance(node.op, ast.UAdd) and is_number:
        return +operand
    if isinstance(node.op, ast.Not) and isinstance(operand, bool):
        return not operand
    return UNKNOWN


def _convert_dict(node: ast.Dict) -> dict:
    result: dict = {}
    for key_node, value_node in zip(node.keys, node.values):
        if key_node is None:
            result[DynamicKey("**" + ast.unparse(value_node))] = UNKNOWN
            continue
        key = _static_key(key_node)
        if key is None:
            result[DynamicKey("[" + ast.unparse(key_node) + "]")] = UNKNOWN
        else:
            result[key] = convert(value_node)
    return result


def _static_key(node: ast.AST) -> str | None:
    if not isinstance(node, ast.Constant):
        return None
    if isinstance(node.value, str):
        return node.value
    # Numeric/bool/None keys are stringified, as an object property name would be
    if isinstance(node.value, _PRIMITIVES):
        return str(node.value)
    return None
