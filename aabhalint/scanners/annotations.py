from __future__ import annotations

import ast
from typing import Mapping

from ..core.models import AnnotationRecord, SourceSpan, SourceText
from ..core.values import UNKNOWN
from .literal import convert, convert_keywords


def extract_annotations(
    class_node: ast.ClassDef,
    source: SourceText,
    annotations: Mapping[str, str],
) -> list[AnnotationRecord]:
    """Return a record for every whitelisted decorator on the class, in source order.

    ``annotations`` maps decorator names to the kind they declare. A matched
    decorator always yields a record, even when its argument is not a literal.
    """
    records: list[AnnotationRecord] = []
    for decorator in class_node.decorator_list:
        name = _decorator_name(decorator)
        if name is None or name not in annotations:
            continue

        start = source.offset(decorator.lineno, decorator.col_offset)
        end = source.offset(decorator.end_lineno, decorator.end_col_offset)
        records.append(AnnotationRecord(
            kind=annotations[name],
            name=name,
            class_name=class_node.name,
            metadata=_decorator_metadata(decorator),
            span=SourceSpan(start, end),
            source=source,
        ))
    return records


def _decorator_name(node: ast.expr) -> str | None:
    """Name of ``@Name``, ``@pkg.Name`` and their called forms."""
    if isinstance(node, ast.Call):
        node = node.func
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def _decorator_metadata(node: ast.expr):
    if not isinstance(node, ast.Call):
        return {}
    if node.args:
        first = node.args[0]
        return UNKNOWN if isinstance(first, ast.Starred) else convert(first)
    if node.keywords:
        return convert_keywords(node.keywords)
    return {}
