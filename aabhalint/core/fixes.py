"""Resolve fix requests against annotation source text and apply the resulting insertions."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable

from .models import AnnotationRecord, Fix, FixRequest

_INDENT_RE = re.compile(r"[ \t]*")


@dataclass
class FixOutcome:
    text: str
    applied: list[Fix] = field(default_factory=list)
    rejected: list[Fix] = field(default_factory=list)


def generate_fix(record: AnnotationRecord, request: FixRequest) -> Fix | None:
    """Locate the request's anchor in the annotation text and return an insertion after it.

    Returns None when the anchor is absent or the ``skip_if`` guard matches.
    The insertion text is not syntax-checked.
    """
    segment = record.text
    if request.skip_if and re.search(request.skip_if, segment):
        return None

    match = re.search(request.anchor, segment)
    if match is None:
        return None

    offset = record.span.start + match.end()
    indent = detect_indentation(record.source.text, offset)
    return Fix(insert_at_offset=offset, text=request.text.replace("\n", "\n" + indent))


def resolve_fix(record: AnnotationRecord, requests: Iterable[FixRequest]) -> Fix | None:
    """Return the fix for the first request whose anchor is found."""
    for request in requests:
        fix = generate_fix(record, request)
        if fix is not None:
            return fix
    return None


def detect_indentation(text: str, offset: int) -> str:
    """Return the leading whitespace of the line containing ``offset``."""
    line_start = text.rfind("\n", 0, offset) + 1
    return _INDENT_RE.match(text, line_start).group()


def apply_fixes(text: str, fixes: Iterable[Fix]) -> FixOutcome:
    """Apply non-conflicting insertions to ``text``.

    A second insertion at an offset already claimed, or one outside the text,
    is rejected; the caller may re-run to pick it up.
    """
    outcome = FixOutcome(text=text)
    claimed: set[int] = set()
    for fix in sorted(fixes, key=lambda f: f.insert_at_offset):
        if fix.insert_at_offset in claimed or not 0 <= fix.insert_at_offset <= len(text):
            outcome.rejected.append(fix)
            continue
        claimed.add(fix.insert_at_offset)
        outcome.applied.append(fix)

    result = text
    for fix in reversed(outcome.applied):
        result = result[:fix.insert_at_offset] + fix.text + result[fix.insert_at_offset:]
    outcome.text = result
    return outcome
