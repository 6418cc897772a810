from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from typing import Any


class SourceText:
    """Immutable source buffer with offset <-> line/column conversion."""

    def __init__(self, text: str, path: str = "<string>") -> None:
        self.text = text
        self.path = path
        self._line_starts = [0]
        for i, ch in enumerate(text):
            if ch == "\n":
                self._line_starts.append(i + 1)

    def offset(self, lineno: int, col_offset: int) -> int:
        """Convert an ast position (1-based line, UTF-8 byte column) to a character offset."""
        start = self._line_starts[lineno - 1]
        end = self._line_starts[lineno] if lineno < len(self._line_starts) else len(self.text)
        line = self.text[start:end]
        prefix = line.encode("utf-8")[:col_offset].decode("utf-8", errors="ignore")
        return start + len(prefix)

    def position(self, offset: int) -> tuple[int, int]:
        """Return the 1-based (line, column) of a character offset."""
        index = bisect.bisect_right(self._line_starts, offset) - 1
        return index + 1, offset - self._line_starts[index] + 1

    def segment(self, span: SourceSpan) -> str:
        return self.text[span.start:span.end]


@dataclass(frozen=True)
class SourceSpan:
    start: int
    end: int


@dataclass(frozen=True)
class Location:
    path: str
    line: int
    column: int
    end_line: int
    end_column: int


@dataclass(frozen=True)
class AnnotationRecord:
    """One whitelisted decorator on a class declaration, with its converted metadata."""
    kind: str
    name: str
    class_name: str
    metadata: Any
    span: SourceSpan
    source: SourceText = field(repr=False, compare=False)

    @property
    def text(self) -> str:
        return self.source.segment(self.span)

    @property
    def location(self) -> Location:
        line, column = self.source.position(self.span.start)
        end_line, end_column = self.source.position(self.span.end)
        return Location(
            path=self.source.path,
            line=line,
            column=column,
            end_line=end_line,
            end_column=end_column,
        )


@dataclass(frozen=True)
class FixRequest:
    anchor: str
    text: str
    skip_if: str | None = None


@dataclass(frozen=True)
class Fix:
    insert_at_offset: int
    text: str


@dataclass
class Finding:
    rule_id: str
    message_id: str
    message: str
    severity: str
    confidence: str
    location: Location
    data: dict[str, Any] = field(default_factory=dict)
    fix_requests: tuple[FixRequest, ...] = ()
    fix: Fix | None = None

    @property
    def autofix_available(self) -> bool:
        return self.fix is not None

    def as_dict(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "message_id": self.message_id,
            "message": self.message,
            "severity": self.severity,
            "confidence": self.confidence,
            "location": {
                "path": self.location.path,
                "line": self.location.line,
                "column": self.location.column,
                "end_line": self.location.end_line,
                "end_column": self.location.end_column,
            },
            "data": self.data,
            "fix": (
                {"insert_at_offset": self.fix.insert_at_offset, "text": self.fix.text}
                if self.fix is not None else None
            ),
        }
