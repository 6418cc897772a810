"""Python source scanner: parses files and extracts annotation records from class declarations.

Files that cannot be read or parsed are skipped with a warning rather than
raising an error.
"""
from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Mapping

from ..core.models import AnnotationRecord, SourceText
from .annotations import extract_annotations

logger = logging.getLogger(__name__)

_SKIP_DIRS = {".git", ".hg", ".tox", ".venv", "venv", "__pycache__", "node_modules", "build", "dist"}


@dataclass
class ScannedFile:
    source: SourceText
    records: list[AnnotationRecord] = field(default_factory=list)

    @property
    def path(self) -> str:
        return self.source.path


class PythonSourceScanner:
    """Extracts annotation records from every class declaration in Python files."""

    name = "python_source"

    def __init__(self, annotations: Mapping[str, str]) -> None:
        self._annotations = dict(annotations)

    def scan(self, paths: list[Path]) -> tuple[list[ScannedFile], list[str]]:
        """Scan the given files. Returns (scanned files, warnings)."""
        scanned: list[ScannedFile] = []
        warnings: list[str] = []

        for path in paths:
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                warnings.append(f"{path}: cannot read file ({e}); skipping")
                continue

            try:
                scanned.append(self.scan_text(text, str(path)))
            except SyntaxError as e:
                warnings.append(f"{path}:{e.lineno}: syntax error ({e.msg}); skipping")

        return scanned, warnings

    def scan_text(self, text: str, path: str = "<string>") -> ScannedFile:
        """Parse one source text. Raises SyntaxError when it is not valid Python."""
        tree = ast.parse(text, filename=path)
        source = SourceText(text, path)
        result = ScannedFile(source=source)
        for class_node in iter_class_declarations(tree):
            result.records.extend(extract_annotations(class_node, source, self._annotations))
        logger.debug("%s: %d annotation record(s)", path, len(result.records))
        return result


def iter_class_declarations(tree: ast.AST) -> Iterator[ast.ClassDef]:
    """Yield every class declaration in the tree, nested ones included, in source order."""
    classes = [node for node in ast.walk(tree) if isinstance(node, ast.ClassDef)]
    classes.sort(key=lambda node: (node.lineno, node.col_offset))
    yield from classes


def collect_source_files(paths: list[Path]) -> list[Path]:
    """Expand directories into the ``*.py`` files beneath them.

    Explicit file arguments are kept whatever their suffix. Results are
    de-duplicated and keep argument order; directory contents are sorted.
    """
    resolved: list[Path] = []
    seen: set[Path] = set()

    def _add(p: Path) -> None:
        key = p.resolve()
        if key not in seen:
            seen.add(key)
            resolved.append(p)

    for path in paths:
        if path.is_dir():
            for candidate in sorted(path.rglob("*.py")):
                if _SKIP_DIRS.isdisjoint(candidate.relative_to(path).parts[:-1]):
                    _add(candidate)
        else:
            _add(path)

    return resolved
