"""
Diagnostics for tree passes.

Two channels:
- warnings, collected per run and handed back to the caller;
- fatal syntax errors, raised at once and ending the run.

Both are keyed to a node's source location when it has one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, NoReturn, Optional

from .tree import Node, SourceLocation, node_loc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WarningRecord:
    location: Optional[SourceLocation]
    filename: str
    description: str

    def __str__(self) -> str:
        if self.location is None:
            return f"{self.filename}: warning: {self.description}"
        return f"{self.filename}:{self.location.start}: warning: {self.description}"


def format_error(description: str, location: Optional[SourceLocation], source: str, filename: str) -> str:
    """
    Render an error as a header line plus the offending source line with a
    caret underline. Falls back to the header alone when the location is
    missing or points past the end of ``source``.
    """
    if location is None:
        return f"{filename}: error: {description}"

    start, end = location.start, location.end
    header = f"{filename}:{start.line}:{start.column}: error: {description}"

    lines = source.splitlines()
    if not 1 <= start.line <= len(lines):
        return header

    text = lines[start.line - 1].expandtabs(1)
    width = 1
    if end.line == start.line and end.column > start.column:
        width = end.column - start.column

    gutter = f"{start.line} | "
    caret = " " * (len(gutter) + start.column) + "^" * width
    return "\n".join((header, gutter + text, caret))


class PassSyntaxError(SyntaxError):
    """Fatal error raised from inside a pass; aborts the whole run."""

    def __init__(self, description: str, location: Optional[SourceLocation] = None, source: str = "", filename: str = "<unknown>"):
        super().__init__(description)
        self.description = description
        self.location = location
        self.source = source
        self.filename = filename
        self.lineno = location.start.line if location is not None else None
        # SyntaxError offsets are 1-based.
        self.offset = location.start.column + 1 if location is not None else None
        self.end_lineno = location.end.line if location is not None else None
        self.end_offset = location.end.column + 1 if location is not None else None
        self.text = _source_line(source, self.lineno)

    def __str__(self) -> str:
        return format_error(self.description, self.location, self.source, self.filename)


def _source_line(source: str, lineno: Optional[int]) -> Optional[str]:
    if lineno is None:
        return None

    lines = source.splitlines()
    if 1 <= lineno <= len(lines):
        return lines[lineno - 1]

    return None


class Diagnostics:
    """Warning list and error factory bound to one run's source and filename."""

    def __init__(self, source: str = "", filename: str = "<unknown>"):
        self.source = source
        self.filename = filename
        self.warnings: List[WarningRecord] = []

    def warn(self, node: Optional[Node], description: str) -> WarningRecord:
        record = WarningRecord(node_loc(node), self.filename, description)
        self.warnings.append(record)
        logger.debug("%s", record)
        return record

    def syntax_error(self, node: Optional[Node], description: str) -> PassSyntaxError:
        return PassSyntaxError(description, node_loc(node), self.source, self.filename)

    def raise_syntax_error(self, node: Optional[Node], description: str) -> NoReturn:
        raise self.syntax_error(node, description)
