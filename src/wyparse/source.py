"""Source file representation and span tracking for diagnostics."""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class Span:
    """A range of character offsets within a source file (end exclusive)."""

    file: str
    start: int
    end: int

    def __str__(self) -> str:
        return f"{self.file}:{self.start}-{self.end}"


class SourceFile:
    """Source text with offset to line/column conversion for diagnostics."""

    def __init__(self, content: str, name: str = "<stdin>") -> None:
        self.name = name
        self.content = content
        self.lines = content.splitlines()
        self._line_starts = [0]
        for i, ch in enumerate(content):
            if ch == "\n":
                self._line_starts.append(i + 1)

    @classmethod
    def from_path(cls, path: Path) -> SourceFile:
        return cls(path.read_text(encoding="utf-8"), str(path))

    def line_at(self, n: int) -> str:
        """Return the 1-indexed line, or empty string if out of range."""
        if 1 <= n <= len(self.lines):
            return self.lines[n - 1]
        return ""

    def position(self, offset: int) -> tuple[int, int]:
        """Return the 1-indexed (line, column) of a character offset."""
        offset = max(0, min(offset, len(self.content)))
        line = bisect.bisect_right(self._line_starts, offset)
        return line, offset - self._line_starts[line - 1] + 1

    def span_text(self, span: Span) -> str:
        """Extract the text covered by a span."""
        return self.content[span.start:span.end]
