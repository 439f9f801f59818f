"""Diagnostics, the syntax error exception, and Rust-style rendering."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from wyparse.source import SourceFile, Span


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    NOTE = "note"


# ANSI color codes
_COLORS = {
    Severity.ERROR: "\033[1;31m",    # bold red
    Severity.WARNING: "\033[1;33m",  # bold yellow
    Severity.NOTE: "\033[1;36m",     # bold cyan
}
_BOLD = "\033[1m"
_BLUE = "\033[1;34m"
_RESET = "\033[0m"

LEXER_ERROR = "E100"
SYNTAX_ERROR = "E200"


@dataclass(frozen=True)
class DiagnosticLabel:
    """Points to a specific source location."""

    span: Span
    message: str
    style: str = "primary"  # "primary" or "secondary"


@dataclass
class Diagnostic:
    """A single diagnostic message with optional labels and notes."""

    severity: Severity
    code: str
    message: str
    labels: list[DiagnosticLabel] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


class CompileError(Exception):
    """Compilation error carrying one or more diagnostics."""

    def __init__(self, diagnostics: list[Diagnostic]) -> None:
        self.diagnostics = diagnostics
        messages = [d.message for d in diagnostics]
        super().__init__(f"{len(diagnostics)} error(s): {'; '.join(messages)}")


class ParseError(CompileError):
    """The first syntax error of a file; aborts the parse.

    Raised for token mismatches, structural violations (duplicate keys,
    misplaced ``break``, undeclared lifetimes, ...) and malformed literal
    content alike. Only the message text tells them apart.
    """

    def __init__(self, message: str, span: Span, code: str = SYNTAX_ERROR) -> None:
        self.message = message
        self.span = span
        super().__init__([
            Diagnostic(
                severity=Severity.ERROR,
                code=code,
                message=message,
                labels=[DiagnosticLabel(span=span, message="")],
            )
        ])


class DiagnosticRenderer:
    """Renders diagnostics in Rust-style format with colors."""

    def __init__(
        self, *, color: bool = True, sources: dict[str, str] | None = None,
    ) -> None:
        self.color = color
        self._file_cache: dict[str, SourceFile | None] = {}
        for name, text in (sources or {}).items():
            self._file_cache[name] = SourceFile(text, name)

    def _c(self, code: str) -> str:
        return code if self.color else ""

    def _get_source(self, filename: str) -> SourceFile | None:
        """Load and cache a source file by name."""
        if filename not in self._file_cache:
            try:
                path = Path(filename)
                if path.is_file():
                    self._file_cache[filename] = SourceFile.from_path(path)
                else:
                    self._file_cache[filename] = None
            except (OSError, UnicodeDecodeError):
                self._file_cache[filename] = None
        return self._file_cache[filename]

    def render(self, diag: Diagnostic) -> str:
        lines: list[str] = []
        sev = diag.severity
        color = _COLORS[sev]

        # Header: error[E200]: message
        lines.append(
            f"{self._c(color)}{sev.value}[{diag.code}]{self._c(_RESET)}"
            f"{self._c(_BOLD)}: {diag.message}{self._c(_RESET)}"
        )

        for label in diag.labels:
            span = label.span
            source = self._get_source(span.file)
            if source is None:
                lines.append(f"  {self._c(_BLUE)}-->{self._c(_RESET)} {span}")
                continue

            start_line, start_col = source.position(span.start)
            end_line, end_col = source.position(max(span.start, span.end - 1))
            lines.append(
                f"  {self._c(_BLUE)}-->{self._c(_RESET)} "
                f"{span.file}:{start_line}:{start_col}"
            )
            gutter = f"{start_line:>4}"
            lines.append(f"  {self._c(_BLUE)}   |{self._c(_RESET)}")
            lines.append(
                f"  {self._c(_BLUE)}{gutter} |{self._c(_RESET)} "
                f"{source.line_at(start_line)}"
            )

            # Carets only for single-line spans
            if start_line == end_line:
                caret_len = max(1, end_col - start_col + 1)
                padding = " " * (start_col - 1)
                carets = "^" * caret_len
                lines.append(
                    f"  {self._c(_BLUE)}   |{self._c(_RESET)} "
                    f"{padding}{self._c(color)}{carets}{self._c(_RESET)}"
                )

            if label.message:
                lines.append(
                    f"  {self._c(_BLUE)}   |{self._c(_RESET)}   "
                    f"{self._c(color)}{label.message}{self._c(_RESET)}"
                )

        for note in diag.notes:
            lines.append(f"  {self._c(_BLUE)}={self._c(_RESET)} note: {note}")

        return "\n".join(lines)
