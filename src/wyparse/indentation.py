"""Indentation levels of Whiley source lines.

Whiley has no braces around statement blocks: a block is the run of lines
indented strictly further than its header. Spaces and tabs are counted
separately and compared componentwise, so two indents may be incomparable
(for example two spaces against one tab). Mixing such lines at one block
level is a syntax error.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Indent:
    spaces: int
    tabs: int

    @classmethod
    def from_text(cls, text: str) -> Indent:
        """Count the spaces and tabs of an INDENT token's text."""
        spaces = tabs = 0
        for ch in text:
            if ch == " ":
                spaces += 1
            elif ch == "\t":
                tabs += 1
            else:
                raise ValueError(f"space or tab character expected, got {ch!r}")
        return cls(spaces, tabs)

    def less_than_eq(self, other: Indent) -> bool:
        return self.spaces <= other.spaces and self.tabs <= other.tabs

    def equivalent(self, other: Indent) -> bool:
        return self.spaces == other.spaces and self.tabs == other.tabs

    def less_than(self, other: Indent) -> bool:
        """Strictly less indented: ``<=`` in the partial order but not equal."""
        return self.less_than_eq(other) and not self.equivalent(other)

    def __str__(self) -> str:
        return f"{self.spaces} space(s), {self.tabs} tab(s)"


ROOT_INDENT = Indent(0, 0)
