"""Lexer for the Whiley programming language.

Produces a flat token stream. Leading whitespace of each line becomes an
INDENT token and line breaks become NEWLINE tokens; block structure is
left entirely to the parser. Comments are kept as tokens so that offsets
stay contiguous and the parser can skip them explicitly.
"""

from __future__ import annotations

from wyparse.errors import LEXER_ERROR, ParseError
from wyparse.source import Span
from wyparse.tokens import KEYWORDS, OPERATORS, Token, TokenKind


class Lexer:
    """Tokenizes Whiley source code."""

    def __init__(self, source: str, filename: str = "<stdin>") -> None:
        self.source = source
        self.filename = filename
        self.pos = 0
        self.tokens: list[Token] = []
        self._at_line_start = True

    def lex(self) -> list[Token]:
        """Tokenize the entire source and return the token list."""
        while self.pos < len(self.source):
            ch = self.source[self.pos]
            if ch in (" ", "\t"):
                self._lex_whitespace()
                continue
            self._at_line_start = False
            if ch == "\n":
                self._emit(TokenKind.NEWLINE, self.pos, self.pos + 1)
                self._at_line_start = True
            elif ch == "\r" and self._peek(1) == "\n":
                self._emit(TokenKind.NEWLINE, self.pos, self.pos + 2)
                self._at_line_start = True
            elif ch == "/" and self._peek(1) == "/":
                self._lex_line_comment()
            elif ch == "/" and self._peek(1) == "*":
                self._lex_block_comment()
            elif ch == '"':
                self._lex_string()
            elif ch == "'":
                self._lex_char()
            elif _is_digit(ch):
                self._lex_number()
            elif ch.isalpha() or ch == "_":
                self._lex_identifier()
            else:
                self._lex_operator()
        return self.tokens

    # ── Helpers ───────────────────────────────────────────────────

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        if idx < len(self.source):
            return self.source[idx]
        return "\0"

    def _emit(self, kind: TokenKind, start: int, end: int) -> Token:
        tok = Token(kind, self.source[start:end], start, end)
        self.tokens.append(tok)
        self.pos = end
        return tok

    def _error(self, message: str, start: int, end: int | None = None) -> ParseError:
        span = Span(self.filename, start, end if end is not None else start + 1)
        return ParseError(message, span, code=LEXER_ERROR)

    # ── Whitespace & comments ────────────────────────────────────

    def _lex_whitespace(self) -> None:
        start = self.pos
        end = start
        while end < len(self.source) and self.source[end] in (" ", "\t"):
            end += 1
        if self._at_line_start:
            self._emit(TokenKind.INDENT, start, end)
            self._at_line_start = False
        else:
            self.pos = end

    def _lex_line_comment(self) -> None:
        end = self.source.find("\n", self.pos)
        if end == -1:
            end = len(self.source)
        elif end > self.pos and self.source[end - 1] == "\r":
            end -= 1
        self._emit(TokenKind.LINE_COMMENT, self.pos, end)

    def _lex_block_comment(self) -> None:
        end = self.source.find("*/", self.pos + 2)
        if end == -1:
            raise self._error("unterminated block comment", self.pos, self.pos + 2)
        self._emit(TokenKind.BLOCK_COMMENT, self.pos, end + 2)

    # ── Literals ─────────────────────────────────────────────────

    def _lex_string(self) -> None:
        start = self.pos
        end = start + 1
        while end < len(self.source) and self.source[end] != '"':
            if self.source[end] == "\n":
                break
            if self.source[end] == "\\":
                end += 1
            end += 1
        if end >= len(self.source) or self.source[end] != '"':
            raise self._error("unterminated string literal", start)
        self._emit(TokenKind.STRING_LIT, start, end + 1)

    def _lex_char(self) -> None:
        start = self.pos
        end = start + 1
        if self._peek(1) == "\\":
            end += 1
        end += 1
        if end >= len(self.source) or self.source[end] != "'":
            raise self._error("unterminated character literal", start)
        self._emit(TokenKind.CHAR_LIT, start, end + 1)

    def _lex_number(self) -> None:
        start = self.pos
        end = start
        while end < len(self.source) and _is_digit(self.source[end]):
            end += 1
        # Binary byte literals are written as digits followed by 'b', e.g. 0101b.
        if end < len(self.source) and self.source[end] == "b":
            after = end + 1
            if after >= len(self.source) or not _is_ident_char(self.source[after]):
                self._emit(TokenKind.BYTE_LIT, start, after)
                return
        self._emit(TokenKind.INT_LIT, start, end)

    def _lex_identifier(self) -> None:
        start = self.pos
        end = start
        while end < len(self.source) and _is_ident_char(self.source[end]):
            end += 1
        text = self.source[start:end]
        self._emit(KEYWORDS.get(text, TokenKind.IDENTIFIER), start, end)

    # ── Operators ────────────────────────────────────────────────

    def _lex_operator(self) -> None:
        for text, kind in OPERATORS:
            if self.source.startswith(text, self.pos):
                self._emit(kind, self.pos, self.pos + len(text))
                return
        raise self._error(f"unknown character {self.source[self.pos]!r}", self.pos)


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _is_digit(ch: str) -> bool:
    # str.isdigit() also accepts superscripts and other scripts' digits
    return "0" <= ch <= "9"
