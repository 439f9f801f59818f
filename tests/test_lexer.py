"""Tests for the Whiley lexer."""

from __future__ import annotations

import pytest

from wyparse.errors import LEXER_ERROR, ParseError
from wyparse.lexer import Lexer
from wyparse.tokens import TokenKind


def lex(source: str) -> list[tuple[TokenKind, str]]:
    """Helper: lex source and return (kind, text) pairs."""
    return [(t.kind, t.text) for t in Lexer(source).lex()]


def kinds(source: str) -> list[TokenKind]:
    """Helper: lex source and return just the token kinds."""
    return [t.kind for t in Lexer(source).lex()]


class TestLexerBasic:
    def test_empty_source(self):
        assert Lexer("").lex() == []

    def test_identifier(self):
        assert lex("hello") == [(TokenKind.IDENTIFIER, "hello")]

    def test_underscore_identifier(self):
        assert lex("_x1") == [(TokenKind.IDENTIFIER, "_x1")]

    def test_keywords(self):
        for kw, kind in [
            ("function", TokenKind.FUNCTION), ("method", TokenKind.METHOD),
            ("while", TokenKind.WHILE), ("null", TokenKind.NULL),
            ("this", TokenKind.THIS), ("some", TokenKind.SOME),
        ]:
            assert kinds(kw) == [kind]

    def test_type_and_constant_are_identifiers(self):
        assert kinds("type constant") == [TokenKind.IDENTIFIER, TokenKind.IDENTIFIER]

    def test_offsets(self):
        tokens = Lexer("ab  cd").lex()
        assert [(t.start, t.end) for t in tokens] == [(0, 2), (4, 6)]


class TestLexerWhitespace:
    def test_leading_whitespace_is_indent(self):
        assert lex("  \tx") == [(TokenKind.INDENT, "  \t"), (TokenKind.IDENTIFIER, "x")]

    def test_inner_whitespace_is_dropped(self):
        assert kinds("a   b") == [TokenKind.IDENTIFIER, TokenKind.IDENTIFIER]

    def test_newline(self):
        assert kinds("a\nb") == [TokenKind.IDENTIFIER, TokenKind.NEWLINE, TokenKind.IDENTIFIER]

    def test_crlf_is_one_newline(self):
        assert lex("\r\n") == [(TokenKind.NEWLINE, "\r\n")]

    def test_indent_after_newline(self):
        assert kinds("a\n    b") == [
            TokenKind.IDENTIFIER, TokenKind.NEWLINE, TokenKind.INDENT, TokenKind.IDENTIFIER,
        ]

    def test_line_comment(self):
        assert lex("x // note\ny")[1] == (TokenKind.LINE_COMMENT, "// note")

    def test_block_comment(self):
        assert lex("/* a\nb */x") == [
            (TokenKind.BLOCK_COMMENT, "/* a\nb */"), (TokenKind.IDENTIFIER, "x"),
        ]


class TestLexerLiterals:
    def test_int(self):
        assert lex("123") == [(TokenKind.INT_LIT, "123")]

    def test_byte(self):
        assert lex("0101b") == [(TokenKind.BYTE_LIT, "0101b")]

    def test_digits_then_identifier(self):
        assert lex("12bc") == [(TokenKind.INT_LIT, "12"), (TokenKind.IDENTIFIER, "bc")]

    def test_char(self):
        assert lex("'a'") == [(TokenKind.CHAR_LIT, "'a'")]

    def test_escaped_char(self):
        assert lex(r"'\n'") == [(TokenKind.CHAR_LIT, r"'\n'")]

    def test_escaped_quote_char(self):
        assert lex(r"'\''") == [(TokenKind.CHAR_LIT, r"'\''")]

    def test_string_with_escaped_quote(self):
        assert lex(r'"a\"b"') == [(TokenKind.STRING_LIT, r'"a\"b"')]


class TestLexerOperators:
    @pytest.mark.parametrize("text,kind", [
        ("<==>", TokenKind.IFF),
        ("==>", TokenKind.IMPLIES),
        ("...", TokenKind.DOT_DOT_DOT),
        ("..", TokenKind.DOT_DOT),
        ("&&", TokenKind.LOGICAL_AND),
        ("||", TokenKind.LOGICAL_OR),
        ("<<", TokenKind.SHIFT_LEFT),
        ("->", TokenKind.ARROW),
        ("::", TokenKind.COLON_COLON),
        ("⊆", TokenKind.SUBSET_EQUAL),
    ])
    def test_longest_match(self, text, kind):
        assert kinds(text) == [kind]

    def test_range(self):
        assert kinds("0..n") == [TokenKind.INT_LIT, TokenKind.DOT_DOT, TokenKind.IDENTIFIER]

    def test_arrow_after_paren(self):
        assert kinds("(->") == [TokenKind.LPAREN, TokenKind.ARROW]


class TestLexerErrors:
    def test_unterminated_string(self):
        with pytest.raises(ParseError, match="unterminated string literal") as exc:
            Lexer('"abc\n"').lex()
        assert exc.value.diagnostics[0].code == LEXER_ERROR

    def test_unterminated_char(self):
        with pytest.raises(ParseError, match="unterminated character literal"):
            Lexer("'ab'").lex()

    def test_unterminated_block_comment(self):
        with pytest.raises(ParseError, match="unterminated block comment"):
            Lexer("/* never closed").lex()

    def test_unknown_character(self):
        with pytest.raises(ParseError, match="unknown character") as exc:
            Lexer("x = $").lex()
        assert exc.value.span.start == 4

    def test_superscript_is_not_a_digit(self):
        with pytest.raises(ParseError, match="unknown character") as exc:
            Lexer("constant c is 1²\n").lex()
        assert exc.value.diagnostics[0].code == LEXER_ERROR
        assert exc.value.span.start == 15

    def test_non_ascii_digit_cannot_start_a_number(self):
        with pytest.raises(ParseError, match="unknown character"):
            Lexer("٣").lex()
