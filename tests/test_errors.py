"""Tests for syntax errors and diagnostic rendering."""

from __future__ import annotations

from wyparse.errors import (
    LEXER_ERROR,
    SYNTAX_ERROR,
    CompileError,
    DiagnosticRenderer,
    ParseError,
    Severity,
)
from wyparse.lexer import Lexer
from wyparse.source import Span

from tests.helpers import parse_fails


class TestParseError:
    def test_is_compile_error(self):
        err = ParseError("boom", Span("t.whiley", 0, 1))
        assert isinstance(err, CompileError)
        (diag,) = err.diagnostics
        assert diag.severity is Severity.ERROR
        assert diag.code == SYNTAX_ERROR
        assert diag.message == "boom"
        assert diag.labels[0].span == Span("t.whiley", 0, 1)

    def test_lexer_errors_have_their_own_code(self):
        try:
            Lexer("$", "t.whiley").lex()
        except ParseError as err:
            assert err.diagnostics[0].code == LEXER_ERROR
        else:
            raise AssertionError("expected a lexer error")

    def test_parser_errors_use_syntax_code(self):
        err = parse_fails("constant X is )\n", "unrecognised term")
        assert err.diagnostics[0].code == SYNTAX_ERROR


class TestDiagnosticRenderer:
    def render(self, source: str) -> str:
        err = parse_fails(source, "")
        renderer = DiagnosticRenderer(color=False, sources={"test.whiley": source})
        return renderer.render(err.diagnostics[0])

    def test_header_and_location(self):
        out = self.render("constant X is )\n")
        lines = out.splitlines()
        assert lines[0] == "error[E200]: unrecognised term"
        assert lines[1] == "  --> test.whiley:1:15"
        assert "   1 | constant X is )" in lines[3]

    def test_carets_under_token(self):
        out = self.render("constant X is )\n")
        assert out.splitlines()[4].endswith(" " * 14 + "^")

    def test_second_line(self):
        out = self.render("constant A is 1\nconstant B is )\n")
        assert "--> test.whiley:2:15" in out

    def test_unknown_file_falls_back_to_span(self):
        err = ParseError("boom", Span("missing.whiley", 3, 4))
        out = DiagnosticRenderer(color=False).render(err.diagnostics[0])
        assert "--> missing.whiley:3-4" in out

    def test_undecodable_file_falls_back_to_span(self, tmp_path):
        path = tmp_path / "latin1.whiley"
        path.write_bytes(b"caf\xe9\n")
        err = ParseError("boom", Span(str(path), 3, 4))
        out = DiagnosticRenderer(color=False).render(err.diagnostics[0])
        assert f"--> {path}:3-4" in out

    def test_color(self):
        err = ParseError("boom", Span("missing.whiley", 0, 1))
        out = DiagnosticRenderer(color=True).render(err.diagnostics[0])
        assert "\033[1;31m" in out
