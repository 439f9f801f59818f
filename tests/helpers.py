"""Shared test helpers for the Whiley parser test suite."""

from __future__ import annotations

import textwrap

import pytest

from wyparse.ast_nodes import Identifier, Module, Name, NominalType, PrimitiveType
from wyparse.ast_nodes import StaticVariableAccess, VariableAccess
from wyparse.errors import ParseError
from wyparse.lexer import Lexer
from wyparse.parser import Parser
from wyparse.source import Span

# Spans never take part in node equality.
S = Span("<test>", 0, 0)


def parse(source: str) -> Module:
    """Lex and parse source, return the Module."""
    tokens = Lexer(source, "test.whiley").lex()
    return Parser(tokens, "test.whiley").parse()


def parse_decl(source: str):
    """Parse and return the first declaration."""
    mod = parse(source)
    assert len(mod.declarations) >= 1
    return mod.declarations[0]


def parse_body(body: str, params: str = "") -> tuple:
    """Wrap ``body`` in a function and return its statements."""
    source = f"function f({params}):\n" + textwrap.indent(textwrap.dedent(body), "    ")
    return parse_decl(source).body.statements


def parse_expr(source: str, params: str = "int x, int y") -> object:
    """Parse ``source`` as the operand of a return statement."""
    (stmt,) = parse_body(f"return {source}\n", params)
    assert len(stmt.values) == 1
    return stmt.values[0]


def parse_fails(source: str, message: str) -> ParseError:
    """Parse source, asserting a ParseError whose message contains ``message``."""
    with pytest.raises(ParseError) as exc:
        parse(source)
    assert message in exc.value.message, exc.value.message
    return exc.value


# ── Node builders for expected trees ─────────────────────────────


def ident(text: str) -> Identifier:
    return Identifier(text, S)


def name(*parts: str) -> Name:
    return Name(tuple(ident(p) for p in parts), S)


def var(text: str) -> VariableAccess:
    return VariableAccess(ident(text), None, S)


def static(*parts: str) -> StaticVariableAccess:
    return StaticVariableAccess(name(*parts), S)


def prim(text: str) -> PrimitiveType:
    return PrimitiveType(text, S)


def nominal(*parts: str) -> NominalType:
    return NominalType(name(*parts), S)
