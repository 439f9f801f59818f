"""Tests for AST node equality and the node arena."""

from __future__ import annotations

import dataclasses

import pytest

from wyparse.ast_nodes import (
    Arena,
    Block,
    Case,
    Identifier,
    IntLit,
    Name,
    Skip,
    Variable,
    VariableAccess,
)
from wyparse.lexer import Lexer
from wyparse.parser import Parser
from wyparse.source import SourceFile, Span

from tests.helpers import S, ident, parse, parse_expr, prim


class TestNodes:
    def test_equality_ignores_spans(self):
        assert IntLit(1, Span("a.whiley", 0, 1)) == IntLit(1, Span("b.whiley", 7, 8))

    def test_structural_inequality(self):
        assert IntLit(1, S) != IntLit(2, S)

    def test_frozen(self):
        node = IntLit(1, S)
        with pytest.raises(dataclasses.FrozenInstanceError):
            node.value = 2

    def test_identifier_str(self):
        assert str(Identifier("x", S)) == "x"

    def test_name(self):
        n = Name((ident("math"), ident("max")), S)
        assert str(n) == "math::max"
        assert n.last == ident("max")

    def test_variable_access_ignores_declaration(self):
        decl = Variable(ident("x"), prim("int"), None, S)
        assert VariableAccess(ident("x"), decl, S) == VariableAccess(ident("x"), None, S)
        assert "declaration" not in repr(VariableAccess(ident("x"), decl, S))

    def test_case_default(self):
        body = Block((Skip(S),), S)
        assert Case((), body, S).is_default
        assert not Case((IntLit(1, S),), body, S).is_default


class TestSpans:
    def test_expression_span(self):
        source = "function f(int x):\n    return x + 1\n"
        mod = parse(source)
        (ret,) = mod.declarations[0].body.statements
        sf = SourceFile(source)
        assert sf.span_text(ret.span) == "return x + 1"
        assert sf.span_text(ret.values[0].span) == "x + 1"
        assert sf.span_text(ret.values[0].right.span) == "1"

    def test_declaration_span_covers_body(self):
        source = "function f():\n    skip\n\nconstant A is 1\n"
        mod = parse(source)
        sf = SourceFile(source)
        assert sf.span_text(mod.declarations[0].span) == "function f():\n    skip"

    def test_span_file(self):
        expr = parse_expr("x")
        assert expr.span.file == "test.whiley"


class TestArena:
    def test_allocate_returns_node(self):
        arena = Arena()
        node = IntLit(1, S)
        assert arena.allocate(node) is node
        assert node in arena
        assert arena.index(node) == 0
        assert arena[0] is node
        assert len(arena) == 1

    def test_membership_is_by_identity(self):
        arena = Arena()
        arena.allocate(IntLit(1, S))
        assert IntLit(1, S) not in arena

    def test_index_of_unknown_node(self):
        with pytest.raises(KeyError, match="IntLit node is not in this arena"):
            Arena().index(IntLit(1, S))

    def test_iteration_order(self):
        arena = Arena()
        nodes = [IntLit(i, S) for i in range(3)]
        for node in nodes:
            arena.allocate(node)
        assert list(arena) == nodes

    def test_parser_uses_given_arena(self):
        arena = Arena()
        tokens = Lexer("constant A is 1\n").lex()
        mod = Parser(tokens, arena=arena).parse()
        assert mod.arena is arena
        assert len(arena) > 0

    def test_abandoned_speculation_stays_in_arena(self):
        # "(x)" is tried as a type before being read as an expression
        mod = parse("function f(int x):\n    return (x)\n")
        assert any(type(n).__name__ == "NominalType" for n in mod.arena)
