"""Tests for the type/expression classifiers."""

from __future__ import annotations

import pytest

from wyparse.ast_nodes import (
    ArrayGenerator,
    ArrayInitialiser,
    ArrayLength,
    ArrayType,
    BinaryExpr,
    BoolLit,
    ByteLit,
    CharLit,
    FunctionType,
    IntersectionType,
    IntLit,
    Invoke,
    LambdaConstant,
    ListType,
    NegationType,
    NullLit,
    RecordAccess,
    RecordType,
    ReferenceType,
    StringLit,
    UnaryExpr,
    UnionType,
)
from wyparse.classify import must_parse_as_expr, must_parse_as_type

from tests.helpers import S, ident, name, nominal, prim, static, var


class TestMustParseAsType:
    def test_primitive(self):
        assert must_parse_as_type(prim("int"))

    def test_nominal(self):
        assert not must_parse_as_type(nominal("T"))

    def test_array_of_nominal(self):
        assert must_parse_as_type(ArrayType(nominal("T"), S))

    def test_record_and_function(self):
        assert must_parse_as_type(RecordType(False, (), S))
        assert must_parse_as_type(FunctionType((), (), S))

    def test_union_needs_one_forced_operand(self):
        assert not must_parse_as_type(UnionType((nominal("A"), nominal("B")), S))
        assert must_parse_as_type(UnionType((nominal("A"), prim("null")), S))

    def test_intersection(self):
        assert not must_parse_as_type(IntersectionType((nominal("A"), nominal("B")), S))

    def test_negation_and_list_follow_element(self):
        assert not must_parse_as_type(NegationType(nominal("A"), S))
        assert must_parse_as_type(NegationType(prim("int"), S))
        assert not must_parse_as_type(ListType(nominal("A"), S))
        assert must_parse_as_type(ListType(prim("int"), S))

    def test_reference(self):
        assert not must_parse_as_type(ReferenceType(nominal("A"), None, S))
        assert not must_parse_as_type(ReferenceType(nominal("A"), ident("l"), S))
        assert must_parse_as_type(ReferenceType(nominal("A"), ident("this"), S))
        assert must_parse_as_type(ReferenceType(nominal("A"), ident("*"), S))


class TestMustParseAsExpr:
    @pytest.mark.parametrize("node", [
        NullLit(S), BoolLit(True, S), ByteLit(1, S), CharLit(97, S),
        IntLit(1, S), StringLit(b"s", S),
    ])
    def test_literals(self, node):
        assert must_parse_as_expr(node)

    def test_variables(self):
        assert must_parse_as_expr(var("x"))
        assert not must_parse_as_expr(static("x"))

    def test_record_access_follows_source(self):
        assert must_parse_as_expr(RecordAccess(var("x"), ident("f"), S))
        assert not must_parse_as_expr(RecordAccess(static("x"), ident("f"), S))

    def test_unary(self):
        assert not must_parse_as_expr(UnaryExpr("!", static("x"), S))
        assert must_parse_as_expr(UnaryExpr("!", var("x"), S))
        assert must_parse_as_expr(UnaryExpr("~", static("x"), S))
        assert not must_parse_as_expr(UnaryExpr("-", static("x"), S))

    def test_binary(self):
        assert not must_parse_as_expr(BinaryExpr(static("A"), "|", static("B"), S))
        assert must_parse_as_expr(BinaryExpr(static("A"), "|", IntLit(1, S), S))
        assert must_parse_as_expr(BinaryExpr(var("a"), "&", static("B"), S))
        assert not must_parse_as_expr(BinaryExpr(IntLit(1, S), "+", IntLit(2, S), S))

    def test_array_literals(self):
        assert must_parse_as_expr(ArrayInitialiser((static("A"),), S))
        assert must_parse_as_expr(ArrayGenerator(static("A"), static("N"), S))

    def test_lambda_constant_is_ambiguous(self):
        assert not must_parse_as_expr(LambdaConstant(name("f"), (), S))

    def test_other_forced_forms(self):
        assert must_parse_as_expr(ArrayLength(static("xs"), S))
        assert must_parse_as_expr(Invoke(name("f"), None, (), S))

    def test_deterministic(self):
        node = BinaryExpr(static("A"), "|", static("B"), S)
        assert must_parse_as_expr(node) == must_parse_as_expr(node)
