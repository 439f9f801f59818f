"""Tests for parsing Whiley types."""

from __future__ import annotations

from wyparse.ast_nodes import (
    ArrayType,
    Field,
    FunctionType,
    IntersectionType,
    ListType,
    MethodType,
    NegationType,
    RecordType,
    ReferenceType,
    UnionType,
)

from tests.helpers import S, ident, nominal, parse_decl, parse_fails, prim


def parse_type(source: str):
    """Helper: parse ``source`` as a parameter type and return it."""
    decl = parse_decl(f"function f({source} p):\n")
    return decl.parameters[0].type


class TestBaseTypes:
    def test_primitives(self):
        for p in ["void", "any", "null", "bool", "byte", "int"]:
            assert parse_type(p) == prim(p)

    def test_nominal(self):
        assert parse_type("nat") == nominal("nat")

    def test_qualified_nominal(self):
        assert parse_type("math::nat") == nominal("math", "nat")

    def test_bracketed_type_is_transparent(self):
        assert parse_type("(int)") == prim("int")

    def test_list_spelling(self):
        assert parse_type("[int]") == ListType(prim("int"), S)

    def test_unknown_type(self):
        parse_fails("function f(1 p):\n", "unknown type encountered")


class TestCompoundTypes:
    def test_array(self):
        assert parse_type("int[]") == ArrayType(prim("int"), S)

    def test_nested_array(self):
        assert parse_type("int[][]") == ArrayType(ArrayType(prim("int"), S), S)

    def test_union(self):
        assert parse_type("int|null|bool") == UnionType(
            (prim("int"), prim("null"), prim("bool")), S,
        )

    def test_intersection_binds_tighter_than_union(self):
        assert parse_type("A&B|C") == UnionType(
            (IntersectionType((nominal("A"), nominal("B")), S), nominal("C")), S,
        )

    def test_bracketed_union_array(self):
        assert parse_type("(int|null)[]") == ArrayType(
            UnionType((prim("int"), prim("null")), S), S,
        )

    def test_negation_takes_array(self):
        assert parse_type("!int[]") == NegationType(ArrayType(prim("int"), S), S)

    def test_reference(self):
        assert parse_type("&int") == ReferenceType(prim("int"), None, S)

    def test_reference_with_star_lifetime(self):
        assert parse_type("&*:int") == ReferenceType(prim("int"), ident("*"), S)

    def test_reference_to_undeclared_lifetime(self):
        parse_fails("type T is &this:int\n", "use of undeclared lifetime")


class TestRecordTypes:
    def test_closed(self):
        assert parse_type("{int x, bool y}") == RecordType(
            False, (Field(prim("int"), ident("x"), S), Field(prim("bool"), ident("y"), S)), S,
        )

    def test_open(self):
        t = parse_type("{int x, ...}")
        assert t.is_open
        assert [f.name.text for f in t.fields] == ["x"]

    def test_duplicate_field(self):
        parse_fails("function f({int x, bool x} p):\n", "duplicate record key")

    def test_fused_function_field(self):
        t = parse_type("{function f(int)->int}")
        assert t.fields[0] == Field(FunctionType((prim("int"),), (prim("int"),), S), ident("f"), S)


class TestFunctionTypes:
    def test_function(self):
        assert parse_type("function(int,bool)->int") == FunctionType(
            (prim("int"), prim("bool")), (prim("int"),), S,
        )

    def test_function_multiple_returns(self):
        assert parse_type("function(int)->(int,bool)").returns == (prim("int"), prim("bool"))

    def test_function_no_returns(self):
        assert parse_type("function()->()") == FunctionType((), (), S)

    def test_method_without_returns(self):
        assert parse_type("method(int)") == MethodType((prim("int"),), (), (), (), S)

    def test_method_with_lifetimes(self):
        t = parse_type("method<l>(&l:int)->int")
        assert t.lifetimes == (ident("l"),)
        assert t.parameters == (ReferenceType(prim("int"), ident("l"), S),)

    def test_method_captures(self):
        t = parse_type("method[*](int)")
        assert t.captures == (ident("*"),)


class TestReturnTypes:
    def test_reference_return_before_colon(self):
        decl = parse_decl("function f() -> &T:\n    skip\n")
        assert decl.returns[0].type == ReferenceType(nominal("T"), None, S)

    def test_lifetime_in_method_parameter(self):
        decl = parse_decl("method<l> m(&l:int p):\n    skip\n")
        assert decl.parameters[0].type == ReferenceType(prim("int"), ident("l"), S)
