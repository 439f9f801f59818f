"""Structural classifiers used at points where Whiley's type and expression
grammars overlap.

``must_parse_as_type`` holds when a parsed type could not also have been
read as an expression; ``must_parse_as_expr`` holds when a parsed expression
could not also have been read as a type. Both depend on the shape of the
tree alone.
"""

from __future__ import annotations

from typing import assert_never

from wyparse.ast_nodes import (
    ArrayAccess,
    ArrayGenerator,
    ArrayInitialiser,
    ArrayLength,
    ArrayType,
    BinaryExpr,
    BoolLit,
    ByteLit,
    Cast,
    CharLit,
    Dereference,
    Expr,
    FunctionType,
    IndirectInvoke,
    IntersectionType,
    IntLit,
    Invoke,
    Is,
    LambdaConstant,
    LambdaInitialiser,
    ListType,
    MethodType,
    NegationType,
    New,
    NominalType,
    NullLit,
    PrimitiveType,
    Quantifier,
    RecordAccess,
    RecordInitialiser,
    RecordType,
    ReferenceType,
    StaticVariableAccess,
    StringLit,
    Type,
    UnaryExpr,
    UnionType,
    VariableAccess,
)


def must_parse_as_type(t: Type) -> bool:
    if isinstance(t, (PrimitiveType, RecordType, FunctionType, MethodType, ArrayType)):
        # A trailing [] never continues an expression.
        return True
    if isinstance(t, (UnionType, IntersectionType)):
        return any(must_parse_as_type(op) for op in t.operands)
    if isinstance(t, (NegationType, ListType)):
        return must_parse_as_type(t.element)
    if isinstance(t, ReferenceType):
        # &this and &* cannot be expressions
        if t.lifetime is not None and t.lifetime.text in ("this", "*"):
            return True
        return must_parse_as_type(t.element)
    if isinstance(t, NominalType):
        return False
    assert_never(t)


def must_parse_as_expr(e: Expr) -> bool:
    if isinstance(e, (
        VariableAccess, ArrayLength, Dereference, ArrayAccess,
        ArrayInitialiser, ArrayGenerator, Is, Invoke, IndirectInvoke, Cast,
        NullLit, BoolLit, ByteLit, CharLit, IntLit, StringLit,
        Quantifier, New, RecordInitialiser, LambdaInitialiser,
    )):
        return True
    if isinstance(e, StaticVariableAccess):
        return False
    if isinstance(e, RecordAccess):
        return must_parse_as_expr(e.source)
    if isinstance(e, UnaryExpr):
        if e.op == "!":
            return must_parse_as_expr(e.operand)
        return e.op == "~"
    if isinstance(e, BinaryExpr):
        if e.op in ("|", "&"):
            return must_parse_as_expr(e.left) or must_parse_as_expr(e.right)
        return False
    if isinstance(e, LambdaConstant):
        # &f alone also reads as a reference type
        return False
    assert_never(e)
