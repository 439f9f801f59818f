"""AST node definitions for the Whiley language.

Nodes are frozen dataclasses. Spans are excluded from equality, so two
trees compare equal when they have the same structure regardless of where
their text came from. Every node the parser builds is also allocated into
the file's :class:`Arena`, which gives it a stable integer index.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TypeVar, Union

from wyparse.source import Span


def _span() -> Span:
    return field(compare=False)


# ── Names ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Identifier:
    text: str
    span: Span = _span()

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Name:
    """A possibly qualified name such as ``math::max``."""

    components: tuple[Identifier, ...]
    span: Span = _span()

    def __str__(self) -> str:
        return "::".join(c.text for c in self.components)

    @property
    def last(self) -> Identifier:
        return self.components[-1]


# ── Types ────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PrimitiveType:
    name: str  # void, any, null, bool, byte or int
    span: Span = _span()


@dataclass(frozen=True)
class ArrayType:
    element: Type
    span: Span = _span()


@dataclass(frozen=True)
class ListType:
    """The ``[T]`` spelling of an array type."""

    element: Type
    span: Span = _span()


@dataclass(frozen=True)
class Field:
    type: Type
    name: Identifier
    span: Span = _span()


@dataclass(frozen=True)
class RecordType:
    is_open: bool
    fields: tuple[Field, ...]
    span: Span = _span()


@dataclass(frozen=True)
class NominalType:
    name: Name
    span: Span = _span()


@dataclass(frozen=True)
class ReferenceType:
    element: Type
    lifetime: Identifier | None
    span: Span = _span()


@dataclass(frozen=True)
class NegationType:
    element: Type
    span: Span = _span()


@dataclass(frozen=True)
class UnionType:
    operands: tuple[Type, ...]
    span: Span = _span()


@dataclass(frozen=True)
class IntersectionType:
    operands: tuple[Type, ...]
    span: Span = _span()


@dataclass(frozen=True)
class FunctionType:
    parameters: tuple[Type, ...]
    returns: tuple[Type, ...]
    span: Span = _span()


@dataclass(frozen=True)
class MethodType:
    parameters: tuple[Type, ...]
    returns: tuple[Type, ...]
    captures: tuple[Identifier, ...]
    lifetimes: tuple[Identifier, ...]
    span: Span = _span()


Type = Union[
    PrimitiveType, ArrayType, ListType, RecordType, NominalType,
    ReferenceType, NegationType, UnionType, IntersectionType,
    FunctionType, MethodType,
]


# ── Variables ────────────────────────────────────────────────────


@dataclass(frozen=True)
class Variable:
    """A variable declaration: parameter, return, local or quantified name.

    Also used as a statement for local declarations.
    """

    name: Identifier
    type: Type
    initialiser: Expr | None
    span: Span = _span()


# ── Expressions ──────────────────────────────────────────────────


@dataclass(frozen=True)
class NullLit:
    span: Span = _span()


@dataclass(frozen=True)
class BoolLit:
    value: bool
    span: Span = _span()


@dataclass(frozen=True)
class ByteLit:
    value: int
    span: Span = _span()


@dataclass(frozen=True)
class CharLit:
    value: int  # code point
    span: Span = _span()


@dataclass(frozen=True)
class IntLit:
    value: int
    span: Span = _span()


@dataclass(frozen=True)
class StringLit:
    value: bytes  # UTF-8 encoded
    span: Span = _span()


@dataclass(frozen=True)
class VariableAccess:
    name: Identifier
    declaration: Variable | None = field(compare=False, repr=False)
    span: Span = _span()


@dataclass(frozen=True)
class StaticVariableAccess:
    name: Name
    span: Span = _span()


@dataclass(frozen=True)
class RecordAccess:
    source: Expr
    field: Identifier
    span: Span = _span()


@dataclass(frozen=True)
class Dereference:
    operand: Expr
    span: Span = _span()


@dataclass(frozen=True)
class ArrayAccess:
    source: Expr
    index: Expr
    span: Span = _span()


@dataclass(frozen=True)
class ArrayLength:
    operand: Expr
    span: Span = _span()


@dataclass(frozen=True)
class ArrayInitialiser:
    elements: tuple[Expr, ...]
    span: Span = _span()


@dataclass(frozen=True)
class ArrayGenerator:
    element: Expr
    length: Expr
    span: Span = _span()


@dataclass(frozen=True)
class RecordInitialiser:
    name: Identifier | None  # optional type name before the braces
    fields: tuple[tuple[Identifier, Expr], ...]
    span: Span = _span()


@dataclass(frozen=True)
class BinaryExpr:
    left: Expr
    op: str
    right: Expr
    span: Span = _span()


@dataclass(frozen=True)
class UnaryExpr:
    op: str  # "!", "-" or "~"
    operand: Expr
    span: Span = _span()


@dataclass(frozen=True)
class Is:
    operand: Expr
    type: Type
    span: Span = _span()


@dataclass(frozen=True)
class Cast:
    type: Type
    operand: Expr
    span: Span = _span()


@dataclass(frozen=True)
class Invoke:
    name: Name
    lifetimes: tuple[Identifier, ...] | None
    arguments: tuple[Expr, ...]
    span: Span = _span()


@dataclass(frozen=True)
class IndirectInvoke:
    source: Expr
    lifetimes: tuple[Identifier, ...] | None
    arguments: tuple[Expr, ...]
    span: Span = _span()


@dataclass(frozen=True)
class QuantifierRange:
    name: Identifier
    start: Expr
    end: Expr
    span: Span = _span()


@dataclass(frozen=True)
class Quantifier:
    kind: str  # "all" or "some"
    ranges: tuple[QuantifierRange, ...]
    condition: Expr
    span: Span = _span()


@dataclass(frozen=True)
class New:
    operand: Expr
    lifetime: Identifier
    span: Span = _span()


@dataclass(frozen=True)
class LambdaInitialiser:
    parameters: tuple[Variable, ...]
    captures: tuple[Identifier, ...]
    lifetimes: tuple[Identifier, ...]
    body: Expr
    span: Span = _span()


@dataclass(frozen=True)
class LambdaConstant:
    name: Name
    parameter_types: tuple[Type, ...]
    span: Span = _span()


Expr = Union[
    NullLit, BoolLit, ByteLit, CharLit, IntLit, StringLit,
    VariableAccess, StaticVariableAccess, RecordAccess, Dereference,
    ArrayAccess, ArrayLength, ArrayInitialiser, ArrayGenerator,
    RecordInitialiser, BinaryExpr, UnaryExpr, Is, Cast,
    Invoke, IndirectInvoke, Quantifier, New,
    LambdaInitialiser, LambdaConstant,
]

LVal = Union[VariableAccess, RecordAccess, Dereference, ArrayAccess]


# ── Statements ───────────────────────────────────────────────────


@dataclass(frozen=True)
class Block:
    statements: tuple[Stmt, ...]
    span: Span = _span()


@dataclass(frozen=True)
class Assert:
    condition: Expr
    span: Span = _span()


@dataclass(frozen=True)
class Assume:
    condition: Expr
    span: Span = _span()


@dataclass(frozen=True)
class Assign:
    lvals: tuple[LVal, ...]
    rvals: tuple[Expr, ...]
    span: Span = _span()


@dataclass(frozen=True)
class Break:
    span: Span = _span()


@dataclass(frozen=True)
class Continue:
    span: Span = _span()


@dataclass(frozen=True)
class Debug:
    operand: Expr
    span: Span = _span()


@dataclass(frozen=True)
class DoWhile:
    condition: Expr
    invariants: tuple[Expr, ...]
    body: Block
    span: Span = _span()


@dataclass(frozen=True)
class Fail:
    span: Span = _span()


@dataclass(frozen=True)
class IfElse:
    condition: Expr
    true_branch: Block
    false_branch: Block | None
    span: Span = _span()


@dataclass(frozen=True)
class NamedBlock:
    name: Identifier
    body: Block
    span: Span = _span()


@dataclass(frozen=True)
class Return:
    values: tuple[Expr, ...]
    span: Span = _span()


@dataclass(frozen=True)
class Skip:
    span: Span = _span()


@dataclass(frozen=True)
class Case:
    conditions: tuple[Expr, ...]  # empty for ``default``
    body: Block
    span: Span = _span()

    @property
    def is_default(self) -> bool:
        return not self.conditions


@dataclass(frozen=True)
class Switch:
    condition: Expr
    cases: tuple[Case, ...]
    span: Span = _span()


@dataclass(frozen=True)
class While:
    condition: Expr
    invariants: tuple[Expr, ...]
    body: Block
    span: Span = _span()


Stmt = Union[
    Assert, Assume, Assign, Break, Continue, Debug, DoWhile, Fail, IfElse,
    NamedBlock, Return, Skip, Switch, While, Variable,
    Invoke, IndirectInvoke,
]


# ── Declarations ─────────────────────────────────────────────────


@dataclass(frozen=True)
class ImportDecl:
    path: tuple[Identifier, ...]  # a trailing "*" component imports everything
    span: Span = _span()


@dataclass(frozen=True)
class TypeDecl:
    modifiers: tuple[str, ...]
    name: Identifier
    variable: Variable
    invariant: tuple[Expr, ...]
    span: Span = _span()


@dataclass(frozen=True)
class ConstantDecl:
    modifiers: tuple[str, ...]
    name: Identifier
    value: Expr
    span: Span = _span()


@dataclass(frozen=True)
class FunctionDecl:
    modifiers: tuple[str, ...]
    name: Identifier
    parameters: tuple[Variable, ...]
    returns: tuple[Variable, ...]
    requires: tuple[Expr, ...]
    ensures: tuple[Expr, ...]
    body: Block
    span: Span = _span()


@dataclass(frozen=True)
class MethodDecl:
    modifiers: tuple[str, ...]
    name: Identifier
    lifetimes: tuple[Identifier, ...]
    parameters: tuple[Variable, ...]
    returns: tuple[Variable, ...]
    requires: tuple[Expr, ...]
    ensures: tuple[Expr, ...]
    body: Block
    span: Span = _span()


@dataclass(frozen=True)
class PropertyDecl:
    modifiers: tuple[str, ...]
    name: Identifier
    parameters: tuple[Variable, ...]
    invariant: tuple[Expr, ...]
    span: Span = _span()


Declaration = Union[
    ImportDecl, TypeDecl, ConstantDecl, FunctionDecl, MethodDecl, PropertyDecl,
]


# ── Arena ────────────────────────────────────────────────────────

N = TypeVar("N")


class Arena:
    """Append-only store owning every node built while parsing one file."""

    def __init__(self) -> None:
        self._nodes: list[object] = []
        self._index: dict[int, int] = {}

    def allocate(self, node: N) -> N:
        self._index[id(node)] = len(self._nodes)
        self._nodes.append(node)
        return node

    def index(self, node: object) -> int:
        """Return the stable index of an allocated node."""
        try:
            return self._index[id(node)]
        except KeyError:
            raise KeyError(f"{type(node).__name__} node is not in this arena") from None

    def __contains__(self, node: object) -> bool:
        return id(node) in self._index

    def __getitem__(self, index: int) -> object:
        return self._nodes[index]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[object]:
        return iter(self._nodes)


@dataclass(frozen=True)
class Module:
    package: tuple[str, ...]
    declarations: tuple[Declaration, ...]
    arena: Arena = field(compare=False, repr=False)
    span: Span = _span()
