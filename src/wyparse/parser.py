"""Parser for the Whiley programming language.

Transforms a token stream into an AST by recursive descent. Whiley blocks
are delimited by indentation alone, and its type and expression grammars
overlap, so the parser tracks an :class:`EnclosingScope` as it goes and
settles ambiguous prefixes by bounded speculation: the cursor is saved, a
sub-parse is attempted, and the cursor is restored when the sub-parse
fails or turns out not to be forced (see :mod:`wyparse.classify`).

The ``terminated`` flag threaded through the expression methods says
whether the expression is enclosed by brackets or ends a block header. A
terminated expression may continue over line breaks; an unterminated one
ends at the end of its line.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from wyparse.ast_nodes import (
    Arena,
    ArrayAccess,
    ArrayGenerator,
    ArrayInitialiser,
    ArrayLength,
    ArrayType,
    Assert,
    Assign,
    Assume,
    BinaryExpr,
    Block,
    BoolLit,
    Break,
    ByteLit,
    Case,
    Cast,
    CharLit,
    ConstantDecl,
    Continue,
    Debug,
    Declaration,
    Dereference,
    DoWhile,
    Expr,
    Fail,
    Field,
    FunctionDecl,
    FunctionType,
    Identifier,
    IfElse,
    ImportDecl,
    IndirectInvoke,
    IntersectionType,
    IntLit,
    Invoke,
    Is,
    LambdaConstant,
    LambdaInitialiser,
    ListType,
    LVal,
    MethodDecl,
    MethodType,
    Module,
    Name,
    NamedBlock,
    NegationType,
    New,
    NominalType,
    NullLit,
    PrimitiveType,
    PropertyDecl,
    Quantifier,
    QuantifierRange,
    RecordAccess,
    RecordInitialiser,
    RecordType,
    ReferenceType,
    Return,
    Skip,
    StaticVariableAccess,
    Stmt,
    StringLit,
    Switch,
    Type,
    TypeDecl,
    UnaryExpr,
    UnionType,
    Variable,
    VariableAccess,
    While,
)
from wyparse.classify import must_parse_as_expr, must_parse_as_type
from wyparse.errors import ParseError
from wyparse.indentation import Indent
from wyparse.scope import EnclosingScope
from wyparse.source import Span
from wyparse.tokens import LINE_SPACE, SPELLINGS, TERM_START, WHITESPACE, Token, TokenKind

logger = logging.getLogger(__name__)

N = TypeVar("N")

_PRIMITIVES = frozenset({
    TokenKind.VOID, TokenKind.ANY, TokenKind.NULL,
    TokenKind.BOOL, TokenKind.BYTE, TokenKind.INT,
})

_MODIFIERS = (TokenKind.PUBLIC, TokenKind.PRIVATE, TokenKind.NATIVE, TokenKind.EXPORT)

_RELATIONAL = (
    TokenKind.LESS_EQUAL, TokenKind.LESS, TokenKind.GREATER_EQUAL,
    TokenKind.GREATER, TokenKind.EQUAL, TokenKind.NOT_EQUAL, TokenKind.IS,
    TokenKind.SUBSET, TokenKind.SUBSET_EQUAL, TokenKind.SUPERSET,
    TokenKind.SUPERSET_EQUAL,
)

_ESCAPES = {
    "b": "\b", "t": "\t", "n": "\n", "f": "\f", "r": "\r",
    '"': '"', "'": "'", "\\": "\\",
}


class Parser:
    """Parses a list of Whiley tokens into a :class:`Module`.

    Parsing stops at the first error, which is raised as a
    :class:`ParseError`. Every node built, including nodes from
    speculative parses that were later abandoned, is allocated into
    ``arena``.
    """

    def __init__(
        self,
        tokens: list[Token],
        filename: str = "<stdin>",
        arena: Arena | None = None,
    ) -> None:
        self.tokens = tokens
        self.pos = 0
        self.filename = filename
        self.arena = arena if arena is not None else Arena()

    # ── Token access ─────────────────────────────────────────────

    def _skip(self, index: int, terminated: bool) -> int:
        """Skip whitespace from ``index``; newlines only when terminated."""
        skipped = WHITESPACE if terminated else LINE_SPACE
        while index < len(self.tokens) and self.tokens[index].kind in skipped:
            index += 1
        return index

    def _skip_whitespace(self) -> None:
        self.pos = self._skip(self.pos, True)

    def _skip_empty_lines(self) -> None:
        """Move past blank and comment-only lines, stopping at a line start."""
        index = self.pos
        while True:
            index = self._skip(index, False)
            if index >= len(self.tokens):
                self.pos = index
                return
            if self.tokens[index].kind is not TokenKind.NEWLINE:
                return
            index += 1
            self.pos = index

    def _check_not_eof(self) -> None:
        self._skip_whitespace()
        if self.pos >= len(self.tokens):
            if self.tokens:
                raise self._error("unexpected end-of-file", self.tokens[-1])
            raise ParseError("unexpected end-of-file", Span(self.filename, 0, 0))

    def _current(self) -> Token:
        self._check_not_eof()
        return self.tokens[self.pos]

    def _advance(self) -> Token:
        tok = self._current()
        self.pos += 1
        return tok

    def _match(self, kind: TokenKind) -> Token:
        tok = self._advance()
        if tok.kind is not kind:
            raise self._error(f'expecting "{SPELLINGS[kind]}" here', tok)
        return tok

    def _try_match(self, terminated: bool, *kinds: TokenKind) -> Token | None:
        index = self._skip(self.pos, terminated)
        if index < len(self.tokens) and self.tokens[index].kind in kinds:
            self.pos = index + 1
            return self.tokens[index]
        return None

    def _eventually_match(self, kind: TokenKind) -> Token | None:
        """Match ``kind`` after any whitespace, or return None without moving."""
        tok = self._current()
        if tok.kind is not kind:
            return None
        self.pos += 1
        return tok

    def _try_match_on_line(self, kind: TokenKind) -> Token | None:
        return self._try_match(False, kind)

    def _try_match_at_indent(self, indent: Indent, *kinds: TokenKind) -> Token | None:
        """Match ``kinds`` only at the start of a line indented by ``indent``."""
        start = self.pos
        current = self._current_indent()
        if current is not None and current.equivalent(indent):
            tok = self._try_match(True, *kinds)
            if tok is not None:
                return tok
        self.pos = start
        return None

    def _lookahead(self, terminated: bool, *kinds: TokenKind) -> bool:
        """Check whether the next tokens are ``kinds``, without consuming them."""
        index = self.pos
        for kind in kinds:
            index = self._skip(index, terminated)
            if index >= len(self.tokens) or self.tokens[index].kind is not kind:
                return False
            index += 1
        return True

    def _is_at_eol(self) -> bool:
        index = self._skip(self.pos, False)
        return index >= len(self.tokens) or self.tokens[index].kind is TokenKind.NEWLINE

    def _match_end_line(self) -> None:
        self.pos = self._skip(self.pos, False)
        if self.pos >= len(self.tokens):
            return
        tok = self.tokens[self.pos]
        if tok.kind is not TokenKind.NEWLINE:
            raise self._error("expected end-of-line", tok)
        self.pos += 1

    def _current_indent(self) -> Indent | None:
        """Indentation of the next non-empty line; None at top level or EOF."""
        self._skip_empty_lines()
        if self.pos < len(self.tokens):
            tok = self.tokens[self.pos]
            if tok.kind is TokenKind.INDENT:
                return Indent.from_text(tok.text)
        return None

    # ── Node construction ────────────────────────────────────────

    def _token_span(self, tok: Token) -> Span:
        return Span(self.filename, tok.start, tok.end)

    def _error(self, message: str, tok: Token) -> ParseError:
        return ParseError(message, self._token_span(tok))

    def _span_from(self, start: int) -> Span:
        """Span from the first to the last non-whitespace token since ``start``."""
        first, last = start, self.pos - 1
        while first <= last and self.tokens[first].kind in WHITESPACE:
            first += 1
        while last >= first and self.tokens[last].kind in WHITESPACE:
            last -= 1
        if first > last:
            offset = self.tokens[start - 1].end if start > 0 else 0
            return Span(self.filename, offset, offset)
        return Span(self.filename, self.tokens[first].start, self.tokens[last].end)

    def _make(self, cls: Callable[..., N], start: int, *args: object) -> N:
        """Build a node spanning the tokens consumed since ``start``."""
        return self.arena.allocate(cls(*args, span=self._span_from(start)))

    def _attempt(self, parse: Callable[..., N], *args: object) -> N | None:
        """Run a speculative sub-parse.

        On failure the cursor is put back where it was and None is returned.
        """
        start = self.pos
        try:
            return parse(*args)
        except ParseError as err:
            logger.debug(
                "%s: %s failed at token %d (%s), backtracking",
                self.filename, parse.__name__, start, err.message,
            )
            self.pos = start
            return None

    # ── Top-level parsing ────────────────────────────────────────

    def parse(self) -> Module:
        """Parse the entire token stream into a Module."""
        package = self._parse_package()
        declarations: list[Declaration] = []
        self._skip_whitespace()
        while self.pos < len(self.tokens):
            declarations.append(self._parse_declaration())
            self._skip_whitespace()
        end = self.tokens[-1].end if self.tokens else 0
        return self.arena.allocate(Module(
            package, tuple(declarations), self.arena,
            span=Span(self.filename, 0, end),
        ))

    def _parse_package(self) -> tuple[str, ...]:
        if self._try_match(True, TokenKind.PACKAGE) is None:
            return ()
        components = [self._match(TokenKind.IDENTIFIER).text]
        while self._try_match(True, TokenKind.DOT) is not None:
            components.append(self._match(TokenKind.IDENTIFIER).text)
        self._match_end_line()
        return tuple(components)

    def _parse_declaration(self) -> Declaration:
        start = self.pos
        if self._current().kind is TokenKind.IMPORT:
            return self._parse_import(start)
        modifiers = self._parse_modifiers()
        tok = self._current()
        if tok.kind is TokenKind.IDENTIFIER and tok.text == "type":
            return self._parse_type_declaration(start, modifiers)
        if tok.kind is TokenKind.IDENTIFIER and tok.text == "constant":
            return self._parse_constant_declaration(start, modifiers)
        if tok.kind is TokenKind.FUNCTION or tok.kind is TokenKind.METHOD:
            return self._parse_function_or_method(start, modifiers)
        if tok.kind is TokenKind.PROPERTY:
            return self._parse_property_declaration(start, modifiers)
        raise self._error("unrecognised declaration", tok)

    def _parse_import(self, start: int) -> ImportDecl:
        self._match(TokenKind.IMPORT)
        path = [self._parse_identifier()]
        while self._try_match(True, TokenKind.COLON_COLON) is not None:
            star = self._try_match(True, TokenKind.STAR)
            if star is not None:
                path.append(self.arena.allocate(Identifier("*", span=self._token_span(star))))
            else:
                path.append(self._parse_identifier())
        node = self._make(ImportDecl, start, tuple(path))
        self._match_end_line()
        return node

    def _parse_modifiers(self) -> tuple[str, ...]:
        modifiers: list[str] = []
        visibility = False
        while True:
            tok = self._try_match(True, *_MODIFIERS)
            if tok is None:
                return tuple(modifiers)
            if tok.kind in (TokenKind.PUBLIC, TokenKind.PRIVATE):
                if visibility:
                    raise self._error("visibility modifier already given", tok)
                visibility = True
            modifiers.append(tok.text)

    def _parse_type_declaration(self, start: int, modifiers: tuple[str, ...]) -> TypeDecl:
        self._match(TokenKind.IDENTIFIER)  # type
        scope = EnclosingScope()
        name = self._parse_identifier()
        self._match(TokenKind.IS)
        variable = self._parse_optional_parameter(scope)
        if isinstance(variable.type, RecordType):
            for fld in variable.type.fields:
                scope.declare_field_alias(fld.name)
        invariant = self._parse_invariant(scope, TokenKind.WHERE)
        node = self._make(TypeDecl, start, modifiers, name, variable, invariant)
        self._match_end_line()
        return node

    def _parse_constant_declaration(
        self, start: int, modifiers: tuple[str, ...],
    ) -> ConstantDecl:
        self._match(TokenKind.IDENTIFIER)  # constant
        scope = EnclosingScope()
        name = self._parse_identifier()
        self._match(TokenKind.IS)
        value = self._parse_expression(scope, False)
        node = self._make(ConstantDecl, start, modifiers, name, value)
        self._match_end_line()
        return node

    def _parse_function_or_method(
        self, start: int, modifiers: tuple[str, ...],
    ) -> FunctionDecl | MethodDecl:
        scope = EnclosingScope()
        is_function = self._advance().kind is TokenKind.FUNCTION
        lifetimes: tuple[Identifier, ...] = ()
        if not is_function:
            lifetimes = self._parse_optional_lifetime_parameters(scope)
        name = self._parse_identifier()
        parameters = self._parse_parameters(scope, TokenKind.RPAREN)
        returns: tuple[Variable, ...] = ()
        if self._try_match(True, TokenKind.ARROW) is not None:
            returns = self._parse_optional_parameters(scope)
        requires = self._parse_invariant(scope, TokenKind.REQUIRES)
        ensures = self._parse_invariant(scope, TokenKind.ENSURES)
        self._match(TokenKind.COLON)
        self._match_end_line()
        scope.declare_this_lifetime()
        body = self._parse_block(scope, in_loop=False)
        if is_function:
            return self._make(
                FunctionDecl, start, modifiers, name, parameters, returns,
                requires, ensures, body,
            )
        return self._make(
            MethodDecl, start, modifiers, name, lifetimes, parameters, returns,
            requires, ensures, body,
        )

    def _parse_property_declaration(
        self, start: int, modifiers: tuple[str, ...],
    ) -> PropertyDecl:
        scope = EnclosingScope()
        self._match(TokenKind.PROPERTY)
        name = self._parse_identifier()
        parameters = self._parse_parameters(scope, TokenKind.RPAREN)
        invariant = self._parse_invariant(scope, TokenKind.WHERE)
        node = self._make(PropertyDecl, start, modifiers, name, parameters, invariant)
        self._match_end_line()
        return node

    def _parse_parameters(
        self, scope: EnclosingScope, terminator: TokenKind,
    ) -> tuple[Variable, ...]:
        """Parse ``(T x, ...`` up to and including ``terminator``."""
        self._match(TokenKind.LPAREN)
        parameters: list[Variable] = []
        while self._eventually_match(terminator) is None:
            if parameters:
                self._match(TokenKind.COMMA)
            start = self.pos
            type_, name = self._parse_mixed_type(scope)
            variable = self._make(Variable, start, name, type_, None)
            scope.declare_variable(variable)
            parameters.append(variable)
        return tuple(parameters)

    def _parse_optional_parameters(self, scope: EnclosingScope) -> tuple[Variable, ...]:
        """Parse a return clause: ``(T x, ...)`` or a single unnamed type."""
        index = self._skip(self.pos, True)
        if index < len(self.tokens) and self.tokens[index].kind is TokenKind.LPAREN:
            return self._parse_parameters(scope, TokenKind.RPAREN)
        return (self._parse_optional_parameter(scope),)

    def _parse_optional_parameter(self, scope: EnclosingScope) -> Variable:
        """Parse ``(T x)`` or a bare type ``T``, which binds the name ``$``."""
        start = self.pos
        if self._try_match(True, TokenKind.LPAREN) is not None:
            type_, name = self._parse_mixed_type(scope)
            self._match(TokenKind.RPAREN)
        else:
            type_ = self._parse_type(scope)
            name = self.arena.allocate(Identifier("$", span=type_.span))
        variable = self._make(Variable, start, name, type_, None)
        scope.declare_variable(variable)
        return variable

    def _parse_invariant(self, scope: EnclosingScope, kind: TokenKind) -> tuple[Expr, ...]:
        clauses: list[Expr] = []
        while self._try_match(True, kind) is not None:
            clauses.append(self._parse_logical_expression(scope, False))
        return tuple(clauses)

    # ── Blocks ───────────────────────────────────────────────────

    def _parse_block(self, scope: EnclosingScope, in_loop: bool) -> Block:
        """Parse the statements indented strictly further than ``scope``."""
        start = self.pos
        indent = self._current_indent()
        if indent is None or not scope.indent.less_than(indent):
            return self._make(Block, start, ())
        block_scope = scope.derive(indent, in_loop)
        statements: list[Stmt] = []
        while True:
            current = self._current_indent()
            if current is None or current.less_than(indent):
                break
            if not current.equivalent(indent):
                raise self._error("unexpected end-of-block", self.tokens[self.pos])
            statements.append(self._parse_statement(block_scope))
        return self._make(Block, start, tuple(statements))

    # ── Statements ───────────────────────────────────────────────

    def _parse_statement(self, scope: EnclosingScope) -> Stmt:
        kind = self._current().kind
        if kind is TokenKind.ASSERT:
            return self._parse_assert(scope)
        if kind is TokenKind.ASSUME:
            return self._parse_assume(scope)
        if kind is TokenKind.BREAK:
            return self._parse_break(scope)
        if kind is TokenKind.CONTINUE:
            return self._parse_continue(scope)
        if kind is TokenKind.DO:
            return self._parse_do_while(scope)
        if kind is TokenKind.DEBUG:
            return self._parse_debug(scope)
        if kind is TokenKind.FAIL:
            return self._parse_simple(Fail)
        if kind is TokenKind.IF:
            return self._parse_if(scope)
        if kind is TokenKind.RETURN:
            return self._parse_return(scope)
        if kind is TokenKind.WHILE:
            return self._parse_while(scope)
        if kind is TokenKind.SKIP:
            return self._parse_simple(Skip)
        if kind is TokenKind.SWITCH:
            return self._parse_switch(scope)
        return self._parse_headless_statement(scope)

    def _parse_headless_statement(self, scope: EnclosingScope) -> Stmt:
        """Parse a named block, declaration, assignment or invocation."""
        start = self.pos
        name = self._parse_optional_identifier()
        if name is not None:
            if self._try_match(True, TokenKind.COLON) is not None and self._is_at_eol():
                self._match_end_line()
                body_scope = scope.derive()
                body_scope.declare_lifetime(name)
                body = self._parse_block(body_scope, scope.in_loop)
                return self._make(NamedBlock, start, name, body)
            self.pos = start

        if self._parse_definite_type(scope) is None:
            expr = self._parse_expression(scope, False)
            if isinstance(expr, (Invoke, IndirectInvoke)):
                self._match_end_line()
                return expr
            if self._try_match(True, TokenKind.ASSIGN, TokenKind.COMMA) is not None:
                self.pos = start
                return self._parse_assignment(scope)
            logger.debug(
                "%s: statement at token %d reparsed as a declaration",
                self.filename, start,
            )
        self.pos = start
        return self._parse_variable_declaration(scope)

    def _parse_variable_declaration(self, scope: EnclosingScope) -> Variable:
        start = self.pos
        type_ = self._parse_type(scope)
        name = self._parse_identifier()
        scope.check_name_available(name)
        initialiser = None
        if self._try_match(True, TokenKind.ASSIGN) is not None:
            initialiser = self._parse_expression(scope, False)
        variable = self._make(Variable, start, name, type_, initialiser)
        self._match_end_line()
        # Declared last so the initialiser cannot refer to the variable.
        scope.declare_variable(variable)
        return variable

    def _parse_simple(self, cls: Callable[..., N]) -> N:
        start = self.pos
        self._advance()
        node = self._make(cls, start)
        self._match_end_line()
        return node

    def _parse_assert(self, scope: EnclosingScope) -> Assert:
        start = self.pos
        self._match(TokenKind.ASSERT)
        condition = self._parse_logical_expression(scope, False)
        node = self._make(Assert, start, condition)
        self._match_end_line()
        return node

    def _parse_assume(self, scope: EnclosingScope) -> Assume:
        start = self.pos
        self._match(TokenKind.ASSUME)
        condition = self._parse_logical_expression(scope, False)
        node = self._make(Assume, start, condition)
        self._match_end_line()
        return node

    def _parse_break(self, scope: EnclosingScope) -> Break:
        start = self.pos
        tok = self._match(TokenKind.BREAK)
        node = self._make(Break, start)
        self._match_end_line()
        if not scope.in_loop:
            raise self._error("break outside switch or loop", tok)
        return node

    def _parse_continue(self, scope: EnclosingScope) -> Continue:
        start = self.pos
        tok = self._match(TokenKind.CONTINUE)
        node = self._make(Continue, start)
        self._match_end_line()
        if not scope.in_loop:
            raise self._error("continue outside loop", tok)
        return node

    def _parse_debug(self, scope: EnclosingScope) -> Debug:
        start = self.pos
        self._match(TokenKind.DEBUG)
        operand = self._parse_expression(scope, False)
        node = self._make(Debug, start, operand)
        self._match_end_line()
        return node

    def _parse_return(self, scope: EnclosingScope) -> Return:
        start = self.pos
        self._match(TokenKind.RETURN)
        values: tuple[Expr, ...] = ()
        if not self._is_at_eol():
            values = self._parse_expressions(scope, False)
        node = self._make(Return, start, values)
        self._match_end_line()
        return node

    def _parse_do_while(self, scope: EnclosingScope) -> DoWhile:
        start = self.pos
        self._match(TokenKind.DO)
        self._match(TokenKind.COLON)
        self._match_end_line()
        body = self._parse_block(scope, in_loop=True)
        self._match(TokenKind.WHILE)
        condition = self._parse_logical_expression(scope, False)
        invariants = self._parse_invariant(scope, TokenKind.WHERE)
        node = self._make(DoWhile, start, condition, invariants, body)
        self._match_end_line()
        return node

    def _parse_if(self, scope: EnclosingScope) -> IfElse:
        start = self.pos
        self._match(TokenKind.IF)
        condition = self._parse_logical_expression(scope, True)
        self._match(TokenKind.COLON)
        self._match_end_line()
        true_branch = self._parse_block(scope, scope.in_loop)
        false_branch = None
        if self._try_match_at_indent(scope.indent, TokenKind.ELSE) is not None:
            else_start = self.pos
            if self._lookahead(True, TokenKind.IF):
                chained = self._parse_if(scope)
                false_branch = self._make(Block, else_start, (chained,))
            else:
                self._match(TokenKind.COLON)
                self._match_end_line()
                false_branch = self._parse_block(scope, scope.in_loop)
        return self._make(IfElse, start, condition, true_branch, false_branch)

    def _parse_while(self, scope: EnclosingScope) -> While:
        start = self.pos
        self._match(TokenKind.WHILE)
        condition = self._parse_logical_expression(scope, True)
        invariants = self._parse_invariant(scope, TokenKind.WHERE)
        self._match(TokenKind.COLON)
        self._match_end_line()
        body = self._parse_block(scope, in_loop=True)
        return self._make(While, start, condition, invariants, body)

    def _parse_switch(self, scope: EnclosingScope) -> Switch:
        start = self.pos
        self._match(TokenKind.SWITCH)
        condition = self._parse_expression(scope, True)
        self._match(TokenKind.COLON)
        self._match_end_line()
        cases = self._parse_case_block(scope)
        return self._make(Switch, start, condition, cases)

    def _parse_case_block(self, scope: EnclosingScope) -> tuple[Case, ...]:
        indent = self._current_indent()
        if indent is None or not scope.indent.less_than(indent):
            return ()
        case_scope = scope.derive(indent)
        cases: list[Case] = []
        while True:
            current = self._current_indent()
            if current is None or current.less_than(indent):
                break
            if not current.equivalent(indent):
                raise self._error("unexpected end-of-block", self.tokens[self.pos])
            cases.append(self._parse_case(case_scope))

        seen_default = False
        for case in cases:
            if seen_default:
                message = "unreachable code" if case.conditions else "duplicate default label"
                raise ParseError(message, case.span)
            seen_default = case.is_default
        return tuple(cases)

    def _parse_case(self, scope: EnclosingScope) -> Case:
        start = self.pos
        conditions: list[Expr] = []
        if self._try_match(True, TokenKind.DEFAULT) is None:
            self._match(TokenKind.CASE)
            conditions.append(self._parse_expression(scope, True))
            while self._try_match(True, TokenKind.COMMA) is not None:
                conditions.append(self._parse_expression(scope, True))
        self._match(TokenKind.COLON)
        self._match_end_line()
        body = self._parse_block(scope, scope.in_loop)
        return self._make(Case, start, tuple(conditions), body)

    # ── Assignments ──────────────────────────────────────────────

    def _parse_assignment(self, scope: EnclosingScope) -> Assign:
        start = self.pos
        lvals = [self._parse_lval(scope)]
        while self._try_match(True, TokenKind.COMMA) is not None:
            lvals.append(self._parse_lval(scope))
        self._match(TokenKind.ASSIGN)
        rvals = self._parse_expressions(scope, False)
        node = self._make(Assign, start, tuple(lvals), rvals)
        self._match_end_line()
        return node

    def _parse_lval(self, scope: EnclosingScope) -> LVal:
        self._check_not_eof()
        start = self.pos
        lhs = self._parse_lval_term(scope)
        while True:
            tok = self._try_match_on_line(TokenKind.LBRACKET)
            if tok is None:
                tok = self._try_match(True, TokenKind.DOT, TokenKind.ARROW)
            if tok is None:
                return lhs
            if tok.kind is TokenKind.LBRACKET:
                index = self._parse_additive_expression(scope, True)
                self._match(TokenKind.RBRACKET)
                lhs = self._make(ArrayAccess, start, lhs, index)
                continue
            if tok.kind is TokenKind.ARROW:
                lhs = self._make(Dereference, start, lhs)
            name = self._parse_identifier()
            lhs = self._make(RecordAccess, start, lhs, name)

    def _parse_lval_term(self, scope: EnclosingScope) -> LVal:
        start = self.pos
        tok = self._current()
        if tok.kind is TokenKind.IDENTIFIER:
            name = self._parse_identifier()
            return self._make(VariableAccess, start, name, scope.variable(name.text))
        if tok.kind is TokenKind.LPAREN:
            self._match(TokenKind.LPAREN)
            lval = self._parse_lval(scope)
            self._match(TokenKind.RPAREN)
            return lval
        if tok.kind is TokenKind.STAR:
            self._match(TokenKind.STAR)
            lval = self._parse_lval(scope)
            return self._make(Dereference, start, lval)
        raise self._error("unrecognised lval", tok)

    # ── Expressions ──────────────────────────────────────────────

    def _parse_expressions(self, scope: EnclosingScope, terminated: bool) -> tuple[Expr, ...]:
        exprs = [self._parse_expression(scope, terminated)]
        while self._try_match(False, TokenKind.COMMA) is not None:
            exprs.append(self._parse_expression(scope, terminated))
        return tuple(exprs)

    def _parse_expression(self, scope: EnclosingScope, terminated: bool) -> Expr:
        return self._parse_logical_expression(scope, terminated)

    def _parse_logical_expression(self, scope: EnclosingScope, terminated: bool) -> Expr:
        self._check_not_eof()
        start = self.pos
        lhs = self._parse_and_or_expression(scope, terminated)
        tok = self._try_match(terminated, TokenKind.IMPLIES, TokenKind.IFF)
        if tok is not None:
            rhs = self._parse_logical_expression(scope, terminated)
            lhs = self._make(BinaryExpr, start, lhs, tok.text, rhs)
        return lhs

    def _parse_and_or_expression(self, scope: EnclosingScope, terminated: bool) -> Expr:
        self._check_not_eof()
        start = self.pos
        lhs = self._parse_bitwise_or_expression(scope, terminated)
        tok = self._try_match(terminated, TokenKind.LOGICAL_AND, TokenKind.LOGICAL_OR)
        if tok is not None:
            rhs = self._parse_and_or_expression(scope, terminated)
            lhs = self._make(BinaryExpr, start, lhs, tok.text, rhs)
        return lhs

    def _parse_bitwise_or_expression(self, scope: EnclosingScope, terminated: bool) -> Expr:
        start = self.pos
        lhs = self._parse_bitwise_xor_expression(scope, terminated)
        tok = self._try_match(terminated, TokenKind.BAR)
        if tok is not None:
            rhs = self._parse_bitwise_or_expression(scope, terminated)
            lhs = self._make(BinaryExpr, start, lhs, tok.text, rhs)
        return lhs

    def _parse_bitwise_xor_expression(self, scope: EnclosingScope, terminated: bool) -> Expr:
        start = self.pos
        lhs = self._parse_bitwise_and_expression(scope, terminated)
        tok = self._try_match(terminated, TokenKind.CARET)
        if tok is not None:
            rhs = self._parse_bitwise_xor_expression(scope, terminated)
            lhs = self._make(BinaryExpr, start, lhs, tok.text, rhs)
        return lhs

    def _parse_bitwise_and_expression(self, scope: EnclosingScope, terminated: bool) -> Expr:
        start = self.pos
        lhs = self._parse_condition_expression(scope, terminated)
        tok = self._try_match(terminated, TokenKind.AMPERSAND)
        if tok is not None:
            rhs = self._parse_bitwise_and_expression(scope, terminated)
            lhs = self._make(BinaryExpr, start, lhs, tok.text, rhs)
        return lhs

    def _parse_condition_expression(self, scope: EnclosingScope, terminated: bool) -> Expr:
        self._check_not_eof()
        start = self.pos
        quantifier = self._try_match(terminated, TokenKind.SOME, TokenKind.ALL)
        if quantifier is not None:
            return self._parse_quantifier(start, quantifier, scope)
        lhs = self._parse_shift_expression(scope, terminated)
        tok = self._try_match(terminated, *_RELATIONAL)
        if tok is None:
            return lhs
        if tok.kind is TokenKind.IS:
            type_ = self._parse_type(scope)
            return self._make(Is, start, lhs, type_)
        rhs = self._parse_shift_expression(scope, terminated)
        return self._make(BinaryExpr, start, lhs, tok.text, rhs)

    def _parse_quantifier(self, start: int, keyword: Token, scope: EnclosingScope) -> Quantifier:
        scope = scope.derive()
        self._match(TokenKind.LBRACE)
        ranges: list[QuantifierRange] = []
        while True:
            range_start = self.pos
            name = self._parse_identifier()
            scope.check_name_available(name)
            self._match(TokenKind.IN)
            low = self._parse_additive_expression(scope, True)
            self._match(TokenKind.DOT_DOT)
            high = self._parse_additive_expression(scope, True)
            ranges.append(self._make(QuantifierRange, range_start, name, low, high))
            bound_type = self.arena.allocate(PrimitiveType("int", span=name.span))
            scope.declare_variable(self._make(Variable, range_start, name, bound_type, None))
            if self._eventually_match(TokenKind.BAR) is not None:
                break
            self._match(TokenKind.COMMA)
        condition = self._parse_logical_expression(scope, True)
        self._match(TokenKind.RBRACE)
        return self._make(Quantifier, start, keyword.text, tuple(ranges), condition)

    def _parse_left_assoc(
        self,
        scope: EnclosingScope,
        terminated: bool,
        operand: Callable[[EnclosingScope, bool], Expr],
        *kinds: TokenKind,
    ) -> Expr:
        start = self.pos
        lhs = operand(scope, terminated)
        while True:
            tok = self._try_match(terminated, *kinds)
            if tok is None:
                return lhs
            rhs = operand(scope, terminated)
            lhs = self._make(BinaryExpr, start, lhs, tok.text, rhs)

    def _parse_shift_expression(self, scope: EnclosingScope, terminated: bool) -> Expr:
        return self._parse_left_assoc(
            scope, terminated, self._parse_additive_expression,
            TokenKind.SHIFT_LEFT, TokenKind.SHIFT_RIGHT,
        )

    def _parse_additive_expression(self, scope: EnclosingScope, terminated: bool) -> Expr:
        return self._parse_left_assoc(
            scope, terminated, self._parse_multiplicative_expression,
            TokenKind.PLUS, TokenKind.MINUS,
        )

    def _parse_multiplicative_expression(self, scope: EnclosingScope, terminated: bool) -> Expr:
        return self._parse_left_assoc(
            scope, terminated, self._parse_access_expression,
            TokenKind.STAR, TokenKind.SLASH, TokenKind.PERCENT,
        )

    def _parse_access_expression(self, scope: EnclosingScope, terminated: bool) -> Expr:
        self._check_not_eof()
        start = self.pos
        lhs = self._parse_term(scope, terminated)
        while True:
            tok = self._try_match_on_line(TokenKind.LBRACKET)
            if tok is None:
                tok = self._try_match(
                    terminated, TokenKind.DOT, TokenKind.ARROW, TokenKind.COLON_COLON,
                )
            if tok is None:
                return lhs
            if tok.kind is TokenKind.LBRACKET:
                index = self._parse_additive_expression(scope, True)
                self._match(TokenKind.RBRACKET)
                lhs = self._make(ArrayAccess, start, lhs, index)
            elif tok.kind is TokenKind.COLON_COLON:
                self.pos = start
                lhs = self._parse_qualified_access(scope, terminated)
            else:
                if tok.kind is TokenKind.ARROW:
                    lhs = self._make(Dereference, start, lhs)
                name = self._parse_identifier()
                access = self._make(RecordAccess, start, lhs, name)
                lhs = access
                if self._try_match(terminated, TokenKind.LPAREN) is not None:
                    arguments = self._parse_invocation_arguments(scope)
                    lhs = self._make(IndirectInvoke, start, access, None, arguments)
                elif self._lookahead(terminated, TokenKind.LESS):
                    lifetimes = self._parse_optional_lifetime_arguments(scope, terminated)
                    if lifetimes is not None:
                        arguments = self._parse_invocation_arguments(scope)
                        lhs = self._make(IndirectInvoke, start, access, lifetimes, arguments)

    def _parse_qualified_access(self, scope: EnclosingScope, terminated: bool) -> Expr:
        start = self.pos
        name = self._parse_name()
        if self._try_match(terminated, TokenKind.LPAREN) is not None:
            arguments = self._parse_invocation_arguments(scope)
            return self._make(Invoke, start, name, None, arguments)
        return self._make(StaticVariableAccess, start, name)

    def _parse_term(self, scope: EnclosingScope, terminated: bool) -> Expr:
        start = self.pos
        tok = self._current()
        kind = tok.kind
        if kind is TokenKind.LPAREN:
            return self._parse_bracketed_expression(scope, terminated)
        if kind is TokenKind.NEW or kind is TokenKind.THIS:
            return self._parse_new_expression(scope, terminated)
        if kind is TokenKind.IDENTIFIER:
            return self._parse_identifier_term(scope, terminated)
        if kind is TokenKind.NULL:
            self._advance()
            return self._make(NullLit, start)
        if kind is TokenKind.TRUE or kind is TokenKind.FALSE:
            self._advance()
            return self._make(BoolLit, start, kind is TokenKind.TRUE)
        if kind is TokenKind.BYTE_LIT:
            self._advance()
            return self._make(ByteLit, start, self._decode_byte(tok))
        if kind is TokenKind.CHAR_LIT:
            self._advance()
            return self._make(CharLit, start, self._decode_char(tok))
        if kind is TokenKind.INT_LIT:
            self._advance()
            return self._make(IntLit, start, int(tok.text))
        if kind is TokenKind.STRING_LIT:
            self._advance()
            return self._make(StringLit, start, self._decode_string(tok))
        if kind is TokenKind.MINUS:
            self._advance()
            operand = self._parse_access_expression(scope, terminated)
            return self._make(UnaryExpr, start, "-", operand)
        if kind is TokenKind.BAR:
            self._advance()
            operand = self._parse_shift_expression(scope, True)
            self._match(TokenKind.BAR)
            return self._make(ArrayLength, start, operand)
        if kind is TokenKind.LBRACKET:
            return self._parse_array_expression(scope)
        if kind is TokenKind.LBRACE:
            return self._parse_record_initialiser(start, None, scope)
        if kind is TokenKind.BANG:
            self._advance()
            operand = self._parse_condition_expression(scope, terminated)
            return self._make(UnaryExpr, start, "!", operand)
        if kind is TokenKind.STAR:
            if self._lookahead(terminated, TokenKind.STAR, TokenKind.COLON, TokenKind.NEW):
                return self._parse_new_expression(scope, terminated)
            self._advance()
            operand = self._parse_term(scope, terminated)
            return self._make(Dereference, start, operand)
        if kind is TokenKind.TILDE:
            self._advance()
            operand = self._parse_expression(scope, terminated)
            return self._make(UnaryExpr, start, "~", operand)
        if kind is TokenKind.AMPERSAND:
            return self._parse_lambda(scope, terminated)
        raise self._error("unrecognised term", tok)

    def _parse_identifier_term(self, scope: EnclosingScope, terminated: bool) -> Expr:
        start = self.pos
        name = self._parse_identifier()
        if self._try_match(terminated, TokenKind.LPAREN) is not None:
            return self._parse_invoke(scope, start, name, None)
        if self._lookahead(terminated, TokenKind.COLON, TokenKind.NEW):
            self.pos = start
            return self._parse_new_expression(scope, terminated)
        if self._lookahead(terminated, TokenKind.LESS):
            lifetimes = self._parse_optional_lifetime_arguments(scope, terminated)
            if lifetimes is not None:
                return self._parse_invoke(scope, start, name, lifetimes)
        elif self._lookahead(terminated, TokenKind.LBRACE):
            return self._parse_record_initialiser(start, name, scope)

        if scope.is_variable(name.text):
            return self._make(VariableAccess, start, name, scope.variable(name.text))
        if scope.is_field_alias(name.text):
            # Inside a record type's invariant ``x`` stands for ``$.x``.
            dollar = self.arena.allocate(Identifier("$", span=name.span))
            source = self._make(VariableAccess, start, dollar, scope.variable("$"))
            return self._make(RecordAccess, start, source, name)
        return self._make(StaticVariableAccess, start, self._name_of(name))

    def _parse_invoke(
        self,
        scope: EnclosingScope,
        start: int,
        name: Identifier,
        lifetimes: tuple[Identifier, ...] | None,
    ) -> Invoke | IndirectInvoke:
        """Finish ``name(args)`` once the opening bracket has been consumed."""
        arguments = self._parse_invocation_arguments(scope)
        if scope.is_variable(name.text):
            source = self.arena.allocate(
                VariableAccess(name, scope.variable(name.text), span=name.span)
            )
            return self._make(IndirectInvoke, start, source, lifetimes, arguments)
        return self._make(Invoke, start, self._name_of(name), lifetimes, arguments)

    def _parse_invocation_arguments(self, scope: EnclosingScope) -> tuple[Expr, ...]:
        arguments: list[Expr] = []
        while self._eventually_match(TokenKind.RPAREN) is None:
            if arguments:
                self._match(TokenKind.COMMA)
            arguments.append(self._parse_expression(scope, True))
        return tuple(arguments)

    def _parse_bracketed_expression(self, scope: EnclosingScope, terminated: bool) -> Expr:
        """Parse ``(e)`` or a cast ``(T) e``."""
        start = self.pos
        self._match(TokenKind.LPAREN)
        type_ = self._parse_definite_type(scope)
        if type_ is not None and self._try_match(True, TokenKind.RPAREN) is not None:
            operand = self._parse_expression(scope, terminated)
            return self._make(Cast, start, type_, operand)

        self.pos = start
        self._match(TokenKind.LPAREN)
        expr = self._parse_expression(scope, True)
        self._match(TokenKind.RPAREN)
        if not must_parse_as_expr(expr):
            index = self._skip(self.pos, False)
            if index < len(self.tokens) and self.tokens[index].kind in TERM_START:
                logger.debug(
                    "%s: bracketed expression at token %d reparsed as a cast",
                    self.filename, start,
                )
                self.pos = start
                type_ = self._parse_type(scope)
                operand = self._parse_expression(scope, terminated)
                return self._make(Cast, start, type_, operand)
        return expr

    def _parse_array_expression(self, scope: EnclosingScope) -> Expr:
        """Parse ``[e, ...]`` or ``[e; n]``."""
        start = self.pos
        self._match(TokenKind.LBRACKET)
        if self._eventually_match(TokenKind.RBRACKET) is not None:
            return self._make(ArrayInitialiser, start, ())
        # Look past the first element to choose the form, then parse again.
        self._parse_expression(scope, True)
        is_generator = self._try_match(True, TokenKind.SEMICOLON) is not None
        self.pos = start
        self._match(TokenKind.LBRACKET)
        first = self._parse_expression(scope, True)
        if is_generator:
            self._match(TokenKind.SEMICOLON)
            length = self._parse_expression(scope, True)
            self._match(TokenKind.RBRACKET)
            return self._make(ArrayGenerator, start, first, length)
        elements = [first]
        while self._eventually_match(TokenKind.RBRACKET) is None:
            self._match(TokenKind.COMMA)
            elements.append(self._parse_expression(scope, True))
        return self._make(ArrayInitialiser, start, tuple(elements))

    def _parse_record_initialiser(
        self, start: int, name: Identifier | None, scope: EnclosingScope,
    ) -> RecordInitialiser:
        self._match(TokenKind.LBRACE)
        keys: set[str] = set()
        fields: list[tuple[Identifier, Expr]] = []
        while self._eventually_match(TokenKind.RBRACE) is None:
            if fields:
                self._match(TokenKind.COMMA)
            field = self._parse_identifier()
            if field.text in keys:
                raise ParseError("duplicate record key", field.span)
            self._match(TokenKind.COLON)
            fields.append((field, self._parse_expression(scope, True)))
            keys.add(field.text)
        return self._make(RecordInitialiser, start, name, tuple(fields))

    def _parse_new_expression(self, scope: EnclosingScope, terminated: bool) -> New:
        """Parse ``new e`` or ``l:new e``."""
        start = self.pos
        lifetime = self._parse_optional_lifetime_identifier(terminated)
        if lifetime is not None:
            scope.must_be_lifetime(lifetime)
            self._match(TokenKind.COLON)
        new = self._match(TokenKind.NEW)
        if lifetime is None:
            lifetime = self.arena.allocate(Identifier("*", span=self._token_span(new)))
        operand = self._parse_expression(scope, terminated)
        return self._make(New, start, operand, lifetime)

    def _parse_lambda(self, scope: EnclosingScope, terminated: bool) -> Expr:
        start = self.pos
        self._match(TokenKind.AMPERSAND)
        is_initialiser = self._try_match(
            terminated, TokenKind.LPAREN, TokenKind.LBRACKET, TokenKind.LESS,
        ) is not None
        self.pos = start
        if is_initialiser:
            return self._parse_lambda_initialiser(scope)
        return self._parse_lambda_constant(scope, terminated)

    def _parse_lambda_initialiser(self, scope: EnclosingScope) -> LambdaInitialiser:
        """Parse ``&[captures]<lifetimes>(T x, ... -> body)``."""
        start = self.pos
        self._match(TokenKind.AMPERSAND)
        captures = self._parse_optional_captured_lifetimes()
        body_scope = scope.with_lifetimes(captures)
        lifetimes = self._parse_optional_lifetime_parameters(body_scope)
        parameters = self._parse_parameters(body_scope, TokenKind.ARROW)
        body = self._parse_expression(body_scope, True)
        self._match(TokenKind.RPAREN)
        return self._make(LambdaInitialiser, start, parameters, captures, lifetimes, body)

    def _parse_lambda_constant(self, scope: EnclosingScope, terminated: bool) -> LambdaConstant:
        """Parse ``&name`` or ``&name(T, ...)``."""
        start = self.pos
        self._match(TokenKind.AMPERSAND)
        name = self._parse_name()
        parameter_types: tuple[Type, ...] = ()
        if self._lookahead(terminated, TokenKind.LPAREN):
            parameter_types = self._parse_parameter_types(scope)
        return self._make(LambdaConstant, start, name, parameter_types)

    # ── Disambiguation ───────────────────────────────────────────

    def _parse_definite_type(self, scope: EnclosingScope) -> Type | None:
        """Parse a type that could not also be an expression, or return None."""
        start = self.pos
        type_ = self._attempt(self._parse_type, scope)
        if type_ is not None and must_parse_as_type(type_):
            return type_
        self.pos = start
        return None

    # ── Types ────────────────────────────────────────────────────

    def _parse_type(self, scope: EnclosingScope) -> Type:
        start = self.pos
        first = self._parse_intersection_type(scope)
        if self._try_match(True, TokenKind.BAR) is None:
            return first
        operands = [first, self._parse_intersection_type(scope)]
        while self._try_match(True, TokenKind.BAR) is not None:
            operands.append(self._parse_intersection_type(scope))
        return self._make(UnionType, start, tuple(operands))

    def _parse_intersection_type(self, scope: EnclosingScope) -> Type:
        start = self.pos
        first = self._parse_array_type(scope)
        if self._try_match(True, TokenKind.AMPERSAND) is None:
            return first
        operands = [first, self._parse_array_type(scope)]
        while self._try_match(True, TokenKind.AMPERSAND) is not None:
            operands.append(self._parse_array_type(scope))
        return self._make(IntersectionType, start, tuple(operands))

    def _parse_array_type(self, scope: EnclosingScope) -> Type:
        start = self.pos
        element = self._parse_base_type(scope)
        while self._try_match(True, TokenKind.LBRACKET) is not None:
            self._match(TokenKind.RBRACKET)
            element = self._make(ArrayType, start, element)
        return element

    def _parse_base_type(self, scope: EnclosingScope) -> Type:
        start = self.pos
        tok = self._current()
        kind = tok.kind
        if kind in _PRIMITIVES:
            self._advance()
            return self._make(PrimitiveType, start, tok.text)
        if kind is TokenKind.LPAREN:
            self._advance()
            type_ = self._parse_type(scope)
            self._match(TokenKind.RPAREN)
            return type_
        if kind is TokenKind.LBRACKET:
            self._advance()
            element = self._parse_type(scope)
            self._match(TokenKind.RBRACKET)
            return self._make(ListType, start, element)
        if kind is TokenKind.LBRACE:
            return self._parse_record_type(scope)
        if kind is TokenKind.BANG:
            self._advance()
            element = self._parse_array_type(scope)
            return self._make(NegationType, start, element)
        if kind is TokenKind.AMPERSAND:
            return self._parse_reference_type(scope)
        if kind is TokenKind.IDENTIFIER:
            return self._make(NominalType, start, self._parse_name())
        if kind is TokenKind.FUNCTION or kind is TokenKind.METHOD:
            return self._parse_function_or_method_type(scope)
        raise self._error("unknown type encountered", tok)

    def _parse_reference_type(self, scope: EnclosingScope) -> ReferenceType:
        start = self.pos
        self._match(TokenKind.AMPERSAND)
        backtrack = self.pos
        lifetime = self._parse_optional_lifetime_identifier(False)
        if (
            lifetime is not None
            and self._try_match(True, TokenKind.COLON) is not None
            and not self._is_at_eol()
        ):
            scope.must_be_lifetime(lifetime)
            element = self._parse_array_type(scope)
            return self._make(ReferenceType, start, element, lifetime)
        # A ':' ending the line closes a declaration header, e.g. "-> &T:".
        self.pos = backtrack
        element = self._parse_array_type(scope)
        return self._make(ReferenceType, start, element, None)

    def _parse_record_type(self, scope: EnclosingScope) -> RecordType:
        start = self.pos
        self._match(TokenKind.LBRACE)
        fields = [self._parse_field(scope)]
        names = {fields[0].name.text}
        is_open = False
        while self._eventually_match(TokenKind.RBRACE) is None:
            self._match(TokenKind.COMMA)
            if self._try_match(True, TokenKind.DOT_DOT_DOT) is not None:
                self._match(TokenKind.RBRACE)
                is_open = True
                break
            fld = self._parse_field(scope)
            if fld.name.text in names:
                raise ParseError("duplicate record key", fld.name.span)
            names.add(fld.name.text)
            fields.append(fld)
        return self._make(RecordType, start, is_open, tuple(fields))

    def _parse_field(self, scope: EnclosingScope) -> Field:
        self._check_not_eof()
        start = self.pos
        type_, name = self._parse_mixed_type(scope)
        return self._make(Field, start, type_, name)

    def _parse_function_or_method_type(self, scope: EnclosingScope) -> FunctionType | MethodType:
        start = self.pos
        is_function = self._advance().kind is TokenKind.FUNCTION
        captures: tuple[Identifier, ...] = ()
        lifetimes: tuple[Identifier, ...] = ()
        if not is_function:
            captures = self._parse_optional_captured_lifetimes()
            scope = scope.derive()
            lifetimes = self._parse_optional_lifetime_parameters(scope)
        parameters = self._parse_parameter_types(scope)
        returns: tuple[Type, ...] = ()
        if is_function:
            self._match(TokenKind.ARROW)
            returns = self._parse_optional_parameter_types(scope)
        elif self._try_match(True, TokenKind.ARROW) is not None:
            returns = self._parse_optional_parameter_types(scope)
        if is_function:
            return self._make(FunctionType, start, parameters, returns)
        return self._make(MethodType, start, parameters, returns, captures, lifetimes)

    def _parse_mixed_type(self, scope: EnclosingScope) -> tuple[Type, Identifier]:
        """Parse ``T name`` or the fused ``function name(T, ...) -> R`` form."""
        start = self.pos
        keyword = self._try_match(True, TokenKind.FUNCTION, TokenKind.METHOD)
        if keyword is not None:
            inner = scope
            lifetimes: tuple[Identifier, ...] = ()
            if keyword.kind is TokenKind.METHOD and self._try_match(True, TokenKind.LESS) is not None:
                inner = scope.derive()
                lifetimes = self._parse_lifetime_parameters(inner)
            name = self._parse_optional_identifier()
            if name is not None:
                parameters = self._parse_parameter_types(inner)
                returns: tuple[Type, ...] = ()
                if keyword.kind is TokenKind.FUNCTION:
                    self._match(TokenKind.ARROW)
                    returns = self._parse_optional_parameter_types(inner)
                    return self._make(FunctionType, start, parameters, returns), name
                if self._try_match(True, TokenKind.ARROW) is not None:
                    returns = self._parse_optional_parameter_types(inner)
                return self._make(MethodType, start, parameters, returns, (), lifetimes), name
            self.pos = start
        type_ = self._parse_type(scope)
        return type_, self._parse_identifier()

    def _parse_parameter_types(self, scope: EnclosingScope) -> tuple[Type, ...]:
        self._match(TokenKind.LPAREN)
        types: list[Type] = []
        while self._eventually_match(TokenKind.RPAREN) is None:
            if types:
                self._match(TokenKind.COMMA)
            types.append(self._parse_type(scope))
        return tuple(types)

    def _parse_optional_parameter_types(self, scope: EnclosingScope) -> tuple[Type, ...]:
        index = self._skip(self.pos, True)
        if index < len(self.tokens) and self.tokens[index].kind is TokenKind.LPAREN:
            return self._parse_parameter_types(scope)
        return (self._parse_type(scope),)

    # ── Names & lifetimes ────────────────────────────────────────

    def _parse_identifier(self) -> Identifier:
        tok = self._match(TokenKind.IDENTIFIER)
        return self.arena.allocate(Identifier(tok.text, span=self._token_span(tok)))

    def _parse_optional_identifier(self) -> Identifier | None:
        tok = self._try_match(False, TokenKind.IDENTIFIER)
        if tok is None:
            return None
        return self.arena.allocate(Identifier(tok.text, span=self._token_span(tok)))

    def _name_of(self, ident: Identifier) -> Name:
        return self.arena.allocate(Name((ident,), span=ident.span))

    def _parse_name(self) -> Name:
        self._check_not_eof()
        start = self.pos
        components = [self._parse_identifier()]
        while self._try_match(False, TokenKind.COLON_COLON) is not None:
            components.append(self._parse_identifier())
        return self._make(Name, start, tuple(components))

    def _parse_optional_lifetime_identifier(self, terminated: bool) -> Identifier | None:
        tok = self._try_match(terminated, TokenKind.IDENTIFIER, TokenKind.THIS, TokenKind.STAR)
        if tok is None:
            return None
        return self.arena.allocate(Identifier(tok.text, span=self._token_span(tok)))

    def _parse_lifetime(self) -> Identifier:
        lifetime = self._parse_optional_lifetime_identifier(True)
        if lifetime is None:
            raise self._error("expecting lifetime identifier", self._current())
        return lifetime

    def _parse_optional_lifetime_parameters(self, scope: EnclosingScope) -> tuple[Identifier, ...]:
        """Parse and declare ``<a, b>``; absent or empty gives ()."""
        if (
            self._try_match(True, TokenKind.LESS) is not None
            and self._try_match(True, TokenKind.GREATER) is None
        ):
            return self._parse_lifetime_parameters(scope)
        return ()

    def _parse_lifetime_parameters(self, scope: EnclosingScope) -> tuple[Identifier, ...]:
        lifetimes = [self._parse_identifier()]
        scope.declare_lifetime(lifetimes[0])
        while self._try_match(True, TokenKind.COMMA) is not None:
            lifetime = self._parse_identifier()
            scope.declare_lifetime(lifetime)
            lifetimes.append(lifetime)
        self._match(TokenKind.GREATER)
        return tuple(lifetimes)

    def _parse_optional_lifetime_arguments(
        self, scope: EnclosingScope, terminated: bool,
    ) -> tuple[Identifier, ...] | None:
        """Parse ``<a, b>(`` if ``<`` opens lifetime arguments.

        ``<`` is only taken as opening a lifetime list when the next token is
        ``this``, ``*`` or a declared lifetime; otherwise the cursor is put
        back and None returned, leaving ``<`` to be read as less-than.
        """
        start = self.pos
        self._match(TokenKind.LESS)
        tok = self._try_match(terminated, TokenKind.IDENTIFIER, TokenKind.THIS, TokenKind.STAR)
        if tok is not None and (tok.kind is not TokenKind.IDENTIFIER or scope.is_lifetime(tok.text)):
            self.pos -= 1
            lifetimes: list[Identifier] = []
            while self._eventually_match(TokenKind.GREATER) is None:
                if lifetimes:
                    self._match(TokenKind.COMMA)
                lifetimes.append(self._parse_lifetime())
            self._match(TokenKind.LPAREN)
            return tuple(lifetimes)
        logger.debug("%s: '<' at token %d is a comparison", self.filename, start)
        self.pos = start
        return None

    def _parse_optional_captured_lifetimes(self) -> tuple[Identifier, ...]:
        if (
            self._try_match(True, TokenKind.LBRACKET) is not None
            and self._try_match(True, TokenKind.RBRACKET) is None
        ):
            captures = [self._parse_lifetime()]
            while self._try_match(True, TokenKind.COMMA) is not None:
                captures.append(self._parse_lifetime())
            self._match(TokenKind.RBRACKET)
            return tuple(captures)
        return ()

    # ── Literal decoding ─────────────────────────────────────────

    def _decode_byte(self, tok: Token) -> int:
        """Decode a binary byte literal such as ``0101b``."""
        digits = tok.text[:-1]
        if len(tok.text) > 9:
            raise self._error("invalid binary literal (too long)", tok)
        value = 0
        for ch in digits:
            if ch not in "01":
                raise self._error("invalid binary literal (invalid characters)", tok)
            value = (value << 1) | (ch == "1")
        return value

    def _decode_char(self, tok: Token) -> int:
        body = tok.text[1:-1]
        if body.startswith("\\"):
            escaped = _ESCAPES.get(body[1:])
            if escaped is None:
                raise self._error("unrecognised escape character", tok)
            return ord(escaped)
        return ord(body)

    def _decode_string(self, tok: Token) -> bytes:
        """Decode a string literal's escapes and encode it as UTF-8."""
        body = tok.text[1:-1]
        chars: list[str] = []
        i = 0
        while i < len(body):
            ch = body[i]
            if ch != "\\":
                chars.append(ch)
                i += 1
                continue
            code = body[i + 1]
            if code == "u":
                digits = body[i + 2:i + 6]
                if len(digits) != 4 or any(d not in "0123456789abcdefABCDEF" for d in digits):
                    raise self._error("invalid unicode string", tok)
                chars.append(chr(int(digits, 16)))
                i += 6
            elif code in _ESCAPES:
                chars.append(_ESCAPES[code])
                i += 2
            else:
                raise self._error("unrecognised escape character", tok)
        try:
            return "".join(chars).encode("utf-8")
        except UnicodeEncodeError:
            raise self._error("invalid unicode string", tok) from None
