"""Enclosing-scope tracking used by the parser for disambiguation.

This is not name resolution: it only records which names are declared
variables, record field aliases or lifetimes at each point of a file, so
that the parser can classify identifiers. A child scope starts with copies
of its parent's collections; declarations made in the child never show up
in the parent or in sibling scopes.
"""

from __future__ import annotations

from collections.abc import Iterable

from wyparse.ast_nodes import Identifier, Variable
from wyparse.errors import ParseError
from wyparse.indentation import ROOT_INDENT, Indent

# Lifetimes that always exist and can never be declared.
RESERVED_LIFETIMES = frozenset({"this", "*"})


class EnclosingScope:
    """Names visible at one syntactic level (block, lambda or quantifier)."""

    def __init__(
        self,
        indent: Indent = ROOT_INDENT,
        variables: dict[str, Variable] | None = None,
        field_aliases: Iterable[str] = (),
        lifetimes: Iterable[str] = (),
        in_loop: bool = False,
    ) -> None:
        self.indent = indent
        self.in_loop = in_loop
        self._variables: dict[str, Variable] = dict(variables or {})
        self._field_aliases: set[str] = set(field_aliases)
        self._lifetimes: set[str] = set(lifetimes)

    # ── Lookups ──────────────────────────────────────────────────

    def is_variable(self, name: str) -> bool:
        return name in self._variables

    def is_field_alias(self, name: str) -> bool:
        return name in self._field_aliases

    def is_lifetime(self, name: str) -> bool:
        return name == "*" or name in self._lifetimes

    def variable(self, name: str) -> Variable | None:
        return self._variables.get(name)

    def is_available(self, name: str) -> bool:
        if name in self._variables or name in self._lifetimes:
            return False
        return name not in RESERVED_LIFETIMES

    # ── Checks ───────────────────────────────────────────────────

    def check_name_available(self, ident: Identifier) -> None:
        if not self.is_available(ident.text):
            raise ParseError("name already declared", ident.span)

    def must_be_lifetime(self, ident: Identifier) -> None:
        if not self.is_lifetime(ident.text):
            raise ParseError("use of undeclared lifetime", ident.span)

    # ── Declarations ─────────────────────────────────────────────

    def declare_variable(self, var: Variable) -> None:
        self.check_name_available(var.name)
        self._variables[var.name.text] = var

    def declare_lifetime(self, ident: Identifier) -> None:
        self.check_name_available(ident)
        self._lifetimes.add(ident.text)

    def declare_field_alias(self, ident: Identifier) -> None:
        self._field_aliases.add(ident.text)

    def declare_this_lifetime(self) -> None:
        self._lifetimes.add("this")

    # ── Child scopes ─────────────────────────────────────────────

    def derive(self, indent: Indent | None = None, in_loop: bool | None = None) -> EnclosingScope:
        """Child scope for a block, loop body or quantifier.

        The indent and loop flag are inherited unless given.
        """
        return EnclosingScope(
            indent if indent is not None else self.indent,
            self._variables,
            self._field_aliases,
            self._lifetimes,
            self.in_loop if in_loop is None else in_loop,
        )

    def with_lifetimes(self, captures: Iterable[Identifier]) -> EnclosingScope:
        """Child scope for a lambda body that sees only the captured lifetimes."""
        return EnclosingScope(
            self.indent,
            self._variables,
            self._field_aliases,
            (c.text for c in captures),
            in_loop=False,
        )
