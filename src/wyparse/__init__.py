"""Recursive-descent parser for the Whiley programming language."""

from __future__ import annotations

__version__ = "0.1.0"


def parse_source(source: str, filename: str = "<stdin>"):
    """Lex and parse ``source``, returning its :class:`~wyparse.ast_nodes.Module`.

    Raises :class:`~wyparse.errors.ParseError` on the first lexical or
    syntax error.
    """
    from wyparse.lexer import Lexer
    from wyparse.parser import Parser

    tokens = Lexer(source, filename).lex()
    return Parser(tokens, filename).parse()
