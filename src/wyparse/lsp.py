"""Whiley Language Server: pygls-based LSP for .whiley files.

Provides syntax diagnostics, document symbols and formatting via stdio
transport. Documents are re-lexed and re-parsed in full on every change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from lsprotocol import types as lsp
from pygls.lsp.server import LanguageServer

from wyparse import __version__
from wyparse.ast_nodes import (
    ConstantDecl,
    FunctionDecl,
    ImportDecl,
    MethodDecl,
    Module,
    PropertyDecl,
    TypeDecl,
)
from wyparse.errors import CompileError, Diagnostic, Severity
from wyparse.formatter import WhileyFormatter
from wyparse.lexer import Lexer
from wyparse.parser import Parser
from wyparse.source import SourceFile, Span
from wyparse.tokens import Token, TokenKind

logger = logging.getLogger(__name__)

# ── Conversion helpers ────────────────────────────────────────────

_SEVERITY_MAP = {
    Severity.ERROR: lsp.DiagnosticSeverity.Error,
    Severity.WARNING: lsp.DiagnosticSeverity.Warning,
    Severity.NOTE: lsp.DiagnosticSeverity.Information,
}

_COMMENT_KINDS = {TokenKind.LINE_COMMENT, TokenKind.BLOCK_COMMENT}

_ORIGIN = lsp.Range(start=lsp.Position(0, 0), end=lsp.Position(0, 0))


def span_to_range(span: Span, source: SourceFile) -> lsp.Range:
    """Convert a character-offset Span to a 0-indexed LSP Range."""
    sl, sc = source.position(span.start)
    el, ec = source.position(span.end)
    return lsp.Range(
        start=lsp.Position(line=sl - 1, character=sc - 1),
        end=lsp.Position(line=el - 1, character=ec - 1),
    )


@dataclass
class DocumentState:
    """Cached analysis results for a single open document."""

    source: str = ""
    tokens: list[Token] = field(default_factory=list)
    module: Module | None = None
    diagnostics: list[lsp.Diagnostic] = field(default_factory=list)


# ── Server ────────────────────────────────────────────────────────

server = LanguageServer(
    "wyparse-lsp", __version__,
    text_document_sync_kind=lsp.TextDocumentSyncKind.Full,
)
_state: dict[str, DocumentState] = {}


def _compile_diag(d: Diagnostic, source: SourceFile) -> lsp.Diagnostic:
    """Convert a wyparse Diagnostic to an LSP Diagnostic."""
    span_range = _ORIGIN
    if d.labels:
        span_range = span_to_range(d.labels[0].span, source)
    return lsp.Diagnostic(
        range=span_range,
        severity=_SEVERITY_MAP.get(d.severity, lsp.DiagnosticSeverity.Error),
        source="wyparse",
        code=d.code,
        message=f"[{d.code}] {d.message}",
    )


def _analyze(uri: str, source: str) -> DocumentState:
    """Run Lexer → Parser, cache results, return state."""
    ds = DocumentState(source=source)
    sf = SourceFile(source, uri)
    _state[uri] = ds

    # Phase 1: Lex
    try:
        ds.tokens = Lexer(source, uri).lex()
    except CompileError as e:
        ds.diagnostics = [_compile_diag(d, sf) for d in e.diagnostics]
        return ds

    # Phase 2: Parse
    try:
        ds.module = Parser(ds.tokens, uri).parse()
    except CompileError as e:
        ds.diagnostics = [_compile_diag(d, sf) for d in e.diagnostics]
    except Exception as e:
        logger.exception("internal parser error in %s", uri)
        ds.diagnostics = [lsp.Diagnostic(
            range=_ORIGIN,
            severity=lsp.DiagnosticSeverity.Error, source="wyparse",
            message=f"[internal] parser error: {e}",
        )]
    return ds


def _publish(uri: str, ds: DocumentState) -> None:
    server.text_document_publish_diagnostics(lsp.PublishDiagnosticsParams(
        uri=uri,
        diagnostics=ds.diagnostics,
    ))


# ── LSP Feature Handlers ─────────────────────────────────────────


@server.feature(lsp.TEXT_DOCUMENT_DID_OPEN)
def did_open(params: lsp.DidOpenTextDocumentParams) -> None:
    uri = params.text_document.uri
    _publish(uri, _analyze(uri, params.text_document.text))


@server.feature(lsp.TEXT_DOCUMENT_DID_CHANGE)
def did_change(params: lsp.DidChangeTextDocumentParams) -> None:
    uri = params.text_document.uri
    # full sync: the last change carries the whole text
    source = params.content_changes[-1].text if params.content_changes else ""
    _publish(uri, _analyze(uri, source))


@server.feature(lsp.TEXT_DOCUMENT_DID_CLOSE)
def did_close(params: lsp.DidCloseTextDocumentParams) -> None:
    _state.pop(params.text_document.uri, None)


@server.feature(lsp.TEXT_DOCUMENT_DOCUMENT_SYMBOL)
def document_symbol(params: lsp.DocumentSymbolParams) -> list[lsp.DocumentSymbol]:
    ds = _state.get(params.text_document.uri)
    if ds is None or ds.module is None:
        return []
    sf = SourceFile(ds.source, params.text_document.uri)
    symbols: list[lsp.DocumentSymbol] = []
    for decl in ds.module.declarations:
        sym = _decl_to_symbol(decl, sf)
        if sym is not None:
            symbols.append(sym)
    return symbols


def _decl_to_symbol(decl: object, sf: SourceFile) -> lsp.DocumentSymbol | None:
    """Convert a top-level declaration to an LSP DocumentSymbol."""
    if isinstance(decl, ImportDecl):
        return None
    if isinstance(decl, (FunctionDecl, MethodDecl)):
        kind = lsp.SymbolKind.Function if isinstance(decl, FunctionDecl) else lsp.SymbolKind.Method
        params_str = ", ".join(p.name.text for p in decl.parameters)
        detail = f"({params_str})"
    elif isinstance(decl, PropertyDecl):
        kind = lsp.SymbolKind.Boolean
        detail = "property"
    elif isinstance(decl, TypeDecl):
        kind = lsp.SymbolKind.Class
        detail = "type"
    elif isinstance(decl, ConstantDecl):
        kind = lsp.SymbolKind.Constant
        detail = "constant"
    else:
        return None
    return lsp.DocumentSymbol(
        name=decl.name.text,
        kind=kind,
        range=span_to_range(decl.span, sf),
        selection_range=span_to_range(decl.name.span, sf),
        detail=detail,
    )


@server.feature(lsp.TEXT_DOCUMENT_FORMATTING)
def formatting(params: lsp.DocumentFormattingParams) -> list[lsp.TextEdit] | None:
    ds = _state.get(params.text_document.uri)
    if ds is None or ds.module is None:
        return None
    # the formatter drops comments
    if any(t.kind in _COMMENT_KINDS for t in ds.tokens):
        return None

    formatted = WhileyFormatter().format(ds.module)
    if formatted == ds.source:
        return None

    # Replace entire document
    sf = SourceFile(ds.source, params.text_document.uri)
    return [lsp.TextEdit(
        range=span_to_range(Span(sf.name, 0, len(ds.source)), sf),
        new_text=formatted,
    )]


def main() -> None:
    """Start the Whiley language server on stdio."""
    server.start_io()
