"""Whiley parser CLI."""

from __future__ import annotations

import dataclasses
import logging
import sys
from concurrent.futures import ProcessPoolExecutor
from pathlib import Path

import click

from wyparse import __version__
from wyparse.ast_nodes import Module
from wyparse.config import WyparseConfig, find_config, load_config, source_files
from wyparse.errors import LEXER_ERROR, CompileError, Diagnostic, DiagnosticRenderer, ParseError
from wyparse.formatter import WhileyFormatter
from wyparse.lexer import Lexer
from wyparse.parser import Parser
from wyparse.source import SourceFile, Span

logger = logging.getLogger(__name__)


def _read_source(path: str) -> str:
    """Read a source file as UTF-8; undecodable bytes are a lexical error."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ParseError(
            f"invalid UTF-8 in source file ({e.reason})",
            Span(path, e.start, e.end),
            code=LEXER_ERROR,
        ) from e


def _parse_file(path: str) -> list[Diagnostic]:
    """Lex and parse one file, returning its diagnostics (empty when OK)."""
    try:
        source = _read_source(path)
        tokens = Lexer(source, path).lex()
        Parser(tokens, path).parse()
    except CompileError as e:
        return e.diagnostics
    return []


def _parse_or_exit(file: str) -> tuple[str, Module]:
    """Parse ``file`` for a single-file command, exiting 1 on errors."""
    try:
        source = _read_source(file)
        tokens = Lexer(source, file).lex()
        return source, Parser(tokens, file).parse()
    except CompileError as e:
        renderer = DiagnosticRenderer(color=True)
        for diag in e.diagnostics:
            click.echo(renderer.render(diag), err=True)
        raise SystemExit(1)


def _check_files(files: list[Path], jobs: int) -> bool:
    """Parse every file, render diagnostics in file order. Returns True if OK."""
    renderer = DiagnosticRenderer(color=True)
    names = [str(f) for f in files]
    if jobs > 1 and len(names) > 1:
        logger.debug("parsing %d files with %d workers", len(names), jobs)
        with ProcessPoolExecutor(max_workers=jobs) as executor:
            futures = {executor.submit(_parse_file, name): name for name in names}
            results = {futures[future]: future.result() for future in futures}
    else:
        results = {name: _parse_file(name) for name in names}

    had_errors = False
    for name in names:
        for diag in results[name]:
            had_errors = True
            click.echo(renderer.render(diag), err=True)
    return not had_errors


@click.group()
@click.version_option(__version__, prog_name="wyparse")
@click.option("-v", "--verbose", is_flag=True, help="Log parser decisions to stderr.")
def main(verbose: bool) -> None:
    """A parser for the Whiley programming language."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(levelname)s: %(message)s",
    )


@main.command()
@click.argument("path", default=".", type=click.Path(exists=True))
@click.option("-j", "--jobs", type=int, default=None, help="Number of parallel parse workers.")
def check(path: str, jobs: int | None) -> None:
    """Parse every source file of a project and report syntax errors."""
    target = Path(path)
    if target.is_file():
        ok = _check_files([target], 1)
        if not ok:
            raise SystemExit(1)
        click.echo(f"checked {target}: no errors")
        return

    try:
        config_path = find_config(target)
        config = load_config(config_path)
        project_dir = config_path.parent
    except FileNotFoundError:
        logger.info("no wyparse.toml found, checking %s", target)
        config = WyparseConfig()
        project_dir = target

    files = source_files(project_dir, config)
    if not files:
        click.echo("warning: no source files found", err=True)
        return

    click.echo(f"checking {config.package.name} ({len(files)} files)...")
    ok = _check_files(files, jobs if jobs is not None else config.parse.jobs)
    if not ok:
        raise SystemExit(1)
    click.echo(f"checked {config.package.name}: no errors")


@main.command(name="format")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--check", is_flag=True, help="Exit 1 if the file is not canonically formatted.")
def format_cmd(file: str, check: bool) -> None:
    """Print a Whiley source file in canonical form.

    Comments are not kept in the output.
    """
    source, module = _parse_or_exit(file)
    formatted = WhileyFormatter().format(module)
    if check:
        if formatted != source:
            click.echo(f"would reformat {file}")
            raise SystemExit(1)
        return
    sys.stdout.write(formatted)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def tokens(file: str) -> None:
    """Print the token stream of a Whiley source file."""
    try:
        source = _read_source(file)
        toks = Lexer(source, file).lex()
    except CompileError as e:
        renderer = DiagnosticRenderer(color=True)
        for diag in e.diagnostics:
            click.echo(renderer.render(diag), err=True)
        raise SystemExit(1)

    sf = SourceFile(source, file)
    for tok in toks:
        line, col = sf.position(tok.start)
        click.echo(f"{line}:{col}\t{tok.kind.name}\t{tok.text!r}")


@main.command()
def lsp() -> None:
    """Start the Whiley language server."""
    # pygls is chatty at INFO
    logging.getLogger("pygls").setLevel(logging.ERROR)
    from wyparse.lsp import main as lsp_main

    lsp_main()


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
def view(file: str) -> None:
    """View the AST of a Whiley source file."""
    _, module = _parse_or_exit(file)
    _dump_ast(module, 0)


def _dump_ast(node: object, depth: int) -> None:
    """Print a readable AST dump."""
    indent = "  " * depth
    name = type(node).__name__

    if dataclasses.is_dataclass(node):
        click.echo(f"{indent}{name}")
        for fld in dataclasses.fields(node):
            if fld.name == "span" or not fld.repr:
                continue
            value = getattr(node, fld.name)
            if isinstance(value, tuple):
                if value:
                    click.echo(f"{indent}  {fld.name}:")
                    for item in value:
                        _dump_ast(item, depth + 2)
                else:
                    click.echo(f"{indent}  {fld.name}: []")
            elif dataclasses.is_dataclass(value):
                click.echo(f"{indent}  {fld.name}:")
                _dump_ast(value, depth + 2)
            elif value is not None:
                click.echo(f"{indent}  {fld.name}: {value!r}")
    elif isinstance(node, tuple):
        # record initialiser field pairs
        for item in node:
            _dump_ast(item, depth)
    else:
        click.echo(f"{indent}{name}: {node!r}")
