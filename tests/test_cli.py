"""Tests for the wyparse CLI and project config."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from wyparse.cli import main
from wyparse.config import (
    CONFIG_NAME,
    WyparseConfig,
    find_config,
    load_config,
    source_files,
)
from wyparse.source import SourceFile, Span

GOOD = "constant X is 1\n"
BAD = "constant X is )\n"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def tmp_project(tmp_path):
    """Create a minimal Whiley project in a temp dir."""
    (tmp_path / CONFIG_NAME).write_text(
        '[package]\nname = "demo"\nversion = "1.0.0"\n'
        "[parse]\njobs = 1\n"
    )
    src = tmp_path / "src"
    src.mkdir()
    (src / "a.whiley").write_text(GOOD)
    (src / "b.whiley").write_text("function f(int x) -> int:\n    return x + 1\n")
    (src / "notes.txt").write_text("not whiley")
    return tmp_path


# --- CLI tests ---


class TestCLI:
    def test_help(self, runner):
        result = runner.invoke(main, ["--help"])
        assert result.exit_code == 0
        assert "Whiley" in result.output
        for command in ("check", "format", "tokens", "lsp", "view"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_lsp_help(self, runner):
        result = runner.invoke(main, ["lsp", "--help"])
        assert result.exit_code == 0
        assert "language server" in result.output


class TestCheck:
    def test_single_file(self, runner, tmp_path):
        path = tmp_path / "ok.whiley"
        path.write_text(GOOD)
        result = runner.invoke(main, ["check", str(path)])
        assert result.exit_code == 0
        assert "no errors" in result.output

    def test_single_file_with_error(self, runner, tmp_path):
        path = tmp_path / "bad.whiley"
        path.write_text(BAD)
        result = runner.invoke(main, ["check", str(path)])
        assert result.exit_code == 1
        assert "error[E200]" in result.output
        assert "unrecognised term" in result.output
        assert "bad.whiley:1:15" in result.output

    def test_lexer_error(self, runner, tmp_path):
        path = tmp_path / "bad.whiley"
        path.write_text("constant X is $\n")
        result = runner.invoke(main, ["check", str(path)])
        assert result.exit_code == 1
        assert "error[E100]" in result.output

    def test_non_ascii_digit(self, runner, tmp_project):
        (tmp_project / "src" / "c.whiley").write_text("constant c is 1²\n", encoding="utf-8")
        result = runner.invoke(main, ["check", str(tmp_project), "--jobs", "2"])
        assert result.exit_code == 1
        assert "error[E100]" in result.output
        assert "unknown character" in result.output
        assert "c.whiley:1:16" in result.output

    def test_invalid_utf8(self, runner, tmp_path):
        path = tmp_path / "bad.whiley"
        path.write_bytes(b"constant X is \xff\n")
        result = runner.invoke(main, ["check", str(path)])
        assert result.exit_code == 1
        assert "error[E100]" in result.output
        assert "invalid UTF-8 in source file" in result.output
        assert f"{path}:14-15" in result.output

    def test_invalid_utf8_in_parallel(self, runner, tmp_project):
        (tmp_project / "src" / "c.whiley").write_bytes(b"\xfe\n")
        result = runner.invoke(main, ["check", str(tmp_project), "-j", "2"])
        assert result.exit_code == 1
        assert "invalid UTF-8 in source file" in result.output

    def test_project(self, runner, tmp_project):
        result = runner.invoke(main, ["check", str(tmp_project)])
        assert result.exit_code == 0
        assert "checking demo (2 files)..." in result.output
        assert "checked demo: no errors" in result.output

    def test_project_in_parallel(self, runner, tmp_project):
        result = runner.invoke(main, ["check", str(tmp_project), "--jobs", "2"])
        assert result.exit_code == 0
        assert "checked demo: no errors" in result.output

    def test_project_with_error(self, runner, tmp_project):
        (tmp_project / "src" / "c.whiley").write_text(BAD)
        result = runner.invoke(main, ["check", str(tmp_project), "-j", "2"])
        assert result.exit_code == 1
        assert "c.whiley" in result.output
        assert "checked demo" not in result.output

    def test_directory_without_config(self, runner, tmp_path):
        (tmp_path / "only.whiley").write_text(GOOD)
        result = runner.invoke(main, ["check", str(tmp_path)])
        assert result.exit_code == 0
        assert "checking untitled (1 files)..." in result.output

    def test_no_source_files(self, runner, tmp_path):
        result = runner.invoke(main, ["check", str(tmp_path)])
        assert result.exit_code == 0
        assert "no source files found" in result.output

    def test_verbose(self, runner, tmp_path):
        path = tmp_path / "ok.whiley"
        path.write_text(GOOD)
        result = runner.invoke(main, ["--verbose", "check", str(path)])
        assert result.exit_code == 0


class TestFormat:
    def test_help_mentions_comments(self, runner):
        result = runner.invoke(main, ["format", "--help"])
        assert result.exit_code == 0
        assert "Comments are not kept" in result.output

    def test_prints_canonical_source(self, runner, tmp_path):
        path = tmp_path / "f.whiley"
        path.write_text("constant X is 1+2\n")
        result = runner.invoke(main, ["format", str(path)])
        assert result.exit_code == 0
        assert result.output == "constant X is 1 + 2\n"

    def test_check_canonical(self, runner, tmp_path):
        path = tmp_path / "f.whiley"
        path.write_text(GOOD)
        result = runner.invoke(main, ["format", "--check", str(path)])
        assert result.exit_code == 0
        assert result.output == ""

    def test_check_not_canonical(self, runner, tmp_path):
        path = tmp_path / "f.whiley"
        path.write_text("constant X is 1+2\n")
        result = runner.invoke(main, ["format", "--check", str(path)])
        assert result.exit_code == 1
        assert "would reformat" in result.output

    def test_syntax_error(self, runner, tmp_path):
        path = tmp_path / "f.whiley"
        path.write_text(BAD)
        result = runner.invoke(main, ["format", str(path)])
        assert result.exit_code == 1
        assert "error[E200]" in result.output


class TestTokens:
    def test_tokens(self, runner, tmp_path):
        path = tmp_path / "t.whiley"
        path.write_text(GOOD)
        result = runner.invoke(main, ["tokens", str(path)])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == "1:1\tIDENTIFIER\t'constant'"
        assert lines[1] == "1:10\tIDENTIFIER\t'X'"
        assert lines[-1] == "1:16\tNEWLINE\t'\\n'"

    def test_lexer_error(self, runner, tmp_path):
        path = tmp_path / "t.whiley"
        path.write_text('"open\n')
        result = runner.invoke(main, ["tokens", str(path)])
        assert result.exit_code == 1
        assert "unterminated string literal" in result.output

    def test_invalid_utf8(self, runner, tmp_path):
        path = tmp_path / "t.whiley"
        path.write_bytes(b"\xff")
        result = runner.invoke(main, ["tokens", str(path)])
        assert result.exit_code == 1
        assert "error[E100]" in result.output


class TestView:
    def test_view(self, runner, tmp_path):
        path = tmp_path / "v.whiley"
        path.write_text(GOOD)
        result = runner.invoke(main, ["view", str(path)])
        assert result.exit_code == 0
        assert result.output.splitlines()[0] == "Module"
        assert "ConstantDecl" in result.output
        assert "text: 'X'" in result.output
        assert "value: 1" in result.output
        assert "span" not in result.output
        assert "arena" not in result.output


# --- Config tests ---


class TestConfig:
    def test_load_config(self, tmp_project):
        config = load_config(tmp_project / CONFIG_NAME)
        assert config.package.name == "demo"
        assert config.package.version == "1.0.0"
        assert config.parse.jobs == 1
        assert config.build.source_dir == "src"

    def test_load_config_defaults(self, tmp_path):
        toml = tmp_path / CONFIG_NAME
        toml.write_text("")
        config = load_config(toml)
        assert config == WyparseConfig()
        assert config.build.extensions == [".whiley"]

    def test_load_build_section(self, tmp_path):
        toml = tmp_path / CONFIG_NAME
        toml.write_text('[build]\nsource_dir = "lib"\nextensions = [".wy"]\n')
        config = load_config(toml)
        assert config.build.source_dir == "lib"
        assert config.build.extensions == [".wy"]

    def test_find_config(self, tmp_project):
        nested = tmp_project / "src"
        assert find_config(nested) == (tmp_project / CONFIG_NAME).resolve()

    def test_find_config_from_file(self, tmp_project):
        path = find_config(tmp_project / "src" / "a.whiley")
        assert path == (tmp_project / CONFIG_NAME).resolve()

    def test_find_config_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            find_config(tmp_path)

    def test_source_files(self, tmp_project):
        config = load_config(tmp_project / CONFIG_NAME)
        files = source_files(tmp_project, config)
        assert [f.name for f in files] == ["a.whiley", "b.whiley"]

    def test_source_files_fallback(self, tmp_path):
        (tmp_path / "x.whiley").write_text(GOOD)
        files = source_files(tmp_path, WyparseConfig())
        assert files == [tmp_path / "x.whiley"]


class TestSource:
    def test_position(self):
        sf = SourceFile("ab\ncd\n")
        assert sf.position(0) == (1, 1)
        assert sf.position(3) == (2, 1)
        assert sf.position(4) == (2, 2)

    def test_line_at(self):
        sf = SourceFile("ab\ncd\n")
        assert sf.line_at(2) == "cd"
        assert sf.line_at(9) == ""

    def test_span_text(self):
        sf = SourceFile("constant X is 1\n")
        assert sf.span_text(Span("t", 9, 10)) == "X"

    def test_span_str(self):
        assert str(Span("t.whiley", 1, 4)) == "t.whiley:1-4"

    def test_from_path(self, tmp_path):
        path = tmp_path / "s.whiley"
        path.write_text(GOOD)
        sf = SourceFile.from_path(path)
        assert sf.name == str(path)
        assert sf.content == GOOD
