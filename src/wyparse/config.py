"""TOML config loading for wyparse.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

CONFIG_NAME = "wyparse.toml"


@dataclass
class PackageConfig:
    name: str = "untitled"
    version: str = "0.0.0"


@dataclass
class BuildConfig:
    source_dir: str = "src"
    extensions: list[str] = field(default_factory=lambda: [".whiley"])


@dataclass
class ParseConfig:
    jobs: int = 1


@dataclass
class WyparseConfig:
    package: PackageConfig = field(default_factory=PackageConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    parse: ParseConfig = field(default_factory=ParseConfig)


def find_config(start_path: Path | None = None) -> Path:
    """Walk up directories to find wyparse.toml. Raises FileNotFoundError."""
    path = (start_path or Path.cwd()).resolve()
    if path.is_file():
        path = path.parent
    while True:
        candidate = path / CONFIG_NAME
        if candidate.exists():
            return candidate
        parent = path.parent
        if parent == path:
            raise FileNotFoundError(f"No {CONFIG_NAME} found in any parent directory")
        path = parent


def load_config(path: Path) -> WyparseConfig:
    """Parse a wyparse.toml file into a WyparseConfig."""
    with open(path, "rb") as f:
        data = tomllib.load(f)

    config = WyparseConfig()

    if "package" in data:
        pkg = data["package"]
        config.package = PackageConfig(
            name=pkg.get("name", "untitled"),
            version=pkg.get("version", "0.0.0"),
        )

    if "build" in data:
        bld = data["build"]
        config.build = BuildConfig(
            source_dir=bld.get("source_dir", "src"),
            extensions=list(bld.get("extensions", [".whiley"])),
        )

    if "parse" in data:
        config.parse = ParseConfig(jobs=int(data["parse"].get("jobs", 1)))

    return config


def source_files(project_dir: Path, config: WyparseConfig) -> list[Path]:
    """All source files under the configured source directory, sorted.

    Falls back to the project directory itself when ``source_dir`` is missing.
    """
    src_dir = project_dir / config.build.source_dir
    if not src_dir.is_dir():
        src_dir = project_dir
    return sorted(
        p for p in src_dir.rglob("*")
        if p.is_file() and p.suffix in config.build.extensions
    )
