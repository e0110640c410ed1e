from __future__ import annotations

import textwrap
from pathlib import Path
from typing import Callable, Dict, Iterable

import pytest


def write_files(root: Path, files: Dict[str, str]) -> Path:
    for rel, text in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text).lstrip(), encoding="utf-8")
    return root


def workspace_toml(members: Iterable[str], extra: str = "") -> str:
    quoted = ", ".join(f'"{m}"' for m in members)
    return f"[workspace]\nmembers = [{quoted}]\n{textwrap.dedent(extra)}"


def package_toml(name: str, body: str = "") -> str:
    return f'[package]\nname = "{name}"\nversion = "0.1.0"\n\n{textwrap.dedent(body)}'


@pytest.fixture
def make_workspace(tmp_path: Path) -> Callable[[Dict[str, str]], Path]:
    """Write a dict of relative path -> file text under tmp_path and return the root."""

    def _make(files: Dict[str, str]) -> Path:
        return write_files(tmp_path, files)

    return _make


@pytest.fixture
def chain_workspace(make_workspace) -> Path:
    """a <- b (b depends on a), c independent."""
    return make_workspace(
        {
            "Cargo.toml": workspace_toml(["packages/*"]),
            "packages/a/Cargo.toml": package_toml("a"),
            "packages/b/Cargo.toml": package_toml(
                "b",
                """
                [dependencies]
                a = { path = "../a" }
                """,
            ),
            "packages/c/Cargo.toml": package_toml("c"),
        }
    )
