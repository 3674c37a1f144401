# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for language detection and project-root markers."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from polyaudit.languages import Language, detect_languages, find_marker_root, language_for_path

Trees = Callable[..., Path]


@pytest.mark.parametrize(
    ("files", "expected"),
    [
        ({"Cargo.toml": ""}, {Language.RUST}),
        ({"go.mod": "module x\n"}, {Language.GO}),
        ({"requirements.txt": ""}, {Language.PYTHON}),
        ({"lib/util.c": "", "lib/util.h": ""}, {Language.C}),
        ({"src/app.cc": ""}, {Language.CPP}),
        ({"svc/main.go": "", "tools/gen.py": ""}, {Language.GO, Language.PYTHON}),
        ({"README.md": ""}, set()),
    ],
)
def test_detect_languages(tmp_path: Path, tree: Trees, files: dict[str, str], expected: set[Language]) -> None:
    assert detect_languages(tree(tmp_path, files)) == expected


def test_denied_and_hidden_directories_are_ignored(tmp_path: Path, tree: Trees) -> None:
    root = tree(tmp_path, {"vendor/lib.go": "", "node_modules/x/y.py": "", ".cache/z.rs": ""})

    assert detect_languages(root) == set()


def test_depth_limit(tmp_path: Path, tree: Trees) -> None:
    root = tree(tmp_path, {"a/b/c/deep.rs": ""})

    assert detect_languages(root, max_depth=2) == set()
    assert detect_languages(root, max_depth=5) == {Language.RUST}


def test_find_marker_root_walks_upward(tmp_path: Path, tree: Trees) -> None:
    root = tree(tmp_path, {"go.mod": "", "internal/auth/auth.go": ""})

    assert find_marker_root(root / "internal" / "auth", frozenset({"go.mod"})) == root.resolve()
    assert find_marker_root(root / "internal", frozenset({"Cargo.toml"}), boundary=root) is None


def test_language_for_path() -> None:
    assert language_for_path("src/main.rs") is Language.RUST
    assert language_for_path("include/api.h") is Language.C
    assert language_for_path("src/widget.hpp") is Language.CPP
    assert language_for_path("README") is None
    assert language_for_path("notes.txt", Language.GO) is Language.GO
