# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Language detection utilities for selecting relevant toolchains."""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path

from .constants import DEFAULT_MAX_DEPTH, DENY_DIRS, LANGUAGE_EXTENSIONS, LANGUAGE_MARKERS


class Language(str, Enum):
    """Languages with at least one registered adapter."""

    RUST = "rust"
    GO = "go"
    C = "c"
    CPP = "cpp"
    PYTHON = "python"

    @property
    def ecosystem(self) -> str:
        """Return the ecosystem tag stamped on every issue for the language."""

        return self.value


def detect_languages(root: Path, *, max_depth: int = DEFAULT_MAX_DEPTH) -> set[Language]:
    """Infer languages by marker files and source extensions under *root*.

    ``Cargo.toml``, ``go.mod``, and Python project files are checked at the
    root; source extensions are looked for anywhere outside denied directories.
    An empty set means no supported language was found.
    """

    root = root.resolve()
    languages: set[Language] = set()
    for language in Language:
        if any((root / marker).is_file() for marker in LANGUAGE_MARKERS[language.value]):
            languages.add(language)
    pending = {language for language in Language if language not in languages}
    if not pending:
        return languages
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        if len(current.relative_to(root).parts) >= max_depth:
            dirnames[:] = []
        else:
            dirnames[:] = [name for name in dirnames if name not in DENY_DIRS and not name.startswith(".")]
        for filename in filenames:
            suffix = Path(filename).suffix.lower()
            for language in tuple(pending):
                if suffix in LANGUAGE_EXTENSIONS[language.value]:
                    languages.add(language)
                    pending.discard(language)
        if not pending:
            break
    return languages


def find_marker_root(start: Path, markers: frozenset[str], *, boundary: Path | None = None) -> Path | None:
    """Walk upward from ``start`` returning the first directory holding a marker.

    Args:
        start: Directory where the search begins.
        markers: File names identifying a project root.
        boundary: Optional directory above which the search never climbs.

    Returns:
        Path | None: Directory containing one of ``markers`` or ``None``.
    """

    current = start.resolve()
    limit = boundary.resolve() if boundary is not None else None
    for candidate in (current, *current.parents):
        if any((candidate / marker).is_file() for marker in markers):
            return candidate
        if limit is not None and candidate == limit:
            break
    return None


def language_for_path(path: str | Path, default: Language | None = None) -> Language | None:
    """Return the language owning the suffix of ``path``.

    Headers ending in ``.h`` are attributed to C.
    """

    suffix = Path(path).suffix.lower()
    for language in Language:
        if suffix in LANGUAGE_EXTENSIONS[language.value]:
            return language
    return default


__all__ = ["Language", "detect_languages", "find_marker_root", "language_for_path"]
