# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Bounded filesystem discovery of analyzable source files."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

from ..constants import DEFAULT_MAX_DEPTH, DEFAULT_MAX_FILE_BYTES, DEFAULT_MAX_FILES, DENY_DIRS, TEST_DIR_NAMES
from ..errors import ErrorKind, InputValidationError, ResourceLimitError
from ..validation import ByteBudget, PathKind, PathPolicy, validate_path

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DiscoveryOptions:
    """Parameters bounding a discovery walk.

    Attributes:
        extensions: Lower-case suffixes selected by the walk.
        max_files: Hard cap on the number of returned paths.
        max_depth: Deepest directory level descended into, with the root at ``0``.
        deny_dirs: Directory basenames never entered.
        max_file_bytes: Inclusive per-file size ceiling.
        max_aggregate_bytes: Optional ceiling on the summed size of returned files.
        include_tests: When ``False`` test files and test directories are skipped.
    """

    extensions: frozenset[str]
    max_files: int = DEFAULT_MAX_FILES
    max_depth: int = DEFAULT_MAX_DEPTH
    deny_dirs: frozenset[str] = DENY_DIRS
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    max_aggregate_bytes: int | None = None
    include_tests: bool = True


@dataclass(slots=True)
class DiscoveryResult:
    """Ordered canonical paths plus any resource warnings raised by the walk."""

    paths: list[Path] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skipped: int = 0
    total_bytes: int = 0

    def __len__(self) -> int:
        return len(self.paths)

    def __iter__(self) -> Iterator[Path]:
        return iter(self.paths)

    @property
    def truncated(self) -> bool:
        """Return ``True`` when a file or byte cap stopped the walk early."""

        return bool(self.warnings)


_TEST_FILE_SUFFIXES = ("_test.go", "_test.py", "_test.rs", "_test.c", "_test.cpp")


def is_test_path(relative: Path) -> bool:
    """Return ``True`` when ``relative`` follows a common test naming convention."""

    name = relative.name
    if name.startswith("test_") or name.endswith(_TEST_FILE_SUFFIXES) or name == "conftest.py":
        return True
    return any(part in TEST_DIR_NAMES for part in relative.parts[:-1])


class FilesystemDiscovery:
    """Depth-first walk collecting validated files by extension."""

    def discover(self, root: Path, options: DiscoveryOptions) -> DiscoveryResult:
        """Return files beneath ``root`` matching ``options``.

        Args:
            root: Canonical project root; depth is counted from here.
            options: Extension filter, caps, and deny list.

        Returns:
            DiscoveryResult: Paths in deterministic depth-first order. When
            ``max_files`` or the aggregate byte budget is hit the walk stops and
            a ``FileLimit``/``MemoryCap`` warning is recorded.
        """

        result = DiscoveryResult()
        if options.max_files <= 0:
            return result
        root = root.resolve()
        policy = PathPolicy(
            check_exists=True,
            kind=PathKind.FILE,
            max_file_bytes=options.max_file_bytes,
            root=root,
            deny_dirs=options.deny_dirs,
        )
        budget = ByteBudget(options.max_aggregate_bytes)
        for candidate in self._walk(root, options):
            relative = candidate.relative_to(root)
            if not options.include_tests and is_test_path(relative):
                continue
            try:
                validated = validate_path(candidate, policy)
            except InputValidationError as exc:
                LOGGER.debug("skipping %s: %s", relative.as_posix(), exc)
                result.skipped += 1
                continue
            if len(result.paths) >= options.max_files:
                result.warnings.append(f"{ErrorKind.FILE_LIMIT.value}: stopped after {options.max_files} files")
                LOGGER.warning("discovery capped at %d files under %s", options.max_files, root)
                break
            try:
                budget.charge(validated.size_bytes)
            except ResourceLimitError as exc:
                result.warnings.append(exc.message)
                LOGGER.warning("discovery stopped under %s: %s", root, exc)
                break
            result.paths.append(validated.canonical)
            result.total_bytes = budget.used
        return result

    def __call__(self, root: Path, options: DiscoveryOptions) -> DiscoveryResult:
        """Delegate to :meth:`discover` enabling callable semantics."""

        return self.discover(root, options)

    def _walk(self, root: Path, options: DiscoveryOptions) -> Iterator[Path]:
        for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
            current = Path(dirpath)
            depth = len(current.relative_to(root).parts)
            if depth >= options.max_depth:
                dirnames[:] = []
            else:
                dirnames[:] = sorted(name for name in dirnames if not _skip_directory(name, options.deny_dirs))
            for filename in sorted(filenames):
                if Path(filename).suffix.lower() in options.extensions:
                    yield current / filename


def _skip_directory(name: str, deny_dirs: frozenset[str]) -> bool:
    return name in deny_dirs or name.startswith(".")


def discover(root: Path, options: DiscoveryOptions) -> DiscoveryResult:
    """Module-level convenience wrapper around :class:`FilesystemDiscovery`."""

    return FilesystemDiscovery().discover(root, options)


__all__ = ["DiscoveryOptions", "DiscoveryResult", "FilesystemDiscovery", "discover", "is_test_path"]
