# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Path and input validation guarding every path that reaches a subprocess."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path, PurePath
from typing import Final

from .constants import BLOCKED_PATH_PREFIXES, DENY_DIRS, MAX_PATH_LENGTH, TEMPORARY_PATH_PREFIXES
from .errors import ErrorKind, InputValidationError, ResourceLimitError

LOGGER = logging.getLogger(__name__)

_NUL: Final[str] = "\x00"
_PARENT: Final[str] = ".."


class PathKind(str, Enum):
    """Expected filesystem object type for a validated path."""

    ANY = "any"
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True, slots=True)
class PathPolicy:
    """Rules evaluated by :func:`validate_path`.

    Attributes:
        check_exists: Require the path to exist on disk.
        allowed_extensions: Lower-case suffixes (``".c"``) admitted when non-empty.
        max_file_bytes: Inclusive per-file size ceiling for regular files.
        kind: Expected object type.
        root: Declared project root; resolved targets must remain beneath it.
        deny_dirs: Directory basenames rejected anywhere below ``root``.
        allowed_roots: Extra directories admitted even when under a temporary prefix.
    """

    check_exists: bool = True
    allowed_extensions: frozenset[str] = frozenset()
    max_file_bytes: int | None = None
    kind: PathKind = PathKind.ANY
    root: Path | None = None
    deny_dirs: frozenset[str] = DENY_DIRS
    allowed_roots: tuple[Path, ...] = ()


@dataclass(frozen=True, slots=True)
class ValidatedPath:
    """Canonical path admitted by the validator."""

    canonical: Path
    size_bytes: int


def _is_within(candidate: Path, base: Path) -> bool:
    return candidate == base or base in candidate.parents


def _matches_prefix(candidate: Path, prefixes: tuple[str, ...]) -> bool:
    return any(_is_within(candidate, Path(prefix)) for prefix in prefixes)


def _reject(kind: ErrorKind, detail: str) -> InputValidationError:
    LOGGER.debug("rejected path: %s (%s)", detail, kind.value)
    return InputValidationError(kind, detail)


def _check_raw(raw: str) -> None:
    if _NUL in raw:
        raise _reject(ErrorKind.PATH_TRAVERSAL, "path contains a NUL byte")
    if len(raw) > MAX_PATH_LENGTH:
        raise _reject(ErrorKind.BLOCKED_PATH, f"path longer than {MAX_PATH_LENGTH} characters")
    if _PARENT in PurePath(raw).parts:
        raise _reject(ErrorKind.PATH_TRAVERSAL, f"'..' component in {raw}")


def _check_blocked(canonical: Path, policy: PathPolicy) -> None:
    if _matches_prefix(canonical, BLOCKED_PATH_PREFIXES):
        raise _reject(ErrorKind.BLOCKED_PATH, f"{canonical} is under a system directory")
    admitted = [*policy.allowed_roots]
    if policy.root is not None:
        admitted.append(policy.root)
    if _matches_prefix(canonical, TEMPORARY_PATH_PREFIXES) and not any(
        _is_within(canonical, Path(base).resolve()) for base in admitted
    ):
        raise _reject(ErrorKind.BLOCKED_PATH, f"{canonical} is under a temporary directory")


def _check_root(canonical: Path, policy: PathPolicy) -> None:
    if policy.root is None:
        return
    root = policy.root.resolve()
    if not _is_within(canonical, root):
        raise _reject(ErrorKind.ESCAPED_ROOT, f"{canonical} resolves outside {root}")
    relative = canonical.relative_to(root)
    denied = next((part for part in relative.parts if part in policy.deny_dirs), None)
    if denied is not None:
        raise _reject(ErrorKind.BLOCKED_PATH, f"{relative.as_posix()} is inside denied directory '{denied}'")


def validate_path(path: str | os.PathLike[str], policy: PathPolicy) -> ValidatedPath:
    """Canonicalise ``path`` and enforce every rule in ``policy``.

    Args:
        path: Candidate path supplied by the user or discovered on disk.
        policy: Validation rules to enforce.

    Returns:
        ValidatedPath: Canonical absolute path and its size in bytes (``0`` for
        directories and missing paths).

    Raises:
        InputValidationError: When any rule rejects the path.
    """

    raw = os.fspath(path)
    _check_raw(raw)
    try:
        canonical = Path(raw).expanduser().resolve(strict=False)
    except (OSError, RuntimeError) as exc:
        raise _reject(ErrorKind.PATH_TRAVERSAL, f"cannot resolve {raw}: {exc}") from exc

    _check_blocked(canonical, policy)
    _check_root(canonical, policy)

    exists = canonical.exists()
    if policy.check_exists and not exists:
        raise _reject(ErrorKind.MISSING_PATH, f"{canonical} does not exist")
    if exists and policy.kind is PathKind.FILE and not canonical.is_file():
        raise _reject(ErrorKind.BLOCKED_PATH, f"{canonical} is not a regular file")
    if exists and policy.kind is PathKind.DIRECTORY and not canonical.is_dir():
        raise _reject(ErrorKind.BLOCKED_PATH, f"{canonical} is not a directory")

    if policy.allowed_extensions and canonical.suffix.lower() not in policy.allowed_extensions:
        raise _reject(ErrorKind.DISALLOWED_EXTENSION, f"{canonical.name} has a disallowed extension")

    size = canonical.stat().st_size if exists and canonical.is_file() else 0
    if policy.max_file_bytes is not None and size > policy.max_file_bytes:
        raise _reject(
            ErrorKind.FILE_TOO_LARGE,
            f"{canonical.name} is {size} bytes (limit {policy.max_file_bytes})",
        )
    return ValidatedPath(canonical=canonical, size_bytes=size)


def validate_project_root(path: str | os.PathLike[str]) -> Path:
    """Validate the declared project root and return its canonical form.

    The project root is the declared directory of the run, so temporary
    prefixes are admitted for it while system prefixes remain blocked.

    Raises:
        InputValidationError: When the root is missing, blocked, or not a directory.
    """

    raw = os.fspath(path)
    _check_raw(raw)
    canonical = Path(raw).expanduser().resolve(strict=False)
    policy = PathPolicy(kind=PathKind.DIRECTORY, allowed_roots=(canonical,))
    if not canonical.exists():
        raise _reject(ErrorKind.PROJECT_NOT_FOUND, f"{canonical} does not exist")
    return validate_path(canonical, policy).canonical


def canonical_relative(path: str | os.PathLike[str], root: Path, *, deny_dirs: frozenset[str] = DENY_DIRS) -> str | None:
    """Return ``path`` relative to ``root`` as a forward-slash string.

    Relative inputs are interpreted against ``root``. Returns ``None`` when the
    resolved location escapes the root or falls inside a denied directory.
    """

    raw = os.fspath(path).replace("\\", "/")
    if not raw or _NUL in raw:
        return None
    candidate = Path(raw)
    if not candidate.is_absolute():
        candidate = root / candidate
    try:
        resolved = candidate.resolve(strict=False)
        relative = resolved.relative_to(root.resolve())
    except (OSError, RuntimeError, ValueError):
        return None
    if not relative.parts or any(part in deny_dirs for part in relative.parts):
        return None
    return relative.as_posix()


@dataclass(slots=True)
class ByteBudget:
    """Thread-safe aggregate byte budget shared by a traversal."""

    limit: int | None
    used: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def charge(self, size: int) -> None:
        """Reserve ``size`` bytes.

        Raises:
            ResourceLimitError: When the reservation would exceed ``limit``.
        """

        with self._lock:
            if self.limit is not None and self.used + size > self.limit:
                raise ResourceLimitError(
                    ErrorKind.MEMORY_CAP,
                    f"aggregate input size would exceed {self.limit} bytes",
                )
            self.used += size


__all__ = [
    "ByteBudget",
    "PathKind",
    "PathPolicy",
    "ValidatedPath",
    "canonical_relative",
    "validate_path",
    "validate_project_root",
]
