# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Shared constants used across polyaudit modules."""

from __future__ import annotations

from typing import Final

DENY_DIRS: Final[frozenset[str]] = frozenset(
    {
        ".git",
        ".svn",
        ".hg",
        "node_modules",
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        "coverage",
        "dist",
        "build",
        "target",
        "bin",
        "obj",
        ".idea",
        ".vscode",
        "logs",
        "tmp",
        "temp",
        ".cache",
        "vendor",
        ".venv",
        "venv",
        "cmake-build-debug",
        "cmake-build-release",
        "CMakeFiles",
        "x64",
        "Debug",
        "Release",
    },
)

BLOCKED_PATH_PREFIXES: Final[tuple[str, ...]] = ("/proc", "/sys", "/dev", "/etc", "/var/log")
TEMPORARY_PATH_PREFIXES: Final[tuple[str, ...]] = ("/tmp", "/var/tmp")

MAX_PATH_LENGTH: Final[int] = 4096

DEFAULT_MAX_FILES: Final[int] = 1000
DEFAULT_MAX_DEPTH: Final[int] = 32
DEFAULT_MAX_FILE_BYTES: Final[int] = 10 * 1024 * 1024
DEFAULT_MAX_AGGREGATE_BYTES: Final[int] = 100 * 1024 * 1024
DEFAULT_MAX_OUTPUT_BYTES: Final[int] = 16 * 1024 * 1024
DEFAULT_TIMEOUT_MS: Final[int] = 300_000
DEFAULT_GRACE_PERIOD_MS: Final[int] = 2_000
DEFAULT_PROBE_TIMEOUT_MS: Final[int] = 5_000
DEFAULT_AVAILABILITY_TTL_SECONDS: Final[float] = 300.0
DEFAULT_MAX_WORKERS: Final[int] = 4

CONFIG_FILE_NAME: Final[str] = "polyaudit.toml"
PYPROJECT_SECTION: Final[tuple[str, str]] = ("tool", "polyaudit")

LANGUAGE_MARKERS: Final[dict[str, frozenset[str]]] = {
    "rust": frozenset({"Cargo.toml"}),
    "go": frozenset({"go.mod"}),
    "python": frozenset({"pyproject.toml", "requirements.txt", "setup.py", "setup.cfg"}),
    "c": frozenset(),
    "cpp": frozenset(),
}

LANGUAGE_EXTENSIONS: Final[dict[str, frozenset[str]]] = {
    "rust": frozenset({".rs"}),
    "go": frozenset({".go"}),
    "python": frozenset({".py", ".pyi"}),
    "c": frozenset({".c", ".h"}),
    "cpp": frozenset({".cpp", ".cc", ".cxx", ".c++", ".hpp", ".hh", ".hxx"}),
}

# Rust, Go, and Python tests live beside sources under these conventions.
TEST_DIR_NAMES: Final[frozenset[str]] = frozenset({"tests", "test", "testdata"})
