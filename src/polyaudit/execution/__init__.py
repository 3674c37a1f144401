# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Sandboxed execution of external analyzers."""

from __future__ import annotations

from .sandbox import (
    BoundRunner,
    CancellationToken,
    ProcessResult,
    ProcessRunner,
    RunOptions,
    SandboxPolicy,
    build_environment,
    check_argument,
)

__all__ = [
    "BoundRunner",
    "CancellationToken",
    "ProcessResult",
    "ProcessRunner",
    "RunOptions",
    "SandboxPolicy",
    "build_environment",
    "check_argument",
]
