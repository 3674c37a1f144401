# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Report assembly helpers."""

from __future__ import annotations

from .assembler import (
    aggregate,
    assemble_report,
    build_error_report,
    build_skipped_report,
    build_tool_report,
    utc_now,
)

__all__ = [
    "aggregate",
    "assemble_report",
    "build_error_report",
    "build_skipped_report",
    "build_tool_report",
    "utc_now",
]
