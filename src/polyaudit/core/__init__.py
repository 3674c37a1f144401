# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Core vocabularies and report models shared across polyaudit."""

from __future__ import annotations

from .models import (
    AggregateCounts,
    CorrelationHints,
    ExternalRefs,
    FixSuggestion,
    MultiToolReport,
    RawIssue,
    SearchRadius,
    ToolReport,
    ToolStatus,
    UnifiedIssue,
)
from .severity import Category, Confidence, Severity

__all__ = [
    "AggregateCounts",
    "Category",
    "Confidence",
    "CorrelationHints",
    "ExternalRefs",
    "FixSuggestion",
    "MultiToolReport",
    "RawIssue",
    "SearchRadius",
    "Severity",
    "ToolReport",
    "ToolStatus",
    "UnifiedIssue",
]
