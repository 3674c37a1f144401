# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Analyzer adapters and the registry that exposes them."""

from __future__ import annotations

from .base import (
    AdapterRun,
    AdapterSkipped,
    AdapterState,
    AnalysisContext,
    Capabilities,
    InstallHint,
    Invocation,
    ProbeResult,
    ToolAdapter,
    ToolOutput,
)
from .cpp import ClangAnalyzerAdapter, ValgrindAdapter
from .go import GosecAdapter, StaticcheckAdapter
from .python import MypyAdapter, PylintAdapter
from .registry import DEFAULT_REGISTRY, ToolRegistry, default_registry
from .rust import CargoAuditAdapter, ClippyAdapter

__all__ = [
    "DEFAULT_REGISTRY",
    "AdapterRun",
    "AdapterSkipped",
    "AdapterState",
    "AnalysisContext",
    "Capabilities",
    "CargoAuditAdapter",
    "ClangAnalyzerAdapter",
    "ClippyAdapter",
    "GosecAdapter",
    "InstallHint",
    "Invocation",
    "MypyAdapter",
    "ProbeResult",
    "PylintAdapter",
    "StaticcheckAdapter",
    "ToolAdapter",
    "ToolOutput",
    "ToolRegistry",
    "ValgrindAdapter",
    "default_registry",
]
