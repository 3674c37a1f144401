# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tool-native output parsers producing :class:`~polyaudit.core.models.RawIssue` values."""

from __future__ import annotations

from .base import (
    JsonLinesParser,
    JsonParser,
    ParseContext,
    TextParser,
    XmlParser,
    load_json_document,
    load_json_lines,
    load_xml,
)
from .cpp import parse_clang_plist, parse_valgrind_xml, plist_value
from .go import parse_gosec, parse_staticcheck
from .python import parse_mypy, parse_pylint
from .rust import cvss3_base_score, parse_cargo_audit, parse_clippy

__all__ = [
    "JsonLinesParser",
    "JsonParser",
    "ParseContext",
    "TextParser",
    "XmlParser",
    "cvss3_base_score",
    "load_json_document",
    "load_json_lines",
    "load_xml",
    "parse_cargo_audit",
    "parse_clang_plist",
    "parse_clippy",
    "parse_gosec",
    "parse_mypy",
    "parse_pylint",
    "parse_staticcheck",
    "parse_valgrind_xml",
    "plist_value",
]
