# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Correlation keys, cross-tool pattern tags, and correlation readiness checks.

Correlation itself happens downstream. This module stamps each unified issue
with the data a correlator needs: a second deterministic key built from the
defect's location and category, the adapter family, the ecosystem, and
abstract pattern tags that connect findings of different tools even when
their locations differ.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Final

from .core.models import CorrelationHints, SearchRadius, UnifiedIssue
from .core.severity import Category, Severity
from .normalize import stable_hash

CORRELATION_KEY_HEX_LENGTH: Final[int] = 32

CATEGORY_PATTERNS: Final[dict[Category, tuple[str, ...]]] = {
    Category.CORRECTNESS: ("logical_error",),
    Category.UNUSED: ("dead_code",),
    Category.DEAD_CODE: ("dead_code",),
    Category.PERFORMANCE: ("performance_bottleneck",),
    Category.STYLE: ("code_style",),
    Category.SECURITY: ("security_vulnerability",),
    Category.TYPE: ("type_error",),
    Category.VULNERABILITY: ("vulnerable_dependency",),
}

_CRYPTO_RULE: Final[re.Pattern[str]] = re.compile(r"(crypt|cipher|md5|sha1|des\b|rc4|tls|random)", re.IGNORECASE)

PatternRule = Callable[[UnifiedIssue], Iterable[str]]


def _gosec_patterns(issue: UnifiedIssue) -> Iterable[str]:
    rule = issue.subcategory
    if rule == "G101":
        yield "hardcoded_credentials"
    if rule.startswith("G2"):
        yield "injection"
    if rule.startswith("G3"):
        yield "file_security"
    if rule.startswith("G4"):
        yield "weak_crypto"


def _staticcheck_patterns(issue: UnifiedIssue) -> Iterable[str]:
    if issue.subcategory == "SA5011":
        yield "null_deref"
    if issue.subcategory.startswith("SA2"):
        yield "potential_panic"


def _clippy_patterns(issue: UnifiedIssue) -> Iterable[str]:
    if "unwrap" in issue.subcategory or "expect" in issue.subcategory:
        yield "potential_panic"


def _mypy_patterns(issue: UnifiedIssue) -> Iterable[str]:
    if issue.subcategory in {"union-attr", "optional-member"}:
        yield "null_deref"


def _pylint_patterns(issue: UnifiedIssue) -> Iterable[str]:
    if "eval-used" in issue.tags or "exec-used" in issue.tags:
        yield "injection"


TOOL_PATTERN_RULES: Final[dict[str, PatternRule]] = {
    "gosec": _gosec_patterns,
    "staticcheck": _staticcheck_patterns,
    "clippy": _clippy_patterns,
    "mypy": _mypy_patterns,
    "pylint": _pylint_patterns,
}


def correlation_key(canonical_path: str, start_line: int, category: Category | str, tool: str) -> str:
    """Return the 128-bit correlation key as 32 hex characters."""

    label = category.value if isinstance(category, Category) else category
    return stable_hash(canonical_path, start_line, label, tool, length=CORRELATION_KEY_HEX_LENGTH)


def derive_cross_tool_patterns(issue: UnifiedIssue) -> tuple[str, ...]:
    """Return the pattern tags for ``issue`` in a stable order.

    Tags already attached by the parser come first, followed by tool-specific
    rules and then category-wide tags.
    """

    patterns: list[str] = list(issue.cross_tool_patterns)
    rule = TOOL_PATTERN_RULES.get(issue.tool_name)
    if rule is not None:
        patterns.extend(rule(issue))
    patterns.extend(CATEGORY_PATTERNS.get(issue.category, ()))
    if issue.category is Category.SECURITY and issue.severity is Severity.CRITICAL:
        patterns.append("critical_security")
    if issue.category in {Category.SECURITY, Category.VULNERABILITY} and _CRYPTO_RULE.search(issue.subcategory):
        patterns.append("weak_crypto")
    return tuple(dict.fromkeys(patterns))


def annotate(
    issue: UnifiedIssue,
    *,
    tool_category: str,
    search_radius: SearchRadius | None = None,
) -> UnifiedIssue:
    """Return a copy of ``issue`` carrying its correlation data.

    The key depends only on fields of ``issue`` itself, so annotating a list in
    any order yields the same keys.
    """

    patterns = derive_cross_tool_patterns(issue)
    hints = CorrelationHints(search_radius=search_radius or SearchRadius(), cross_tool_patterns=patterns)
    return issue.model_copy(
        update={
            "correlation_key": correlation_key(issue.canonical_path, issue.start_line, issue.category, issue.tool_name),
            "tool_category": tool_category,
            "cross_tool_patterns": patterns,
            "correlation_hints": hints,
        },
    )


def annotate_all(
    issues: Iterable[UnifiedIssue],
    *,
    tool_category: str,
    search_radius: SearchRadius | None = None,
) -> list[UnifiedIssue]:
    """Annotate every issue, preserving order."""

    return [annotate(issue, tool_category=tool_category, search_radius=search_radius) for issue in issues]


class CorrelationReason(str, Enum):
    """Why two issues may describe the same defect."""

    SAME_KEY = "same-key"
    PROXIMITY = "proximity"
    SHARED_PATTERN = "shared-pattern"


@dataclass(frozen=True, slots=True)
class CorrelationCandidate:
    """A pair of issues that a downstream correlator should consider together."""

    first: UnifiedIssue
    second: UnifiedIssue
    reason: CorrelationReason


def may_correlate(first: UnifiedIssue, second: UnifiedIssue) -> CorrelationReason | None:
    """Return the strongest reason ``first`` and ``second`` may correlate.

    Reasons are checked in order: identical correlation key, same file within
    the smaller of the two search radii, then overlapping pattern tags.
    """

    if first.correlation_key and first.correlation_key == second.correlation_key:
        return CorrelationReason.SAME_KEY
    if first.canonical_path == second.canonical_path:
        radius = min(
            first.correlation_hints.search_radius.lines,
            second.correlation_hints.search_radius.lines,
        )
        if abs(first.start_line - second.start_line) <= radius:
            return CorrelationReason.PROXIMITY
    if set(first.cross_tool_patterns) & set(second.cross_tool_patterns):
        return CorrelationReason.SHARED_PATTERN
    return None


def find_correlation_candidates(
    issues: Sequence[UnifiedIssue],
    *,
    cross_tool_only: bool = True,
) -> Iterator[CorrelationCandidate]:
    """Yield every pair of ``issues`` that may correlate.

    Args:
        issues: Annotated issues, typically from :meth:`MultiToolReport.iter_issues`.
        cross_tool_only: Skip pairs reported by the same tool.

    Yields:
        CorrelationCandidate: Pairs in input order with their reason.
    """

    for index, first in enumerate(issues):
        for second in issues[index + 1 :]:
            if cross_tool_only and first.tool_name == second.tool_name:
                continue
            reason = may_correlate(first, second)
            if reason is not None:
                yield CorrelationCandidate(first=first, second=second, reason=reason)


def validate_for_correlation(issue: UnifiedIssue) -> list[str]:
    """Return readiness problems preventing ``issue`` from being correlated."""

    problems: list[str] = []
    if not issue.canonical_path:
        problems.append("missing canonical path")
    if issue.start_line < 1:
        problems.append("start line must be at least 1")
    if not issue.correlation_key:
        problems.append("missing correlation key")
    elif len(issue.correlation_key) != CORRELATION_KEY_HEX_LENGTH:
        problems.append("correlation key has unexpected length")
    if not issue.tool_category:
        problems.append("missing tool category")
    if not issue.ecosystem:
        problems.append("missing ecosystem")
    return problems


__all__ = [
    "CATEGORY_PATTERNS",
    "CORRELATION_KEY_HEX_LENGTH",
    "CorrelationCandidate",
    "CorrelationReason",
    "TOOL_PATTERN_RULES",
    "annotate",
    "annotate_all",
    "correlation_key",
    "derive_cross_tool_patterns",
    "find_correlation_candidates",
    "may_correlate",
    "validate_for_correlation",
]
