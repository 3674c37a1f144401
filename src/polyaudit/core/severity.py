# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Severity, category, and confidence vocabularies plus monotone override helpers."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Final, cast


class Severity(str, Enum):
    """Severity levels normalising different tool vocabularies."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Return an integer where larger values are more severe."""

        return _SEVERITY_RANK[self]

    def at_least(self, other: Severity) -> bool:
        """Return ``True`` when ``self`` is as severe as ``other`` or more."""

        return self.rank >= other.rank


_SEVERITY_RANK: Final[dict[Severity, int]] = {
    Severity.INFO: 0,
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


class Category(str, Enum):
    """Unified defect categories shared by every adapter."""

    SECURITY = "security"
    MEMORY_SAFETY = "memory-safety"
    CORRECTNESS = "correctness"
    PERFORMANCE = "performance"
    STYLE = "style"
    COMPLEXITY = "complexity"
    SUSPICIOUS = "suspicious"
    UNUSED = "unused"
    DEPRECATED = "deprecated"
    DEAD_CODE = "dead-code"
    TYPE = "type"
    VULNERABILITY = "vulnerability"
    OTHER = "other"


class Confidence(str, Enum):
    """Confidence attached to a finding, from proof to guesswork."""

    MATHEMATICAL_PROOF = "mathematical_proof"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    HEURISTIC = "heuristic"


SeverityRule = tuple[re.Pattern[str], Severity]
SeverityRuleView = Mapping[str, Iterable[SeverityRule]]

UNKNOWN_LABEL_TAG: Final[str] = "unmapped-severity"

# Floors applied after each adapter's native mapping. A matching rule may only
# raise a severity, never lower it.
DEFAULT_SEVERITY_FLOORS: Final[dict[str, list[SeverityRule]]] = {
    "gosec": [
        (re.compile(r"^G(101|201|202)$"), Severity.HIGH),
        (re.compile(r"^G(401|402)$"), Severity.MEDIUM),
    ],
    "staticcheck": [
        (re.compile(r"^SA[25]\d{3}$"), Severity.HIGH),
        (re.compile(r"^SA[13469]\d{3}$"), Severity.MEDIUM),
    ],
    "clang-static-analyzer": [
        (re.compile(r"^core\.(NullDereference|NonNullParamChecker|DivideZero)"), Severity.HIGH),
        (re.compile(r"^unix\.(Malloc|MismatchedDeallocator)"), Severity.HIGH),
        (re.compile(r"^(alpha\.)?security\."), Severity.HIGH),
    ],
    "pylint": [
        (re.compile(r"^E(0602|1120|1121)$"), Severity.HIGH),
    ],
    "mypy": [
        (re.compile(r"^(name-defined|attr-defined|call-arg)$"), Severity.HIGH),
    ],
}


def raise_severity(current: Severity, candidate: Severity) -> Severity:
    """Return the more severe of ``current`` and ``candidate``.

    Args:
        current: Severity already assigned to the finding.
        candidate: Severity proposed by an override rule.

    Returns:
        Severity: ``candidate`` when it outranks ``current``, otherwise ``current``.
    """

    return candidate if candidate.rank > current.rank else current


def apply_severity_rules(
    tool: str,
    code: str,
    severity: Severity,
    *,
    rules: SeverityRuleView | None = None,
) -> Severity:
    """Apply tool-specific floors to a mapped severity.

    Args:
        tool: Tool identifier associated with the finding.
        code: Rule code used when matching floor patterns.
        severity: Severity produced by the adapter's native mapping table.
        rules: Optional floor table; defaults to :data:`DEFAULT_SEVERITY_FLOORS`.

    Returns:
        Severity: ``severity`` raised to the highest matching floor.
    """

    active_rules: SeverityRuleView = rules if rules is not None else DEFAULT_SEVERITY_FLOORS
    candidates = active_rules.get(tool, cast("Iterable[SeverityRule]", ()))
    result = severity
    for pattern, floor in candidates:
        if pattern.search(code or ""):
            result = raise_severity(result, floor)
    return result


def map_severity_label(
    label: object,
    mapping: Mapping[str, Severity],
    default: Severity = Severity.MEDIUM,
) -> tuple[Severity, bool]:
    """Translate a tool-native severity label using ``mapping``.

    Args:
        label: Raw label emitted by the tool.
        mapping: Lower-case label to :class:`Severity` table.
        default: Severity returned for labels missing from ``mapping``.

    Returns:
        tuple[Severity, bool]: Mapped severity and ``True`` when the label was known.
    """

    if isinstance(label, str):
        key = label.strip().lower()
        if key in mapping:
            return mapping[key], True
    return default, False


def coerce_category(label: str | None) -> tuple[Category, str | None]:
    """Map a free-form category label onto :class:`Category`.

    Args:
        label: Category text produced by an adapter mapping table.

    Returns:
        tuple[Category, str | None]: Unified category and the original label when
        it fell outside the enumeration (``None`` otherwise).
    """

    if not label:
        return Category.OTHER, None
    normalised = label.strip().lower().replace("_", "-")
    normalised = _CATEGORY_ALIASES.get(normalised, normalised)
    try:
        return Category(normalised), None
    except ValueError:
        return Category.OTHER, label


_CATEGORY_ALIASES: Final[dict[str, str]] = {
    "bug": "correctness",
    "logic": "correctness",
    "memory": "memory-safety",
    "memory-error": "memory-safety",
    "deadcode": "dead-code",
    "typing": "type",
    "types": "type",
    "perf": "performance",
    "convention": "style",
    "refactor": "complexity",
}


__all__ = [
    "DEFAULT_SEVERITY_FLOORS",
    "UNKNOWN_LABEL_TAG",
    "Category",
    "Confidence",
    "Severity",
    "SeverityRule",
    "SeverityRuleView",
    "apply_severity_rules",
    "coerce_category",
    "map_severity_label",
    "raise_severity",
]
