# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Deterministic conversion of raw tool findings into unified issues."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from .config import LanguageOptions
from .constants import DENY_DIRS
from .core.models import RawIssue, UnifiedIssue
from .core.severity import (
    UNKNOWN_LABEL_TAG,
    Confidence,
    SeverityRuleView,
    apply_severity_rules,
    coerce_category,
)
from .validation import canonical_relative

LOGGER = logging.getLogger(__name__)

UNKNOWN_RULE: Final[str] = "unknown"
ID_HEX_LENGTH: Final[int] = 16
_FIELD_SEPARATOR: Final[str] = "|"


def stable_hash(*parts: object, length: int) -> str:
    """Return the first ``length`` hex characters of SHA-256 over ``parts``."""

    payload = _FIELD_SEPARATOR.join(str(part) for part in parts)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:length]


def issue_id(canonical_path: str, start_line: int, rule: str, tool: str) -> str:
    """Return the stable identifier of an issue."""

    return stable_hash(canonical_path, start_line, rule, tool, length=ID_HEX_LENGTH)


@dataclass(frozen=True, slots=True)
class NormalizationProfile:
    """Per-adapter inputs to :func:`normalize_issue`.

    Attributes:
        tool: Adapter name stamped as ``toolName``.
        tool_version: Version reported by the availability probe.
        ecosystem: Ecosystem tag used when the raw issue carries none.
        default_confidence: Confidence used when the tool reports none.
        root: Declared project root every path is made relative to.
        deny_dirs: Directory names whose findings are discarded.
        severity_floors: Optional floor table overriding the defaults.
    """

    tool: str
    tool_version: str | None
    ecosystem: str
    default_confidence: Confidence
    root: Path
    deny_dirs: frozenset[str] = DENY_DIRS
    severity_floors: SeverityRuleView | None = None


@dataclass(slots=True)
class NormalizationResult:
    """Issues produced by :func:`normalize_issues` with drop accounting."""

    issues: list[UnifiedIssue] = field(default_factory=list)
    outside_root: int = 0
    filtered: int = 0

    @property
    def warnings(self) -> list[str]:
        """Return human-readable warnings describing dropped findings."""

        if not self.outside_root:
            return []
        return [f"dropped {self.outside_root} finding(s) outside the project root or in denied directories"]


def _unique(values: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(value for value in values if value))


def normalize_issue(raw: RawIssue, profile: NormalizationProfile) -> UnifiedIssue | None:
    """Return the unified form of ``raw`` or ``None`` when its path is unusable.

    Lines and columns are clamped to at least one and a missing end defaults to
    the start. Severity floors may only raise the tool's mapped level. A
    category label outside the unified vocabulary becomes ``other`` and the
    original label is kept as a ``category:<label>`` tag.
    """

    if raw.file is None:
        return None
    canonical = canonical_relative(raw.file, profile.root, deny_dirs=profile.deny_dirs)
    if canonical is None:
        return None

    start_line = max(raw.line or 1, 1)
    start_column = max(raw.column or 1, 1)
    end_line = max(raw.end_line or start_line, start_line)
    end_column = max(raw.end_column or start_column, 1)
    if end_line == start_line:
        end_column = max(end_column, start_column)

    rule = raw.rule or UNKNOWN_RULE
    severity = apply_severity_rules(profile.tool, rule, raw.severity, rules=profile.severity_floors)
    category, original_label = coerce_category(raw.category)
    ecosystem = raw.ecosystem or profile.ecosystem

    tags = [ecosystem, *raw.tags]
    if original_label is not None:
        tags.append(f"category:{original_label}")
    if not raw.severity_known:
        tags.append(UNKNOWN_LABEL_TAG)

    return UnifiedIssue(
        id=issue_id(canonical, start_line, rule, profile.tool),
        tool_name=profile.tool,
        tool_version=profile.tool_version,
        canonical_path=canonical,
        start_line=start_line,
        start_column=start_column,
        end_line=end_line,
        end_column=end_column,
        severity=severity,
        category=category,
        subcategory=rule,
        title=raw.title,
        description=raw.description or raw.title,
        confidence=raw.confidence or profile.default_confidence,
        tags=_unique(tags),
        fix_suggestion=raw.fix,
        external_refs=raw.refs if raw.refs is not None and not raw.refs.is_empty() else None,
        cross_tool_patterns=_unique(raw.pattern_hints),
        ecosystem=ecosystem,
    )


def _rule_matches(rule: str, patterns: Sequence[str]) -> bool:
    return any(rule == pattern or rule.startswith(pattern) for pattern in patterns)


def passes_filters(issue: UnifiedIssue, options: LanguageOptions) -> bool:
    """Return ``True`` when ``issue`` survives threshold and rule filters.

    ``include_rules`` and ``exclude_rules`` match a subcategory exactly or by
    prefix, so ``SA1`` selects every ``SA1xxx`` check.
    """

    if not issue.severity.at_least(options.severity_threshold):
        return False
    if options.include_rules and not _rule_matches(issue.subcategory, options.include_rules):
        return False
    return not _rule_matches(issue.subcategory, options.exclude_rules)


def normalize_issues(
    raw_issues: Iterable[RawIssue],
    profile: NormalizationProfile,
    options: LanguageOptions | None = None,
) -> NormalizationResult:
    """Normalize ``raw_issues`` in order, then apply option filters.

    Args:
        raw_issues: Tool-native findings in emission order.
        profile: Adapter identity and root used for canonicalisation.
        options: Language options supplying threshold and rule filters.

    Returns:
        NormalizationResult: Surviving issues plus drop counts.
    """

    result = NormalizationResult()
    for raw in raw_issues:
        issue = normalize_issue(raw, profile)
        if issue is None:
            result.outside_root += 1
            LOGGER.debug("%s: discarded finding for %r", profile.tool, raw.file)
            continue
        if options is not None and not passes_filters(issue, options):
            result.filtered += 1
            continue
        result.issues.append(issue)
    return result


__all__ = [
    "ID_HEX_LENGTH",
    "NormalizationProfile",
    "NormalizationResult",
    "issue_id",
    "normalize_issue",
    "normalize_issues",
    "passes_filters",
    "stable_hash",
]
