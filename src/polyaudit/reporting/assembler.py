# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Build per-adapter tool reports and join them into the multi-tool report."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from ..core.models import AggregateCounts, MultiToolReport, ToolReport, ToolStatus, UnifiedIssue
from ..core.severity import Category, Severity
from ..errors import PolyauditError


def utc_now() -> datetime:
    """Return the current time as an aware UTC timestamp."""

    return datetime.now(UTC)


def _duration_ms(started_at: datetime, finished_at: datetime) -> int:
    return max(int((finished_at - started_at).total_seconds() * 1000), 0)


def severity_counts(issues: Iterable[UnifiedIssue]) -> dict[str, int]:
    """Return issue counts keyed by severity, listing every level."""

    counter = Counter(issue.severity for issue in issues)
    return {level.value: counter.get(level, 0) for level in Severity}


def category_counts(issues: Iterable[UnifiedIssue]) -> dict[str, int]:
    """Return issue counts keyed by category, omitting empty categories."""

    counter = Counter(issue.category for issue in issues)
    return {category.value: counter[category] for category in Category if counter.get(category)}


def build_tool_report(
    *,
    tool: str,
    version: str | None,
    language: str,
    target: Path,
    started_at: datetime,
    issues: Sequence[UnifiedIssue],
    files_analyzed: int = 0,
    warnings: Sequence[str] = (),
    dropped_records: int = 0,
    finished_at: datetime | None = None,
) -> ToolReport:
    """Return a successful report carrying ``issues`` in tool emission order."""

    finished = finished_at or utc_now()
    return ToolReport(
        tool=tool,
        version=version,
        language=language,
        timestamp=finished,
        target=str(target),
        started_at=started_at,
        finished_at=finished,
        duration_ms=_duration_ms(started_at, finished),
        files_analyzed=files_analyzed,
        issues_by_severity=severity_counts(issues),
        issues_by_category=category_counts(issues),
        issues=tuple(issues),
        status=ToolStatus.OK,
        warnings=tuple(warnings),
        dropped_records=dropped_records,
    )


def build_error_report(
    *,
    tool: str,
    version: str | None,
    language: str,
    target: Path,
    started_at: datetime,
    error: PolyauditError,
    files_analyzed: int = 0,
    warnings: Sequence[str] = (),
    dropped_records: int = 0,
) -> ToolReport:
    """Return a failed report: ``status=error``, the error string, no issues."""

    finished = utc_now()
    return ToolReport(
        tool=tool,
        version=version,
        language=language,
        timestamp=finished,
        target=str(target),
        started_at=started_at,
        finished_at=finished,
        duration_ms=_duration_ms(started_at, finished),
        files_analyzed=files_analyzed,
        issues_by_severity=severity_counts(()),
        status=ToolStatus.ERROR,
        error=error.message,
        error_kind=error.kind,
        warnings=tuple(warnings),
        dropped_records=dropped_records,
    )


def build_skipped_report(
    *,
    tool: str,
    version: str | None,
    language: str,
    target: Path,
    started_at: datetime,
    reason: str,
) -> ToolReport:
    """Return a report for an adapter that had nothing to do."""

    finished = utc_now()
    return ToolReport(
        tool=tool,
        version=version,
        language=language,
        timestamp=finished,
        target=str(target),
        started_at=started_at,
        finished_at=finished,
        duration_ms=_duration_ms(started_at, finished),
        issues_by_severity=severity_counts(()),
        status=ToolStatus.SKIPPED,
        warnings=(reason,),
    )


def aggregate(reports: Sequence[ToolReport]) -> AggregateCounts:
    """Compute run-wide counts across ``reports``."""

    issues = [issue for report in reports for issue in report.issues]
    by_tool: Counter[str] = Counter()
    for report in reports:
        by_tool[report.tool] += len(report.issues)
    return AggregateCounts(
        total_issues=len(issues),
        by_severity=severity_counts(issues),
        by_category=category_counts(issues),
        by_tool=dict(by_tool),
        files_analyzed=sum(report.files_analyzed for report in reports),
        failed_tools=tuple(report.tool for report in reports if report.status is ToolStatus.ERROR),
        skipped_tools=tuple(report.tool for report in reports if report.status is ToolStatus.SKIPPED),
        dropped_records=sum(report.dropped_records for report in reports),
    )


def assemble_report(
    *,
    project_root: Path,
    detected_languages: Iterable[str],
    reports: Sequence[ToolReport],
    started_at: datetime,
    wall_clock_ms: int,
    notes: Sequence[str] = (),
    finished_at: datetime | None = None,
) -> MultiToolReport:
    """Join per-adapter reports into the final multi-tool report.

    Args:
        project_root: Canonical project root that was analysed.
        detected_languages: Languages reported by detection.
        reports: One report per adapter run, in completion-independent order.
        started_at: Run start timestamp.
        wall_clock_ms: Orchestrator-measured wall-clock duration.
        notes: Run-level notes such as "no supported languages".
        finished_at: Run end timestamp; defaults to now.

    Returns:
        MultiToolReport: Immutable report with aggregate counts.
    """

    return MultiToolReport(
        project_root=str(project_root),
        detected_languages=tuple(sorted(detected_languages)),
        reports=tuple(reports),
        aggregate=aggregate(reports),
        started_at=started_at,
        finished_at=finished_at or utc_now(),
        wall_clock_ms=max(wall_clock_ms, 0),
        notes=tuple(notes),
    )


__all__ = [
    "aggregate",
    "assemble_report",
    "build_error_report",
    "build_skipped_report",
    "build_tool_report",
    "category_counts",
    "severity_counts",
    "utc_now",
]
