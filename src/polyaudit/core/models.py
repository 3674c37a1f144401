# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Pydantic models describing raw tool findings, unified issues, and reports."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator
from datetime import datetime
from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from ..errors import ErrorKind
from .severity import Category, Confidence, Severity


class _ReportModel(BaseModel):
    """Immutable base model serialised with camelCase keys."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class FixSuggestion(_ReportModel):
    """Replacement text proposed by a tool together with the span it replaces."""

    replacement: str
    start_line: int = Field(ge=1)
    start_column: int = Field(default=1, ge=1)
    end_line: int = Field(ge=1)
    end_column: int = Field(default=1, ge=1)
    description: str | None = None


class ExternalRefs(_ReportModel):
    """Cross references to weakness catalogues and advisories."""

    cwe: str | None = None
    owasp: str | None = None
    advisory_url: str | None = None

    def is_empty(self) -> bool:
        """Return ``True`` when no reference is populated."""

        return not (self.cwe or self.owasp or self.advisory_url)


class SearchRadius(_ReportModel):
    """Proximity window used by downstream correlators."""

    lines: int = 5
    columns: int = 10


class CorrelationHints(_ReportModel):
    """Hints attached to each issue to drive cross-tool correlation."""

    search_radius: SearchRadius = Field(default_factory=SearchRadius)
    similarity_factors: tuple[str, ...] = ("file", "line", "category", "message")
    cross_tool_patterns: tuple[str, ...] = ()


class RawIssue(BaseModel):
    """Capture a tool-native finding prior to normalisation."""

    model_config = ConfigDict(validate_assignment=True)

    file: str | None = None
    line: int | None = None
    column: int | None = None
    end_line: int | None = None
    end_column: int | None = None
    severity: Severity = Severity.MEDIUM
    severity_known: bool = True
    category: str | None = None
    rule: str | None = None
    title: str
    description: str = ""
    confidence: Confidence | None = None
    tags: list[str] = Field(default_factory=list)
    fix: FixSuggestion | None = None
    refs: ExternalRefs | None = None
    pattern_hints: list[str] = Field(default_factory=list)
    ecosystem: str | None = None

    @field_validator("file", mode="before")
    @classmethod
    def _coerce_file(cls, value: object) -> str | None:
        """Return a stripped string path or ``None`` for blank values."""

        if value is None:
            return None
        text = str(value).strip()
        return text or None


class UnifiedIssue(_ReportModel):
    """The single cross-tool finding type emitted by every adapter."""

    id: str
    tool_name: str
    tool_version: str | None = None
    canonical_path: str
    start_line: int = Field(ge=1)
    start_column: int = Field(ge=1)
    end_line: int = Field(ge=1)
    end_column: int = Field(ge=1)
    severity: Severity
    category: Category
    subcategory: str
    title: str
    description: str = ""
    confidence: Confidence
    tags: tuple[str, ...] = ()
    fix_suggestion: FixSuggestion | None = None
    external_refs: ExternalRefs | None = None
    correlation_key: str = ""
    cross_tool_patterns: tuple[str, ...] = ()
    tool_category: str = ""
    ecosystem: str = ""
    correlation_hints: CorrelationHints = Field(default_factory=CorrelationHints)

    @field_validator("canonical_path")
    @classmethod
    def _require_relative_posix(cls, value: str) -> str:
        """Reject absolute, backslashed, or parent-escaping canonical paths."""

        if not value or "\\" in value:
            raise ValueError(f"canonical path must use forward slashes: {value!r}")
        pure = PurePosixPath(value)
        if pure.is_absolute() or ".." in pure.parts:
            raise ValueError(f"canonical path must stay under the project root: {value!r}")
        return value

    @model_validator(mode="after")
    def _check_span(self) -> UnifiedIssue:
        """Ensure the issue span is ordered."""

        if self.end_line < self.start_line:
            raise ValueError("end_line must not precede start_line")
        return self


class ToolStatus(str, Enum):
    """Outcome of a single adapter invocation."""

    OK = "ok"
    ERROR = "error"
    SKIPPED = "skipped"


class ToolReport(_ReportModel):
    """Per-adapter invocation report."""

    tool: str
    version: str | None = None
    language: str
    timestamp: datetime
    target: str
    started_at: datetime
    finished_at: datetime
    duration_ms: int = Field(ge=0)
    files_analyzed: int = Field(default=0, ge=0)
    issues_by_severity: dict[str, int] = Field(default_factory=dict)
    issues_by_category: dict[str, int] = Field(default_factory=dict)
    issues: tuple[UnifiedIssue, ...] = ()
    status: ToolStatus = ToolStatus.OK
    error: str | None = None
    error_kind: ErrorKind | None = None
    warnings: tuple[str, ...] = ()
    dropped_records: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _no_partial_results(self) -> ToolReport:
        """Forbid mixing an error with issues and keep ``status`` consistent."""

        if self.error is not None:
            if self.issues:
                raise ValueError("a report carrying an error must not carry issues")
            if self.status is ToolStatus.OK:
                raise ValueError("a report carrying an error cannot have status 'ok'")
        elif self.status is ToolStatus.ERROR:
            raise ValueError("status 'error' requires an error message")
        return self


class AggregateCounts(_ReportModel):
    """Counts computed across every tool report in a run."""

    total_issues: int = 0
    by_severity: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)
    by_tool: dict[str, int] = Field(default_factory=dict)
    files_analyzed: int = 0
    failed_tools: tuple[str, ...] = ()
    skipped_tools: tuple[str, ...] = ()
    dropped_records: int = 0


class MultiToolReport(_ReportModel):
    """Orchestrator output joining every adapter report of one run."""

    project_root: str
    detected_languages: tuple[str, ...] = ()
    reports: tuple[ToolReport, ...] = ()
    aggregate: AggregateCounts = Field(default_factory=AggregateCounts)
    started_at: datetime
    finished_at: datetime
    wall_clock_ms: int = Field(ge=0)
    notes: tuple[str, ...] = ()

    def iter_issues(self) -> Iterator[UnifiedIssue]:
        """Yield every issue across reports in report order."""

        for report in self.reports:
            yield from report.issues

    def highest_severity(self) -> Severity | None:
        """Return the most severe issue level observed, or ``None`` when clean."""

        levels = [issue.severity for issue in self.iter_issues()]
        if not levels:
            return None
        return max(levels, key=lambda level: level.rank)

    def severity_histogram(self) -> Counter[Severity]:
        """Return a counter of issues per severity."""

        return Counter(issue.severity for issue in self.iter_issues())

    def to_json(self, *, indent: int | None = 2) -> str:
        """Serialise the report using camelCase keys."""

        return self.model_dump_json(by_alias=True, indent=indent)


__all__ = [
    "AggregateCounts",
    "CorrelationHints",
    "ExternalRefs",
    "FixSuggestion",
    "MultiToolReport",
    "RawIssue",
    "SearchRadius",
    "ToolReport",
    "ToolStatus",
    "UnifiedIssue",
]
