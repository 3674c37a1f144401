# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the Typer command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from polyaudit.cli import EXIT_CLEAN, EXIT_FINDINGS, EXIT_INPUT_ERROR, app, exit_code_for
from polyaudit.core.models import MultiToolReport, UnifiedIssue
from polyaudit.core.severity import Category, Confidence, Severity
from polyaudit.reporting import assemble_report, build_tool_report, utc_now
from polyaudit.tools import ProbeResult, ToolAdapter

runner = CliRunner()


def _report_with(tmp_path: Path, *levels: Severity) -> MultiToolReport:
    started = utc_now()
    issues = [
        UnifiedIssue(
            id=f"issue{index}",
            tool_name="staticcheck",
            canonical_path="main.go",
            start_line=index + 1,
            start_column=1,
            end_line=index + 1,
            end_column=1,
            severity=level,
            category=Category.CORRECTNESS,
            subcategory="SA4006",
            title="value never used",
            confidence=Confidence.MEDIUM,
        )
        for index, level in enumerate(levels)
    ]
    tool_report = build_tool_report(
        tool="staticcheck",
        version="2023.1.6",
        language="go",
        target=tmp_path,
        started_at=started,
        issues=issues,
    )
    return assemble_report(
        project_root=tmp_path,
        detected_languages=["go"],
        reports=[tool_report],
        started_at=started,
        wall_clock_ms=1,
    )


@pytest.mark.parametrize(
    ("levels", "expected"),
    [
        ((), EXIT_CLEAN),
        ((Severity.INFO, Severity.MEDIUM), EXIT_CLEAN),
        ((Severity.LOW, Severity.HIGH), EXIT_FINDINGS),
        ((Severity.CRITICAL,), EXIT_FINDINGS),
    ],
)
def test_exit_code_follows_highest_severity(tmp_path: Path, levels: tuple[Severity, ...], expected: int) -> None:
    assert exit_code_for(_report_with(tmp_path, *levels)) == expected


def test_scan_rejects_missing_path(tmp_path: Path) -> None:
    result = runner.invoke(app, ["scan", str(tmp_path / "missing"), "--no-color"])

    assert result.exit_code == EXIT_INPUT_ERROR
    assert "ProjectNotFound" in result.output


def test_scan_rejects_unknown_tool(tmp_path: Path) -> None:
    result = runner.invoke(app, ["scan", str(tmp_path), "--tool", "nosuchtool", "--no-color"])

    assert result.exit_code == EXIT_INPUT_ERROR


def test_scan_of_empty_project_writes_report(tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()
    output = tmp_path / "report.json"

    result = runner.invoke(app, ["scan", str(project), "--output", str(output), "--no-color"])

    assert result.exit_code == EXIT_CLEAN
    document = json.loads(output.read_text(encoding="utf-8"))
    assert document["detectedLanguages"] == []
    assert document["notes"] == ["no supported languages"]
    assert document["aggregate"]["totalIssues"] == 0


def test_scan_reads_configuration_file(tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()
    config = tmp_path / "polyaudit.toml"
    config.write_text("[go]\nunknown_key = 1\n", encoding="utf-8")

    result = runner.invoke(app, ["scan", str(project), "--config", str(config), "--no-color"])

    assert result.exit_code == EXIT_INPUT_ERROR
    assert "UnknownOption" in result.output


def test_tools_lists_every_adapter(monkeypatch: pytest.MonkeyPatch) -> None:
    unavailable = ProbeResult(available=False, error="ToolUnavailable: not installed")
    monkeypatch.setattr(ToolAdapter, "probe", lambda self: unavailable)

    result = runner.invoke(app, ["tools", "--no-color"])

    assert result.exit_code == EXIT_CLEAN
    for name in ("gosec", "mypy"):
        assert name in result.output
