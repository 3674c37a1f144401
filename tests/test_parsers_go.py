# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the gosec and staticcheck parsers."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from polyaudit.core.severity import UNKNOWN_LABEL_TAG, Category, Confidence, Severity
from polyaudit.errors import ErrorKind, ParsingError
from polyaudit.parsers import JsonLinesParser, JsonParser, ParseContext, parse_gosec, parse_staticcheck
from polyaudit.parsers.go import gosec_baseline_severity


def _gosec_document(*issues: dict[str, object]) -> str:
    return json.dumps({"Golang errors": {}, "Issues": list(issues), "Stats": {"files": 1}})


def test_gosec_hardcoded_credentials(tmp_path: Path) -> None:
    context = ParseContext(tool="gosec", root=tmp_path)
    stdout = _gosec_document(
        {
            "severity": "HIGH",
            "confidence": "LOW",
            "cwe": {"id": "798"},
            "rule_id": "G101",
            "details": "Potential hardcoded credentials",
            "file": str(tmp_path / "internal" / "auth.go"),
            "code": '12: const password = "hunter2"',
            "line": "12",
            "column": "7",
        },
    )

    issues = JsonParser(parse_gosec).parse(stdout, context=context)

    assert len(issues) == 1
    issue = issues[0]
    assert issue.rule == "G101"
    assert issue.line == 12 and issue.end_line == 12 and issue.column == 7
    assert issue.severity is Severity.MEDIUM
    assert issue.confidence is Confidence.LOW
    assert issue.category == Category.SECURITY.value
    assert {"go", "security", "injection", "credentials"} <= set(issue.tags)
    assert issue.refs is not None and issue.refs.cwe == "CWE-798"
    assert "Mitigation:" in (issue.description or "")


def test_gosec_line_ranges_and_relative_files(tmp_path: Path) -> None:
    context = ParseContext(tool="gosec", root=tmp_path)
    stdout = _gosec_document(
        {
            "severity": "MEDIUM",
            "confidence": "HIGH",
            "rule_id": "G401",
            "details": "Use of weak cryptographic primitive",
            "file": "crypto/hash.go",
            "line": "20-22",
            "column": "3",
        },
    )

    (issue,) = JsonParser(parse_gosec).parse(stdout, context=context)

    assert issue.file == str(tmp_path / "crypto" / "hash.go")
    assert (issue.line, issue.end_line) == (20, 22)
    assert "cryptography" in issue.tags


def test_gosec_unknown_severity_label_is_tagged(tmp_path: Path) -> None:
    context = ParseContext(tool="gosec", root=tmp_path)
    stdout = _gosec_document(
        {
            "severity": "SEVERE",
            "confidence": "HIGH",
            "rule_id": "gosec-internal",
            "details": "x",
            "file": "a.go",
            "line": "1",
        },
    )

    (issue,) = JsonParser(parse_gosec).parse(stdout, context=context)

    assert issue.severity is Severity.MEDIUM
    assert not issue.severity_known
    assert issue.rule == "unknown"
    assert UNKNOWN_LABEL_TAG in issue.tags


def test_gosec_malformed_records_are_dropped(tmp_path: Path) -> None:
    context = ParseContext(tool="gosec", root=tmp_path)
    stdout = _gosec_document(
        {"severity": "LOW", "rule_id": "G104", "details": "no file"},
        {"severity": "LOW", "confidence": "HIGH", "rule_id": "G104", "details": "ok", "file": "a.go", "line": "3"},
    )

    issues = JsonParser(parse_gosec).parse(stdout, context=context)

    assert [issue.rule for issue in issues] == ["G104"]
    assert context.dropped == 1


def test_gosec_empty_and_invalid_output(tmp_path: Path) -> None:
    context = ParseContext(tool="gosec", root=tmp_path)

    assert JsonParser(parse_gosec).parse("", context=context) == []
    with pytest.raises(ParsingError) as excinfo:
        JsonParser(parse_gosec).parse("{not json", context=context)
    assert excinfo.value.kind is ErrorKind.UNPARSEABLE_OUTPUT


def test_gosec_baseline_discounts_only_unsure_high() -> None:
    assert gosec_baseline_severity(Severity.HIGH, Confidence.LOW) is Severity.MEDIUM
    assert gosec_baseline_severity(Severity.HIGH, Confidence.HIGH) is Severity.HIGH
    assert gosec_baseline_severity(Severity.LOW, Confidence.LOW) is Severity.LOW


def _staticcheck_line(code: str, message: str = "finding", **extra: object) -> str:
    record: dict[str, object] = {
        "code": code,
        "severity": "error",
        "location": {"file": "/src/app/main.go", "line": 14, "column": 2},
        "end": {"file": "/src/app/main.go", "line": 14, "column": 20},
        "message": message,
    }
    record.update(extra)
    return json.dumps(record)


def test_staticcheck_families_and_overrides(tmp_path: Path) -> None:
    context = ParseContext(tool="staticcheck", root=tmp_path)
    stdout = "\n".join(
        [
            _staticcheck_line("SA5011", "possible nil pointer dereference"),
            _staticcheck_line("SA1019", "strings.Title is deprecated"),
            _staticcheck_line("U1000", "func unused is unused"),
            _staticcheck_line("S1002", "should omit comparison to bool constant"),
            _staticcheck_line("compile", "undefined: foo"),
            _staticcheck_line("SA4006", "ignored value", severity="ignored"),
        ],
    )

    issues = JsonLinesParser(parse_staticcheck).parse(stdout, context=context)

    by_rule = {issue.rule: issue for issue in issues}
    assert list(by_rule) == ["SA5011", "SA1019", "U1000", "S1002", "compile"]
    assert by_rule["SA5011"].severity is Severity.HIGH
    assert by_rule["SA5011"].confidence is Confidence.HIGH
    assert by_rule["SA1019"].category == Category.DEPRECATED.value
    assert by_rule["U1000"].category == Category.UNUSED.value
    assert by_rule["S1002"].severity is Severity.LOW
    assert by_rule["compile"].category == Category.CORRECTNESS.value
    assert by_rule["compile"].refs is None
    assert by_rule["SA5011"].refs is not None
    assert by_rule["SA5011"].refs.advisory_url == "https://staticcheck.io/docs/checks#SA5011"
    assert by_rule["SA5011"].end_column == 20


def test_staticcheck_unknown_code(tmp_path: Path) -> None:
    context = ParseContext(tool="staticcheck", root=tmp_path)

    (issue,) = JsonLinesParser(parse_staticcheck).parse(_staticcheck_line("XX9999"), context=context)

    assert issue.rule == "unknown"
    assert issue.category == Category.OTHER.value
    assert UNKNOWN_LABEL_TAG in issue.tags


def test_staticcheck_bad_lines_are_counted(tmp_path: Path) -> None:
    context = ParseContext(tool="staticcheck", root=tmp_path)
    stdout = "\n".join([_staticcheck_line("SA4006"), "garbage", json.dumps({"code": "SA4006"})])

    issues = JsonLinesParser(parse_staticcheck).parse(stdout, context=context)

    assert len(issues) == 1
    assert context.dropped == 2


def test_staticcheck_all_garbage_is_unparseable(tmp_path: Path) -> None:
    context = ParseContext(tool="staticcheck", root=tmp_path)

    with pytest.raises(ParsingError):
        JsonLinesParser(parse_staticcheck).parse("panic: runtime error\ngoroutine 1", context=context)
