# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the clippy and cargo-audit parsers."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from polyaudit.core.severity import UNKNOWN_LABEL_TAG, Category, Confidence, Severity
from polyaudit.parsers import JsonLinesParser, JsonParser, ParseContext, cvss3_base_score, parse_cargo_audit, parse_clippy
from polyaudit.parsers.rust import classify_clippy_lint, clippy_group_from_notes, clippy_severity, severity_from_cvss


def _compiler_message(code: str | None, level: str = "warning", **span_overrides: object) -> str:
    span: dict[str, object] = {
        "file_name": "src/lib.rs",
        "line_start": 10,
        "line_end": 10,
        "column_start": 5,
        "column_end": 17,
        "is_primary": True,
    }
    span.update(span_overrides)
    message = {
        "message": f"lint {code}",
        "code": {"code": code} if code else None,
        "level": level,
        "spans": [span],
        "children": [],
        "rendered": f"{level}: lint {code}\n",
    }
    return json.dumps({"reason": "compiler-message", "message": message})


def test_clippy_correctness_lint(tmp_path: Path) -> None:
    context = ParseContext(tool="clippy", root=tmp_path)

    (issue,) = JsonLinesParser(parse_clippy).parse(_compiler_message("clippy::eq_op", "error"), context=context)

    assert issue.rule == "clippy::eq_op"
    assert issue.category == Category.CORRECTNESS.value
    assert issue.severity is Severity.HIGH
    assert issue.confidence is Confidence.HIGH
    assert issue.file == str(tmp_path / "src" / "lib.rs")
    assert (issue.line, issue.column, issue.end_column) == (10, 5, 17)
    assert issue.refs is not None
    assert issue.refs.advisory_url is not None and issue.refs.advisory_url.endswith("#eq_op")


def test_clippy_skips_non_diagnostics(tmp_path: Path) -> None:
    context = ParseContext(tool="clippy", root=tmp_path)
    stdout = "\n".join(
        [
            json.dumps({"reason": "compiler-artifact", "target": {"name": "demo"}}),
            _compiler_message(None, "warning"),
            _compiler_message("clippy::needless_return", "note"),
            json.dumps({"reason": "build-finished", "success": True}),
            _compiler_message("clippy::needless_return", "warning"),
        ],
    )

    issues = JsonLinesParser(parse_clippy).parse(stdout, context=context)

    assert [issue.rule for issue in issues] == ["clippy::needless_return"]
    assert issues[0].category == Category.STYLE.value
    assert issues[0].severity is Severity.LOW
    assert context.dropped == 0


def test_rustc_codes(tmp_path: Path) -> None:
    context = ParseContext(tool="clippy", root=tmp_path)
    stdout = "\n".join(
        [
            _compiler_message("dead_code"),
            _compiler_message("unused_variables"),
            _compiler_message("E0308", "error"),
        ],
    )

    issues = JsonLinesParser(parse_clippy).parse(stdout, context=context)

    assert [(issue.rule, issue.category) for issue in issues] == [
        ("rustc::dead_code", Category.DEAD_CODE.value),
        ("rustc::unused_variables", Category.UNUSED.value),
        ("rustc::E0308", Category.CORRECTNESS.value),
    ]
    assert issues[2].severity is Severity.HIGH


def test_clippy_panic_lints_carry_pattern_hint(tmp_path: Path) -> None:
    context = ParseContext(tool="clippy", root=tmp_path)

    (issue,) = JsonLinesParser(parse_clippy).parse(_compiler_message("clippy::unwrap_used"), context=context)

    assert issue.pattern_hints == ["potential_panic"]


def test_clippy_fix_suggestion(tmp_path: Path) -> None:
    context = ParseContext(tool="clippy", root=tmp_path)
    stdout = _compiler_message(
        "clippy::len_zero",
        suggested_replacement="v.is_empty()",
        suggestion_applicability="MachineApplicable",
    )

    (issue,) = JsonLinesParser(parse_clippy).parse(stdout, context=context)

    assert issue.fix is not None
    assert issue.fix.replacement == "v.is_empty()"
    assert issue.fix.start_line == 10
    assert issue.fix.description == "MachineApplicable"


def test_clippy_span_without_file_is_dropped(tmp_path: Path) -> None:
    context = ParseContext(tool="clippy", root=tmp_path)
    stdout = "\n".join([_compiler_message("clippy::eq_op", file_name=None), _compiler_message("clippy::eq_op")])

    issues = JsonLinesParser(parse_clippy).parse(stdout, context=context)

    assert len(issues) == 1
    assert context.dropped == 1


def test_clippy_classification_helpers() -> None:
    assert classify_clippy_lint("redundant_clone", "warning") is Category.PERFORMANCE
    assert classify_clippy_lint("some_new_lint", "error") is Category.CORRECTNESS
    assert classify_clippy_lint("some_new_lint", "warning") is Category.STYLE
    assert clippy_severity(Category.PERFORMANCE, "warning") is Severity.MEDIUM
    assert clippy_severity(Category.COMPLEXITY, "warning") is Severity.MEDIUM


@pytest.mark.parametrize(
    ("note", "category"),
    [
        ("`#[warn(clippy::style)]` on by default", Category.STYLE),
        ("`#[deny(clippy::perf)]` implied by `#[deny(clippy::all)]`", Category.PERFORMANCE),
        ("`-D clippy::suspicious` implied by `-D warnings`", Category.SUSPICIOUS),
    ],
)
def test_unlisted_clippy_lint_uses_group_from_notes(tmp_path: Path, note: str, category: Category) -> None:
    context = ParseContext(tool="clippy", root=tmp_path)
    record = json.loads(_compiler_message("clippy::brand_new_lint", "error"))
    record["message"]["children"] = [
        {"message": "for further information visit the clippy lint list", "level": "help", "spans": []},
        {"message": note, "level": "note", "spans": []},
    ]

    (issue,) = JsonLinesParser(parse_clippy).parse(json.dumps(record), context=context)

    assert issue.category == category.value
    assert issue.severity is clippy_severity(category, "error")


def test_lint_names_are_not_mistaken_for_groups() -> None:
    message = {"children": [{"message": "`-D clippy::style-guide-thing` implied by `-D warnings`"}]}

    assert clippy_group_from_notes(message) is None
    assert classify_clippy_lint("brand_new_lint", "error", "style") is Category.STYLE


def _audit_document(*vulnerabilities: dict[str, object]) -> str:
    return json.dumps(
        {
            "database": {"advisory-count": 600},
            "lockfile": {"dependency-count": 42},
            "vulnerabilities": {
                "found": bool(vulnerabilities),
                "count": len(vulnerabilities),
                "list": list(vulnerabilities),
            },
            "warnings": {},
        },
    )


def test_cargo_audit_vulnerability(tmp_path: Path) -> None:
    context = ParseContext(tool="cargo-audit", root=tmp_path)
    stdout = _audit_document(
        {
            "advisory": {
                "id": "RUSTSEC-2021-0078",
                "package": "hyper",
                "title": "Lenient hyper header parsing of Content-Length",
                "description": "hyper's HTTP/1 server code had a flaw.",
                "aliases": ["CVE-2021-32715"],
                "cvss": "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:H/A:H",
                "categories": ["memory-corruption"],
            },
            "versions": {"patched": [">=0.14.10"], "unaffected": []},
            "package": {"name": "hyper", "version": "0.14.5"},
        },
    )

    (issue,) = JsonParser(parse_cargo_audit).parse(stdout, context=context)

    assert issue.rule == "RUSTSEC-2021-0078"
    assert issue.file == str(tmp_path / "Cargo.lock")
    assert issue.line == 1
    assert issue.category == Category.VULNERABILITY.value
    assert issue.severity is Severity.CRITICAL
    assert issue.confidence is Confidence.HIGH
    assert "memory-corruption" in issue.tags
    assert "Patched versions: >=0.14.10" in (issue.description or "")
    assert issue.refs is not None
    assert issue.refs.advisory_url == "https://rustsec.org/advisories/RUSTSEC-2021-0078.html"
    assert issue.pattern_hints == ["vulnerable_dependency"]


def test_cargo_audit_without_severity_is_unmapped(tmp_path: Path) -> None:
    context = ParseContext(tool="cargo-audit", root=tmp_path)
    stdout = _audit_document(
        {"advisory": {"id": "RUSTSEC-2020-0001", "title": "x"}, "package": {"name": "crate", "version": "1.0.0"}},
        {"package": {"name": "broken"}},
    )

    (issue,) = JsonParser(parse_cargo_audit).parse(stdout, context=context)

    assert issue.severity is Severity.MEDIUM
    assert not issue.severity_known
    assert UNKNOWN_LABEL_TAG in issue.tags
    assert context.dropped == 1


def test_cargo_audit_clean_report(tmp_path: Path) -> None:
    context = ParseContext(tool="cargo-audit", root=tmp_path)

    assert JsonParser(parse_cargo_audit).parse(_audit_document(), context=context) == []


@pytest.mark.parametrize(
    ("vector", "score"),
    [
        ("CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:H/I:H/A:H", 9.8),
        ("CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:U/C:N/I:N/A:N", 0.0),
        ("CVSS:3.1/AV:N/AC:L", None),
    ],
)
def test_cvss3_base_score(vector: str, score: float | None) -> None:
    assert cvss3_base_score(vector) == score


def test_severity_from_cvss() -> None:
    assert severity_from_cvss(9.8) is Severity.CRITICAL
    assert severity_from_cvss(7.5) is Severity.HIGH
    assert severity_from_cvss(5.3) is Severity.MEDIUM
    assert severity_from_cvss(2.0) is Severity.LOW
    assert severity_from_cvss(0.0) is Severity.INFO
