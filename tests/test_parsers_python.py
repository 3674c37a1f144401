# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the pylint and mypy parsers."""

from __future__ import annotations

import json
from pathlib import Path

from polyaudit.core.severity import UNKNOWN_LABEL_TAG, Category, Confidence, Severity
from polyaudit.parsers import JsonParser, ParseContext, TextParser, parse_mypy, parse_pylint


def _pylint_message(**overrides: object) -> dict[str, object]:
    message: dict[str, object] = {
        "type": "warning",
        "module": "app.views",
        "obj": "render",
        "line": 14,
        "column": 4,
        "endLine": 14,
        "endColumn": 12,
        "path": "app/views.py",
        "symbol": "unused-variable",
        "message": "Unused variable 'tmp'",
        "message-id": "W0612",
        "confidence": "HIGH",
    }
    message.update(overrides)
    return message


def test_pylint_messages(tmp_path: Path) -> None:
    context = ParseContext(tool="pylint", root=tmp_path)
    stdout = json.dumps(
        [
            _pylint_message(),
            _pylint_message(type="error", symbol="undefined-variable", **{"message-id": "E0602"}),
            _pylint_message(type="warning", symbol="eval-used", **{"message-id": "W0123"}),
            _pylint_message(type="convention", symbol="missing-function-docstring", **{"message-id": "C0116"}),
        ],
    )

    issues = JsonParser(parse_pylint).parse(stdout, context=context)

    unused, undefined, eval_used, docstring = issues
    assert unused.rule == "W0612"
    assert unused.category == Category.UNUSED.value
    assert unused.severity is Severity.MEDIUM
    assert unused.confidence is Confidence.HIGH
    assert (unused.column, unused.end_column) == (5, 13)
    assert unused.title == "unused-variable: Unused variable 'tmp'"
    assert unused.file == str(tmp_path / "app" / "views.py")
    assert undefined.severity is Severity.HIGH
    assert undefined.category == Category.CORRECTNESS.value
    assert eval_used.category == Category.SECURITY.value
    assert docstring.category == Category.STYLE.value
    assert docstring.severity is Severity.LOW


def test_pylint_unknown_type_and_missing_path(tmp_path: Path) -> None:
    context = ParseContext(tool="pylint", root=tmp_path)
    stdout = json.dumps(
        [
            _pylint_message(type="mystery", **{"message-id": "bogus"}),
            {"type": "error", "message": "no path here"},
        ],
    )

    (issue,) = JsonParser(parse_pylint).parse(stdout, context=context)

    assert issue.rule == "unknown"
    assert not issue.severity_known
    assert UNKNOWN_LABEL_TAG in issue.tags
    assert context.dropped == 1


def test_pylint_json2_envelope(tmp_path: Path) -> None:
    context = ParseContext(tool="pylint", root=tmp_path)
    stdout = json.dumps({"messages": [_pylint_message()], "statistics": {}})

    assert len(JsonParser(parse_pylint).parse(stdout, context=context)) == 1


def test_mypy_lines(tmp_path: Path) -> None:
    context = ParseContext(tool="mypy", root=tmp_path)
    stdout = "\n".join(
        [
            'pkg/core.py:10:5: error: Name "undefined_thing" is not defined  [name-defined]',
            "pkg/core.py:10:5: note: See https://mypy.rtfd.io/en/stable/_refs.html#code-name-defined",
            'pkg/util.py:3: error: Incompatible return value type (got "int", expected "str")  [return-value]',
            "pkg/util.py:9:1: error: Statement is unreachable  [unreachable]",
            "pkg/util.py:12:1: warning: Unused 'type: ignore' comment",
            "Found 3 errors in 2 files (checked 4 source files)",
        ],
    )

    issues = TextParser(parse_mypy).parse(stdout, context=context)

    assert [issue.rule for issue in issues] == ["name-defined", "return-value", "unreachable", "unknown"]
    name_defined, return_value, unreachable, warning = issues
    assert name_defined.category == Category.CORRECTNESS.value
    assert name_defined.severity is Severity.MEDIUM
    assert name_defined.title == 'Name "undefined_thing" is not defined'
    assert (name_defined.line, name_defined.column) == (10, 5)
    assert return_value.category == Category.TYPE.value
    assert return_value.column is None
    assert unreachable.category == Category.DEAD_CODE.value
    assert warning.severity is Severity.LOW
    assert name_defined.file == str(tmp_path / "pkg" / "core.py")


def test_mypy_clean_output(tmp_path: Path) -> None:
    context = ParseContext(tool="mypy", root=tmp_path)

    assert TextParser(parse_mypy).parse("Success: no issues found in 3 source files\n", context=context) == []
