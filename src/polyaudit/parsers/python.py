# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Parsers for Python-related tooling output (pylint JSON, mypy text)."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Final

from ..core.models import RawIssue
from ..core.severity import UNKNOWN_LABEL_TAG, Category, Confidence, Severity, map_severity_label
from .base import JsonValue, ParseContext, coerce_int, coerce_str, collect_records, iter_dicts

UNKNOWN_RULE: Final[str] = "unknown"

PYLINT_TYPE_SEVERITY: Final[dict[str, Severity]] = {
    "fatal": Severity.HIGH,
    "error": Severity.HIGH,
    "warning": Severity.MEDIUM,
    "refactor": Severity.LOW,
    "convention": Severity.LOW,
    "info": Severity.INFO,
}

PYLINT_TYPE_CATEGORY: Final[dict[str, Category]] = {
    "fatal": Category.CORRECTNESS,
    "error": Category.CORRECTNESS,
    "warning": Category.SUSPICIOUS,
    "refactor": Category.COMPLEXITY,
    "convention": Category.STYLE,
    "info": Category.OTHER,
}

PYLINT_CONFIDENCE: Final[dict[str, Confidence]] = {
    "HIGH": Confidence.HIGH,
    "CONTROL_FLOW": Confidence.HIGH,
    "INFERENCE": Confidence.MEDIUM,
    "INFERENCE_FAILURE": Confidence.LOW,
}

_PYLINT_ID: Final[re.Pattern[str]] = re.compile(r"^[CRWEFI]\d{4}$")

# Symbol prefixes that move a pylint message into a more specific category.
_PYLINT_SYMBOL_CATEGORIES: Final[tuple[tuple[str, Category], ...]] = (
    ("unused-", Category.UNUSED),
    ("deprecated-", Category.DEPRECATED),
    ("unreachable", Category.DEAD_CODE),
    ("too-many-", Category.COMPLEXITY),
    ("eval-used", Category.SECURITY),
    ("exec-used", Category.SECURITY),
)


def _pylint_category(kind: str, symbol: str) -> Category:
    for prefix, category in _PYLINT_SYMBOL_CATEGORIES:
        if symbol.startswith(prefix):
            return category
    return PYLINT_TYPE_CATEGORY.get(kind, Category.OTHER)


def _pylint_record(item: Mapping[str, JsonValue], context: ParseContext) -> RawIssue:
    path = coerce_str(item.get("path")) or coerce_str(item.get("filename"))
    if path is None:
        raise ValueError("pylint message without a path")
    kind = str(item.get("type", "warning")).lower()
    severity, known = map_severity_label(kind, PYLINT_TYPE_SEVERITY)
    message_id = coerce_str(item.get("message-id")) or coerce_str(item.get("messageId"))
    rule = message_id if message_id and _PYLINT_ID.match(message_id) else UNKNOWN_RULE
    symbol = coerce_str(item.get("symbol")) or ""
    message = coerce_str(item.get("message")) or symbol or "pylint message"
    confidence = PYLINT_CONFIDENCE.get(str(item.get("confidence", "")).upper())
    tags = ["python", "pylint", kind]
    if symbol:
        tags.append(symbol)
    if not known:
        tags.append(UNKNOWN_LABEL_TAG)
    column = coerce_int(item.get("column"))
    end_column = coerce_int(item.get("endColumn"))
    return RawIssue(
        file=context.resolve(path),
        line=coerce_int(item.get("line")),
        # pylint reports 0-based columns
        column=column + 1 if column is not None else None,
        end_line=coerce_int(item.get("endLine")),
        end_column=end_column + 1 if end_column is not None else None,
        severity=severity,
        severity_known=known,
        category=_pylint_category(kind, symbol).value,
        rule=rule,
        title=f"{symbol}: {message}" if symbol else message,
        description=message,
        confidence=confidence,
        tags=tags,
    )


def parse_pylint(payload: JsonValue, context: ParseContext) -> Sequence[RawIssue]:
    """Parse pylint ``--output-format=json`` output into raw issues.

    Args:
        payload: Decoded JSON array (or ``{"messages": [...]}`` from ``json2``).
        context: Parse context used for path resolution and drop counting.

    Returns:
        Sequence[RawIssue]: One issue per pylint message.
    """

    source = payload.get("messages") if isinstance(payload, Mapping) else payload
    return collect_records(iter_dicts(source), _pylint_record, context)


MYPY_LINE: Final[re.Pattern[str]] = re.compile(
    r"^(?P<path>[^:\n]+?):(?P<line>\d+):(?:(?P<column>\d+):)?(?:(?P<end_line>\d+):(?P<end_column>\d+):)?"
    r"\s*(?P<severity>error|warning|note):\s*(?P<message>.+?)(?:\s+\[(?P<code>[a-z0-9\-]+)\])?\s*$",
)

MYPY_SEVERITY: Final[dict[str, Severity]] = {
    "error": Severity.MEDIUM,
    "warning": Severity.LOW,
}

MYPY_CODE_CATEGORIES: Final[dict[str, Category]] = {
    "unreachable": Category.DEAD_CODE,
    "unused-ignore": Category.UNUSED,
    "unused-coroutine": Category.UNUSED,
    "unused-awaitable": Category.UNUSED,
    "redundant-cast": Category.UNUSED,
    "deprecated": Category.DEPRECATED,
    "name-defined": Category.CORRECTNESS,
    "attr-defined": Category.CORRECTNESS,
    "call-arg": Category.CORRECTNESS,
    "possibly-undefined": Category.CORRECTNESS,
}


def parse_mypy(lines: Sequence[str], context: ParseContext) -> Sequence[RawIssue]:
    """Parse mypy text output of the form ``path:line[:col]: severity: message [code]``.

    Notes are continuation hints for the preceding error and are skipped.
    Lines that do not match the pattern (summaries, blank lines) are ignored.
    """

    results: list[RawIssue] = []
    for line in lines:
        match = MYPY_LINE.match(line.strip())
        if match is None or match.group("severity") == "note":
            continue
        label = match.group("severity")
        code = match.group("code") or UNKNOWN_RULE
        category = MYPY_CODE_CATEGORIES.get(code, Category.TYPE)
        message = match.group("message").strip()
        column = match.group("column")
        results.append(
            RawIssue(
                file=context.resolve(match.group("path").strip()),
                line=int(match.group("line")),
                column=int(column) if column else None,
                end_line=coerce_int(match.group("end_line")),
                end_column=coerce_int(match.group("end_column")),
                severity=MYPY_SEVERITY[label],
                category=category.value,
                rule=code,
                title=message,
                description=message,
                tags=["python", "mypy", "typing"],
            ),
        )
    return results


__all__ = [
    "MYPY_LINE",
    "MYPY_SEVERITY",
    "PYLINT_TYPE_SEVERITY",
    "UNKNOWN_RULE",
    "parse_mypy",
    "parse_pylint",
]
