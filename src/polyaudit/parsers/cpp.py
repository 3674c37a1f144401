# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Parsers for C and C++ tooling (Clang Static Analyzer plists, Valgrind XML)."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from pathlib import PurePath
from typing import TYPE_CHECKING, Final

from ..core.models import RawIssue
from ..errors import ErrorKind, ParsingError
from ..core.severity import UNKNOWN_LABEL_TAG, Category, Confidence, Severity, map_severity_label
from .base import JsonValue, ParseContext, coerce_int, coerce_str, collect_records, iter_dicts

if TYPE_CHECKING:
    from xml.etree.ElementTree import Element

UNKNOWN_RULE: Final[str] = "unknown"


def plist_value(element: Element) -> JsonValue:
    """Convert a property-list XML element into plain Python values.

    ``<dict>`` becomes a ``dict``, ``<array>`` a ``list`` and scalar tags their
    Python counterparts. Unknown tags decode to ``None``.
    """

    tag = element.tag
    if tag == "plist":
        children = list(element)
        return plist_value(children[0]) if children else None
    if tag == "dict":
        result: dict[str, JsonValue] = {}
        children = list(element)
        for key, value in zip(children[::2], children[1::2]):
            if key.tag == "key" and key.text is not None:
                result[key.text] = plist_value(value)
        return result
    if tag == "array":
        return [plist_value(child) for child in element]
    if tag == "string":
        return element.text or ""
    if tag == "integer":
        return coerce_int(element.text)
    if tag == "real":
        try:
            return float(element.text or "")
        except ValueError:
            return None
    if tag == "true":
        return True
    if tag == "false":
        return False
    return None


CLANG_LABEL_SEVERITY: Final[dict[str, Severity]] = {
    "security": Severity.HIGH,
    "memory error": Severity.HIGH,
    "dead code": Severity.LOW,
    "logic error": Severity.MEDIUM,
    "api": Severity.MEDIUM,
    "unix api": Severity.MEDIUM,
    "core foundation/objective-c": Severity.MEDIUM,
    "memory (core foundation/objective-c/osobject)": Severity.MEDIUM,
}

CLANG_LABEL_CATEGORY: Final[dict[str, Category]] = {
    "security": Category.SECURITY,
    "memory error": Category.MEMORY_SAFETY,
    "dead code": Category.DEAD_CODE,
    "logic error": Category.CORRECTNESS,
    "api": Category.CORRECTNESS,
    "unix api": Category.CORRECTNESS,
}

# Checker-name prefixes, most specific first. These win over the bug label.
CLANG_CHECKER_CATEGORY: Final[tuple[tuple[str, Category], ...]] = (
    ("core.NullDereference", Category.MEMORY_SAFETY),
    ("core.NonNullParamChecker", Category.MEMORY_SAFETY),
    ("core.StackAddressEscape", Category.MEMORY_SAFETY),
    ("core.uninitialized.", Category.MEMORY_SAFETY),
    ("core.CallAndMessage", Category.MEMORY_SAFETY),
    ("core.DivideZero", Category.CORRECTNESS),
    ("unix.Malloc", Category.MEMORY_SAFETY),
    ("unix.MismatchedDeallocator", Category.MEMORY_SAFETY),
    ("cplusplus.NewDelete", Category.MEMORY_SAFETY),
    ("alpha.security.ArrayBound", Category.MEMORY_SAFETY),
    ("alpha.unix.cstring.OutOfBounds", Category.MEMORY_SAFETY),
    ("security.", Category.SECURITY),
    ("alpha.security.", Category.SECURITY),
    ("deadcode.", Category.DEAD_CODE),
    ("alpha.deadcode.", Category.DEAD_CODE),
)

CLANG_CHECKER_PATTERNS: Final[tuple[tuple[str, str], ...]] = (
    ("NullDereference", "null_deref"),
    ("NonNullParamChecker", "null_deref"),
    ("unix.Malloc", "memory_leak"),
    ("NewDelete", "memory_leak"),
    ("deadcode.", "dead_code"),
    ("security.insecureAPI", "weak_crypto"),
    ("security.", "security_vulnerability"),
    ("taint", "injection"),
)


def clang_category(check_name: str | None, label: str) -> Category:
    """Return the unified category for a Clang diagnostic."""

    if check_name:
        for prefix, category in CLANG_CHECKER_CATEGORY:
            if check_name.startswith(prefix):
                return category
    return CLANG_LABEL_CATEGORY.get(label.strip().lower(), Category.OTHER)


def _clang_file(location: Mapping[str, JsonValue], files: Sequence[JsonValue]) -> str:
    reference = location.get("file")
    if isinstance(reference, int) and not isinstance(reference, bool):
        if 0 <= reference < len(files) and isinstance(files[reference], str):
            return files[reference]
        raise ValueError(f"file index {reference} outside the plist file table")
    path = coerce_str(reference)
    if path is None:
        raise ValueError("diagnostic location without a file")
    return path


def _clang_span(diagnostic: Mapping[str, JsonValue], line: int | None) -> tuple[int | None, int | None]:
    # Path pieces carry [start, end] source ranges; use the one opening on the reported line.
    for piece in iter_dicts(diagnostic.get("path")):
        for span in piece.get("ranges") or []:
            if not (isinstance(span, list) and len(span) == 2):
                continue
            start, end = span
            if isinstance(start, Mapping) and isinstance(end, Mapping) and coerce_int(start.get("line")) == line:
                return coerce_int(end.get("line")), coerce_int(end.get("col"))
    return None, None


def parse_clang_plist(root: Element, context: ParseContext) -> Sequence[RawIssue]:
    """Parse one ``plist-multi-file`` report written by ``clang --analyze``.

    Diagnostics missing a resolvable file are dropped and counted; other
    missing fields fall back to neutral defaults.
    """

    try:
        document = plist_value(root)
    except RecursionError as exc:
        raise ParsingError(ErrorKind.UNPARSEABLE_OUTPUT, "plist nested too deeply") from exc
    if not isinstance(document, Mapping):
        return []
    files = document.get("files") if isinstance(document.get("files"), list) else []

    def build(diagnostic: Mapping[str, JsonValue], ctx: ParseContext) -> RawIssue:
        location = diagnostic.get("location")
        if not isinstance(location, Mapping):
            raise ValueError("diagnostic without a location")
        path = _clang_file(location, files)
        label = coerce_str(diagnostic.get("category")) or ""
        check_name = coerce_str(diagnostic.get("check_name"))
        severity, known = map_severity_label(label, CLANG_LABEL_SEVERITY)
        category = clang_category(check_name, label)
        description = coerce_str(diagnostic.get("description")) or "Clang static analyzer finding"
        bug_type = coerce_str(diagnostic.get("type"))
        tags = ["c-cpp", "clang", label.lower().replace(" ", "-") or "uncategorised"]
        if not known:
            tags.append(UNKNOWN_LABEL_TAG)
        hints = [pattern for needle, pattern in CLANG_CHECKER_PATTERNS if check_name and needle in check_name]
        line = coerce_int(location.get("line"))
        end_line, end_column = _clang_span(diagnostic, line)
        return RawIssue(
            file=ctx.resolve(path),
            line=line,
            column=coerce_int(location.get("col")),
            end_line=end_line,
            end_column=end_column,
            severity=severity,
            severity_known=known,
            category=category.value,
            rule=check_name or UNKNOWN_RULE,
            title=bug_type or description,
            description=description,
            confidence=Confidence.MEDIUM,
            tags=tags,
            pattern_hints=list(dict.fromkeys(hints)),
        )

    return collect_records(iter_dicts(document.get("diagnostics")), build, context)


VALGRIND_KINDS: Final[dict[str, tuple[str, Severity]]] = {
    "InvalidRead": ("invalid-read", Severity.HIGH),
    "InvalidWrite": ("invalid-write", Severity.HIGH),
    "InvalidFree": ("invalid-free", Severity.HIGH),
    "InvalidJump": ("invalid-jump", Severity.HIGH),
    "MismatchedFree": ("mismatched-free", Severity.MEDIUM),
    "Overlap": ("overlapping-copy", Severity.MEDIUM),
    "SyscallParam": ("syscall-param", Severity.MEDIUM),
    "UninitCondition": ("uninitialized-value", Severity.MEDIUM),
    "UninitValue": ("uninitialized-value", Severity.MEDIUM),
    "InvalidMemPool": ("invalid-mempool", Severity.MEDIUM),
    "FishyValue": ("fishy-value", Severity.MEDIUM),
    "ClientCheck": ("client-check", Severity.LOW),
    "Leak_DefinitelyLost": ("memory-leak", Severity.HIGH),
    "Leak_IndirectlyLost": ("indirect-leak", Severity.MEDIUM),
    "Leak_PossiblyLost": ("possible-leak", Severity.MEDIUM),
    "Leak_StillReachable": ("reachable-leak", Severity.LOW),
}


def _frame_path(frame: Element) -> str | None:
    file_name = frame.findtext("file")
    if not file_name:
        return None
    directory = frame.findtext("dir")
    return str(PurePath(directory) / file_name) if directory else file_name


def _primary_frame(error: Element, context: ParseContext) -> tuple[str, int | None, str | None]:
    candidates: list[tuple[str, int | None, str | None]] = []
    for frame in error.iterfind("stack/frame"):
        path = _frame_path(frame)
        if path is None:
            continue
        candidates.append((context.resolve(path), coerce_int(frame.findtext("line")), frame.findtext("fn")))
    if not candidates:
        raise ValueError("valgrind error without a source frame")
    for candidate in candidates:
        if PurePath(candidate[0]).is_relative_to(context.root):
            return candidate
    return candidates[0]


def _valgrind_record(error: Element, context: ParseContext) -> RawIssue:
    kind = (error.findtext("kind") or "").strip()
    if not kind:
        raise ValueError("valgrind error without a kind")
    subcategory, severity = VALGRIND_KINDS.get(kind, (UNKNOWN_RULE, Severity.MEDIUM))
    known = kind in VALGRIND_KINDS
    what = error.findtext("what") or error.findtext("xwhat/text") or kind
    path, line, function = _primary_frame(error, context)
    lines = [what.strip()]
    leaked = coerce_int(error.findtext("xwhat/leakedbytes"))
    if leaked is not None:
        lines.append(f"Leaked bytes: {leaked}")
    if function:
        lines.append(f"In function: {function}")
    tags = ["c-cpp", "valgrind", "memcheck", kind]
    if not known:
        tags.append(UNKNOWN_LABEL_TAG)
    return RawIssue(
        file=path,
        line=line,
        severity=severity,
        severity_known=known,
        category=Category.MEMORY_SAFETY.value,
        rule=subcategory,
        title=what.strip(),
        description="\n".join(lines),
        confidence=Confidence.HIGH,
        tags=tags,
        pattern_hints=["memory_leak"] if kind.startswith("Leak_") else [],
    )


def parse_valgrind_xml(root: Element, context: ParseContext) -> Sequence[RawIssue]:
    """Parse a memcheck ``--xml=yes`` document into raw issues."""

    return collect_records(root.iterfind("error"), _valgrind_record, context)


__all__ = [
    "CLANG_CHECKER_CATEGORY",
    "CLANG_LABEL_SEVERITY",
    "VALGRIND_KINDS",
    "clang_category",
    "parse_clang_plist",
    "parse_valgrind_xml",
    "plist_value",
]
