# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Parsers and mapping tables for Rust tooling (clippy, cargo-audit)."""

from __future__ import annotations

import math
import re
from collections.abc import Iterator, Mapping, Sequence
from typing import Final

from ..core.models import ExternalRefs, FixSuggestion, RawIssue
from ..core.severity import UNKNOWN_LABEL_TAG, Category, Confidence, Severity, map_severity_label
from .base import JsonValue, ParseContext, coerce_int, coerce_str, collect_records, dig, iter_dicts

UNKNOWN_RULE: Final[str] = "unknown"

CLIPPY_LINT: Final[re.Pattern[str]] = re.compile(r"^clippy::(?P<lint>[a-z0-9_]+)$")
_RUSTC_CODE: Final[re.Pattern[str]] = re.compile(r"^(E\d{4}|[a-z][a-z0-9_]*)$")
_REPORTED_LEVELS: Final[frozenset[str]] = frozenset({"warning", "error"})

# Lint group membership for commonly reported clippy lints.
CLIPPY_LINT_GROUPS: Final[dict[str, Category]] = {
    "absurd_extreme_comparisons": Category.CORRECTNESS,
    "approx_constant": Category.CORRECTNESS,
    "eq_op": Category.CORRECTNESS,
    "erasing_op": Category.CORRECTNESS,
    "if_let_mutex": Category.CORRECTNESS,
    "infinite_iter": Category.CORRECTNESS,
    "iter_next_loop": Category.CORRECTNESS,
    "let_underscore_lock": Category.CORRECTNESS,
    "mem_replace_with_uninit": Category.CORRECTNESS,
    "never_loop": Category.CORRECTNESS,
    "nonsensical_open_options": Category.CORRECTNESS,
    "not_unsafe_ptr_arg_deref": Category.CORRECTNESS,
    "out_of_bounds_indexing": Category.CORRECTNESS,
    "panicking_unwrap": Category.CORRECTNESS,
    "read_zero_byte_vec": Category.CORRECTNESS,
    "self_assignment": Category.CORRECTNESS,
    "uninit_assumed_init": Category.CORRECTNESS,
    "uninit_vec": Category.CORRECTNESS,
    "unit_cmp": Category.CORRECTNESS,
    "unused_io_amount": Category.CORRECTNESS,
    "while_immutable_condition": Category.CORRECTNESS,
    "box_collection": Category.PERFORMANCE,
    "expect_fun_call": Category.PERFORMANCE,
    "extend_with_drain": Category.PERFORMANCE,
    "iter_nth": Category.PERFORMANCE,
    "large_enum_variant": Category.PERFORMANCE,
    "manual_memcpy": Category.PERFORMANCE,
    "needless_collect": Category.PERFORMANCE,
    "or_fun_call": Category.PERFORMANCE,
    "redundant_clone": Category.PERFORMANCE,
    "single_char_pattern": Category.PERFORMANCE,
    "slow_vector_initialization": Category.PERFORMANCE,
    "useless_vec": Category.PERFORMANCE,
    "vec_init_then_push": Category.PERFORMANCE,
    "bool_comparison": Category.COMPLEXITY,
    "cognitive_complexity": Category.COMPLEXITY,
    "needless_bool": Category.COMPLEXITY,
    "nonminimal_bool": Category.COMPLEXITY,
    "too_many_arguments": Category.COMPLEXITY,
    "type_complexity": Category.COMPLEXITY,
    "unnecessary_cast": Category.COMPLEXITY,
    "useless_conversion": Category.COMPLEXITY,
    "almost_swapped": Category.SUSPICIOUS,
    "empty_loop": Category.SUSPICIOUS,
    "float_equality_without_abs": Category.SUSPICIOUS,
    "misrefactored_assign_op": Category.SUSPICIOUS,
    "suspicious_arithmetic_impl": Category.SUSPICIOUS,
    "suspicious_else_formatting": Category.SUSPICIOUS,
    "collapsible_if": Category.STYLE,
    "len_zero": Category.STYLE,
    "let_and_return": Category.STYLE,
    "needless_return": Category.STYLE,
    "new_without_default": Category.STYLE,
    "question_mark": Category.STYLE,
    "redundant_field_names": Category.STYLE,
    "single_match": Category.STYLE,
    "wrong_self_convention": Category.STYLE,
}

# Keyword fallbacks for lints missing from the group table, checked in order.
_CLIPPY_KEYWORDS: Final[tuple[tuple[tuple[str, ...], Category], ...]] = (
    (("correctness", "logic", "panic", "unreachable", "wrong"), Category.CORRECTNESS),
    (("performance", "slow", "allocation", "clone"), Category.PERFORMANCE),
    (("style", "naming", "format", "convention"), Category.STYLE),
    (("complexity", "cognitive", "cyclomatic", "too_many"), Category.COMPLEXITY),
    (("suspicious", "unusual", "weird", "redundant"), Category.SUSPICIOUS),
    (("deprecated",), Category.DEPRECATED),
)

CLIPPY_GROUPS: Final[dict[str, Category]] = {
    "correctness": Category.CORRECTNESS,
    "suspicious": Category.SUSPICIOUS,
    "style": Category.STYLE,
    "complexity": Category.COMPLEXITY,
    "perf": Category.PERFORMANCE,
    "pedantic": Category.STYLE,
    "nursery": Category.STYLE,
    "cargo": Category.OTHER,
    "restriction": Category.STYLE,
}

# Matches "`#[warn(clippy::style)]` on by default" and "`-D clippy::perf` implied by ..." notes.
_CLIPPY_GROUP_NOTE: Final[re.Pattern[str]] = re.compile(
    r"(?:#\[(?:warn|deny|forbid)\(|-[WDF] ?)clippy::(?P<group>" + "|".join(CLIPPY_GROUPS) + r")(?![\w-])",
)

CLIPPY_PANIC_LINTS: Final[frozenset[str]] = frozenset(
    {"unwrap_used", "expect_used", "panic", "indexing_slicing", "todo", "unimplemented", "unreachable", "panicking_unwrap"},
)

CLIPPY_DOCS_URL: Final[str] = "https://rust-lang.github.io/rust-clippy/master/index.html#{lint}"


def clippy_group_from_notes(message: Mapping[str, JsonValue]) -> str | None:
    """Return the lint group named by a diagnostic's child notes, if any."""

    for child in iter_dicts(message.get("children")):
        text = coerce_str(child.get("message"))
        if text is None:
            continue
        match = _CLIPPY_GROUP_NOTE.search(text)
        if match is not None:
            return match.group("group")
    return None


def classify_clippy_lint(lint: str, level: str, group: str | None = None) -> Category:
    """Return the unified category for a clippy lint.

    The group table wins, then the lint group rustc names in the diagnostic
    notes. Deny-by-default clippy lints are the correctness group, so an
    ``error`` level lint with no other clue is treated as correctness.
    """

    if lint in CLIPPY_LINT_GROUPS:
        return CLIPPY_LINT_GROUPS[lint]
    if group in CLIPPY_GROUPS:
        return CLIPPY_GROUPS[group]
    for keywords, category in _CLIPPY_KEYWORDS:
        if any(keyword in lint for keyword in keywords):
            return category
    if level == "error":
        return Category.CORRECTNESS
    return Category.STYLE


def clippy_severity(category: Category, level: str) -> Severity:
    """Return the severity for a clippy finding of ``category`` at ``level``."""

    if category is Category.CORRECTNESS:
        return Severity.HIGH
    if category is Category.PERFORMANCE:
        return Severity.HIGH if level == "error" else Severity.MEDIUM
    if category is Category.COMPLEXITY:
        return Severity.MEDIUM
    return Severity.MEDIUM if level == "error" else Severity.LOW


def _rustc_classification(code: str, level: str) -> tuple[Category, Severity]:
    if code == "dead_code":
        return Category.DEAD_CODE, Severity.LOW
    if code.startswith("unused"):
        return Category.UNUSED, Severity.LOW
    if code.startswith("deprecated"):
        return Category.DEPRECATED, Severity.LOW
    if code.startswith("E") or level == "error":
        return Category.CORRECTNESS, Severity.HIGH
    return Category.SUSPICIOUS, Severity.LOW


def _primary_span(message: Mapping[str, JsonValue]) -> Mapping[str, JsonValue] | None:
    spans = [span for span in iter_dicts(message.get("spans"))]
    for span in spans:
        if span.get("is_primary"):
            return span
    return spans[0] if spans else None


def _iter_suggestion_spans(message: Mapping[str, JsonValue]) -> Iterator[Mapping[str, JsonValue]]:
    yield from iter_dicts(message.get("spans"))
    for child in iter_dicts(message.get("children")):
        yield from iter_dicts(child.get("spans"))


def _clippy_fix(message: Mapping[str, JsonValue]) -> FixSuggestion | None:
    for span in _iter_suggestion_spans(message):
        replacement = span.get("suggested_replacement")
        start = coerce_int(span.get("line_start"))
        if not isinstance(replacement, str) or start is None:
            continue
        return FixSuggestion(
            replacement=replacement,
            start_line=max(start, 1),
            start_column=max(coerce_int(span.get("column_start")) or 1, 1),
            end_line=max(coerce_int(span.get("line_end")) or start, start, 1),
            end_column=max(coerce_int(span.get("column_end")) or 1, 1),
            description=coerce_str(span.get("suggestion_applicability")),
        )
    return None


def _clippy_record(record: Mapping[str, JsonValue], context: ParseContext) -> RawIssue | None:
    if record.get("reason") != "compiler-message":
        return None
    message = record.get("message")
    if not isinstance(message, Mapping):
        raise ValueError("compiler-message without a message body")
    level = str(message.get("level", "")).lower()
    if level not in _REPORTED_LEVELS:
        return None
    code = coerce_str(dig(message, "code", "code"))
    if code is None:
        return None
    span = _primary_span(message)
    if span is None:
        return None
    file_name = coerce_str(span.get("file_name"))
    if file_name is None:
        raise ValueError("clippy span without file_name")

    match = CLIPPY_LINT.match(code)
    if match is not None:
        lint = match.group("lint")
        rule = code
        category = classify_clippy_lint(lint, level, clippy_group_from_notes(message))
        severity = clippy_severity(category, level)
        tags = ["rust", "clippy", category.value]
        hints = ["potential_panic"] if lint in CLIPPY_PANIC_LINTS else []
        refs = ExternalRefs(advisory_url=CLIPPY_DOCS_URL.format(lint=lint))
    elif _RUSTC_CODE.match(code):
        rule = f"rustc::{code}"
        category, severity = _rustc_classification(code, level)
        tags = ["rust", "rustc", category.value]
        hints = []
        refs = None
    else:
        rule = UNKNOWN_RULE
        category, severity = Category.OTHER, Severity.MEDIUM
        tags = ["rust", UNKNOWN_LABEL_TAG]
        hints = []
        refs = None

    text = coerce_str(message.get("message")) or code
    rendered = coerce_str(message.get("rendered"))
    return RawIssue(
        file=context.resolve(file_name),
        line=coerce_int(span.get("line_start")),
        column=coerce_int(span.get("column_start")),
        end_line=coerce_int(span.get("line_end")),
        end_column=coerce_int(span.get("column_end")),
        severity=severity,
        severity_known=rule != UNKNOWN_RULE,
        category=category.value,
        rule=rule,
        title=text,
        description=rendered.rstrip() if rendered else text,
        confidence=Confidence.HIGH if category is Category.CORRECTNESS else Confidence.MEDIUM,
        tags=tags,
        fix=_clippy_fix(message),
        refs=refs,
        pattern_hints=hints,
    )


def parse_clippy(records: JsonValue, context: ParseContext) -> Sequence[RawIssue]:
    """Parse ``cargo clippy --message-format=json`` records.

    Only ``compiler-message`` records at ``warning`` or ``error`` level with a
    lint code and a span become issues; build artifacts and summaries are
    skipped.
    """

    return collect_records(iter_dicts(records), _clippy_record, context)


CARGO_AUDIT_SEVERITY: Final[dict[str, Severity]] = {
    "critical": Severity.CRITICAL,
    "high": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "moderate": Severity.MEDIUM,
    "low": Severity.LOW,
    "none": Severity.INFO,
    "info": Severity.INFO,
    "informational": Severity.INFO,
}

RUSTSEC_URL: Final[str] = "https://rustsec.org/advisories/{id}.html"
_RUSTSEC_ID: Final[re.Pattern[str]] = re.compile(r"^RUSTSEC-\d{4}-\d{4}$")
_OWASP_COMPONENTS: Final[str] = "A06:2021 Vulnerable and Outdated Components"

_CVSS_WEIGHTS: Final[dict[str, dict[str, float]]] = {
    "AV": {"N": 0.85, "A": 0.62, "L": 0.55, "P": 0.2},
    "AC": {"L": 0.77, "H": 0.44},
    "UI": {"N": 0.85, "R": 0.62},
    "C": {"H": 0.56, "L": 0.22, "N": 0.0},
    "I": {"H": 0.56, "L": 0.22, "N": 0.0},
    "A": {"H": 0.56, "L": 0.22, "N": 0.0},
}
_CVSS_PRIVILEGES: Final[dict[str, tuple[float, float]]] = {"N": (0.85, 0.85), "L": (0.62, 0.68), "H": (0.27, 0.5)}


def _round_up(value: float) -> float:
    return math.ceil(value * 10 - 1e-9) / 10


def cvss3_base_score(vector: str) -> float | None:
    """Return the CVSS v3.x base score for ``vector`` or ``None`` when malformed."""

    metrics = dict(part.split(":", 1) for part in vector.split("/")[1:] if ":" in part)
    try:
        scope_changed = metrics["S"] == "C"
        unchanged, changed = _CVSS_PRIVILEGES[metrics["PR"]]
        privileges = changed if scope_changed else unchanged
        impact_base = 1 - (
            (1 - _CVSS_WEIGHTS["C"][metrics["C"]])
            * (1 - _CVSS_WEIGHTS["I"][metrics["I"]])
            * (1 - _CVSS_WEIGHTS["A"][metrics["A"]])
        )
        exploitability = (
            8.22
            * _CVSS_WEIGHTS["AV"][metrics["AV"]]
            * _CVSS_WEIGHTS["AC"][metrics["AC"]]
            * privileges
            * _CVSS_WEIGHTS["UI"][metrics["UI"]]
        )
    except KeyError:
        return None
    if scope_changed:
        impact = 7.52 * (impact_base - 0.029) - 3.25 * (impact_base - 0.02) ** 15
    else:
        impact = 6.42 * impact_base
    if impact <= 0:
        return 0.0
    if scope_changed:
        return _round_up(min(1.08 * (impact + exploitability), 10))
    return _round_up(min(impact + exploitability, 10))


def severity_from_cvss(score: float) -> Severity:
    """Map a CVSS base score onto the qualitative severity scale."""

    if score >= 9.0:
        return Severity.CRITICAL
    if score >= 7.0:
        return Severity.HIGH
    if score >= 4.0:
        return Severity.MEDIUM
    if score > 0.0:
        return Severity.LOW
    return Severity.INFO


def _advisory_severity(advisory: Mapping[str, JsonValue]) -> tuple[Severity, bool]:
    label = advisory.get("severity")
    if isinstance(label, str):
        return map_severity_label(label, CARGO_AUDIT_SEVERITY)
    cvss = coerce_str(advisory.get("cvss"))
    if cvss:
        score = cvss3_base_score(cvss)
        if score is not None:
            return severity_from_cvss(score), True
    if advisory.get("informational"):
        return Severity.INFO, True
    return Severity.MEDIUM, False


def _cargo_audit_record(entry: Mapping[str, JsonValue], context: ParseContext) -> RawIssue:
    advisory = entry.get("advisory")
    if not isinstance(advisory, Mapping):
        raise ValueError("vulnerability without an advisory")
    raw_id = coerce_str(advisory.get("id")) or ""
    advisory_id = raw_id if _RUSTSEC_ID.match(raw_id) else UNKNOWN_RULE
    package = entry.get("package") if isinstance(entry.get("package"), Mapping) else {}
    name = coerce_str(dig(package, "name")) or coerce_str(advisory.get("package")) or "unknown"
    version = coerce_str(dig(package, "version")) or "?"
    title = coerce_str(advisory.get("title")) or f"Vulnerability in {name}"
    severity, known = _advisory_severity(advisory)
    patched = [str(item) for item in (dig(entry, "versions", "patched") or []) if item]
    aliases = [str(item) for item in (advisory.get("aliases") or []) if item]

    lines = [f"{name} {version}: {title}"]
    body = coerce_str(advisory.get("description"))
    if body:
        lines.append(body.strip())
    lines.append(f"Patched versions: {', '.join(patched) if patched else 'none available'}")
    if aliases:
        lines.append(f"Aliases: {', '.join(aliases)}")
    cvss = coerce_str(advisory.get("cvss"))
    if cvss:
        lines.append(f"CVSS: {cvss}")

    tags = ["rust", "cargo-audit", "vulnerability", "dependency"]
    tags.extend(str(item) for item in (advisory.get("categories") or []) if item)
    if not known:
        tags.append(UNKNOWN_LABEL_TAG)
    url = coerce_str(advisory.get("url"))
    if url is None and advisory_id != UNKNOWN_RULE:
        url = RUSTSEC_URL.format(id=advisory_id)

    return RawIssue(
        # Cargo.lock carries no per-package line numbers.
        file=context.resolve("Cargo.lock"),
        line=1,
        column=1,
        severity=severity,
        severity_known=known,
        category=Category.VULNERABILITY.value,
        rule=advisory_id,
        title=title,
        description="\n\n".join(lines),
        confidence=Confidence.HIGH,
        tags=tags,
        refs=ExternalRefs(owasp=_OWASP_COMPONENTS, advisory_url=url),
        pattern_hints=["vulnerable_dependency"],
    )


def parse_cargo_audit(payload: JsonValue, context: ParseContext) -> Sequence[RawIssue]:
    """Parse ``cargo audit --json`` output; one issue per listed vulnerability."""

    return collect_records(iter_dicts(dig(payload, "vulnerabilities", "list")), _cargo_audit_record, context)


__all__ = [
    "CARGO_AUDIT_SEVERITY",
    "CLIPPY_DOCS_URL",
    "CLIPPY_GROUPS",
    "CLIPPY_LINT",
    "CLIPPY_LINT_GROUPS",
    "CLIPPY_PANIC_LINTS",
    "classify_clippy_lint",
    "clippy_group_from_notes",
    "clippy_severity",
    "cvss3_base_score",
    "parse_cargo_audit",
    "parse_clippy",
    "severity_from_cvss",
]
