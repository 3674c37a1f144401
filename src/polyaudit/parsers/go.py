# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Parsers and mapping tables for Go tooling (gosec, staticcheck)."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Final

from ..core.models import ExternalRefs, RawIssue
from ..core.severity import UNKNOWN_LABEL_TAG, Category, Confidence, Severity, map_severity_label
from .base import JsonValue, ParseContext, coerce_int, coerce_str, collect_records, dig, iter_dicts

UNKNOWN_RULE: Final[str] = "unknown"


@dataclass(frozen=True, slots=True)
class GosecRule:
    """Static metadata for one gosec rule."""

    label: str
    category: Category
    cwe: str | None = None
    owasp: str | None = None
    mitigation: str = ""
    tags: tuple[str, ...] = ()


_OWASP_ACCESS: Final[str] = "A01:2021 Broken Access Control"
_OWASP_CRYPTO: Final[str] = "A02:2021 Cryptographic Failures"
_OWASP_INJECTION: Final[str] = "A03:2021 Injection"
_OWASP_MISCONFIG: Final[str] = "A05:2021 Security Misconfiguration"
_OWASP_AUTH: Final[str] = "A07:2021 Identification and Authentication Failures"

GOSEC_RULES: Final[dict[str, GosecRule]] = {
    "G101": GosecRule(
        "credentials",
        Category.SECURITY,
        "CWE-798",
        _OWASP_AUTH,
        "Load secrets from environment variables or a secret manager instead of source code.",
        ("credentials", "injection"),
    ),
    "G102": GosecRule("network-binding", Category.SECURITY, "CWE-200", _OWASP_MISCONFIG, "Bind to a specific interface."),
    "G103": GosecRule("unsafe-block", Category.MEMORY_SAFETY, "CWE-242", None, "Avoid package unsafe."),
    "G104": GosecRule("unhandled-error", Category.CORRECTNESS, "CWE-754", None, "Check and handle returned errors."),
    "G106": GosecRule("ssh-host-key", Category.SECURITY, "CWE-322", _OWASP_AUTH, "Verify SSH host keys."),
    "G107": GosecRule(
        "url-taint",
        Category.SECURITY,
        "CWE-20",
        _OWASP_INJECTION,
        "Validate URLs before issuing HTTP requests.",
        ("injection",),
    ),
    "G108": GosecRule("profiling-endpoint", Category.SECURITY, "CWE-200", _OWASP_MISCONFIG, "Do not expose pprof."),
    "G109": GosecRule("integer-overflow", Category.CORRECTNESS, "CWE-190", None, "Check bounds after strconv.Atoi."),
    "G110": GosecRule("decompression-bomb", Category.SECURITY, "CWE-409", None, "Limit decompressed sizes."),
    "G111": GosecRule("directory-traversal", Category.SECURITY, "CWE-22", _OWASP_ACCESS, "Restrict http.Dir roots."),
    "G112": GosecRule("slowloris", Category.SECURITY, "CWE-400", _OWASP_MISCONFIG, "Set ReadHeaderTimeout."),
    "G114": GosecRule("server-timeouts", Category.SECURITY, "CWE-676", _OWASP_MISCONFIG, "Use http.Server timeouts."),
    "G115": GosecRule("integer-conversion", Category.CORRECTNESS, "CWE-190", None, "Check integer conversions."),
    "G201": GosecRule(
        "sql-injection",
        Category.SECURITY,
        "CWE-89",
        _OWASP_INJECTION,
        "Use parameterized queries instead of string formatting.",
    ),
    "G202": GosecRule(
        "sql-injection",
        Category.SECURITY,
        "CWE-89",
        _OWASP_INJECTION,
        "Use parameterized queries instead of string concatenation.",
    ),
    "G203": GosecRule("xss", Category.SECURITY, "CWE-79", _OWASP_INJECTION, "Do not mark untrusted data as safe HTML."),
    "G204": GosecRule(
        "command-injection",
        Category.SECURITY,
        "CWE-78",
        _OWASP_INJECTION,
        "Avoid variable commands; validate arguments against an allow list.",
    ),
    "G301": GosecRule("file-permissions", Category.SECURITY, "CWE-276", _OWASP_ACCESS, "Create directories 0750 or tighter."),
    "G302": GosecRule("file-permissions", Category.SECURITY, "CWE-276", _OWASP_ACCESS, "Chmod files 0600 or tighter."),
    "G303": GosecRule("temp-file", Category.SECURITY, "CWE-377", _OWASP_ACCESS, "Use os.CreateTemp."),
    "G304": GosecRule(
        "path-traversal",
        Category.SECURITY,
        "CWE-22",
        _OWASP_ACCESS,
        "Clean and confine file paths derived from input.",
    ),
    "G305": GosecRule("path-traversal", Category.SECURITY, "CWE-22", _OWASP_ACCESS, "Validate archive entry names."),
    "G306": GosecRule("file-permissions", Category.SECURITY, "CWE-276", _OWASP_ACCESS, "Write files 0600 or tighter."),
    "G307": GosecRule("deferred-close", Category.CORRECTNESS, "CWE-703", None, "Handle errors from deferred Close."),
    "G401": GosecRule("weak-crypto", Category.SECURITY, "CWE-327", _OWASP_CRYPTO, "Use SHA-256 or stronger."),
    "G402": GosecRule("tls", Category.SECURITY, "CWE-295", _OWASP_CRYPTO, "Do not disable TLS verification."),
    "G403": GosecRule("weak-crypto", Category.SECURITY, "CWE-326", _OWASP_CRYPTO, "Use RSA keys of 2048 bits or more."),
    "G404": GosecRule("random", Category.SECURITY, "CWE-338", _OWASP_CRYPTO, "Use crypto/rand for secrets."),
    "G405": GosecRule("weak-crypto", Category.SECURITY, "CWE-327", _OWASP_CRYPTO, "Replace DES and RC4."),
    "G406": GosecRule("weak-crypto", Category.SECURITY, "CWE-328", _OWASP_CRYPTO, "Replace MD4 and RIPEMD160."),
    "G501": GosecRule("weak-crypto", Category.SECURITY, "CWE-327", _OWASP_CRYPTO, "Do not import crypto/md5."),
    "G502": GosecRule("weak-crypto", Category.SECURITY, "CWE-327", _OWASP_CRYPTO, "Do not import crypto/des."),
    "G503": GosecRule("weak-crypto", Category.SECURITY, "CWE-327", _OWASP_CRYPTO, "Do not import crypto/rc4."),
    "G504": GosecRule("cgi", Category.SECURITY, "CWE-327", _OWASP_MISCONFIG, "Do not import net/http/cgi."),
    "G505": GosecRule("weak-crypto", Category.SECURITY, "CWE-327", _OWASP_CRYPTO, "Do not import crypto/sha1."),
    "G506": GosecRule("weak-crypto", Category.SECURITY, "CWE-328", _OWASP_CRYPTO, "Do not import md4."),
    "G507": GosecRule("weak-crypto", Category.SECURITY, "CWE-328", _OWASP_CRYPTO, "Do not import ripemd160."),
    "G601": GosecRule("memory-aliasing", Category.MEMORY_SAFETY, "CWE-118", None, "Copy the range variable."),
    "G602": GosecRule("slice-bounds", Category.MEMORY_SAFETY, "CWE-118", None, "Check slice bounds before indexing."),
}

GOSEC_FAMILY_TAGS: Final[dict[str, str]] = {
    "G2": "injection",
    "G3": "file-security",
    "G4": "cryptography",
    "G5": "imports",
}

GOSEC_SEVERITY: Final[dict[str, Severity]] = {
    "high": Severity.HIGH,
    "medium": Severity.MEDIUM,
    "low": Severity.LOW,
}

GOSEC_CONFIDENCE: Final[dict[str, Confidence]] = {
    "high": Confidence.HIGH,
    "medium": Confidence.MEDIUM,
    "low": Confidence.LOW,
}

GOSEC_DOCS_URL: Final[str] = "https://securecodewarrior.github.io/gosec-docs/rules/{rule}.html"

_GOSEC_ID: Final[re.Pattern[str]] = re.compile(r"^G\d{3}$")


def gosec_baseline_severity(severity: Severity, confidence: Confidence | None) -> Severity:
    """Return the tool-native level after discounting low-confidence findings.

    A ``HIGH`` finding gosec itself is unsure about is treated as ``MEDIUM``;
    rule floors are applied afterwards and may raise it again.
    """

    if severity is Severity.HIGH and confidence is Confidence.LOW:
        return Severity.MEDIUM
    return severity


def _gosec_line(value: JsonValue) -> tuple[int | None, int | None]:
    """Return ``(start, end)`` from gosec's ``"12"`` or ``"12-14"`` line fields."""

    text = coerce_str(value)
    if text is None:
        return None, None
    start, _, end = text.partition("-")
    first = coerce_int(start)
    return first, coerce_int(end) if end else first


def _gosec_record(item: Mapping[str, JsonValue], context: ParseContext) -> RawIssue:
    file_name = coerce_str(item.get("file"))
    if file_name is None:
        raise ValueError("gosec issue without a file")
    raw_rule = coerce_str(item.get("rule_id")) or ""
    rule_id = raw_rule if _GOSEC_ID.match(raw_rule) else UNKNOWN_RULE
    metadata = GOSEC_RULES.get(rule_id)
    severity, known = map_severity_label(item.get("severity"), GOSEC_SEVERITY)
    confidence = GOSEC_CONFIDENCE.get(str(item.get("confidence", "")).lower())
    severity = gosec_baseline_severity(severity, confidence)
    start, end = _gosec_line(item.get("line"))
    details = coerce_str(item.get("details")) or "gosec finding"

    tags = ["go", "security", "gosec"]
    if metadata is not None:
        tags.append(metadata.label)
        tags.extend(metadata.tags)
    family_tag = GOSEC_FAMILY_TAGS.get(rule_id[:2])
    if family_tag:
        tags.append(family_tag)
    if not known:
        tags.append(UNKNOWN_LABEL_TAG)

    cwe = metadata.cwe if metadata is not None else None
    cwe_id = coerce_str(dig(item, "cwe", "id"))
    if cwe is None and cwe_id:
        cwe = f"CWE-{cwe_id}"
    description = details
    if metadata is not None and metadata.mitigation:
        description = f"{details}\n\nMitigation: {metadata.mitigation}"
    snippet = coerce_str(item.get("code"))
    if snippet:
        description = f"{description}\n\n{snippet.rstrip()}"

    return RawIssue(
        file=context.resolve(file_name),
        line=start,
        column=coerce_int(item.get("column")),
        end_line=end,
        severity=severity,
        severity_known=known,
        category=(metadata.category if metadata is not None else Category.SECURITY).value,
        rule=rule_id,
        title=details,
        description=description,
        confidence=confidence,
        tags=tags,
        refs=ExternalRefs(
            cwe=cwe,
            owasp=metadata.owasp if metadata is not None else None,
            advisory_url=GOSEC_DOCS_URL.format(rule=rule_id) if rule_id != UNKNOWN_RULE else None,
        ),
    )


def parse_gosec(payload: JsonValue, context: ParseContext) -> Sequence[RawIssue]:
    """Parse gosec ``-fmt=json`` output (a single document with ``Issues[]``)."""

    if not isinstance(payload, Mapping):
        return []
    return collect_records(iter_dicts(payload.get("Issues")), _gosec_record, context)


@dataclass(frozen=True, slots=True)
class StaticcheckFamily:
    """Classification shared by every check within a prefix family."""

    description: str
    category: Category
    severity: Severity
    tag: str


STATICCHECK_FAMILIES: Final[dict[str, StaticcheckFamily]] = {
    "SA1": StaticcheckFamily("standard library misuse", Category.CORRECTNESS, Severity.MEDIUM, "stdlib"),
    "SA2": StaticcheckFamily("concurrency issues", Category.CORRECTNESS, Severity.HIGH, "concurrency"),
    "SA3": StaticcheckFamily("testing issues", Category.CORRECTNESS, Severity.MEDIUM, "testing"),
    "SA4": StaticcheckFamily("code that does nothing", Category.SUSPICIOUS, Severity.MEDIUM, "no-op"),
    "SA5": StaticcheckFamily("correctness issues", Category.CORRECTNESS, Severity.HIGH, "correctness"),
    "SA6": StaticcheckFamily("performance issues", Category.PERFORMANCE, Severity.MEDIUM, "performance"),
    "SA9": StaticcheckFamily("questionable constructs", Category.SUSPICIOUS, Severity.MEDIUM, "questionable"),
    "S1": StaticcheckFamily("code simplifications", Category.COMPLEXITY, Severity.LOW, "simplification"),
    "ST1": StaticcheckFamily("stylistic issues", Category.STYLE, Severity.LOW, "style"),
    "QF1": StaticcheckFamily("quick fixes", Category.STYLE, Severity.LOW, "quickfix"),
    "U1": StaticcheckFamily("unused code", Category.UNUSED, Severity.LOW, "dead-code"),
}

# Individual checks whose meaning is narrower than their family.
STATICCHECK_OVERRIDES: Final[dict[str, Category]] = {
    "SA1019": Category.DEPRECATED,
    "SA4006": Category.UNUSED,
    "SA4009": Category.UNUSED,
}

STATICCHECK_DOCS_URL: Final[str] = "https://staticcheck.io/docs/checks#{rule}"
STATICCHECK_COMPILE: Final[str] = "compile"

_STATICCHECK_ID: Final[re.Pattern[str]] = re.compile(r"^(SA|S|ST|QF|U)\d{4}$")


def staticcheck_family(rule: str) -> StaticcheckFamily | None:
    """Return the family classification for ``rule`` by longest matching prefix."""

    for width in (3, 2):
        family = STATICCHECK_FAMILIES.get(rule[:width])
        if family is not None:
            return family
    return None


def _staticcheck_record(item: Mapping[str, JsonValue], context: ParseContext) -> RawIssue | None:
    if str(item.get("severity", "")).lower() == "ignored":
        return None
    location = item.get("location")
    if not isinstance(location, Mapping):
        raise ValueError("staticcheck record without a location")
    file_name = coerce_str(location.get("file")) or coerce_str(location.get("filename"))
    if file_name is None:
        raise ValueError("staticcheck record without a file")
    code = coerce_str(item.get("code")) or ""
    message = coerce_str(item.get("message")) or "staticcheck finding"
    end = item.get("end") if isinstance(item.get("end"), Mapping) else {}

    tags = ["go", "staticcheck"]
    if code == STATICCHECK_COMPILE:
        rule, category, severity = STATICCHECK_COMPILE, Category.CORRECTNESS, Severity.HIGH
        tags.append("compile")
    elif _STATICCHECK_ID.match(code) and (family := staticcheck_family(code)) is not None:
        rule = code
        category = STATICCHECK_OVERRIDES.get(code, family.category)
        severity = family.severity
        tags.append(family.tag)
    else:
        rule, category, severity = UNKNOWN_RULE, Category.OTHER, Severity.MEDIUM
        tags.append(UNKNOWN_LABEL_TAG)

    return RawIssue(
        file=context.resolve(file_name),
        line=coerce_int(location.get("line")),
        column=coerce_int(location.get("column")),
        end_line=coerce_int(dig(end, "line")),
        end_column=coerce_int(dig(end, "column")),
        severity=severity,
        severity_known=rule != UNKNOWN_RULE,
        category=category.value,
        rule=rule,
        title=message,
        description=message,
        confidence=Confidence.HIGH if category is Category.CORRECTNESS else None,
        tags=tags,
        refs=ExternalRefs(advisory_url=STATICCHECK_DOCS_URL.format(rule=rule)) if _STATICCHECK_ID.match(rule) else None,
    )


def parse_staticcheck(records: JsonValue, context: ParseContext) -> Sequence[RawIssue]:
    """Parse staticcheck ``-f json`` line-delimited records."""

    return collect_records(iter_dicts(records), _staticcheck_record, context)


__all__ = [
    "GOSEC_DOCS_URL",
    "GOSEC_FAMILY_TAGS",
    "GOSEC_RULES",
    "GOSEC_SEVERITY",
    "STATICCHECK_DOCS_URL",
    "STATICCHECK_FAMILIES",
    "GosecRule",
    "StaticcheckFamily",
    "gosec_baseline_severity",
    "parse_gosec",
    "parse_staticcheck",
    "staticcheck_family",
]
