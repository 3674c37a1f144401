# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Shared parser infrastructure and helper utilities."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Iterator, Sequence
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final, TypeVar

from defusedxml import DefusedXmlException
from defusedxml.ElementTree import ParseError, fromstring
from pydantic import ValidationError

from ..core.models import RawIssue
from ..errors import ErrorKind, ParsingError

if TYPE_CHECKING:
    from xml.etree.ElementTree import Element

LOGGER = logging.getLogger(__name__)

JsonValue = Any
RecordT = TypeVar("RecordT")

# Exceptions a single malformed record may raise while being converted.
RECORD_ERRORS: Final[tuple[type[Exception], ...]] = (
    KeyError,
    TypeError,
    ValueError,
    AttributeError,
    IndexError,
    ValidationError,
)


@dataclass(slots=True)
class ParseContext:
    """Per-invocation parsing state shared by the transforms of one adapter.

    Attributes:
        tool: Tool identifier used in log messages.
        root: Directory the tool ran in; relative paths are resolved against it.
        dropped: Number of records discarded as malformed.
        reasons: Short descriptions of the first few dropped records.
    """

    tool: str
    root: Path
    dropped: int = 0
    reasons: list[str] = field(default_factory=list)

    def drop(self, reason: str) -> None:
        """Count a malformed record and log why it was discarded."""

        self.dropped += 1
        if len(self.reasons) < _MAX_REASONS:
            self.reasons.append(reason)
        LOGGER.warning("%s: dropped malformed record (%s)", self.tool, reason)

    def resolve(self, path: str) -> str:
        """Return ``path`` made absolute against :attr:`root` when relative."""

        candidate = Path(path)
        return str(candidate if candidate.is_absolute() else self.root / candidate)


_MAX_REASONS: Final[int] = 10

JsonTransform = Callable[[JsonValue, ParseContext], Sequence[RawIssue]]
TextTransform = Callable[[Sequence[str], ParseContext], Sequence[RawIssue]]
XmlTransform = Callable[["Element", ParseContext], Sequence[RawIssue]]


def collect_records(
    records: Iterable[RecordT],
    builder: Callable[[RecordT, ParseContext], RawIssue | Sequence[RawIssue] | None],
    context: ParseContext,
) -> list[RawIssue]:
    """Convert ``records`` with ``builder``, dropping any record that raises.

    Args:
        records: Tool-native records in emission order.
        builder: Callable returning zero, one, or many issues per record.
        context: Parse context receiving drop counts.

    Returns:
        list[RawIssue]: Issues in the order the tool emitted them.
    """

    issues: list[RawIssue] = []
    for record in records:
        try:
            built = builder(record, context)
        except RECORD_ERRORS as exc:
            context.drop(f"{type(exc).__name__}: {exc}")
            continue
        if built is None:
            continue
        if isinstance(built, RawIssue):
            issues.append(built)
        else:
            issues.extend(built)
    return issues


def load_json_document(stdout: str) -> JsonValue:
    """Decode a single JSON document.

    Raises:
        ParsingError: When ``stdout`` is not valid JSON.
    """

    text = stdout.strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParsingError(ErrorKind.UNPARSEABLE_OUTPUT, f"invalid JSON: {exc.msg} at line {exc.lineno}") from exc
    except RecursionError as exc:
        raise ParsingError(ErrorKind.UNPARSEABLE_OUTPUT, "JSON document nested too deeply") from exc


def load_json_lines(stdout: str, context: ParseContext) -> list[JsonValue]:
    """Decode line-delimited JSON, counting undecodable lines as dropped records.

    Raises:
        ParsingError: When the stream is non-empty but no line decodes.
    """

    payload: list[JsonValue] = []
    failures = 0
    for raw_line in stdout.splitlines():
        trimmed = raw_line.strip()
        if not trimmed:
            continue
        try:
            payload.append(json.loads(trimmed))
        except (json.JSONDecodeError, RecursionError):
            failures += 1
            continue
    if failures and not payload:
        raise ParsingError(ErrorKind.UNPARSEABLE_OUTPUT, f"none of {failures} output lines were valid JSON")
    for _ in range(failures):
        context.drop("undecodable JSON line")
    return payload


def load_xml(document: str) -> Element:
    """Parse ``document`` with :mod:`defusedxml`, rejecting entity tricks.

    Raises:
        ParsingError: When the document is empty, malformed, or unsafe.
    """

    if not document.strip():
        raise ParsingError(ErrorKind.UNPARSEABLE_OUTPUT, "empty XML document")
    try:
        return fromstring(document)
    except (ParseError, DefusedXmlException) as exc:
        raise ParsingError(ErrorKind.UNPARSEABLE_OUTPUT, f"invalid XML: {exc}") from exc


@dataclass(slots=True)
class JsonParser:
    """Parser for tools emitting a single JSON document."""

    transform: JsonTransform

    def parse(self, stdout: str, stderr: str = "", *, context: ParseContext) -> Sequence[RawIssue]:
        """Return issues decoded from ``stdout``."""

        del stderr
        payload = load_json_document(stdout)
        if payload is None:
            return []
        return self.transform(payload, context)


@dataclass(slots=True)
class JsonLinesParser:
    """Parser for tools emitting one JSON record per line."""

    transform: JsonTransform

    def parse(self, stdout: str, stderr: str = "", *, context: ParseContext) -> Sequence[RawIssue]:
        """Return issues decoded from line-delimited ``stdout``."""

        del stderr
        return self.transform(load_json_lines(stdout, context), context)


@dataclass(slots=True)
class TextParser:
    """Parser for tools with line-oriented text output."""

    transform: TextTransform

    def parse(self, stdout: str, stderr: str = "", *, context: ParseContext) -> Sequence[RawIssue]:
        """Return issues matched from ``stdout`` lines."""

        del stderr
        return self.transform(stdout.splitlines(), context)


@dataclass(slots=True)
class XmlParser:
    """Parser for tools writing XML documents."""

    transform: XmlTransform

    def parse(self, document: str, stderr: str = "", *, context: ParseContext) -> Sequence[RawIssue]:
        """Return issues decoded from the XML ``document``."""

        del stderr
        return self.transform(load_xml(document), context)


def iter_dicts(value: JsonValue) -> Iterator[MappingABC[str, JsonValue]]:
    """Yield mapping items from ``value`` when it is a sequence of dict-like objects."""

    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        for item in value:
            if isinstance(item, MappingABC):
                yield item


def coerce_int(value: JsonValue) -> int | None:
    """Return ``value`` as ``int`` when it is numeric or a numeric string."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def coerce_str(value: JsonValue) -> str | None:
    """Return ``value`` as a non-empty string or ``None``."""

    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    return text if text.strip() else None


def dig(value: JsonValue, *keys: str) -> JsonValue:
    """Follow ``keys`` through nested mappings, returning ``None`` on any miss."""

    current = value
    for key in keys:
        if not isinstance(current, MappingABC):
            return None
        current = current.get(key)
    return current


__all__ = [
    "RECORD_ERRORS",
    "JsonLinesParser",
    "JsonParser",
    "JsonTransform",
    "JsonValue",
    "ParseContext",
    "TextParser",
    "TextTransform",
    "XmlParser",
    "XmlTransform",
    "coerce_int",
    "coerce_str",
    "collect_records",
    "dig",
    "iter_dicts",
    "load_json_document",
    "load_json_lines",
    "load_xml",
]
