# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Error taxonomy shared by the validator, runner, adapters, and hub.

Every failure carries an :class:`ErrorKind`. Kinds are grouped into an
:class:`ErrorClass` which decides how far a failure propagates: input errors
abort the whole run, every other class is confined to the adapter that raised
it and surfaces as an error report.
"""

from __future__ import annotations

from enum import Enum
from typing import Final


class ErrorClass(str, Enum):
    """Propagation class for an :class:`ErrorKind`."""

    INPUT = "input"
    ENVIRONMENT = "environment"
    EXECUTION = "execution"
    PARSING = "parsing"
    RESOURCE = "resource"


class ErrorKind(str, Enum):
    """Enumerate every failure kind that may appear in a report."""

    PATH_TRAVERSAL = "PathTraversal"
    ESCAPED_ROOT = "EscapedRoot"
    DISALLOWED_EXTENSION = "DisallowedExtension"
    FILE_TOO_LARGE = "FileTooLarge"
    BLOCKED_PATH = "BlockedPath"
    MISSING_PATH = "MissingPath"
    PROJECT_NOT_FOUND = "ProjectNotFound"
    UNKNOWN_OPTION = "UnknownOption"
    UNSAFE_ARGUMENT = "UnsafeArgument"
    TOOL_UNAVAILABLE = "ToolUnavailable"
    TOOL_VERSION_UNSUPPORTED = "ToolVersionUnsupported"
    TIMEOUT = "Timeout"
    OUTPUT_OVERFLOW = "OutputOverflow"
    NON_ZERO_EXIT = "NonZeroExitWithoutParseableOutput"
    PROCESS_SPAWN_FAILED = "ProcessSpawnFailed"
    CANCELLED = "Cancelled"
    MALFORMED_RECORD = "MalformedRecord"
    UNPARSEABLE_OUTPUT = "UnparseableOutput"
    MEMORY_CAP = "MemoryCap"
    FILE_LIMIT = "FileLimit"

    @property
    def error_class(self) -> ErrorClass:
        """Return the propagation class associated with the kind."""

        return _KIND_CLASSES[self]


_KIND_CLASSES: Final[dict[ErrorKind, ErrorClass]] = {
    ErrorKind.PATH_TRAVERSAL: ErrorClass.INPUT,
    ErrorKind.ESCAPED_ROOT: ErrorClass.INPUT,
    ErrorKind.DISALLOWED_EXTENSION: ErrorClass.INPUT,
    ErrorKind.FILE_TOO_LARGE: ErrorClass.INPUT,
    ErrorKind.BLOCKED_PATH: ErrorClass.INPUT,
    ErrorKind.MISSING_PATH: ErrorClass.INPUT,
    ErrorKind.PROJECT_NOT_FOUND: ErrorClass.INPUT,
    ErrorKind.UNKNOWN_OPTION: ErrorClass.INPUT,
    ErrorKind.UNSAFE_ARGUMENT: ErrorClass.INPUT,
    ErrorKind.TOOL_UNAVAILABLE: ErrorClass.ENVIRONMENT,
    ErrorKind.TOOL_VERSION_UNSUPPORTED: ErrorClass.ENVIRONMENT,
    ErrorKind.TIMEOUT: ErrorClass.EXECUTION,
    ErrorKind.OUTPUT_OVERFLOW: ErrorClass.EXECUTION,
    ErrorKind.NON_ZERO_EXIT: ErrorClass.EXECUTION,
    ErrorKind.PROCESS_SPAWN_FAILED: ErrorClass.EXECUTION,
    ErrorKind.CANCELLED: ErrorClass.EXECUTION,
    ErrorKind.MALFORMED_RECORD: ErrorClass.PARSING,
    ErrorKind.UNPARSEABLE_OUTPUT: ErrorClass.PARSING,
    ErrorKind.MEMORY_CAP: ErrorClass.RESOURCE,
    ErrorKind.FILE_LIMIT: ErrorClass.RESOURCE,
}


class PolyauditError(Exception):
    """Base exception carrying an :class:`ErrorKind` and a human-readable detail."""

    def __init__(self, kind: ErrorKind, detail: str = "") -> None:
        """Initialise the error.

        Args:
            kind: Failure kind reported to callers and serialised into reports.
            detail: Optional context appended after the kind name.
        """

        self.kind = kind
        self.detail = detail
        super().__init__(self.message)

    @property
    def message(self) -> str:
        """Return ``"<Kind>: <detail>"`` or the bare kind name without detail."""

        return f"{self.kind.value}: {self.detail}" if self.detail else self.kind.value

    @property
    def error_class(self) -> ErrorClass:
        """Return the propagation class of the wrapped kind."""

        return self.kind.error_class


class InputValidationError(PolyauditError):
    """Raised when a path, option, or argument derived from user input is rejected."""


class ToolEnvironmentError(PolyauditError):
    """Raised when a tool binary is missing or reports an unsupported version."""


class ExecutionError(PolyauditError):
    """Raised when a sandboxed process times out, overflows, or cannot be spawned."""


class ParsingError(PolyauditError):
    """Raised when a tool's output cannot be interpreted at all."""


class ResourceLimitError(PolyauditError):
    """Raised when a traversal or capture budget is exhausted."""


class ConfigError(InputValidationError):
    """Raised when configuration files cannot be loaded or validated."""

    def __init__(self, detail: str) -> None:
        super().__init__(ErrorKind.UNKNOWN_OPTION, detail)


__all__ = [
    "ConfigError",
    "ErrorClass",
    "ErrorKind",
    "ExecutionError",
    "InputValidationError",
    "ParsingError",
    "PolyauditError",
    "ResourceLimitError",
    "ToolEnvironmentError",
]
