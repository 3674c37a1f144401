# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Analysis options and their TOML configuration sources."""

from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .constants import (
    CONFIG_FILE_NAME,
    DEFAULT_AVAILABILITY_TTL_SECONDS,
    DEFAULT_GRACE_PERIOD_MS,
    DEFAULT_MAX_AGGREGATE_BYTES,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_FILE_BYTES,
    DEFAULT_MAX_FILES,
    DEFAULT_MAX_OUTPUT_BYTES,
    DEFAULT_MAX_WORKERS,
    DEFAULT_TIMEOUT_MS,
    PYPROJECT_SECTION,
)
from .core.severity import Severity
from .errors import ConfigError
from .languages import Language

_RULE_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z0-9_.:/\-]+$")
_TOOL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9][a-z0-9\-]*$")


def default_parallelism() -> int:
    """Return ``min(cpu_count, 4)`` with a floor of one."""

    return max(1, min(os.cpu_count() or 1, DEFAULT_MAX_WORKERS))


class _OptionsModel(BaseModel):
    """Strict, immutable option model accepting snake_case or camelCase keys."""

    model_config = ConfigDict(extra="forbid", frozen=True, alias_generator=to_camel, populate_by_name=True)


class LanguageOptions(_OptionsModel):
    """Options applied to every adapter targeting one language."""

    severity_threshold: Severity = Severity.INFO
    include_rules: tuple[str, ...] = ()
    exclude_rules: tuple[str, ...] = ()
    batch_size: int | None = Field(default=None, ge=1, le=500)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, ge=1)
    parallelism: int = Field(default_factory=default_parallelism, ge=1)
    tool_selection: tuple[str, ...] | None = None
    include_tests: bool = True
    tool_options: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @field_validator("include_rules", "exclude_rules")
    @classmethod
    def _validate_rules(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        """Reject rule identifiers that could not be passed as a tool flag."""

        for rule in value:
            if not _RULE_PATTERN.match(rule):
                raise ValueError(f"invalid rule identifier {rule!r}")
        return value

    @field_validator("tool_selection")
    @classmethod
    def _validate_tools(cls, value: tuple[str, ...] | None) -> tuple[str, ...] | None:
        """Reject malformed tool names early."""

        if value is None:
            return None
        for tool in value:
            if not _TOOL_PATTERN.match(tool):
                raise ValueError(f"invalid tool name {tool!r}")
        return value

    def selects(self, tool: str) -> bool:
        """Return ``True`` when ``tool`` should run under these options."""

        return self.tool_selection is None or tool in self.tool_selection

    def options_for(self, tool: str) -> Mapping[str, Any]:
        """Return the tool-specific option mapping (empty when unset)."""

        return self.tool_options.get(tool, {})


class ResourceLimits(_OptionsModel):
    """Process-wide traversal and capture budgets."""

    max_files: int = Field(default=DEFAULT_MAX_FILES, ge=1)
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=0)
    max_file_bytes: int = Field(default=DEFAULT_MAX_FILE_BYTES, ge=1)
    max_aggregate_bytes: int = Field(default=DEFAULT_MAX_AGGREGATE_BYTES, ge=1)
    max_output_bytes: int = Field(default=DEFAULT_MAX_OUTPUT_BYTES, ge=1)
    grace_period_ms: int = Field(default=DEFAULT_GRACE_PERIOD_MS, ge=0)


class AnalysisOptions(_OptionsModel):
    """Complete option set for one orchestrated run."""

    rust: LanguageOptions = Field(default_factory=LanguageOptions)
    go: LanguageOptions = Field(default_factory=LanguageOptions)
    c: LanguageOptions = Field(default_factory=LanguageOptions)
    cpp: LanguageOptions = Field(default_factory=LanguageOptions)
    python: LanguageOptions = Field(default_factory=LanguageOptions)
    limits: ResourceLimits = Field(default_factory=ResourceLimits)
    availability_ttl_seconds: float = Field(default=DEFAULT_AVAILABILITY_TTL_SECONDS, ge=0)
    workers: int = Field(default_factory=default_parallelism, ge=1)

    def for_language(self, language: Language) -> LanguageOptions:
        """Return the options block for ``language``."""

        return getattr(self, language.value)

    def with_overrides(
        self,
        *,
        tools: tuple[str, ...] | None = None,
        timeout_ms: int | None = None,
        workers: int | None = None,
    ) -> AnalysisOptions:
        """Return a copy applying command-line overrides to every language block."""

        language_updates: dict[str, Any] = {}
        if tools is not None:
            language_updates["tool_selection"] = tools
        if timeout_ms is not None:
            language_updates["timeout_ms"] = timeout_ms
        update: dict[str, Any] = {}
        if language_updates:
            for language in Language:
                block = self.for_language(language)
                update[language.value] = LanguageOptions.model_validate(
                    {**block.model_dump(), **language_updates},
                )
        if workers is not None:
            update["workers"] = workers
        return self.model_copy(update=update) if update else self


def parse_options(payload: Mapping[str, Any] | None) -> AnalysisOptions:
    """Validate ``payload`` into :class:`AnalysisOptions`.

    Raises:
        ConfigError: When the payload contains unknown keys or invalid values.
    """

    try:
        return AnalysisOptions.model_validate(dict(payload or {}))
    except ValidationError as exc:
        raise ConfigError(_summarise_validation(exc)) from exc


def _summarise_validation(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()))
        parts.append(f"{location}: {error.get('msg', 'invalid value')}")
    return "; ".join(parts)


class TomlConfigSource:
    """Load option data from a standalone ``polyaudit.toml`` document."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self.name = str(path)

    def load(self) -> Mapping[str, Any]:
        """Return the parsed TOML table or an empty mapping when absent.

        Raises:
            ConfigError: When the file is not valid TOML.
        """

        if not self._path.is_file():
            return {}
        try:
            with self._path.open("rb") as handle:
                data = tomllib.load(handle)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(f"cannot read {self._path}: {exc}") from exc
        return data

    def describe(self) -> str:
        """Return a human-readable description of the source."""

        return f"TOML configuration at {self.name}"


class PyProjectConfigSource(TomlConfigSource):
    """Read options from ``[tool.polyaudit]`` within ``pyproject.toml``."""

    def load(self) -> Mapping[str, Any]:
        data = super().load()
        tool_key, section_key = PYPROJECT_SECTION
        tool_section = data.get(tool_key)
        if not isinstance(tool_section, Mapping):
            return {}
        section = tool_section.get(section_key)
        if not isinstance(section, Mapping):
            return {}
        return dict(section)

    def describe(self) -> str:
        return f"pyproject.toml ({self.name})"


def load_options(path: Path) -> AnalysisOptions:
    """Load options from ``path`` (a ``pyproject.toml`` or standalone TOML file)."""

    source = PyProjectConfigSource(path) if path.name == "pyproject.toml" else TomlConfigSource(path)
    if not path.is_file():
        raise ConfigError(f"configuration file {path} does not exist")
    return parse_options(source.load())


def discover_options(root: Path) -> AnalysisOptions:
    """Return options from ``polyaudit.toml`` or ``pyproject.toml`` under ``root``.

    A standalone ``polyaudit.toml`` wins over ``pyproject.toml``; defaults are
    returned when neither provides a section.
    """

    standalone = root / CONFIG_FILE_NAME
    if standalone.is_file():
        return load_options(standalone)
    return parse_options(PyProjectConfigSource(root / "pyproject.toml").load())


__all__ = [
    "AnalysisOptions",
    "LanguageOptions",
    "PyProjectConfigSource",
    "ResourceLimits",
    "TomlConfigSource",
    "default_parallelism",
    "discover_options",
    "load_options",
    "parse_options",
]
