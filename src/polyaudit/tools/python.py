# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Adapters for Python analyzers (pylint, mypy)."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any, Final

from ..core.models import RawIssue
from ..core.severity import Confidence
from ..errors import ErrorKind, InputValidationError
from ..execution import SandboxPolicy
from ..languages import Language
from ..parsers.base import JsonParser, ParseContext, TextParser
from ..parsers.python import parse_mypy, parse_pylint
from .base import AnalysisContext, InstallHint, Invocation, ToolAdapter, ToolOutput, scratch_file

PYTHON_MARKERS: Final[frozenset[str]] = frozenset({"pyproject.toml", "setup.py", "setup.cfg", "requirements.txt"})
PYTHON_ENV_PASSTHROUGH: Final[tuple[str, ...]] = ("HOME", "VIRTUAL_ENV")

_PYLINT_MESSAGE: Final[re.Pattern[str]] = re.compile(r"^(?:[CRWEFI]\d{4}|[a-z][a-z0-9-]*)$")
_PYLINT_ID: Final[re.Pattern[str]] = re.compile(r"^[CRWEFI]\d{4}$")
_MYPY_CODE: Final[re.Pattern[str]] = re.compile(r"^[a-z][a-z0-9-]*$")
_PYTHON_VERSION: Final[re.Pattern[str]] = re.compile(r"^3\.\d{1,2}$")

# Without the project's dependencies installed these checks only produce noise.
PYLINT_BASE_DISABLED: Final[tuple[str, ...]] = ("import-error", "no-member", "no-name-in-module")

# pylint ORs 1..16 for message classes; 32 marks a usage error.
_PYLINT_USAGE_ERROR: Final[int] = 32


def _string_list(tool: str, key: str, values: Any, pattern: re.Pattern[str]) -> None:
    for value in values:
        if not isinstance(value, str) or not pattern.match(value):
            raise InputValidationError(ErrorKind.UNKNOWN_OPTION, f"{tool}: invalid entry {value!r} in {key!r}")


class PylintAdapter(ToolAdapter):
    """Python linter run in batches over discovered modules."""

    name = "pylint"
    languages = (Language.PYTHON,)
    tool_category = "python_static_analysis"
    policy = SandboxPolicy(command="pylint", env_passthrough=PYTHON_ENV_PASSTHROUGH)
    install = InstallHint(
        steps=("python -m pip install pylint",),
        requirements=("Python 3.9 or newer",),
        notes="Import resolution checks are disabled; results do not depend on installed project dependencies.",
    )
    default_confidence = Confidence.MEDIUM
    markers = PYTHON_MARKERS
    uses_file_list = True
    default_batch_size = 10
    option_types = {"disable": list, "enable": list, "jobs": int}

    def check_options(self, tool_options: Mapping[str, Any]) -> None:
        super().check_options(tool_options)
        for key in ("disable", "enable"):
            _string_list(self.name, key, tool_options.get(key, ()), _PYLINT_MESSAGE)
        jobs = tool_options.get("jobs")
        if jobs is not None and not 0 <= jobs <= 64:
            raise InputValidationError(ErrorKind.UNKNOWN_OPTION, f"{self.name}: jobs must be between 0 and 64")

    def _disabled(self, ctx: AnalysisContext) -> list[str]:
        disabled = list(ctx.tool_options.get("disable", ()))
        disabled.extend(rule for rule in ctx.options.exclude_rules if _PYLINT_ID.match(rule))
        return disabled

    def build_invocations(self, ctx: AnalysisContext) -> Sequence[Invocation]:
        rcfile = scratch_file(
            ctx,
            "pylintrc",
            "[MAIN]\npersistent=no\n\n[MESSAGES CONTROL]\ndisable=" + ",".join(PYLINT_BASE_DISABLED) + "\n",
        )
        head = ["--rcfile", str(rcfile), "--output-format=json", "--score=n", "--persistent=n"]
        disabled = self._disabled(ctx)
        if disabled:
            head.append(f"--disable={','.join(disabled)}")
        enabled = ctx.tool_options.get("enable", ())
        if enabled:
            head.append(f"--enable={','.join(enabled)}")
        jobs = ctx.tool_options.get("jobs")
        if jobs is not None:
            head.append(f"--jobs={jobs}")
        return [
            Invocation(argv=(*head, *(str(path) for path in batch)), cwd=ctx.tool_root, files=batch)
            for batch in ctx.batches(self.default_batch_size)
        ]

    def exit_ok(self, output: ToolOutput, issues: Sequence[RawIssue]) -> bool:
        return output.result.exit_code < _PYLINT_USAGE_ERROR

    def parse_output(self, output: ToolOutput, ctx: AnalysisContext, parse_ctx: ParseContext) -> Sequence[RawIssue]:
        if not output.stdout.strip():
            return []
        return JsonParser(parse_pylint).parse(output.stdout, output.stderr, context=parse_ctx)


class MypyAdapter(ToolAdapter):
    """Static type checker run in isolated mode over discovered modules."""

    name = "mypy"
    languages = (Language.PYTHON,)
    tool_category = "python_type_checking"
    policy = SandboxPolicy(
        command="mypy",
        env_passthrough=PYTHON_ENV_PASSTHROUGH,
        env_overrides={"PYTHONPATH": "", "PYTHONHOME": "", "PYTHONSTARTUP": "", "MYPYPATH": ""},
    )
    install = InstallHint(
        steps=("python -m pip install mypy",),
        requirements=("Python 3.9 or newer",),
        notes="Imports are not followed, so third-party stubs are not required.",
    )
    supports_incremental = True
    default_confidence = Confidence.HIGH
    markers = PYTHON_MARKERS
    uses_file_list = True
    default_batch_size = 20
    option_types = {"strict": bool, "python_version": str, "disable_error_codes": list, "enable_error_codes": list}

    def check_options(self, tool_options: Mapping[str, Any]) -> None:
        super().check_options(tool_options)
        version = tool_options.get("python_version")
        if version is not None and not _PYTHON_VERSION.match(version):
            raise InputValidationError(ErrorKind.UNKNOWN_OPTION, f"{self.name}: invalid python_version {version!r}")
        for key in ("disable_error_codes", "enable_error_codes"):
            _string_list(self.name, key, tool_options.get(key, ()), _MYPY_CODE)

    def _config(self, ctx: AnalysisContext) -> str:
        lines = [
            "[mypy]",
            "follow_imports = skip",
            "ignore_missing_imports = True",
            "check_untyped_defs = True",
            "warn_unreachable = True",
            f"cache_dir = {ctx.scratch / 'mypy-cache'}",
        ]
        version = ctx.tool_options.get("python_version")
        if version:
            lines.append(f"python_version = {version}")
        return "\n".join(lines) + "\n"

    def build_invocations(self, ctx: AnalysisContext) -> Sequence[Invocation]:
        config = scratch_file(ctx, "mypy.ini", self._config(ctx))
        head = [
            "--config-file",
            str(config),
            "--show-error-codes",
            "--show-column-numbers",
            "--no-error-summary",
            "--no-color-output",
        ]
        if ctx.tool_options.get("strict"):
            head.append("--strict")
        for code in ctx.tool_options.get("disable_error_codes", ()):
            head.extend(["--disable-error-code", code])
        for code in ctx.tool_options.get("enable_error_codes", ()):
            head.extend(["--enable-error-code", code])
        return [
            Invocation(argv=(*head, *(str(path) for path in batch)), cwd=ctx.tool_root, files=batch)
            for batch in ctx.batches(self.default_batch_size)
        ]

    def parse_output(self, output: ToolOutput, ctx: AnalysisContext, parse_ctx: ParseContext) -> Sequence[RawIssue]:
        return TextParser(parse_mypy).parse(output.stdout, output.stderr, context=parse_ctx)


__all__ = ["MypyAdapter", "PylintAdapter"]
