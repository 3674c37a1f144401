# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Adapters for C and C++ analyzers (Clang Static Analyzer, Valgrind memcheck)."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Final

from ..constants import LANGUAGE_EXTENSIONS
from ..core.models import RawIssue
from ..core.severity import Confidence
from ..errors import ErrorKind, InputValidationError, ParsingError
from ..execution import SandboxPolicy
from ..languages import Language, language_for_path
from ..parsers.base import ParseContext, XmlParser
from ..parsers.cpp import parse_clang_plist, parse_valgrind_xml
from ..validation import PathKind, PathPolicy, validate_path
from .base import AdapterSkipped, AnalysisContext, InstallHint, Invocation, ToolAdapter, ToolOutput

LOGGER = logging.getLogger(__name__)

HEADER_EXTENSIONS: Final[frozenset[str]] = frozenset({".h", ".hh", ".hpp", ".hxx"})

CLANG_CHECKERS: Final[str] = "core,deadcode,security,unix,cplusplus"
DEFAULT_C_STANDARD: Final[str] = "c11"
DEFAULT_CPP_STANDARD: Final[str] = "c++17"
_STANDARDS: Final[frozenset[str]] = frozenset(
    {"c89", "c99", "c11", "c17", "c2x", "gnu99", "gnu11", "gnu17", "c++11", "c++14", "c++17", "c++20", "c++23"},
)


def _stamp_ecosystem(issues: Sequence[RawIssue], fallback: Language) -> Sequence[RawIssue]:
    for issue in issues:
        if issue.file is not None:
            issue.ecosystem = (language_for_path(issue.file, fallback) or fallback).ecosystem
    return issues


def _relative_directory(raw: str, root: Path) -> Path:
    candidate = Path(raw)
    if not candidate.is_absolute():
        candidate = root / candidate
    policy = PathPolicy(kind=PathKind.DIRECTORY, root=root, deny_dirs=frozenset())
    return validate_path(candidate, policy).canonical


class ClangAnalyzerAdapter(ToolAdapter):
    """Path-sensitive Clang Static Analyzer run file by file.

    Every source file gets its own invocation writing its own plist, so the
    ``batch_size`` option does not apply here.
    """

    name = "clang-static-analyzer"
    languages = (Language.C, Language.CPP)
    tool_category = "cpp_static_analysis"
    policy = SandboxPolicy(command="clang")
    install = InstallHint(
        steps=("apt-get install clang", "brew install llvm"),
        requirements=("clang 9 or newer with the static analyzer",),
        notes=(
            "Each source file runs as its own clang invocation and batch_size is ignored; "
            "include paths come from the include_dirs option."
        ),
    )
    supported_formats = ("plist",)
    default_confidence = Confidence.MEDIUM
    uses_file_list = True
    minimum_version = "9.0.0"
    option_types = {"std_c": str, "std_cpp": str, "include_dirs": list, "defines": list}

    @property
    def extensions(self) -> frozenset[str]:
        sources: set[str] = set()
        for language in self.languages:
            sources.update(LANGUAGE_EXTENSIONS[language.value])
        return frozenset(sources - HEADER_EXTENSIONS)

    def check_options(self, tool_options: Mapping[str, Any]) -> None:
        super().check_options(tool_options)
        for key in ("std_c", "std_cpp"):
            value = tool_options.get(key)
            if value is not None and value not in _STANDARDS:
                raise InputValidationError(ErrorKind.UNKNOWN_OPTION, f"{self.name}: unsupported {key} {value!r}")
        for define in tool_options.get("defines", ()):
            if not isinstance(define, str) or not define.replace("_", "").replace("=", "").isalnum():
                raise InputValidationError(ErrorKind.UNKNOWN_OPTION, f"{self.name}: invalid define {define!r}")

    def _common_flags(self, ctx: AnalysisContext) -> list[str]:
        flags = [
            "--analyze",
            "--analyzer-output=plist-multi-file",
            "-Xanalyzer",
            f"-analyzer-checker={CLANG_CHECKERS}",
            "-w",
        ]
        for raw in ctx.tool_options.get("include_dirs", ()):
            flags.append(f"-I{_relative_directory(str(raw), ctx.project_root)}")
        flags.extend(f"-D{define}" for define in ctx.tool_options.get("defines", ()))
        return flags

    def _standard(self, path: Path, ctx: AnalysisContext) -> str:
        if language_for_path(path) is Language.CPP:
            return str(ctx.tool_options.get("std_cpp", DEFAULT_CPP_STANDARD))
        return str(ctx.tool_options.get("std_c", DEFAULT_C_STANDARD))

    def build_invocations(self, ctx: AnalysisContext) -> Sequence[Invocation]:
        common = self._common_flags(ctx)
        invocations: list[Invocation] = []
        for index, path in enumerate(ctx.files):
            artifact = ctx.scratch / f"{index:05d}.plist"
            argv = (*common, f"-std={self._standard(path, ctx)}", "-o", str(artifact), str(path))
            invocations.append(Invocation(argv=argv, cwd=ctx.tool_root, artifact=artifact, files=(path,)))
        return invocations

    def exit_ok(self, output: ToolOutput, issues: Sequence[RawIssue]) -> bool:
        return True

    def parse_output(self, output: ToolOutput, ctx: AnalysisContext, parse_ctx: ParseContext) -> Sequence[RawIssue]:
        if output.artifact_text is None:
            # A translation unit that fails to compile leaves no report behind.
            source = output.invocation.files[0].name if output.invocation.files else "input"
            ctx.failed_invocations += 1
            ctx.warnings.append(f"clang could not analyse {source} (exit {output.result.exit_code})")
            LOGGER.warning("%s: no report for %s", self.name, source)
            return []
        issues = XmlParser(parse_clang_plist).parse(output.artifact_text, output.stderr, context=parse_ctx)
        return _stamp_ecosystem(issues, ctx.language)


class ValgrindAdapter(ToolAdapter):
    """Valgrind memcheck run against a prebuilt executable."""

    name = "valgrind"
    languages = (Language.C, Language.CPP)
    tool_category = "cpp_memory_analysis"
    policy = SandboxPolicy(command="valgrind", env_passthrough=("HOME",))
    install = InstallHint(
        steps=("apt-get install valgrind",),
        requirements=("Linux or an older macOS release supported by Valgrind", "a debug build of the program"),
        notes="Set the 'executable' tool option to a binary under the project root; 'args' are passed through.",
    )
    supported_formats = ("xml",)
    requires_build = True
    default_confidence = Confidence.HIGH
    option_types = {"executable": str, "args": list}

    def check_options(self, tool_options: Mapping[str, Any]) -> None:
        super().check_options(tool_options)
        if not all(isinstance(arg, str) for arg in tool_options.get("args", ())):
            raise InputValidationError(ErrorKind.UNKNOWN_OPTION, f"{self.name}: args must be strings")

    def executable(self, ctx: AnalysisContext) -> Path:
        """Return the validated program valgrind should run.

        Raises:
            AdapterSkipped: When no executable is configured.
            InputValidationError: When the executable is outside the root or not runnable.
        """

        raw = ctx.tool_options.get("executable")
        if not raw:
            raise AdapterSkipped("valgrind needs the 'executable' tool option naming a built program")
        candidate = Path(raw)
        if not candidate.is_absolute():
            candidate = ctx.project_root / candidate
        # Build outputs usually live in denied directories such as build/ or target/.
        policy = PathPolicy(kind=PathKind.FILE, root=ctx.project_root, deny_dirs=frozenset())
        program = validate_path(candidate, policy).canonical
        if not os.access(program, os.X_OK):
            raise InputValidationError(ErrorKind.BLOCKED_PATH, f"{program} is not executable")
        return program

    def build_invocations(self, ctx: AnalysisContext) -> Sequence[Invocation]:
        program = self.executable(ctx)
        report = ctx.scratch / "memcheck.xml"
        argv = (
            "--tool=memcheck",
            "--leak-check=full",
            "--show-leak-kinds=all",
            "--track-origins=yes",
            "--child-silent-after-fork=yes",
            "--xml=yes",
            f"--xml-file={report}",
            str(program),
            *(str(arg) for arg in ctx.tool_options.get("args", ())),
        )
        return [Invocation(argv=argv, cwd=ctx.project_root, artifact=report, files=(program,))]

    def exit_ok(self, output: ToolOutput, issues: Sequence[RawIssue]) -> bool:
        # The exit status is the program's own; a written report is what counts.
        return output.artifact_text is not None

    def parse_output(self, output: ToolOutput, ctx: AnalysisContext, parse_ctx: ParseContext) -> Sequence[RawIssue]:
        if output.artifact_text is None:
            raise ParsingError(ErrorKind.UNPARSEABLE_OUTPUT, "valgrind wrote no XML report")
        issues = XmlParser(parse_valgrind_xml).parse(output.artifact_text, output.stderr, context=parse_ctx)
        return _stamp_ecosystem(issues, ctx.language)


__all__ = ["ClangAnalyzerAdapter", "ValgrindAdapter"]
