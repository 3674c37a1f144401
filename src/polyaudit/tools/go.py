# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Adapters for Go analyzers (gosec, staticcheck)."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any, Final

from ..core.models import RawIssue
from ..core.severity import Confidence
from ..errors import ErrorKind, InputValidationError
from ..execution import SandboxPolicy
from ..languages import Language
from ..parsers.base import JsonLinesParser, JsonParser, ParseContext
from ..parsers.go import parse_gosec, parse_staticcheck
from .base import AnalysisContext, InstallHint, Invocation, ToolAdapter, ToolOutput

GO_ENV_PASSTHROUGH: Final[tuple[str, ...]] = ("HOME", "GOPATH", "GOROOT", "GOCACHE", "GOMODCACHE", "GOFLAGS")
GO_MARKERS: Final[frozenset[str]] = frozenset({"go.mod"})

_GOSEC_RULE: Final[re.Pattern[str]] = re.compile(r"^G\d{3}$")
_STATICCHECK_RULE: Final[re.Pattern[str]] = re.compile(r"^(SA|S|ST|QF|U)\d{4}$")
_GOSEC_CONFIDENCE: Final[frozenset[str]] = frozenset({"low", "medium", "high"})

STATICCHECK_DEFAULT_CHECKS: Final[tuple[str, ...]] = ("all", "-SA9003", "-ST1000")


def package_pattern(ctx: AnalysisContext) -> str:
    """Return the ``./...`` pattern selecting the project root from the module root."""

    relative = ctx.project_root.relative_to(ctx.tool_root)
    if not relative.parts:
        return "./..."
    return f"./{relative.as_posix()}/..."


class GosecAdapter(ToolAdapter):
    """Security scanner for Go modules."""

    name = "gosec"
    languages = (Language.GO,)
    tool_category = "go_security_analysis"
    policy = SandboxPolicy(command="gosec", env_passthrough=GO_ENV_PASSTHROUGH)
    install = InstallHint(
        steps=("go install github.com/securego/gosec/v2/cmd/gosec@latest",),
        requirements=("Go toolchain 1.20 or newer", "$GOPATH/bin on PATH"),
        notes="gosec loads packages through the Go toolchain, so the module must resolve its dependencies.",
    )
    default_confidence = Confidence.MEDIUM
    markers = GO_MARKERS
    search_parents = True
    option_types = {"confidence": str, "exclude_generated": bool}
    version_argv = ("-version",)

    def check_options(self, tool_options: Mapping[str, Any]) -> None:
        super().check_options(tool_options)
        confidence = tool_options.get("confidence")
        if confidence is not None and confidence.lower() not in _GOSEC_CONFIDENCE:
            raise InputValidationError(ErrorKind.UNKNOWN_OPTION, f"gosec: invalid confidence {confidence!r}")

    def build_invocations(self, ctx: AnalysisContext) -> Sequence[Invocation]:
        argv = ["-fmt=json", "-sort", "-quiet"]
        include = [rule for rule in ctx.options.include_rules if _GOSEC_RULE.match(rule)]
        exclude = [rule for rule in ctx.options.exclude_rules if _GOSEC_RULE.match(rule)]
        if include:
            argv.append(f"-include={','.join(include)}")
        if exclude:
            argv.append(f"-exclude={','.join(exclude)}")
        confidence = ctx.tool_options.get("confidence")
        if confidence is not None:
            argv.append(f"-confidence={confidence.lower()}")
        if ctx.tool_options.get("exclude_generated"):
            argv.append("-exclude-generated")
        if ctx.options.include_tests:
            argv.append("-tests")
        argv.append(package_pattern(ctx))
        return [Invocation(argv=tuple(argv), cwd=ctx.tool_root)]

    def parse_output(self, output: ToolOutput, ctx: AnalysisContext, parse_ctx: ParseContext) -> Sequence[RawIssue]:
        return JsonParser(parse_gosec).parse(output.stdout, output.stderr, context=parse_ctx)


class StaticcheckAdapter(ToolAdapter):
    """General-purpose Go linter covering correctness, simplifications, and unused code."""

    name = "staticcheck"
    languages = (Language.GO,)
    tool_category = "go_static_analysis"
    policy = SandboxPolicy(command="staticcheck", env_passthrough=GO_ENV_PASSTHROUGH)
    install = InstallHint(
        steps=("go install honnef.co/go/tools/cmd/staticcheck@latest",),
        requirements=("Go toolchain matching the module's go directive",),
    )
    default_confidence = Confidence.MEDIUM
    markers = GO_MARKERS
    search_parents = True
    option_types = {"unused_only": bool}
    version_argv = ("-version",)

    def checks(self, ctx: AnalysisContext) -> str:
        """Return the ``-checks`` value for ``ctx``.

        Only complete check identifiers are passed natively; prefixes such as
        ``SA1`` are left to the post-run rule filter.
        """

        if ctx.tool_options.get("unused_only"):
            return "U1000"
        include = [rule for rule in ctx.options.include_rules if _STATICCHECK_RULE.match(rule)]
        selected = include or list(STATICCHECK_DEFAULT_CHECKS)
        selected.extend(f"-{rule}" for rule in ctx.options.exclude_rules if _STATICCHECK_RULE.match(rule))
        return ",".join(selected)

    def build_invocations(self, ctx: AnalysisContext) -> Sequence[Invocation]:
        argv = ["-f", "json", "-checks", self.checks(ctx)]
        if not ctx.options.include_tests:
            argv.append("-tests=false")
        argv.append(package_pattern(ctx))
        return [Invocation(argv=tuple(argv), cwd=ctx.tool_root)]

    def parse_output(self, output: ToolOutput, ctx: AnalysisContext, parse_ctx: ParseContext) -> Sequence[RawIssue]:
        return JsonLinesParser(parse_staticcheck).parse(output.stdout, output.stderr, context=parse_ctx)


__all__ = ["GosecAdapter", "StaticcheckAdapter", "package_pattern"]
