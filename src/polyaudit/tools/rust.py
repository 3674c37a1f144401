# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Adapters for Rust analyzers run through cargo (clippy, cargo-audit)."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Final

from ..core.models import RawIssue
from ..core.severity import Confidence
from ..execution import SandboxPolicy
from ..languages import Language
from ..parsers.base import JsonLinesParser, JsonParser, ParseContext
from ..parsers.rust import CLIPPY_LINT, parse_cargo_audit, parse_clippy
from .base import AnalysisContext, InstallHint, Invocation, ToolAdapter, ToolOutput

CARGO_ENV_PASSTHROUGH: Final[tuple[str, ...]] = ("HOME", "CARGO_HOME", "RUSTUP_HOME", "RUSTUP_TOOLCHAIN")

_RUSTSEC_ID: Final[re.Pattern[str]] = re.compile(r"^RUSTSEC-\d{4}-\d{4}$")


class ClippyAdapter(ToolAdapter):
    """Rust lint collection driven by ``cargo clippy``."""

    name = "clippy"
    languages = (Language.RUST,)
    tool_category = "rust_static_analysis"
    policy = SandboxPolicy(command="cargo", argv_prefix=("clippy",), env_passthrough=CARGO_ENV_PASSTHROUGH)
    install = InstallHint(
        steps=("rustup component add clippy",),
        requirements=("rustup-managed Rust toolchain",),
        notes="clippy compiles the crate, so build dependencies must be fetchable.",
    )
    requires_build = True
    supports_incremental = True
    default_confidence = Confidence.MEDIUM
    markers = frozenset({"Cargo.toml"})
    search_parents = True
    option_types = {"all_targets": bool, "all_features": bool}

    def build_invocations(self, ctx: AnalysisContext) -> Sequence[Invocation]:
        argv = ["--message-format=json"]
        if ctx.tool_options.get("all_targets", ctx.options.include_tests):
            argv.append("--all-targets")
        if ctx.tool_options.get("all_features"):
            argv.append("--all-features")
        argv.extend(["--", "-W", "clippy::all"])
        for rule in ctx.options.include_rules:
            if CLIPPY_LINT.match(rule):
                argv.extend(["-W", rule])
        for rule in ctx.options.exclude_rules:
            if CLIPPY_LINT.match(rule):
                argv.extend(["-A", rule])
        return [Invocation(argv=tuple(argv), cwd=ctx.tool_root)]

    def parse_output(self, output: ToolOutput, ctx: AnalysisContext, parse_ctx: ParseContext) -> Sequence[RawIssue]:
        return JsonLinesParser(parse_clippy).parse(output.stdout, output.stderr, context=parse_ctx)


class CargoAuditAdapter(ToolAdapter):
    """RustSec advisory audit of ``Cargo.lock``."""

    name = "cargo-audit"
    languages = (Language.RUST,)
    tool_category = "rust_dependency_audit"
    policy = SandboxPolicy(command="cargo", argv_prefix=("audit",), env_passthrough=CARGO_ENV_PASSTHROUGH)
    install = InstallHint(
        steps=("cargo install cargo-audit --locked",),
        requirements=("Rust toolchain", "network access to fetch the RustSec advisory database"),
        notes="Findings point at Cargo.lock line 1; lockfiles carry no per-package line numbers.",
    )
    default_confidence = Confidence.HIGH
    markers = frozenset({"Cargo.lock"})
    search_parents = True
    option_types = {"no_fetch": bool, "stale": bool}

    def build_invocations(self, ctx: AnalysisContext) -> Sequence[Invocation]:
        argv = ["--json", "--file", str(ctx.tool_root / "Cargo.lock")]
        if ctx.tool_options.get("no_fetch"):
            argv.append("--no-fetch")
        if ctx.tool_options.get("stale"):
            argv.append("--stale")
        for rule in ctx.options.exclude_rules:
            if _RUSTSEC_ID.match(rule):
                argv.extend(["--ignore", rule])
        return [Invocation(argv=tuple(argv), cwd=ctx.tool_root)]

    def parse_output(self, output: ToolOutput, ctx: AnalysisContext, parse_ctx: ParseContext) -> Sequence[RawIssue]:
        return JsonParser(parse_cargo_audit).parse(output.stdout, output.stderr, context=parse_ctx)


__all__ = ["CargoAuditAdapter", "ClippyAdapter"]
