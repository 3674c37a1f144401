# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Adapter contract shared by every analyzer integration.

Each adapter owns one external tool. :meth:`ToolAdapter.analyze` drives a
fixed template (locate the project root, validate inputs, build argument
vectors, run the tool through the sandbox, parse, normalise) and converts any
typed failure into an error report so sibling adapters are unaffected.
"""

from __future__ import annotations

import logging
import tempfile
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Final

from ..config import LanguageOptions, ResourceLimits
from ..constants import DEFAULT_PROBE_TIMEOUT_MS, DENY_DIRS, LANGUAGE_EXTENSIONS
from ..correlation import annotate_all
from ..core.models import RawIssue, SearchRadius, ToolReport
from ..core.severity import Confidence
from ..discovery import DiscoveryOptions, DiscoveryResult, FilesystemDiscovery
from ..errors import (
    ErrorKind,
    ExecutionError,
    InputValidationError,
    ParsingError,
    PolyauditError,
    ToolEnvironmentError,
)
from ..execution import BoundRunner, CancellationToken, ProcessResult, ProcessRunner, RunOptions, SandboxPolicy
from ..languages import Language, find_marker_root
from ..normalize import NormalizationProfile, normalize_issues
from ..parsers.base import ParseContext
from ..reporting import build_error_report, build_skipped_report, build_tool_report, utc_now
from ..versioning import VersionResolver

LOGGER = logging.getLogger(__name__)

_PROBE_OUTPUT_BYTES: Final[int] = 64 * 1024
_STDERR_TAIL: Final[int] = 400


class AdapterState(str, Enum):
    """Phases of a single adapter invocation."""

    IDLE = "idle"
    PROBING = "probing"
    PROBED = "probed"
    VALIDATING_INPUTS = "validating-inputs"
    RUNNING = "running"
    PARSING = "parsing"
    NORMALIZING = "normalizing"
    DONE = "done"
    FAILED = "failed"


# Batched tools loop Running -> Parsing -> Running; an adapter with nothing to
# analyse moves from validation straight to normalisation or completion.
_TRANSITIONS: Final[dict[AdapterState, frozenset[AdapterState]]] = {
    AdapterState.IDLE: frozenset({AdapterState.PROBING}),
    AdapterState.PROBING: frozenset({AdapterState.PROBED}),
    AdapterState.PROBED: frozenset({AdapterState.VALIDATING_INPUTS}),
    AdapterState.VALIDATING_INPUTS: frozenset({AdapterState.RUNNING, AdapterState.NORMALIZING, AdapterState.DONE}),
    AdapterState.RUNNING: frozenset({AdapterState.PARSING}),
    AdapterState.PARSING: frozenset({AdapterState.RUNNING, AdapterState.NORMALIZING}),
    AdapterState.NORMALIZING: frozenset({AdapterState.DONE}),
    AdapterState.DONE: frozenset(),
    AdapterState.FAILED: frozenset(),
}


@dataclass(slots=True)
class AdapterRun:
    """Track and enforce the state machine of one invocation."""

    tool: str
    state: AdapterState = AdapterState.IDLE
    history: list[AdapterState] = field(default_factory=lambda: [AdapterState.IDLE])

    def advance(self, target: AdapterState) -> None:
        """Move to ``target``.

        Raises:
            RuntimeError: When the transition is not part of the template.
        """

        if target is not AdapterState.FAILED and target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"{self.tool}: illegal transition {self.state.value} -> {target.value}")
        if target is AdapterState.FAILED and self.state in {AdapterState.DONE, AdapterState.FAILED}:
            raise RuntimeError(f"{self.tool}: cannot fail after reaching {self.state.value}")
        LOGGER.debug("%s: %s -> %s", self.tool, self.state.value, target.value)
        self.state = target
        self.history.append(target)

    def fail(self) -> None:
        """Move to :attr:`AdapterState.FAILED`."""

        self.advance(AdapterState.FAILED)


@dataclass(frozen=True, slots=True)
class ProbeResult:
    """Outcome of an availability probe."""

    available: bool
    version: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    def raise_for_status(self, tool: str) -> None:
        """Raise :class:`ToolEnvironmentError` when the tool is unusable."""

        if self.available:
            return
        kind = self.error_kind or ErrorKind.TOOL_UNAVAILABLE
        detail = self.error or f"{tool} is not available"
        # Probe errors are stored pre-formatted as "<Kind>: <detail>".
        prefix = f"{kind.value}: "
        raise ToolEnvironmentError(kind, detail.removeprefix(prefix))


@dataclass(frozen=True, slots=True)
class Capabilities:
    """Declarative description of what an adapter supports."""

    supported_languages: tuple[str, ...]
    supported_formats: tuple[str, ...]
    requires_build: bool = False
    supports_incremental: bool = False


@dataclass(frozen=True, slots=True)
class InstallHint:
    """Static installation guidance for a tool."""

    steps: tuple[str, ...]
    requirements: tuple[str, ...] = ()
    notes: str = ""


@dataclass(frozen=True, slots=True)
class Invocation:
    """One planned execution of the tool.

    Attributes:
        argv: Arguments appended after the policy's fixed prefix.
        cwd: Canonical working directory.
        artifact: File the tool writes its report to instead of stdout.
        files: Source files covered by this invocation.
    """

    argv: tuple[str, ...]
    cwd: Path
    artifact: Path | None = None
    files: tuple[Path, ...] = ()


@dataclass(frozen=True, slots=True)
class ToolOutput:
    """Captured result of one :class:`Invocation`."""

    invocation: Invocation
    result: ProcessResult
    artifact_text: str | None = None

    @property
    def stdout(self) -> str:
        """Return decoded standard output."""

        return self.result.stdout_text()

    @property
    def stderr(self) -> str:
        """Return decoded standard error."""

        return self.result.stderr_text()

    @property
    def document(self) -> str:
        """Return the artifact text when present, otherwise stdout."""

        return self.artifact_text if self.artifact_text is not None else self.stdout


@dataclass(slots=True)
class AnalysisContext:
    """Mutable state of one :meth:`ToolAdapter.analyze` call."""

    project_root: Path
    tool_root: Path
    language: Language
    options: LanguageOptions
    tool_options: Mapping[str, Any]
    limits: ResourceLimits
    scratch: Path
    deadline: float
    cancel: CancellationToken | None = None
    version: str | None = None
    files: tuple[Path, ...] = ()
    warnings: list[str] = field(default_factory=list)
    failed_invocations: int = 0

    def remaining_ms(self) -> int:
        """Return the milliseconds left before the adapter-wide deadline."""

        return int((self.deadline - time.monotonic()) * 1000)

    def batch_size(self, default: int | None) -> int | None:
        """Return the configured batch size, falling back to ``default``."""

        return self.options.batch_size or default

    def batches(self, default: int | None) -> list[tuple[Path, ...]]:
        """Split :attr:`files` into sequential batches."""

        size = self.batch_size(default)
        if not self.files:
            return []
        if size is None:
            return [self.files]
        return [self.files[index : index + size] for index in range(0, len(self.files), size)]


class AdapterSkipped(Exception):
    """Raised by an adapter that has nothing to analyse under its options."""


class ToolAdapter(ABC):
    """Base class for analyzer adapters.

    Subclasses declare their identity and sandbox policy as class attributes
    and implement :meth:`build_invocations` and :meth:`parse_output`.
    """

    name: ClassVar[str]
    languages: ClassVar[tuple[Language, ...]]
    tool_category: ClassVar[str]
    policy: ClassVar[SandboxPolicy]
    install: ClassVar[InstallHint]
    supported_formats: ClassVar[tuple[str, ...]] = ("json",)
    requires_build: ClassVar[bool] = False
    supports_incremental: ClassVar[bool] = False
    default_confidence: ClassVar[Confidence] = Confidence.MEDIUM
    markers: ClassVar[frozenset[str]] = frozenset()
    search_parents: ClassVar[bool] = False
    uses_file_list: ClassVar[bool] = False
    default_batch_size: ClassVar[int | None] = None
    option_types: ClassVar[Mapping[str, type | tuple[type, ...]]] = {}
    version_argv: ClassVar[tuple[str, ...]] = ("--version",)
    minimum_version: ClassVar[str | None] = None
    clean_exit_codes: ClassVar[frozenset[int]] = frozenset({0})
    search_radius: ClassVar[SearchRadius] = SearchRadius()

    def __init__(self, runner: ProcessRunner | None = None, *, versions: VersionResolver | None = None) -> None:
        """Bind the adapter's sandbox policy to ``runner``.

        Args:
            runner: Shared process runner; a default runner is created when omitted.
            versions: Version resolver used by :meth:`probe`.
        """

        self._runner = BoundRunner(self.policy, runner or ProcessRunner())
        self._versions = versions or VersionResolver()

    @property
    def runner(self) -> BoundRunner:
        """Return the runner bound to this adapter's policy."""

        return self._runner

    @property
    def extensions(self) -> frozenset[str]:
        """Return the source suffixes this adapter analyses."""

        suffixes: set[str] = set()
        for language in self.languages:
            suffixes.update(LANGUAGE_EXTENSIONS[language.value])
        return frozenset(suffixes)

    def capabilities(self) -> Capabilities:
        """Return the adapter's declarative capabilities without any I/O."""

        return Capabilities(
            supported_languages=tuple(language.value for language in self.languages),
            supported_formats=self.supported_formats,
            requires_build=self.requires_build,
            supports_incremental=self.supports_incremental,
        )

    def install_hint(self) -> InstallHint:
        """Return static installation guidance."""

        return self.install

    def probe(self) -> ProbeResult:
        """Check that the tool runs and report its version.

        The probe runs the version command from the system temporary directory
        with a short deadline. It never raises.
        """

        options = RunOptions(
            cwd=Path(tempfile.gettempdir()).resolve(),
            timeout_ms=DEFAULT_PROBE_TIMEOUT_MS,
            max_output_bytes=_PROBE_OUTPUT_BYTES,
        )
        try:
            result = self._runner.run(self.version_argv, options)
        except PolyauditError as exc:
            return ProbeResult(available=False, error=exc.message, error_kind=exc.kind)
        if result.timed_out:
            return self._unavailable(f"{self.name} version probe exceeded {DEFAULT_PROBE_TIMEOUT_MS} ms")
        if result.exit_code != 0:
            return self._unavailable(f"{self.name} version probe exited with {result.exit_code}")
        version = self._versions.extract(result.stdout_text()) or self._versions.extract(result.stderr_text())
        if self.minimum_version is not None and not self._versions.is_compatible(version, self.minimum_version):
            error = ToolEnvironmentError(
                ErrorKind.TOOL_VERSION_UNSUPPORTED,
                f"{self.name} {version or 'unknown'} is older than {self.minimum_version}",
            )
            return ProbeResult(available=False, version=version, error=error.message, error_kind=error.kind)
        return ProbeResult(available=True, version=version)

    def _unavailable(self, detail: str) -> ProbeResult:
        error = ToolEnvironmentError(ErrorKind.TOOL_UNAVAILABLE, detail)
        return ProbeResult(available=False, error=error.message, error_kind=error.kind)

    def check_options(self, tool_options: Mapping[str, Any]) -> None:
        """Reject unknown or mistyped tool-specific options.

        Raises:
            InputValidationError: ``UnknownOption`` for any offending key.
        """

        for key, value in tool_options.items():
            expected = self.option_types.get(key)
            if expected is None:
                raise InputValidationError(ErrorKind.UNKNOWN_OPTION, f"{self.name}: unknown option {key!r}")
            if isinstance(value, bool) and bool not in _as_tuple(expected):
                raise InputValidationError(ErrorKind.UNKNOWN_OPTION, f"{self.name}: invalid value for {key!r}")
            if not isinstance(value, expected):
                raise InputValidationError(ErrorKind.UNKNOWN_OPTION, f"{self.name}: invalid value for {key!r}")

    def locate_root(self, project_root: Path, limits: ResourceLimits) -> Path:
        """Return the directory the tool should run in.

        Adapters with ``search_parents`` walk upward from ``project_root`` for a
        marker. Others accept the root when it holds a marker or any source
        file with one of :attr:`extensions`.

        Raises:
            InputValidationError: ``ProjectNotFound`` when no root qualifies.
        """

        if self.search_parents:
            found = find_marker_root(project_root, self.markers)
            if found is None:
                raise InputValidationError(
                    ErrorKind.PROJECT_NOT_FOUND,
                    f"{self.name}: none of {sorted(self.markers)} found at or above {project_root}",
                )
            return found
        if any((project_root / marker).is_file() for marker in self.markers):
            return project_root
        probe = FilesystemDiscovery().discover(
            project_root,
            DiscoveryOptions(extensions=self.extensions, max_files=1, max_depth=limits.max_depth),
        )
        if probe.paths:
            return project_root
        raise InputValidationError(ErrorKind.PROJECT_NOT_FOUND, f"{self.name}: no sources under {project_root}")

    def collect_files(self, ctx: AnalysisContext) -> DiscoveryResult:
        """Discover the source files this adapter passes to its tool."""

        options = DiscoveryOptions(
            extensions=self.extensions,
            max_files=ctx.limits.max_files,
            max_depth=ctx.limits.max_depth,
            deny_dirs=DENY_DIRS,
            max_file_bytes=ctx.limits.max_file_bytes,
            max_aggregate_bytes=ctx.limits.max_aggregate_bytes,
            include_tests=ctx.options.include_tests,
        )
        return FilesystemDiscovery().discover(ctx.project_root, options)

    @abstractmethod
    def build_invocations(self, ctx: AnalysisContext) -> Sequence[Invocation]:
        """Return the invocations to run sequentially for ``ctx``."""

    @abstractmethod
    def parse_output(self, output: ToolOutput, ctx: AnalysisContext, parse_ctx: ParseContext) -> Sequence[RawIssue]:
        """Return raw issues decoded from one invocation's output."""

    def exit_ok(self, output: ToolOutput, issues: Sequence[RawIssue]) -> bool:
        """Return ``True`` when the exit status is consistent with ``issues``.

        Most analyzers exit non-zero exactly when they report findings, so a
        non-zero status is accepted as long as something was parsed.
        """

        return output.result.exit_code in self.clean_exit_codes or bool(issues)

    def execute(self, invocation: Invocation, ctx: AnalysisContext) -> ToolOutput:
        """Run ``invocation`` within the remaining adapter budget.

        Raises:
            ExecutionError: On timeout, output overflow, or cancellation.
        """

        if ctx.cancel is not None and ctx.cancel.cancelled:
            raise ExecutionError(ErrorKind.CANCELLED, f"{self.name} cancelled before start")
        remaining = ctx.remaining_ms()
        if remaining <= 0:
            raise ExecutionError(ErrorKind.TIMEOUT, f"{self.name} exceeded {ctx.options.timeout_ms} ms")
        result = self._runner.run(
            invocation.argv,
            RunOptions(
                cwd=invocation.cwd,
                timeout_ms=remaining,
                max_output_bytes=ctx.limits.max_output_bytes,
                grace_period_ms=ctx.limits.grace_period_ms,
                cancel=ctx.cancel,
            ),
        )
        if result.timed_out:
            raise ExecutionError(ErrorKind.TIMEOUT, f"{self.name} exceeded {ctx.options.timeout_ms} ms")
        if result.overflowed:
            raise ExecutionError(
                ErrorKind.OUTPUT_OVERFLOW,
                f"{self.name} output reached the {ctx.limits.max_output_bytes} byte cap",
            )
        if result.cancelled:
            raise ExecutionError(ErrorKind.CANCELLED, f"{self.name} cancelled")
        return ToolOutput(invocation=invocation, result=result, artifact_text=self._read_artifact(invocation, ctx))

    def _read_artifact(self, invocation: Invocation, ctx: AnalysisContext) -> str | None:
        artifact = invocation.artifact
        if artifact is None or not artifact.is_file():
            return None
        if artifact.stat().st_size >= ctx.limits.max_output_bytes:
            raise ExecutionError(
                ErrorKind.OUTPUT_OVERFLOW,
                f"{self.name} report {artifact.name} reached the {ctx.limits.max_output_bytes} byte cap",
            )
        return artifact.read_text(encoding="utf-8", errors="replace")

    def _parse_checked(
        self,
        output: ToolOutput,
        ctx: AnalysisContext,
        parse_ctx: ParseContext,
    ) -> Sequence[RawIssue]:
        code = output.result.exit_code
        try:
            issues = self.parse_output(output, ctx, parse_ctx)
        except ParsingError as exc:
            if code in self.clean_exit_codes:
                raise
            raise ExecutionError(ErrorKind.NON_ZERO_EXIT, f"{self.name} exited with {code}: {exc.detail}") from exc
        if not self.exit_ok(output, issues):
            tail = output.stderr.strip()[-_STDERR_TAIL:]
            detail = f"{self.name} exited with {code}"
            raise ExecutionError(ErrorKind.NON_ZERO_EXIT, f"{detail}: {tail}" if tail else detail)
        return issues

    def analyze(
        self,
        project_root: Path,
        options: LanguageOptions | None = None,
        *,
        language: Language | None = None,
        limits: ResourceLimits | None = None,
        tool_options: Mapping[str, Any] | None = None,
        cancel: CancellationToken | None = None,
        probe_result: ProbeResult | None = None,
    ) -> ToolReport:
        """Run the tool against ``project_root`` and return its report.

        Args:
            project_root: Declared project root.
            options: Options of the language the adapter runs under.
            language: Language the run is attributed to; defaults to the first supported.
            limits: Resource limits; defaults apply when omitted.
            tool_options: Tool-specific options; defaults to ``options.tool_options[name]``.
            cancel: Run-wide cancellation token.
            probe_result: Cached probe outcome; the tool is probed when omitted.

        Returns:
            ToolReport: ``ok`` with issues, ``skipped`` or ``error`` with no issues.
        """

        language = language or self.languages[0]
        options = options or LanguageOptions()
        limits = limits or ResourceLimits()
        extra = dict(tool_options if tool_options is not None else options.options_for(self.name))
        started_at = utc_now()
        deadline = time.monotonic() + options.timeout_ms / 1000
        run = AdapterRun(self.name)
        version: str | None = None
        files_analyzed = 0
        warnings: list[str] = []
        parse_ctx = ParseContext(tool=self.name, root=project_root)
        common = {"tool": self.name, "language": language.value, "target": project_root, "started_at": started_at}

        try:
            run.advance(AdapterState.PROBING)
            probe = probe_result or self.probe()
            version = probe.version
            probe.raise_for_status(self.name)
            run.advance(AdapterState.PROBED)

            run.advance(AdapterState.VALIDATING_INPUTS)
            self.check_options(extra)
            tool_root = self.locate_root(project_root, limits)
            parse_ctx.root = tool_root
            with tempfile.TemporaryDirectory(prefix=f"polyaudit-{self.name}-") as scratch:
                ctx = AnalysisContext(
                    project_root=project_root,
                    tool_root=tool_root,
                    language=language,
                    options=options,
                    tool_options=extra,
                    limits=limits,
                    scratch=Path(scratch).resolve(),
                    deadline=deadline,
                    cancel=cancel,
                    version=version,
                    warnings=warnings,
                )
                if self.uses_file_list:
                    discovered = self.collect_files(ctx)
                    ctx.files = tuple(discovered.paths)
                    warnings.extend(discovered.warnings)
                    files_analyzed = len(ctx.files)
                invocations = self.build_invocations(ctx)
                raw: list[RawIssue] = []
                for invocation in invocations:
                    run.advance(AdapterState.RUNNING)
                    output = self.execute(invocation, ctx)
                    run.advance(AdapterState.PARSING)
                    raw.extend(self._parse_checked(output, ctx, parse_ctx))
                if invocations and ctx.failed_invocations == len(invocations):
                    raise ExecutionError(
                        ErrorKind.NON_ZERO_EXIT,
                        f"{self.name} could not analyse any of {len(invocations)} input(s)",
                    )

            run.advance(AdapterState.NORMALIZING)
            profile = NormalizationProfile(
                tool=self.name,
                tool_version=version,
                ecosystem=language.ecosystem,
                default_confidence=self.default_confidence,
                root=project_root,
            )
            normalized = normalize_issues(raw, profile, options)
            warnings.extend(normalized.warnings)
            if parse_ctx.dropped:
                warnings.append(f"dropped {parse_ctx.dropped} malformed record(s)")
            issues = annotate_all(normalized.issues, tool_category=self.tool_category, search_radius=self.search_radius)
            run.advance(AdapterState.DONE)
        except AdapterSkipped as exc:
            LOGGER.info("%s skipped: %s", self.name, exc)
            run.advance(AdapterState.DONE)
            return build_skipped_report(version=version, reason=str(exc), **common)
        except PolyauditError as exc:
            LOGGER.warning("%s failed: %s", self.name, exc.message)
            run.fail()
            return build_error_report(
                version=version,
                error=exc,
                files_analyzed=files_analyzed,
                warnings=warnings,
                dropped_records=parse_ctx.dropped,
                **common,
            )
        return build_tool_report(
            version=version,
            issues=issues,
            files_analyzed=files_analyzed,
            warnings=warnings,
            dropped_records=parse_ctx.dropped,
            **common,
        )


def _as_tuple(expected: type | tuple[type, ...]) -> tuple[type, ...]:
    return expected if isinstance(expected, tuple) else (expected,)


def scratch_file(ctx: AnalysisContext, name: str, content: str) -> Path:
    """Write ``content`` to ``name`` inside the invocation's scratch directory."""

    path = ctx.scratch / name
    path.write_text(content, encoding="utf-8")
    path.chmod(0o600)
    return path


__all__ = [
    "AdapterRun",
    "AdapterSkipped",
    "AdapterState",
    "AnalysisContext",
    "Capabilities",
    "InstallHint",
    "Invocation",
    "ProbeResult",
    "ToolAdapter",
    "ToolOutput",
    "scratch_file",
]
