# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Language-detecting hub that schedules adapters and merges their reports."""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..cache import AvailabilityCache
from ..config import AnalysisOptions, parse_options
from ..core.models import MultiToolReport, ToolReport
from ..errors import ErrorKind, ExecutionError, InputValidationError, ParsingError, PolyauditError
from ..execution import CancellationToken, ProcessRunner
from ..languages import Language, detect_languages
from ..reporting import assemble_report, build_error_report, utc_now
from ..tools.base import ToolAdapter
from ..tools.registry import DEFAULT_REGISTRY, ToolRegistry
from ..validation import validate_project_root

LOGGER = logging.getLogger(__name__)

NO_LANGUAGES_NOTE = "no supported languages"


@dataclass(frozen=True, slots=True)
class ScheduledAdapter:
    """One adapter run planned for a detected language."""

    order: int
    language: Language
    adapter: ToolAdapter


class Orchestrator:
    """Run every selected adapter for the languages detected under a root.

    Adapters run on a shared thread pool. A per-language semaphore bounds how
    many adapters of one language run at once, and one cancellation token is
    shared by every in-flight process.
    """

    def __init__(
        self,
        registry: ToolRegistry | None = None,
        *,
        runner: ProcessRunner | None = None,
        cache: AvailabilityCache | None = None,
    ) -> None:
        """Initialise the hub.

        Args:
            registry: Adapter registry; the built-in adapters are used when omitted.
            runner: Process runner shared by every adapter.
            cache: Availability cache reused across runs of this orchestrator.
        """

        self._registry = registry or DEFAULT_REGISTRY
        self._runner = runner or ProcessRunner()
        self._cache = cache

    @property
    def registry(self) -> ToolRegistry:
        """Return the adapter registry in use."""

        return self._registry

    def _availability(self, options: AnalysisOptions) -> AvailabilityCache:
        if self._cache is None:
            self._cache = AvailabilityCache(options.availability_ttl_seconds)
        return self._cache

    def check_selection(self, options: AnalysisOptions) -> None:
        """Reject tool names in selections or tool options that no adapter owns.

        Raises:
            InputValidationError: ``UnknownOption`` naming the first unknown tool.
        """

        for language in Language:
            block = options.for_language(language)
            for name in block.tool_selection or ():
                if self._registry.try_get(name) is None:
                    raise InputValidationError(ErrorKind.UNKNOWN_OPTION, f"no adapter named {name!r}")
            for name in block.tool_options:
                adapter = self._registry.try_get(name)
                if adapter is None or language not in adapter.languages:
                    raise InputValidationError(
                        ErrorKind.UNKNOWN_OPTION,
                        f"{language.value}: no {language.value} adapter named {name!r}",
                    )

    def plan(self, languages: Sequence[Language], options: AnalysisOptions) -> list[ScheduledAdapter]:
        """Return the adapters to run for ``languages``.

        An adapter serving several languages (clang, valgrind) runs once,
        attributed to the first of its languages that was detected. Tool options
        are validated here so an invalid option aborts the run before any tool
        starts.

        Raises:
            InputValidationError: When an adapter rejects its tool options.
        """

        planned: list[ScheduledAdapter] = []
        seen: set[str] = set()
        for language in languages:
            block = options.for_language(language)
            for adapter_type in self._registry.adapters_for(language):
                if adapter_type.name in seen or not block.selects(adapter_type.name):
                    continue
                seen.add(adapter_type.name)
                adapter = self._registry.create(adapter_type.name, self._runner)
                adapter.check_options(block.options_for(adapter.name))
                planned.append(ScheduledAdapter(order=len(planned), language=language, adapter=adapter))
        return planned

    def run(
        self,
        project_root: str | os.PathLike[str],
        options: AnalysisOptions | Mapping[str, Any] | None = None,
        *,
        cancel: CancellationToken | None = None,
    ) -> MultiToolReport:
        """Analyse ``project_root`` and return the merged report.

        Args:
            project_root: Declared project root.
            options: Parsed options or a raw mapping validated here.
            cancel: Run-wide cancellation token; one is created when omitted.

        Returns:
            MultiToolReport: Complete report, including failed adapters.

        Raises:
            InputValidationError: When the root or any option is rejected.
        """

        started_at = utc_now()
        clock_start = time.monotonic()
        root = validate_project_root(project_root)
        resolved = options if isinstance(options, AnalysisOptions) else parse_options(options)
        self.check_selection(resolved)
        cancel = cancel or CancellationToken()

        detected = detect_languages(root, max_depth=resolved.limits.max_depth)
        languages = [language for language in Language if language in detected]
        notes: list[str] = []
        if not languages:
            LOGGER.info("no supported languages under %s", root)
            notes.append(NO_LANGUAGES_NOTE)
        scheduled = self.plan(languages, resolved)
        for language in languages:
            if not any(item.language is language for item in scheduled) and not self._registry.adapters_for(language):
                notes.append(f"no adapters registered for {language.value}")
        reports = self._execute(scheduled, root, resolved, cancel)

        return assemble_report(
            project_root=root,
            detected_languages=(language.value for language in languages),
            reports=reports,
            started_at=started_at,
            wall_clock_ms=int((time.monotonic() - clock_start) * 1000),
            notes=notes,
        )

    def _execute(
        self,
        scheduled: Sequence[ScheduledAdapter],
        root: Path,
        options: AnalysisOptions,
        cancel: CancellationToken,
    ) -> list[ToolReport]:
        if not scheduled:
            return []
        cache = self._availability(options)
        gates = {
            language: threading.BoundedSemaphore(options.for_language(language).parallelism)
            for language in {item.language for item in scheduled}
        }

        def run_one(item: ScheduledAdapter) -> ToolReport:
            with gates[item.language]:
                entry = cache.get_or_probe((item.language.value, item.adapter.name), item.adapter.probe)
                return item.adapter.analyze(
                    root,
                    options.for_language(item.language),
                    language=item.language,
                    limits=options.limits,
                    cancel=cancel,
                    probe_result=entry.result,
                )

        results: dict[int, ToolReport] = {}
        workers = min(options.workers, len(scheduled))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="polyaudit") as executor:
            future_map: dict[Future[ToolReport], ScheduledAdapter] = {
                executor.submit(run_one, item): item for item in scheduled
            }
            try:
                for future in as_completed(future_map):
                    item = future_map[future]
                    results[item.order] = self._collect(future, item, root)
            except KeyboardInterrupt:
                LOGGER.warning("interrupted; cancelling %d adapter(s)", len(future_map) - len(results))
                cancel.cancel()
                raise
        return [results[order] for order in sorted(results)]

    @staticmethod
    def _collect(future: Future[ToolReport], item: ScheduledAdapter, root: Path) -> ToolReport:
        started_at = utc_now()
        try:
            report = future.result()
        except Exception as exc:
            LOGGER.exception("%s failed outside its tool invocation", item.adapter.name)
            error: PolyauditError
            if isinstance(exc, OSError):
                error = ExecutionError(ErrorKind.PROCESS_SPAWN_FAILED, f"{item.adapter.name}: {exc}")
            else:
                error = ParsingError(ErrorKind.UNPARSEABLE_OUTPUT, f"{item.adapter.name}: {type(exc).__name__}: {exc}")
            return build_error_report(
                tool=item.adapter.name,
                version=None,
                language=item.language.value,
                target=root,
                started_at=started_at,
                error=error,
            )
        LOGGER.debug("%s finished with status %s", report.tool, report.status.value)
        return report


def run_analysis(
    project_root: str | os.PathLike[str],
    options: AnalysisOptions | Mapping[str, Any] | None = None,
    *,
    registry: ToolRegistry | None = None,
    runner: ProcessRunner | None = None,
    cancel: CancellationToken | None = None,
) -> MultiToolReport:
    """Convenience wrapper running a fresh :class:`Orchestrator` once."""

    return Orchestrator(registry, runner=runner).run(project_root, options, cancel=cancel)


__all__ = ["NO_LANGUAGES_NOTE", "Orchestrator", "ScheduledAdapter", "run_analysis"]
