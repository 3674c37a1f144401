# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Adapter registry providing discovery by name or language."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator, Mapping

from ..execution import ProcessRunner
from ..languages import Language
from .base import ToolAdapter
from .cpp import ClangAnalyzerAdapter, ValgrindAdapter
from .go import GosecAdapter, StaticcheckAdapter
from .python import MypyAdapter, PylintAdapter
from .rust import CargoAuditAdapter, ClippyAdapter

AdapterType = type[ToolAdapter]


class ToolRegistry(Mapping[str, AdapterType]):
    """Central registry of adapter classes.

    ``ToolRegistry`` behaves like a read-only mapping whose keys are tool names
    and whose values are :class:`ToolAdapter` subclasses. Iteration follows
    registration order so report ordering stays stable between runs.
    """

    def __init__(self, adapters: Iterable[AdapterType] = ()) -> None:
        """Initialise the registry with ``adapters``."""

        self._adapters: dict[str, AdapterType] = {}
        self._by_language: dict[Language, list[str]] = defaultdict(list)
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: AdapterType) -> None:
        """Register ``adapter`` enforcing uniqueness by name.

        Raises:
            ValueError: If an adapter with the same name is already registered.
        """

        if adapter.name in self._adapters:
            raise ValueError(f"Tool '{adapter.name}' already registered")
        self._adapters[adapter.name] = adapter
        for language in adapter.languages:
            self._by_language[language].append(adapter.name)

    def try_get(self, name: str) -> AdapterType | None:
        """Return the adapter class named ``name`` when registered, otherwise ``None``."""

        return self._adapters.get(name)

    def adapters_for(self, language: Language) -> tuple[AdapterType, ...]:
        """Return adapter classes targeting ``language`` in registration order."""

        return tuple(self._adapters[name] for name in self._by_language.get(language, ()))

    def create(self, name: str, runner: ProcessRunner | None = None) -> ToolAdapter:
        """Instantiate the adapter named ``name`` bound to ``runner``.

        Raises:
            KeyError: If ``name`` does not refer to a registered adapter.
        """

        return self._adapters[name](runner)

    def __len__(self) -> int:
        return len(self._adapters)

    def __iter__(self) -> Iterator[str]:
        return iter(self._adapters)

    def __getitem__(self, name: str) -> AdapterType:
        return self._adapters[name]


def default_registry() -> ToolRegistry:
    """Return a registry holding every built-in adapter."""

    return ToolRegistry(
        (
            ClippyAdapter,
            CargoAuditAdapter,
            GosecAdapter,
            StaticcheckAdapter,
            ClangAnalyzerAdapter,
            ValgrindAdapter,
            PylintAdapter,
            MypyAdapter,
        ),
    )


DEFAULT_REGISTRY = default_registry()


__all__ = ["DEFAULT_REGISTRY", "AdapterType", "ToolRegistry", "default_registry"]
