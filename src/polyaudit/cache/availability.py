# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Process-local TTL cache of adapter availability probes.

Entries are keyed by ``(language, tool)`` and expire individually. Refresh is
lazy: an expired entry is re-probed on the next query, and only the first
caller for a key performs the probe while concurrent callers wait for it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from threading import Lock
from typing import TYPE_CHECKING, Final

from ..constants import DEFAULT_AVAILABILITY_TTL_SECONDS

if TYPE_CHECKING:
    from ..tools.base import ProbeResult

LOGGER = logging.getLogger(__name__)

CacheKey = tuple[str, str]
Clock = Callable[[], float]

_MIN_TTL: Final[float] = 0.0


@dataclass(frozen=True, slots=True)
class AvailabilityEntry:
    """Cached probe outcome with the monotonic time it was taken."""

    result: ProbeResult
    checked_at: float

    @property
    def available(self) -> bool:
        """Return whether the probed tool was usable."""

        return self.result.available

    @property
    def version(self) -> str | None:
        """Return the version reported by the probe."""

        return self.result.version


class AvailabilityCache:
    """Thread-safe TTL cache with a single writer per key."""

    def __init__(self, ttl_seconds: float = DEFAULT_AVAILABILITY_TTL_SECONDS, *, clock: Clock = time.monotonic) -> None:
        """Initialise the cache.

        Args:
            ttl_seconds: Lifetime of each entry in seconds.
            clock: Monotonic time source, injectable for tests.
        """

        self._ttl_seconds = max(ttl_seconds, _MIN_TTL)
        self._clock = clock
        self._store: dict[CacheKey, AvailabilityEntry] = {}
        self._lock = Lock()
        self._key_locks: dict[CacheKey, Lock] = {}

    def _fresh(self, key: CacheKey, now: float) -> AvailabilityEntry | None:
        entry = self._store.get(key)
        if entry is not None and now - entry.checked_at < self._ttl_seconds:
            return entry
        return None

    def _lock_for(self, key: CacheKey) -> Lock:
        with self._lock:
            return self._key_locks.setdefault(key, Lock())

    def peek(self, key: CacheKey) -> AvailabilityEntry | None:
        """Return the cached entry for ``key`` when it has not expired."""

        with self._lock:
            return self._fresh(key, self._clock())

    def get_or_probe(self, key: CacheKey, probe: Callable[[], ProbeResult]) -> AvailabilityEntry:
        """Return a fresh entry for ``key``, invoking ``probe`` when needed.

        Args:
            key: ``(language, tool)`` pair identifying the adapter.
            probe: Callable performing the availability probe.

        Returns:
            AvailabilityEntry: Cached or newly probed entry.
        """

        with self._lock:
            entry = self._fresh(key, self._clock())
        if entry is not None:
            return entry
        with self._lock_for(key):
            with self._lock:
                entry = self._fresh(key, self._clock())
            if entry is not None:
                return entry
            LOGGER.debug("probing availability of %s/%s", *key)
            result = probe()
            entry = AvailabilityEntry(result=result, checked_at=self._clock())
            with self._lock:
                self._store[key] = entry
            return entry

    def invalidate(self, key: CacheKey | None = None) -> None:
        """Drop ``key`` or, when omitted, every entry."""

        with self._lock:
            if key is None:
                self._store.clear()
            else:
                self._store.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)


__all__ = ["AvailabilityCache", "AvailabilityEntry"]
