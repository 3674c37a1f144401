# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for the availability cache."""

from __future__ import annotations

import threading
import time

from polyaudit.cache import AvailabilityCache
from polyaudit.tools import ProbeResult


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


class CountingProbe:
    """Probe returning a fixed result and counting invocations."""

    def __init__(self, result: ProbeResult, delay: float = 0.0) -> None:
        self.result = result
        self.delay = delay
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self) -> ProbeResult:
        with self._lock:
            self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        return self.result


def test_entries_are_reused_within_ttl() -> None:
    clock = FakeClock()
    cache = AvailabilityCache(60, clock=clock)
    probe = CountingProbe(ProbeResult(available=True, version="1.2.3"))

    first = cache.get_or_probe(("go", "gosec"), probe)
    clock.now += 59
    second = cache.get_or_probe(("go", "gosec"), probe)

    assert probe.calls == 1
    assert first is second
    assert second.available and second.version == "1.2.3"


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache = AvailabilityCache(60, clock=clock)
    probe = CountingProbe(ProbeResult(available=False, error="ToolUnavailable: 'gosec' was not found on PATH"))

    cache.get_or_probe(("go", "gosec"), probe)
    clock.now += 60

    assert cache.peek(("go", "gosec")) is None
    cache.get_or_probe(("go", "gosec"), probe)
    assert probe.calls == 2


def test_keys_are_independent_and_invalidatable() -> None:
    clock = FakeClock()
    cache = AvailabilityCache(60, clock=clock)
    probe = CountingProbe(ProbeResult(available=True))

    cache.get_or_probe(("c", "clang-static-analyzer"), probe)
    cache.get_or_probe(("cpp", "clang-static-analyzer"), probe)
    assert len(cache) == 2

    cache.invalidate(("c", "clang-static-analyzer"))
    assert cache.peek(("c", "clang-static-analyzer")) is None
    assert cache.peek(("cpp", "clang-static-analyzer")) is not None

    cache.invalidate()
    assert len(cache) == 0


def test_concurrent_callers_share_one_probe() -> None:
    cache = AvailabilityCache(60)
    probe = CountingProbe(ProbeResult(available=True, version="0.1"), delay=0.05)
    results = []

    def worker() -> None:
        results.append(cache.get_or_probe(("python", "mypy"), probe))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert probe.calls == 1
    assert len({id(entry) for entry in results}) == 1


def test_zero_ttl_always_probes() -> None:
    cache = AvailabilityCache(0, clock=FakeClock())
    probe = CountingProbe(ProbeResult(available=True))

    cache.get_or_probe(("rust", "clippy"), probe)
    cache.get_or_probe(("rust", "clippy"), probe)

    assert probe.calls == 2
