# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for severity ranking, floors, and category coercion."""

from __future__ import annotations

import re

import pytest

from polyaudit.core.severity import (
    DEFAULT_SEVERITY_FLOORS,
    Category,
    Severity,
    apply_severity_rules,
    coerce_category,
    map_severity_label,
    raise_severity,
)

FLOOR_SAMPLES = [
    ("gosec", "G101", Severity.HIGH),
    ("gosec", "G202", Severity.HIGH),
    ("gosec", "G401", Severity.MEDIUM),
    ("staticcheck", "SA2002", Severity.HIGH),
    ("staticcheck", "SA5011", Severity.HIGH),
    ("staticcheck", "SA1012", Severity.MEDIUM),
    ("staticcheck", "SA9003", Severity.MEDIUM),
    ("clang-static-analyzer", "core.NullDereference", Severity.HIGH),
    ("clang-static-analyzer", "core.DivideZero", Severity.HIGH),
    ("clang-static-analyzer", "unix.Malloc", Severity.HIGH),
    ("clang-static-analyzer", "security.insecureAPI.strcpy", Severity.HIGH),
    ("clang-static-analyzer", "alpha.security.ArrayBound", Severity.HIGH),
    ("pylint", "E0602", Severity.HIGH),
    ("mypy", "attr-defined", Severity.HIGH),
]


def test_rank_order() -> None:
    ordered = [Severity.INFO, Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL]
    assert [level.rank for level in ordered] == [0, 1, 2, 3, 4]
    assert Severity.HIGH.at_least(Severity.MEDIUM)
    assert not Severity.LOW.at_least(Severity.MEDIUM)


@pytest.mark.parametrize(("tool", "rule", "floor"), FLOOR_SAMPLES)
def test_floors_raise_to_their_level(tool: str, rule: str, floor: Severity) -> None:
    assert apply_severity_rules(tool, rule, Severity.INFO) is floor


@pytest.mark.parametrize(("tool", "rule", "floor"), FLOOR_SAMPLES)
def test_floors_never_lower(tool: str, rule: str, floor: Severity) -> None:
    for baseline in Severity:
        result = apply_severity_rules(tool, rule, baseline)
        assert result.rank >= baseline.rank
        assert result.rank >= floor.rank


def test_every_floor_rule_is_monotone() -> None:
    for tool, rules in DEFAULT_SEVERITY_FLOORS.items():
        for pattern, _floor in rules:
            sample = _sample_for(pattern)
            for baseline in Severity:
                assert apply_severity_rules(tool, sample, baseline).rank >= baseline.rank


def _sample_for(pattern: re.Pattern[str]) -> str:
    candidates = ["G101", "G401", "SA2000", "SA1000", "core.NullDereference", "unix.Malloc", "security.x", "E0602"]
    candidates.append("name-defined")
    return next((candidate for candidate in candidates if pattern.search(candidate)), "")


def test_unmatched_rules_keep_severity() -> None:
    assert apply_severity_rules("gosec", "G104", Severity.LOW) is Severity.LOW
    assert apply_severity_rules("staticcheck", "S1002", Severity.LOW) is Severity.LOW
    assert apply_severity_rules("clippy", "clippy::unwrap_used", Severity.INFO) is Severity.INFO


def test_custom_rule_table() -> None:
    rules = {"gosec": [(re.compile(r"^G104$"), Severity.CRITICAL)]}

    assert apply_severity_rules("gosec", "G104", Severity.LOW, rules=rules) is Severity.CRITICAL
    assert apply_severity_rules("gosec", "G101", Severity.LOW, rules=rules) is Severity.LOW


def test_raise_severity() -> None:
    assert raise_severity(Severity.LOW, Severity.HIGH) is Severity.HIGH
    assert raise_severity(Severity.CRITICAL, Severity.HIGH) is Severity.CRITICAL


def test_map_severity_label() -> None:
    mapping = {"error": Severity.HIGH, "warning": Severity.MEDIUM}

    assert map_severity_label(" Error ", mapping) == (Severity.HIGH, True)
    assert map_severity_label("panic", mapping) == (Severity.MEDIUM, False)
    assert map_severity_label(None, mapping, default=Severity.LOW) == (Severity.LOW, False)


def test_coerce_category() -> None:
    assert coerce_category("memory_safety") == (Category.MEMORY_SAFETY, None)
    assert coerce_category("bug") == (Category.CORRECTNESS, None)
    assert coerce_category("deadcode") == (Category.DEAD_CODE, None)
    assert coerce_category("licensing") == (Category.OTHER, "licensing")
    assert coerce_category(None) == (Category.OTHER, None)
