# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

import pytest

from polyaudit.execution import ProcessResult, ProcessRunner, RunOptions, SandboxPolicy
from polyaudit.parsers import ParseContext

Responder = Callable[[SandboxPolicy, tuple[str, ...], RunOptions], ProcessResult]


def make_result(
    stdout: str = "",
    stderr: str = "",
    *,
    exit_code: int = 0,
    timed_out: bool = False,
    overflowed: bool = False,
    cancelled: bool = False,
) -> ProcessResult:
    """Build a :class:`ProcessResult` from text streams."""

    return ProcessResult(
        exit_code=exit_code,
        stdout=stdout.encode("utf-8"),
        stderr=stderr.encode("utf-8"),
        wall_time_ms=1,
        timed_out=timed_out,
        overflowed=overflowed,
        cancelled=cancelled,
    )


@dataclass(frozen=True, slots=True)
class RecordedCall:
    """One call observed by :class:`FakeRunner`."""

    command: str
    argv: tuple[str, ...]
    options: RunOptions


class FakeRunner(ProcessRunner):
    """Runner that answers from a responder instead of spawning processes."""

    def __init__(self, responder: Responder) -> None:
        super().__init__(environ={"PATH": ""})
        self._responder = responder
        self.calls: list[RecordedCall] = []

    def run(self, policy: SandboxPolicy, argv: Sequence[str], options: RunOptions) -> ProcessResult:
        arguments = (*policy.argv_prefix, *argv)
        self.calls.append(RecordedCall(command=policy.command, argv=arguments, options=options))
        return self._responder(policy, arguments, options)


def write_tree(root: Path, files: Mapping[str, str]) -> Path:
    """Create ``files`` (relative path to content) beneath ``root``."""

    for relative, content in files.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def result_factory() -> Callable[..., ProcessResult]:
    """Return :func:`make_result`."""

    return make_result


@pytest.fixture
def fake_runner() -> Callable[[Responder], FakeRunner]:
    """Return a factory building :class:`FakeRunner` instances."""

    return FakeRunner


@pytest.fixture
def tree() -> Callable[[Path, Mapping[str, str]], Path]:
    """Return :func:`write_tree`."""

    return write_tree


@pytest.fixture
def parse_context(tmp_path: Path) -> ParseContext:
    """Return a parse context rooted at a temporary project."""

    return ParseContext(tool="test", root=tmp_path.resolve())
