# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Tests for adapter scheduling and report merging."""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

from polyaudit.core.models import RawIssue, ToolStatus
from polyaudit.core.severity import Severity
from polyaudit.errors import ErrorKind, InputValidationError
from polyaudit.execution import ProcessResult, RunOptions, SandboxPolicy
from polyaudit.languages import Language
from polyaudit.orchestration import NO_LANGUAGES_NOTE, Orchestrator
from polyaudit.parsers import JsonParser, ParseContext
from polyaudit.tools import AnalysisContext, InstallHint, Invocation, ToolAdapter, ToolOutput, ToolRegistry

Results = Callable[..., ProcessResult]
Runners = Callable[..., Any]
Trees = Callable[..., Path]


def _findings(payload: Any, context: ParseContext) -> Sequence[RawIssue]:
    return [
        RawIssue(
            file=context.resolve(record["file"]),
            line=record["line"],
            rule=record["rule"],
            title=record["rule"],
            category="style",
            severity=Severity.LOW,
        )
        for record in payload or ()
    ]


class _FakeAdapter(ToolAdapter):
    tool_category = "fake_analysis"
    install = InstallHint(steps=("nothing to install",))

    def build_invocations(self, ctx: AnalysisContext) -> Sequence[Invocation]:
        return [Invocation(argv=("check",), cwd=ctx.tool_root)]

    def parse_output(self, output: ToolOutput, ctx: AnalysisContext, parse_ctx: ParseContext) -> Sequence[RawIssue]:
        return JsonParser(_findings).parse(output.stdout, output.stderr, context=parse_ctx)


class GoLint(_FakeAdapter):
    name = "golint"
    languages = (Language.GO,)
    policy = SandboxPolicy(command="golint")
    markers = frozenset({"go.mod"})


class GoBroken(_FakeAdapter):
    name = "gobroken"
    languages = (Language.GO,)
    policy = SandboxPolicy(command="gobroken")
    markers = frozenset({"go.mod"})


class PyLint(_FakeAdapter):
    name = "pylintish"
    languages = (Language.PYTHON,)
    policy = SandboxPolicy(command="pylintish")
    option_types = {"strict": bool}


class NativeCheck(_FakeAdapter):
    name = "nativecheck"
    languages = (Language.C, Language.CPP)
    policy = SandboxPolicy(command="nativecheck")


def _responder(outputs: dict[str, ProcessResult], result_factory: Results) -> Any:
    def respond(policy: SandboxPolicy, argv: tuple[str, ...], options: RunOptions) -> ProcessResult:
        if argv == ("--version",):
            return result_factory(f"{policy.command} 1.2.3\n")
        return outputs.get(policy.command, result_factory("[]"))

    return respond


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry((GoLint, GoBroken, PyLint, NativeCheck))


@pytest.fixture
def project(tmp_path: Path, tree: Trees) -> Path:
    return tree(
        tmp_path,
        {
            "go.mod": "module example.com/demo\n",
            "cmd/main.go": "package main\n",
            "pyproject.toml": "[project]\nname = 'demo'\n",
            "scripts/tool.py": "print('hi')\n",
        },
    )


def test_no_supported_languages(tmp_path: Path, registry: ToolRegistry, fake_runner: Runners) -> None:
    (tmp_path / "README.md").write_text("docs\n", encoding="utf-8")
    runner = fake_runner(lambda *_: pytest.fail("no tool should run"))

    report = Orchestrator(registry, runner=runner).run(tmp_path)

    assert report.detected_languages == ()
    assert report.reports == ()
    assert report.notes == (NO_LANGUAGES_NOTE,)
    assert report.aggregate.total_issues == 0


def test_failures_are_isolated_and_order_is_stable(
    project: Path,
    registry: ToolRegistry,
    fake_runner: Runners,
    result_factory: Results,
) -> None:
    outputs = {
        "golint": result_factory(json.dumps([{"file": "cmd/main.go", "line": 1, "rule": "GL001"}]), exit_code=1),
        "gobroken": result_factory("segmentation fault", exit_code=139),
    }
    runner = fake_runner(_responder(outputs, result_factory))

    report = Orchestrator(registry, runner=runner).run(project, {"workers": 4})

    assert report.detected_languages == ("go", "python")
    assert [item.tool for item in report.reports] == ["golint", "gobroken", "pylintish"]
    golint, broken, python = report.reports
    assert golint.status is ToolStatus.OK
    assert golint.version == "1.2.3"
    assert [issue.canonical_path for issue in golint.issues] == ["cmd/main.go"]
    assert broken.status is ToolStatus.ERROR
    assert broken.error_kind is ErrorKind.NON_ZERO_EXIT
    assert python.status is ToolStatus.OK
    assert report.aggregate.failed_tools == ("gobroken",)
    assert report.aggregate.total_issues == 1


def test_tool_selection_limits_adapters(
    project: Path,
    registry: ToolRegistry,
    fake_runner: Runners,
    result_factory: Results,
) -> None:
    runner = fake_runner(_responder({}, result_factory))

    report = Orchestrator(registry, runner=runner).run(project, {"go": {"toolSelection": ["golint"]}})

    assert [item.tool for item in report.reports] == ["golint", "pylintish"]


def test_multi_language_adapter_runs_once(
    tmp_path: Path,
    tree: Trees,
    registry: ToolRegistry,
    fake_runner: Runners,
    result_factory: Results,
) -> None:
    root = tree(tmp_path, {"src/core.c": "int x;\n", "src/app.cpp": "int main() {}\n"})
    runner = fake_runner(_responder({}, result_factory))

    report = Orchestrator(registry, runner=runner).run(root)

    assert report.detected_languages == ("c", "cpp")
    assert [(item.tool, item.language) for item in report.reports] == [("nativecheck", "c")]
    assert [call.argv for call in runner.calls if call.command == "nativecheck"].count(("check",)) == 1


@pytest.mark.parametrize(
    "options",
    [
        {"go": {"toolSelection": ["nosuchtool"]}},
        {"python": {"toolOptions": {"golint": {}}}},
        {"python": {"toolOptions": {"pylintish": {"strict": "yes"}}}},
    ],
)
def test_invalid_selection_aborts_the_run(
    project: Path,
    registry: ToolRegistry,
    fake_runner: Runners,
    options: dict[str, Any],
) -> None:
    runner = fake_runner(lambda *_: pytest.fail("no tool should run"))

    with pytest.raises(InputValidationError) as excinfo:
        Orchestrator(registry, runner=runner).run(project, options)
    assert excinfo.value.kind is ErrorKind.UNKNOWN_OPTION


def test_missing_root_is_rejected(tmp_path: Path, registry: ToolRegistry) -> None:
    with pytest.raises(InputValidationError) as excinfo:
        Orchestrator(registry).run(tmp_path / "absent")
    assert excinfo.value.kind is ErrorKind.PROJECT_NOT_FOUND


def test_probes_are_cached_between_runs(
    project: Path,
    registry: ToolRegistry,
    fake_runner: Runners,
    result_factory: Results,
) -> None:
    runner = fake_runner(_responder({}, result_factory))
    orchestrator = Orchestrator(registry, runner=runner)

    orchestrator.run(project)
    orchestrator.run(project)

    probes = [call for call in runner.calls if call.argv == ("--version",)]
    assert sorted(call.command for call in probes) == ["gobroken", "golint", "pylintish"]


class Exploding(_FakeAdapter):
    name = "exploding"
    languages = (Language.GO,)
    policy = SandboxPolicy(command="exploding")
    markers = frozenset({"go.mod"})

    def parse_output(self, output: ToolOutput, ctx: AnalysisContext, parse_ctx: ParseContext) -> Sequence[RawIssue]:
        raise RuntimeError("adapter defect")


def test_deeply_nested_output_fails_only_its_tool(
    project: Path,
    registry: ToolRegistry,
    fake_runner: Runners,
    result_factory: Results,
) -> None:
    outputs = {
        "golint": result_factory("[" * 200_000 + "]" * 200_000),
        "gobroken": result_factory(json.dumps([{"file": "cmd/main.go", "line": 3, "rule": "GB002"}]), exit_code=1),
    }
    runner = fake_runner(_responder(outputs, result_factory))

    report = Orchestrator(registry, runner=runner).run(project, {"go": {"toolSelection": ["golint", "gobroken"]}})

    golint, healthy, _ = report.reports
    assert golint.status is ToolStatus.ERROR
    assert golint.error_kind is ErrorKind.UNPARSEABLE_OUTPUT
    assert healthy.status is ToolStatus.OK
    assert [(issue.canonical_path, issue.start_line) for issue in healthy.issues] == [("cmd/main.go", 3)]


def test_unexpected_adapter_exception_becomes_error_report(
    project: Path,
    fake_runner: Runners,
    result_factory: Results,
) -> None:
    runner = fake_runner(_responder({}, result_factory))
    registry = ToolRegistry((Exploding, GoLint))

    report = Orchestrator(registry, runner=runner).run(project)

    assert [item.tool for item in report.reports] == ["exploding", "golint"]
    exploding, golint = report.reports
    assert exploding.status is ToolStatus.ERROR
    assert exploding.error_kind is ErrorKind.UNPARSEABLE_OUTPUT
    assert "RuntimeError" in (exploding.error or "")
    assert golint.status is ToolStatus.OK
    assert report.aggregate.failed_tools == ("exploding",)
