# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Command-line entry point: ``polyaudit scan`` and ``polyaudit tools``."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Final

import typer
from rich import box
from rich.table import Table

from .config import AnalysisOptions, discover_options, load_options
from .core.models import MultiToolReport, ToolStatus
from .core.severity import Severity
from .errors import InputValidationError
from .logging import configure_logging, fail, get_console_manager, ok, section, warn
from .orchestration import Orchestrator
from .tools.registry import DEFAULT_REGISTRY
from .validation import validate_project_root

EXIT_CLEAN: Final[int] = 0
EXIT_FINDINGS: Final[int] = 1
EXIT_INPUT_ERROR: Final[int] = 2

app = typer.Typer(
    name="polyaudit",
    help="Run language-specific analyzers and emit one normalized issue report.",
    add_completion=False,
    no_args_is_help=True,
)


def exit_code_for(report: MultiToolReport) -> int:
    """Return the process exit status implied by ``report``.

    Only the highest observed severity matters; adapter failures alone never
    produce a non-zero status.
    """

    highest = report.highest_severity()
    if highest is not None and highest.at_least(Severity.HIGH):
        return EXIT_FINDINGS
    return EXIT_CLEAN


def _load(root: Path, config: Path | None) -> AnalysisOptions:
    if config is not None:
        return load_options(config)
    return discover_options(root)


def _summarise(report: MultiToolReport, *, use_color: bool) -> None:
    section("polyaudit", use_color=use_color)
    for note in report.notes:
        warn(note, use_color=use_color)
    for tool_report in report.reports:
        line = f"{tool_report.tool} ({tool_report.language}): {len(tool_report.issues)} issue(s)"
        if tool_report.status is ToolStatus.ERROR:
            fail(f"{tool_report.tool} ({tool_report.language}): {tool_report.error}", use_color=use_color)
        elif tool_report.status is ToolStatus.SKIPPED:
            warn(f"{tool_report.tool} skipped: {'; '.join(tool_report.warnings)}", use_color=use_color)
        else:
            ok(line, use_color=use_color)
    counts = ", ".join(f"{level}={count}" for level, count in report.aggregate.by_severity.items() if count)
    summary = f"{report.aggregate.total_issues} issue(s) in {report.wall_clock_ms} ms"
    ok(f"{summary} [{counts}]" if counts else summary, use_color=use_color)


@app.command("scan")
def scan_command(
    path: Annotated[Path, typer.Argument(help="Project root to analyse.")],
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="polyaudit.toml or pyproject.toml to load options from."),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Write the JSON report here instead of stdout."),
    ] = None,
    tool: Annotated[
        list[str] | None,
        typer.Option("--tool", "-t", help="Restrict the run to these adapters (repeatable)."),
    ] = None,
    timeout_ms: Annotated[
        int | None,
        typer.Option("--timeout-ms", min=1, help="Per-adapter timeout in milliseconds."),
    ] = None,
    workers: Annotated[int | None, typer.Option("--workers", "-j", min=1, help="Worker pool size.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
    no_color: Annotated[bool, typer.Option("--no-color", help="Disable coloured output.")] = False,
) -> None:
    """Analyse PATH and print the multi-tool report as JSON."""

    use_color = not no_color
    configure_logging(verbose=verbose, use_color=use_color)
    try:
        root = validate_project_root(path)
        options = _load(root, config).with_overrides(
            tools=tuple(tool) if tool else None,
            timeout_ms=timeout_ms,
            workers=workers,
        )
        report = Orchestrator().run(root, options)
    except InputValidationError as exc:
        fail(exc.message, use_color=use_color)
        raise typer.Exit(code=EXIT_INPUT_ERROR) from exc

    document = report.to_json()
    if output is not None:
        output.write_text(document + "\n", encoding="utf-8")
        _summarise(report, use_color=use_color)
        ok(f"report written to {output}", use_color=use_color)
    else:
        typer.echo(document)
        _summarise(report, use_color=use_color)
    raise typer.Exit(code=exit_code_for(report))


@app.command("tools")
def tools_command(
    no_color: Annotated[bool, typer.Option("--no-color", help="Disable coloured output.")] = False,
) -> None:
    """Probe every registered adapter and show availability and install hints."""

    use_color = not no_color
    console = get_console_manager().get(color=use_color, emoji=False)
    table = Table(
        title="Analyzers",
        box=box.ROUNDED,
        show_header=True,
        header_style="bold" if use_color else None,
    )
    table.add_column("Tool", style="cyan" if use_color else None)
    table.add_column("Languages")
    table.add_column("Status")
    table.add_column("Version")
    table.add_column("Install", overflow="fold")
    for name in DEFAULT_REGISTRY:
        adapter = DEFAULT_REGISTRY.create(name)
        probe = adapter.probe()
        if probe.available:
            status = "[green]available[/]" if use_color else "available"
        else:
            status = f"[red]{probe.error}[/]" if use_color else str(probe.error)
        hint = adapter.install_hint()
        table.add_row(
            name,
            ", ".join(adapter.capabilities().supported_languages),
            status,
            probe.version or "-",
            "; ".join(hint.steps),
        )
    console.print(table)


def main() -> None:
    """Run the Typer application."""

    app()


__all__ = ["EXIT_CLEAN", "EXIT_FINDINGS", "EXIT_INPUT_ERROR", "app", "exit_code_for", "main"]
