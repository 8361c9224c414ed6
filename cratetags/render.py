"""
Rendering functions for cratetags output.

This module handles all pretty-printing of the run report. Reports go to
stderr so stdout stays free for --json output.
"""

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich import box
from typing import List

from .domain.report import MissingSourceRecord, RunReport

console = Console(stderr=True)

MISSING_SOURCES_HINT = (
    "Have you run 'cargo fetch' at least once or have you added/updated a dependency "
    "without calling 'cargo fetch' again?\n"
    "The dependencies might also be platform specific and not needed on your current platform."
)


def render_missing_sources(records: List[MissingSourceRecord], show_reasons: bool = False) -> None:
    """
    Render the dependencies whose source code could not be found.

    Args:
        records: Missing source records of the run
        show_reasons: Also show why each source was unusable
    """
    if not records:
        return

    console.print("[yellow]Couldn't find source code of dependencies:[/yellow]")
    if show_reasons:
        table = Table(box=box.SIMPLE, show_header=True, header_style="bold magenta")
        table.add_column("Dependency")
        table.add_column("Reason")
        for record in records:
            table.add_row(escape(str(record)), escape(record.reason))
        console.print(table)
    else:
        for record in records:
            console.print(f"   {escape(str(record))}")

    console.print()
    console.print(MISSING_SOURCES_HINT, style="dim")


def render_report(report: RunReport, verbose: bool = False) -> None:
    """Render the summary of a run, failures and missing sources."""
    for result in report.failed_roots:
        console.print(f"[red]✗[/red] {escape(result.name)}: {escape(result.error or 'failed')}")

    console.print(
        f"[green]✓[/green] {report.merged} tag files written, "
        f"{report.skipped} up to date, "
        f"{len(report.failed_roots)} failed "
        f"[dim]({report.extracted} generated, {report.reused} reused)[/dim]"
    )

    render_missing_sources(report.missing_sources, show_reasons=verbose)
