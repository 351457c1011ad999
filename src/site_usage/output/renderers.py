"""Table and JSON renderers for sample results.

Renderers receive each tick's results in entity order, plus the
self-instrumentation summary once at the end of a run.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import Any, TextIO

import simplejson
from rich.console import Console
from rich.table import Table

from site_usage.core.constants import ENTITY_COLUMN_WIDTH
from site_usage.core.schemas import EntityOverview, PerfSummary, SampleResult

# Appended to MEM (MB) when the ceiling is the system total, not memory.max
UNLIMITED_MEMORY_MARK = "*"


def truncate_entity(name: str, width: int = ENTITY_COLUMN_WIDTH) -> str:
    """Shorten long entity names to ``width`` characters ending in '...'."""
    if len(name) <= width:
        return name
    return name[: width - 3] + "..."


def perf_summary_lines(summary: PerfSummary) -> list[str]:
    """Human-readable performance summary lines."""
    return [
        "Performance test summary:",
        f"  Total runs: {summary.runs}",
        f"  Total wall time: {summary.total_wall_seconds:.6f} seconds",
        f"  Average time per run: {summary.avg_seconds_per_run:.6f} seconds",
        f"  Peak memory used by this process: {summary.peak_memory_kb} KB",
        f"  Process CPU time: {summary.cpu_seconds:.2f}s / "
        f"{summary.total_wall_seconds:.6f}s ({summary.cpu_percent:.2f}%)",
    ]


def perf_summary_dict(summary: PerfSummary) -> dict[str, Any]:
    return {
        "runs": summary.runs,
        "total_wall_seconds": round(summary.total_wall_seconds, 6),
        "avg_seconds_per_run": round(summary.avg_seconds_per_run, 6),
        "peak_memory_kb": summary.peak_memory_kb,
        "cpu_seconds": round(summary.cpu_seconds, 2),
        "cpu_percent": round(summary.cpu_percent, 2),
    }


class TableRenderer:
    """Renders each tick as a rich table, optionally clearing the screen first."""

    COLUMNS = ("CGROUP", "OWNER", "CPU(%)", "CORES", "MEM (MB)", "MEM(%)", "IO (R/W/T)", "PIDS")

    def __init__(self, console: Console | None = None, clear_screen: bool = False) -> None:
        self._console = console if console is not None else Console()
        self._clear_screen = clear_screen

    @staticmethod
    def _memory_cell(result: SampleResult) -> str:
        cell = f"{result.memory.used_mb}/{result.memory.max_mb}"
        return cell if result.memory.limited else cell + UNLIMITED_MEMORY_MARK

    def build_table(self, results: Sequence[SampleResult]) -> Table:
        table = Table(header_style="bold cyan")
        for column in self.COLUMNS:
            justify = "left" if column in ("CGROUP", "OWNER") else "right"
            table.add_column(column, justify=justify, no_wrap=True)

        for r in results:
            table.add_row(
                truncate_entity(r.entity),
                r.owner,
                f"{r.cpu.usage_percent}%",
                str(r.cpu.cores),
                self._memory_cell(r),
                f"{r.memory.percentage}%",
                f"R:{r.io.read_mbps} W:{r.io.write_mbps} T:{r.io.total_mbps}",
                f"{r.processes.current}/{r.processes.max_label}",
            )
        if any(not r.memory.limited for r in results):
            table.caption = f"{UNLIMITED_MEMORY_MARK} memory.max unlimited, system memory shown"
        return table

    def render(self, results: Sequence[SampleResult]) -> None:
        if self._clear_screen:
            self._console.clear()
        if not results:
            self._console.print("[yellow]No results for this tick[/]")
            return
        self._console.print(self.build_table(results))

    def render_summary(self, summary: PerfSummary) -> None:
        self._console.print()
        for line in perf_summary_lines(summary):
            self._console.print(line, markup=False, highlight=False)


class JsonRenderer:
    """Renders results as JSON documents on a text stream.

    With ``as_array`` each tick is a single JSON array, otherwise one
    document per result. Decimals are written as JSON numbers with their
    fixed digits intact.
    """

    def __init__(self, stream: TextIO | None = None, as_array: bool = False) -> None:
        self._stream = stream if stream is not None else sys.stdout
        self._as_array = as_array

    def _write(self, payload: Any) -> None:
        self._stream.write(simplejson.dumps(payload, indent=2, use_decimal=True) + "\n")
        self._stream.flush()

    def render(self, results: Sequence[SampleResult]) -> None:
        if self._as_array:
            self._write([r.to_json_dict() for r in results])
            return
        for r in results:
            self._write(r.to_json_dict())

    def render_summary(self, summary: PerfSummary) -> None:
        self._write({"performance": perf_summary_dict(summary)})


def overview_table(overviews: Sequence[EntityOverview]) -> Table:
    """Numbered selection table: #, entity, owner, memory MB, pids."""
    table = Table(header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("CGROUP", no_wrap=True)
    table.add_column("OWNER")
    table.add_column("MEM_MB", justify="right")
    table.add_column("PIDS", justify="right")
    for index, overview in enumerate(overviews, start=1):
        table.add_row(
            str(index),
            truncate_entity(overview.entity),
            overview.owner,
            str(overview.memory_mb),
            str(overview.processes),
        )
    return table
