"""Output module - table and JSON renderers."""

from __future__ import annotations

from site_usage.output.renderers import (
    JsonRenderer,
    TableRenderer,
    overview_table,
    perf_summary_dict,
    perf_summary_lines,
    truncate_entity,
)

__all__ = [
    "JsonRenderer",
    "TableRenderer",
    "overview_table",
    "perf_summary_dict",
    "perf_summary_lines",
    "truncate_entity",
]
