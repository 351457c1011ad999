"""Monitoring module - sampling-and-delta engine for per-site cgroups.

Components:
- CgroupCounterSource: raw counters and limits from cgroup v2 files
- BaselineStore: previous sample per entity
- rates: fixed-point delta/rate calculations
- EntitySampler: counters + baseline -> SampleResult
- TickScheduler: one-shot / watch loop with cancellation
- PerfRecorder: self-instrumentation
"""

from __future__ import annotations

from site_usage.monitoring.base import Baseline, Limits, RawSample
from site_usage.monitoring.baseline import BaselineStore
from site_usage.monitoring.counter_source import CgroupCounterSource
from site_usage.monitoring.discovery import (
    entities_for_owner,
    find_owners,
    list_entities,
    partial_stats,
    resolve_owner,
)
from site_usage.monitoring.perf import PerfRecorder
from site_usage.monitoring.rates import (
    core_equivalent,
    counter_delta,
    cpu_allowance_usec,
    cpu_percent,
    fixed_point,
    format_fixed,
    percentage,
    throughput_mbps,
)
from site_usage.monitoring.sampler import EntitySampler
from site_usage.monitoring.scheduler import (
    CancellationToken,
    SchedulerState,
    TickScheduler,
    cancel_on_signals,
)

__all__ = [
    "Baseline",
    "BaselineStore",
    "CancellationToken",
    "CgroupCounterSource",
    "EntitySampler",
    "Limits",
    "PerfRecorder",
    "RawSample",
    "SchedulerState",
    "TickScheduler",
    "cancel_on_signals",
    "core_equivalent",
    "counter_delta",
    "cpu_allowance_usec",
    "cpu_percent",
    "entities_for_owner",
    "find_owners",
    "fixed_point",
    "format_fixed",
    "list_entities",
    "partial_stats",
    "percentage",
    "resolve_owner",
    "throughput_mbps",
]
