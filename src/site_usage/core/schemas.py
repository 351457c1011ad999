"""Pydantic schemas for site-usage.

This module defines the data contracts used throughout the sampler: the run
configuration, the per-entity sample result handed to renderers, and the
self-instrumentation summary.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from site_usage.core.constants import (
    CGROUP_MAX,
    DEFAULT_CGROUP_ROOT,
    DEFAULT_PROC_ROOT,
    DEFAULT_WWW_ROOT,
    UNKNOWN_OWNER,
    UNLIMITED,
)


class MonitorConfig(BaseModel):
    """Top-level run configuration.

    Loaded from YAML/JSON and/or built from CLI flags. Supplied once at
    startup and immutable for the rest of the run.
    """

    cgroup_root: Path = Field(
        default=DEFAULT_CGROUP_ROOT, description="Parent cgroup with one child per site"
    )
    www_root: Path = Field(
        default=DEFAULT_WWW_ROOT, description="Site directories used for owner lookup"
    )
    proc_root: Path = Field(default=DEFAULT_PROC_ROOT, description="procfs mount point")
    interval_seconds: int = Field(default=1, ge=1, description="Sampling window / watch interval")
    watch: bool = Field(default=False, description="Repeat until interrupted")
    json_output: bool = Field(default=False, description="Emit JSON instead of a table")
    perf_test: bool = Field(default=False, description="Measure the sampler's own overhead")
    read_timeout_seconds: float = Field(
        default=2.0, gt=0, le=60, description="Upper bound for reading a single counter file"
    )
    log_level: str = Field(default="WARNING")

    model_config = {"frozen": True, "extra": "forbid"}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level


class CPUUsage(BaseModel):
    """CPU usage relative to the entity's allotment."""

    usage_percent: Decimal = Field(ge=0, description="Share of the allotment used, 2 decimals")
    cores: Decimal = Field(ge=0, description="Allotted core equivalents, 1 decimal")
    quota: str = Field(default=CGROUP_MAX, description="cpu.max quota (usec) or 'max'")
    period: str = Field(default="100000", description="cpu.max period (usec)")


class MemoryUsage(BaseModel):
    """Memory usage against the memory ceiling."""

    used_mb: int = Field(ge=0)
    max_mb: int = Field(ge=0, description="memory.max, or system total when unlimited")
    percentage: Decimal = Field(ge=0)
    limited: bool = Field(default=False, description="False when memory.max is 'max'")


class IOUsage(BaseModel):
    """Block I/O throughput over the last sampling window (MB/s)."""

    read_mbps: Decimal = Field(ge=0)
    write_mbps: Decimal = Field(ge=0)
    total_mbps: Decimal = Field(ge=0)


class ProcessUsage(BaseModel):
    """Process count against pids.max."""

    current: int = Field(ge=0)
    max: int | None = Field(default=None, ge=0, description="None when unlimited")

    @property
    def max_label(self) -> str:
        return UNLIMITED if self.max is None else str(self.max)


class SampleResult(BaseModel):
    """One entity's fully derived reading for one tick."""

    entity: str = Field(..., min_length=1)
    owner: str = Field(default=UNKNOWN_OWNER)
    timestamp: datetime = Field(default_factory=datetime.now)
    cpu: CPUUsage
    memory: MemoryUsage
    io: IOUsage
    processes: ProcessUsage

    def to_json_dict(self) -> dict[str, Any]:
        """Convert to the documented JSON layout.

        Fixed-point values stay exact ``Decimal``s so an encoder with decimal
        support writes them as numbers with their fixed digits (``25.00``).
        Ceilings that are not set are rendered as the "max"/"unlimited"
        sentinel strings; memory falls back to the system total and is
        flagged with ``limited: false``.
        """
        return {
            "website_id": self.entity,
            "owner": self.owner,
            "timestamp": self.timestamp.isoformat(),
            "cpu": {
                "usage": self.cpu.usage_percent,
                "cores": self.cpu.cores,
                "quota": self.cpu.quota,
                "period": self.cpu.period,
            },
            "memory": {
                "used": self.memory.used_mb,
                "max": self.memory.max_mb,
                "percentage": self.memory.percentage,
                "limited": self.memory.limited,
            },
            "io": {
                "read": self.io.read_mbps,
                "write": self.io.write_mbps,
                "total": self.io.total_mbps,
            },
            "processes": {
                "current": self.processes.current,
                "max": self.processes.max if self.processes.max is not None else UNLIMITED,
            },
        }


class EntityOverview(BaseModel):
    """Cheap gauge-only overview used by the interactive selection list."""

    entity: str
    owner: str = Field(default=UNKNOWN_OWNER)
    memory_mb: int = Field(default=0, ge=0)
    processes: int = Field(default=0, ge=0)


class PerfSummary(BaseModel):
    """Self-instrumentation totals for one run."""

    runs: int = Field(default=0, ge=0, description="Number of completed ticks")
    total_wall_seconds: float = Field(default=0.0, ge=0)
    peak_memory_kb: int = Field(default=0, ge=0, description="Peak RSS of the sampler")
    cpu_seconds_start: float = Field(default=0.0, ge=0)
    cpu_seconds_end: float = Field(default=0.0, ge=0)

    @property
    def avg_seconds_per_run(self) -> float:
        if self.runs <= 0:
            return 0.0
        return self.total_wall_seconds / self.runs

    @property
    def cpu_seconds(self) -> float:
        """CPU time consumed by the sampler itself, clamped to zero."""
        return max(0.0, self.cpu_seconds_end - self.cpu_seconds_start)

    @property
    def cpu_percent(self) -> float:
        if self.total_wall_seconds <= 0:
            return 0.0
        return self.cpu_seconds / self.total_wall_seconds * 100
