"""Core module - configuration, schemas and errors."""

from __future__ import annotations

from site_usage.core.config import apply_overrides, load_config
from site_usage.core.exceptions import (
    ConfigurationError,
    EntityNotFoundError,
    SiteUsageError,
)
from site_usage.core.schemas import (
    CPUUsage,
    EntityOverview,
    IOUsage,
    MemoryUsage,
    MonitorConfig,
    PerfSummary,
    ProcessUsage,
    SampleResult,
)

__all__ = [
    "CPUUsage",
    "ConfigurationError",
    "EntityNotFoundError",
    "EntityOverview",
    "IOUsage",
    "MemoryUsage",
    "MonitorConfig",
    "PerfSummary",
    "ProcessUsage",
    "SampleResult",
    "SiteUsageError",
    "apply_overrides",
    "load_config",
]
