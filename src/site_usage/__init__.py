"""site-usage - per-site cgroup v2 resource usage sampler."""

from __future__ import annotations

from site_usage.core.schemas import MonitorConfig, PerfSummary, SampleResult

__version__ = "0.1.0"

__all__ = [
    "MonitorConfig",
    "PerfSummary",
    "SampleResult",
    "__version__",
]
