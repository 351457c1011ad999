"""Raw counter types shared by the monitoring components.

Counters (CPU time, bytes transferred) are cumulative and only meaningful as
deltas between two samples; gauges (memory, process count) are read as-is.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from site_usage.core.constants import DEFAULT_CPU_PERIOD_USEC


@dataclass(frozen=True)
class RawSample:
    """One instant's reading for an entity.

    Fields that could not be read default to zero.
    """

    # Counters
    cpu_usage_usec: int = 0  # cpu.stat usage_usec
    read_bytes: int = 0  # io.stat rbytes, summed over devices
    write_bytes: int = 0  # io.stat wbytes, summed over devices
    # Gauges
    memory_bytes: int = 0  # memory.current
    processes: int = 0  # pids.current


@dataclass(frozen=True)
class Limits:
    """Configured ceilings for an entity, re-read every tick.

    ``None`` means "unlimited" for every field.
    """

    cpu_quota_usec: int | None = None
    cpu_period_usec: int = DEFAULT_CPU_PERIOD_USEC
    memory_max_bytes: int | None = None
    pids_max: int | None = None

    @property
    def cpu_limited(self) -> bool:
        return self.cpu_quota_usec is not None


@dataclass(frozen=True)
class Baseline:
    """The previous sample of an entity and when it was taken.

    ``taken_at_usec`` is a monotonic clock reading in microseconds.
    """

    sample: RawSample = field(default_factory=RawSample)
    taken_at_usec: int = 0
