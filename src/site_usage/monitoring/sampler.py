"""Per-entity sampling: counters -> deltas -> SampleResult."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

import psutil

from site_usage.core.constants import CGROUP_MAX
from site_usage.core.schemas import (
    CPUUsage,
    IOUsage,
    MemoryUsage,
    ProcessUsage,
    SampleResult,
)
from site_usage.monitoring.base import Limits, RawSample
from site_usage.monitoring.baseline import BaselineStore
from site_usage.monitoring.counter_source import CgroupCounterSource
from site_usage.monitoring.discovery import resolve_owner
from site_usage.monitoring.rates import (
    bytes_to_mb,
    core_equivalent,
    counter_delta,
    cpu_allowance_usec,
    cpu_percent,
    percentage,
    throughput_mbps,
)

logger = logging.getLogger(__name__)


def monotonic_usec() -> int:
    """Monotonic clock in integer microseconds."""
    return time.monotonic_ns() // 1000


def system_cpu_count() -> int:
    return psutil.cpu_count(logical=True) or 1


class EntitySampler:
    """Turns two consecutive counter readings of an entity into a SampleResult.

    The previous reading comes from the BaselineStore and is replaced by the
    current one on every call. Without a usable baseline (first sample,
    entity restarted, non-advancing clock) all rates are zero.
    """

    def __init__(
        self,
        source: CgroupCounterSource,
        baselines: BaselineStore,
        owner_resolver: Callable[[str], str],
        cpu_count: int | None = None,
        clock: Callable[[], int] = monotonic_usec,
    ) -> None:
        self._source = source
        self._baselines = baselines
        self._owner_resolver = owner_resolver
        self._cpu_count = cpu_count if cpu_count is not None else system_cpu_count()
        self._clock = clock

    @classmethod
    def for_www_root(
        cls,
        source: CgroupCounterSource,
        baselines: BaselineStore,
        www_root: Path,
        **kwargs: Any,
    ) -> EntitySampler:
        """Build a sampler that labels entities with their www directory owner."""
        return cls(source, baselines, lambda entity: resolve_owner(www_root, entity), **kwargs)

    @property
    def baselines(self) -> BaselineStore:
        return self._baselines

    @property
    def cpu_count(self) -> int:
        return self._cpu_count

    def prime(self, entity: str) -> None:
        """Record a baseline for ``entity`` without producing a result.

        Raises:
            EntityNotFoundError: If the entity's cgroup is absent
        """
        sample, _ = self._source.read_counters(entity)
        self._baselines.set(entity, sample, self._clock())

    def sample(self, entity: str) -> SampleResult:
        """Read ``entity`` now and derive its rates against the stored baseline.

        Raises:
            EntityNotFoundError: If the entity's cgroup is absent
        """
        current, limits = self._source.read_counters(entity)
        now = self._clock()

        previous = self._baselines.get(entity)
        self._baselines.set(entity, current, now)

        elapsed_usec = now - previous.taken_at_usec if previous is not None else 0
        if previous is None or elapsed_usec <= 0:
            logger.debug(f"No usable baseline for {entity}, reporting zero rates")
            before = current
            elapsed_usec = 0
        else:
            before = previous.sample

        return self._build_result(entity, before, current, limits, elapsed_usec)

    def _build_result(
        self,
        entity: str,
        before: RawSample,
        current: RawSample,
        limits: Limits,
        elapsed_usec: int,
    ) -> SampleResult:
        allowance = cpu_allowance_usec(limits, self._cpu_count, elapsed_usec)

        memory_ceiling = limits.memory_max_bytes
        if memory_ceiling is None:
            memory_ceiling = self._source.system_memory_bytes()

        read_mbps = throughput_mbps(before.read_bytes, current.read_bytes, elapsed_usec)
        write_mbps = throughput_mbps(before.write_bytes, current.write_bytes, elapsed_usec)
        total_mbps = throughput_mbps(
            0,
            counter_delta(before.read_bytes, current.read_bytes)
            + counter_delta(before.write_bytes, current.write_bytes),
            elapsed_usec,
        )

        return SampleResult(
            entity=entity,
            owner=self._owner_resolver(entity),
            cpu=CPUUsage(
                usage_percent=cpu_percent(before.cpu_usage_usec, current.cpu_usage_usec, allowance),
                cores=core_equivalent(limits, self._cpu_count),
                quota=str(limits.cpu_quota_usec) if limits.cpu_limited else CGROUP_MAX,
                period=str(limits.cpu_period_usec),
            ),
            memory=MemoryUsage(
                used_mb=bytes_to_mb(current.memory_bytes),
                max_mb=bytes_to_mb(memory_ceiling),
                percentage=percentage(current.memory_bytes, memory_ceiling),
                limited=limits.memory_max_bytes is not None,
            ),
            io=IOUsage(read_mbps=read_mbps, write_mbps=write_mbps, total_mbps=total_mbps),
            processes=ProcessUsage(current=current.processes, max=limits.pids_max),
        )
