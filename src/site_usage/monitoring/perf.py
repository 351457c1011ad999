"""Self-instrumentation: the sampler's own wall time, peak RSS and CPU time.

Used with ``--perf-test`` to characterize monitoring overhead. Ticks are
timed with a high-resolution clock; memory and CPU come from psutil for the
current process.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager

import psutil

from site_usage.core.schemas import PerfSummary

logger = logging.getLogger(__name__)


class PerfRecorder:
    """Accumulates per-tick cost across a run.

    The peak memory is a high-water mark: samples only ever raise it. The
    summary is frozen the first time it is requested, and ``finalize`` hands
    it out exactly once so it cannot be emitted twice.

    Example:
        ```python
        perf = PerfRecorder()
        perf.start()
        with perf.measure_tick():
            ...  # sample all entities
        summary = perf.finalize()
        ```
    """

    def __init__(
        self,
        process: psutil.Process | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._process = process if process is not None else psutil.Process()
        self._clock = clock
        self._lock = threading.Lock()
        self._runs = 0
        self._total_wall_seconds = 0.0
        self._peak_memory_kb = 0
        self._cpu_seconds_start = 0.0
        self._summary: PerfSummary | None = None
        self._emitted = False

    @property
    def runs(self) -> int:
        return self._runs

    @property
    def peak_memory_kb(self) -> int:
        return self._peak_memory_kb

    def start(self) -> None:
        """Record the starting CPU time and an initial memory sample."""
        self._cpu_seconds_start = self._cpu_seconds()
        self.record_memory_sample()

    def record_tick(self, duration_seconds: float) -> None:
        with self._lock:
            self._runs += 1
            self._total_wall_seconds += max(0.0, duration_seconds)

    def record_memory_sample(self) -> int:
        """Sample the current RSS (KB) and raise the peak if it is higher."""
        try:
            rss_kb = self._process.memory_info().rss // 1024
        except psutil.Error as e:
            logger.debug(f"Could not read own RSS: {e}")
            return self._peak_memory_kb
        with self._lock:
            if rss_kb > self._peak_memory_kb:
                self._peak_memory_kb = rss_kb
        return rss_kb

    @contextmanager
    def measure_tick(self) -> Iterator[None]:
        """Time the enclosed block as one tick, then sample memory."""
        started = self._clock()
        try:
            yield
        finally:
            self.record_tick(self._clock() - started)
            self.record_memory_sample()

    def summary(self) -> PerfSummary:
        """Return the run summary, frozen on first call."""
        with self._lock:
            if self._summary is None:
                self._summary = PerfSummary(
                    runs=self._runs,
                    total_wall_seconds=self._total_wall_seconds,
                    peak_memory_kb=self._peak_memory_kb,
                    cpu_seconds_start=self._cpu_seconds_start,
                    cpu_seconds_end=max(self._cpu_seconds(), self._cpu_seconds_start),
                )
            return self._summary

    def finalize(self) -> PerfSummary | None:
        """Return the summary the first time only; None on later calls."""
        summary = self.summary()
        with self._lock:
            if self._emitted:
                return None
            self._emitted = True
        return summary

    def _cpu_seconds(self) -> float:
        try:
            times = self._process.cpu_times()
        except psutil.Error as e:
            logger.debug(f"Could not read own CPU times: {e}")
            return self._cpu_seconds_start
        return times.user + times.system
