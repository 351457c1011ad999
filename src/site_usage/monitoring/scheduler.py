"""Tick scheduler: one-shot or repeating sampling with cooperative cancellation.

State machine::

    IDLE -> SAMPLING -> EMITTING -> IDLE -> ... -> STOPPED

One-shot mode primes a baseline for every entity, waits one interval, then
samples and emits exactly once. Watch mode repeats wait/sample/emit until the
cancellation token is set. Cancellation is only observed between ticks, and
the self-instrumentation summary is emitted exactly once on the way out.
"""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager, nullcontext
from enum import Enum
from typing import Any, Protocol

from site_usage.core.exceptions import ConfigurationError, EntityNotFoundError
from site_usage.core.schemas import PerfSummary, SampleResult
from site_usage.monitoring.perf import PerfRecorder
from site_usage.monitoring.sampler import EntitySampler

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    """Lifecycle states of a TickScheduler."""

    IDLE = "idle"
    SAMPLING = "sampling"
    EMITTING = "emitting"
    STOPPED = "stopped"


class CancellationToken:
    """Thread-safe cancellation flag that can also be waited on."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True if cancelled."""
        return self._event.wait(timeout)


class ResultRenderer(Protocol):
    """Consumer of scheduler output."""

    def render(self, results: Sequence[SampleResult]) -> None: ...

    def render_summary(self, summary: PerfSummary) -> None: ...


@contextmanager
def cancel_on_signals(
    token: CancellationToken,
    signals: Sequence[signal.Signals] = (signal.SIGINT, signal.SIGTERM),
) -> Iterator[CancellationToken]:
    """Route SIGINT/SIGTERM to ``token`` for the duration of the block.

    The handler only sets the token; original handlers are restored on exit.
    """
    originals: dict[signal.Signals, Any] = {}

    def _handler(signum: int, frame: Any) -> None:
        logger.debug(f"Signal {signum} received, stopping after the current tick")
        token.cancel()

    try:
        for sig in signals:
            originals[sig] = signal.signal(sig, _handler)
    except ValueError as e:
        # signal.signal only works from the main thread
        logger.warning(f"Failed to set up signal handlers: {e}")

    try:
        yield token
    finally:
        for sig, original in originals.items():
            signal.signal(sig, original)


class TickScheduler:
    """Drives sampling of a fixed, ordered set of entities.

    Example:
        ```python
        scheduler = TickScheduler(sampler, ["site-a", "site-b"], renderer, interval_seconds=2,
                                  watch=True, perf=PerfRecorder())
        with cancel_on_signals(scheduler.token):
            scheduler.run()
        ```
    """

    def __init__(
        self,
        sampler: EntitySampler,
        entities: Sequence[str],
        renderer: ResultRenderer,
        interval_seconds: int = 1,
        watch: bool = False,
        perf: PerfRecorder | None = None,
        token: CancellationToken | None = None,
        wait: Callable[[float], bool] | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            sampler: Per-entity sampler (owns the baseline store)
            entities: Entities to sample, in output order
            renderer: Receives each tick's results and the final summary
            interval_seconds: Settling/inter-tick delay, positive integer
            watch: Repeat until cancelled instead of sampling once
            perf: Optional self-instrumentation recorder
            token: Cancellation token (created if not given)
            wait: Sleep function returning True when cancelled; defaults to
                ``token.wait``

        Raises:
            ConfigurationError: If the interval is invalid or no entities are given
        """
        if isinstance(interval_seconds, bool) or not isinstance(interval_seconds, int):
            raise ConfigurationError(f"Interval must be an integer, got {interval_seconds!r}")
        if interval_seconds < 1:
            raise ConfigurationError(f"Interval must be at least 1 second, got {interval_seconds}")

        ordered = list(dict.fromkeys(entities))
        if not ordered:
            raise ConfigurationError("No entities to monitor")

        self._sampler = sampler
        self._entities = ordered
        self._renderer = renderer
        self._interval = interval_seconds
        self._watch = watch
        self._perf = perf
        self.token = token if token is not None else CancellationToken()
        self._wait = wait if wait is not None else self.token.wait
        self._state = SchedulerState.IDLE
        self._ticks = 0
        self._skipped: list[str] = []
        self._summary: PerfSummary | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def entities(self) -> list[str]:
        return list(self._entities)

    @property
    def ticks(self) -> int:
        """Number of completed (emitted) ticks."""
        return self._ticks

    @property
    def skipped(self) -> list[str]:
        """Entities skipped during the most recent pass."""
        return list(self._skipped)

    def run(self) -> PerfSummary | None:
        """Run until the single tick completes (one-shot) or cancellation (watch).

        Returns:
            The self-instrumentation summary, or None when disabled
        """
        if self._state is not SchedulerState.IDLE:
            raise RuntimeError(f"Scheduler cannot run from state {self._state.value}")

        try:
            if self._perf is not None:
                self._perf.start()
            self._prime()

            while True:
                if self._wait(self._interval) or self.token.cancelled:
                    logger.debug(f"Cancelled after {self._ticks} tick(s)")
                    break
                self._tick()
                if not self._watch:
                    break
        finally:
            self._stop()

        return self._summary

    def sample_all(self) -> list[SampleResult]:
        """Sample every entity once, skipping entities that fail."""
        results: list[SampleResult] = []
        self._skipped = []
        for entity in self._entities:
            try:
                results.append(self._sampler.sample(entity))
            except EntityNotFoundError as e:
                self._skip(entity, str(e))
            except (OSError, ValueError) as e:
                self._skip(entity, f"error sampling '{entity}': {e}")
        return results

    def _prime(self) -> None:
        self._skipped = []
        for entity in self._entities:
            try:
                self._sampler.prime(entity)
            except EntityNotFoundError as e:
                self._skip(entity, str(e))

    def _skip(self, entity: str, reason: str) -> None:
        logger.warning(f"Skipping {entity}: {reason}")
        self._sampler.baselines.discard(entity)
        self._skipped.append(entity)

    def _tick(self) -> None:
        measure = self._perf.measure_tick() if self._perf is not None else nullcontext()
        with measure:
            self._state = SchedulerState.SAMPLING
            results = self.sample_all()
            self._state = SchedulerState.EMITTING
            self._renderer.render(results)
        self._ticks += 1
        self._state = SchedulerState.IDLE

    def _stop(self) -> None:
        self._state = SchedulerState.STOPPED
        self._sampler.baselines.clear()
        if self._perf is None:
            return
        summary = self._perf.finalize()
        if summary is not None:
            self._summary = summary
            self._renderer.render_summary(summary)
