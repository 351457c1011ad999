"""Per-entity baseline storage for counter deltas."""

from __future__ import annotations

import logging
import threading

from site_usage.monitoring.base import Baseline, RawSample

logger = logging.getLogger(__name__)


class BaselineStore:
    """Holds the most recent sample of each tracked entity.

    One entry per entity, overwritten every tick. ``get`` on an unknown
    entity returns None, which the calculator treats as "no delta yet".
    Access is serialized with a lock so entities may be sampled from worker
    threads; each call touches a single key.
    """

    def __init__(self) -> None:
        self._baselines: dict[str, Baseline] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._baselines)

    def __contains__(self, entity: object) -> bool:
        with self._lock:
            return entity in self._baselines

    def get(self, entity: str) -> Baseline | None:
        with self._lock:
            return self._baselines.get(entity)

    def set(self, entity: str, sample: RawSample, taken_at_usec: int) -> Baseline:
        """Record ``sample`` as the entity's baseline and return it."""
        baseline = Baseline(sample=sample, taken_at_usec=taken_at_usec)
        with self._lock:
            self._baselines[entity] = baseline
        return baseline

    def discard(self, entity: str) -> None:
        """Forget an entity so its next sample starts from scratch."""
        with self._lock:
            if self._baselines.pop(entity, None) is not None:
                logger.debug(f"Discarded baseline for {entity}")

    def clear(self) -> None:
        with self._lock:
            self._baselines.clear()
