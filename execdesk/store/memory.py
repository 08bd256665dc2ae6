"""
Event store interface and an in-memory reference implementation.

Analytics never talk to a database. Callers pull a snapshot from an
EventStore and hand plain lists to the pure functions.

INTERFACE:
    get_fills(strategy_id=None, limit=None)            -> newest first
    get_cancels / get_rejects / get_latency_samples   -> same shape
    get_strategies() / get_strategy(id)
    add_fill / add_cancel / add_reject / add_latency_sample / add_strategy
    add_anomaly(anomaly) / get_anomalies(...)

THREAD SAFETY:
InMemoryEventStore guards its lists with a single lock. Getters return new
lists, so callers may iterate while writers append.
"""

import threading
from typing import Dict, List, Optional, Protocol, Sequence, TypeVar, runtime_checkable

from execdesk.analytics.aggregation import EventBatch
from execdesk.events.types import Cancel, Fill, LatencySample, Reject, Strategy
from execdesk.logging import LogStream, get_logger
from execdesk.monitoring.anomaly import Anomaly

logger = get_logger(LogStream.DATA)

T = TypeVar("T")


@runtime_checkable
class EventStore(Protocol):
    """Structural interface of an event source. No inheritance required."""

    def get_fills(self, strategy_id: Optional[str] = None, limit: Optional[int] = None) -> List[Fill]:
        ...

    def get_cancels(self, strategy_id: Optional[str] = None, limit: Optional[int] = None) -> List[Cancel]:
        ...

    def get_rejects(self, strategy_id: Optional[str] = None, limit: Optional[int] = None) -> List[Reject]:
        ...

    def get_latency_samples(
        self, strategy_id: Optional[str] = None, limit: Optional[int] = None
    ) -> List[LatencySample]:
        ...

    def get_strategies(self) -> List[Strategy]:
        ...

    def get_strategy(self, strategy_id: str) -> Optional[Strategy]:
        ...

    def add_anomaly(self, anomaly: Anomaly) -> Anomaly:
        ...


def _select(records: Sequence[T], strategy_id: Optional[str], limit: Optional[int]) -> List[T]:
    if limit is not None and limit < 0:
        raise ValueError(f"limit cannot be negative (got {limit})")
    selected = [r for r in records if strategy_id is None or r.strategy_id == strategy_id]
    selected = sorted(selected, key=lambda r: r.timestamp, reverse=True)
    return selected if limit is None else selected[:limit]


class InMemoryEventStore:
    """
    Process-local EventStore.

    USAGE:
        store = InMemoryEventStore()
        store.add_strategy(Strategy(id="S1", name="Momentum"))
        store.add_fill(fill)
        batch = store.snapshot("S1")
        metrics = compute_strategy_metrics("S1", batch.fills, ...)
    """

    def __init__(self, batch: Optional[EventBatch] = None, strategies: Sequence[Strategy] = ()):
        self._lock = threading.Lock()
        self._fills: List[Fill] = []
        self._cancels: List[Cancel] = []
        self._rejects: List[Reject] = []
        self._latency_samples: List[LatencySample] = []
        self._strategies: Dict[str, Strategy] = {}
        self._anomalies: List[Anomaly] = []

        if batch is not None:
            self.extend(batch)
        for strategy in strategies:
            self.add_strategy(strategy)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_fill(self, fill: Fill) -> Fill:
        with self._lock:
            self._fills.append(fill)
        return fill

    def add_cancel(self, cancel: Cancel) -> Cancel:
        with self._lock:
            self._cancels.append(cancel)
        return cancel

    def add_reject(self, reject: Reject) -> Reject:
        with self._lock:
            self._rejects.append(reject)
        return reject

    def add_latency_sample(self, sample: LatencySample) -> LatencySample:
        with self._lock:
            self._latency_samples.append(sample)
        return sample

    def add_strategy(self, strategy: Strategy) -> Strategy:
        with self._lock:
            if strategy.id in self._strategies:
                logger.debug(f"Replacing strategy {strategy.id}")
            self._strategies[strategy.id] = strategy
        return strategy

    def add_anomaly(self, anomaly: Anomaly) -> Anomaly:
        with self._lock:
            self._anomalies.append(anomaly)
        return anomaly

    def extend(self, batch: EventBatch) -> None:
        """Append every event of a batch under one lock acquisition."""
        with self._lock:
            self._fills.extend(batch.fills)
            self._cancels.extend(batch.cancels)
            self._rejects.extend(batch.rejects)
            self._latency_samples.extend(batch.latency_samples)
        logger.info("Events added", extra={
            "fills": len(batch.fills),
            "cancels": len(batch.cancels),
            "rejects": len(batch.rejects),
            "latency_samples": len(batch.latency_samples),
        })

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_fills(self, strategy_id: Optional[str] = None, limit: Optional[int] = None) -> List[Fill]:
        with self._lock:
            return _select(self._fills, strategy_id, limit)

    def get_cancels(self, strategy_id: Optional[str] = None, limit: Optional[int] = None) -> List[Cancel]:
        with self._lock:
            return _select(self._cancels, strategy_id, limit)

    def get_rejects(self, strategy_id: Optional[str] = None, limit: Optional[int] = None) -> List[Reject]:
        with self._lock:
            return _select(self._rejects, strategy_id, limit)

    def get_latency_samples(
        self, strategy_id: Optional[str] = None, limit: Optional[int] = None
    ) -> List[LatencySample]:
        with self._lock:
            return _select(self._latency_samples, strategy_id, limit)

    def get_anomalies(self, strategy_id: Optional[str] = None, limit: Optional[int] = None) -> List[Anomaly]:
        with self._lock:
            return _select(self._anomalies, strategy_id, limit)

    def get_strategies(self) -> List[Strategy]:
        with self._lock:
            return list(self._strategies.values())

    def get_strategy(self, strategy_id: str) -> Optional[Strategy]:
        with self._lock:
            return self._strategies.get(strategy_id)

    def snapshot(self, strategy_id: Optional[str] = None) -> EventBatch:
        """Consistent copy of all events (optionally one strategy's)."""
        with self._lock:
            return EventBatch(
                fills=_select(self._fills, strategy_id, None),
                cancels=_select(self._cancels, strategy_id, None),
                rejects=_select(self._rejects, strategy_id, None),
                latency_samples=_select(self._latency_samples, strategy_id, None),
            )
