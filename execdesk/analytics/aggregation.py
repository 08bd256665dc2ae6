"""
Grouping of event snapshots by strategy and by time window.

Provides:
- EventBatch: one snapshot of fills/cancels/rejects/latency samples
- group_by_strategy / group_by_time_window
- metrics_by_strategy / overview: dashboard summaries
- enrich_with_time_features: hour / day-of-week tagging
- to_frame: pandas export of a time series
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from execdesk.analytics.metrics import (
    DEFAULT_RISK_FREE_RATE,
    StrategyMetrics,
    compute_performance_metrics,
    compute_strategy_metrics,
)
from execdesk.analytics.timeseries import TimeSeriesPoint, group_by_window, window_start
from execdesk.events.types import Cancel, Fill, LatencySample, Reject, Strategy


@dataclass
class EventBatch:
    """A finite snapshot of execution events."""
    fills: List[Fill] = field(default_factory=list)
    cancels: List[Cancel] = field(default_factory=list)
    rejects: List[Reject] = field(default_factory=list)
    latency_samples: List[LatencySample] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.fills) + len(self.cancels) + len(self.rejects) + len(self.latency_samples)

    def all_events(self) -> List[Any]:
        return [*self.fills, *self.cancels, *self.rejects, *self.latency_samples]

    def strategy_ids(self) -> List[str]:
        return sorted({e.strategy_id for e in self.all_events()})

    def for_strategy(self, strategy_id: str) -> 'EventBatch':
        return EventBatch(
            fills=[f for f in self.fills if f.strategy_id == strategy_id],
            cancels=[c for c in self.cancels if c.strategy_id == strategy_id],
            rejects=[r for r in self.rejects if r.strategy_id == strategy_id],
            latency_samples=[s for s in self.latency_samples if s.strategy_id == strategy_id],
        )

    def add(self, event: Any) -> None:
        """Append an event to the list matching its type."""
        if isinstance(event, Fill):
            self.fills.append(event)
        elif isinstance(event, Cancel):
            self.cancels.append(event)
        elif isinstance(event, Reject):
            self.rejects.append(event)
        elif isinstance(event, LatencySample):
            self.latency_samples.append(event)
        else:
            raise TypeError(f"Unsupported event type: {type(event).__name__}")


def group_by_strategy(batch: EventBatch) -> Dict[str, EventBatch]:
    groups: Dict[str, EventBatch] = {}
    for event in batch.all_events():
        groups.setdefault(event.strategy_id, EventBatch()).add(event)
    return groups


def group_by_time_window(batch: EventBatch, window_minutes: float) -> Dict[datetime, EventBatch]:
    """Split a batch into per-window batches keyed by window start."""
    groups: Dict[datetime, EventBatch] = {}
    for key, events in group_by_window(batch.all_events(), window_minutes).items():
        window = EventBatch()
        for event in events:
            window.add(event)
        groups[window_start(key, window_minutes)] = window
    return groups


def metrics_by_strategy(
    batch: EventBatch,
    as_of: Optional[date] = None,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
) -> Dict[str, StrategyMetrics]:
    return {
        strategy_id: compute_strategy_metrics(
            strategy_id,
            group.fills,
            group.cancels,
            group.rejects,
            group.latency_samples,
            as_of=as_of,
            risk_free_rate=risk_free_rate,
        )
        for strategy_id, group in sorted(group_by_strategy(batch).items())
    }


def overview(
    batch: EventBatch,
    strategies: Sequence[Strategy] = (),
    as_of: Optional[date] = None,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
) -> Dict[str, Any]:
    """
    Dashboard overview: overall metrics, per-strategy metrics and a summary.

    Strategies listed in `strategies` are always reported (with zero metrics
    if they have no events); strategies seen only in the events are added.
    """
    overall = compute_performance_metrics(
        batch.fills, batch.cancels, batch.rejects, batch.latency_samples,
        risk_free_rate=risk_free_rate,
    )

    known = {s.id: s for s in strategies}
    strategy_ids = list(known) + [sid for sid in batch.strategy_ids() if sid not in known]

    rows = []
    for strategy_id in strategy_ids:
        group = batch.for_strategy(strategy_id)
        perf = compute_performance_metrics(
            group.fills, group.cancels, group.rejects, group.latency_samples,
            risk_free_rate=risk_free_rate,
        )
        metrics = compute_strategy_metrics(
            strategy_id, group.fills, group.cancels, group.rejects, group.latency_samples,
            as_of=as_of, risk_free_rate=risk_free_rate,
        )
        strategy = known.get(strategy_id)
        rows.append({
            "strategy": strategy.to_dict() if strategy else {"id": strategy_id},
            "metrics": metrics.to_dict(),
            "performance": perf.to_dict(),
        })

    return {
        "overall": overall.to_dict(),
        "strategies": rows,
        "summary": {
            "totalStrategies": len(strategy_ids),
            "activeStrategies": sum(1 for s in strategies if s.is_active),
            "totalFills": len(batch.fills),
            "totalCancels": len(batch.cancels),
            "totalRejects": len(batch.rejects),
        },
    }


def enrich_with_time_features(records: Iterable[Any]) -> List[Dict[str, Any]]:
    """Serialize records and tag each with UTC hour and day of week (Monday=0)."""
    enriched = []
    for record in records:
        row = record.to_dict()
        row["hour"] = record.timestamp.hour
        row["day_of_week"] = record.timestamp.weekday()
        enriched.append(row)
    return enriched


def to_frame(points: Sequence[TimeSeriesPoint]) -> pd.DataFrame:
    """Time series as a DataFrame with columns timestamp, value."""
    return pd.DataFrame(
        {
            "timestamp": pd.to_datetime([p.timestamp for p in points], utc=True),
            "value": [p.value for p in points],
        },
        columns=["timestamp", "value"],
    )
