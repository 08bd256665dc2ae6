"""
Time-windowed aggregation of timestamped records.

ARCHITECTURE:
- Fixed-width windows keyed by floor(timestamp_ms / width_ms)
- Window start = key * width_ms (UTC)
- One point per NON-EMPTY window, ascending, no zero-filling of gaps
- Reductions: count, sum, average

DETERMINISM:
Output depends only on the input set and the width. Records are grouped
by window key and sums use math.fsum (exactly rounded), so input order
never changes a value.

Every higher analytics component builds its series through this module.
"""

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


# ============================================================================
# TYPES
# ============================================================================

@dataclass(frozen=True)
class TimeSeriesPoint:
    """One window of a series; timestamp is the window start."""
    timestamp: datetime
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "value": self.value}


class Reduction(str, Enum):
    """How a window's contributions collapse into one value."""
    COUNT = "count"
    SUM = "sum"
    AVERAGE = "average"


# ============================================================================
# WINDOW ARITHMETIC
# ============================================================================

def window_width_ms(window_minutes: float) -> int:
    """Window width in whole milliseconds (rounded, at least 1)."""
    if window_minutes <= 0:
        raise ValueError(f"window_minutes must be positive (got {window_minutes})")
    width = round(window_minutes * 60 * 1000)
    if width < 1:
        raise ValueError(f"window_minutes is below one millisecond (got {window_minutes})")
    return width


def timestamp_ms(timestamp: datetime) -> int:
    """Milliseconds since the Unix epoch (naive datetimes are taken as UTC)."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return (timestamp - EPOCH) // _ONE_MS


def window_key(timestamp: datetime, window_minutes: float) -> int:
    return timestamp_ms(timestamp) // window_width_ms(window_minutes)


def window_start(key: int, window_minutes: float) -> datetime:
    return EPOCH + timedelta(milliseconds=key * window_width_ms(window_minutes))


# ============================================================================
# AGGREGATION
# ============================================================================

def group_by_window(
    records: Iterable[Any],
    window_minutes: float,
    timestamp_of: Callable[[Any], datetime] = lambda r: r.timestamp,
) -> Dict[int, List[Any]]:
    """Bucket records by window key. Keys carry no ordering."""
    width = window_width_ms(window_minutes)
    buckets: Dict[int, List[Any]] = defaultdict(list)
    for record in records:
        buckets[timestamp_ms(timestamp_of(record)) // width].append(record)
    return dict(buckets)


def aggregate(
    records: Iterable[Any],
    selector: Optional[Callable[[Any], float]],
    window_minutes: float,
    reduction: Reduction = Reduction.SUM,
    timestamp_of: Callable[[Any], datetime] = lambda r: r.timestamp,
) -> List[TimeSeriesPoint]:
    """
    Reduce records into one point per non-empty window.

    Args:
        records: Timestamped records (never mutated)
        selector: Numeric contribution per record (unused for COUNT)
        window_minutes: Window width in minutes
        reduction: COUNT, SUM or AVERAGE
        timestamp_of: Timestamp accessor

    Returns:
        Points ascending by window start
    """
    reduction = Reduction(reduction)
    if reduction != Reduction.COUNT and selector is None:
        raise ValueError(f"selector is required for {reduction.value} reduction")

    buckets = group_by_window(records, window_minutes, timestamp_of)

    points = []
    for key in sorted(buckets):
        bucket = buckets[key]
        if reduction == Reduction.COUNT:
            value = float(len(bucket))
        else:
            total = math.fsum(selector(r) for r in bucket)
            value = total if reduction == Reduction.SUM else total / len(bucket)
        points.append(TimeSeriesPoint(window_start(key, window_minutes), value))

    return points


def count_series(records: Iterable[Any], window_minutes: float = 60) -> List[TimeSeriesPoint]:
    return aggregate(records, None, window_minutes, Reduction.COUNT)


def sum_series(
    records: Iterable[Any],
    selector: Callable[[Any], float],
    window_minutes: float = 60,
) -> List[TimeSeriesPoint]:
    return aggregate(records, selector, window_minutes, Reduction.SUM)


def average_series(
    records: Iterable[Any],
    selector: Callable[[Any], float],
    window_minutes: float = 60,
) -> List[TimeSeriesPoint]:
    return aggregate(records, selector, window_minutes, Reduction.AVERAGE)


def ratio_series(
    records: Iterable[Any],
    is_hit: Callable[[Any], bool],
    window_minutes: float = 60,
) -> List[TimeSeriesPoint]:
    """Per-window share of records for which is_hit is true (e.g. fill rate)."""
    return aggregate(
        records,
        lambda r: 1.0 if is_hit(r) else 0.0,
        window_minutes,
        Reduction.AVERAGE,
    )


def cumulative(points: Iterable[TimeSeriesPoint]) -> List[TimeSeriesPoint]:
    """Running total of an ascending series."""
    running = 0.0
    out = []
    for point in points:
        running += point.value
        out.append(TimeSeriesPoint(point.timestamp, running))
    return out
