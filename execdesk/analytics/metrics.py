"""
Performance metrics for execution event sets.

ARCHITECTURE:
- Scalar totals by direct reduction (counts, rates, volume)
- Latency distribution by nearest-rank percentiles
- Cumulative P&L series via the window aggregator (60-minute windows)
- Sharpe ratio and max drawdown over that series

METRICS:
- Fill/Cancel/Reject Rate = count / (fills + cancels + rejects)
- Latency pN = sorted[min(floor(n * p), n - 1)]  (no interpolation)
- P&L per fill = (+1 sell / -1 buy) * quantity * price, summed as Decimal
- Sharpe = (mean(returns) - rf / 252) / stdev(returns)
- Max Drawdown = max over series of (peak - value) / |peak|

FAILURE SEMANTICS:
Never raises on degenerate input. Empty or single-element inputs resolve
to 0 instead of NaN; every zero denominator is replaced by 1 (or the rate
by 0).

Every function is pure: inputs are never mutated and nothing is cached.
"""

import math
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from execdesk.analytics.timeseries import (
    TimeSeriesPoint,
    average_series,
    group_by_window,
    ratio_series,
    sum_series,
    window_start,
)
from execdesk.events.types import Cancel, Fill, LatencySample, Reject, to_decimal
from execdesk.logging import LogStream, get_logger, log_performance

logger = get_logger(LogStream.ANALYTICS)

TRADING_DAYS_PER_YEAR = 252
DEFAULT_RISK_FREE_RATE = 0.02  # 2% annual
PNL_WINDOW_MINUTES = 60


# ============================================================================
# RESULT TYPES
# ============================================================================

@dataclass(frozen=True)
class LatencyStats:
    """Latency distribution summary."""
    avg: float = 0.0
    p50: float = 0.0
    p95: float = 0.0
    p99: float = 0.0


@dataclass(frozen=True)
class PerformanceMetrics:
    """Point-in-time performance of an event set. No identity."""
    fill_rate: float
    cancel_rate: float
    reject_rate: float
    avg_latency: float
    p50_latency: float
    p95_latency: float
    p99_latency: float
    total_volume: float
    total_pnl: Decimal
    sharpe_ratio: float
    max_drawdown: float

    def to_dict(self) -> Dict[str, float]:
        """Convert to the external (camelCase) overview shape."""
        return {
            "fillRate": self.fill_rate,
            "cancelRate": self.cancel_rate,
            "rejectRate": self.reject_rate,
            "avgLatency": self.avg_latency,
            "p50Latency": self.p50_latency,
            "p95Latency": self.p95_latency,
            "p99Latency": self.p99_latency,
            "totalVolume": self.total_volume,
            "totalPnl": float(self.total_pnl),
            "sharpeRatio": self.sharpe_ratio,
            "maxDrawdown": self.max_drawdown,
        }


@dataclass(frozen=True)
class StrategyMetrics:
    """
    Per-strategy snapshot of PerformanceMetrics plus event counts.

    date is the day the snapshot was taken, not the date of the events.
    """
    strategy_id: str
    date: str
    total_fills: int
    total_cancels: int
    total_rejects: int
    fill_rate: float
    cancel_rate: float
    reject_rate: float
    avg_latency_ms: float
    p50_latency_ms: float
    p95_latency_ms: float
    p99_latency_ms: float
    total_volume: float
    total_pnl: Decimal
    sharpe_ratio: float = 0.0
    max_drawdown: float = 0.0

    @property
    def total_orders(self) -> int:
        return self.total_fills + self.total_cancels + self.total_rejects

    def scaled(self, pnl_factor: float = 1.0, volume_factor: float = 1.0) -> 'StrategyMetrics':
        """Copy with total_pnl and total_volume multiplied."""
        return replace(
            self,
            total_pnl=to_decimal(self.total_pnl) * to_decimal(pnl_factor),
            total_volume=self.total_volume * volume_factor,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy_id": self.strategy_id,
            "date": self.date,
            "total_fills": self.total_fills,
            "total_cancels": self.total_cancels,
            "total_rejects": self.total_rejects,
            "fill_rate": self.fill_rate,
            "cancel_rate": self.cancel_rate,
            "reject_rate": self.reject_rate,
            "avg_latency_ms": self.avg_latency_ms,
            "p50_latency_ms": self.p50_latency_ms,
            "p95_latency_ms": self.p95_latency_ms,
            "p99_latency_ms": self.p99_latency_ms,
            "total_volume": self.total_volume,
            "total_pnl": float(self.total_pnl),
            "sharpe_ratio": self.sharpe_ratio,
            "max_drawdown": self.max_drawdown,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StrategyMetrics':
        values = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        if "total_pnl" in values:
            values["total_pnl"] = to_decimal(values["total_pnl"])
        return cls(**values)


class SeriesKind(str, Enum):
    """Time series exposed to the dashboard layer."""
    FILL_RATE = "fill_rate"
    LATENCY = "latency"
    VOLUME = "volume"
    PNL = "pnl"


# ============================================================================
# LATENCY
# ============================================================================

def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile of an ascending sequence (0 when empty)."""
    n = len(sorted_values)
    if n == 0:
        return 0.0
    index = min(int(math.floor(n * p)), n - 1)
    return sorted_values[index]


def latency_percentiles(latencies: Sequence[float]) -> LatencyStats:
    if not latencies:
        return LatencyStats()

    ordered = sorted(latencies)
    return LatencyStats(
        avg=math.fsum(ordered) / len(ordered),
        p50=percentile(ordered, 0.50),
        p95=percentile(ordered, 0.95),
        p99=percentile(ordered, 0.99),
    )


# ============================================================================
# P&L, SHARPE, DRAWDOWN
# ============================================================================

def fill_pnl(fill: Fill) -> Decimal:
    """Simplified mark against notional: sells +qty*price, buys -qty*price."""
    return fill.cash_flow


def total_pnl(fills: Sequence[Fill]) -> Decimal:
    return sum((fill_pnl(f) for f in fills), Decimal("0"))


def pnl_series(fills: Sequence[Fill], window_minutes: float = PNL_WINDOW_MINUTES) -> List[TimeSeriesPoint]:
    """
    Cumulative P&L, one point per non-empty window.

    The running total is kept in Decimal; each point carries its float value
    for the return statistics.
    """
    windows = group_by_window(fills, window_minutes)

    running = Decimal("0")
    points = []
    for key in sorted(windows):
        running += total_pnl(windows[key])
        points.append(TimeSeriesPoint(window_start(key, window_minutes), float(running)))
    return points


def period_returns(series: Sequence[TimeSeriesPoint]) -> List[float]:
    """(P[n] - P[n-1]) / |P[n-1]|, dividing by 1 when P[n-1] is 0."""
    returns = []
    for prev, curr in zip(series, series[1:]):
        base = abs(prev.value) or 1.0
        returns.append((curr.value - prev.value) / base)
    return returns


def sharpe_ratio(
    series: Sequence[TimeSeriesPoint],
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    periods_per_year: int = TRADING_DAYS_PER_YEAR,
) -> float:
    """Per-period Sharpe of a cumulative series (0 below 2 points or with zero volatility)."""
    if len(series) < 2:
        return 0.0

    returns = period_returns(series)

    avg_return = math.fsum(returns) / len(returns)
    std_dev = math.sqrt(math.fsum((r - avg_return) ** 2 for r in returns) / len(returns))

    if std_dev == 0:
        return 0.0

    period_rf = risk_free_rate / periods_per_year
    return (avg_return - period_rf) / std_dev


def max_drawdown(series: Sequence[TimeSeriesPoint]) -> float:
    """Largest (peak - value) / |peak| seen along the series, floored at 0."""
    if not series:
        return 0.0

    worst = 0.0
    peak = series[0].value
    for point in series:
        if point.value > peak:
            peak = point.value
        drawdown = (peak - point.value) / (abs(peak) or 1.0)
        worst = max(worst, drawdown)

    return worst


# ============================================================================
# ENGINE
# ============================================================================

def _rate(count: int, total: int) -> float:
    return count / total if total > 0 else 0.0


@log_performance(LogStream.ANALYTICS)
def compute_performance_metrics(
    fills: Sequence[Fill],
    cancels: Sequence[Cancel],
    rejects: Sequence[Reject],
    latency_samples: Sequence[LatencySample],
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    pnl_window_minutes: float = PNL_WINDOW_MINUTES,
) -> PerformanceMetrics:
    """
    Compute performance metrics for an event set.

    Args:
        fills: Fill events
        cancels: Cancel events
        rejects: Reject events
        latency_samples: Latency samples (source of the latency statistics)
        risk_free_rate: Annual risk-free rate for the Sharpe ratio
        pnl_window_minutes: Window width of the cumulative P&L series

    Returns:
        PerformanceMetrics (all zeros for empty input)
    """
    total_orders = len(fills) + len(cancels) + len(rejects)

    latency = latency_percentiles([s.latency_ms for s in latency_samples])
    pnl = pnl_series(fills, pnl_window_minutes)

    return PerformanceMetrics(
        fill_rate=_rate(len(fills), total_orders),
        cancel_rate=_rate(len(cancels), total_orders),
        reject_rate=_rate(len(rejects), total_orders),
        avg_latency=latency.avg,
        p50_latency=latency.p50,
        p95_latency=latency.p95,
        p99_latency=latency.p99,
        total_volume=math.fsum(f.quantity for f in fills),
        total_pnl=total_pnl(fills),
        sharpe_ratio=sharpe_ratio(pnl, risk_free_rate),
        max_drawdown=max_drawdown(pnl),
    )


def compute_strategy_metrics(
    strategy_id: str,
    fills: Sequence[Fill],
    cancels: Sequence[Cancel],
    rejects: Sequence[Reject],
    latency_samples: Sequence[LatencySample],
    as_of: Optional[date] = None,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    pnl_window_minutes: float = PNL_WINDOW_MINUTES,
) -> StrategyMetrics:
    """
    Compute metrics for one strategy's subset of the events.

    Args:
        strategy_id: Strategy to restrict to
        fills, cancels, rejects, latency_samples: Event sets (any strategies)
        as_of: Snapshot date stamp (default: today UTC)
        risk_free_rate: Annual risk-free rate for the Sharpe ratio
        pnl_window_minutes: Window width of the cumulative P&L series

    Returns:
        StrategyMetrics
    """
    strategy_fills = [f for f in fills if f.strategy_id == strategy_id]
    strategy_cancels = [c for c in cancels if c.strategy_id == strategy_id]
    strategy_rejects = [r for r in rejects if r.strategy_id == strategy_id]
    strategy_latency = [s for s in latency_samples if s.strategy_id == strategy_id]

    perf = compute_performance_metrics(
        strategy_fills,
        strategy_cancels,
        strategy_rejects,
        strategy_latency,
        risk_free_rate=risk_free_rate,
        pnl_window_minutes=pnl_window_minutes,
    )

    if as_of is None:
        as_of = datetime.now(timezone.utc).date()

    metrics = StrategyMetrics(
        strategy_id=strategy_id,
        date=as_of.isoformat(),
        total_fills=len(strategy_fills),
        total_cancels=len(strategy_cancels),
        total_rejects=len(strategy_rejects),
        fill_rate=perf.fill_rate,
        cancel_rate=perf.cancel_rate,
        reject_rate=perf.reject_rate,
        avg_latency_ms=perf.avg_latency,
        p50_latency_ms=perf.p50_latency,
        p95_latency_ms=perf.p95_latency,
        p99_latency_ms=perf.p99_latency,
        total_volume=perf.total_volume,
        total_pnl=perf.total_pnl,
        sharpe_ratio=perf.sharpe_ratio,
        max_drawdown=perf.max_drawdown,
    )

    logger.debug(f"Strategy metrics computed: {strategy_id}", extra={
        "strategy_id": strategy_id,
        "total_orders": metrics.total_orders,
        "fill_rate": round(metrics.fill_rate, 4),
    })

    return metrics


# ============================================================================
# TIME SERIES
# ============================================================================

def fill_rate_series(
    fills: Sequence[Fill],
    cancels: Sequence[Cancel],
    rejects: Sequence[Reject],
    window_minutes: float = 60,
) -> List[TimeSeriesPoint]:
    """Per-window fills / (fills + cancels + rejects)."""
    events = [*fills, *cancels, *rejects]
    return ratio_series(events, lambda e: isinstance(e, Fill), window_minutes)


def latency_series(latency_samples: Sequence[LatencySample], window_minutes: float = 60) -> List[TimeSeriesPoint]:
    return average_series(latency_samples, lambda s: s.latency_ms, window_minutes)


def volume_series(fills: Sequence[Fill], window_minutes: float = 60) -> List[TimeSeriesPoint]:
    return sum_series(fills, lambda f: f.quantity, window_minutes)


def compute_time_series(
    kind: SeriesKind,
    fills: Sequence[Fill] = (),
    cancels: Sequence[Cancel] = (),
    rejects: Sequence[Reject] = (),
    latency_samples: Sequence[LatencySample] = (),
    window_minutes: float = 60,
) -> List[TimeSeriesPoint]:
    """
    Build one of the dashboard time series.

    Args:
        kind: fill_rate, latency, volume or pnl
        fills, cancels, rejects, latency_samples: Event sets
        window_minutes: Window width

    Returns:
        Ascending points, one per non-empty window
    """
    kind = SeriesKind(kind)

    if kind == SeriesKind.FILL_RATE:
        return fill_rate_series(fills, cancels, rejects, window_minutes)
    if kind == SeriesKind.LATENCY:
        return latency_series(latency_samples, window_minutes)
    if kind == SeriesKind.VOLUME:
        return volume_series(fills, window_minutes)
    return pnl_series(fills, window_minutes)
