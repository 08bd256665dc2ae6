"""
Execution Analytics

COMPONENTS:
- Time-window aggregation (count, sum, average per fixed window)
- Performance metrics (rates, latency percentiles, volume, P&L,
  Sharpe ratio, max drawdown)
- Strategy / time-window grouping and dashboard overview

USAGE:
    from execdesk.analytics import (
        compute_performance_metrics,
        compute_strategy_metrics,
        compute_time_series,
        SeriesKind,
    )

    metrics = compute_strategy_metrics("S1", fills, cancels, rejects, samples)
    print(f"Fill rate: {metrics.fill_rate:.1%}")

    series = compute_time_series(SeriesKind.LATENCY, latency_samples=samples,
                                 window_minutes=20)
"""

# ============================================================================
# TIME SERIES
# ============================================================================

from execdesk.analytics.timeseries import (
    TimeSeriesPoint,
    Reduction,
    aggregate,
    count_series,
    sum_series,
    average_series,
    ratio_series,
    cumulative,
    window_key,
    window_start,
)

# ============================================================================
# METRICS
# ============================================================================

from execdesk.analytics.metrics import (
    PerformanceMetrics,
    StrategyMetrics,
    LatencyStats,
    SeriesKind,
    compute_performance_metrics,
    compute_strategy_metrics,
    compute_time_series,
    latency_percentiles,
    pnl_series,
    total_pnl,
    sharpe_ratio,
    max_drawdown,
    fill_rate_series,
    latency_series,
    volume_series,
)

# ============================================================================
# GROUPING
# ============================================================================

from execdesk.analytics.aggregation import (
    EventBatch,
    group_by_strategy,
    group_by_time_window,
    metrics_by_strategy,
    overview,
    enrich_with_time_features,
    to_frame,
)


__all__ = [
    # Time series
    "TimeSeriesPoint",
    "Reduction",
    "aggregate",
    "count_series",
    "sum_series",
    "average_series",
    "ratio_series",
    "cumulative",
    "window_key",
    "window_start",

    # Metrics
    "PerformanceMetrics",
    "StrategyMetrics",
    "LatencyStats",
    "SeriesKind",
    "compute_performance_metrics",
    "compute_strategy_metrics",
    "compute_time_series",
    "latency_percentiles",
    "pnl_series",
    "total_pnl",
    "sharpe_ratio",
    "max_drawdown",
    "fill_rate_series",
    "latency_series",
    "volume_series",

    # Grouping
    "EventBatch",
    "group_by_strategy",
    "group_by_time_window",
    "metrics_by_strategy",
    "overview",
    "enrich_with_time_features",
    "to_frame",
]
