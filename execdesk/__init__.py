"""
ExecDesk - execution quality analytics for algorithmic trading strategies.

Turns a finite snapshot of execution events (fills, cancels, rejects,
latency samples) into performance metrics, time series, anomaly records
and what-if projections.

USAGE:
    from execdesk.analytics import compute_strategy_metrics
    from execdesk.monitoring import detect_all
    from execdesk.whatif import SimulationParameters, simulate_scenario
"""

__version__ = "0.1.0"
