# tests/conftest.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from itertools import count
from typing import Callable, List

import pytest

from execdesk.analytics.aggregation import EventBatch
from execdesk.events.types import Cancel, Fill, LatencyMetricType, LatencySample, Reject, Side

T0 = datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)
FIXED_NOW = datetime(2024, 3, 5, 0, 0, tzinfo=timezone.utc)

_ids = count(1)


# -------------------------
# Event factories
# -------------------------

def fill(
    minutes: float = 0,
    side: str = "buy",
    quantity: float = 100,
    price: float = 50.0,
    latency_ms: float = 20.0,
    strategy_id: str = "S1",
    symbol: str = "AAPL",
) -> Fill:
    n = next(_ids)
    return Fill(
        id=f"fill-{n}",
        timestamp=T0 + timedelta(minutes=minutes),
        strategy_id=strategy_id,
        symbol=symbol,
        side=Side(side),
        quantity=quantity,
        price=price,
        venue="NYSE",
        latency_ms=latency_ms,
        order_id=f"ord-{n}",
    )


def cancel(minutes: float = 0, latency_ms: float = 15.0, strategy_id: str = "S1", reason: str = "User") -> Cancel:
    n = next(_ids)
    return Cancel(
        id=f"cancel-{n}",
        timestamp=T0 + timedelta(minutes=minutes),
        strategy_id=strategy_id,
        symbol="AAPL",
        order_id=f"ord-{n}",
        reason=reason,
        latency_ms=latency_ms,
    )


def reject(minutes: float = 0, strategy_id: str = "S1") -> Reject:
    n = next(_ids)
    return Reject(
        id=f"reject-{n}",
        timestamp=T0 + timedelta(minutes=minutes),
        strategy_id=strategy_id,
        symbol="AAPL",
        order_id=f"ord-{n}",
        reason="Insufficient buying power",
        error_code="E_BP",
    )


def latency(minutes: float = 0, latency_ms: float = 20.0, strategy_id: str = "S1") -> LatencySample:
    n = next(_ids)
    return LatencySample(
        id=f"latency-{n}",
        timestamp=T0 + timedelta(minutes=minutes),
        strategy_id=strategy_id,
        metric_type=LatencyMetricType.ORDER_TO_FILL,
        latency_ms=latency_ms,
    )


# -------------------------
# Fixtures
# -------------------------

@pytest.fixture
def make_fill() -> Callable[..., Fill]:
    return fill


@pytest.fixture
def make_cancel() -> Callable[..., Cancel]:
    return cancel


@pytest.fixture
def make_reject() -> Callable[..., Reject]:
    return reject


@pytest.fixture
def make_latency() -> Callable[..., LatencySample]:
    return latency


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def hour_of_s1() -> EventBatch:
    """
    One hour of activity for S1 starting at 10:00 UTC.

    100 fills every 36s (alternating buy/sell), 10 cancels every 6 min,
    5 rejects every 12 min, and 100 latency samples alternating 18/22 ms
    with a single 300 ms outlier at index 50.
    """
    fills: List[Fill] = [
        fill(minutes=i * 0.6, side="buy" if i % 2 == 0 else "sell", quantity=100, price=50.0 + i * 0.1)
        for i in range(100)
    ]
    cancels = [cancel(minutes=i * 6) for i in range(10)]
    rejects = [reject(minutes=i * 12) for i in range(5)]
    samples = [
        latency(minutes=i * 0.6, latency_ms=300.0 if i == 50 else (18.0 if i % 2 == 0 else 22.0))
        for i in range(100)
    ]
    return EventBatch(fills=fills, cancels=cancels, rejects=rejects, latency_samples=samples)
