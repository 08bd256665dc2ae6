"""
Seeded sample data for demos and local runs.

Produces a window of execution events (default: the last 24 hours) for three
demo strategies across a handful of symbols and venues. Every draw comes from
one random.Random(seed), so a fixed seed and a fixed end time give an
identical dataset.

USAGE:
    generator = SampleDataGenerator(seed=7)
    sample = generator.generate()
    write_events("data/", sample.batch, sample.strategies)

    loaded = load_events("data/")    # same events back
"""

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from execdesk.analytics.aggregation import EventBatch
from execdesk.events.types import (
    Cancel,
    Fill,
    LatencyMetricType,
    LatencySample,
    Reject,
    Side,
    Strategy,
    StrategyStatus,
    ensure_utc,
    now_utc,
)
from execdesk.logging import LogStream, get_logger

logger = get_logger(LogStream.DATA)

SAMPLE_STRATEGIES = (
    ("strat-001", "Market Making Alpha", "High-frequency market making strategy", StrategyStatus.ACTIVE),
    ("strat-002", "Momentum Trader", "Momentum-based trading strategy", StrategyStatus.ACTIVE),
    ("strat-003", "Arbitrage Bot", "Cross-venue arbitrage strategy", StrategyStatus.PAUSED),
)
SYMBOLS = ("AAPL", "GOOGL", "MSFT", "TSLA", "AMZN", "META", "NVDA")
VENUES = ("NYSE", "NASDAQ", "BATS", "IEX")
REJECT_REASONS = ("Insufficient funds", "Invalid price", "Market closed", "Position limit exceeded")
CANCEL_REASONS = ("Timeout", "Manual cancel", "Strategy stop", "Risk limit")


@dataclass(frozen=True)
class SampleCounts:
    """How many events of each kind to generate."""
    fills: int = 200
    cancels: int = 50
    rejects: int = 25
    latency_samples: int = 100

    def __post_init__(self):
        for name in ("fills", "cancels", "rejects", "latency_samples"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} count must be non-negative (got {getattr(self, name)})")


@dataclass
class SampleData:
    """A generated dataset: events plus the strategies they belong to."""
    batch: EventBatch = field(default_factory=EventBatch)
    strategies: List[Strategy] = field(default_factory=list)


class SampleDataGenerator:
    """
    Seeded generator of demo execution events.

    Timestamps are spread uniformly over [end - hours, end].
    """

    def __init__(self, seed: Optional[int] = None, end: Optional[datetime] = None, hours: float = 24.0):
        if hours <= 0:
            raise ValueError(f"hours must be positive (got {hours})")
        self._seed = seed
        self._rng = random.Random(seed)
        self._end = ensure_utc(end) if end is not None else now_utc()
        self._span = timedelta(hours=hours)
        self._order_seq = 0

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    @property
    def end(self) -> datetime:
        return self._end

    # -- Draws ---------------------------------------------------------------

    def _timestamp(self) -> datetime:
        return self._end - self._span * self._rng.random()

    def _strategy_id(self) -> str:
        return self._rng.choice(SAMPLE_STRATEGIES)[0]

    def _order_id(self) -> str:
        self._order_seq += 1
        return f"order-{self._order_seq:05d}"

    # -- Event kinds ---------------------------------------------------------

    def strategies(self) -> List[Strategy]:
        return [
            Strategy(
                id=strategy_id,
                name=name,
                description=description,
                status=status,
                created_at=self._end - timedelta(days=30 * self._rng.random()),
            )
            for strategy_id, name, description, status in SAMPLE_STRATEGIES
        ]

    def fills(self, count: int) -> List[Fill]:
        return [
            Fill(
                id=f"fill-{i + 1}",
                timestamp=self._timestamp(),
                strategy_id=self._strategy_id(),
                symbol=self._rng.choice(SYMBOLS),
                side=Side.BUY if self._rng.random() > 0.5 else Side.SELL,
                quantity=float(self._rng.randint(100, 1099)),
                price=round(self._rng.uniform(50, 550), 2),
                venue=self._rng.choice(VENUES),
                latency_ms=round(self._rng.uniform(5, 105), 3),
                order_id=self._order_id(),
            )
            for i in range(count)
        ]

    def cancels(self, count: int) -> List[Cancel]:
        return [
            Cancel(
                id=f"cancel-{i + 1}",
                timestamp=self._timestamp(),
                strategy_id=self._strategy_id(),
                symbol=self._rng.choice(SYMBOLS),
                order_id=self._order_id(),
                reason=self._rng.choice(CANCEL_REASONS),
                latency_ms=round(self._rng.uniform(2, 52), 3),
            )
            for i in range(count)
        ]

    def rejects(self, count: int) -> List[Reject]:
        return [
            Reject(
                id=f"reject-{i + 1}",
                timestamp=self._timestamp(),
                strategy_id=self._strategy_id(),
                symbol=self._rng.choice(SYMBOLS),
                order_id=self._order_id(),
                reason=self._rng.choice(REJECT_REASONS),
                error_code=f"ERR-{self._rng.randint(1000, 9999)}",
            )
            for i in range(count)
        ]

    def latency_samples(self, count: int) -> List[LatencySample]:
        metric_types = list(LatencyMetricType)
        return [
            LatencySample(
                id=f"latency-{i + 1}",
                timestamp=self._timestamp(),
                strategy_id=self._strategy_id(),
                metric_type=self._rng.choice(metric_types),
                latency_ms=round(self._rng.uniform(5, 155), 3),
                percentile_50=round(self._rng.uniform(10, 60), 3),
                percentile_95=round(self._rng.uniform(50, 150), 3),
                percentile_99=round(self._rng.uniform(100, 250), 3),
            )
            for i in range(count)
        ]

    # -- Dataset -------------------------------------------------------------

    def generate(self, counts: SampleCounts = SampleCounts()) -> SampleData:
        """
        Generate strategies and every event kind, in a fixed draw order.

        Args:
            counts: Events per kind

        Returns:
            SampleData with the batch and the three demo strategies
        """
        sample = SampleData(strategies=self.strategies())
        sample.batch.fills.extend(self.fills(counts.fills))
        sample.batch.cancels.extend(self.cancels(counts.cancels))
        sample.batch.rejects.extend(self.rejects(counts.rejects))
        sample.batch.latency_samples.extend(self.latency_samples(counts.latency_samples))

        logger.info(f"Generated {len(sample.batch)} sample events", extra={
            "seed": self._seed,
            "fills": counts.fills,
            "cancels": counts.cancels,
            "rejects": counts.rejects,
            "latency_samples": counts.latency_samples,
        })
        return sample
