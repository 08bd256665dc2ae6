"""
What-if scenario simulation.

ARCHITECTURE:
- Replay one strategy's historical events through constraint stages
- Recompute metrics on the transformed event set
- Compare projections against a baseline scenario

PIPELINE (fixed order, each stage consumes the previous stage's output):
1. Position-size limit  - drop fills that would push |position| over the limit
2. Order timeout        - fills slower than the timeout become "Timeout" cancels
3. Minimum fill rate    - convert the oldest cancels into synthetic fills
4. Maximum latency      - fills slower than the ceiling become "High latency" cancels
5. Risk multiplier      - scale projected total_pnl and total_volume

This approximates outcomes by filtering and transforming recorded events.
It does not re-run a matching engine.

Inputs are never mutated: every stage returns new lists.
"""

import math
import random
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, fields
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from execdesk.analytics.aggregation import EventBatch
from execdesk.analytics.metrics import (
    DEFAULT_RISK_FREE_RATE,
    StrategyMetrics,
    compute_strategy_metrics,
)
from execdesk.errors import EmptyInputError
from execdesk.events.types import Cancel, Fill, LatencySample, Reject, Side
from execdesk.logging import LogStream, get_logger, log_performance

logger = get_logger(LogStream.SIMULATION)

TIMEOUT_REASON = "Timeout"
HIGH_LATENCY_REASON = "High latency"
SIMULATED_VENUE = "SIMULATED"


# ============================================================================
# PARAMETERS
# ============================================================================

@dataclass(frozen=True)
class SimulationParameters:
    """
    Constraints to apply. Every field is optional; an unset (None or 0)
    field skips its stage.
    """
    max_position_size: Optional[float] = None
    order_timeout_ms: Optional[float] = None
    min_fill_rate: Optional[float] = None
    max_latency_ms: Optional[float] = None
    risk_multiplier: Optional[float] = None

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None and value < 0:
                raise ValueError(f"{f.name} cannot be negative (got {value})")
        if self.min_fill_rate is not None and self.min_fill_rate > 1:
            raise ValueError(f"min_fill_rate must be within [0, 1] (got {self.min_fill_rate})")

    def is_default(self) -> bool:
        """True when no stage would run."""
        return not any(getattr(self, f.name) for f in fields(self))

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SimulationParameters':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown simulation parameters: {sorted(unknown)}")
        return cls(**{k: (float(v) if v is not None else None) for k, v in data.items()})


# ============================================================================
# SYNTHETIC FILLS
# ============================================================================

class FillSynthesizer(ABC):
    """
    Supplies side, quantity and price for fills synthesized from cancels.

    Injected into the minimum-fill-rate stage so projections can be made
    reproducible.
    """

    @abstractmethod
    def synthesize(self, cancel: Cancel) -> Tuple[Side, float, float]:
        """
        Args:
            cancel: The cancel being converted

        Returns:
            (side, quantity, price)
        """
        pass


class RandomFillSynthesizer(FillSynthesizer):
    """
    Uniform random side, integer quantity in [100, 599], price in [50, 250).

    Pass a seed for reproducible scenarios.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = random.Random(seed)

    def synthesize(self, cancel: Cancel) -> Tuple[Side, float, float]:
        side = Side.BUY if self._rng.random() > 0.5 else Side.SELL
        quantity = float(self._rng.randint(100, 599))
        price = self._rng.uniform(50.0, 250.0)
        return side, quantity, price


# ============================================================================
# CONSTRAINT STAGES
# ============================================================================

def apply_position_limit(fills: Sequence[Fill], max_position_size: float) -> List[Fill]:
    """
    Replay fills in time order, keeping a fill only if the running position
    stays within +/- max_position_size. Violating fills are dropped whole,
    never split.
    """
    position = 0.0
    kept = []
    for fill in sorted(fills, key=lambda f: f.timestamp):
        new_position = position + fill.signed_quantity
        if abs(new_position) <= max_position_size:
            position = new_position
            kept.append(fill)
    return kept


def _latency_to_cancels(
    fills: Sequence[Fill],
    cancels: Sequence[Cancel],
    ceiling_ms: float,
    reason: str,
    id_prefix: str,
    cancel_latency: Callable[[Fill], float],
) -> Tuple[List[Fill], List[Cancel]]:
    kept = [f for f in fills if f.latency_ms <= ceiling_ms]
    converted = [
        Cancel(
            id=f"{id_prefix}-{f.id}",
            timestamp=f.timestamp,
            strategy_id=f.strategy_id,
            symbol=f.symbol,
            order_id=f.order_id,
            reason=reason,
            latency_ms=cancel_latency(f),
        )
        for f in fills
        if f.latency_ms > ceiling_ms
    ]
    return kept, [*cancels, *converted]


def apply_order_timeout(
    fills: Sequence[Fill],
    cancels: Sequence[Cancel],
    order_timeout_ms: float,
) -> Tuple[List[Fill], List[Cancel]]:
    """Fills slower than the timeout become cancels with latency = timeout."""
    return _latency_to_cancels(
        fills, cancels, order_timeout_ms,
        reason=TIMEOUT_REASON,
        id_prefix="cancel-timeout",
        cancel_latency=lambda f: order_timeout_ms,
    )


def apply_max_latency(
    fills: Sequence[Fill],
    cancels: Sequence[Cancel],
    max_latency_ms: float,
) -> Tuple[List[Fill], List[Cancel]]:
    """Fills slower than the ceiling become cancels keeping their own latency."""
    return _latency_to_cancels(
        fills, cancels, max_latency_ms,
        reason=HIGH_LATENCY_REASON,
        id_prefix="cancel-latency",
        cancel_latency=lambda f: f.latency_ms,
    )


def fill_shortfall(fill_count: int, total_orders: int, min_fill_rate: float) -> int:
    """Fills missing to reach min_fill_rate of total_orders (0 if already met)."""
    if total_orders == 0 or fill_count / total_orders >= min_fill_rate:
        return 0
    # round() keeps 10 * 0.7 from landing on 8
    target = math.ceil(round(total_orders * min_fill_rate, 9))
    return max(target - fill_count, 0)


def apply_min_fill_rate(
    fills: Sequence[Fill],
    cancels: Sequence[Cancel],
    rejects: Sequence[Reject],
    min_fill_rate: float,
    synthesizer: FillSynthesizer,
) -> Tuple[List[Fill], List[Cancel], List[Reject]]:
    """
    Convert the oldest cancels into synthetic fills until the fill rate
    reaches min_fill_rate (or cancels run out). Rejects are untouched.
    """
    total_orders = len(fills) + len(cancels) + len(rejects)
    shortfall = fill_shortfall(len(fills), total_orders, min_fill_rate)
    if shortfall == 0:
        return list(fills), list(cancels), list(rejects)

    oldest_first = sorted(cancels, key=lambda c: c.timestamp)
    to_convert, remaining = oldest_first[:shortfall], oldest_first[shortfall:]

    synthetic = []
    for cancel in to_convert:
        side, quantity, price = synthesizer.synthesize(cancel)
        synthetic.append(Fill(
            id=f"fill-converted-{cancel.id}",
            timestamp=cancel.timestamp,
            strategy_id=cancel.strategy_id,
            symbol=cancel.symbol,
            side=side,
            quantity=quantity,
            price=price,
            venue=SIMULATED_VENUE,
            latency_ms=cancel.latency_ms,
            order_id=cancel.order_id,
        ))

    if len(to_convert) < shortfall:
        logger.warning("Not enough cancels to reach target fill rate", extra={
            "target": min_fill_rate,
            "shortfall": shortfall,
            "converted": len(to_convert),
        })

    return [*fills, *synthetic], remaining, list(rejects)


# ============================================================================
# SCENARIOS
# ============================================================================

def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def scenario_name(parameters: SimulationParameters) -> str:
    """Deterministic label from the set parameters, e.g. 'MaxPos:100 | Timeout:5000ms'."""
    parts = []
    if parameters.max_position_size:
        parts.append(f"MaxPos:{_fmt(parameters.max_position_size)}")
    if parameters.order_timeout_ms:
        parts.append(f"Timeout:{_fmt(parameters.order_timeout_ms)}ms")
    if parameters.min_fill_rate:
        parts.append(f"MinFill:{parameters.min_fill_rate * 100:.0f}%")
    if parameters.max_latency_ms:
        parts.append(f"MaxLat:{_fmt(parameters.max_latency_ms)}ms")
    if parameters.risk_multiplier:
        parts.append(f"Risk:{_fmt(parameters.risk_multiplier)}x")
    return " | ".join(parts) if parts else "Default Scenario"


@dataclass(frozen=True)
class WhatIfScenario:
    """A named projection of one strategy under a set of constraints."""
    id: str
    name: str
    strategy_id: str
    parameters: SimulationParameters
    projected_metrics: StrategyMetrics
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "strategy_id": self.strategy_id,
            "parameters": self.parameters.to_dict(),
            "projected_metrics": self.projected_metrics.to_dict(),
            "created_at": self.created_at.isoformat(),
        }


@log_performance(LogStream.SIMULATION)
def simulate_scenario(
    strategy_id: str,
    fills: Sequence[Fill],
    cancels: Sequence[Cancel],
    rejects: Sequence[Reject],
    latency_samples: Sequence[LatencySample],
    parameters: Optional[SimulationParameters] = None,
    synthesizer: Optional[FillSynthesizer] = None,
    as_of: Optional[date] = None,
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
) -> WhatIfScenario:
    """
    Project one strategy's metrics under the given constraints.

    Args:
        strategy_id: Strategy to simulate (other strategies' events are ignored)
        fills, cancels, rejects, latency_samples: Historical events
        parameters: Constraints (default: none, projection equals actual metrics)
        synthesizer: Side/quantity/price source for the minimum-fill-rate stage
        as_of: Snapshot date stamp for the projected metrics
        risk_free_rate: Annual risk-free rate for the Sharpe ratio
        clock: created_at source

    Returns:
        WhatIfScenario
    """
    parameters = parameters or SimulationParameters()

    sim_fills = [f for f in fills if f.strategy_id == strategy_id]
    sim_cancels = [c for c in cancels if c.strategy_id == strategy_id]
    sim_rejects = [r for r in rejects if r.strategy_id == strategy_id]
    sim_latency = [s for s in latency_samples if s.strategy_id == strategy_id]
    original_fill_count = len(sim_fills)

    if parameters.max_position_size:
        sim_fills = apply_position_limit(sim_fills, parameters.max_position_size)

    if parameters.order_timeout_ms:
        sim_fills, sim_cancels = apply_order_timeout(sim_fills, sim_cancels, parameters.order_timeout_ms)

    if parameters.min_fill_rate:
        sim_fills, sim_cancels, sim_rejects = apply_min_fill_rate(
            sim_fills, sim_cancels, sim_rejects,
            parameters.min_fill_rate,
            synthesizer or RandomFillSynthesizer(),
        )

    if parameters.max_latency_ms:
        sim_fills, sim_cancels = apply_max_latency(sim_fills, sim_cancels, parameters.max_latency_ms)

    projected = compute_strategy_metrics(
        strategy_id, sim_fills, sim_cancels, sim_rejects, sim_latency,
        as_of=as_of, risk_free_rate=risk_free_rate,
    )

    if parameters.risk_multiplier:
        projected = projected.scaled(parameters.risk_multiplier, parameters.risk_multiplier)

    scenario = WhatIfScenario(
        id=f"scenario-{uuid.uuid4().hex[:12]}",
        name=scenario_name(parameters),
        strategy_id=strategy_id,
        parameters=parameters,
        projected_metrics=projected,
        created_at=clock(),
    )

    logger.info(f"Scenario simulated: {scenario.name}", extra={
        "strategy_id": strategy_id,
        "parameters": parameters.to_dict(),
        "fills_before": original_fill_count,
        "fills_after": len(sim_fills),
        "projected_pnl": float(projected.total_pnl),
    })

    return scenario


# ============================================================================
# COMPARISON
# ============================================================================

@dataclass(frozen=True)
class ScenarioDiff:
    """One scenario measured against the baseline (the first scenario)."""
    scenario: WhatIfScenario
    pnl_diff: Decimal
    fill_rate_diff: float
    latency_diff: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario.to_dict(),
            "pnlDiff": float(self.pnl_diff),
            "fillRateDiff": self.fill_rate_diff,
            "latencyDiff": self.latency_diff,
        }


@dataclass(frozen=True)
class ScenarioComparison:
    best: WhatIfScenario
    worst: WhatIfScenario
    comparison: List[ScenarioDiff] = field(default_factory=list)

    @property
    def baseline(self) -> WhatIfScenario:
        return self.comparison[0].scenario

    def to_dict(self) -> Dict[str, Any]:
        return {
            "best": self.best.to_dict(),
            "worst": self.worst.to_dict(),
            "comparison": [c.to_dict() for c in self.comparison],
        }


def compare_scenarios(scenarios: Sequence[WhatIfScenario]) -> ScenarioComparison:
    """
    Rank scenarios by projected P&L and diff each against scenarios[0].

    Raises:
        EmptyInputError: If no scenarios are given
    """
    if not scenarios:
        raise EmptyInputError("No scenarios to compare")

    # max()/min() return the first of equal candidates
    best = max(scenarios, key=lambda s: s.projected_metrics.total_pnl)
    worst = min(scenarios, key=lambda s: s.projected_metrics.total_pnl)

    base = scenarios[0].projected_metrics
    comparison = [
        ScenarioDiff(
            scenario=s,
            pnl_diff=s.projected_metrics.total_pnl - base.total_pnl,
            fill_rate_diff=s.projected_metrics.fill_rate - base.fill_rate,
            latency_diff=s.projected_metrics.avg_latency_ms - base.avg_latency_ms,
        )
        for s in scenarios
    ]

    return ScenarioComparison(best=best, worst=worst, comparison=comparison)


# ============================================================================
# SIMULATOR
# ============================================================================

class WhatIfSimulator:
    """
    Runs scenarios against a snapshot with a shared synthesizer.

    USAGE:
        simulator = WhatIfSimulator(RandomFillSynthesizer(seed=7))
        scenarios = simulator.simulate_many("S1", batch, [
            SimulationParameters(),
            SimulationParameters(max_position_size=100),
            SimulationParameters(order_timeout_ms=5000, risk_multiplier=1.5),
        ])
        result = simulator.compare(scenarios)
        print(f"Best: {result.best.name}")
    """

    def __init__(
        self,
        synthesizer: Optional[FillSynthesizer] = None,
        risk_free_rate: float = DEFAULT_RISK_FREE_RATE,
    ):
        self.synthesizer = synthesizer or RandomFillSynthesizer()
        self.risk_free_rate = risk_free_rate

    def simulate(self, strategy_id: str, batch: EventBatch, parameters: SimulationParameters) -> WhatIfScenario:
        return simulate_scenario(
            strategy_id,
            batch.fills, batch.cancels, batch.rejects, batch.latency_samples,
            parameters,
            synthesizer=self.synthesizer,
            risk_free_rate=self.risk_free_rate,
        )

    def simulate_many(
        self,
        strategy_id: str,
        batch: EventBatch,
        parameter_sets: Iterable[SimulationParameters],
    ) -> List[WhatIfScenario]:
        return [self.simulate(strategy_id, batch, p) for p in parameter_sets]

    def compare(self, scenarios: Sequence[WhatIfScenario]) -> ScenarioComparison:
        return compare_scenarios(scenarios)
