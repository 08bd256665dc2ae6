"""
Execution event definitions.

The raw input alphabet of the analytics engine: fills, cancels, rejects and
latency samples, one record per discrete execution event.

RULES:
1. Records are immutable (frozen=True)
2. Timestamps are timezone-aware UTC (naive input is taken as UTC)
3. to_dict() / from_dict() is the JSON boundary encoding (ISO-8601)
4. No behavior beyond derived read-only properties
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def new_event_id(prefix: str) -> str:
    """Generate an event id like 'fill-3f2a9c01be4d'."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def to_decimal(value: Union[Decimal, float, int, str]) -> Decimal:
    """Exact Decimal for a money amount (floats go through their shortest repr)."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def ensure_utc(timestamp: datetime) -> datetime:
    """Return timestamp as an aware UTC datetime."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse an ISO-8601 string (a trailing 'Z' is accepted) into aware UTC."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str):
        raise ValueError(f"Invalid timestamp: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


# ============================================================================
# ENUMS
# ============================================================================

class Side(str, Enum):
    """Fill side."""
    BUY = "buy"
    SELL = "sell"


class LatencyMetricType(str, Enum):
    """Which leg of the order path a latency sample measures."""
    ORDER_TO_FILL = "order_to_fill"
    MARKET_DATA = "market_data"
    SIGNAL_TO_ORDER = "signal_to_order"


class StrategyStatus(str, Enum):
    """Strategy lifecycle status."""
    ACTIVE = "active"
    PAUSED = "paused"
    STOPPED = "stopped"


# ============================================================================
# EXECUTION EVENTS
# ============================================================================

@dataclass(frozen=True)
class Fill:
    """A completed trade execution."""
    id: str
    timestamp: datetime
    strategy_id: str
    symbol: str
    side: Side
    quantity: float
    price: float
    venue: str
    latency_ms: float
    order_id: str

    def __post_init__(self):
        object.__setattr__(self, 'timestamp', ensure_utc(self.timestamp))
        object.__setattr__(self, 'side', Side(self.side))

    @property
    def signed_quantity(self) -> float:
        """Position change: +quantity for buys, -quantity for sells."""
        return self.quantity if self.side == Side.BUY else -self.quantity

    @property
    def notional(self) -> Decimal:
        """quantity * price, exact."""
        return to_decimal(self.quantity) * to_decimal(self.price)

    @property
    def cash_flow(self) -> Decimal:
        """Notional cash flow: sells are inflows, buys are outflows."""
        return self.notional if self.side == Side.SELL else -self.notional

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "strategy_id": self.strategy_id,
            "symbol": self.symbol,
            "side": self.side.value,
            "quantity": self.quantity,
            "price": self.price,
            "venue": self.venue,
            "latency_ms": self.latency_ms,
            "order_id": self.order_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Fill':
        return cls(
            id=data.get("id") or new_event_id("fill"),
            timestamp=parse_timestamp(data["timestamp"]),
            strategy_id=data["strategy_id"],
            symbol=data["symbol"],
            side=Side(data["side"]),
            quantity=float(data["quantity"]),
            price=float(data["price"]),
            venue=data["venue"],
            latency_ms=float(data["latency_ms"]),
            order_id=data["order_id"],
        )


@dataclass(frozen=True)
class Cancel:
    """An order withdrawn voluntarily or by the system."""
    id: str
    timestamp: datetime
    strategy_id: str
    symbol: str
    order_id: str
    reason: str
    latency_ms: float

    def __post_init__(self):
        object.__setattr__(self, 'timestamp', ensure_utc(self.timestamp))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "strategy_id": self.strategy_id,
            "symbol": self.symbol,
            "order_id": self.order_id,
            "reason": self.reason,
            "latency_ms": self.latency_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Cancel':
        return cls(
            id=data.get("id") or new_event_id("cancel"),
            timestamp=parse_timestamp(data["timestamp"]),
            strategy_id=data["strategy_id"],
            symbol=data["symbol"],
            order_id=data["order_id"],
            reason=data["reason"],
            latency_ms=float(data["latency_ms"]),
        )


@dataclass(frozen=True)
class Reject:
    """An order refused by the venue or a risk check before execution."""
    id: str
    timestamp: datetime
    strategy_id: str
    symbol: str
    order_id: str
    reason: str
    error_code: str

    def __post_init__(self):
        object.__setattr__(self, 'timestamp', ensure_utc(self.timestamp))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "strategy_id": self.strategy_id,
            "symbol": self.symbol,
            "order_id": self.order_id,
            "reason": self.reason,
            "error_code": self.error_code,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Reject':
        return cls(
            id=data.get("id") or new_event_id("reject"),
            timestamp=parse_timestamp(data["timestamp"]),
            strategy_id=data["strategy_id"],
            symbol=data["symbol"],
            order_id=data["order_id"],
            reason=data["reason"],
            error_code=str(data["error_code"]),
        )


@dataclass(frozen=True)
class LatencySample:
    """A single latency measurement, optionally with venue-reported percentiles."""
    id: str
    timestamp: datetime
    strategy_id: str
    metric_type: LatencyMetricType
    latency_ms: float
    percentile_50: Optional[float] = None
    percentile_95: Optional[float] = None
    percentile_99: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, 'timestamp', ensure_utc(self.timestamp))
        object.__setattr__(self, 'metric_type', LatencyMetricType(self.metric_type))

    def to_dict(self) -> Dict[str, Any]:
        d = {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "strategy_id": self.strategy_id,
            "metric_type": self.metric_type.value,
            "latency_ms": self.latency_ms,
        }
        for name in ("percentile_50", "percentile_95", "percentile_99"):
            value = getattr(self, name)
            if value is not None:
                d[name] = value
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LatencySample':
        def _opt(name: str) -> Optional[float]:
            value = data.get(name)
            return float(value) if value is not None else None

        return cls(
            id=data.get("id") or new_event_id("latency"),
            timestamp=parse_timestamp(data["timestamp"]),
            strategy_id=data["strategy_id"],
            metric_type=LatencyMetricType(data["metric_type"]),
            latency_ms=float(data["latency_ms"]),
            percentile_50=_opt("percentile_50"),
            percentile_95=_opt("percentile_95"),
            percentile_99=_opt("percentile_99"),
        )


# ============================================================================
# STRATEGY
# ============================================================================

@dataclass(frozen=True)
class Strategy:
    """A trading strategy known to the event store."""
    id: str
    name: str
    description: str = ""
    status: StrategyStatus = StrategyStatus.ACTIVE
    created_at: datetime = None

    def __post_init__(self):
        object.__setattr__(self, 'status', StrategyStatus(self.status))
        created = self.created_at if self.created_at is not None else now_utc()
        object.__setattr__(self, 'created_at', ensure_utc(created))

    @property
    def is_active(self) -> bool:
        return self.status == StrategyStatus.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Strategy':
        created = data.get("created_at")
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            description=data.get("description", ""),
            status=StrategyStatus(data.get("status", "active")),
            created_at=parse_timestamp(created) if created else None,
        )
