"""
Tests for execution event records and payload validation.

COVERAGE:
- Fill / Cancel / Reject / LatencySample / Strategy records
- Timestamp normalization and dict encoding
- validate_* payload validators
"""

from datetime import datetime, timedelta, timezone

import pytest

from execdesk.errors import EventValidationError
from execdesk.events import (
    Cancel,
    Fill,
    LatencySample,
    Side,
    Strategy,
    StrategyStatus,
    parse_timestamp,
)
from execdesk.events.validators import (
    VALIDATORS,
    validate_cancel,
    validate_fill,
    validate_latency_sample,
    validate_reject,
)


def _fill_payload(**overrides):
    payload = {
        "timestamp": "2024-03-04T10:00:00Z",
        "strategy_id": "S1",
        "symbol": "AAPL",
        "side": "buy",
        "quantity": 100,
        "price": 185.5,
        "venue": "NYSE",
        "latency_ms": 12.5,
        "order_id": "ord-1",
    }
    payload.update(overrides)
    return payload


# ============================================================================
# RECORD TESTS
# ============================================================================

class TestFill:
    """Test fill records."""

    def test_signed_quantity(self, make_fill):
        """Buys add to position, sells subtract."""
        assert make_fill(side="buy", quantity=30).signed_quantity == 30
        assert make_fill(side="sell", quantity=30).signed_quantity == -30

    def test_cash_flow(self, make_fill):
        """Sells bring cash in, buys pay it out."""
        assert make_fill(side="sell", quantity=10, price=5.0).cash_flow == 50.0
        assert make_fill(side="buy", quantity=10, price=5.0).cash_flow == -50.0

    def test_naive_timestamp_taken_as_utc(self):
        """Naive datetimes become aware UTC."""
        f = Fill(
            id="f1", timestamp=datetime(2024, 1, 1, 9, 30), strategy_id="S1", symbol="AAPL",
            side="sell", quantity=1, price=1.0, venue="X", latency_ms=1.0, order_id="o1",
        )
        assert f.timestamp.tzinfo is not None
        assert f.timestamp.utcoffset() == timedelta(0)
        assert f.side == Side.SELL

    def test_from_dict_round_trip(self):
        """from_dict(to_dict()) reproduces the record."""
        f = Fill.from_dict(_fill_payload(id="fill-abc"))
        assert Fill.from_dict(f.to_dict()) == f

    def test_from_dict_generates_id(self):
        """Missing ids are generated with a type prefix."""
        f = Fill.from_dict(_fill_payload())
        assert f.id.startswith("fill-")

    def test_immutable(self, make_fill):
        """Records are frozen."""
        f = make_fill()
        with pytest.raises(Exception):
            f.quantity = 5


class TestOtherRecords:
    """Test cancel, latency sample and strategy records."""

    def test_cancel_from_dict(self):
        c = Cancel.from_dict({
            "timestamp": "2024-03-04T10:00:00+02:00",
            "strategy_id": "S1",
            "symbol": "AAPL",
            "order_id": "o1",
            "reason": "User",
            "latency_ms": "7",
        })
        assert c.timestamp == datetime(2024, 3, 4, 8, 0, tzinfo=timezone.utc)
        assert c.latency_ms == 7.0

    def test_latency_optional_percentiles_omitted(self):
        """Unset venue percentiles are left out of the encoding."""
        s = LatencySample.from_dict({
            "timestamp": "2024-03-04T10:00:00Z",
            "strategy_id": "S1",
            "metric_type": "market_data",
            "latency_ms": 3,
            "percentile_95": 9,
        })
        d = s.to_dict()
        assert d["percentile_95"] == 9.0
        assert "percentile_50" not in d

    def test_strategy_defaults(self):
        """Strategies default to active with a creation time."""
        s = Strategy(id="S1", name="Momentum")
        assert s.is_active
        assert s.created_at is not None
        assert not Strategy(id="S2", name="x", status="paused").is_active
        assert Strategy.from_dict({"id": "S3"}).name == "S3"
        assert Strategy.from_dict({"id": "S3", "status": "stopped"}).status == StrategyStatus.STOPPED

    def test_parse_timestamp_z_suffix(self):
        assert parse_timestamp("2024-03-04T10:00:00Z") == datetime(2024, 3, 4, 10, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, 1709546400, ""])
    def test_parse_timestamp_rejects_non_text(self, value):
        with pytest.raises(ValueError):
            parse_timestamp(value)


# ============================================================================
# VALIDATOR TESTS
# ============================================================================

class TestValidators:
    """Test payload validation."""

    def test_valid_fill(self):
        result = validate_fill(_fill_payload())
        assert result.valid
        assert result.summary() == "fill OK"

    def test_fill_reports_every_problem(self):
        """All errors are collected, not just the first."""
        result = validate_fill(_fill_payload(strategy_id="", side="hold", quantity=0, price=-1, latency_ms=-5))
        assert not result.valid
        assert "Missing strategy_id" in result.errors
        assert "Invalid side" in result.errors
        assert "Invalid quantity" in result.errors
        assert "Invalid price" in result.errors
        assert "Invalid latency" in result.errors

    def test_non_numeric_rejected(self):
        """Strings and booleans are not numbers."""
        assert "Invalid quantity" in validate_fill(_fill_payload(quantity="100")).errors
        assert "Invalid price" in validate_fill(_fill_payload(price=True)).errors

    def test_cancel_requires_reason(self):
        result = validate_cancel({"strategy_id": "S1", "symbol": "AAPL", "order_id": "o1", "latency_ms": 1})
        assert result.errors == ("Missing reason",)

    def test_reject_requires_error_code(self):
        result = validate_reject({"strategy_id": "S1", "symbol": "AAPL", "order_id": "o1", "reason": "x"})
        assert result.errors == ("Missing error_code",)

    def test_latency_metric_type(self):
        result = validate_latency_sample({"strategy_id": "S1", "metric_type": "bogus", "latency_ms": 4})
        assert result.errors == ("Invalid metric_type",)

    def test_raise_for_errors(self):
        result = validate_fill(_fill_payload(side="hold"))
        with pytest.raises(EventValidationError) as exc_info:
            result.raise_for_errors()
        assert exc_info.value.kind == "fill"
        assert "Invalid side" in str(exc_info.value)

    @pytest.mark.parametrize("value", [None, "", "yesterday", 1709546400])
    def test_bad_timestamp(self, value):
        assert validate_fill(_fill_payload(timestamp=value)).errors == ("Invalid timestamp",)

    def test_timestamp_optional(self):
        payload = _fill_payload()
        del payload["timestamp"]
        assert validate_fill(payload).valid

    def test_registry(self):
        assert set(VALIDATORS) == {"fill", "cancel", "reject", "latency_sample"}
