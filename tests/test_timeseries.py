"""
Tests for time-windowed aggregation.

COVERAGE:
- Window arithmetic (keys, starts, width validation)
- count / sum / average / ratio reductions
- Conservation and order independence
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from execdesk.analytics.timeseries import (
    Reduction,
    TimeSeriesPoint,
    aggregate,
    average_series,
    count_series,
    cumulative,
    group_by_window,
    ratio_series,
    sum_series,
    timestamp_ms,
    window_key,
    window_start,
    window_width_ms,
)
from execdesk.events.types import Fill


# ============================================================================
# WINDOW ARITHMETIC
# ============================================================================

class TestWindowArithmetic:
    """Test window keys and starts."""

    def test_width(self):
        assert window_width_ms(60) == 3_600_000
        assert window_width_ms(0.5) == 30_000

    @pytest.mark.parametrize("bad", [0, -5])
    def test_non_positive_width_rejected(self, bad):
        with pytest.raises(ValueError):
            window_width_ms(bad)

    def test_sub_millisecond_width_rejected(self, make_fill):
        with pytest.raises(ValueError):
            window_width_ms(1e-6)
        with pytest.raises(ValueError):
            count_series([make_fill()], window_minutes=1e-6)

    def test_fractional_width_rounds(self):
        assert window_width_ms(0.1) == 6_000
        assert window_width_ms(1 / 60_000) == 1

    def test_key_and_start(self):
        """Window start is floor(ts / width) * width."""
        ts = datetime(2024, 3, 4, 10, 47, 13, tzinfo=timezone.utc)
        key = window_key(ts, 20)
        assert window_start(key, 20) == datetime(2024, 3, 4, 10, 40, tzinfo=timezone.utc)

    def test_boundary_belongs_to_next_window(self):
        """A timestamp exactly on a boundary starts a window."""
        ts = datetime(2024, 3, 4, 11, 0, tzinfo=timezone.utc)
        assert window_start(window_key(ts, 60), 60) == ts

    def test_pre_epoch_floors_down(self):
        ts = datetime(1969, 12, 31, 23, 59, 59, tzinfo=timezone.utc)
        assert timestamp_ms(ts) == -1000
        assert window_key(ts, 1) == -1


# ============================================================================
# REDUCTIONS
# ============================================================================

class TestReductions:
    """Test per-window reductions."""

    def test_empty_input(self):
        assert count_series([], 60) == []
        assert sum_series([], lambda r: 1.0) == []

    def test_count_sum_average(self, make_fill):
        fills = [
            make_fill(minutes=1, quantity=10),
            make_fill(minutes=5, quantity=30),
            make_fill(minutes=75, quantity=50),
        ]
        assert [p.value for p in count_series(fills, 60)] == [2.0, 1.0]
        assert [p.value for p in sum_series(fills, lambda f: f.quantity, 60)] == [40.0, 50.0]
        assert [p.value for p in average_series(fills, lambda f: f.quantity, 60)] == [20.0, 50.0]

    def test_gaps_not_filled(self, make_fill):
        """Only non-empty windows produce points."""
        fills = [make_fill(minutes=0), make_fill(minutes=300)]
        points = count_series(fills, 60)
        assert len(points) == 2
        assert points[1].timestamp - points[0].timestamp == timedelta(hours=5)

    def test_ascending_output(self, make_fill):
        fills = [make_fill(minutes=m) for m in (200, 10, 130, 70)]
        stamps = [p.timestamp for p in count_series(fills, 60)]
        assert stamps == sorted(stamps)

    def test_selector_required(self, make_fill):
        with pytest.raises(ValueError):
            aggregate([make_fill()], None, 60, Reduction.SUM)

    def test_ratio(self, make_fill, make_cancel):
        events = [make_fill(minutes=1), make_fill(minutes=2), make_cancel(minutes=3), make_cancel(minutes=4)]
        points = ratio_series(events, lambda e: isinstance(e, Fill), 60)
        assert [p.value for p in points] == [0.5]

    def test_cumulative(self):
        t = datetime(2024, 1, 1, tzinfo=timezone.utc)
        points = [TimeSeriesPoint(t, 1.0), TimeSeriesPoint(t + timedelta(hours=1), -3.0)]
        assert [p.value for p in cumulative(points)] == [1.0, -2.0]

    def test_inputs_not_mutated(self, make_fill):
        fills = [make_fill(minutes=30), make_fill(minutes=1)]
        snapshot = list(fills)
        sum_series(fills, lambda f: f.quantity)
        assert fills == snapshot


# ============================================================================
# PROPERTIES
# ============================================================================

class TestProperties:
    """Test conservation and order independence."""

    def test_count_conservation(self, hour_of_s1):
        """Sum of per-window counts equals the total count."""
        for width in (1, 7, 20, 60, 1440):
            points = count_series(hour_of_s1.fills, width)
            assert sum(p.value for p in points) == len(hour_of_s1.fills)

    def test_grouping_keeps_every_record(self, hour_of_s1):
        buckets = group_by_window(hour_of_s1.all_events(), 20)
        assert sum(len(b) for b in buckets.values()) == len(hour_of_s1.all_events())

    def test_order_independent(self, hour_of_s1):
        """Shuffling the input never changes the output."""
        fills = list(hour_of_s1.fills)
        expected = sum_series(fills, lambda f: f.price * f.quantity, 20)

        rng = random.Random(42)
        for _ in range(5):
            rng.shuffle(fills)
            assert sum_series(fills, lambda f: f.price * f.quantity, 20) == expected

    def test_hour_splits_into_three_twenty_minute_windows(self, hour_of_s1):
        points = count_series(hour_of_s1.fills, 20)
        assert len(points) == 3
        assert [p.timestamp.minute for p in points] == [0, 20, 40]
