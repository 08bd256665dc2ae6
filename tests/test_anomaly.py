"""
Tests for anomaly detection.

COVERAGE:
- Latency spikes (rolling z-score and absolute ceiling)
- High reject rate per strategy window
- Unusual volume against the strategy mean
- Fill rate drop against the strategy mean
- Severity banding, ordering and determinism
"""

import pytest

from execdesk.config import AnomalyConfig
from execdesk.monitoring import (
    AnomalyDetector,
    AnomalyThresholds,
    AnomalyType,
    Severity,
    classify_severity,
    detect_all,
    detect_fill_rate_drop,
    detect_high_reject_rate,
    detect_latency_spikes,
    detect_unusual_volume,
)
from execdesk.monitoring.anomaly import LATENCY_Z_BANDS, REJECT_RATE_BANDS


class TestSeverity:
    """Test band classification."""

    @pytest.mark.parametrize("value,expected", [
        (0.05, Severity.LOW),
        (0.10, Severity.MEDIUM),
        (0.20, Severity.HIGH),
        (0.25, Severity.CRITICAL),
        (0.90, Severity.CRITICAL),
    ])
    def test_reject_bands(self, value, expected):
        assert classify_severity(value, REJECT_RATE_BANDS) == expected

    def test_latency_bands(self):
        assert classify_severity(3.5, LATENCY_Z_BANDS) == Severity.HIGH


# ============================================================================
# LATENCY
# ============================================================================

class TestLatencySpikes:
    """Test the rolling latency detector."""

    def test_outlier_flagged_critical(self, hour_of_s1, fixed_clock):
        """The 300ms outlier among ~20ms samples is the only anomaly."""
        anomalies = detect_latency_spikes(hour_of_s1.latency_samples, clock=fixed_clock)
        assert len(anomalies) == 1
        a = anomalies[0]
        assert a.anomaly_type == AnomalyType.LATENCY_SPIKE
        assert a.severity == Severity.CRITICAL
        assert a.metric_value == 300.0
        assert a.strategy_id == "S1"
        # mean 20, std 2 over the preceding window
        assert a.threshold_value == pytest.approx(26.0)
        assert a.detected_at == fixed_clock()

    def test_twin_spikes_get_distinct_ids(self, make_latency):
        """Two samples with the same strategy, time and latency are separate anomalies."""
        samples = [make_latency(minutes=i, latency_ms=20) for i in range(20)]
        samples += [make_latency(minutes=30, latency_ms=400), make_latency(minutes=30, latency_ms=400)]
        anomalies = detect_latency_spikes(samples)
        assert len(anomalies) == 2
        assert anomalies[0].id != anomalies[1].id

    def test_too_few_samples(self, make_latency):
        samples = [make_latency(minutes=i, latency_ms=20) for i in range(19)]
        samples.append(make_latency(minutes=30, latency_ms=5000))
        assert detect_latency_spikes(samples[:19]) == []
        # the first sample judged is the 21st
        assert detect_latency_spikes(samples) == []

    def test_absolute_ceiling(self, make_latency):
        """A steady but slow feed trips the absolute ceiling."""
        samples = [make_latency(minutes=i, latency_ms=200.0) for i in range(21)]
        anomalies = detect_latency_spikes(samples)
        assert len(anomalies) == 1
        assert anomalies[0].severity == Severity.LOW

    def test_unsorted_input(self, hour_of_s1):
        samples = list(reversed(hour_of_s1.latency_samples))
        assert len(detect_latency_spikes(samples)) == 1

    def test_custom_thresholds(self, make_latency):
        samples = [make_latency(minutes=i, latency_ms=10.0) for i in range(5)]
        samples.append(make_latency(minutes=10, latency_ms=60.0))
        thresholds = AnomalyThresholds(latency_window_size=5, latency_spike_ms=50)
        assert len(detect_latency_spikes(samples, thresholds)) == 1


# ============================================================================
# REJECT RATE
# ============================================================================

class TestHighRejectRate:
    """Test the windowed reject-rate detector."""

    def test_flags_window(self, make_fill, make_reject, fixed_clock):
        fills = [make_fill(minutes=i) for i in range(7)]
        rejects = [make_reject(minutes=10 + i) for i in range(3)]
        anomalies = detect_high_reject_rate(fills, [], rejects, clock=fixed_clock)
        assert len(anomalies) == 1
        a = anomalies[0]
        assert a.metric_value == pytest.approx(0.3)
        assert a.severity == Severity.CRITICAL
        assert a.threshold_value == 0.15
        assert a.timestamp.minute == 0

    def test_small_window_ignored(self, make_reject):
        """Fewer than five orders never trigger."""
        assert detect_high_reject_rate([], [], [make_reject(minutes=i) for i in range(4)]) == []

    def test_per_strategy(self, make_fill, make_reject):
        fills = [make_fill(minutes=i, strategy_id="A") for i in range(10)]
        rejects = [make_reject(minutes=i, strategy_id="B") for i in range(5)]
        anomalies = detect_high_reject_rate(fills, [], rejects)
        assert [a.strategy_id for a in anomalies] == ["B"]

    def test_threshold_is_exclusive(self, make_fill, make_reject):
        """Exactly 15% is not above the threshold."""
        fills = [make_fill(minutes=i % 50) for i in range(17)]
        rejects = [make_reject(minutes=i) for i in range(3)]
        assert detect_high_reject_rate(fills, [], rejects) == []


# ============================================================================
# VOLUME
# ============================================================================

class TestUnusualVolume:
    """Test the volume detector."""

    def test_spike_in_recent_window(self, make_fill):
        fills = [make_fill(minutes=60 * h, quantity=100) for h in range(5)]
        fills.append(make_fill(minutes=60 * 5, quantity=1000))
        anomalies = detect_unusual_volume(fills)
        assert len(anomalies) == 1
        a = anomalies[0]
        assert a.metric_value == 1000.0
        # mean 250, limit 750, ratio 4x
        assert a.threshold_value == pytest.approx(750.0)
        assert a.severity == Severity.HIGH

    def test_needs_baseline(self, make_fill):
        fills = [make_fill(minutes=60 * h, quantity=100) for h in range(3)]
        fills.append(make_fill(minutes=200, quantity=10_000))
        assert detect_unusual_volume(fills) == []


# ============================================================================
# FILL RATE
# ============================================================================

class TestFillRateDrop:
    """Test the fill-rate detector."""

    def _history(self, make_fill, make_cancel, last_fills):
        fills, cancels = [], []
        for h in range(5):
            fills += [make_fill(minutes=60 * h + i) for i in range(10)]
        fills += [make_fill(minutes=300 + i) for i in range(last_fills)]
        cancels += [make_cancel(minutes=330 + i) for i in range(10 - last_fills)]
        return fills, cancels

    def test_drop_flagged(self, make_fill, make_cancel):
        fills, cancels = self._history(make_fill, make_cancel, last_fills=2)
        anomalies = detect_fill_rate_drop(fills, cancels, [])
        assert len(anomalies) == 1
        a = anomalies[0]
        assert a.metric_value == pytest.approx(0.2)
        assert a.severity == Severity.CRITICAL
        assert a.threshold_value == pytest.approx((5.2 / 6) * 0.6)

    def test_no_drop(self, make_fill, make_cancel):
        fills, cancels = self._history(make_fill, make_cancel, last_fills=9)
        assert detect_fill_rate_drop(fills, cancels, []) == []

    def test_low_baseline_skipped(self, make_fill, make_cancel):
        """Strategies already filling at 50% or less are not judged."""
        fills = [make_fill(minutes=60 * h) for h in range(6)]
        cancels = [make_cancel(minutes=60 * h + 1) for h in range(6)]
        cancels += [make_cancel(minutes=60 * 5 + 2 + i) for i in range(5)]
        assert detect_fill_rate_drop(fills, cancels, []) == []


# ============================================================================
# ORCHESTRATION
# ============================================================================

class TestDetectAll:
    """Test the combined run."""

    def test_deterministic(self, hour_of_s1, fixed_clock):
        """Identical input yields an identical ordered list."""
        b = hour_of_s1
        first = detect_all(b.fills, b.cancels, b.rejects, b.latency_samples, clock=fixed_clock)
        second = detect_all(b.fills, b.cancels, b.rejects, b.latency_samples, clock=fixed_clock)
        assert first == second
        assert [a.id for a in first] == [a.id for a in second]

    def test_newest_first(self, make_fill, make_reject, make_latency):
        fills = [make_fill(minutes=i) for i in range(7)]
        rejects = [make_reject(minutes=10 + i) for i in range(3)]
        samples = [make_latency(minutes=120 + i, latency_ms=20.0) for i in range(20)]
        samples.append(make_latency(minutes=150, latency_ms=400.0))
        anomalies = detect_all(fills, [], rejects, samples)
        stamps = [a.timestamp for a in anomalies]
        assert stamps == sorted(stamps, reverse=True)
        assert anomalies[0].anomaly_type == AnomalyType.LATENCY_SPIKE

    def test_empty(self):
        assert detect_all([], [], [], []) == []

    def test_detector_uses_config(self, make_latency, fixed_clock):
        config = AnomalyConfig(latency_spike_ms=25, latency_window_size=3, recent_windows=3, min_baseline_windows=3)
        detector = AnomalyDetector(AnomalyThresholds.from_config(config), clock=fixed_clock)
        samples = [make_latency(minutes=i, latency_ms=20.0) for i in range(3)]
        samples.append(make_latency(minutes=5, latency_ms=30.0))
        anomalies = detector.detect_latency_spikes(samples)
        assert len(anomalies) == 1
        assert anomalies[0].to_dict()["anomaly_type"] == "latency_spike"
