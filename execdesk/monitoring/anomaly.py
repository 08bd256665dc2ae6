"""
Statistical anomaly detection over execution events.

ARCHITECTURE:
- Four independent detectors, each a pure scan over the events
- Threshold configuration passed explicitly (AnomalyThresholds)
- detect_all() concatenates and sorts newest first
- No state between calls; the caller persists and de-duplicates

DETECTORS:
- Latency spike: z-score against the W samples immediately preceding,
  or an absolute ceiling
- High reject rate: rejects / orders per strategy window
- Unusual volume: recent windows against the strategy's mean volume
- Fill-rate drop: recent windows against the strategy's mean fill rate

NOISE GUARDS:
- Latency: needs at least W samples before the first check
- Reject rate: windows with fewer than 5 events are skipped
- Volume / fill rate: need at least 5 windows of baseline; only the most
  recent 5 are inspected

Each Anomaly carries the metric value and the threshold it crossed.
"""

import hashlib
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from execdesk.analytics.metrics import fill_rate_series, volume_series
from execdesk.analytics.timeseries import TimeSeriesPoint, group_by_window, window_start
from execdesk.events.types import Cancel, Fill, LatencySample, Reject
from execdesk.logging import LogStream, get_logger, log_performance

logger = get_logger(LogStream.ANOMALY)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# ANOMALY DEFINITIONS
# ============================================================================

class AnomalyType(str, Enum):
    """What kind of degradation was detected."""
    LATENCY_SPIKE = "latency_spike"
    HIGH_REJECT_RATE = "high_reject_rate"
    UNUSUAL_VOLUME = "unusual_volume"
    FILL_RATE_DROP = "fill_rate_drop"


class Severity(str, Enum):
    """Anomaly severity, lowest first."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Severity cut points per detector: (low|medium, medium|high, high|critical)
LATENCY_Z_BANDS = (2.0, 3.0, 4.0)
REJECT_RATE_BANDS = (0.10, 0.15, 0.25)
VOLUME_RATIO_BANDS = (2.0, 3.0, 5.0)
FILL_RATE_DROP_PCT_BANDS = (20.0, 40.0, 60.0)


def classify_severity(value: float, bands: Tuple[float, float, float]) -> Severity:
    """Bucket value: below bands[0] low, below bands[1] medium, below bands[2] high, else critical."""
    if value < bands[0]:
        return Severity.LOW
    if value < bands[1]:
        return Severity.MEDIUM
    if value < bands[2]:
        return Severity.HIGH
    return Severity.CRITICAL


@dataclass(frozen=True)
class Anomaly:
    """A classified anomaly. Created only by the detectors, never mutated."""
    id: str
    timestamp: datetime
    strategy_id: str
    anomaly_type: AnomalyType
    severity: Severity
    description: str
    metric_value: float
    threshold_value: float
    detected_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "strategy_id": self.strategy_id,
            "anomaly_type": self.anomaly_type.value,
            "severity": self.severity.value,
            "description": self.description,
            "metric_value": self.metric_value,
            "threshold_value": self.threshold_value,
            "detected_at": self.detected_at.isoformat(),
        }


@dataclass(frozen=True)
class AnomalyThresholds:
    """
    Detector configuration.

    The first four fields are the alert thresholds; the rest size the
    windows and noise guards.
    """
    latency_spike_ms: float = 150.0       # absolute latency ceiling
    high_reject_rate: float = 0.15        # 15% of orders in a window
    fill_rate_drop: float = 0.6           # 60% of the strategy's mean fill rate
    volume_multiplier: float = 3.0        # 3x the strategy's mean volume

    latency_window_size: int = 20
    z_score_limit: float = 3.0
    window_minutes: float = 60
    min_window_events: int = 5
    min_baseline_windows: int = 5
    recent_windows: int = 5
    min_baseline_fill_rate: float = 0.5

    @classmethod
    def from_config(cls, config) -> 'AnomalyThresholds':
        """Build from an AnomalyConfig (execdesk.config.schema)."""
        return cls(
            latency_spike_ms=config.latency_spike_ms,
            high_reject_rate=config.high_reject_rate,
            fill_rate_drop=config.fill_rate_drop,
            volume_multiplier=config.volume_multiplier,
            latency_window_size=config.latency_window_size,
            z_score_limit=config.z_score_limit,
            window_minutes=config.window_minutes,
            min_window_events=config.min_window_events,
            min_baseline_windows=config.min_baseline_windows,
            recent_windows=config.recent_windows,
            min_baseline_fill_rate=config.min_baseline_fill_rate,
        )


DEFAULT_THRESHOLDS = AnomalyThresholds()


def _anomaly_id(
    anomaly_type: AnomalyType,
    strategy_id: str,
    timestamp: datetime,
    metric_value: float,
    source_id: str = "",
) -> str:
    """
    Content-derived id: identical detections always get identical ids.

    source_id is the triggering event id for per-event detections; windowed
    detections are already unique per (type, strategy, window start).
    """
    digest = hashlib.sha1(
        f"{anomaly_type.value}|{strategy_id}|{timestamp.isoformat()}|{metric_value!r}|{source_id}".encode("utf-8")
    ).hexdigest()[:12]
    return f"anomaly-{anomaly_type.value}-{digest}"


def _make_anomaly(
    anomaly_type: AnomalyType,
    timestamp: datetime,
    strategy_id: str,
    severity: Severity,
    description: str,
    metric_value: float,
    threshold_value: float,
    clock: Clock,
    source_id: str = "",
) -> Anomaly:
    return Anomaly(
        id=_anomaly_id(anomaly_type, strategy_id, timestamp, metric_value, source_id),
        timestamp=timestamp,
        strategy_id=strategy_id,
        anomaly_type=anomaly_type,
        severity=severity,
        description=description,
        metric_value=metric_value,
        threshold_value=threshold_value,
        detected_at=clock(),
    )


def _mean(values: Sequence[float]) -> float:
    return math.fsum(values) / len(values)


# ============================================================================
# DETECTORS
# ============================================================================

def detect_latency_spikes(
    samples: Sequence[LatencySample],
    thresholds: AnomalyThresholds = DEFAULT_THRESHOLDS,
    clock: Clock = _utc_now,
) -> List[Anomaly]:
    """
    Flag samples far above the W samples immediately preceding them.

    z = (latency - mean) / max(stdev, 1) over the preceding window; a sample
    is flagged when z exceeds the z-score limit or the latency exceeds the
    absolute ceiling. Severity is banded on z.
    """
    size = thresholds.latency_window_size
    if len(samples) < size:
        return []

    ordered = sorted(samples, key=lambda s: s.timestamp)
    anomalies = []

    for i in range(size, len(ordered)):
        window = [s.latency_ms for s in ordered[i - size:i]]
        mean = _mean(window)
        std_dev = math.sqrt(math.fsum((v - mean) ** 2 for v in window) / len(window))

        current = ordered[i]
        z_score = (current.latency_ms - mean) / max(std_dev, 1.0)

        if z_score > thresholds.z_score_limit or current.latency_ms > thresholds.latency_spike_ms:
            anomalies.append(_make_anomaly(
                AnomalyType.LATENCY_SPIKE,
                timestamp=current.timestamp,
                strategy_id=current.strategy_id,
                severity=classify_severity(z_score, LATENCY_Z_BANDS),
                description=(
                    f"Latency spike detected: {current.latency_ms:.2f}ms "
                    f"({z_score:.2f} std devs above mean)"
                ),
                metric_value=current.latency_ms,
                threshold_value=mean + thresholds.z_score_limit * std_dev,
                clock=clock,
                source_id=current.id,
            ))

    return anomalies


def detect_high_reject_rate(
    fills: Sequence[Fill],
    cancels: Sequence[Cancel],
    rejects: Sequence[Reject],
    thresholds: AnomalyThresholds = DEFAULT_THRESHOLDS,
    clock: Clock = _utc_now,
) -> List[Anomaly]:
    """Flag strategy windows whose reject share exceeds the threshold."""
    by_strategy: Dict[str, List[Any]] = defaultdict(list)
    for event in [*fills, *cancels, *rejects]:
        by_strategy[event.strategy_id].append(event)

    anomalies = []
    for strategy_id in sorted(by_strategy):
        windows = group_by_window(by_strategy[strategy_id], thresholds.window_minutes)

        for key in sorted(windows):
            events = windows[key]
            total = len(events)
            if total < thresholds.min_window_events:
                continue

            reject_count = sum(1 for e in events if isinstance(e, Reject))
            reject_rate = reject_count / total

            if reject_rate > thresholds.high_reject_rate:
                anomalies.append(_make_anomaly(
                    AnomalyType.HIGH_REJECT_RATE,
                    timestamp=window_start(key, thresholds.window_minutes),
                    strategy_id=strategy_id,
                    severity=classify_severity(reject_rate, REJECT_RATE_BANDS),
                    description=(
                        f"High reject rate detected: {reject_rate * 100:.1f}% "
                        f"({reject_count}/{total} orders)"
                    ),
                    metric_value=reject_rate,
                    threshold_value=thresholds.high_reject_rate,
                    clock=clock,
                ))

    return anomalies


def _recent_with_baseline(
    series: List[TimeSeriesPoint],
    thresholds: AnomalyThresholds,
) -> Optional[Tuple[float, List[TimeSeriesPoint]]]:
    """(mean over all windows, most recent windows), or None without enough baseline."""
    if len(series) < thresholds.min_baseline_windows:
        return None
    return _mean([p.value for p in series]), series[-thresholds.recent_windows:]


def detect_unusual_volume(
    fills: Sequence[Fill],
    thresholds: AnomalyThresholds = DEFAULT_THRESHOLDS,
    clock: Clock = _utc_now,
) -> List[Anomaly]:
    """Flag recent windows whose volume exceeds the multiplier times the strategy mean."""
    by_strategy: Dict[str, List[Fill]] = defaultdict(list)
    for fill in fills:
        by_strategy[fill.strategy_id].append(fill)

    anomalies = []
    for strategy_id in sorted(by_strategy):
        baseline = _recent_with_baseline(
            volume_series(by_strategy[strategy_id], thresholds.window_minutes),
            thresholds,
        )
        if baseline is None:
            continue
        avg_volume, recent = baseline
        limit = avg_volume * thresholds.volume_multiplier

        for point in recent:
            if point.value > limit:
                ratio = point.value / avg_volume
                anomalies.append(_make_anomaly(
                    AnomalyType.UNUSUAL_VOLUME,
                    timestamp=point.timestamp,
                    strategy_id=strategy_id,
                    severity=classify_severity(ratio, VOLUME_RATIO_BANDS),
                    description=f"Unusual volume spike: {point.value:.0f} ({ratio:.1f}x average)",
                    metric_value=point.value,
                    threshold_value=limit,
                    clock=clock,
                ))

    return anomalies


def detect_fill_rate_drop(
    fills: Sequence[Fill],
    cancels: Sequence[Cancel],
    rejects: Sequence[Reject],
    thresholds: AnomalyThresholds = DEFAULT_THRESHOLDS,
    clock: Clock = _utc_now,
) -> List[Anomaly]:
    """
    Flag recent windows whose fill rate fell below a fraction of the strategy mean.

    Strategies whose mean fill rate is already at or below
    min_baseline_fill_rate are not checked.
    """
    strategy_ids = sorted({f.strategy_id for f in fills} | {c.strategy_id for c in cancels})

    anomalies = []
    for strategy_id in strategy_ids:
        series = fill_rate_series(
            [f for f in fills if f.strategy_id == strategy_id],
            [c for c in cancels if c.strategy_id == strategy_id],
            [r for r in rejects if r.strategy_id == strategy_id],
            thresholds.window_minutes,
        )
        baseline = _recent_with_baseline(series, thresholds)
        if baseline is None:
            continue
        avg_fill_rate, recent = baseline
        if avg_fill_rate <= thresholds.min_baseline_fill_rate:
            continue
        limit = avg_fill_rate * thresholds.fill_rate_drop

        for point in recent:
            if point.value < limit:
                drop_pct = (avg_fill_rate - point.value) / avg_fill_rate * 100
                anomalies.append(_make_anomaly(
                    AnomalyType.FILL_RATE_DROP,
                    timestamp=point.timestamp,
                    strategy_id=strategy_id,
                    severity=classify_severity(drop_pct, FILL_RATE_DROP_PCT_BANDS),
                    description=(
                        f"Fill rate drop detected: {point.value * 100:.1f}% "
                        f"(down {drop_pct:.1f}% from average)"
                    ),
                    metric_value=point.value,
                    threshold_value=limit,
                    clock=clock,
                ))

    return anomalies


@log_performance(LogStream.ANOMALY)
def detect_all(
    fills: Sequence[Fill],
    cancels: Sequence[Cancel],
    rejects: Sequence[Reject],
    latency_samples: Sequence[LatencySample],
    thresholds: Optional[AnomalyThresholds] = None,
    clock: Clock = _utc_now,
) -> List[Anomaly]:
    """
    Run all four detectors.

    Returns:
        All anomalies, newest first (ties keep detector order)
    """
    thresholds = thresholds or DEFAULT_THRESHOLDS

    latency = detect_latency_spikes(latency_samples, thresholds, clock)
    reject = detect_high_reject_rate(fills, cancels, rejects, thresholds, clock)
    volume = detect_unusual_volume(fills, thresholds, clock)
    fill_rate = detect_fill_rate_drop(fills, cancels, rejects, thresholds, clock)

    anomalies = sorted(
        [*latency, *reject, *volume, *fill_rate],
        key=lambda a: a.timestamp,
        reverse=True,
    )

    if anomalies:
        logger.info("Anomaly detection complete", extra={
            "total": len(anomalies),
            "latency_spike": len(latency),
            "high_reject_rate": len(reject),
            "unusual_volume": len(volume),
            "fill_rate_drop": len(fill_rate),
            "critical": sum(1 for a in anomalies if a.severity == Severity.CRITICAL),
        })
    else:
        logger.debug("Anomaly detection complete: none found")

    return anomalies


# ============================================================================
# DETECTOR
# ============================================================================

class AnomalyDetector:
    """
    Configured front end over the detector functions.

    Holds thresholds and a clock only; every call is independent.

    USAGE:
        detector = AnomalyDetector(AnomalyThresholds(latency_spike_ms=100))
        for anomaly in detector.detect_all(fills, cancels, rejects, samples):
            store.add_anomaly(anomaly)
    """

    def __init__(
        self,
        thresholds: Optional[AnomalyThresholds] = None,
        clock: Clock = _utc_now,
    ):
        self.thresholds = thresholds or DEFAULT_THRESHOLDS
        self.clock = clock

    def detect_latency_spikes(self, samples: Sequence[LatencySample]) -> List[Anomaly]:
        return detect_latency_spikes(samples, self.thresholds, self.clock)

    def detect_high_reject_rate(self, fills, cancels, rejects) -> List[Anomaly]:
        return detect_high_reject_rate(fills, cancels, rejects, self.thresholds, self.clock)

    def detect_unusual_volume(self, fills) -> List[Anomaly]:
        return detect_unusual_volume(fills, self.thresholds, self.clock)

    def detect_fill_rate_drop(self, fills, cancels, rejects) -> List[Anomaly]:
        return detect_fill_rate_drop(fills, cancels, rejects, self.thresholds, self.clock)

    def detect_all(self, fills, cancels, rejects, latency_samples) -> List[Anomaly]:
        return detect_all(fills, cancels, rejects, latency_samples, self.thresholds, self.clock)
