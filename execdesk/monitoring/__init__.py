"""
Execution anomaly monitoring.

COMPONENTS:
- Latency spike detection (z-score over a trailing sample window)
- High reject rate detection (per strategy window)
- Unusual volume detection (recent windows vs strategy mean)
- Fill-rate drop detection (recent windows vs strategy mean)

USAGE:
    from execdesk.monitoring import detect_all, AnomalyThresholds

    anomalies = detect_all(fills, cancels, rejects, samples,
                           AnomalyThresholds(latency_spike_ms=100))
    for anomaly in anomalies:
        store.add_anomaly(anomaly)
"""

from execdesk.monitoring.anomaly import (
    Anomaly,
    AnomalyType,
    Severity,
    AnomalyThresholds,
    AnomalyDetector,
    DEFAULT_THRESHOLDS,
    classify_severity,
    detect_latency_spikes,
    detect_high_reject_rate,
    detect_unusual_volume,
    detect_fill_rate_drop,
    detect_all,
)


__all__ = [
    "Anomaly",
    "AnomalyType",
    "Severity",
    "AnomalyThresholds",
    "AnomalyDetector",
    "DEFAULT_THRESHOLDS",
    "classify_severity",
    "detect_latency_spikes",
    "detect_high_reject_rate",
    "detect_unusual_volume",
    "detect_fill_rate_drop",
    "detect_all",
]
