"""
Execution event model and payload validation.
"""

from execdesk.events.types import (
    Fill,
    Cancel,
    Reject,
    LatencySample,
    Strategy,
    Side,
    LatencyMetricType,
    StrategyStatus,
    new_event_id,
    parse_timestamp,
    ensure_utc,
    now_utc,
    to_decimal,
)

from execdesk.events.validators import (
    ValidationResult,
    validate_fill,
    validate_cancel,
    validate_reject,
    validate_latency_sample,
    VALIDATORS,
)

__all__ = [
    "Fill",
    "Cancel",
    "Reject",
    "LatencySample",
    "Strategy",
    "Side",
    "LatencyMetricType",
    "StrategyStatus",
    "new_event_id",
    "parse_timestamp",
    "ensure_utc",
    "now_utc",
    "to_decimal",
    "ValidationResult",
    "validate_fill",
    "validate_cancel",
    "validate_reject",
    "validate_latency_sample",
    "VALIDATORS",
]
