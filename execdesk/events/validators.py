"""
Payload validation for incoming execution events.

Checks raw dict payloads (as received from an ingestion endpoint or a file)
before they become event records. Every problem is reported at once, not
just the first one.

USAGE:
    result = validate_fill(payload)
    if not result.valid:
        print(result.summary())

    validate_fill(payload).raise_for_errors()   # -> EventValidationError
"""

from dataclasses import dataclass
from numbers import Real
from typing import Any, Callable, Dict, List, Tuple

from execdesk.errors import EventValidationError
from execdesk.events.types import LatencyMetricType, Side, parse_timestamp


@dataclass(frozen=True)
class ValidationResult:
    """
    Outcome of validating one payload.

    valid=True means zero errors.
    """
    kind: str
    errors: Tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        if self.valid:
            return f"{self.kind} OK"
        return f"{self.kind} INVALID: " + "; ".join(self.errors)

    def raise_for_errors(self) -> None:
        if not self.valid:
            raise EventValidationError(self.kind, self.errors)


# ---------------------------------------------------------------------------
# Field checks
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _require(payload: Dict[str, Any], errors: List[str], *names: str) -> None:
    for name in names:
        if not payload.get(name):
            errors.append(f"Missing {name}")


def _check_timestamp(payload: Dict[str, Any], errors: List[str]) -> None:
    """An absent timestamp is allowed (the caller stamps the event); a present one must parse."""
    if "timestamp" not in payload:
        return
    try:
        parse_timestamp(payload["timestamp"])
    except ValueError:
        errors.append("Invalid timestamp")


def _check_latency(payload: Dict[str, Any], errors: List[str]) -> None:
    latency = payload.get("latency_ms")
    if not _is_number(latency) or latency < 0:
        errors.append("Invalid latency")


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------

def validate_fill(payload: Dict[str, Any]) -> ValidationResult:
    errors: List[str] = []

    _check_timestamp(payload, errors)
    _require(payload, errors, "strategy_id", "symbol")
    if payload.get("side") not in {s.value for s in Side}:
        errors.append("Invalid side")
    quantity = payload.get("quantity")
    if not _is_number(quantity) or quantity <= 0:
        errors.append("Invalid quantity")
    price = payload.get("price")
    if not _is_number(price) or price <= 0:
        errors.append("Invalid price")
    _require(payload, errors, "venue")
    _check_latency(payload, errors)
    _require(payload, errors, "order_id")

    return ValidationResult(kind="fill", errors=tuple(errors))


def validate_cancel(payload: Dict[str, Any]) -> ValidationResult:
    errors: List[str] = []

    _check_timestamp(payload, errors)
    _require(payload, errors, "strategy_id", "symbol", "order_id", "reason")
    _check_latency(payload, errors)

    return ValidationResult(kind="cancel", errors=tuple(errors))


def validate_reject(payload: Dict[str, Any]) -> ValidationResult:
    errors: List[str] = []

    _check_timestamp(payload, errors)
    _require(payload, errors, "strategy_id", "symbol", "order_id", "reason", "error_code")

    return ValidationResult(kind="reject", errors=tuple(errors))


def validate_latency_sample(payload: Dict[str, Any]) -> ValidationResult:
    errors: List[str] = []

    _check_timestamp(payload, errors)
    _require(payload, errors, "strategy_id")
    if payload.get("metric_type") not in {m.value for m in LatencyMetricType}:
        errors.append("Invalid metric_type")
    _check_latency(payload, errors)

    return ValidationResult(kind="latency_sample", errors=tuple(errors))


VALIDATORS: Dict[str, Callable[[Dict[str, Any]], ValidationResult]] = {
    "fill": validate_fill,
    "cancel": validate_cancel,
    "reject": validate_reject,
    "latency_sample": validate_latency_sample,
}
