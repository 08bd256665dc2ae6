"""
Logging Infrastructure for ExecDesk

Provides structured, machine-readable logging for:
- Debugging and troubleshooting
- Audit trail of detections and simulations
- Timing of analytics operations

Features:
- JSON structured logging
- Correlation ID tracking
- One log stream per concern (system, data, analytics, anomaly, simulation)
- Log rotation
"""

from .logger import (
    get_logger,
    setup_logging,
    LogContext,
    log_performance,
    set_correlation_id,
    get_correlation_id,
    LogStream,
)

from .formatters import (
    JSONFormatter,
    ConsoleFormatter,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "LogContext",
    "log_performance",
    "set_correlation_id",
    "get_correlation_id",
    "LogStream",
    "JSONFormatter",
    "ConsoleFormatter",
]
