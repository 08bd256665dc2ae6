"""
Configuration schema using Pydantic for validation.

Single source of truth for analytics, anomaly and simulation parameters.
Validates on load, fails fast on invalid config. Every block has defaults,
so an empty config.yaml yields a working configuration.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============================================================================
# ENUMS
# ============================================================================

class LogLevel(str, Enum):
    """Log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# ============================================================================
# METRICS CONFIGURATION
# ============================================================================

class MetricsConfig(BaseModel):
    """Windowing and risk-free rate for metric computation."""

    default_window_minutes: float = Field(
        gt=0,
        le=10_080,
        default=60,
        description="Window width for time series (minutes)"
    )

    pnl_window_minutes: float = Field(
        gt=0,
        le=10_080,
        default=60,
        description="Window width for the P&L series behind Sharpe and drawdown"
    )

    risk_free_rate: float = Field(
        ge=0.0,
        le=0.5,
        default=0.02,
        description="Annual risk-free rate for the Sharpe ratio"
    )

    model_config = ConfigDict(validate_assignment=True)


# ============================================================================
# ANOMALY CONFIGURATION
# ============================================================================

class AnomalyConfig(BaseModel):
    """
    Anomaly detector thresholds.

    RULES:
    - Rates are fractions in (0, 1]
    - Recent windows must leave room for a baseline
    """

    latency_spike_ms: float = Field(
        gt=0,
        default=150.0,
        description="Absolute latency ceiling (ms)"
    )

    high_reject_rate: float = Field(
        gt=0.0,
        le=1.0,
        default=0.15,
        description="Reject share of a window that triggers an alert"
    )

    fill_rate_drop: float = Field(
        gt=0.0,
        le=1.0,
        default=0.6,
        description="Recent fill rate below this fraction of the mean triggers an alert"
    )

    volume_multiplier: float = Field(
        gt=1.0,
        default=3.0,
        description="Window volume above this multiple of the mean triggers an alert"
    )

    latency_window_size: int = Field(ge=2, default=20, description="Rolling latency window (samples)")
    z_score_limit: float = Field(gt=0, default=3.0, description="Latency z-score alert limit")
    window_minutes: float = Field(gt=0, default=60, description="Detector window width (minutes)")
    min_window_events: int = Field(ge=1, default=5, description="Orders needed before a window is judged")
    min_baseline_windows: int = Field(ge=1, default=5, description="Windows needed for a baseline")
    recent_windows: int = Field(ge=1, default=5, description="Trailing windows checked for drops")
    min_baseline_fill_rate: float = Field(
        ge=0.0,
        le=1.0,
        default=0.5,
        description="Strategies with a lower mean fill rate are not checked for drops"
    )

    @model_validator(mode="after")
    def validate_windows(self):
        """Recent windows cannot outnumber the baseline requirement."""
        if self.recent_windows > self.min_baseline_windows:
            raise ValueError(
                f"recent_windows ({self.recent_windows}) must be "
                f"<= min_baseline_windows ({self.min_baseline_windows})"
            )
        return self

    model_config = ConfigDict(validate_assignment=True)


# ============================================================================
# SIMULATION CONFIGURATION
# ============================================================================

class SimulationConfig(BaseModel):
    """What-if simulation settings."""

    seed: Optional[int] = Field(
        default=None,
        description="Seed for synthetic fills (None = nondeterministic)"
    )

    @field_validator("seed")
    @classmethod
    def validate_seed(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 0:
            raise ValueError(f"seed must be non-negative (got {v})")
        return v

    model_config = ConfigDict(validate_assignment=True)


# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

class LoggingConfig(BaseModel):
    """Logging configuration."""

    log_dir: Path = Field(
        default=Path("logs"),
        description="Base log directory"
    )

    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="File logging level"
    )

    console_level: LogLevel = Field(
        default=LogLevel.WARNING,
        description="Console logging level"
    )

    json_logs: bool = Field(
        default=True,
        description="Use JSON formatting in log files"
    )

    max_bytes: int = Field(
        ge=100_000,
        le=100_000_000,
        default=10_000_000,
        description="Max bytes per log file"
    )

    backup_count: int = Field(
        ge=1,
        le=20,
        default=5,
        description="Number of backup files"
    )

    @field_validator("log_level", "console_level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        return v.upper() if isinstance(v, str) else v


# ============================================================================
# MASTER CONFIGURATION
# ============================================================================

class AnalyticsConfig(BaseModel):
    """
    Master configuration schema.

    Validates on load, fails fast on invalid config.
    """

    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    anomaly: AnomalyConfig = Field(default_factory=AnomalyConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(validate_assignment=True, extra="forbid")
