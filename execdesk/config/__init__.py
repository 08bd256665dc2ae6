"""
Configuration system with Pydantic validation.

Single source of truth for all configuration parameters.
"""

from .schema import (
    AnalyticsConfig,
    MetricsConfig,
    AnomalyConfig,
    SimulationConfig,
    LoggingConfig,
    LogLevel,
)

from .loader import (
    ConfigLoader,
    load_config,
)

__all__ = [
    "AnalyticsConfig",
    "MetricsConfig",
    "AnomalyConfig",
    "SimulationConfig",
    "LoggingConfig",
    "LogLevel",
    "ConfigLoader",
    "load_config",
]
