"""
Configuration loader with environment variable overrides.

Loads configuration from:
1. config.yaml (optional; missing file means all defaults)
2. .env (loaded into process env, never overriding variables already set)
3. EXECDESK_* environment variables (highest priority)

SUPPORTED OVERRIDES:
    EXECDESK_LOG_LEVEL          -> logging.log_level
    EXECDESK_RISK_FREE_RATE     -> metrics.risk_free_rate
    EXECDESK_SIMULATION_SEED    -> simulation.seed
    EXECDESK_LATENCY_SPIKE_MS   -> anomaly.latency_spike_ms
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from execdesk.config.schema import AnalyticsConfig
from execdesk.errors import ConfigError
from execdesk.logging import LogStream, get_logger

logger = get_logger(LogStream.SYSTEM)


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Priority (highest to lowest):
    1. OS environment variables
    2. .env file
    3. config.yaml
    4. Schema defaults
    """

    ENV_OVERRIDES: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
        "EXECDESK_LOG_LEVEL": ("logging", "log_level", str),
        "EXECDESK_RISK_FREE_RATE": ("metrics", "risk_free_rate", float),
        "EXECDESK_SIMULATION_SEED": ("simulation", "seed", int),
        "EXECDESK_LATENCY_SPIKE_MS": ("anomaly", "latency_spike_ms", float),
    }

    def __init__(self, config_dir: Path = Path("config")):
        self.config_dir = Path(config_dir)
        self.config_file = self.config_dir / "config.yaml"
        self.env_file = self.config_dir / ".env"

    def load(self) -> Dict[str, Any]:
        """
        Load configuration from all sources.

        Returns:
            Merged configuration dictionary

        Raises:
            ConfigError: If config.yaml is unreadable or an override is malformed
        """
        config: Dict[str, Any] = {}

        # 1) Base config from YAML
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {self.config_file}: {e}") from e

            if not isinstance(config, dict):
                raise ConfigError(f"{self.config_file} must contain a mapping")
        else:
            logger.info(f"No config file at {self.config_file}, using defaults")

        # 2) .env, without overriding already-set OS env vars
        if self.env_file.exists():
            load_dotenv(self.env_file, override=False)

        # 3) Environment overrides
        for env_name, (section, key, parse) in self.ENV_OVERRIDES.items():
            raw = os.getenv(env_name, "").strip()
            if not raw:
                continue
            try:
                value = parse(raw)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {env_name}: {raw!r}") from e
            config.setdefault(section, {})[key] = value
            logger.debug(f"Config override from {env_name}", extra={"section": section, "key": key})

        return config

    def load_and_validate(self) -> AnalyticsConfig:
        """
        Load and validate configuration.

        Returns:
            AnalyticsConfig instance

        Raises:
            ConfigError: If loading or validation fails
        """
        config_dict = self.load()

        try:
            return AnalyticsConfig(**config_dict)
        except ValidationError as e:
            raise ConfigError(f"Configuration validation failed: {e}") from e


def load_config(config_dir: Path = Path("config")) -> AnalyticsConfig:
    """
    Convenience function to load and validate configuration.

    Args:
        config_dir: Directory containing config files

    Returns:
        Validated AnalyticsConfig instance
    """
    return ConfigLoader(config_dir).load_and_validate()
