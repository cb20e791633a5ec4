"""
Stratum Config - Configuration management.
"""

from stratum.config.loader import load_config
from stratum.config.models import (
    EngineConfig,
    LoggingConfig,
    ProvidersConfig,
    RetryConfig,
    SimulatedKindConfig,
    StateConfig,
    StratumConfig,
)

__all__ = [
    "EngineConfig",
    "LoggingConfig",
    "ProvidersConfig",
    "RetryConfig",
    "SimulatedKindConfig",
    "StateConfig",
    "StratumConfig",
    "load_config",
]
