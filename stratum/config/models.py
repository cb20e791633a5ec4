"""
Stratum Config - Configuration models.

Pydantic models for type-safe configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field


class EngineConfig(BaseModel):
    """Planner and executor settings."""

    max_workers: int = Field(default=4, ge=1, le=64, description="Concurrent provider calls")
    call_timeout: float = Field(
        default=300.0, gt=0, le=7200, description="Per provider call timeout in seconds"
    )
    replace_policy: Literal["enforce", "allow"] = Field(
        default="enforce",
        description="enforce: refuse to replace protected kinds that have dependents",
    )


class RetryConfig(BaseModel):
    """Backoff for transient provider errors."""

    max_attempts: int = Field(default=3, ge=1, le=20, description="Attempts per provider call")
    initial_delay: float = Field(default=1.0, ge=0, description="First backoff delay in seconds")
    max_delay: float = Field(default=30.0, ge=0, description="Backoff ceiling in seconds")
    exponential_base: float = Field(default=2.0, ge=1.0, description="Backoff multiplier")


class StateConfig(BaseModel):
    """State store location."""

    backend: Literal["sqlite", "memory"] = Field(default="sqlite", description="Store backend")
    path: Path = Field(default=Path(".stratum") / "state.db", description="SQLite state file")


class LoggingConfig(BaseModel):
    """Logging settings."""

    console_level: Literal["debug", "info", "warning", "error"] = Field(
        default="warning", description="Console log level"
    )
    file_level: Literal["debug", "info", "warning", "error"] = Field(
        default="debug", description="File log level"
    )
    log_dir: Path | None = Field(default=None, description="Directory for log files")
    file_name: str = Field(default="stratum.log", description="Log file name")
    rotation: str = Field(default="10 MB", description="Rotation size or interval")
    retention: str = Field(default="1 week", description="How long rotated files are kept")
    compression: Literal["gz", "zip"] | None = Field(default="gz", description="Rotated file compression")
    json_logs: bool = Field(default=False, description="Write file logs as JSON lines")


class SimulatedKindConfig(BaseModel):
    """Behaviour of the simulated provider for one resource kind."""

    immutable_fields: list[str] = Field(default_factory=list)
    protect_replace: bool = Field(default=False)
    computed: dict[str, str] = Field(
        default_factory=dict, description="Output templates, e.g. dnsName: '{id}.elb.local'"
    )
    data: dict[str, Any] | None = Field(
        default=None, description="Outputs returned when the kind is read as a data source"
    )


class ProvidersConfig(BaseModel):
    """Provider wiring."""

    plugins: dict[str, str] = Field(
        default_factory=dict,
        description="Kind prefix -> 'module:attribute' of a provider class or factory",
    )
    simulated: dict[str, SimulatedKindConfig] = Field(
        default_factory=dict, description="Per-kind settings of the simulated provider"
    )


class StratumConfig(BaseModel):
    """Root configuration."""

    engine: EngineConfig = Field(default_factory=EngineConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
