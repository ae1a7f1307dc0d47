"""
Signalbox configuration.

``SignalboxSettings`` reads ``SIGNALBOX_*`` environment variables (and an
optional ``.env`` file). Collectors take plain dataclass configs so tests can
build them directly without touching the environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from signalbox.thresholds import PERFORMANCE_THRESHOLDS


@dataclass
class CollectorConfig:
    """Buffering and delivery settings for one collector."""

    store: str

    # Queue length that triggers an immediate flush
    capacity: int = 50

    # Seconds between periodic flush attempts
    flush_interval: float = 10.0

    # Seconds before an in-flight delivery is abandoned and requeued
    delivery_timeout: float = 10.0

    # Retry pacing: the interval is multiplied by backoff_factor after each
    # consecutive failure, capped at max_backoff_seconds. 1.0 = fixed interval.
    backoff_factor: float = 1.0
    max_backoff_seconds: float = 300.0


@dataclass
class PerformanceConfig:
    """Performance collector settings."""

    memory_interval: float = 30.0
    max_alerts: int = 200
    thresholds: dict[str, float] = field(default_factory=lambda: dict(PERFORMANCE_THRESHOLDS))


class SignalboxSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SIGNALBOX_",
        env_file=".env",
        extra="ignore",
    )

    # Sink
    sink_url: str | None = None
    sink_api_key: str | None = None
    usage_store: str = "analytics_events"
    error_store: str = "error_logs"

    # Usage collector
    usage_capacity: int = Field(default=50, ge=1)
    usage_flush_interval: float = Field(default=10.0, gt=0)

    # Error collector
    error_capacity: int = Field(default=100, ge=1)
    error_flush_interval: float = Field(default=30.0, gt=0)

    # Delivery
    delivery_timeout: float = Field(default=10.0, gt=0)
    backoff_factor: float = Field(default=1.0, ge=1.0)
    max_backoff_seconds: float = Field(default=300.0, gt=0)

    # Performance collector
    memory_interval: float = Field(default=30.0, gt=0)
    max_alerts: int = Field(default=200, ge=1)

    # Logging
    log_level: str = "INFO"
    log_dir: str | None = ".signalbox/logs"

    def usage_config(self) -> CollectorConfig:
        return CollectorConfig(
            store=self.usage_store,
            capacity=self.usage_capacity,
            flush_interval=self.usage_flush_interval,
            delivery_timeout=self.delivery_timeout,
            backoff_factor=self.backoff_factor,
            max_backoff_seconds=self.max_backoff_seconds,
        )

    def error_config(self) -> CollectorConfig:
        return CollectorConfig(
            store=self.error_store,
            capacity=self.error_capacity,
            flush_interval=self.error_flush_interval,
            delivery_timeout=self.delivery_timeout,
            backoff_factor=self.backoff_factor,
            max_backoff_seconds=self.max_backoff_seconds,
        )

    def performance_config(self) -> PerformanceConfig:
        return PerformanceConfig(memory_interval=self.memory_interval, max_alerts=self.max_alerts)


@lru_cache
def get_settings() -> SignalboxSettings:
    return SignalboxSettings()
