"""Configuration for the Service Registry.

Health probing knobs are read from environment variables into a Pydantic
settings object. Defaults mirror a Consul-style check: probe every 10 seconds
with a 1 second timeout.
"""

from __future__ import annotations

import os
from pydantic import BaseModel, Field, ValidationError, model_validator


class Settings(BaseModel):
    """Pydantic settings for the registry service."""
    health_interval_s: float = Field(default=10.0, gt=0)
    health_timeout_s: float = Field(default=1.0, gt=0)
    health_startup_delay_s: float = Field(default=0.5, ge=0)
    # consecutive failed probes before a record stops being eligible
    failure_threshold: int = Field(default=1, ge=1)
    # a record whose last probe is older than this is never returned
    freshness_ttl_s: float = Field(default=30.0, gt=0)
    # 0 = never reap failing records
    reap_after_failures: int = Field(default=0, ge=0)
    default_health_path: str = "/health"

    @model_validator(mode="after")
    def _ttl_outlasts_probe_cycle(self) -> "Settings":
        # otherwise healthy records go stale between two probe passes
        if self.freshness_ttl_s <= self.health_interval_s + self.health_timeout_s:
            raise ValueError(
                f"freshness_ttl_s ({self.freshness_ttl_s}) must exceed "
                f"health_interval_s + health_timeout_s ({self.health_interval_s + self.health_timeout_s})"
            )
        return self


def load_settings() -> Settings:
    """Load settings from environment variables and return a Settings object."""
    try:
        return Settings(
            health_interval_s=float(os.getenv("HEALTH_INTERVAL_S", "10")),
            health_timeout_s=float(os.getenv("HEALTH_TIMEOUT_S", "1.0")),
            health_startup_delay_s=float(os.getenv("HEALTH_STARTUP_DELAY_S", "0.5")),
            failure_threshold=int(os.getenv("HEALTH_FAILURE_THRESHOLD", "1")),
            freshness_ttl_s=float(os.getenv("FRESHNESS_TTL_S", "30")),
            reap_after_failures=int(os.getenv("REAP_AFTER_FAILURES", "0")),
            default_health_path=os.getenv("DEFAULT_HEALTH_PATH", "/health"),
        )
    except (ValidationError, ValueError) as e:
        raise RuntimeError(f"Invalid configuration: {e}") from e
