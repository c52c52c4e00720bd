"""Sync server endpoint configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_float, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig

TRANSPORT_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True)
class TransportConfig:
    """Holds the location of the sync server and how to reach it."""

    base_url: str
    resilience: ResilienceConfig


def get_transport_config(*, resilience: ResilienceConfig | None = None) -> TransportConfig:
    base_url = require_env_vars(("REPLISYNC_SERVER_URL",))["REPLISYNC_SERVER_URL"].rstrip("/")
    return TransportConfig(
        base_url=base_url,
        resilience=resilience
        or ResilienceConfig(
            name="replisync",
            base_url=base_url,
            timeout_seconds=optional_env_float(
                "REPLISYNC_TIMEOUT_SECONDS", TRANSPORT_TIMEOUT_SECONDS
            ),
            ratelimit=RateLimit(max_calls=2, per_seconds=1.0),
        ),
    )
