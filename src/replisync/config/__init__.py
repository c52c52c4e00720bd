"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_float, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .storage import DEFAULT_DATABASE_URI, DatabaseConfig, get_database_config
from .sync import DEFAULT_CONFLICT_STRATEGY, SyncConfig, get_sync_config
from .transport import TransportConfig, get_transport_config

__all__ = [
    "DEFAULT_CONFLICT_STRATEGY",
    "DEFAULT_DATABASE_URI",
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SyncConfig",
    "TransportConfig",
    "get_database_config",
    "get_sync_config",
    "get_transport_config",
    "optional_env_float",
    "require_env_vars",
]
