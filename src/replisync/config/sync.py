"""Reconciliation defaults for the sync server."""

from __future__ import annotations

import os
from dataclasses import dataclass

from replisync.domain.reconciliation.contracts import ConflictStrategy

from .errors import ConfigurationError

DEFAULT_CONFLICT_STRATEGY = ConflictStrategy.TAKE_CLIENT


@dataclass(frozen=True, slots=True)
class SyncConfig:
    conflict_strategy: ConflictStrategy = DEFAULT_CONFLICT_STRATEGY


def get_sync_config() -> SyncConfig:
    raw = os.getenv("REPLISYNC_CONFLICT_STRATEGY")
    if raw is None or not raw.strip():
        return SyncConfig()
    try:
        strategy = ConflictStrategy(raw.strip())
    except ValueError as exc:
        allowed = ", ".join(member.value for member in ConflictStrategy)
        raise ConfigurationError(
            f"REPLISYNC_CONFLICT_STRATEGY must be one of {allowed}, got {raw!r}"
        ) from exc
    return SyncConfig(conflict_strategy=strategy)
