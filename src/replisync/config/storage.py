"""Database location for the SQL server store."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

# relative to the working directory of the server process
DEFAULT_DATABASE_URI: Final[str] = "sqlite+pysqlite:///replisync.db"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str = DEFAULT_DATABASE_URI


def get_database_config() -> DatabaseConfig:
    env_uri = os.getenv("DATABASE_URI")
    if env_uri is None or not env_uri.strip():
        return DatabaseConfig()
    return DatabaseConfig(uri=env_uri.strip())
