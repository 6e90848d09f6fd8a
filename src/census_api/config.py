"""Runtime configuration for the census API.

Values come from the process environment, optionally seeded from a `.env`
file via python-dotenv.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Tuple

from dotenv import load_dotenv


DEFAULT_DATABASE_URL = "postgresql://postgres@localhost:5432/wildlife_census"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL

    # Connection pool (ignored for SQLite)
    pool_size: int = 5
    max_overflow: int = 5
    pool_timeout: float = 10.0

    echo_sql: bool = False
    create_schema: bool = False
    log_level: str = "INFO"
    cors_origins: Tuple[str, ...] = field(default_factory=lambda: ("http://localhost:3000",))

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        origins = os.getenv("CENSUS_CORS_ORIGINS", "http://localhost:3000")
        return cls(
            database_url=os.getenv("POSTGRES_URI", DEFAULT_DATABASE_URL),
            pool_size=int(os.getenv("CENSUS_POOL_SIZE", "5")),
            max_overflow=int(os.getenv("CENSUS_MAX_OVERFLOW", "5")),
            pool_timeout=float(os.getenv("CENSUS_POOL_TIMEOUT", "10")),
            echo_sql=_env_bool("CENSUS_ECHO_SQL", False),
            create_schema=_env_bool("CENSUS_CREATE_SCHEMA", False),
            log_level=os.getenv("CENSUS_LOG_LEVEL", "INFO").upper(),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )
