"""Async SQLAlchemy engine factory for the registry database.

PostgreSQL (asyncpg) gets a sized connection pool. SQLite (aiosqlite) gets a
busy timeout instead: concurrent registrations serialize on the database
write lock and must wait for it rather than fail with "database is locked".
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from btc_portal.config.settings import DatabaseEngine

if TYPE_CHECKING:
    from btc_portal.config.settings import DatabaseConfig

# Seconds a SQLite connection waits on a locked database.
SQLITE_BUSY_TIMEOUT = 30.0


def _is_sqlite(config: DatabaseConfig) -> bool:
    return config.engine is DatabaseEngine.SQLITE or config.dsn.startswith("sqlite")


def engine_options(config: DatabaseConfig) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine`` derived from *config*."""
    options: dict[str, Any] = {"echo": config.debug_sql}

    if _is_sqlite(config):
        options["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT}
        # Every connection to ":memory:" is a new database; share one.
        if ":memory:" in config.dsn:
            options["poolclass"] = StaticPool
        return options

    options["pool_size"] = config.max_idle_connections
    options["max_overflow"] = max(0, config.max_open_connections - config.max_idle_connections)
    options["pool_pre_ping"] = True
    return options


def create_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create the async engine the datastore runs on."""
    return create_async_engine(config.dsn, **engine_options(config))
