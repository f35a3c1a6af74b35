"""Schema creation for the portal tables.

The registry is two tables: ``deposit_records`` (one row per chain code and
address pair, unique on that pair) and ``deposit_receivers`` (one row per
consumed one-time receiver key). Both are created from the ORM metadata, so
the unique index exists before the first registration is accepted. Existing
tables are left alone; rows are never rewritten by a schema pass.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import inspect

import btc_portal.engine.models  # noqa: F401  (registers the tables on Base.metadata)
from btc_portal.engine.models.base import Base

if TYPE_CHECKING:
    from sqlalchemy import Connection
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)


def _create_missing(conn: Connection) -> list[str]:
    existing = set(inspect(conn).get_table_names())
    missing = [t for t in Base.metadata.sorted_tables if t.name not in existing]
    Base.metadata.create_all(conn, tables=missing)
    return [t.name for t in missing]


async def run_auto_migrate(engine: AsyncEngine) -> list[str]:
    """Create whichever portal tables do not exist yet.

    Returns:
        Names of the tables created by this call, in dependency order; empty
        when the schema was already in place.
    """
    async with engine.begin() as conn:
        created = await conn.run_sync(_create_missing)
    if created:
        logger.info("created registry tables: %s", ", ".join(created))
    return created
