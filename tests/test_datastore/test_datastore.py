"""Tests for the datastore client — lifecycle, sessions and ping."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select, text

from btc_portal.config.settings import DatabaseConfig
from btc_portal.datastore.client import Datastore
from btc_portal.engine.models.deposit import DepositRecord, new_deposit_record
from btc_portal.portal.requests import LegacyShieldRequest


def _memory() -> DatabaseConfig:
    return DatabaseConfig(engine="sqlite", dsn="sqlite+aiosqlite:///:memory:")


class TestDatastore:
    """Test Datastore lifecycle and session management."""

    async def test_open_close(self) -> None:
        ds = Datastore(_memory())
        assert not ds.is_open
        await ds.open()
        assert ds.is_open
        await ds.close()
        assert not ds.is_open

    async def test_close_idempotent(self) -> None:
        ds = Datastore(_memory())
        await ds.open()
        await ds.close()
        await ds.close()

    async def test_engine_property_when_closed(self) -> None:
        with pytest.raises(RuntimeError, match="not open"):
            _ = Datastore(_memory()).engine

    async def test_session_when_closed(self) -> None:
        with pytest.raises(RuntimeError, match="not open"):
            Datastore(_memory()).session()

    async def test_open_creates_portal_tables(self) -> None:
        ds = Datastore(_memory())
        await ds.open(create_schema=True)
        async with ds.session() as session:
            result = await session.execute(
                text("SELECT name FROM sqlite_master WHERE type='table'")
            )
            tables = {row[0] for row in result.fetchall()}
        assert {"deposit_records", "deposit_receivers"} <= tables
        await ds.close()

    async def test_ping(self) -> None:
        ds = Datastore(_memory())
        assert await ds.ping() is False
        await ds.open()
        assert await ds.ping() is True
        await ds.close()
        assert await ds.ping() is False

    async def test_transaction_commits(self) -> None:
        ds = Datastore(_memory())
        await ds.open(create_schema=True)
        async with ds.transaction() as session:
            session.add(new_deposit_record(LegacyShieldRequest("A1", "addr")))
        async with ds.session() as session:
            count = (await session.execute(select(func.count(DepositRecord.id)))).scalar()
        assert count == 1
        await ds.close()

    async def test_transaction_rolls_back(self) -> None:
        ds = Datastore(_memory())
        await ds.open(create_schema=True)
        with pytest.raises(RuntimeError, match="boom"):
            async with ds.transaction() as session:
                session.add(new_deposit_record(LegacyShieldRequest("A1", "addr")))
                await session.flush()
                msg = "boom"
                raise RuntimeError(msg)
        async with ds.session() as session:
            count = (await session.execute(select(func.count(DepositRecord.id)))).scalar()
        assert count == 0
        await ds.close()
