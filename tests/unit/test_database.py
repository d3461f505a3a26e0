"""Unit tests for the asyncpg pool manager."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.config import Settings
from app.database import Database


def make_pool(conn: AsyncMock) -> MagicMock:
    acquire = MagicMock()
    acquire.__aenter__ = AsyncMock(return_value=conn)
    acquire.__aexit__ = AsyncMock(return_value=False)
    pool = MagicMock()
    pool.acquire.return_value = acquire
    pool.close = AsyncMock()
    return pool


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="postgresql://u:p@db:5432/clauseguard", db_pool_min_size=1, db_pool_max_size=4)


class TestDatabase:
    """Tests for connect/disconnect and the server info query."""

    def test_pool_before_connect(self):
        with pytest.raises(RuntimeError, match="not connected"):
            Database().pool

    @pytest.mark.asyncio
    async def test_connect_uses_settings(self, settings):
        pool = make_pool(AsyncMock())
        with patch("app.database.get_settings", return_value=settings), \
                patch("app.database.asyncpg.create_pool", AsyncMock(return_value=pool)) as create_pool:
            database = Database()
            await database.connect()
            await database.connect()

        create_pool.assert_awaited_once_with(
            "postgresql://u:p@db:5432/clauseguard", min_size=1, max_size=4
        )
        assert database.is_connected
        assert database.pool is pool

    @pytest.mark.asyncio
    async def test_explicit_dsn(self, settings):
        with patch("app.database.get_settings", return_value=settings), \
                patch("app.database.asyncpg.create_pool", AsyncMock(return_value=make_pool(AsyncMock()))) as create_pool:
            await Database().connect("postgresql://other/db")

        assert create_pool.await_args.args == ("postgresql://other/db",)

    @pytest.mark.asyncio
    async def test_disconnect(self, settings):
        pool = make_pool(AsyncMock())
        with patch("app.database.get_settings", return_value=settings), \
                patch("app.database.asyncpg.create_pool", AsyncMock(return_value=pool)):
            database = Database()
            await database.connect()
            await database.disconnect()

        pool.close.assert_awaited_once()
        assert not database.is_connected

    @pytest.mark.asyncio
    async def test_server_info(self, settings):
        conn = AsyncMock()
        conn.fetchval.side_effect = ["PostgreSQL 16.2", True]
        with patch("app.database.get_settings", return_value=settings), \
                patch("app.database.asyncpg.create_pool", AsyncMock(return_value=make_pool(conn))):
            database = Database()
            await database.connect()
            info = await database.server_info()

        assert info == {"version": "PostgreSQL 16.2", "pgvector": True}
