"""Postgres pool for the pgvector precedent library."""

import logging
from typing import Any

import asyncpg
from asyncpg import Pool

from app.config import get_settings

logger = logging.getLogger("clauseguard.database")


class Database:
    """Owns the asyncpg pool shared by the vector store and scripts."""

    def __init__(self) -> None:
        self._pool: Pool | None = None

    async def connect(self, dsn: str | None = None) -> None:
        """Create the pool; a second call while connected is a no-op."""
        if self._pool is not None:
            return
        settings = get_settings()
        self._pool = await asyncpg.create_pool(
            dsn or settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        logger.info(
            f"Database pool created (min={settings.db_pool_min_size}, max={settings.db_pool_max_size})"
        )

    async def disconnect(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database pool closed")

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @property
    def pool(self) -> Pool:
        if not self._pool:
            raise RuntimeError("Database not connected")
        return self._pool

    async def server_info(self) -> dict[str, Any]:
        """Server version and whether the pgvector extension is installed."""
        async with self.pool.acquire() as conn:
            version = await conn.fetchval("SELECT version()")
            has_vector = await conn.fetchval(
                "SELECT EXISTS(SELECT 1 FROM pg_extension WHERE extname = 'vector')"
            )
        return {"version": version, "pgvector": bool(has_vector)}


db = Database()
