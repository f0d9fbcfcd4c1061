"""AsyncPG connection pool for the role store.

Creates the pool lazily on first use and hands out connections through an
async context manager so they are always released.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import asyncpg

from ...config.settings import RbacSettings
from ...core.exceptions import DatabaseError


logger = logging.getLogger(__name__)


@dataclass
class PoolMetrics:
    """Connection pool counters."""
    active_connections: int = 0
    acquired_total: int = 0
    failed_acquires: int = 0


class AsyncConnectionPool:
    """Lazily created asyncpg pool."""

    def __init__(
        self,
        dsn: str,
        min_size: int = 2,
        max_size: int = 10,
        acquire_timeout: float = 10.0,
    ):
        self._dsn = dsn
        self._min_size = min_size
        self._max_size = max_size
        self._acquire_timeout = acquire_timeout
        self._pool: Optional[asyncpg.Pool] = None
        self._metrics = PoolMetrics()
        self._is_closing = False
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: RbacSettings) -> "AsyncConnectionPool":
        if not settings.database_url:
            raise DatabaseError("NEO_RBAC_DATABASE_URL is not configured", operation="configure")
        return cls(
            dsn=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )

    async def _create_pool(self) -> asyncpg.Pool:
        try:
            pool = await asyncpg.create_pool(
                dsn=self._dsn,
                min_size=self._min_size,
                max_size=self._max_size,
            )
            logger.info(f"Created role store pool: min={self._min_size}, max={self._max_size}")
            return pool
        except Exception as e:
            logger.error(f"Failed to create role store pool: {e}")
            raise DatabaseError(f"Failed to create connection pool: {e}", operation="create_pool")

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            async with self._lock:
                if self._pool is None:
                    self._pool = await self._create_pool()
        return self._pool

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection and release it on exit."""
        if self._is_closing:
            raise DatabaseError("Pool is closing", operation="acquire")

        pool = await self._ensure_pool()
        try:
            conn = await pool.acquire(timeout=self._acquire_timeout)
        except Exception as e:
            self._metrics.failed_acquires += 1
            logger.error(f"Failed to acquire connection: {e}")
            raise DatabaseError(f"Failed to acquire connection: {e}", operation="acquire")

        self._metrics.active_connections += 1
        self._metrics.acquired_total += 1
        try:
            yield conn
        finally:
            self._metrics.active_connections = max(0, self._metrics.active_connections - 1)
            try:
                await pool.release(conn)
            except Exception as e:
                logger.warning(f"Error releasing connection: {e}")

    async def close(self) -> None:
        self._is_closing = True
        if self._pool:
            async with self._lock:
                if self._pool:
                    await self._pool.close()
                    self._pool = None
                    logger.info("Closed role store pool")

    @property
    def metrics(self) -> PoolMetrics:
        return self._metrics
