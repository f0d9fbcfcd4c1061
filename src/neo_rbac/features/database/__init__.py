"""Database feature for neo-rbac: asyncpg pool management for the role store."""

from .connection_manager import AsyncConnectionPool, PoolMetrics

__all__ = [
    "AsyncConnectionPool",
    "PoolMetrics",
]
