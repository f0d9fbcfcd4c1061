"""Role store and cache implementations."""

from .memory_role_store import InMemoryRoleStore
from .redis_assignment_cache import RedisAssignmentCache
from .role_store import AsyncPGRoleStore

__all__ = [
    "AsyncPGRoleStore",
    "InMemoryRoleStore",
    "RedisAssignmentCache",
]
