"""
Redis cache for role assignments and advanced permissions.

Keeps a short-lived (seconds) snapshot per (tenant, person) to avoid repeated
store reads within a burst of requests. Entries are invalidated on every role
mutation. All failures are logged and treated as a miss.
"""
import json
import logging
from typing import List, Optional, Sequence

import redis.asyncio as redis

from ....config.constants import CacheKeys, CacheTTL
from ..entities import AdvancedPermission, RoleAssignment


logger = logging.getLogger(__name__)


class RedisAssignmentCache:
    """Redis implementation of the AssignmentCache protocol."""

    def __init__(
        self,
        redis_client: redis.Redis,
        key_prefix: str = "neo_rbac",
        ttl_seconds: int = CacheTTL.ASSIGNMENTS_DEFAULT
    ):
        self._redis = redis_client
        self._key_prefix = key_prefix
        self._ttl = min(ttl_seconds, CacheTTL.ASSIGNMENTS_MAX)

    @classmethod
    def from_url(cls, url: str, key_prefix: str = "neo_rbac", ttl_seconds: int = CacheTTL.ASSIGNMENTS_DEFAULT) -> "RedisAssignmentCache":
        return cls(redis.from_url(url), key_prefix=key_prefix, ttl_seconds=ttl_seconds)

    def _assignments_key(self, tenant_id: str, person_id: str) -> str:
        return f"{self._key_prefix}:" + CacheKeys.ASSIGNMENTS.format(tenant_id=tenant_id, person_id=person_id)

    def _advanced_key(self, tenant_id: str, person_id: str) -> str:
        return f"{self._key_prefix}:" + CacheKeys.ADVANCED_PERMISSIONS.format(tenant_id=tenant_id, person_id=person_id)

    @staticmethod
    def _decode(raw) -> str:
        return raw.decode() if isinstance(raw, bytes) else raw

    async def get_assignments(self, tenant_id: str, person_id: str) -> Optional[List[RoleAssignment]]:
        """Get cached assignments."""
        try:
            result = await self._redis.get(self._assignments_key(tenant_id, person_id))
            if result is None:
                return None
            return [RoleAssignment.from_dict(item) for item in json.loads(self._decode(result))]
        except Exception as e:
            logger.warning(f"Failed to get assignments from cache: {e}")
            return None

    async def set_assignments(self, tenant_id: str, person_id: str, assignments: Sequence[RoleAssignment]) -> None:
        """Cache assignments."""
        try:
            data = json.dumps([a.to_dict() for a in assignments])
            await self._redis.setex(self._assignments_key(tenant_id, person_id), self._ttl, data)
        except Exception as e:
            logger.warning(f"Failed to cache assignments: {e}")

    async def get_advanced_permissions(self, tenant_id: str, person_id: str) -> Optional[List[AdvancedPermission]]:
        """Get cached advanced permissions."""
        try:
            result = await self._redis.get(self._advanced_key(tenant_id, person_id))
            if result is None:
                return None
            return [AdvancedPermission.from_dict(item) for item in json.loads(self._decode(result))]
        except Exception as e:
            logger.warning(f"Failed to get advanced permissions from cache: {e}")
            return None

    async def set_advanced_permissions(
        self,
        tenant_id: str,
        person_id: str,
        permissions: Sequence[AdvancedPermission]
    ) -> None:
        """Cache advanced permissions."""
        try:
            data = json.dumps([p.to_dict() for p in permissions])
            await self._redis.setex(self._advanced_key(tenant_id, person_id), self._ttl, data)
        except Exception as e:
            logger.warning(f"Failed to cache advanced permissions: {e}")

    async def invalidate(self, tenant_id: str, person_id: str) -> None:
        """Invalidate cached data of one person."""
        try:
            await self._redis.delete(
                self._assignments_key(tenant_id, person_id),
                self._advanced_key(tenant_id, person_id),
            )
        except Exception as e:
            logger.warning(f"Failed to invalidate cached assignments of {person_id}: {e}")

    async def invalidate_tenant(self, tenant_id: str) -> None:
        """Invalidate cached data of every person in a tenant."""
        try:
            pattern = f"{self._key_prefix}:" + CacheKeys.TENANT_PATTERN.format(tenant_id=tenant_id)
            keys = [key async for key in self._redis.scan_iter(match=pattern)]
            if keys:
                await self._redis.delete(*keys)
        except Exception as e:
            logger.warning(f"Failed to invalidate cached assignments of tenant {tenant_id}: {e}")
