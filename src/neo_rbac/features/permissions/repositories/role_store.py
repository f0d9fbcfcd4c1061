"""AsyncPG-based RoleStore implementation.

Each mutation runs in one transaction so an assignment and its overlays are
written or removed together. Query failures surface as DatabaseError, which
the engine treats as "dependency unavailable, deny".
"""

import json
import logging
import re
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import asyncpg

from ....config.constants import DatabaseDefaults
from ....core.exceptions import DatabaseError, DuplicateAssignmentError, ValidationError
from ....utils.datetime import utc_now
from ....utils.uuid import generate_uuid_v7
from ...database.connection_manager import AsyncConnectionPool
from ..entities import AdvancedPermission, PermissionGrant, RoleAssignment
from . import queries


logger = logging.getLogger(__name__)

_SCHEMA_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]{0,62}$")


def _validate_schema_name(schema: str) -> str:
    if not _SCHEMA_PATTERN.match(schema or ""):
        raise ValidationError(f"Invalid schema name: {schema!r}")
    return schema


class AsyncPGRoleStore:
    """PostgreSQL implementation of the RoleStore protocol."""

    def __init__(self, connection_pool: AsyncConnectionPool, schema: str = DatabaseDefaults.SCHEMA):
        self.connection_pool = connection_pool
        self.schema = _validate_schema_name(schema)

    def _sql(self, query: str) -> str:
        return query.format(schema=self.schema)

    def _build_assignment_from_row(
        self,
        row: asyncpg.Record,
        grants: Sequence[PermissionGrant] = ()
    ) -> RoleAssignment:
        return RoleAssignment(
            id=row['id'],
            person_id=row['person_id'],
            tenant_id=row['tenant_id'],
            role_type=row['role_type'],
            company_id=row['company_id'],
            department_id=row['department_id'],
            is_primary=row['is_primary'],
            status=row['status'],
            assigned_by=row['assigned_by'],
            assigned_at=row['assigned_at'],
            expires_at=row['expires_at'],
            deleted_at=row['deleted_at'],
            grants=tuple(grants),
        )

    def _build_grant_from_row(self, row: asyncpg.Record) -> PermissionGrant:
        return PermissionGrant(
            permission=row['permission'],
            is_granted=row['is_granted'],
            granted_by=row['granted_by'],
            granted_at=row['granted_at'],
        )

    def _build_advanced_from_row(self, row: asyncpg.Record) -> AdvancedPermission:
        conditions = row['conditions']
        if isinstance(conditions, str):
            conditions = json.loads(conditions)
        return AdvancedPermission(
            id=row['id'],
            assignment_id=row['assignment_id'],
            resource=row['resource'],
            action=row['action'],
            scope=row['scope'],
            site_access=frozenset(row['site_access'] or ()),
            allowed_fields=tuple(row['allowed_fields']) if row['allowed_fields'] else None,
            conditions=conditions or {},
        )

    async def ensure_schema(self) -> None:
        """Create the store's tables and indexes if missing."""
        try:
            async with self.connection_pool.connection() as conn:
                await conn.execute(self._sql(queries.SCHEMA_DDL))
            logger.info(f"Ensured role store schema {self.schema}")
        except Exception as e:
            logger.error(f"Failed to create role store schema {self.schema}: {e}")
            raise DatabaseError(f"Failed to create role store schema: {e}", operation="ensure_schema")

    async def _attach_grants(self, conn, tenant_id: str, rows: Sequence[asyncpg.Record]) -> List[RoleAssignment]:
        if not rows:
            return []
        grant_rows = await conn.fetch(self._sql(queries.FIND_GRANTS), tenant_id, [r['id'] for r in rows])
        grants: Dict[str, List[PermissionGrant]] = {}
        for grant_row in grant_rows:
            grants.setdefault(grant_row['assignment_id'], []).append(self._build_grant_from_row(grant_row))
        return [self._build_assignment_from_row(row, grants.get(row['id'], ())) for row in rows]

    async def find_active_assignments(
        self,
        person_id: str,
        tenant_id: str,
        now: Optional[datetime] = None
    ) -> List[RoleAssignment]:
        try:
            async with self.connection_pool.connection() as conn:
                rows = await conn.fetch(
                    self._sql(queries.FIND_ACTIVE_ASSIGNMENTS), person_id, tenant_id, now or utc_now()
                )
                return await self._attach_grants(conn, tenant_id, rows)
        except Exception as e:
            logger.error(f"Failed to load assignments of {person_id} in tenant {tenant_id}: {e}")
            raise DatabaseError(f"Failed to load role assignments: {e}", operation="find_active_assignments")

    async def find_assignments_by_role(self, tenant_id: str, role_type: str) -> List[RoleAssignment]:
        try:
            async with self.connection_pool.connection() as conn:
                rows = await conn.fetch(
                    self._sql(queries.FIND_ASSIGNMENTS_BY_ROLE), tenant_id, role_type, utc_now()
                )
                return await self._attach_grants(conn, tenant_id, rows)
        except Exception as e:
            logger.error(f"Failed to load {role_type} assignments in tenant {tenant_id}: {e}")
            raise DatabaseError(f"Failed to load role assignments: {e}", operation="find_assignments_by_role")

    async def find_advanced_permissions(
        self,
        tenant_id: str,
        assignment_ids: Sequence[str]
    ) -> List[AdvancedPermission]:
        if not assignment_ids:
            return []
        try:
            async with self.connection_pool.connection() as conn:
                rows = await conn.fetch(
                    self._sql(queries.FIND_ADVANCED_PERMISSIONS), tenant_id, list(assignment_ids)
                )
                return [self._build_advanced_from_row(row) for row in rows]
        except Exception as e:
            logger.error(f"Failed to load advanced permissions in tenant {tenant_id}: {e}")
            raise DatabaseError(f"Failed to load advanced permissions: {e}", operation="find_advanced_permissions")

    async def create_assignment(
        self,
        assignment: RoleAssignment,
        advanced_permissions: Sequence[AdvancedPermission] = ()
    ) -> RoleAssignment:
        now = assignment.assigned_at or utc_now()
        try:
            async with self.connection_pool.connection() as conn:
                async with conn.transaction():
                    await conn.execute(
                        self._sql(queries.EXPIRE_LAPSED_DUPLICATE),
                        assignment.person_id,
                        assignment.tenant_id,
                        assignment.role_type,
                        assignment.company_id,
                        now,
                    )
                    await conn.execute(
                        self._sql(queries.INSERT_ASSIGNMENT),
                        assignment.id,
                        assignment.person_id,
                        assignment.tenant_id,
                        assignment.role_type,
                        assignment.company_id,
                        assignment.department_id,
                        assignment.is_primary,
                        assignment.assigned_by,
                        now,
                        assignment.expires_at,
                    )
                    if assignment.grants:
                        await conn.executemany(
                            self._sql(queries.INSERT_GRANT),
                            [
                                (assignment.id, assignment.tenant_id, g.permission, g.is_granted,
                                 g.granted_by, g.granted_at)
                                for g in assignment.grants
                            ],
                        )
                    if advanced_permissions:
                        await conn.executemany(
                            self._sql(queries.INSERT_ADVANCED_PERMISSION),
                            [
                                (p.id or generate_uuid_v7(), assignment.id, assignment.tenant_id,
                                 p.resource, p.action, p.scope.value, sorted(p.site_access),
                                 list(p.allowed_fields) if p.allowed_fields else None,
                                 json.dumps(p.to_dict()["conditions"]))
                                for p in advanced_permissions
                            ],
                        )
            logger.info(
                f"Created assignment {assignment.id}: {assignment.role_type} for {assignment.person_id} "
                f"in tenant {assignment.tenant_id}"
            )
            return assignment
        except asyncpg.UniqueViolationError:
            raise DuplicateAssignmentError(
                assignment.person_id, assignment.tenant_id, assignment.role_type, assignment.company_id
            )
        except Exception as e:
            logger.error(f"Failed to create assignment {assignment.id}: {e}")
            raise DatabaseError(f"Failed to create role assignment: {e}", operation="create_assignment")

    async def deactivate_assignment(self, tenant_id: str, assignment_id: str, deactivated_at: datetime) -> bool:
        try:
            async with self.connection_pool.connection() as conn:
                async with conn.transaction():
                    row = await conn.fetchrow(
                        self._sql(queries.DEACTIVATE_ASSIGNMENT), assignment_id, tenant_id, deactivated_at
                    )
                    if row is None:
                        return False
                    await conn.execute(self._sql(queries.DELETE_GRANTS), assignment_id, tenant_id)
                    await conn.execute(self._sql(queries.DELETE_ADVANCED_PERMISSIONS), assignment_id, tenant_id)
            return True
        except Exception as e:
            logger.error(f"Failed to deactivate assignment {assignment_id}: {e}")
            raise DatabaseError(f"Failed to deactivate role assignment: {e}", operation="deactivate_assignment")

    async def replace_permission_overlay(
        self,
        tenant_id: str,
        assignment_id: str,
        grants: Sequence[PermissionGrant]
    ) -> None:
        try:
            async with self.connection_pool.connection() as conn:
                async with conn.transaction():
                    locked = await conn.fetchrow(self._sql(queries.LOCK_ACTIVE_ASSIGNMENT), assignment_id, tenant_id)
                    if locked is None:
                        return
                    await conn.execute(self._sql(queries.DELETE_GRANTS), assignment_id, tenant_id)
                    if grants:
                        await conn.executemany(
                            self._sql(queries.INSERT_GRANT),
                            [
                                (assignment_id, tenant_id, g.permission, g.is_granted, g.granted_by, g.granted_at)
                                for g in grants
                            ],
                        )
        except Exception as e:
            logger.error(f"Failed to replace overlay of assignment {assignment_id}: {e}")
            raise DatabaseError(f"Failed to replace permission overlay: {e}", operation="replace_permission_overlay")

    async def sweep_expired(self, tenant_id: str, now: datetime, limit: int) -> int:
        try:
            async with self.connection_pool.connection() as conn:
                rows = await conn.fetch(self._sql(queries.SWEEP_EXPIRED), tenant_id, now, limit)
                return len(rows)
        except Exception as e:
            logger.error(f"Failed to sweep expired assignments in tenant {tenant_id}: {e}")
            raise DatabaseError(f"Failed to sweep expired assignments: {e}", operation="sweep_expired")

    async def find_hierarchy_overrides(self, tenant_id: str) -> Dict[str, int]:
        try:
            async with self.connection_pool.connection() as conn:
                rows = await conn.fetch(self._sql(queries.FIND_HIERARCHY_OVERRIDES), tenant_id)
                return {row['role_type']: row['level'] for row in rows}
        except Exception as e:
            logger.error(f"Failed to load hierarchy overrides of tenant {tenant_id}: {e}")
            raise DatabaseError(f"Failed to load hierarchy overrides: {e}", operation="find_hierarchy_overrides")

    async def save_hierarchy_override(
        self,
        tenant_id: str,
        role_type: str,
        level: int,
        changed_by: str,
        changed_at: datetime
    ) -> None:
        try:
            async with self.connection_pool.connection() as conn:
                await conn.execute(
                    self._sql(queries.UPSERT_HIERARCHY_OVERRIDE), tenant_id, role_type, level, changed_by, changed_at
                )
        except Exception as e:
            logger.error(f"Failed to save hierarchy override {role_type}={level} for tenant {tenant_id}: {e}")
            raise DatabaseError(f"Failed to save hierarchy override: {e}", operation="save_hierarchy_override")
