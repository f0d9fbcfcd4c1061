"""In-memory RoleStore implementation.

Used for tests, local development and single-process deployments. Mutations
are serialized with an asyncio lock; reads return copies of immutable
entities, so no lock is needed on the read path.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from ....config.constants import AssignmentStatus
from ....core.exceptions import DuplicateAssignmentError
from ....utils.datetime import utc_now
from ....utils.uuid import generate_uuid_v7
from ..entities import AdvancedPermission, PermissionGrant, RoleAssignment, bind_advanced_permissions


logger = logging.getLogger(__name__)


class InMemoryRoleStore:
    """RoleStore keeping every assignment row, including terminal ones, in memory."""

    def __init__(self):
        self._assignments: Dict[str, RoleAssignment] = {}
        self._advanced: Dict[str, Tuple[AdvancedPermission, ...]] = {}
        self._overrides: Dict[str, Dict[str, int]] = {}
        self._lock = asyncio.Lock()

    def _active_duplicate(self, assignment: RoleAssignment, now: datetime) -> Optional[RoleAssignment]:
        for existing in self._assignments.values():
            if existing.key == assignment.key and existing.is_effective(now):
                return existing
        return None

    async def find_active_assignments(
        self,
        person_id: str,
        tenant_id: str,
        now: Optional[datetime] = None
    ) -> List[RoleAssignment]:
        now = now or utc_now()
        return [
            a for a in self._assignments.values()
            if a.person_id == person_id and a.tenant_id == tenant_id and a.is_effective(now)
        ]

    async def find_assignments_by_role(self, tenant_id: str, role_type: str) -> List[RoleAssignment]:
        now = utc_now()
        return [
            a for a in self._assignments.values()
            if a.tenant_id == tenant_id and a.role_type == role_type and a.is_effective(now)
        ]

    async def find_advanced_permissions(
        self,
        tenant_id: str,
        assignment_ids: Sequence[str]
    ) -> List[AdvancedPermission]:
        result: List[AdvancedPermission] = []
        for assignment_id in assignment_ids:
            assignment = self._assignments.get(assignment_id)
            if assignment is None or assignment.tenant_id != tenant_id:
                continue
            result.extend(self._advanced.get(assignment_id, ()))
        return result

    async def get_assignment(self, tenant_id: str, assignment_id: str) -> Optional[RoleAssignment]:
        """Fetch any assignment row, terminal ones included."""
        assignment = self._assignments.get(assignment_id)
        if assignment is None or assignment.tenant_id != tenant_id:
            return None
        return assignment

    async def create_assignment(
        self,
        assignment: RoleAssignment,
        advanced_permissions: Sequence[AdvancedPermission] = ()
    ) -> RoleAssignment:
        async with self._lock:
            if self._active_duplicate(assignment, utc_now()) is not None:
                raise DuplicateAssignmentError(
                    assignment.person_id, assignment.tenant_id, assignment.role_type, assignment.company_id
                )
            self._assignments[assignment.id] = assignment
            self._advanced[assignment.id] = tuple(
                p if p.id else replace(p, id=generate_uuid_v7())
                for p in bind_advanced_permissions(advanced_permissions, assignment.id)
            )
            logger.debug(f"Stored assignment {assignment.id} ({assignment.role_type}) in tenant {assignment.tenant_id}")
            return assignment

    async def deactivate_assignment(self, tenant_id: str, assignment_id: str, deactivated_at: datetime) -> bool:
        async with self._lock:
            assignment = self._assignments.get(assignment_id)
            if assignment is None or assignment.tenant_id != tenant_id or not assignment.is_active:
                return False
            self._assignments[assignment_id] = assignment.deactivated(deactivated_at)
            self._advanced.pop(assignment_id, None)
            return True

    async def replace_permission_overlay(
        self,
        tenant_id: str,
        assignment_id: str,
        grants: Sequence[PermissionGrant]
    ) -> None:
        async with self._lock:
            assignment = self._assignments.get(assignment_id)
            if assignment is None or assignment.tenant_id != tenant_id or not assignment.is_active:
                return
            self._assignments[assignment_id] = assignment.with_grants(tuple(grants))

    async def sweep_expired(self, tenant_id: str, now: datetime, limit: int) -> int:
        async with self._lock:
            expired = sorted(
                (
                    a for a in self._assignments.values()
                    if a.tenant_id == tenant_id and a.status is AssignmentStatus.ACTIVE and a.is_expired(now)
                ),
                key=lambda a: (a.expires_at, a.id)
            )[:limit]
            for assignment in expired:
                self._assignments[assignment.id] = assignment.expired(now)
            return len(expired)

    async def find_hierarchy_overrides(self, tenant_id: str) -> Dict[str, int]:
        return dict(self._overrides.get(tenant_id, {}))

    async def save_hierarchy_override(
        self,
        tenant_id: str,
        role_type: str,
        level: int,
        changed_by: str,
        changed_at: datetime
    ) -> None:
        async with self._lock:
            self._overrides.setdefault(tenant_id, {})[role_type] = level
