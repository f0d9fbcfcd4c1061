"""Protocol interfaces for the permissions feature.

The engine depends on these contracts only; concrete stores and caches live
in ``repositories``. Every store operation is tenant-scoped.
"""

from abc import abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence, runtime_checkable

from .permission_grant import AdvancedPermission, PermissionGrant
from .role_assignment import RoleAssignment


@runtime_checkable
class RoleStore(Protocol):
    """Persistence contract for role assignments and their permission overlays.

    Implementations own the transaction boundary: ``create_assignment``,
    ``deactivate_assignment`` and ``replace_permission_overlay`` are each a
    single all-or-nothing unit.
    """

    @abstractmethod
    async def find_active_assignments(
        self,
        person_id: str,
        tenant_id: str,
        now: Optional[datetime] = None
    ) -> List[RoleAssignment]:
        """Active, non-expired assignments of a person in a tenant, with their grants."""
        ...

    @abstractmethod
    async def find_assignments_by_role(self, tenant_id: str, role_type: str) -> List[RoleAssignment]:
        """Active assignments of a role type in a tenant."""
        ...

    @abstractmethod
    async def find_advanced_permissions(
        self,
        tenant_id: str,
        assignment_ids: Sequence[str]
    ) -> List[AdvancedPermission]:
        """Advanced permissions attached to the given assignments."""
        ...

    @abstractmethod
    async def create_assignment(
        self,
        assignment: RoleAssignment,
        advanced_permissions: Sequence[AdvancedPermission] = ()
    ) -> RoleAssignment:
        """Persist an assignment with its grants and advanced permissions.

        Raises DuplicateAssignmentError if an identical active tuple exists.
        """
        ...

    @abstractmethod
    async def deactivate_assignment(self, tenant_id: str, assignment_id: str, deactivated_at: datetime) -> bool:
        """Deactivate an assignment and drop its overlays. Returns False if it was not active."""
        ...

    @abstractmethod
    async def replace_permission_overlay(
        self,
        tenant_id: str,
        assignment_id: str,
        grants: Sequence[PermissionGrant]
    ) -> None:
        """Atomically replace the basic permission overlay of an assignment."""
        ...

    @abstractmethod
    async def sweep_expired(self, tenant_id: str, now: datetime, limit: int) -> int:
        """Mark up to ``limit`` past-expiry active assignments as expired; return the count."""
        ...

    @abstractmethod
    async def find_hierarchy_overrides(self, tenant_id: str) -> Dict[str, int]:
        """Per-tenant role level overrides produced by hierarchy moves."""
        ...

    @abstractmethod
    async def save_hierarchy_override(
        self,
        tenant_id: str,
        role_type: str,
        level: int,
        changed_by: str,
        changed_at: datetime
    ) -> None:
        """Persist a role level override for a tenant."""
        ...


@runtime_checkable
class AssignmentCache(Protocol):
    """Short-lived cache of a person's assignments and advanced permissions.

    Implementations must fail soft: a cache error is a miss, never a failure.
    """

    @abstractmethod
    async def get_assignments(self, tenant_id: str, person_id: str) -> Optional[List[RoleAssignment]]:
        ...

    @abstractmethod
    async def set_assignments(self, tenant_id: str, person_id: str, assignments: Sequence[RoleAssignment]) -> None:
        ...

    @abstractmethod
    async def get_advanced_permissions(self, tenant_id: str, person_id: str) -> Optional[List[AdvancedPermission]]:
        ...

    @abstractmethod
    async def set_advanced_permissions(
        self,
        tenant_id: str,
        person_id: str,
        permissions: Sequence[AdvancedPermission]
    ) -> None:
        ...

    @abstractmethod
    async def invalidate(self, tenant_id: str, person_id: str) -> None:
        """Drop cached data for one person in one tenant."""
        ...

    @abstractmethod
    async def invalidate_tenant(self, tenant_id: str) -> None:
        """Drop cached data for every person in a tenant."""
        ...
