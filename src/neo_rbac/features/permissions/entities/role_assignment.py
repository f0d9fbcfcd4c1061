"""Role assignment domain entity.

A RoleAssignment grants a role type to a person within one tenant, optionally
narrowed to a company and/or department. Assignments follow the lifecycle
``active -> expired | deactivated``; terminal records are kept for history
and a fresh assignment is created instead of reviving one.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from ....config.constants import AssignmentStatus
from ....core.exceptions import ValidationError
from ....utils.datetime import ensure_utc, format_iso8601, is_expired, parse_iso8601, utc_now
from ....utils.uuid import generate_uuid_v7
from .permission_grant import PermissionGrant


AssignmentKey = Tuple[str, str, str, Optional[str]]


@dataclass(frozen=True)
class RoleAssignment:
    """A person's grant of a role type within a tenant."""

    id: str
    person_id: str
    tenant_id: str
    role_type: str
    company_id: Optional[str] = None
    department_id: Optional[str] = None
    is_primary: bool = False
    status: AssignmentStatus = AssignmentStatus.ACTIVE
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    grants: Tuple[PermissionGrant, ...] = ()

    def __post_init__(self):
        if not self.person_id or not self.tenant_id:
            raise ValidationError("Role assignment requires person_id and tenant_id")

        object.__setattr__(self, 'status', AssignmentStatus(self.status))
        object.__setattr__(self, 'grants', tuple(self.grants))
        object.__setattr__(self, 'assigned_at', ensure_utc(self.assigned_at))
        object.__setattr__(self, 'expires_at', ensure_utc(self.expires_at))
        object.__setattr__(self, 'deleted_at', ensure_utc(self.deleted_at))

    @classmethod
    def create(
        cls,
        person_id: str,
        tenant_id: str,
        role_type: str,
        company_id: Optional[str] = None,
        department_id: Optional[str] = None,
        is_primary: bool = False,
        assigned_by: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        grants: Tuple[PermissionGrant, ...] = (),
        now: Optional[datetime] = None,
    ) -> "RoleAssignment":
        """Create a new active assignment with a fresh id."""
        return cls(
            id=generate_uuid_v7(),
            person_id=person_id,
            tenant_id=tenant_id,
            role_type=role_type,
            company_id=company_id,
            department_id=department_id,
            is_primary=is_primary,
            status=AssignmentStatus.ACTIVE,
            assigned_by=assigned_by,
            assigned_at=now or utc_now(),
            expires_at=expires_at,
            grants=grants,
        )

    @property
    def key(self) -> AssignmentKey:
        """Uniqueness key among active, non-expired assignments."""
        return (self.person_id, self.tenant_id, self.role_type, self.company_id)

    @property
    def is_active(self) -> bool:
        return self.status is AssignmentStatus.ACTIVE and self.deleted_at is None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return is_expired(self.expires_at, now)

    def is_effective(self, now: Optional[datetime] = None) -> bool:
        """Active and not past its expiry."""
        return self.is_active and not self.is_expired(now)

    def applies_to(self, company_id: Optional[str] = None, department_id: Optional[str] = None) -> bool:
        """Whether the assignment's narrowing admits the given company/department context."""
        if company_id is not None and self.company_id is not None and self.company_id != company_id:
            return False
        if department_id is not None and self.department_id is not None and self.department_id != department_id:
            return False
        return True

    def granted_overlay(self) -> frozenset:
        return frozenset(g.permission for g in self.grants if g.is_granted)

    def denied_overlay(self) -> frozenset:
        return frozenset(g.permission for g in self.grants if not g.is_granted)

    def with_grants(self, grants: Tuple[PermissionGrant, ...]) -> "RoleAssignment":
        return replace(self, grants=tuple(grants))

    def deactivated(self, at: datetime) -> "RoleAssignment":
        return replace(self, status=AssignmentStatus.DEACTIVATED, deleted_at=at, grants=())

    def expired(self, at: datetime) -> "RoleAssignment":
        return replace(self, status=AssignmentStatus.EXPIRED, deleted_at=at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "person_id": self.person_id,
            "tenant_id": self.tenant_id,
            "role_type": self.role_type,
            "company_id": self.company_id,
            "department_id": self.department_id,
            "is_primary": self.is_primary,
            "status": self.status.value,
            "assigned_by": self.assigned_by,
            "assigned_at": format_iso8601(self.assigned_at),
            "expires_at": format_iso8601(self.expires_at),
            "deleted_at": format_iso8601(self.deleted_at),
            "grants": [g.to_dict() for g in self.grants],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RoleAssignment":
        return cls(
            id=data["id"],
            person_id=data["person_id"],
            tenant_id=data["tenant_id"],
            role_type=data["role_type"],
            company_id=data.get("company_id"),
            department_id=data.get("department_id"),
            is_primary=bool(data.get("is_primary", False)),
            status=AssignmentStatus(data.get("status", AssignmentStatus.ACTIVE.value)),
            assigned_by=data.get("assigned_by"),
            assigned_at=parse_iso8601(data.get("assigned_at")),
            expires_at=parse_iso8601(data.get("expires_at")),
            deleted_at=parse_iso8601(data.get("deleted_at")),
            grants=tuple(PermissionGrant.from_dict(g) for g in data.get("grants") or ()),
        )
