"""Constants and enums for neo-rbac.

This module defines the closed vocabularies used by the authorization engine
(scopes, deny reasons, assignment states, condition kinds, audit event types)
together with cache key patterns and hierarchy limits.
"""

from enum import Enum
from typing import Final


class PermissionScope(str, Enum):
    """Data scope under which an action is allowed."""

    GLOBAL = "global"
    TENANT = "tenant"
    COMPANY = "company"
    DEPARTMENT = "department"
    SELF = "self"

    @property
    def breadth(self) -> int:
        """Relative breadth of the scope, higher is broader."""
        return _SCOPE_BREADTH[self]

    def is_broader_than(self, other: "PermissionScope") -> bool:
        return self.breadth > other.breadth


_SCOPE_BREADTH = {
    PermissionScope.GLOBAL: 4,
    PermissionScope.TENANT: 3,
    PermissionScope.COMPANY: 2,
    PermissionScope.DEPARTMENT: 1,
    PermissionScope.SELF: 0,
}


class DenyReason(str, Enum):
    """Structured reason attached to a denied authorization decision.

    Reasons are for logs and audit only and never leave the service boundary.
    """

    NO_MATCHING_PERMISSION = "NO_MATCHING_PERMISSION"
    SCOPE_NOT_CONTAINED = "SCOPE_NOT_CONTAINED"
    SITE_NOT_AUTHORIZED = "SITE_NOT_AUTHORIZED"
    CONDITION_NOT_MET = "CONDITION_NOT_MET"
    INSUFFICIENT_HIERARCHY_LEVEL = "INSUFFICIENT_HIERARCHY_LEVEL"
    DUPLICATE_ASSIGNMENT = "DUPLICATE_ASSIGNMENT"
    TENANT_MISMATCH = "TENANT_MISMATCH"


# Order used to report a single reason when several candidates fail differently
DENY_REASON_PRECEDENCE: Final = (
    DenyReason.TENANT_MISMATCH,
    DenyReason.SITE_NOT_AUTHORIZED,
    DenyReason.SCOPE_NOT_CONTAINED,
    DenyReason.CONDITION_NOT_MET,
)


class AssignmentStatus(str, Enum):
    """Lifecycle state of a role assignment."""

    ACTIVE = "active"
    EXPIRED = "expired"          # passive timeout
    DEACTIVATED = "deactivated"  # explicit removal

    @property
    def is_terminal(self) -> bool:
        return self is not AssignmentStatus.ACTIVE


class ConditionKind(str, Enum):
    """Closed set of condition keys an advanced permission may carry."""

    OWNED_BY = "ownedBy"
    COMPANY_ID = "companyId"
    DEPARTMENT_ID = "departmentId"
    STATUS = "status"


class AuditEventType(str, Enum):
    """Audit event types emitted by the engine."""

    PERMISSION_CHECK = "permission.check"
    ADVANCED_PERMISSION_CHECK = "permission.advanced_check"
    ROLE_ASSIGNED = "role.assigned"
    ROLE_REMOVED = "role.removed"
    PERMISSIONS_UPDATED = "role.permissions_updated"
    ROLES_EXPIRED = "role.expired"
    HIERARCHY_MOVED = "hierarchy.moved"


class AuditOutcome(str, Enum):
    """Outcome recorded on an audit event."""

    ALLOWED = "allowed"
    DENIED = "denied"
    SUCCESS = "success"


class HierarchyLevels:
    """Hierarchy level limits. Lower level means higher privilege."""

    SUPER_ADMIN: Final[int] = 0
    MANAGE_HIERARCHY_MAX: Final[int] = 1
    MIN_MOVABLE: Final[int] = 1
    MAX: Final[int] = 6
    NO_ROLE: Final[int] = 999


class CacheKeys:
    """Cache key patterns for Redis."""

    ASSIGNMENTS: Final[str] = "assignments:{tenant_id}:{person_id}"
    ADVANCED_PERMISSIONS: Final[str] = "advanced:{tenant_id}:{person_id}"
    TENANT_PATTERN: Final[str] = "*:{tenant_id}:*"


class CacheTTL:
    """Cache TTL values in seconds."""

    ASSIGNMENTS_DEFAULT: Final[int] = 5
    ASSIGNMENTS_MAX: Final[int] = 60


class DatabaseDefaults:
    """Database defaults for the role store."""

    SCHEMA: Final[str] = "rbac"
    CLEANUP_BATCH_SIZE: Final[int] = 500


IDENTIFIER_FIELD: Final[str] = "id"
GENERIC_DENY_MESSAGE: Final[str] = "Access denied"
