"""Authorization request and decision value objects."""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from ....config.constants import DenyReason, GENERIC_DENY_MESSAGE, PermissionScope
from ....core.exceptions import ValidationError


@dataclass(frozen=True)
class TargetOwnership:
    """Ownership attributes of the record an action targets."""

    tenant_id: Optional[str] = None
    company_id: Optional[str] = None
    department_id: Optional[str] = None
    owner_id: Optional[str] = None
    site_id: Optional[str] = None
    status: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "TargetOwnership":
        """Read ownership from a camelCase business record."""
        return cls(
            tenant_id=record.get("tenantId"),
            company_id=record.get("companyId"),
            department_id=record.get("departmentId"),
            owner_id=record.get("ownerId") or record.get("personId"),
            site_id=record.get("siteId"),
            status=record.get("status"),
        )


@dataclass(frozen=True)
class PrincipalContext:
    """Who is asking, as seen through one role assignment."""

    person_id: str
    tenant_id: str
    company_id: Optional[str] = None
    department_id: Optional[str] = None
    tenant_unbound: bool = False


@dataclass(frozen=True)
class AuthorizationRequest:
    """Normalized authorization request.

    ``company_id``/``department_id`` describe the principal's working context:
    they narrow which assignments apply to a basic check and stand in for the
    principal's company/department when an assignment is not narrowed itself.
    """

    principal_id: str
    tenant_id: str
    resource: Optional[str] = None
    action: Optional[str] = None
    permission: Optional[str] = None
    target: Optional[TargetOwnership] = None
    requested_fields: Optional[Tuple[str, ...]] = None
    company_id: Optional[str] = None
    department_id: Optional[str] = None

    def __post_init__(self):
        if not self.principal_id:
            raise ValidationError("Authorization request requires a principal_id")
        if not self.tenant_id:
            raise ValidationError("Authorization request requires a tenant_id")
        if not self.permission and not (self.resource and self.action):
            raise ValidationError("Authorization request requires a permission or a resource and action")
        if self.requested_fields is not None:
            object.__setattr__(self, 'requested_fields', tuple(self.requested_fields))

    @property
    def permission_id(self) -> str:
        return self.permission or f"{self.resource}.{self.action}"


@dataclass(frozen=True)
class AuthorizationDecision:
    """Outcome of an authorization check or role mutation.

    Denials are values, not exceptions. ``deny_reason`` is for logs and audit
    only; callers show ``public_message`` to end users.
    """

    allowed: bool
    deny_reason: Optional[DenyReason] = None
    matched_scope: Optional[PermissionScope] = None
    visible_fields: Optional[Tuple[str, ...]] = None
    assignment_ids: Tuple[str, ...] = ()
    resource: Optional[str] = None

    def __post_init__(self):
        if self.allowed and self.deny_reason is not None:
            raise ValidationError("An allowed decision cannot carry a deny reason")
        if not self.allowed and self.deny_reason is None:
            raise ValidationError("A denied decision requires a deny reason")
        object.__setattr__(self, 'assignment_ids', tuple(self.assignment_ids))

    @classmethod
    def allow(
        cls,
        matched_scope: Optional[PermissionScope] = None,
        visible_fields: Optional[Tuple[str, ...]] = None,
        assignment_ids: Tuple[str, ...] = (),
        resource: Optional[str] = None,
    ) -> "AuthorizationDecision":
        return cls(
            allowed=True,
            matched_scope=matched_scope,
            visible_fields=visible_fields,
            assignment_ids=assignment_ids,
            resource=resource,
        )

    @classmethod
    def deny(
        cls,
        reason: DenyReason,
        resource: Optional[str] = None,
        assignment_ids: Tuple[str, ...] = (),
    ) -> "AuthorizationDecision":
        return cls(allowed=False, deny_reason=reason, resource=resource, assignment_ids=assignment_ids)

    @property
    def public_message(self) -> Optional[str]:
        return None if self.allowed else GENERIC_DENY_MESSAGE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "deny_reason": self.deny_reason.value if self.deny_reason else None,
            "matched_scope": self.matched_scope.value if self.matched_scope else None,
            "visible_fields": list(self.visible_fields) if self.visible_fields is not None else None,
            "assignment_ids": list(self.assignment_ids),
            "resource": self.resource,
        }
