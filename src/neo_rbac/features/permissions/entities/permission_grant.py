"""Permission grants and advanced permissions attached to role assignments."""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from ....config.constants import PermissionScope
from ....core.exceptions import ValidationError
from ....utils.datetime import parse_iso8601
from .conditions import Condition, conditions_to_dict, normalize_conditions
from .role_type import coerce_scope

# Wildcard entry; resolves to the resource's non-sensitive fields, never to sensitive ones
ALL_FIELDS = "*"


def _parse_datetime(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return parse_iso8601(value)


@dataclass(frozen=True)
class PermissionGrant:
    """Basic permission overlay entry.

    ``is_granted=False`` is an explicit deny that removes a catalog default;
    ``is_granted=True`` adds a permission the role does not grant by default.
    """

    permission: str
    is_granted: bool = True
    granted_by: Optional[str] = None
    granted_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.permission:
            raise ValidationError("Permission grant requires a permission identifier")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "permission": self.permission,
            "is_granted": self.is_granted,
            "granted_by": self.granted_by,
            "granted_at": self.granted_at.isoformat() if self.granted_at else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PermissionGrant":
        return cls(
            permission=data["permission"],
            is_granted=bool(data.get("is_granted", True)),
            granted_by=data.get("granted_by"),
            granted_at=_parse_datetime(data.get("granted_at")),
        )


def grants_from_mapping(
    custom_permissions: Mapping[str, bool],
    granted_by: Optional[str] = None,
    granted_at: Optional[datetime] = None,
) -> Tuple[PermissionGrant, ...]:
    """Build an overlay from a ``{permission: is_granted}`` mapping."""
    return tuple(
        PermissionGrant(permission=code, is_granted=bool(is_granted), granted_by=granted_by, granted_at=granted_at)
        for code, is_granted in sorted(custom_permissions.items())
    )


@dataclass(frozen=True)
class AdvancedPermission:
    """Fine-grained (resource, action, scope, conditions) rule of an assignment.

    ``allowed_fields`` of None, empty or ``("*",)`` means "all non-sensitive fields".
    An empty ``site_access`` means no site restriction.
    """

    resource: str
    action: str
    scope: PermissionScope
    assignment_id: Optional[str] = None
    id: Optional[str] = None
    site_access: FrozenSet[str] = frozenset()
    allowed_fields: Optional[Tuple[str, ...]] = None
    conditions: Tuple[Condition, ...] = ()

    def __post_init__(self):
        if not self.resource or not self.action:
            raise ValidationError("Advanced permission requires resource and action")

        object.__setattr__(self, 'scope', coerce_scope(self.scope))
        object.__setattr__(self, 'site_access', frozenset(self.site_access or ()))
        object.__setattr__(self, 'conditions', normalize_conditions(self.conditions))

        if self.allowed_fields and ALL_FIELDS in self.allowed_fields:
            if len(set(self.allowed_fields)) > 1:
                raise ValidationError(f"'{ALL_FIELDS}' cannot be combined with named fields")
            object.__setattr__(self, 'allowed_fields', None)
        elif self.allowed_fields:
            # Ordered set: keep first occurrence
            object.__setattr__(self, 'allowed_fields', tuple(dict.fromkeys(self.allowed_fields)))
        else:
            object.__setattr__(self, 'allowed_fields', None)

    @property
    def permission_id(self) -> str:
        return f"{self.resource}.{self.action}"

    def matches(self, resource: str, action: str) -> bool:
        return self.resource == resource and self.action == action

    def restricts_sites(self) -> bool:
        return bool(self.site_access)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "assignment_id": self.assignment_id,
            "resource": self.resource,
            "action": self.action,
            "scope": self.scope.value,
            "site_access": sorted(self.site_access),
            "allowed_fields": list(self.allowed_fields) if self.allowed_fields else None,
            "conditions": conditions_to_dict(self.conditions),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AdvancedPermission":
        return cls(
            id=data.get("id"),
            assignment_id=data.get("assignment_id"),
            resource=data["resource"],
            action=data["action"],
            scope=data["scope"],
            site_access=frozenset(data.get("site_access") or ()),
            allowed_fields=tuple(data["allowed_fields"]) if data.get("allowed_fields") else None,
            conditions=data.get("conditions") or {},
        )


def bind_advanced_permissions(
    permissions: Iterable[AdvancedPermission],
    assignment_id: str,
) -> Tuple[AdvancedPermission, ...]:
    """Attach advanced permissions to an assignment id."""
    return tuple(replace(p, assignment_id=assignment_id) for p in permissions)
