"""Role type catalog entry.

A RoleType is defined at build time: its hierarchy level (lower level means
higher privilege), default data scope and default permission set. Role types
are never persisted per tenant; only level overrides produced by hierarchy
moves are.
"""

import re
from dataclasses import dataclass, replace
from typing import FrozenSet, Iterable

from ....config.constants import HierarchyLevels, PermissionScope
from ....core.exceptions import InvalidScopeError, ValidationError


NO_ROLE_CODE = "NO_ROLE"

_ROLE_CODE_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")


def coerce_scope(value) -> PermissionScope:
    """Convert a raw scope value to PermissionScope or raise InvalidScopeError."""
    if isinstance(value, PermissionScope):
        return value
    try:
        return PermissionScope(value)
    except ValueError:
        raise InvalidScopeError(value) from None


@dataclass(frozen=True)
class RoleType:
    """Immutable role catalog entry."""

    code: str
    level: int
    default_scope: PermissionScope
    default_permissions: FrozenSet[str] = frozenset()
    name: str = ""
    tenant_unbound: bool = False

    def __post_init__(self):
        if not _ROLE_CODE_PATTERN.match(self.code or ""):
            raise ValidationError(f"Role code must be uppercase alphanumeric with underscores: {self.code!r}")
        if self.level < 0:
            raise ValidationError(f"Role level must be non-negative, got: {self.level}")

        object.__setattr__(self, 'default_scope', coerce_scope(self.default_scope))
        object.__setattr__(self, 'default_permissions', frozenset(self.default_permissions))
        if not self.name:
            object.__setattr__(self, 'name', self.code.replace("_", " ").title())

    @property
    def is_sentinel(self) -> bool:
        return self.code == NO_ROLE_CODE

    def with_level(self, level: int) -> "RoleType":
        return replace(self, level=level)

    def grants_by_default(self, permission: str) -> bool:
        return permission in self.default_permissions


def role(
    code: str,
    level: int,
    scope: PermissionScope,
    permissions: Iterable[str],
    tenant_unbound: bool = False,
) -> RoleType:
    return RoleType(
        code=code,
        level=level,
        default_scope=scope,
        default_permissions=frozenset(permissions),
        tenant_unbound=tenant_unbound,
    )


# Satisfies no permission check and may assign nothing
NO_ROLE = RoleType(
    code=NO_ROLE_CODE,
    level=HierarchyLevels.NO_ROLE,
    default_scope=PermissionScope.SELF,
    default_permissions=frozenset(),
    name="No role",
)
