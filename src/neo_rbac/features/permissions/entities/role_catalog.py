"""Role catalog.

Frozen registry of role types keyed by code. The default catalog is built at
import time and its default permission sets are validated against the default
permission catalog, so a mismatch fails the import instead of a request.
"""

from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple

from ....config.constants import PermissionScope
from ....core.exceptions import UnknownRoleTypeError, ValidationError
from .permission_catalog import DEFAULT_PERMISSION_CATALOG, PermissionCatalog
from .role_type import NO_ROLE_CODE, RoleType, role


class RoleCatalog:
    """Immutable table of role types."""

    def __init__(
        self,
        role_types: Iterable[RoleType],
        permission_catalog: Optional[PermissionCatalog] = None
    ):
        roles: Dict[str, RoleType] = {}
        for role_type in role_types:
            if role_type.is_sentinel:
                raise ValidationError(f"{NO_ROLE_CODE} is reserved and cannot be registered")
            if role_type.code in roles:
                raise ValidationError(f"Duplicate role type: {role_type.code}")
            roles[role_type.code] = role_type

        self._roles: Mapping[str, RoleType] = MappingProxyType(roles)
        self._permission_catalog = permission_catalog

        if permission_catalog is not None:
            for role_type in roles.values():
                permission_catalog.validate(role_type.default_permissions)

    def get(self, code: str) -> RoleType:
        try:
            return self._roles[code]
        except KeyError:
            raise UnknownRoleTypeError(code) from None

    def contains(self, code: str) -> bool:
        return code in self._roles

    def level_of(self, code: str) -> int:
        return self.get(code).level

    def roles_at_level(self, level: int) -> Tuple[RoleType, ...]:
        return tuple(r for r in self.all_role_types() if r.level == level)

    def all_role_types(self) -> Tuple[RoleType, ...]:
        """All role types ordered by level, then code."""
        return tuple(sorted(self._roles.values(), key=lambda r: (r.level, r.code)))

    def with_levels(self, overrides: Mapping[str, int]) -> "RoleCatalog":
        """Return a new catalog with the given role levels replaced."""
        if not overrides:
            return self
        for code in overrides:
            self.get(code)
        return RoleCatalog(
            (r.with_level(overrides[r.code]) if r.code in overrides else r for r in self._roles.values()),
            permission_catalog=None,
        )

    def __len__(self) -> int:
        return len(self._roles)

    def __contains__(self, code: object) -> bool:
        return code in self._roles

    def __iter__(self):
        return iter(self.all_role_types())


_ALL = DEFAULT_PERMISSION_CATALOG.permission_ids

_ADMIN_PERMISSIONS = _ALL - {"system.backup", "system.billing", "TENANT_MANAGEMENT"}

_COMPANY_ADMIN_PERMISSIONS = {
    "users.create", "users.read", "users.update", "users.manage_roles",
    "roles.read", "roles.assign",
    "companies.read", "companies.update", "companies.manage_settings",
    "persons.create", "persons.read", "persons.update", "persons.delete", "persons.export",
    "employees.create", "employees.read", "employees.update", "employees.delete",
    "trainers.read", "courses.read", "training.read",
    "documents.create", "documents.read", "documents.update", "documents.delete", "documents.download",
    "sites.create", "sites.read", "sites.update", "sites.delete",
    "departments.create", "departments.read", "departments.update", "departments.delete",
    "reports.view", "reports.export", "analytics.view", "hierarchy.read",
    "USER_MANAGEMENT", "ROLE_MANAGEMENT", "ADMIN_PANEL", "VIEW_FORM_TEMPLATES", "VIEW_FORM_SUBMISSIONS",
}

DEFAULT_ROLE_TYPES: Tuple[RoleType, ...] = (
    # Level 0: the single tenant-unbound tier
    role("SUPER_ADMIN", 0, PermissionScope.GLOBAL, _ALL, tenant_unbound=True),

    # Level 1: tenant administration
    role("ADMIN", 1, PermissionScope.TENANT, _ADMIN_PERMISSIONS),
    role("TENANT_ADMIN", 1, PermissionScope.TENANT, _ADMIN_PERMISSIONS | {"TENANT_MANAGEMENT"}),

    # Level 2: company-wide administration
    role("COMPANY_ADMIN", 2, PermissionScope.COMPANY, _COMPANY_ADMIN_PERMISSIONS),
    role("TRAINING_ADMIN", 2, PermissionScope.COMPANY, {
        "courses.create", "courses.read", "courses.update", "courses.delete", "courses.assign",
        "training.create", "training.read", "training.update", "training.delete", "training.conduct",
        "trainers.create", "trainers.read", "trainers.update", "trainers.delete",
        "persons.read", "companies.read", "documents.create", "documents.read",
        "reports.view", "roles.read", "ADMIN_PANEL", "VIEW_FORM_TEMPLATES", "MANAGE_FORM_TEMPLATES",
    }),
    role("CLINIC_ADMIN", 2, PermissionScope.COMPANY, {
        "persons.create", "persons.read", "persons.update", "persons.delete",
        "companies.read", "documents.create", "documents.read", "documents.update",
        "documents.delete", "documents.download", "gdpr.read", "reports.view", "roles.read",
        "ADMIN_PANEL",
    }),

    # Level 3: management
    role("HR_MANAGER", 3, PermissionScope.COMPANY, {
        "persons.create", "persons.read", "persons.update", "persons.delete",
        "employees.create", "employees.read", "employees.update", "employees.delete",
        "users.read", "roles.read", "companies.read", "departments.read",
        "reports.view", "gdpr.read",
    }),
    role("MANAGER", 3, PermissionScope.COMPANY, {
        "users.read", "persons.read", "employees.read", "employees.update",
        "companies.read", "courses.read", "training.read", "sites.read", "departments.read",
        "reports.view", "analytics.view", "roles.read",
    }),
    role("DEPARTMENT_HEAD", 3, PermissionScope.DEPARTMENT, {
        "persons.read", "employees.read", "employees.update",
        "departments.read", "departments.update", "training.read", "reports.view", "roles.read",
    }),

    # Level 4: training delivery and supervision
    role("TRAINER_COORDINATOR", 4, PermissionScope.COMPANY, {
        "courses.read", "courses.update", "courses.assign",
        "training.create", "training.read", "training.update", "training.delete", "training.conduct",
        "trainers.read", "trainers.update", "persons.read",
    }),
    role("SENIOR_TRAINER", 4, PermissionScope.COMPANY, {
        "courses.read", "courses.update", "training.create", "training.read",
        "training.update", "training.conduct", "persons.read", "documents.read",
    }),
    role("TRAINER", 4, PermissionScope.DEPARTMENT, {
        "courses.read", "training.read", "training.conduct", "persons.read", "documents.read",
    }),
    role("SUPERVISOR", 4, PermissionScope.DEPARTMENT, {
        "persons.read", "employees.read", "training.read", "reports.view",
    }),
    role("AUDITOR", 4, PermissionScope.COMPANY, {
        "reports.view", "reports.export", "analytics.view", "system.audit",
        "companies.read", "persons.read", "documents.read",
    }),

    # Level 5: operational roles
    role("EMPLOYEE", 5, PermissionScope.SELF, {
        "courses.read", "training.read", "documents.read", "persons.read",
    }),
    role("EXTERNAL_TRAINER", 5, PermissionScope.SELF, {
        "courses.read", "training.read", "training.conduct",
    }),
    role("COORDINATOR", 5, PermissionScope.DEPARTMENT, {
        "courses.read", "training.read", "training.update", "persons.read",
    }),
    role("OPERATOR", 5, PermissionScope.SELF, {
        "persons.read", "documents.read", "documents.create",
    }),
    role("CONSULTANT", 5, PermissionScope.SELF, {
        "companies.read", "reports.view", "documents.read",
    }),

    # Level 6: read-only access
    role("VIEWER", 6, PermissionScope.SELF, {"courses.read", "reports.view", "companies.read"}),
    role("GUEST", 6, PermissionScope.SELF, {"courses.read", "VIEW_CMS"}),
)


DEFAULT_ROLE_CATALOG = RoleCatalog(DEFAULT_ROLE_TYPES, permission_catalog=DEFAULT_PERMISSION_CATALOG)
