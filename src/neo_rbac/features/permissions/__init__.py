"""Permissions feature for neo-rbac.

Feature-First layout:
- entities/: role and permission catalogs, assignments, grants, decisions and protocols
- services/: hierarchy, scope, condition and redaction rules plus the AuthorizationEngine
- repositories/: PostgreSQL and in-memory role stores, Redis assignment cache
- dependencies.py: FastAPI route guards
"""

from .dependencies import AuthorizationDependencies, AuthorizationDependencyError
from .entities import (
    DEFAULT_PERMISSION_CATALOG,
    DEFAULT_RESOURCE_SPECS,
    DEFAULT_ROLE_CATALOG,
    NO_ROLE,
    AdvancedPermission,
    AssignmentCache,
    AuthorizationDecision,
    AuthorizationRequest,
    Condition,
    FieldSpec,
    PermissionCatalog,
    PermissionDefinition,
    PermissionGrant,
    PrincipalContext,
    ResourceFieldSpec,
    RoleAssignment,
    RoleCatalog,
    RoleStore,
    RoleType,
    TargetOwnership,
)
from .repositories import AsyncPGRoleStore, InMemoryRoleStore, RedisAssignmentCache
from .services import (
    AuthorizationEngine,
    ConditionEvaluator,
    FieldRedactionFilter,
    PermissionEvaluator,
    RoleHierarchyResolver,
    ScopeResolver,
)

__all__ = [
    # Entities
    "PermissionCatalog",
    "PermissionDefinition",
    "DEFAULT_PERMISSION_CATALOG",
    "ResourceFieldSpec",
    "FieldSpec",
    "DEFAULT_RESOURCE_SPECS",
    "RoleCatalog",
    "RoleType",
    "NO_ROLE",
    "DEFAULT_ROLE_CATALOG",
    "RoleAssignment",
    "PermissionGrant",
    "AdvancedPermission",
    "Condition",
    "AuthorizationRequest",
    "AuthorizationDecision",
    "PrincipalContext",
    "TargetOwnership",

    # Protocols
    "RoleStore",
    "AssignmentCache",

    # Services
    "AuthorizationEngine",
    "PermissionEvaluator",
    "RoleHierarchyResolver",
    "ScopeResolver",
    "ConditionEvaluator",
    "FieldRedactionFilter",

    # Repositories
    "AsyncPGRoleStore",
    "InMemoryRoleStore",
    "RedisAssignmentCache",

    # FastAPI
    "AuthorizationDependencies",
    "AuthorizationDependencyError",
]
