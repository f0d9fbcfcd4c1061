"""Permission entities package.

Catalogs, domain entities, authorization value objects and protocols.
"""

from .authorization import AuthorizationDecision, AuthorizationRequest, PrincipalContext, TargetOwnership
from .conditions import Condition, conditions_to_dict, parse_conditions
from .permission_catalog import DEFAULT_PERMISSION_CATALOG, PermissionCatalog, PermissionDefinition
from .permission_grant import AdvancedPermission, PermissionGrant, bind_advanced_permissions, grants_from_mapping
from .protocols import AssignmentCache, RoleStore
from .resource_fields import DEFAULT_RESOURCE_SPECS, FieldSpec, ResourceFieldSpec
from .role_assignment import RoleAssignment
from .role_catalog import DEFAULT_ROLE_CATALOG, RoleCatalog
from .role_type import NO_ROLE, RoleType

__all__ = [
    # Catalogs
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

    # Domain entities
    "RoleAssignment",
    "PermissionGrant",
    "AdvancedPermission",
    "Condition",
    "parse_conditions",
    "conditions_to_dict",
    "grants_from_mapping",
    "bind_advanced_permissions",

    # Authorization value objects
    "AuthorizationRequest",
    "AuthorizationDecision",
    "PrincipalContext",
    "TargetOwnership",

    # Protocols
    "RoleStore",
    "AssignmentCache",
]
