"""Neo-RBAC - Role hierarchy and permission evaluation engine for multi-tenant platforms.

Decides what a person may do inside one tenant: a numeric role hierarchy
governs who may assign whom, basic permission overlays and advanced
(resource, action, scope) grants govern what a role may do, and field-level
visibility governs which attributes of a record are returned.

Logging is configured by the host application; call ``setup_logging()`` to
use the bundled configuration.
"""

from .__version__ import __version__

from .config import (
    AuditEventType,
    AuditOutcome,
    DenyReason,
    PermissionScope,
    RbacSettings,
    get_settings,
    setup_logging,
)

from .core.exceptions import (
    NeoRbacError,
    ValidationError,
    ConfigurationError,
    CatalogError,
    UnknownRoleTypeError,
    UnknownPermissionError,
    UnknownResourceError,
    InvalidScopeError,
    InvalidConditionError,
    InvalidHierarchyLevelError,
    DependencyUnavailableError,
    DatabaseError,
    DuplicateAssignmentError,
    create_error_response,
)

from .features.audit import AuditEmitter, AuditEvent, LoggingAuditEmitter

from .features.permissions import (
    DEFAULT_PERMISSION_CATALOG,
    DEFAULT_ROLE_CATALOG,
    NO_ROLE,
    AdvancedPermission,
    AsyncPGRoleStore,
    AuthorizationDecision,
    AuthorizationDependencies,
    AuthorizationEngine,
    AuthorizationRequest,
    InMemoryRoleStore,
    PermissionCatalog,
    PrincipalContext,
    RedisAssignmentCache,
    RoleAssignment,
    RoleCatalog,
    RoleType,
    TargetOwnership,
)

__all__ = [
    "__version__",

    # Configuration
    "AuditEventType",
    "AuditOutcome",
    "DenyReason",
    "PermissionScope",
    "RbacSettings",
    "get_settings",
    "setup_logging",

    # Exceptions
    "NeoRbacError",
    "ValidationError",
    "ConfigurationError",
    "CatalogError",
    "UnknownRoleTypeError",
    "UnknownPermissionError",
    "UnknownResourceError",
    "InvalidScopeError",
    "InvalidConditionError",
    "InvalidHierarchyLevelError",
    "DependencyUnavailableError",
    "DatabaseError",
    "DuplicateAssignmentError",
    "create_error_response",

    # Audit
    "AuditEmitter",
    "AuditEvent",
    "LoggingAuditEmitter",

    # Engine
    "AuthorizationEngine",
    "AuthorizationDependencies",
    "AuthorizationRequest",
    "AuthorizationDecision",
    "PrincipalContext",
    "TargetOwnership",

    # Catalogs and entities
    "PermissionCatalog",
    "RoleCatalog",
    "RoleType",
    "NO_ROLE",
    "DEFAULT_PERMISSION_CATALOG",
    "DEFAULT_ROLE_CATALOG",
    "RoleAssignment",
    "AdvancedPermission",

    # Stores
    "AsyncPGRoleStore",
    "InMemoryRoleStore",
    "RedisAssignmentCache",
]
