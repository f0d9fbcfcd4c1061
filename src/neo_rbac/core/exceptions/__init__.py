"""Exception hierarchy for neo-rbac."""

from .base import ConfigurationError, NeoRbacError, ValidationError, create_error_response
from .catalog import (
    CatalogError,
    InvalidConditionError,
    InvalidHierarchyLevelError,
    InvalidScopeError,
    UnknownPermissionError,
    UnknownResourceError,
    UnknownRoleTypeError,
)
from .infrastructure import DatabaseError, DependencyUnavailableError, DuplicateAssignmentError

__all__ = [
    # Base
    "NeoRbacError",
    "ValidationError",
    "ConfigurationError",
    "create_error_response",

    # Catalog
    "CatalogError",
    "UnknownRoleTypeError",
    "UnknownPermissionError",
    "UnknownResourceError",
    "InvalidScopeError",
    "InvalidConditionError",
    "InvalidHierarchyLevelError",

    # Infrastructure
    "DependencyUnavailableError",
    "DatabaseError",
    "DuplicateAssignmentError",
]
