"""Catalog and input exceptions.

These signal a catalog/configuration mismatch or a data-integrity defect and
are raised eagerly instead of being turned into deny decisions.
"""

from typing import Iterable

from .base import NeoRbacError, ValidationError


class CatalogError(NeoRbacError):
    """Base exception for catalog lookups that fail."""


class UnknownRoleTypeError(CatalogError):
    """Raised when a role type is not registered in the role catalog."""

    def __init__(self, role_type: str):
        super().__init__(
            f"Unknown role type: {role_type}",
            details={"role_type": role_type}
        )
        self.role_type = role_type


class UnknownPermissionError(CatalogError):
    """Raised when one or more permission identifiers are not registered."""

    def __init__(self, permissions: Iterable[str]):
        self.permissions = sorted(set(permissions))
        super().__init__(
            f"Unknown permission(s): {', '.join(self.permissions)}",
            details={"permissions": self.permissions}
        )


class UnknownResourceError(CatalogError):
    """Raised when a resource has no field specification."""

    def __init__(self, resource: str):
        super().__init__(
            f"Unknown resource: {resource}",
            details={"resource": resource}
        )
        self.resource = resource


class InvalidScopeError(CatalogError):
    """Raised for a scope value outside the closed scope vocabulary."""

    def __init__(self, scope: object):
        super().__init__(
            f"Invalid permission scope: {scope!r}",
            details={"scope": str(scope)}
        )


class InvalidConditionError(CatalogError):
    """Raised for an unknown condition key or an unsupported condition value."""

    def __init__(self, key: str, value: object, reason: str):
        super().__init__(
            f"Invalid condition {key}={value!r}: {reason}",
            details={"key": key, "value": str(value)}
        )


class InvalidHierarchyLevelError(ValidationError):
    """Raised when a hierarchy move targets a level outside the movable range."""

    def __init__(self, level: int, min_level: int, max_level: int):
        super().__init__(
            f"Hierarchy level {level} is outside the movable range {min_level}-{max_level}",
            details={"level": level, "min_level": min_level, "max_level": max_level}
        )
