"""Infrastructure exceptions for neo-rbac.

Collaborator failures surface as DependencyUnavailableError so callers can
fail closed ("cannot determine, deny by default").
"""

from typing import Optional

from .base import NeoRbacError


class DependencyUnavailableError(NeoRbacError):
    """Raised when a collaborator the decision depends on cannot be reached."""

    def __init__(self, message: str, dependency: str = "role_store", operation: Optional[str] = None):
        super().__init__(
            message,
            details={"dependency": dependency, "operation": operation}
        )
        self.dependency = dependency
        self.operation = operation


class DatabaseError(DependencyUnavailableError):
    """Raised by the PostgreSQL role store on query or connection failure."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message, dependency="database", operation=operation)


class DuplicateAssignmentError(NeoRbacError):
    """Raised by a role store when an identical active assignment already exists."""

    def __init__(self, person_id: str, tenant_id: str, role_type: str, company_id: Optional[str] = None):
        super().__init__(
            f"Active assignment of {role_type} already exists for person {person_id} in tenant {tenant_id}",
            details={
                "person_id": person_id,
                "tenant_id": tenant_id,
                "role_type": role_type,
                "company_id": company_id,
            }
        )
