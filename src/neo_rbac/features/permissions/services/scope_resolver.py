"""Scope containment.

Decides whether a target record lies inside a granted data scope:

    global      always
    tenant      target tenant == principal tenant
    company     target company == principal company (principal must have one)
    department  target department == principal department (principal must have one)
    self        target owner == principal

Tenant isolation is checked separately and in addition to containment; only
a tenant-unbound principal holding a global scope may reach another tenant.
"""

from typing import Optional

from ....config.constants import PermissionScope
from ..entities.authorization import PrincipalContext, TargetOwnership
from ..entities.role_type import coerce_scope


class ScopeResolver:
    """Pure scope containment rules."""

    def tenant_matches(
        self,
        scope: PermissionScope,
        principal: PrincipalContext,
        target: Optional[TargetOwnership]
    ) -> bool:
        """A target without a tenant is taken to belong to the request tenant."""
        if target is None or target.tenant_id is None or target.tenant_id == principal.tenant_id:
            return True
        return principal.tenant_unbound and coerce_scope(scope) is PermissionScope.GLOBAL

    def contains(
        self,
        scope: PermissionScope,
        principal: PrincipalContext,
        target: Optional[TargetOwnership]
    ) -> bool:
        scope = coerce_scope(scope)

        if not self.tenant_matches(scope, principal, target):
            return False
        if scope is PermissionScope.GLOBAL:
            return True
        if target is None:
            return False

        if scope is PermissionScope.TENANT:
            return target.tenant_id is None or target.tenant_id == principal.tenant_id
        if scope is PermissionScope.COMPANY:
            return principal.company_id is not None and target.company_id == principal.company_id
        if scope is PermissionScope.DEPARTMENT:
            return principal.department_id is not None and target.department_id == principal.department_id
        return target.owner_id is not None and target.owner_id == principal.person_id
