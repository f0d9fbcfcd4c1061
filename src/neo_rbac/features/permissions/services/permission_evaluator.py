"""Permission evaluation.

Resolves basic permission checks (catalog defaults merged with per-assignment
overlays) and advanced checks (resource, action, scope, site access and
conditions) for one principal in one tenant.

Basic merge per assignment::

    effective = (role defaults | granted overlay) - denied overlay

A basic permission holds if any applicable assignment's effective set
contains it. Advanced checks pick the broadest matching scope; candidates
tied at that scope have their visible fields unioned.
"""

import logging
from datetime import datetime
from typing import Awaitable, Callable, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple, TypeVar

from ....config.constants import DENY_REASON_PRECEDENCE, DenyReason
from ....core.exceptions import DependencyUnavailableError, NeoRbacError, ValidationError
from ....utils.datetime import utc_now
from ..entities.authorization import AuthorizationDecision, AuthorizationRequest, PrincipalContext, TargetOwnership
from ..entities.permission_catalog import DEFAULT_PERMISSION_CATALOG, PermissionCatalog
from ..entities.permission_grant import AdvancedPermission
from ..entities.protocols import AssignmentCache, RoleStore
from ..entities.resource_fields import ResourceFieldSpec
from ..entities.role_assignment import RoleAssignment
from ..entities.role_catalog import DEFAULT_ROLE_CATALOG, RoleCatalog
from ..entities.role_type import RoleType
from .condition_evaluator import ConditionEvaluator
from .hierarchy_resolver import RoleHierarchyResolver
from .scope_resolver import ScopeResolver


logger = logging.getLogger(__name__)

T = TypeVar("T")

Candidate = Tuple[RoleAssignment, AdvancedPermission]


async def guarded_store_call(operation: str, awaitable: Awaitable[T]) -> T:
    """Await a store call, turning unexpected failures into DependencyUnavailableError."""
    try:
        return await awaitable
    except NeoRbacError:
        raise
    except Exception as e:
        logger.error(f"Role store operation {operation} failed: {e}")
        raise DependencyUnavailableError(
            f"Role store unavailable during {operation}", operation=operation
        ) from e


class PermissionEvaluator:
    """Decision core for basic and advanced permission checks."""

    def __init__(
        self,
        role_store: RoleStore,
        role_catalog: RoleCatalog = DEFAULT_ROLE_CATALOG,
        permission_catalog: PermissionCatalog = DEFAULT_PERMISSION_CATALOG,
        assignment_cache: Optional[AssignmentCache] = None,
        scope_resolver: Optional[ScopeResolver] = None,
        condition_evaluator: Optional[ConditionEvaluator] = None,
        hierarchy_resolver: Optional[RoleHierarchyResolver] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.role_store = role_store
        self.role_catalog = role_catalog
        self.permission_catalog = permission_catalog
        self.assignment_cache = assignment_cache
        self.scope_resolver = scope_resolver or ScopeResolver()
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()
        self.hierarchy_resolver = hierarchy_resolver or RoleHierarchyResolver(role_catalog)
        self.clock = clock

    # Loading

    async def load_assignments(self, person_id: str, tenant_id: str) -> List[RoleAssignment]:
        """Effective assignments of a person in a tenant, cache first."""
        now = self.clock()
        assignments = None
        if self.assignment_cache is not None:
            assignments = await self.assignment_cache.get_assignments(tenant_id, person_id)

        if assignments is None:
            assignments = await guarded_store_call(
                "find_active_assignments",
                self.role_store.find_active_assignments(person_id, tenant_id, now)
            )
            if self.assignment_cache is not None:
                await self.assignment_cache.set_assignments(tenant_id, person_id, assignments)

        # The store is trusted to scope by tenant, the engine re-checks anyway
        return [
            a for a in assignments
            if a.tenant_id == tenant_id and a.person_id == person_id and a.is_effective(now)
        ]

    async def load_advanced_permissions(
        self,
        person_id: str,
        tenant_id: str,
        assignments: Sequence[RoleAssignment]
    ) -> List[AdvancedPermission]:
        if not assignments:
            return []

        permissions = None
        if self.assignment_cache is not None:
            permissions = await self.assignment_cache.get_advanced_permissions(tenant_id, person_id)

        if permissions is None:
            permissions = await guarded_store_call(
                "find_advanced_permissions",
                self.role_store.find_advanced_permissions(tenant_id, [a.id for a in assignments])
            )
            if self.assignment_cache is not None:
                await self.assignment_cache.set_advanced_permissions(tenant_id, person_id, permissions)

        assignment_ids = {a.id for a in assignments}
        return [p for p in permissions if p.assignment_id in assignment_ids]

    # Basic permissions

    def effective_permissions_for(self, assignment: RoleAssignment) -> FrozenSet[str]:
        """(defaults | granted) - denied for one assignment."""
        role_type = self.role_catalog.get(assignment.role_type)
        return (role_type.default_permissions | assignment.granted_overlay()) - assignment.denied_overlay()

    async def effective_permissions(
        self,
        person_id: str,
        tenant_id: str,
        company_id: Optional[str] = None,
        department_id: Optional[str] = None
    ) -> FrozenSet[str]:
        assignments = await self.load_assignments(person_id, tenant_id)
        return self.merge_effective_permissions(assignments, company_id, department_id)

    def merge_effective_permissions(
        self,
        assignments: Iterable[RoleAssignment],
        company_id: Optional[str] = None,
        department_id: Optional[str] = None
    ) -> FrozenSet[str]:
        """Union of the effective sets of the assignments admitted by the context."""
        merged: Set[str] = set()
        for assignment in assignments:
            if assignment.applies_to(company_id, department_id):
                merged |= self.effective_permissions_for(assignment)
        return frozenset(merged)

    async def has_permission(
        self,
        person_id: str,
        permission: str,
        tenant_id: str,
        company_id: Optional[str] = None,
        department_id: Optional[str] = None
    ) -> bool:
        self.permission_catalog.get(permission)
        return permission in await self.effective_permissions(person_id, tenant_id, company_id, department_id)

    async def has_any_permission(self, person_id: str, permissions: Sequence[str], tenant_id: str) -> bool:
        required = self.permission_catalog.validate(permissions)
        return bool(required & await self.effective_permissions(person_id, tenant_id))

    async def has_all_permissions(self, person_id: str, permissions: Sequence[str], tenant_id: str) -> bool:
        required = self.permission_catalog.validate(permissions)
        return required <= await self.effective_permissions(person_id, tenant_id)

    async def has_advanced_permission(
        self,
        person_id: str,
        resource: str,
        action: str,
        tenant_id: str,
        target: Optional[TargetOwnership] = None,
        company_id: Optional[str] = None,
        department_id: Optional[str] = None
    ) -> bool:
        decision = await self.evaluate_advanced(AuthorizationRequest(
            principal_id=person_id,
            tenant_id=tenant_id,
            resource=resource,
            action=action,
            target=target,
            company_id=company_id,
            department_id=department_id,
        ))
        return decision.allowed

    # Roles

    async def has_role(self, person_id: str, tenant_id: str, role_type: str) -> bool:
        self.role_catalog.get(role_type)
        return any(a.role_type == role_type for a in await self.load_assignments(person_id, tenant_id))

    async def highest_role(self, person_id: str, tenant_id: str) -> RoleType:
        return self.hierarchy_resolver.highest_role(await self.load_assignments(person_id, tenant_id))

    async def primary_assignment(self, person_id: str, tenant_id: str) -> Optional[RoleAssignment]:
        """The assignment flagged primary, else the one carrying the highest role."""
        assignments = await self.load_assignments(person_id, tenant_id)
        if not assignments:
            return None
        primaries = sorted((a for a in assignments if a.is_primary), key=lambda a: a.id)
        if primaries:
            return primaries[0]
        highest = self.hierarchy_resolver.highest_role(assignments)
        return min((a for a in assignments if a.role_type == highest.code), key=lambda a: a.id)

    # Decisions

    async def evaluate_permission(self, request: AuthorizationRequest) -> AuthorizationDecision:
        """Basic permission check producing a decision."""
        permission = request.permission_id
        self.permission_catalog.get(permission)

        assignments = await self.load_assignments(request.principal_id, request.tenant_id)
        target = request.target
        if target is not None and target.tenant_id not in (None, request.tenant_id) \
                and not self._is_tenant_unbound(assignments):
            return self._deny(request, DenyReason.TENANT_MISMATCH, permission)

        granting = [
            a for a in assignments
            if a.applies_to(request.company_id, request.department_id)
            and permission in self.effective_permissions_for(a)
        ]
        if not granting:
            return self._deny(request, DenyReason.NO_MATCHING_PERMISSION, permission)

        scope = max(
            (self.role_catalog.get(a.role_type).default_scope for a in granting),
            key=lambda s: s.breadth
        )
        return AuthorizationDecision.allow(
            matched_scope=scope,
            assignment_ids=tuple(sorted(a.id for a in granting)),
            resource=request.resource,
        )

    async def evaluate_advanced(self, request: AuthorizationRequest) -> AuthorizationDecision:
        """Advanced (resource, action, scope, conditions) check producing a decision."""
        if not request.resource or not request.action:
            raise ValidationError("Advanced permission checks require a resource and an action")
        spec = self.permission_catalog.resource_spec(request.resource)

        assignments = await self.load_assignments(request.principal_id, request.tenant_id)
        if not assignments:
            return self._deny(request, DenyReason.NO_MATCHING_PERMISSION, request.permission_id)

        by_id = {a.id: a for a in assignments}
        advanced = await self.load_advanced_permissions(request.principal_id, request.tenant_id, assignments)
        candidates = [
            (by_id[p.assignment_id], p) for p in advanced
            if p.matches(request.resource, request.action)
        ]

        failures: Set[DenyReason] = set()
        matches = self._match(candidates, request, failures)
        if not matches:
            matches = self._match(self._fallback_candidates(assignments, request), request, failures)

        if not matches:
            reason = next((r for r in DENY_REASON_PRECEDENCE if r in failures), DenyReason.NO_MATCHING_PERMISSION)
            return self._deny(request, reason, request.permission_id)

        return self._decide(matches, request, spec)

    def _fallback_candidates(self, assignments: Sequence[RoleAssignment], request: AuthorizationRequest) -> List[Candidate]:
        """Basic ``resource.action`` grants act as advanced grants under the role's default scope."""
        permission = f"{request.resource}.{request.action}"
        if not self.permission_catalog.contains(permission):
            return []
        return [
            (a, AdvancedPermission(
                resource=request.resource,
                action=request.action,
                scope=self.role_catalog.get(a.role_type).default_scope,
                assignment_id=a.id,
            ))
            for a in assignments
            if a.applies_to(request.company_id, request.department_id)
            and permission in self.effective_permissions_for(a)
        ]

    def _match(self, candidates: Sequence[Candidate], request: AuthorizationRequest, failures: Set[DenyReason]) -> List[Candidate]:
        matches = []
        for assignment, permission in candidates:
            reason = self._check_candidate(assignment, permission, request)
            if reason is None:
                matches.append((assignment, permission))
            else:
                failures.add(reason)
        return matches

    def _check_candidate(
        self,
        assignment: RoleAssignment,
        permission: AdvancedPermission,
        request: AuthorizationRequest
    ) -> Optional[DenyReason]:
        principal = self._principal_for(assignment, request)
        target = request.target

        if not self.scope_resolver.tenant_matches(permission.scope, principal, target):
            return DenyReason.TENANT_MISMATCH
        if target is None:
            # No record yet: the caller applies matched_scope to its query
            return None
        if permission.restricts_sites() and target.site_id not in permission.site_access:
            return DenyReason.SITE_NOT_AUTHORIZED
        if not self.scope_resolver.contains(permission.scope, principal, target):
            return DenyReason.SCOPE_NOT_CONTAINED
        if not self.condition_evaluator.evaluate(permission.conditions, principal, target):
            return DenyReason.CONDITION_NOT_MET
        return None

    def _decide(self, matches: Sequence[Candidate], request: AuthorizationRequest, spec: ResourceFieldSpec) -> AuthorizationDecision:
        broadest = max(p.scope.breadth for _, p in matches)
        winners = [(a, p) for a, p in matches if p.scope.breadth == broadest]

        fields: Set[str] = {spec.identifier_field}
        for _, permission in winners:
            fields.update(permission.allowed_fields or spec.non_sensitive_fields)

        visible = self._order_fields(fields, spec)
        if request.requested_fields is not None:
            requested = set(request.requested_fields) | {spec.identifier_field}
            visible = tuple(f for f in visible if f in requested)

        return AuthorizationDecision.allow(
            matched_scope=winners[0][1].scope,
            visible_fields=visible,
            assignment_ids=tuple(sorted({a.id for a, _ in winners})),
            resource=request.resource,
        )

    def _principal_for(self, assignment: RoleAssignment, request: AuthorizationRequest) -> PrincipalContext:
        return PrincipalContext(
            person_id=request.principal_id,
            tenant_id=request.tenant_id,
            company_id=assignment.company_id or request.company_id,
            department_id=assignment.department_id or request.department_id,
            tenant_unbound=self.role_catalog.get(assignment.role_type).tenant_unbound,
        )

    def _is_tenant_unbound(self, assignments: Iterable[RoleAssignment]) -> bool:
        return any(self.role_catalog.get(a.role_type).tenant_unbound for a in assignments)

    @staticmethod
    def _order_fields(fields: Set[str], spec: ResourceFieldSpec) -> Tuple[str, ...]:
        declared = [f for f in spec.field_names if f in fields]
        extra = sorted(fields - set(declared))
        return tuple(declared + extra)

    @staticmethod
    def _deny(request: AuthorizationRequest, reason: DenyReason, permission: str) -> AuthorizationDecision:
        logger.info(
            f"Denied {permission} for person {request.principal_id} in tenant {request.tenant_id}: {reason.value}"
        )
        return AuthorizationDecision.deny(reason, resource=request.resource)
