"""Authorization engine.

Public entry point of neo-rbac. Orchestrates the hierarchy resolver, the
permission evaluator, the role store, the assignment cache and the audit
emitter:

* checks return an AuthorizationDecision and never raise on denial;
* mutations run the hierarchy check before touching the store, write in a
  single store call, invalidate the target's cached assignments and emit an
  audit event;
* store failures propagate as DependencyUnavailableError (fail closed);
  audit and cache failures are logged and never change a decision.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

from ....config.constants import AuditEventType, AuditOutcome, DenyReason
from ....config.settings import RbacSettings, get_settings
from ....core.exceptions import DuplicateAssignmentError, ValidationError
from ....utils.datetime import ensure_utc, utc_now
from ...audit import AuditEmitter, AuditEvent, LoggingAuditEmitter
from ..entities.authorization import AuthorizationDecision, AuthorizationRequest, TargetOwnership
from ..entities.permission_catalog import DEFAULT_PERMISSION_CATALOG, PermissionCatalog
from ..entities.permission_grant import AdvancedPermission, grants_from_mapping
from ..entities.protocols import AssignmentCache, RoleStore
from ..entities.role_assignment import RoleAssignment
from ..entities.role_catalog import DEFAULT_ROLE_CATALOG, RoleCatalog
from ..entities.role_type import RoleType
from .field_redaction import FieldRedactionFilter
from .hierarchy_resolver import RoleHierarchyResolver
from .permission_evaluator import PermissionEvaluator, guarded_store_call


logger = logging.getLogger(__name__)

MANAGE_ROLES_PERMISSION = "users.manage_roles"


class AuthorizationEngine:
    """Role hierarchy and permission evaluation engine."""

    def __init__(
        self,
        role_store: RoleStore,
        audit_emitter: Optional[AuditEmitter] = None,
        role_catalog: RoleCatalog = DEFAULT_ROLE_CATALOG,
        permission_catalog: PermissionCatalog = DEFAULT_PERMISSION_CATALOG,
        assignment_cache: Optional[AssignmentCache] = None,
        settings: Optional[RbacSettings] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.settings = settings or get_settings()
        self.role_store = role_store
        self.role_catalog = role_catalog
        self.permission_catalog = permission_catalog
        self.assignment_cache = assignment_cache
        self.audit_emitter = audit_emitter if audit_emitter is not None else LoggingAuditEmitter()
        self.clock = clock

        self.hierarchy_resolver = RoleHierarchyResolver(
            role_catalog,
            min_movable_level=self.settings.hierarchy_min_movable_level,
            max_level=self.settings.hierarchy_max_level,
        )
        self.evaluator = PermissionEvaluator(
            role_store,
            role_catalog=role_catalog,
            permission_catalog=permission_catalog,
            assignment_cache=assignment_cache,
            hierarchy_resolver=self.hierarchy_resolver,
            clock=clock,
        )
        self.redaction_filter = FieldRedactionFilter(permission_catalog)

    @classmethod
    def from_settings(
        cls,
        settings: Optional[RbacSettings] = None,
        audit_emitter: Optional[AuditEmitter] = None
    ) -> "AuthorizationEngine":
        """Wire a PostgreSQL store and, when enabled, a Redis cache from settings."""
        from ...database.connection_manager import AsyncConnectionPool
        from ..repositories.redis_assignment_cache import RedisAssignmentCache
        from ..repositories.role_store import AsyncPGRoleStore

        settings = settings or get_settings()
        store = AsyncPGRoleStore(AsyncConnectionPool.from_settings(settings), schema=settings.db_schema)

        cache = None
        if settings.cache_enabled and settings.redis_url:
            cache = RedisAssignmentCache.from_url(
                settings.redis_url,
                key_prefix=settings.cache_key_prefix,
                ttl_seconds=settings.cache_ttl_seconds,
            )
        return cls(store, audit_emitter=audit_emitter, assignment_cache=cache, settings=settings)

    # Checks

    async def check_permission(self, request: AuthorizationRequest) -> AuthorizationDecision:
        """Basic permission check."""
        decision = await self.evaluator.evaluate_permission(request)
        if self.settings.audit_decisions:
            await self._emit_decision(AuditEventType.PERMISSION_CHECK, request, decision)
        return decision

    async def check_advanced_permission(self, request: AuthorizationRequest) -> AuthorizationDecision:
        """Resource/action check with scope, site access, conditions and visible fields."""
        decision = await self.evaluator.evaluate_advanced(request)
        if self.settings.audit_decisions:
            await self._emit_decision(AuditEventType.ADVANCED_PERMISSION_CHECK, request, decision)
        return decision

    async def has_permission(self, person_id: str, permission: str, tenant_id: str) -> bool:
        return await self.evaluator.has_permission(person_id, permission, tenant_id)

    async def has_advanced_permission(
        self,
        person_id: str,
        resource: str,
        action: str,
        tenant_id: str,
        target: Optional[TargetOwnership] = None
    ) -> bool:
        return await self.evaluator.has_advanced_permission(person_id, resource, action, tenant_id, target=target)

    async def get_effective_permissions(
        self,
        person_id: str,
        tenant_id: str,
        company_id: Optional[str] = None,
        department_id: Optional[str] = None
    ) -> FrozenSet[str]:
        return await self.evaluator.effective_permissions(person_id, tenant_id, company_id, department_id)

    async def get_highest_role(self, person_id: str, tenant_id: str) -> RoleType:
        resolver = await self._resolver_for(tenant_id)
        return resolver.highest_role(await self.evaluator.load_assignments(person_id, tenant_id))

    async def get_assignable_roles(self, person_id: str, tenant_id: str) -> Tuple[RoleType, ...]:
        resolver = await self._resolver_for(tenant_id)
        highest = resolver.highest_role(await self.evaluator.load_assignments(person_id, tenant_id))
        return resolver.assignable_roles(highest)

    async def can_manage_hierarchy(self, person_id: str, tenant_id: str) -> bool:
        resolver = await self._resolver_for(tenant_id)
        return resolver.can_manage_hierarchy(
            resolver.highest_role(await self.evaluator.load_assignments(person_id, tenant_id))
        )

    def filter_records(self, decision: AuthorizationDecision, payload: Any, resource: Optional[str] = None) -> Any:
        """Apply an allowed decision's visible fields to a record, list or ``{"data": ...}`` envelope."""
        if not decision.allowed:
            raise ValidationError("Cannot filter records with a denied decision")
        resource = resource or decision.resource
        if not resource:
            raise ValidationError("A resource is required to filter records")
        return self.redaction_filter.filter_payload(payload, resource, decision.visible_fields)

    # Mutations

    async def assign_role(
        self,
        assigner_id: str,
        target_person_id: str,
        tenant_id: str,
        role_type: str,
        company_id: Optional[str] = None,
        department_id: Optional[str] = None,
        is_primary: bool = False,
        expires_at: Optional[datetime] = None,
        custom_permissions: Optional[Mapping[str, bool]] = None,
        advanced_permissions: Sequence[AdvancedPermission] = (),
    ) -> AuthorizationDecision:
        """Assign a role; the assigner's highest role must be strictly above it."""
        role = self.role_catalog.get(role_type)
        custom_permissions = dict(custom_permissions or {})
        self.permission_catalog.validate(custom_permissions)
        for permission in advanced_permissions:
            self.permission_catalog.resource_spec(permission.resource)

        now = self.clock()
        if expires_at is not None and ensure_utc(expires_at) <= now:
            raise ValidationError("Role assignment expiry must be in the future")

        detail: Dict[str, Any] = {"role_type": role_type, "company_id": company_id}
        resolver = await self._resolver_for(tenant_id)
        assigner_assignments = await self.evaluator.load_assignments(assigner_id, tenant_id)
        assigner_highest = resolver.highest_role(assigner_assignments)
        detail["assigner_role"] = resolver.explain_level(assigner_highest)

        if not resolver.can_assign(assigner_highest, role_type):
            return await self._deny_mutation(
                AuditEventType.ROLE_ASSIGNED, DenyReason.INSUFFICIENT_HIERARCHY_LEVEL,
                tenant_id, assigner_id, target_person_id, detail
            )
        if not self._may_grant(assigner_assignments, custom_permissions) \
                or not await self._may_delegate(assigner_id, tenant_id, advanced_permissions):
            return await self._deny_mutation(
                AuditEventType.ROLE_ASSIGNED, DenyReason.NO_MATCHING_PERMISSION,
                tenant_id, assigner_id, target_person_id, detail
            )

        current = await self._find_target_assignments(target_person_id, tenant_id)
        if any(a.role_type == role_type and a.company_id == company_id for a in current):
            return await self._deny_mutation(
                AuditEventType.ROLE_ASSIGNED, DenyReason.DUPLICATE_ASSIGNMENT,
                tenant_id, assigner_id, target_person_id, detail
            )

        assignment = RoleAssignment.create(
            person_id=target_person_id,
            tenant_id=tenant_id,
            role_type=role_type,
            company_id=company_id,
            department_id=department_id,
            is_primary=is_primary,
            assigned_by=assigner_id,
            expires_at=expires_at,
            grants=grants_from_mapping(custom_permissions, granted_by=assigner_id, granted_at=now),
            now=now,
        )
        try:
            created = await guarded_store_call(
                "create_assignment", self.role_store.create_assignment(assignment, tuple(advanced_permissions))
            )
        except DuplicateAssignmentError:
            # Lost a race with a concurrent identical assignment
            return await self._deny_mutation(
                AuditEventType.ROLE_ASSIGNED, DenyReason.DUPLICATE_ASSIGNMENT,
                tenant_id, assigner_id, target_person_id, detail
            )

        await self._invalidate(tenant_id, target_person_id)
        logger.info(f"Assigned role {role_type} to person {target_person_id} in tenant {tenant_id} by {assigner_id}")
        detail["assignment_id"] = created.id
        await self._emit(AuditEvent(
            type=AuditEventType.ROLE_ASSIGNED,
            tenant_id=tenant_id,
            outcome=AuditOutcome.SUCCESS,
            actor_id=assigner_id,
            target_id=target_person_id,
            timestamp=now,
            detail=detail,
        ))
        return AuthorizationDecision.allow(matched_scope=role.default_scope, assignment_ids=(created.id,))

    async def remove_role(
        self,
        assigner_id: str,
        target_person_id: str,
        tenant_id: str,
        role_type: str,
        company_id: Optional[str] = None,
    ) -> AuthorizationDecision:
        """Deactivate a role assignment and drop its overlays.

        Allowed for a hierarchy superior of the target, or for a holder of
        ``users.manage_roles`` removing a role no more privileged than their own.
        """
        self.role_catalog.get(role_type)
        detail: Dict[str, Any] = {"role_type": role_type, "company_id": company_id}

        resolver = await self._resolver_for(tenant_id)
        assigner_assignments = await self.evaluator.load_assignments(assigner_id, tenant_id)
        assigner_highest = resolver.highest_role(assigner_assignments)
        target_assignments = await self._find_target_assignments(target_person_id, tenant_id)
        target_highest = resolver.highest_role(target_assignments)
        detail["assigner_role"] = resolver.explain_level(assigner_highest)

        superior = not assigner_highest.is_sentinel and assigner_highest.level < target_highest.level
        if not superior:
            held = self.evaluator.merge_effective_permissions(assigner_assignments)
            if MANAGE_ROLES_PERMISSION not in held or resolver.level_of(role_type) < assigner_highest.level:
                return await self._deny_mutation(
                    AuditEventType.ROLE_REMOVED, DenyReason.INSUFFICIENT_HIERARCHY_LEVEL,
                    tenant_id, assigner_id, target_person_id, detail
                )

        matching = [a for a in target_assignments if a.role_type == role_type and a.company_id == company_id]
        if not matching:
            return await self._deny_mutation(
                AuditEventType.ROLE_REMOVED, DenyReason.NO_MATCHING_PERMISSION,
                tenant_id, assigner_id, target_person_id, detail
            )

        now = self.clock()
        removed: List[str] = []
        for assignment in matching:
            if await guarded_store_call(
                "deactivate_assignment",
                self.role_store.deactivate_assignment(tenant_id, assignment.id, now)
            ):
                removed.append(assignment.id)

        await self._invalidate(tenant_id, target_person_id)
        logger.info(f"Removed role {role_type} from person {target_person_id} in tenant {tenant_id} by {assigner_id}")
        detail["assignment_ids"] = removed
        await self._emit(AuditEvent(
            type=AuditEventType.ROLE_REMOVED,
            tenant_id=tenant_id,
            outcome=AuditOutcome.SUCCESS,
            actor_id=assigner_id,
            target_id=target_person_id,
            timestamp=now,
            detail=detail,
        ))
        return AuthorizationDecision.allow(assignment_ids=tuple(removed))

    async def update_permissions(
        self,
        assigner_id: str,
        target_person_id: str,
        tenant_id: str,
        role_type: str,
        custom_permissions: Mapping[str, bool],
        company_id: Optional[str] = None,
    ) -> AuthorizationDecision:
        """Replace the basic permission overlay of a person's role assignment.

        Every identifier is validated before anything is written; one unknown
        identifier rejects the whole update.
        """
        self.role_catalog.get(role_type)
        custom_permissions = dict(custom_permissions)
        self.permission_catalog.validate(custom_permissions)
        detail: Dict[str, Any] = {
            "role_type": role_type,
            "company_id": company_id,
            "permissions": {code: bool(value) for code, value in sorted(custom_permissions.items())},
        }

        resolver = await self._resolver_for(tenant_id)
        assigner_assignments = await self.evaluator.load_assignments(assigner_id, tenant_id)
        assigner_highest = resolver.highest_role(assigner_assignments)

        target_assignments = await self._find_target_assignments(target_person_id, tenant_id)
        target_highest = resolver.highest_role(target_assignments)

        # The assigner must outrank the role and the person holding it
        if not resolver.can_assign(assigner_highest, role_type) \
                or (not target_highest.is_sentinel and assigner_highest.level >= target_highest.level):
            return await self._deny_mutation(
                AuditEventType.PERMISSIONS_UPDATED, DenyReason.INSUFFICIENT_HIERARCHY_LEVEL,
                tenant_id, assigner_id, target_person_id, detail
            )
        if not self._may_grant(assigner_assignments, custom_permissions):
            return await self._deny_mutation(
                AuditEventType.PERMISSIONS_UPDATED, DenyReason.NO_MATCHING_PERMISSION,
                tenant_id, assigner_id, target_person_id, detail
            )

        matching = [a for a in target_assignments if a.role_type == role_type and a.company_id == company_id]
        if not matching:
            return await self._deny_mutation(
                AuditEventType.PERMISSIONS_UPDATED, DenyReason.NO_MATCHING_PERMISSION,
                tenant_id, assigner_id, target_person_id, detail
            )

        now = self.clock()
        grants = grants_from_mapping(custom_permissions, granted_by=assigner_id, granted_at=now)
        for assignment in matching:
            await guarded_store_call(
                "replace_permission_overlay",
                self.role_store.replace_permission_overlay(tenant_id, assignment.id, grants)
            )

        await self._invalidate(tenant_id, target_person_id)
        logger.info(
            f"Updated {len(grants)} custom permissions of {role_type} for person {target_person_id} "
            f"in tenant {tenant_id} by {assigner_id}"
        )
        await self._emit(AuditEvent(
            type=AuditEventType.PERMISSIONS_UPDATED,
            tenant_id=tenant_id,
            outcome=AuditOutcome.SUCCESS,
            actor_id=assigner_id,
            target_id=target_person_id,
            timestamp=now,
            detail=detail,
        ))
        return AuthorizationDecision.allow(assignment_ids=tuple(a.id for a in matching))

    async def cleanup_expired_roles(self, tenant_id: str) -> int:
        """Mark past-expiry assignments of a tenant as expired, in bounded batches.

        Safe to run repeatedly and concurrently; a second run finds nothing.
        """
        if not tenant_id:
            raise ValidationError("cleanup_expired_roles requires a tenant_id")

        now = self.clock()
        batch_size = self.settings.cleanup_batch_size
        total = 0
        while True:
            count = await guarded_store_call(
                "sweep_expired", self.role_store.sweep_expired(tenant_id, now, batch_size)
            )
            total += count
            if count < batch_size:
                break

        if total > 0:
            if self.assignment_cache is not None:
                await self.assignment_cache.invalidate_tenant(tenant_id)
            logger.info(f"Expired {total} role assignments in tenant {tenant_id}")
            await self._emit(AuditEvent(
                type=AuditEventType.ROLES_EXPIRED,
                tenant_id=tenant_id,
                outcome=AuditOutcome.SUCCESS,
                timestamp=now,
                detail={"count": total},
            ))
        return total

    async def move_role(self, mover_id: str, tenant_id: str, role_type: str, new_level: int) -> AuthorizationDecision:
        """Move a role type to a new hierarchy level for one tenant.

        Raises InvalidHierarchyLevelError for a level outside the movable range.
        """
        resolver = await self._resolver_for(tenant_id)
        resolver.validate_level(new_level)
        previous_level = resolver.level_of(role_type)
        detail: Dict[str, Any] = {"role_type": role_type, "previous_level": previous_level, "new_level": new_level}

        mover_highest = resolver.highest_role(await self.evaluator.load_assignments(mover_id, tenant_id))
        detail["mover_role"] = resolver.explain_level(mover_highest)
        if not resolver.can_move(mover_highest, role_type, new_level):
            return await self._deny_mutation(
                AuditEventType.HIERARCHY_MOVED, DenyReason.INSUFFICIENT_HIERARCHY_LEVEL,
                tenant_id, mover_id, None, detail
            )

        now = self.clock()
        await guarded_store_call(
            "save_hierarchy_override",
            self.role_store.save_hierarchy_override(tenant_id, role_type, new_level, mover_id, now)
        )
        logger.info(f"Moved role {role_type} from level {previous_level} to {new_level} in tenant {tenant_id}")
        await self._emit(AuditEvent(
            type=AuditEventType.HIERARCHY_MOVED,
            tenant_id=tenant_id,
            outcome=AuditOutcome.SUCCESS,
            actor_id=mover_id,
            timestamp=now,
            detail=detail,
        ))
        return AuthorizationDecision.allow()

    # Helpers

    async def _resolver_for(self, tenant_id: str) -> RoleHierarchyResolver:
        overrides = await guarded_store_call(
            "find_hierarchy_overrides", self.role_store.find_hierarchy_overrides(tenant_id)
        )
        return self.hierarchy_resolver.with_catalog(self.role_catalog.with_levels(overrides))

    async def _find_target_assignments(self, person_id: str, tenant_id: str) -> List[RoleAssignment]:
        """Read straight from the store; mutations never decide on cached data."""
        now = self.clock()
        assignments = await guarded_store_call(
            "find_active_assignments", self.role_store.find_active_assignments(person_id, tenant_id, now)
        )
        return [a for a in assignments if a.tenant_id == tenant_id and a.is_effective(now)]

    def _may_grant(self, assigner_assignments: Sequence[RoleAssignment], custom_permissions: Mapping[str, bool]) -> bool:
        """An assigner may only add permissions it holds itself; denies are always allowed."""
        granted = {code for code, is_granted in custom_permissions.items() if is_granted}
        if not granted:
            return True
        return granted <= self.evaluator.merge_effective_permissions(assigner_assignments)

    async def _may_delegate(
        self,
        assigner_id: str,
        tenant_id: str,
        advanced_permissions: Sequence[AdvancedPermission]
    ) -> bool:
        """An assigner may only hand out advanced rules it holds at the same or a broader scope."""
        for permission in advanced_permissions:
            decision = await self.evaluator.evaluate_advanced(AuthorizationRequest(
                principal_id=assigner_id,
                tenant_id=tenant_id,
                resource=permission.resource,
                action=permission.action,
            ))
            if not decision.allowed or decision.matched_scope is None \
                    or decision.matched_scope.breadth < permission.scope.breadth:
                logger.info(
                    f"Person {assigner_id} cannot delegate {permission.permission_id} "
                    f"at {permission.scope.value} scope in tenant {tenant_id}"
                )
                return False
        return True

    async def _invalidate(self, tenant_id: str, person_id: str) -> None:
        if self.assignment_cache is not None:
            await self.assignment_cache.invalidate(tenant_id, person_id)

    async def _deny_mutation(
        self,
        event_type: AuditEventType,
        reason: DenyReason,
        tenant_id: str,
        actor_id: str,
        target_id: Optional[str],
        detail: Dict[str, Any],
    ) -> AuthorizationDecision:
        logger.info(f"Denied {event_type.value} by {actor_id} in tenant {tenant_id}: {reason.value}")
        await self._emit(AuditEvent(
            type=event_type,
            tenant_id=tenant_id,
            outcome=AuditOutcome.DENIED,
            actor_id=actor_id,
            target_id=target_id,
            timestamp=self.clock(),
            detail={**detail, "deny_reason": reason.value},
        ))
        return AuthorizationDecision.deny(reason)

    async def _emit_decision(
        self,
        event_type: AuditEventType,
        request: AuthorizationRequest,
        decision: AuthorizationDecision
    ) -> None:
        await self._emit(AuditEvent(
            type=event_type,
            tenant_id=request.tenant_id,
            outcome=AuditOutcome.ALLOWED if decision.allowed else AuditOutcome.DENIED,
            actor_id=request.principal_id,
            target_id=request.target.owner_id if request.target else None,
            timestamp=self.clock(),
            detail={"permission": request.permission_id, **decision.to_dict()},
        ))

    async def _emit(self, event: AuditEvent) -> None:
        """Audit sink failures are logged and never fail the operation."""
        try:
            await asyncio.wait_for(self.audit_emitter.emit(event), timeout=self.settings.audit_timeout_seconds)
        except Exception as e:
            logger.warning(f"Failed to emit audit event {event.type.value}: {e}")
