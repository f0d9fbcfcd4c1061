"""Tests for the permission evaluator."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from neo_rbac.config.constants import DenyReason, PermissionScope
from neo_rbac.core.exceptions import (
    DependencyUnavailableError,
    UnknownPermissionError,
    UnknownResourceError,
    ValidationError,
)
from neo_rbac.features.permissions.entities.authorization import AuthorizationRequest, TargetOwnership
from neo_rbac.features.permissions.entities.permission_grant import AdvancedPermission
from neo_rbac.features.permissions.services.permission_evaluator import PermissionEvaluator


TENANT = "tenant-a"


def _read_companies(company_id: str = "company-1", **kwargs) -> AuthorizationRequest:
    return AuthorizationRequest(
        principal_id="person-1",
        tenant_id=TENANT,
        resource="companies",
        action="read",
        target=TargetOwnership(tenant_id=TENANT, company_id=company_id),
        **kwargs,
    )


class TestBasicPermissions:
    """Test basic permission merging."""

    @pytest.fixture
    def evaluator(self, role_store):
        return PermissionEvaluator(role_store)

    async def test_catalog_defaults_apply(self, evaluator, seed):
        await seed("person-1", "MANAGER")
        assert await evaluator.has_permission("person-1", "roles.read", TENANT)
        assert not await evaluator.has_permission("person-1", "roles.create", TENANT)

    async def test_explicit_deny_overrides_default(self, evaluator, seed):
        await seed("person-1", "MANAGER", grants={"roles.read": False})
        assert not await evaluator.has_permission("person-1", "roles.read", TENANT)
        assert await evaluator.has_permission("person-1", "users.read", TENANT)

    async def test_custom_grant_adds_permission(self, evaluator, seed):
        await seed("person-1", "EMPLOYEE", grants={"reports.view": True})
        assert await evaluator.has_permission("person-1", "reports.view", TENANT)

    async def test_deny_on_one_assignment_does_not_remove_another(self, evaluator, seed):
        await seed("person-1", "MANAGER", grants={"roles.read": False})
        await seed("person-1", "HR_MANAGER")
        assert await evaluator.has_permission("person-1", "roles.read", TENANT)

    async def test_no_assignments_means_nothing(self, evaluator):
        assert await evaluator.effective_permissions("nobody", TENANT) == frozenset()
        assert (await evaluator.highest_role("nobody", TENANT)).is_sentinel

    async def test_expired_assignment_ignored(self, evaluator, seed, now):
        await seed("person-1", "MANAGER", expires_at=now - timedelta(minutes=1))
        assert not await evaluator.has_permission("person-1", "users.read", TENANT)

    async def test_other_tenant_assignments_ignored(self, evaluator, seed):
        await seed("person-1", "ADMIN", tenant_id="tenant-b")
        assert not await evaluator.has_permission("person-1", "users.read", TENANT)

    async def test_company_context_narrows_assignments(self, evaluator, seed):
        await seed("person-1", "HR_MANAGER", company_id="company-1")
        assert await evaluator.has_permission("person-1", "persons.create", TENANT, company_id="company-1")
        assert not await evaluator.has_permission("person-1", "persons.create", TENANT, company_id="company-2")

    async def test_unknown_permission_raises(self, evaluator):
        with pytest.raises(UnknownPermissionError):
            await evaluator.has_permission("person-1", "rockets.launch", TENANT)

    async def test_any_and_all(self, evaluator, seed):
        await seed("person-1", "EMPLOYEE")
        assert await evaluator.has_any_permission("person-1", ["courses.read", "courses.delete"], TENANT)
        assert not await evaluator.has_all_permissions("person-1", ["courses.read", "courses.delete"], TENANT)

    async def test_has_role_and_primary_assignment(self, evaluator, seed):
        await seed("person-1", "TRAINER")
        primary = await seed("person-1", "EMPLOYEE", is_primary=True)
        assert await evaluator.has_role("person-1", TENANT, "TRAINER")
        assert not await evaluator.has_role("person-1", TENANT, "ADMIN")
        assert (await evaluator.primary_assignment("person-1", TENANT)).id == primary.id

    async def test_primary_assignment_falls_back_to_highest(self, evaluator, seed):
        await seed("person-1", "TRAINER")
        manager = await seed("person-1", "MANAGER")
        assert (await evaluator.primary_assignment("person-1", TENANT)).id == manager.id
        assert await evaluator.primary_assignment("nobody", TENANT) is None


class TestEvaluatePermission:
    """Test basic decisions."""

    @pytest.fixture
    def evaluator(self, role_store):
        return PermissionEvaluator(role_store)

    async def test_allowed_with_role_scope(self, evaluator, seed):
        assignment = await seed("person-1", "MANAGER")
        decision = await evaluator.evaluate_permission(
            AuthorizationRequest(principal_id="person-1", tenant_id=TENANT, permission="users.read")
        )
        assert decision.allowed
        assert decision.matched_scope is PermissionScope.COMPANY
        assert decision.assignment_ids == (assignment.id,)

    async def test_denied_without_grant(self, evaluator, seed):
        await seed("person-1", "EMPLOYEE")
        decision = await evaluator.evaluate_permission(
            AuthorizationRequest(principal_id="person-1", tenant_id=TENANT, permission="users.delete")
        )
        assert not decision.allowed
        assert decision.deny_reason is DenyReason.NO_MATCHING_PERMISSION
        assert decision.public_message == "Access denied"

    async def test_foreign_tenant_target(self, evaluator, seed):
        await seed("person-1", "ADMIN")
        decision = await evaluator.evaluate_permission(AuthorizationRequest(
            principal_id="person-1",
            tenant_id=TENANT,
            permission="users.read",
            target=TargetOwnership(tenant_id="tenant-b"),
        ))
        assert decision.deny_reason is DenyReason.TENANT_MISMATCH


class TestEvaluateAdvanced:
    """Test advanced decisions."""

    @pytest.fixture
    def evaluator(self, role_store):
        return PermissionEvaluator(role_store)

    async def test_allowed_fields_from_matching_grant(self, evaluator, seed):
        await seed("person-1", "COMPANY_ADMIN", company_id="company-1", advanced=(
            AdvancedPermission(
                resource="companies", action="read", scope="company",
                allowed_fields=("id", "ragioneSociale", "citta"),
            ),
        ))
        decision = await evaluator.evaluate_advanced(_read_companies())
        assert decision.allowed
        assert decision.matched_scope is PermissionScope.COMPANY
        assert decision.visible_fields == ("id", "ragioneSociale", "citta")

    async def test_other_company_not_contained(self, evaluator, seed):
        await seed("person-1", "COMPANY_ADMIN", company_id="company-1", advanced=(
            AdvancedPermission(resource="companies", action="read", scope="company"),
        ))
        decision = await evaluator.evaluate_advanced(_read_companies("company-2"))
        assert decision.deny_reason is DenyReason.SCOPE_NOT_CONTAINED

    async def test_basic_grant_falls_back_to_role_scope(self, evaluator, seed):
        await seed("person-1", "MANAGER", company_id="company-1")
        decision = await evaluator.evaluate_advanced(_read_companies())
        assert decision.allowed
        assert decision.matched_scope is PermissionScope.COMPANY
        assert "partitaIva" not in decision.visible_fields
        assert decision.visible_fields[0] == "id"

    async def test_no_grant_at_all(self, evaluator, seed):
        await seed("person-1", "GUEST")
        decision = await evaluator.evaluate_advanced(_read_companies())
        assert decision.deny_reason is DenyReason.NO_MATCHING_PERMISSION

    async def test_site_restriction(self, evaluator, seed):
        await seed("person-1", "TRAINER", advanced=(
            AdvancedPermission(resource="training", action="read", scope="tenant", site_access={"site-1"}),
        ), grants={"training.read": False})
        request = AuthorizationRequest(
            principal_id="person-1", tenant_id=TENANT, resource="training", action="read",
            target=TargetOwnership(tenant_id=TENANT, site_id="site-2"),
        )
        decision = await evaluator.evaluate_advanced(request)
        assert decision.deny_reason is DenyReason.SITE_NOT_AUTHORIZED

        allowed = await evaluator.evaluate_advanced(AuthorizationRequest(
            principal_id="person-1", tenant_id=TENANT, resource="training", action="read",
            target=TargetOwnership(tenant_id=TENANT, site_id="site-1"),
        ))
        assert allowed.allowed

    async def test_condition_not_met(self, evaluator, seed):
        await seed("person-1", "OPERATOR", advanced=(
            AdvancedPermission(
                resource="documents", action="update", scope="tenant",
                conditions={"ownedBy": "self", "status": "draft"},
            ),
        ))
        request = AuthorizationRequest(
            principal_id="person-1", tenant_id=TENANT, resource="documents", action="update",
            target=TargetOwnership(tenant_id=TENANT, owner_id="person-1", status="published"),
        )
        decision = await evaluator.evaluate_advanced(request)
        assert decision.deny_reason is DenyReason.CONDITION_NOT_MET

    async def test_foreign_tenant_target_denied(self, evaluator, seed):
        await seed("person-1", "ADMIN", advanced=(
            AdvancedPermission(resource="companies", action="read", scope="global"),
        ))
        request = AuthorizationRequest(
            principal_id="person-1", tenant_id=TENANT, resource="companies", action="read",
            target=TargetOwnership(tenant_id="tenant-b"),
        )
        decision = await evaluator.evaluate_advanced(request)
        assert decision.deny_reason is DenyReason.TENANT_MISMATCH

    async def test_broadest_scope_wins(self, evaluator, seed):
        await seed("person-1", "COMPANY_ADMIN", company_id="company-1", advanced=(
            AdvancedPermission(resource="companies", action="read", scope="company", allowed_fields=("citta",)),
            AdvancedPermission(resource="companies", action="read", scope="tenant", allowed_fields=("cap",)),
        ))
        decision = await evaluator.evaluate_advanced(_read_companies())
        assert decision.matched_scope is PermissionScope.TENANT
        assert decision.visible_fields == ("id", "cap")

    async def test_tied_scopes_union_fields(self, evaluator, seed):
        await seed("person-1", "COMPANY_ADMIN", company_id="company-1", advanced=(
            AdvancedPermission(resource="companies", action="read", scope="company", allowed_fields=("citta",)),
        ))
        await seed("person-1", "AUDITOR", company_id="company-1", advanced=(
            AdvancedPermission(
                resource="companies", action="read", scope="company", allowed_fields=("ragioneSociale",)
            ),
        ))
        decision = await evaluator.evaluate_advanced(_read_companies())
        assert decision.visible_fields == ("id", "ragioneSociale", "citta")
        assert len(decision.assignment_ids) == 2

    async def test_requested_fields_narrow_visible_fields(self, evaluator, seed):
        await seed("person-1", "MANAGER", company_id="company-1")
        decision = await evaluator.evaluate_advanced(_read_companies(requested_fields=("citta", "partitaIva")))
        assert decision.visible_fields == ("id", "citta")

    async def test_collection_check_without_target(self, evaluator, seed):
        await seed("person-1", "EMPLOYEE")
        decision = await evaluator.evaluate_advanced(AuthorizationRequest(
            principal_id="person-1", tenant_id=TENANT, resource="courses", action="read",
        ))
        assert decision.allowed
        assert decision.matched_scope is PermissionScope.SELF

    async def test_unknown_resource_raises(self, evaluator):
        with pytest.raises(UnknownResourceError):
            await evaluator.evaluate_advanced(AuthorizationRequest(
                principal_id="person-1", tenant_id=TENANT, resource="spaceships", action="read",
            ))

    async def test_requires_resource_and_action(self, evaluator):
        with pytest.raises(ValidationError):
            await evaluator.evaluate_advanced(
                AuthorizationRequest(principal_id="person-1", tenant_id=TENANT, permission="ADMIN_PANEL")
            )


class TestStoreFailures:
    """Test fail-closed behaviour when the store is unavailable."""

    async def test_store_error_raises_dependency_unavailable(self):
        store = AsyncMock()
        store.find_active_assignments.side_effect = ConnectionError("connection refused")
        evaluator = PermissionEvaluator(store)
        with pytest.raises(DependencyUnavailableError):
            await evaluator.has_permission("person-1", "users.read", TENANT)

    async def test_cache_hit_skips_store(self, seed, role_store):
        cached = await seed("person-1", "MANAGER")
        store = AsyncMock()
        cache = AsyncMock()
        cache.get_assignments.return_value = [cached]
        evaluator = PermissionEvaluator(store, assignment_cache=cache)

        assert await evaluator.has_permission("person-1", "users.read", TENANT)
        store.find_active_assignments.assert_not_called()

    async def test_cache_miss_populates_cache(self, seed, role_store):
        await seed("person-1", "MANAGER")
        cache = AsyncMock()
        cache.get_assignments.return_value = None
        evaluator = PermissionEvaluator(role_store, assignment_cache=cache)

        assert await evaluator.has_permission("person-1", "users.read", TENANT)
        cache.set_assignments.assert_awaited_once()
