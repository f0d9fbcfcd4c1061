"""Tests for role hierarchy resolution."""

import itertools

import pytest

from neo_rbac.core.exceptions import InvalidHierarchyLevelError, UnknownRoleTypeError
from neo_rbac.features.permissions.entities.role_assignment import RoleAssignment
from neo_rbac.features.permissions.entities.role_catalog import DEFAULT_ROLE_CATALOG
from neo_rbac.features.permissions.entities.role_type import NO_ROLE
from neo_rbac.features.permissions.services.hierarchy_resolver import RoleHierarchyResolver


def _assignment(role_type: str, is_primary: bool = False, assignment_id: str = None) -> RoleAssignment:
    return RoleAssignment(
        id=assignment_id or f"a-{role_type}",
        person_id="person-1",
        tenant_id="tenant-a",
        role_type=role_type,
        is_primary=is_primary,
    )


class TestHighestRole:
    """Test highest role reduction."""

    @pytest.fixture
    def resolver(self):
        return RoleHierarchyResolver()

    def test_manager_beats_trainer_in_any_order(self, resolver):
        assignments = [_assignment("MANAGER"), _assignment("TRAINER")]
        for ordering in itertools.permutations(assignments):
            assert resolver.highest_role(ordering).code == "MANAGER"

    def test_empty_set_yields_no_role(self, resolver):
        assert resolver.highest_role([]) is NO_ROLE

    def test_tie_broken_by_smallest_code(self, resolver):
        for ordering in itertools.permutations(["HR_MANAGER", "MANAGER", "DEPARTMENT_HEAD"]):
            assert resolver.highest_role(ordering).code == "DEPARTMENT_HEAD"

    def test_tie_broken_by_single_primary(self, resolver):
        assignments = [_assignment("MANAGER", is_primary=True), _assignment("HR_MANAGER")]
        assert resolver.highest_role(assignments).code == "MANAGER"

    def test_two_primaries_fall_back_to_code(self, resolver):
        assignments = [_assignment("MANAGER", is_primary=True), _assignment("HR_MANAGER", is_primary=True)]
        assert resolver.highest_role(assignments).code == "HR_MANAGER"

    def test_primary_does_not_beat_lower_level(self, resolver):
        assignments = [_assignment("TRAINER", is_primary=True), _assignment("MANAGER")]
        assert resolver.highest_role(assignments).code == "MANAGER"

    def test_unknown_role_raises(self, resolver):
        with pytest.raises(UnknownRoleTypeError):
            resolver.highest_role(["JANITOR"])


class TestCanAssign:
    """Test strict privilege monotonicity."""

    @pytest.fixture
    def resolver(self):
        return RoleHierarchyResolver()

    def test_monotonic_over_every_pair(self, resolver):
        roles = DEFAULT_ROLE_CATALOG.all_role_types()
        for assigner, target in itertools.product(roles, roles):
            assert resolver.can_assign(assigner, target) == (target.level > assigner.level)

    def test_employee_cannot_assign_admin(self, resolver):
        assert not resolver.can_assign("EMPLOYEE", "ADMIN")

    def test_same_level_cannot_assign(self, resolver):
        assert not resolver.can_assign("MANAGER", "HR_MANAGER")
        assert not resolver.can_assign("ADMIN", "ADMIN")

    def test_no_role_assigns_nothing(self, resolver):
        assert not resolver.can_assign(NO_ROLE, "GUEST")
        assert resolver.assignable_roles(NO_ROLE) == ()

    def test_assignable_roles_most_privileged_first(self, resolver):
        assignable = resolver.assignable_roles("COMPANY_ADMIN")
        assert all(r.level > 2 for r in assignable)
        assert assignable[0].level == 3
        assert assignable[-1].level == 6

    def test_is_subordinate(self, resolver):
        assert resolver.is_subordinate("TRAINER", "MANAGER")
        assert not resolver.is_subordinate("MANAGER", "HR_MANAGER")

    def test_overridden_levels_apply(self, resolver):
        moved = resolver.with_catalog(DEFAULT_ROLE_CATALOG.with_levels({"TRAINER": 2}))
        assert not moved.can_assign("COMPANY_ADMIN", "TRAINER")
        assert resolver.can_assign("COMPANY_ADMIN", "TRAINER")


class TestHierarchyMoves:
    """Test hierarchy restructuring rules."""

    @pytest.fixture
    def resolver(self):
        return RoleHierarchyResolver(min_movable_level=1, max_level=6)

    @pytest.mark.parametrize("level", [0, 7, -1])
    def test_levels_outside_range_rejected(self, resolver, level):
        with pytest.raises(InvalidHierarchyLevelError):
            resolver.validate_level(level)

    def test_bool_is_not_a_level(self, resolver):
        with pytest.raises(InvalidHierarchyLevelError):
            resolver.validate_level(True)

    def test_admin_can_move_subordinate_role(self, resolver):
        assert resolver.can_move("ADMIN", "TRAINER", 3)

    def test_cannot_lift_role_to_own_level(self, resolver):
        assert not resolver.can_move("ADMIN", "TRAINER", 1)

    def test_cannot_move_peer_role(self, resolver):
        assert not resolver.can_move("ADMIN", "TENANT_ADMIN", 2)

    def test_only_level_one_or_above_manages_hierarchy(self, resolver):
        assert resolver.can_manage_hierarchy("SUPER_ADMIN")
        assert resolver.can_manage_hierarchy("ADMIN")
        assert not resolver.can_manage_hierarchy("COMPANY_ADMIN")
        assert not resolver.can_move("COMPANY_ADMIN", "TRAINER", 5)

    def test_explain_level(self, resolver):
        assert resolver.explain_level("MANAGER") == "MANAGER@3"
        assert resolver.explain_level(None) == "NO_ROLE"
