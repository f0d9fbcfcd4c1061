"""Tests for the in-memory and PostgreSQL role stores."""

from contextlib import asynccontextmanager
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from neo_rbac.config.constants import AssignmentStatus
from neo_rbac.core.exceptions import DatabaseError, DuplicateAssignmentError, ValidationError
from neo_rbac.features.permissions.entities.permission_grant import AdvancedPermission, PermissionGrant
from neo_rbac.features.permissions.entities.role_assignment import RoleAssignment
from neo_rbac.features.permissions.repositories.role_store import AsyncPGRoleStore


TENANT = "tenant-a"


class TestInMemoryRoleStore:
    """Test the in-memory store."""

    async def test_duplicate_active_assignment_rejected(self, role_store, seed):
        await seed("person-1", "TRAINER")
        with pytest.raises(DuplicateAssignmentError):
            await seed("person-1", "TRAINER")

    async def test_expired_row_does_not_block_new_assignment(self, role_store, seed, now):
        await seed("person-1", "TRAINER", expires_at=now - timedelta(minutes=1))
        fresh = await seed("person-1", "TRAINER")
        assert fresh.is_effective(now)

    async def test_deactivate_is_idempotent(self, role_store, seed, now):
        assignment = await seed("person-1", "TRAINER", grants={"reports.view": True})
        assert await role_store.deactivate_assignment(TENANT, assignment.id, now)
        assert not await role_store.deactivate_assignment(TENANT, assignment.id, now)
        stored = await role_store.get_assignment(TENANT, assignment.id)
        assert stored.status is AssignmentStatus.DEACTIVATED
        assert stored.grants == ()

    async def test_tenant_scoping(self, role_store, seed, now):
        assignment = await seed("person-1", "TRAINER", advanced=(
            AdvancedPermission(resource="training", action="read", scope="department"),
        ))
        assert await role_store.find_active_assignments("person-1", "tenant-b", now) == []
        assert await role_store.find_advanced_permissions("tenant-b", [assignment.id]) == []
        assert not await role_store.deactivate_assignment("tenant-b", assignment.id, now)
        assert await role_store.get_assignment("tenant-b", assignment.id) is None

    async def test_advanced_permissions_bound_to_assignment(self, role_store, seed):
        assignment = await seed("person-1", "TRAINER", advanced=(
            AdvancedPermission(resource="training", action="read", scope="department"),
        ))
        permissions = await role_store.find_advanced_permissions(TENANT, [assignment.id])
        assert len(permissions) == 1
        assert permissions[0].assignment_id == assignment.id
        assert permissions[0].id

    async def test_sweep_respects_limit(self, role_store, seed, now):
        for person in ("p1", "p2", "p3"):
            await seed(person, "EMPLOYEE", expires_at=now - timedelta(minutes=1))
        assert await role_store.sweep_expired(TENANT, now, 2) == 2
        assert await role_store.sweep_expired(TENANT, now, 2) == 1
        assert await role_store.sweep_expired(TENANT, now, 2) == 0

    async def test_replace_overlay(self, role_store, seed, now):
        assignment = await seed("person-1", "TRAINER", grants={"reports.view": True})
        await role_store.replace_permission_overlay(
            TENANT, assignment.id, (PermissionGrant(permission="courses.read", is_granted=False),)
        )
        stored = (await role_store.find_active_assignments("person-1", TENANT, now))[0]
        assert stored.denied_overlay() == frozenset({"courses.read"})
        assert stored.granted_overlay() == frozenset()

    async def test_hierarchy_overrides_per_tenant(self, role_store, now):
        await role_store.save_hierarchy_override(TENANT, "TRAINER", 3, "admin-1", now)
        assert await role_store.find_hierarchy_overrides(TENANT) == {"TRAINER": 3}
        assert await role_store.find_hierarchy_overrides("tenant-b") == {}


class _FakePool:
    """Connection pool yielding a single mocked connection."""

    def __init__(self, conn):
        self.conn = conn

    @asynccontextmanager
    async def connection(self):
        yield self.conn


@pytest.fixture
def conn():
    connection = AsyncMock()
    connection.transaction = MagicMock()
    return connection


@pytest.fixture
def store(conn):
    return AsyncPGRoleStore(_FakePool(conn), schema="rbac")


def _assignment_row(now, **overrides):
    row = {
        "id": "a-1",
        "person_id": "person-1",
        "tenant_id": TENANT,
        "role_type": "TRAINER",
        "company_id": None,
        "department_id": "dept-1",
        "is_primary": False,
        "status": "active",
        "assigned_by": "admin-1",
        "assigned_at": now,
        "expires_at": None,
        "deleted_at": None,
    }
    row.update(overrides)
    return row


class TestAsyncPGRoleStore:
    """Test the PostgreSQL store against a mocked connection."""

    def test_invalid_schema_rejected(self, conn):
        with pytest.raises(ValidationError):
            AsyncPGRoleStore(_FakePool(conn), schema="rbac; DROP SCHEMA public")

    async def test_find_active_assignments_attaches_grants(self, store, conn, now):
        conn.fetch.side_effect = [
            [_assignment_row(now)],
            [{
                "assignment_id": "a-1",
                "permission": "courses.read",
                "is_granted": False,
                "granted_by": "admin-1",
                "granted_at": now,
            }],
        ]

        assignments = await store.find_active_assignments("person-1", TENANT, now)

        assert len(assignments) == 1
        assert assignments[0].department_id == "dept-1"
        assert assignments[0].denied_overlay() == frozenset({"courses.read"})
        query, person_id, tenant_id, _ = conn.fetch.call_args_list[0].args
        assert "rbac.role_assignments" in query
        assert (person_id, tenant_id) == ("person-1", TENANT)

    async def test_find_active_assignments_empty(self, store, conn, now):
        conn.fetch.return_value = []
        assert await store.find_active_assignments("person-1", TENANT, now) == []
        conn.fetch.assert_called_once()

    async def test_query_failure_raises_database_error(self, store, conn, now):
        conn.fetch.side_effect = OSError("connection reset")
        with pytest.raises(DatabaseError) as exc_info:
            await store.find_active_assignments("person-1", TENANT, now)
        assert exc_info.value.operation == "find_active_assignments"

    async def test_advanced_permission_rows(self, store, conn):
        conn.fetch.return_value = [{
            "id": "ap-1",
            "assignment_id": "a-1",
            "resource": "companies",
            "action": "read",
            "scope": "company",
            "site_access": ["site-1"],
            "allowed_fields": ["id", "citta"],
            "conditions": '{"status": "active"}',
        }]

        permissions = await store.find_advanced_permissions(TENANT, ["a-1"])

        assert permissions[0].allowed_fields == ("id", "citta")
        assert permissions[0].site_access == frozenset({"site-1"})
        assert permissions[0].conditions[0].value == "active"

    async def test_create_assignment_writes_rows_in_transaction(self, store, conn, now):
        assignment = RoleAssignment.create(
            person_id="person-1",
            tenant_id=TENANT,
            role_type="TRAINER",
            assigned_by="admin-1",
            grants=(PermissionGrant(permission="reports.view", granted_by="admin-1", granted_at=now),),
            now=now,
        )

        created = await store.create_assignment(
            assignment, (AdvancedPermission(resource="training", action="read", scope="department"),)
        )

        assert created is assignment
        conn.transaction.assert_called_once()
        assert "INSERT INTO rbac.role_assignments" in conn.execute.call_args.args[0]
        assert conn.executemany.call_count == 2

    async def test_lapsed_duplicate_expired_before_insert(self, store, conn, now):
        assignment = RoleAssignment.create(
            person_id="person-1", tenant_id=TENANT, role_type="TRAINER", company_id="company-1", now=now
        )

        await store.create_assignment(assignment)

        expire_call, insert_call = conn.execute.call_args_list
        assert expire_call.args[0].strip().startswith("UPDATE rbac.role_assignments")
        assert "expires_at <= $5" in expire_call.args[0]
        assert expire_call.args[1:] == ("person-1", TENANT, "TRAINER", "company-1", now)
        assert "INSERT INTO rbac.role_assignments" in insert_call.args[0]

    async def test_unique_violation_maps_to_duplicate(self, store, conn, now):
        conn.execute.side_effect = [None, asyncpg.UniqueViolationError("duplicate key")]
        assignment = RoleAssignment.create(person_id="person-1", tenant_id=TENANT, role_type="TRAINER", now=now)
        with pytest.raises(DuplicateAssignmentError):
            await store.create_assignment(assignment)

    async def test_deactivate_missing_assignment(self, store, conn, now):
        conn.fetchrow.return_value = None
        assert not await store.deactivate_assignment(TENANT, "a-1", now)
        conn.execute.assert_not_called()

    async def test_deactivate_drops_overlays(self, store, conn, now):
        conn.fetchrow.return_value = {"id": "a-1"}
        assert await store.deactivate_assignment(TENANT, "a-1", now)
        statements = [call.args[0] for call in conn.execute.call_args_list]
        assert any("permission_grants" in s for s in statements)
        assert any("advanced_permissions" in s for s in statements)

    async def test_sweep_expired_counts_rows(self, store, conn, now):
        conn.fetch.return_value = [{"id": "a-1"}, {"id": "a-2"}]
        assert await store.sweep_expired(TENANT, now, 500) == 2
        assert conn.fetch.call_args.args[1:] == (TENANT, now, 500)

    async def test_hierarchy_overrides(self, store, conn):
        conn.fetch.return_value = [{"role_type": "TRAINER", "level": 3}]
        assert await store.find_hierarchy_overrides(TENANT) == {"TRAINER": 3}
