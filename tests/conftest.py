"""Pytest configuration and fixtures for neo-rbac tests."""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Optional
from unittest.mock import AsyncMock

from neo_rbac.config.settings import RbacSettings
from neo_rbac.features.permissions.entities.permission_grant import AdvancedPermission, PermissionGrant
from neo_rbac.features.permissions.entities.role_assignment import RoleAssignment
from neo_rbac.features.permissions.repositories.memory_role_store import InMemoryRoleStore
from neo_rbac.features.permissions.services.authorization_engine import AuthorizationEngine


TENANT_A = "tenant-a"
TENANT_B = "tenant-b"


@pytest.fixture
def now():
    """Current time, shared by a test and the store rows it seeds."""
    return datetime.now(timezone.utc)


@pytest.fixture
def settings():
    """Settings isolated from the environment."""
    return RbacSettings(
        _env_file=None,
        database_url=None,
        redis_url=None,
        cache_enabled=False,
        cleanup_batch_size=2,
        audit_decisions=True,
        audit_timeout_seconds=0.5,
    )


@pytest.fixture
def role_store():
    return InMemoryRoleStore()


@pytest.fixture
def audit_emitter():
    """Mock audit sink."""
    emitter = AsyncMock()
    emitter.emit = AsyncMock(return_value=None)
    return emitter


@pytest.fixture
def engine(role_store, audit_emitter, settings):
    return AuthorizationEngine(role_store, audit_emitter=audit_emitter, settings=settings)


@pytest.fixture
def seed(role_store, now):
    """Insert an assignment straight into the store, bypassing hierarchy checks."""

    async def _seed(
        person_id: str,
        role_type: str,
        tenant_id: str = TENANT_A,
        company_id: Optional[str] = None,
        department_id: Optional[str] = None,
        is_primary: bool = False,
        expires_at: Optional[datetime] = None,
        grants: Optional[dict] = None,
        advanced: tuple = (),
        assigned_at: Optional[datetime] = None,
    ) -> RoleAssignment:
        assignment = RoleAssignment.create(
            person_id=person_id,
            tenant_id=tenant_id,
            role_type=role_type,
            company_id=company_id,
            department_id=department_id,
            is_primary=is_primary,
            assigned_by="seed",
            expires_at=expires_at,
            grants=tuple(
                PermissionGrant(permission=code, is_granted=granted, granted_by="seed", granted_at=now)
                for code, granted in (grants or {}).items()
            ),
            now=assigned_at or now - timedelta(days=1),
        )
        return await role_store.create_assignment(assignment, advanced)

    return _seed


@pytest.fixture
def company_record():
    """A companies record carrying public and sensitive fields."""
    return {
        "id": "company-1",
        "ragioneSociale": "Acme S.r.l.",
        "citta": "Milano",
        "provincia": "MI",
        "cap": "20100",
        "indirizzo": "Via Roma 1",
        "settore": "Manufacturing",
        "tenantId": TENANT_A,
        "partitaIva": "01234567890",
        "codiceFiscale": "01234567890",
        "mail": "info@acme.example",
        "pec": "acme@pec.example",
        "telefono": "+39 02 0000000",
        "iban": "IT60X0542811101000000123456",
        "sdi": "ABC1234",
    }
