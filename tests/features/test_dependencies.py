"""Tests for the FastAPI authorization dependencies."""

from typing import Optional
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi import Depends, FastAPI, Header, Request

from neo_rbac.core.exceptions import UnknownPermissionError
from neo_rbac.features.permissions.dependencies import AuthorizationDependencies
from neo_rbac.features.permissions.entities.authorization import PrincipalContext, TargetOwnership
from neo_rbac.features.permissions.entities.permission_grant import AdvancedPermission
from neo_rbac.features.permissions.services.authorization_engine import AuthorizationEngine


TENANT = "tenant-a"


async def get_principal(
    x_person_id: str = Header(...),
    x_tenant_id: str = Header(...),
    x_company_id: Optional[str] = Header(None),
) -> PrincipalContext:
    return PrincipalContext(person_id=x_person_id, tenant_id=x_tenant_id, company_id=x_company_id)


def build_app(engine: AuthorizationEngine, companies: dict) -> FastAPI:
    authz = AuthorizationDependencies(engine, get_principal)
    app = FastAPI()

    async def load_company(request: Request) -> TargetOwnership:
        return TargetOwnership.from_record(companies[request.path_params["company_id"]])

    @app.get("/users")
    async def list_users(decision=Depends(authz.require_permission("users.read"))):
        return {"scope": decision.matched_scope.value}

    @app.get("/companies/{company_id}")
    async def get_company(
        company_id: str,
        decision=Depends(authz.require_advanced_permission("companies", "read", target_loader=load_company)),
    ):
        return engine.filter_records(decision, companies[company_id])

    @app.put("/hierarchy")
    async def restructure(principal=Depends(authz.require_hierarchy_manager())):
        return {"person": principal.person_id}

    return app


@pytest.fixture
def companies(company_record):
    return {
        "company-1": dict(company_record, companyId="company-1"),
        "company-2": dict(company_record, id="company-2", companyId="company-2"),
    }


@pytest.fixture
def client_for(companies):
    def _client(engine: AuthorizationEngine) -> httpx.AsyncClient:
        transport = httpx.ASGITransport(app=build_app(engine, companies))
        return httpx.AsyncClient(transport=transport, base_url="http://testserver")

    return _client


def _headers(person_id: str, tenant_id: str = TENANT) -> dict:
    return {"X-Person-Id": person_id, "X-Tenant-Id": tenant_id}


class TestAuthorizationDependencies:
    """Test route guards."""

    async def test_permission_granted(self, engine, seed, client_for):
        await seed("manager-1", "MANAGER")
        async with client_for(engine) as client:
            response = await client.get("/users", headers=_headers("manager-1"))
        assert response.status_code == 200
        assert response.json() == {"scope": "company"}

    async def test_denial_is_generic_403(self, engine, seed, client_for):
        await seed("guest-1", "GUEST")
        async with client_for(engine) as client:
            response = await client.get("/users", headers=_headers("guest-1"))
        assert response.status_code == 403
        assert response.json() == {"detail": "Access denied"}

    async def test_advanced_guard_redacts_record(self, engine, seed, client_for):
        await seed("company-admin", "COMPANY_ADMIN", company_id="company-1", advanced=(
            AdvancedPermission(
                resource="companies", action="read", scope="company",
                allowed_fields=("id", "ragioneSociale", "citta"),
            ),
        ))
        async with client_for(engine) as client:
            allowed = await client.get("/companies/company-1", headers=_headers("company-admin"))
            denied = await client.get("/companies/company-2", headers=_headers("company-admin"))

        assert allowed.status_code == 200
        assert allowed.json() == {"id": "company-1", "ragioneSociale": "Acme S.r.l.", "citta": "Milano"}
        assert denied.status_code == 403
        assert denied.json()["detail"] == "Access denied"

    async def test_store_outage_is_503(self, audit_emitter, settings, client_for):
        store = AsyncMock()
        store.find_active_assignments.side_effect = OSError("connection reset")
        engine = AuthorizationEngine(store, audit_emitter=audit_emitter, settings=settings)
        async with client_for(engine) as client:
            response = await client.get("/users", headers=_headers("manager-1"))
        assert response.status_code == 503

    async def test_hierarchy_manager_guard(self, engine, seed, client_for):
        await seed("admin-1", "ADMIN")
        await seed("company-admin", "COMPANY_ADMIN")
        async with client_for(engine) as client:
            allowed = await client.put("/hierarchy", headers=_headers("admin-1"))
            denied = await client.put("/hierarchy", headers=_headers("company-admin"))
        assert allowed.status_code == 200
        assert denied.status_code == 403

    def test_unknown_permission_rejected_at_wiring(self, engine):
        authz = AuthorizationDependencies(engine, get_principal)
        with pytest.raises(UnknownPermissionError):
            authz.require_permission("rockets.launch")
