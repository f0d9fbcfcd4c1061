"""FastAPI authorization dependencies."""

import logging
from typing import Annotated, Any, Awaitable, Callable, Optional

from fastapi import Depends, HTTPException, Request, status

from ...config.constants import GENERIC_DENY_MESSAGE
from ...core.exceptions import DependencyUnavailableError
from .entities.authorization import (
    AuthorizationDecision,
    AuthorizationRequest,
    PrincipalContext,
    TargetOwnership,
)
from .services.authorization_engine import AuthorizationEngine

logger = logging.getLogger(__name__)

TargetLoader = Callable[[Request], Awaitable[Optional[TargetOwnership]]]


class AuthorizationDependencyError(HTTPException):
    """Base exception for authorization dependencies."""

    def __init__(self, detail: str = GENERIC_DENY_MESSAGE, status_code: int = status.HTTP_403_FORBIDDEN):
        super().__init__(status_code=status_code, detail=detail)


class AuthorizationDependencies:
    """FastAPI authorization dependencies factory.

    ``get_principal`` is the application's own dependency resolving the
    authenticated caller into a PrincipalContext.
    """

    def __init__(self, engine: AuthorizationEngine, get_principal: Callable[..., Any]):
        self.engine = engine
        self.get_principal = get_principal

    async def _decide(
        self,
        check: Callable[[AuthorizationRequest], Awaitable[AuthorizationDecision]],
        request: AuthorizationRequest
    ) -> AuthorizationDecision:
        try:
            decision = await check(request)
        except DependencyUnavailableError as e:
            logger.error(f"Authorization unavailable for {request.permission_id}: {e}")
            raise AuthorizationDependencyError(
                "Authorization service unavailable",
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE
            )

        if not decision.allowed:
            logger.warning(
                f"Person {request.principal_id} denied {request.permission_id} "
                f"in tenant {request.tenant_id}: {decision.deny_reason.value}"
            )
            raise AuthorizationDependencyError(decision.public_message)
        return decision

    def require_permission(self, permission: str):
        """Require a basic permission in the caller's tenant."""
        self.engine.permission_catalog.get(permission)

        async def dependency(
            principal: Annotated[PrincipalContext, Depends(self.get_principal)]
        ) -> AuthorizationDecision:
            return await self._decide(
                self.engine.check_permission,
                AuthorizationRequest(
                    principal_id=principal.person_id,
                    tenant_id=principal.tenant_id,
                    permission=permission,
                    company_id=principal.company_id,
                    department_id=principal.department_id,
                ),
            )

        return dependency

    def require_advanced_permission(
        self,
        resource: str,
        action: str,
        target_loader: Optional[TargetLoader] = None
    ):
        """Require a resource/action grant; the decision carries the visible fields.

        ``target_loader`` resolves the ownership of the record the route acts
        on; without one the check is collection-level and the caller applies
        ``matched_scope`` to its query.
        """
        self.engine.permission_catalog.resource_spec(resource)

        async def dependency(
            request: Request,
            principal: Annotated[PrincipalContext, Depends(self.get_principal)]
        ) -> AuthorizationDecision:
            target = await target_loader(request) if target_loader is not None else None
            return await self._decide(
                self.engine.check_advanced_permission,
                AuthorizationRequest(
                    principal_id=principal.person_id,
                    tenant_id=principal.tenant_id,
                    resource=resource,
                    action=action,
                    target=target,
                    company_id=principal.company_id,
                    department_id=principal.department_id,
                ),
            )

        return dependency

    def require_hierarchy_manager(self):
        """Require a caller whose highest role may restructure the hierarchy."""

        async def dependency(
            principal: Annotated[PrincipalContext, Depends(self.get_principal)]
        ) -> PrincipalContext:
            try:
                allowed = await self.engine.can_manage_hierarchy(principal.person_id, principal.tenant_id)
            except DependencyUnavailableError as e:
                logger.error(f"Authorization unavailable resolving highest role: {e}")
                raise AuthorizationDependencyError(
                    "Authorization service unavailable",
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE
                )
            if not allowed:
                logger.warning(f"Person {principal.person_id} cannot manage the role hierarchy")
                raise AuthorizationDependencyError()
            return principal

        return dependency
