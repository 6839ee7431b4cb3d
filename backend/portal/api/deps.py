"""Shared dependencies for API endpoints.

Local-first mode uses DEFAULT_PRINCIPAL_ID; hosted mode validates the JWT
from the session cookie. Every authenticated request gets its own
PortalSession, closed when the response is done.
Tests swap the store and identity provider via dependency_overrides.
"""

from collections.abc import AsyncIterator
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status

from portal.core.auth import decode_jwt
from portal.core.config import settings
from portal.core.errors import AdminRequiredError, EmployeeRequiredError
from portal.models.principal import Principal
from portal.providers.config import ProviderConfig
from portal.providers.document_store.base import DocumentStore
from portal.providers.factory import (
    get_document_store,
    get_identity_provider,
    get_provider_config,
)
from portal.providers.identity.base import IdentityProvider
from portal.services.portal_session import PortalSession

# Generic 401 detail, identical for every failure.
# Never say why auth failed (expired, bad signature, missing sub).
_UNAUTHORIZED_DETAIL = {
    "code": "UNAUTHORIZED",
    "message": "Authentication required",
}


def get_store() -> DocumentStore:
    return get_document_store()


def get_identity() -> IdentityProvider:
    return get_identity_provider()


def get_config() -> ProviderConfig:
    return get_provider_config()


Store = Annotated[DocumentStore, Depends(get_store)]
Identity = Annotated[IdentityProvider, Depends(get_identity)]
Config = Annotated[ProviderConfig, Depends(get_config)]


async def get_current_principal(request: Request) -> Principal:
    """Get the current principal from auth context.

    Validates the JWT from the httpOnly cookie when auth is enabled, falls
    back to DEFAULT_PRINCIPAL_ID when it is disabled.

    Args:
        request: HTTP request (injected by FastAPI).

    Returns:
        The authenticated principal.

    Raises:
        HTTPException: 401 for any auth failure.
    """
    if not settings.auth_enabled:
        # Local-first mode: use DEFAULT_PRINCIPAL_ID from environment
        if settings.default_principal_id is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=_UNAUTHORIZED_DETAIL,
            )
        return Principal(
            id=settings.default_principal_id,
            email=settings.default_principal_email,
            display_name=settings.default_principal_name,
        )

    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=_UNAUTHORIZED_DETAIL,
        )

    try:
        payload = decode_jwt(token)
        principal_id = payload["sub"]
    except (jwt.InvalidTokenError, KeyError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=_UNAUTHORIZED_DETAIL,
        ) from exc

    if not isinstance(principal_id, str) or not principal_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=_UNAUTHORIZED_DETAIL,
        )

    return Principal(
        id=principal_id,
        email=str(payload.get("email") or ""),
        display_name=str(payload.get("name") or ""),
    )


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


async def get_portal_session(
    principal: CurrentPrincipal,
    store: Store,
    identity: Identity,
    config: Config,
) -> AsyncIterator[PortalSession]:
    """Open a PortalSession for the request and close it afterwards.

    Opening resolves the role, so administrators never touch onboarding
    state and employees get their profile bootstrapped.
    """
    session = await PortalSession.open(store, identity, principal, config)
    try:
        yield session
    finally:
        await session.close()


Session = Annotated[PortalSession, Depends(get_portal_session)]


async def require_admin(session: Session) -> Principal:
    """Allow administrators only.

    Raises:
        AdminRequiredError: Principal resolved to employee.
    """
    if not session.is_admin:
        raise AdminRequiredError()
    return session.principal


async def require_employee(session: Session) -> PortalSession:
    """Allow employees only.

    Raises:
        EmployeeRequiredError: Principal resolved to administrator.
    """
    if session.is_admin:
        raise EmployeeRequiredError()
    return session


# Reusable type aliases for dependency injection
AdminPrincipal = Annotated[Principal, Depends(require_admin)]
EmployeeSession = Annotated[PortalSession, Depends(require_employee)]
