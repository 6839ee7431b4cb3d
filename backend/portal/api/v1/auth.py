"""Authentication endpoints for password-based auth.

register, sign-in, sign-out and me. Credentials are held by the identity
provider; this router only issues and clears the session cookie.

Security considerations:
- sign-in: constant-time comparison via DUMMY_HASH prevents user enumeration
- register: bcrypt at the configured cost, email uniqueness
"""

import structlog
from fastapi import APIRouter, Request, Response
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from portal.api.deps import CurrentPrincipal, Identity, Store
from portal.core.auth import (
    clear_auth_cookie,
    create_jwt,
    set_auth_cookie,
    validate_password_strength,
)
from portal.core.config import settings
from portal.core.errors import APIError, ConflictError, UnauthorizedError
from portal.core.rate_limiting import limiter
from portal.core.responses import DataResponse
from portal.models.principal import Principal
from portal.providers.errors import AccountExistsError, InvalidCredentialsError
from portal.providers.identity.base import Credentials
from portal.providers.identity.local_adapter import LocalIdentityProvider
from portal.services.role_resolver import is_admin

logger = structlog.get_logger()

router = APIRouter()


# ===================================================================
# Request models
# ===================================================================


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    display_name: str = Field(default="", max_length=200)


class SignInRequest(BaseModel):
    """Request body for POST /auth/sign-in."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


def _principal_data(principal: Principal) -> dict:
    return {
        "id": principal.id,
        "email": principal.email,
        "display_name": principal.display_name,
    }


def _issue_session(response: Response, principal: Principal) -> None:
    token = create_jwt(
        principal_id=principal.id,
        secret=settings.auth_secret.get_secret_value(),
        email=principal.email,
        name=principal.display_name,
    )
    set_auth_cookie(response, token)


# ===================================================================
# POST /auth/register
# ===================================================================


@router.post("/register", status_code=201)
@limiter.limit("3/hour")
async def register(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: RegisterRequest,
    response: Response,
    identity: Identity,
) -> DataResponse[dict]:
    """Create an account and sign it in.

    Rate limit: 3 per hour per IP.
    """
    if not isinstance(identity, LocalIdentityProvider):
        raise APIError(
            code="REGISTRATION_UNAVAILABLE",
            message="Accounts are managed by the external identity provider",
            status_code=404,
        )

    validate_password_strength(body.password)

    try:
        principal = await identity.register(
            email=body.email,
            password=body.password,
            display_name=body.display_name.strip(),
        )
    except AccountExistsError as exc:
        raise ConflictError(
            code="EMAIL_ALREADY_EXISTS",
            message="Email already registered",
        ) from exc

    _issue_session(response, principal)
    logger.info("Principal registered", principal_id=principal.id)
    return DataResponse(data=_principal_data(principal))


# ===================================================================
# POST /auth/sign-in
# ===================================================================


@router.post("/sign-in")
@limiter.limit(settings.rate_limit_sign_in)
async def sign_in(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: SignInRequest,
    response: Response,
    identity: Identity,
) -> DataResponse[dict]:
    """Verify email + password and issue the JWT cookie.

    Rate limit: RATE_LIMIT_SIGN_IN per IP.
    """
    try:
        principal = await identity.sign_in(
            Credentials(email=body.email, password=body.password)
        )
    except InvalidCredentialsError as exc:
        raise UnauthorizedError("Invalid email or password") from exc

    _issue_session(response, principal)
    return DataResponse(data=_principal_data(principal))


# ===================================================================
# POST /auth/sign-out
# ===================================================================


@router.post("/sign-out")
async def sign_out(
    response: Response,
    principal: CurrentPrincipal,
    identity: Identity,
) -> DataResponse[dict]:
    """Clear the session cookie and notify open portal sessions."""
    await identity.sign_out(principal.id)
    clear_auth_cookie(response)
    return DataResponse(data={"message": "Signed out"})


# ===================================================================
# GET /auth/me
# ===================================================================


@router.get("/me")
async def me(
    principal: CurrentPrincipal,
    store: Store,
) -> DataResponse[dict]:
    """Current principal and role, without touching onboarding state."""
    admin = await is_admin(store, principal)
    return DataResponse(
        data={
            **_principal_data(principal),
            "role": "admin" if admin else "employee",
        }
    )
