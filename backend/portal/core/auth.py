"""Authentication helpers for JWT creation, cookie management, and passwords.

Pipeline:
- create_jwt / set_auth_cookie: JWT issuance for successful sign-in
- decode_jwt: shared verification used by dependencies and rate limiting
- validate_password_strength: Format rules (sync, no network)
- hash_password / verify_password: bcrypt with a configurable cost
- DUMMY_HASH: Timing-safe constant for user enumeration defense
"""

import re
from datetime import UTC, datetime, timedelta

import bcrypt
import jwt
from fastapi import Response

from portal.core.config import settings
from portal.core.errors import ValidationError

# Audience claim shared by issuance and verification
JWT_AUDIENCE = "onboarding-portal"

# Default JWT expiration: 1 hour
_DEFAULT_EXPIRATION = timedelta(hours=1)

# Pre-computed bcrypt hash for timing-safe comparison on unknown email.
# Security: prevents user enumeration via response time differences.
DUMMY_HASH = b"$2b$12$ZP2PVB8yI35X.mkRqcUPUuSzJA1CNRt4dZ7X3cyrfJu.2S3w.Qen2"


def create_jwt(
    *,
    principal_id: str,
    secret: str,
    email: str | None = None,
    name: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed JWT with standard claims.

    Args:
        principal_id: Stable principal id for the sub claim.
        secret: HMAC signing secret.
        email: Principal email, carried so requests need no provider lookup.
        name: Principal display name.
        expires_delta: Time until expiration. Defaults to 1 hour.

    Returns:
        Encoded JWT string.
    """
    now = datetime.now(UTC)
    payload = {
        "sub": principal_id,
        "aud": JWT_AUDIENCE,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or _DEFAULT_EXPIRATION),
        "iat": now,
    }
    if email is not None:
        payload["email"] = email
    if name is not None:
        payload["name"] = name
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_jwt(token: str) -> dict:
    """Decode and verify a session JWT.

    Args:
        token: Encoded JWT from the auth cookie.

    Returns:
        Verified claims.

    Raises:
        jwt.InvalidTokenError: Bad signature, expired, wrong aud/iss.
    """
    return jwt.decode(
        token,
        settings.auth_secret.get_secret_value(),
        algorithms=["HS256"],
        audience=JWT_AUDIENCE,
        issuer=settings.auth_issuer,
    )


def set_auth_cookie(response: Response, token: str) -> None:
    """Set httpOnly JWT cookie on response.

    Args:
        response: FastAPI response object.
        token: JWT token string.
    """
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        httponly=True,
        secure=settings.auth_cookie_secure,
        samesite=settings.auth_cookie_samesite,
        path="/",
        max_age=int(_DEFAULT_EXPIRATION.total_seconds()),
        domain=settings.auth_cookie_domain or None,
    )


def clear_auth_cookie(response: Response) -> None:
    """Expire the JWT cookie on sign-out."""
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        domain=settings.auth_cookie_domain or None,
        secure=settings.auth_cookie_secure,
        httponly=True,
        samesite=settings.auth_cookie_samesite,
    )


def validate_password_strength(password: str) -> None:
    """Validate password meets strength requirements.

    8-128 chars, letter + number + special character.

    Args:
        password: Plain-text password to validate.

    Raises:
        ValidationError: If password doesn't meet requirements.
    """
    if len(password) < 8:
        raise ValidationError("Password must be at least 8 characters")
    if len(password) > 128:
        raise ValidationError("Password must be at most 128 characters")
    if not re.search(r"[a-zA-Z]", password):
        raise ValidationError("Password must contain at least one letter")
    if not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one number")
    if not re.search(r"[^a-zA-Z\d]", password):
        raise ValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Hash a password with bcrypt at the configured cost."""
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a stored bcrypt hash.

    Always runs one bcrypt comparison, against DUMMY_HASH when there is no
    stored hash, so response time does not reveal whether the account exists.

    Args:
        password: Plain-text password.
        password_hash: Stored hash, or None for unknown accounts.

    Returns:
        True only when a stored hash exists and matches.
    """
    if not password_hash:
        bcrypt.checkpw(password.encode(), DUMMY_HASH)
        return False
    return bcrypt.checkpw(password.encode(), password_hash.encode())
