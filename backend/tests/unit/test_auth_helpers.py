"""Tests for auth helper functions.

JWT creation and verification, cookie management, password validation and
bcrypt hashing.
"""

from datetime import timedelta
from unittest.mock import Mock, patch

import bcrypt
import jwt
import pytest
from pydantic import SecretStr

from portal.core.auth import (
    DUMMY_HASH,
    JWT_AUDIENCE,
    clear_auth_cookie,
    create_jwt,
    decode_jwt,
    hash_password,
    set_auth_cookie,
    validate_password_strength,
    verify_password,
)
from portal.core.config import settings
from portal.core.errors import ValidationError

# Test-only secret for JWT tests
_TEST_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow

_PRINCIPAL_ID = "principal-ana"


@pytest.fixture
def auth_secret():
    original = settings.auth_secret
    settings.auth_secret = SecretStr(_TEST_SECRET)
    yield _TEST_SECRET
    settings.auth_secret = original


class TestCreateJwt:
    """Tests for create_jwt() helper."""

    def test_returns_decodable_jwt(self):
        """JWT can be decoded with the same secret."""
        token = create_jwt(principal_id=_PRINCIPAL_ID, secret=_TEST_SECRET)
        payload = jwt.decode(
            token,
            _TEST_SECRET,
            algorithms=["HS256"],
            audience=JWT_AUDIENCE,
            issuer=settings.auth_issuer,
        )
        assert payload["sub"] == _PRINCIPAL_ID

    def test_contains_required_claims(self):
        """JWT has sub, aud, iss, exp, iat claims."""
        token = create_jwt(principal_id=_PRINCIPAL_ID, secret=_TEST_SECRET)
        payload = jwt.decode(token, options={"verify_signature": False})
        for claim in ("sub", "aud", "iss", "exp", "iat"):
            assert claim in payload, f"Missing claim: {claim}"

    def test_optional_profile_claims(self):
        token = create_jwt(
            principal_id=_PRINCIPAL_ID,
            secret=_TEST_SECRET,
            email="ana@example.com",
            name="Ana Lopez",
        )
        payload = jwt.decode(token, options={"verify_signature": False})
        assert payload["email"] == "ana@example.com"
        assert payload["name"] == "Ana Lopez"

    def test_profile_claims_omitted_when_not_given(self):
        token = create_jwt(principal_id=_PRINCIPAL_ID, secret=_TEST_SECRET)
        payload = jwt.decode(token, options={"verify_signature": False})
        assert "email" not in payload
        assert "name" not in payload

    def test_default_expiration_one_hour(self):
        token = create_jwt(principal_id=_PRINCIPAL_ID, secret=_TEST_SECRET)
        payload = jwt.decode(token, options={"verify_signature": False})
        assert payload["exp"] - payload["iat"] == 3600


class TestDecodeJwt:
    def test_round_trip(self, auth_secret):
        token = create_jwt(principal_id=_PRINCIPAL_ID, secret=auth_secret)

        assert decode_jwt(token)["sub"] == _PRINCIPAL_ID

    def test_rejects_wrong_secret(self, auth_secret):
        token = create_jwt(principal_id=_PRINCIPAL_ID, secret="x" * 40)

        with pytest.raises(jwt.InvalidSignatureError):
            decode_jwt(token)

    def test_rejects_expired(self, auth_secret):
        token = create_jwt(
            principal_id=_PRINCIPAL_ID,
            secret=auth_secret,
            expires_delta=timedelta(seconds=-10),
        )

        with pytest.raises(jwt.ExpiredSignatureError):
            decode_jwt(token)

    def test_rejects_wrong_audience(self, auth_secret):
        token = jwt.encode(
            {"sub": _PRINCIPAL_ID, "aud": "someone-else", "iss": settings.auth_issuer},
            auth_secret,
            algorithm="HS256",
        )

        with pytest.raises(jwt.InvalidAudienceError):
            decode_jwt(token)


class TestAuthCookie:
    def test_set_cookie_flags(self):
        response = Mock()

        set_auth_cookie(response, "token-value")

        kwargs = response.set_cookie.call_args.kwargs
        assert kwargs["key"] == settings.auth_cookie_name
        assert kwargs["value"] == "token-value"
        assert kwargs["httponly"] is True
        assert kwargs["secure"] is settings.auth_cookie_secure
        assert kwargs["samesite"] == settings.auth_cookie_samesite
        assert kwargs["max_age"] == 3600

    def test_empty_domain_becomes_none(self):
        response = Mock()

        with patch.object(settings, "auth_cookie_domain", ""):
            set_auth_cookie(response, "token-value")

        assert response.set_cookie.call_args.kwargs["domain"] is None

    def test_clear_cookie(self):
        response = Mock()

        clear_auth_cookie(response)

        kwargs = response.delete_cookie.call_args.kwargs
        assert kwargs["key"] == settings.auth_cookie_name
        assert kwargs["path"] == "/"


class TestValidatePasswordStrength:
    @pytest.mark.parametrize(
        ("password", "message"),
        [
            ("Ab1!", "at least 8 characters"),
            ("A1!" + "a" * 130, "at most 128 characters"),
            ("12345678!", "at least one letter"),
            ("Password!", "at least one number"),
            ("Password1", "at least one special character"),
        ],
    )
    def test_rejects_weak_passwords(self, password, message):
        with pytest.raises(ValidationError) as exc_info:
            validate_password_strength(password)

        assert message in exc_info.value.message
        assert exc_info.value.status_code == 400

    def test_accepts_strong_password(self):
        validate_password_strength("Str0ng!Passphrase")


class TestPasswordHashing:
    def test_hash_verifies(self):
        hashed = hash_password("Str0ng!Passphrase")

        assert verify_password("Str0ng!Passphrase", hashed) is True
        assert verify_password("wrong-password1!", hashed) is False

    def test_hash_uses_configured_rounds(self):
        hashed = hash_password("Str0ng!Passphrase")

        # bcrypt hash format: $2b$<rounds>$...
        assert hashed.split("$")[2] == f"{settings.bcrypt_rounds:02d}"

    def test_missing_hash_still_runs_bcrypt(self):
        with patch("portal.core.auth.bcrypt.checkpw", return_value=True) as checkpw:
            assert verify_password("anything", None) is False

        checkpw.assert_called_once_with(b"anything", DUMMY_HASH)

    def test_dummy_hash_is_valid_bcrypt(self):
        assert bcrypt.checkpw(b"never-matches", DUMMY_HASH) is False
