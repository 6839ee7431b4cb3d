"""Tests for the local email/password identity provider."""

import pytest

from portal.providers.errors import AccountExistsError, InvalidCredentialsError
from portal.providers.identity.base import AuthChange, Credentials
from portal.providers.identity.local_adapter import CREDENTIALS_COLLECTION

_PASSWORD = "Str0ng!Passphrase"  # nosec B105


class _Events:
    def __init__(self) -> None:
        self.changes: list[AuthChange] = []

    async def __call__(self, change: AuthChange) -> None:
        self.changes.append(change)


class TestRegister:
    async def test_creates_credentials_keyed_by_lowercased_email(self, identity, store):
        principal = await identity.register(
            email=" Ana@Example.com ", password=_PASSWORD, display_name="Ana"
        )

        assert principal.email == "ana@example.com"
        assert principal.display_name == "Ana"
        snapshot = await store.get_document(CREDENTIALS_COLLECTION, "ana@example.com")
        assert snapshot.data["principal_id"] == principal.id
        assert snapshot.data["password_hash"].startswith("$2b$")
        assert _PASSWORD not in str(snapshot.data)

    async def test_duplicate_email_rejected(self, identity):
        await identity.register(email="ana@example.com", password=_PASSWORD)

        with pytest.raises(AccountExistsError):
            await identity.register(email="ANA@example.com", password=_PASSWORD)

    async def test_principal_ids_are_unique(self, identity):
        first = await identity.register(email="a@example.com", password=_PASSWORD)
        second = await identity.register(email="b@example.com", password=_PASSWORD)

        assert first.id != second.id


class TestSignIn:
    async def test_returns_registered_principal(self, identity):
        registered = await identity.register(
            email="ana@example.com", password=_PASSWORD, display_name="Ana"
        )

        principal = await identity.sign_in(Credentials("ANA@example.com ", _PASSWORD))

        assert principal == registered

    async def test_wrong_password(self, identity):
        await identity.register(email="ana@example.com", password=_PASSWORD)

        with pytest.raises(InvalidCredentialsError):
            await identity.sign_in(Credentials("ana@example.com", "Wr0ng!Passphrase"))

    async def test_unknown_email(self, identity):
        with pytest.raises(InvalidCredentialsError):
            await identity.sign_in(Credentials("nobody@example.com", _PASSWORD))


class TestAuthChanges:
    async def test_sign_in_and_out_notify(self, identity):
        events = _Events()
        identity.on_auth_change(events)
        principal = await identity.register(email="ana@example.com", password=_PASSWORD)

        await identity.sign_in(Credentials("ana@example.com", _PASSWORD))
        await identity.sign_out(principal.id)

        assert [c.principal_id for c in events.changes] == [principal.id, principal.id]
        assert events.changes[0].principal == principal
        assert events.changes[1].principal is None

    async def test_failed_sign_in_does_not_notify(self, identity):
        events = _Events()
        identity.on_auth_change(events)

        with pytest.raises(InvalidCredentialsError):
            await identity.sign_in(Credentials("nobody@example.com", _PASSWORD))

        assert events.changes == []

    async def test_unsubscribe_stops_events(self, identity):
        events = _Events()
        subscription = identity.on_auth_change(events)

        subscription.unsubscribe()
        subscription.unsubscribe()
        await identity.sign_out("principal-ana")

        assert events.changes == []

    async def test_failing_listener_does_not_block_others(self, identity, caplog):
        async def broken(change):
            raise RuntimeError("listener bug")

        events = _Events()
        identity.on_auth_change(broken)
        identity.on_auth_change(events)

        await identity.sign_out("principal-ana")

        assert len(events.changes) == 1
        assert "Auth change listener failed" in caplog.text
