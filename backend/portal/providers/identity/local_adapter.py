"""Local identity provider.

Email/password accounts kept in the document store's "credentials"
collection, keyed by lowercased email, with bcrypt hashes.
"""

import logging
import uuid

from portal.core.auth import hash_password, verify_password
from portal.models.document import utc_now
from portal.models.principal import Principal
from portal.providers.document_store.base import MUST_NOT_EXIST, DocumentStore
from portal.providers.document_store.subscriptions import Subscription
from portal.providers.errors import (
    AccountExistsError,
    InvalidCredentialsError,
    WriteConflictError,
)
from portal.providers.identity.base import (
    AuthChange,
    AuthChangeListener,
    Credentials,
    IdentityProvider,
)

logger = logging.getLogger(__name__)

CREDENTIALS_COLLECTION = "credentials"


class LocalIdentityProvider(IdentityProvider):
    """Identity provider backed by the document store."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._listeners: list[AuthChangeListener] = []

    async def register(
        self,
        *,
        email: str,
        password: str,
        display_name: str = "",
    ) -> Principal:
        """Create credentials for a new email.

        Args:
            email: Email address (stored lowercased).
            password: Plain-text password, already strength-checked.
            display_name: Optional display name.

        Returns:
            The new principal.

        Raises:
            AccountExistsError: The email already has credentials.
        """
        normalized = email.strip().lower()
        principal = Principal(
            id=str(uuid.uuid4()), email=normalized, display_name=display_name
        )
        try:
            await self._store.set_document(
                CREDENTIALS_COLLECTION,
                normalized,
                {
                    "principal_id": principal.id,
                    "email": normalized,
                    "display_name": display_name,
                    "password_hash": hash_password(password),
                    "created_at": utc_now().isoformat(),
                },
                expected_version=MUST_NOT_EXIST,
            )
        except WriteConflictError as exc:
            raise AccountExistsError(f"An account already exists for {normalized}") from exc

        logger.info("Registered principal", extra={"principal_id": principal.id})
        return principal

    async def sign_in(self, credentials: Credentials) -> Principal:
        normalized = credentials.email.strip().lower()
        snapshot = await self._store.get_document(CREDENTIALS_COLLECTION, normalized)
        stored_hash = snapshot.data.get("password_hash") if snapshot else None

        if not verify_password(credentials.password, stored_hash):
            raise InvalidCredentialsError("Invalid email or password")

        principal = Principal(
            id=snapshot.data["principal_id"],
            email=normalized,
            display_name=snapshot.data.get("display_name", ""),
        )
        await self._notify(AuthChange(principal_id=principal.id, principal=principal))
        return principal

    async def sign_out(self, principal_id: str) -> None:
        await self._notify(AuthChange(principal_id=principal_id, principal=None))

    def on_auth_change(self, listener: AuthChangeListener) -> Subscription:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(remove)

    async def _notify(self, change: AuthChange) -> None:
        for listener in list(self._listeners):
            try:
                await listener(change)
            except Exception:
                logger.exception(
                    "Auth change listener failed",
                    extra={"principal_id": change.principal_id},
                )
