"""Abstract base class and types for identity providers.

The identity provider authenticates a principal and reports sign-in and
sign-out events. This system never stores credentials outside it.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from portal.models.principal import Principal
from portal.providers.document_store.subscriptions import Subscription


@dataclass(frozen=True)
class Credentials:
    """Email/password pair submitted at sign-in."""

    email: str
    password: str


@dataclass(frozen=True)
class AuthChange:
    """Auth state transition for one principal.

    Attributes:
        principal_id: Whose state changed.
        principal: The signed-in principal, or None after sign-out.
    """

    principal_id: str
    principal: Principal | None


AuthChangeListener = Callable[[AuthChange], Awaitable[None]]


class IdentityProvider(ABC):
    """Abstract base class for identity providers."""

    @abstractmethod
    async def sign_in(self, credentials: Credentials) -> Principal:
        """Authenticate and return the principal.

        Raises:
            InvalidCredentialsError: Email/password did not match.
        """
        ...

    @abstractmethod
    async def sign_out(self, principal_id: str) -> None:
        """End the principal's session and notify listeners with None."""
        ...

    @abstractmethod
    def on_auth_change(self, listener: AuthChangeListener) -> Subscription:
        """Register for sign-in/sign-out events.

        Returns:
            Disposable subscription handle.
        """
        ...
