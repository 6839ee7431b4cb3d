"""Identity provider module.

Exports:
    IdentityProvider: Abstract base class for identity providers
    Credentials, AuthChange: Sign-in input and auth-change event
    LocalIdentityProvider: Document-store-backed implementation
"""

from portal.providers.identity.base import (
    AuthChange,
    AuthChangeListener,
    Credentials,
    IdentityProvider,
)
from portal.providers.identity.local_adapter import LocalIdentityProvider

__all__ = [
    "AuthChange",
    "AuthChangeListener",
    "Credentials",
    "IdentityProvider",
    "LocalIdentityProvider",
]
