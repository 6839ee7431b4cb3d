"""Provider abstraction layer.

Exports:
    Error classes for provider error handling
    ProviderConfig for configuration
    Factory functions for provider instances
"""

from portal.providers.config import ProviderConfig
from portal.providers.errors import (
    AccountExistsError,
    IdentityError,
    InvalidCredentialsError,
    ProviderError,
    StoreError,
    TransientStoreError,
    WriteConflictError,
)
from portal.providers.factory import get_document_store, get_identity_provider

__all__ = [
    # Config
    "ProviderConfig",
    # Errors
    "ProviderError",
    "StoreError",
    "TransientStoreError",
    "WriteConflictError",
    "IdentityError",
    "InvalidCredentialsError",
    "AccountExistsError",
    # Factory
    "get_document_store",
    "get_identity_provider",
]
