"""Provider factory functions.

Singleton pattern for provider instances.
"""

from portal.core.database import get_session_factory
from portal.providers.config import ProviderConfig
from portal.providers.document_store.base import DocumentStore
from portal.providers.document_store.memory_adapter import InMemoryDocumentStore
from portal.providers.document_store.sql_adapter import SqlDocumentStore
from portal.providers.identity.base import IdentityProvider
from portal.providers.identity.local_adapter import LocalIdentityProvider

_document_store: DocumentStore | None = None
_identity_provider: IdentityProvider | None = None
_config: ProviderConfig | None = None


def get_provider_config() -> ProviderConfig:
    """Get or load the provider configuration singleton."""
    global _config

    if _config is None:
        _config = ProviderConfig.from_env()
    return _config


def get_document_store(config: ProviderConfig | None = None) -> DocumentStore:
    """Get or create the document store singleton.

    Subscriptions are fanned out in-process, so every caller shares this
    one instance.

    Args:
        config: Optional provider configuration. If None and no store
            exists, loads from environment.

    Returns:
        DocumentStore instance.

    Raises:
        ValueError: If the configured store is unknown.
    """
    global _document_store

    if _document_store is None:
        if config is None:
            config = get_provider_config()

        if config.document_store == "memory":
            _document_store = InMemoryDocumentStore()
        elif config.document_store == "sql":
            _document_store = SqlDocumentStore(get_session_factory())
        else:
            raise ValueError(f"Unknown document store: {config.document_store}")

    return _document_store


def get_identity_provider(config: ProviderConfig | None = None) -> IdentityProvider:
    """Get or create the identity provider singleton.

    Args:
        config: Optional provider configuration. If None and no provider
            exists, loads from environment.

    Returns:
        IdentityProvider instance.

    Raises:
        ValueError: If the configured provider is unknown.
    """
    global _identity_provider

    if _identity_provider is None:
        if config is None:
            config = get_provider_config()

        if config.identity_provider == "local":
            _identity_provider = LocalIdentityProvider(get_document_store(config))
        else:
            raise ValueError(f"Unknown identity provider: {config.identity_provider}")

    return _identity_provider


def reset_providers() -> None:
    """Reset provider singletons.

    Used in tests to ensure isolation between test cases.
    """
    global _document_store, _identity_provider, _config
    _document_store = None
    _identity_provider = None
    _config = None
