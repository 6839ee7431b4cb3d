"""Provider configuration management.

Centralized configuration for the document store and identity provider.
"""

import os
from dataclasses import dataclass


@dataclass
class ProviderConfig:
    """Centralized provider configuration.

    Attributes:
        document_store: Which document store to use ("memory", "sql").
        identity_provider: Which identity provider to use ("local").
        max_retries: Max retry attempts for conflicts and transient errors.
        retry_base_delay_ms: Base delay for exponential backoff.
        retry_max_delay_ms: Max delay cap for exponential backoff.
    """

    # Provider selection
    document_store: str = "memory"
    identity_provider: str = "local"

    # Retry policy
    max_retries: int = 3
    retry_base_delay_ms: int = 50
    retry_max_delay_ms: int = 2000

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        """Load configuration from environment variables.

        Returns:
            ProviderConfig instance with values from environment.
        """
        return cls(
            document_store=os.getenv("DOCUMENT_STORE", "memory"),
            identity_provider=os.getenv("IDENTITY_PROVIDER", "local"),
            max_retries=int(os.getenv("STORE_MAX_RETRIES", "3")),
            retry_base_delay_ms=int(os.getenv("STORE_RETRY_BASE_DELAY_MS", "50")),
            retry_max_delay_ms=int(os.getenv("STORE_RETRY_MAX_DELAY_MS", "2000")),
        )
