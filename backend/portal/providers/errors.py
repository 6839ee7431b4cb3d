"""Provider error taxonomy.

Error classes for the document store and identity provider abstractions.
Adapters map backend-specific exceptions to these; services never see
SQLAlchemy or bcrypt exceptions.
"""


__all__ = [
    "ProviderError",
    "StoreError",
    "TransientStoreError",
    "WriteConflictError",
    "IdentityError",
    "InvalidCredentialsError",
    "AccountExistsError",
]


class ProviderError(Exception):
    """Base class for all provider errors."""

    pass


class StoreError(ProviderError):
    """Document store failure that retrying will not fix."""

    pass


class TransientStoreError(StoreError):
    """Temporary store failure (connection drop, timeout).

    Safe to retry with exponential backoff.
    """

    pass


class WriteConflictError(StoreError):
    """Optimistic concurrency check failed.

    The document changed (or appeared/disappeared) since it was read.
    Retry with a fresh read.
    """

    def __init__(
        self,
        collection: str,
        key: str,
        expected_version: int | None,
        actual_version: int | None,
    ):
        """Initialize WriteConflictError.

        Args:
            collection: Collection of the contested document.
            key: Document key.
            expected_version: Version the writer read (0 = expected absent).
            actual_version: Version found in the store (None = absent).
        """
        super().__init__(
            f"Write conflict on {collection}/{key}: "
            f"expected version {expected_version}, found {actual_version}"
        )
        self.collection = collection
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version


class IdentityError(ProviderError):
    """Base class for identity provider failures."""

    pass


class InvalidCredentialsError(IdentityError):
    """Email/password did not match. Not retryable."""

    pass


class AccountExistsError(IdentityError):
    """Registration attempted for an email that already has credentials."""

    pass
