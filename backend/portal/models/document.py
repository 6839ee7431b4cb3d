"""Shared base for documents persisted in the document store.

Documents are pydantic models serialized to plain JSON dicts. Unknown keys
are ignored on read so older documents with extra fields still load.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


class DocumentModel(BaseModel):
    """Base class for store documents."""

    model_config = ConfigDict(extra="ignore")

    def to_document(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict for the document store."""
        return self.model_dump(mode="json")


@dataclass(frozen=True)
class Versioned(Generic[T]):
    """A document value together with the store version it was read at.

    Attributes:
        value: Parsed document.
        version: Store version, used as expected_version on the next write.
    """

    value: T
    version: int
