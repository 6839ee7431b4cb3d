"""Row backing the SQL document store.

One table holds every collection. Documents are JSONB blobs with a
monotonically increasing version used for optimistic concurrency.
"""

from typing import Any

from sqlalchemy import Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from portal.models.base import Base, TimestampMixin


class StoredDocument(Base, TimestampMixin):
    """A keyed JSON document.

    Attributes:
        collection: Collection name (e.g. "profiles").
        key: Document key within the collection.
        data: Document body.
        version: Starts at 1, incremented on every write.
    """

    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_data_gin", "data", postgresql_using="gin"),
    )

    collection: Mapped[str] = mapped_column(String(64), primary_key=True)
    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
