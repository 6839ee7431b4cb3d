"""PostgreSQL document store.

Documents live in one JSONB table (see StoredDocument). Versioned writes
lock the row with SELECT ... FOR UPDATE so the compare-and-set is atomic.
Change notifications are fanned out in-process, so subscribers see writes
made through this process only.
"""

import logging
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from portal.models.base import Base
from portal.models.stored_document import StoredDocument
from portal.providers.document_store.base import (
    MUST_NOT_EXIST,
    DocumentSnapshot,
    DocumentStore,
    deep_merge,
)
from portal.providers.document_store.subscriptions import (
    ChangeListener,
    Subscription,
    SubscriptionHub,
)
from portal.providers.errors import TransientStoreError, WriteConflictError

logger = logging.getLogger(__name__)


def _nest(path: str, value: Any) -> dict[str, Any]:
    """Turn "a.b" = v into {"a": {"b": v}} for JSONB containment."""
    result: Any = value
    for part in reversed(path.split(".")):
        result = {part: result}
    return result


def _snapshot(row: StoredDocument) -> DocumentSnapshot:
    return DocumentSnapshot(
        collection=row.collection,
        key=row.key,
        data=dict(row.data),
        version=row.version,
    )


class SqlDocumentStore(DocumentStore):
    """Document store backed by SQLAlchemy asyncio + asyncpg."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory
        self._hub = SubscriptionHub()

    async def create_schema(self) -> None:
        """Create the documents table if missing."""
        async with self._session_factory() as session:
            connection = await session.connection()
            await connection.run_sync(Base.metadata.create_all)
            await session.commit()

    async def get_document(self, collection: str, key: str) -> DocumentSnapshot | None:
        try:
            async with self._session_factory() as session:
                row = await session.get(StoredDocument, (collection, key))
                return _snapshot(row) if row is not None else None
        except (OperationalError, OSError) as exc:
            raise TransientStoreError(str(exc)) from exc

    async def set_document(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
        expected_version: int | None = None,
    ) -> DocumentSnapshot:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(StoredDocument)
                    .where(
                        StoredDocument.collection == collection,
                        StoredDocument.key == key,
                    )
                    .with_for_update()
                )
                row = result.scalar_one_or_none()
                self._check_version(collection, key, row, expected_version)

                if row is None:
                    row = StoredDocument(
                        collection=collection, key=key, data=data, version=1
                    )
                    session.add(row)
                else:
                    row.data = deep_merge(row.data, data) if merge else data
                    row.version = row.version + 1

                await session.flush()
                snapshot = _snapshot(row)
                await session.commit()
        except IntegrityError as exc:
            # Concurrent insert of the same key won the race
            raise WriteConflictError(collection, key, expected_version, None) from exc
        except (OperationalError, OSError) as exc:
            raise TransientStoreError(str(exc)) from exc
        except DBAPIError as exc:
            if exc.connection_invalidated:
                raise TransientStoreError(str(exc)) from exc
            raise

        await self._hub.publish(collection, key, snapshot)
        return snapshot

    async def delete_document(
        self,
        collection: str,
        key: str,
        *,
        expected_version: int | None = None,
    ) -> bool:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(StoredDocument)
                    .where(
                        StoredDocument.collection == collection,
                        StoredDocument.key == key,
                    )
                    .with_for_update()
                )
                row = result.scalar_one_or_none()
                self._check_version(collection, key, row, expected_version)
                if row is None:
                    return False
                await session.execute(
                    delete(StoredDocument).where(
                        StoredDocument.collection == collection,
                        StoredDocument.key == key,
                    )
                )
                await session.commit()
        except (OperationalError, OSError) as exc:
            raise TransientStoreError(str(exc)) from exc

        await self._hub.publish(collection, key, None)
        return True

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
    ) -> list[DocumentSnapshot]:
        stmt = select(StoredDocument).where(StoredDocument.collection == collection)
        for path, value in (filters or {}).items():
            stmt = stmt.where(StoredDocument.data.contains(_nest(path, value)))
        stmt = stmt.order_by(StoredDocument.key)

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [_snapshot(row) for row in result.scalars().all()]
        except (OperationalError, OSError) as exc:
            raise TransientStoreError(str(exc)) from exc

    async def subscribe(
        self,
        collection: str,
        key: str,
        listener: ChangeListener,
    ) -> Subscription:
        subscription = self._hub.add(collection, key, listener)
        await self._hub.deliver(
            subscription, listener, await self.get_document(collection, key)
        )
        return subscription

    @staticmethod
    def _check_version(
        collection: str,
        key: str,
        row: StoredDocument | None,
        expected_version: int | None,
    ) -> None:
        if expected_version is None:
            return
        actual = row.version if row is not None else None
        if expected_version == MUST_NOT_EXIST:
            if row is not None:
                raise WriteConflictError(collection, key, expected_version, actual)
        elif actual != expected_version:
            logger.info(
                "Version mismatch",
                extra={"collection": collection, "key": key, "expected": expected_version},
            )
            raise WriteConflictError(collection, key, expected_version, actual)
