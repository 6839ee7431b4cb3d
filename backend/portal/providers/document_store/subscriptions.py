"""Disposable change subscriptions and the in-process fan-out hub."""

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from portal.providers.document_store.base import DocumentSnapshot

__all__ = ["ChangeListener", "Subscription", "SubscriptionHub"]

logger = logging.getLogger(__name__)

# Receives the new snapshot, or None when the document was deleted
ChangeListener = Callable[["DocumentSnapshot | None"], Awaitable[None]]


class Subscription:
    """Handle for a registered listener.

    unsubscribe() is idempotent. After it returns the listener receives no
    further notifications, including ones already being fanned out.
    """

    def __init__(self, on_unsubscribe: Callable[[], None]) -> None:
        self._on_unsubscribe: Callable[[], None] | None = on_unsubscribe

    @property
    def active(self) -> bool:
        return self._on_unsubscribe is not None

    def unsubscribe(self) -> None:
        if self._on_unsubscribe is None:
            return
        callback, self._on_unsubscribe = self._on_unsubscribe, None
        callback()


class _Registration:
    __slots__ = ("listener", "subscription")

    def __init__(self, listener: ChangeListener) -> None:
        self.listener = listener
        self.subscription: Subscription | None = None


class SubscriptionHub:
    """Tracks listeners per (collection, key) and fans out changes.

    Listeners are awaited one after another. A failing listener is logged
    and does not stop delivery to the others or fail the write that
    triggered the notification.
    """

    def __init__(self) -> None:
        self._listeners: dict[tuple[str, str], list[_Registration]] = {}

    def add(self, collection: str, key: str, listener: ChangeListener) -> Subscription:
        """Register a listener and return its disposable handle."""
        registration = _Registration(listener)
        self._listeners.setdefault((collection, key), []).append(registration)

        def remove() -> None:
            registrations = self._listeners.get((collection, key), [])
            if registration in registrations:
                registrations.remove(registration)
            if not registrations:
                self._listeners.pop((collection, key), None)

        registration.subscription = Subscription(remove)
        return registration.subscription

    def listener_count(self, collection: str, key: str) -> int:
        return len(self._listeners.get((collection, key), []))

    async def deliver(
        self,
        subscription: Subscription,
        listener: ChangeListener,
        snapshot: "DocumentSnapshot | None",
    ) -> None:
        """Deliver one snapshot to one listener if it is still subscribed."""
        if not subscription.active:
            return
        try:
            await listener(snapshot)
        except Exception:
            logger.exception(
                "Change listener failed",
                extra={
                    "collection": snapshot.collection if snapshot else None,
                    "key": snapshot.key if snapshot else None,
                },
            )

    async def publish(
        self,
        collection: str,
        key: str,
        snapshot: "DocumentSnapshot | None",
    ) -> None:
        """Notify every listener of (collection, key).

        Args:
            collection: Collection that changed.
            key: Document key that changed.
            snapshot: New state, or None after a delete.
        """
        for registration in list(self._listeners.get((collection, key), [])):
            if registration.subscription is None:
                continue
            await self.deliver(
                registration.subscription, registration.listener, snapshot
            )
