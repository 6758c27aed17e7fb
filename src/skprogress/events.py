"""
In-process publish/subscribe for sign-in and sync notifications.

Topic-based, glob-pattern subscriptions, synchronous delivery.
The identity resolver publishes; the sync orchestrator subscribes
once, however many times the host app re-evaluates its state.

Usage:
    bus = EventBus()
    bus.subscribe("identity.*", on_identity)
    bus.publish("identity.changed", {"identity": None, "ready": True})
"""

from __future__ import annotations

import fnmatch
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, Field

logger = logging.getLogger("skprogress.events")

IDENTITY_CHANGED = "identity.changed"
SYNC_COMPLETED = "sync.completed"


class TopicMessage(BaseModel):
    """A single published message on a topic."""

    message_id: str = Field(default_factory=lambda: str(uuid.uuid4())[:12])
    topic: str
    payload: dict[str, Any] = Field(default_factory=dict)
    published_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EventBus:
    """Synchronous topic bus with glob-pattern subscriptions."""

    def __init__(self) -> None:
        self._callbacks: dict[str, list[Callable[[TopicMessage], None]]] = {}

    def subscribe(self, pattern: str, callback: Callable[[TopicMessage], None]) -> None:
        """Register a callback for topics matching ``pattern``.

        Registering the same callback twice for a pattern is a no-op.

        Args:
            pattern: Topic name or glob pattern (e.g. 'identity.*').
            callback: Called with each matching TopicMessage.
        """
        callbacks = self._callbacks.setdefault(pattern, [])
        if callback in callbacks:
            return
        callbacks.append(callback)
        logger.debug("Subscribed to '%s'", pattern)

    def unsubscribe(self, pattern: str, callback: Callable[[TopicMessage], None]) -> bool:
        """Remove a callback.

        Returns:
            True if the callback was registered and has been removed.
        """
        callbacks = self._callbacks.get(pattern, [])
        if callback not in callbacks:
            return False
        callbacks.remove(callback)
        if not callbacks:
            del self._callbacks[pattern]
        return True

    def publish(self, topic: str, payload: dict[str, Any]) -> TopicMessage:
        """Deliver a message to every matching subscriber.

        A failing subscriber is logged and does not stop delivery
        to the others or reach the publisher.

        Returns:
            The published TopicMessage.
        """
        msg = TopicMessage(topic=topic, payload=payload)
        delivered = 0
        for pattern, callbacks in list(self._callbacks.items()):
            if not fnmatch.fnmatch(topic, pattern):
                continue
            for cb in list(callbacks):
                try:
                    cb(msg)
                    delivered += 1
                except Exception as exc:
                    logger.error(
                        "Callback error for '%s' on '%s': %s",
                        pattern, topic, exc,
                    )
        logger.debug("Published '%s' to %d subscriber(s)", topic, delivered)
        return msg

    def subscriber_count(self, topic: str) -> int:
        """Number of callbacks that a publish on ``topic`` would reach."""
        return sum(
            len(cbs) for pattern, cbs in self._callbacks.items()
            if fnmatch.fnmatch(topic, pattern)
        )
