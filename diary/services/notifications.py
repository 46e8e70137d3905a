"""
In-process change notifications.

Writers publish on a topic after their commit; readers subscribe and get a
Subscription token back. Delivery is synchronous in the publisher's thread
and carries no ordering guarantee relative to the writer's own response, so
subscribers must treat it as eventually consistent.

Topics
------
  day:{day_key}       entry refold or thanks increment on that day
  agreements          any agreement change
  weekly_comments     a weekly comment was stored
"""
from __future__ import annotations

import logging
import secrets
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)

Handler = Callable[["Notification"], Any]

AGREEMENTS_TOPIC = "agreements"
WEEKLY_COMMENTS_TOPIC = "weekly_comments"


def day_topic(day_key: str) -> str:
    return f"day:{day_key}"


@dataclass(frozen=True)
class Notification:
    topic: str
    payload: dict[str, Any] = field(default_factory=dict)
    published_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))


@dataclass
class Subscription:
    id: str
    topic: str
    hub: "ChangeHub" = field(repr=False)
    active: bool = True

    def cancel(self) -> None:
        self.hub.unsubscribe(self)


class ChangeHub:
    """Topic-keyed pub/sub. Thread-safe; handlers run in the publisher's thread."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[str, dict[str, Handler]] = {}

    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        sub = Subscription(id=secrets.token_hex(8), topic=topic, hub=self)
        with self._lock:
            self._handlers.setdefault(topic, {})[sub.id] = handler
        return sub

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Release a subscription. Returns False if it was already released."""
        with self._lock:
            handlers = self._handlers.get(subscription.topic, {})
            removed = handlers.pop(subscription.id, None) is not None
            if not handlers:
                self._handlers.pop(subscription.topic, None)
        subscription.active = False
        return removed

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._handlers.get(topic, {}))

    def publish(self, topic: str, payload: dict[str, Any] | None = None) -> int:
        """Deliver to every current subscriber. Returns how many were called."""
        notification = Notification(topic=topic, payload=payload or {})
        with self._lock:
            handlers = list(self._handlers.get(topic, {}).values())
        delivered = 0
        for handler in handlers:
            try:
                handler(notification)
            except Exception:
                # One broken subscriber must not fail the writer.
                logger.exception("Notification handler failed for topic %s", topic)
                continue
            delivered += 1
        return delivered


_hub = ChangeHub()


def get_hub() -> ChangeHub:
    return _hub
