"""Publish/subscribe registry for monitor notifications."""

import logging
import threading
from collections.abc import Callable
from itertools import count
from typing import Any

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class Subscription:
    """Handle returned by ``NotificationHub.subscribe``; cancel to detach."""

    def __init__(self, hub: "NotificationHub", topic: str, token: int, handler: Handler):
        self._hub = hub
        self.topic = topic
        self.token = token
        self.handler = handler

    @property
    def active(self) -> bool:
        return self._hub.is_subscribed(self)

    def cancel(self) -> None:
        self._hub.unsubscribe(self)


class NotificationHub:
    """Synchronous fan-out of notifications to every subscriber of a topic.

    Handlers run on the publishing thread in subscription order. A failing
    handler is logged and skipped; the remaining subscribers still receive
    the notification.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, dict[int, Handler]] = {}
        self._tokens = count(1)
        self._lock = threading.Lock()

    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        with self._lock:
            token = next(self._tokens)
            self._subscribers.setdefault(topic, {})[token] = handler
        return Subscription(self, topic, token, handler)

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.get(subscription.topic, {}).pop(subscription.token, None)

    def is_subscribed(self, subscription: Subscription) -> bool:
        with self._lock:
            return subscription.token in self._subscribers.get(subscription.topic, {})

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._subscribers.get(topic, {}))

    def publish(self, topic: str, payload: Any) -> int:
        """Deliver ``payload`` to all subscribers of ``topic``.

        Returns:
            Number of handlers that completed without raising.
        """
        with self._lock:
            handlers = list(self._subscribers.get(topic, {}).values())

        delivered = 0
        for handler in handlers:
            try:
                handler(payload)
                delivered += 1
            except Exception:
                # Subscriber code is outside our control
                logger.exception(f"Subscriber for '{topic}' raised")
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()
