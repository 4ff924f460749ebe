"""
In-process publish/subscribe client.

Registration is reference counted per topic so that two widgets bound to
the same topic can each subscribe and unsubscribe independently.
Published messages are handed to listeners (typically a WidgetSession's
``deliver``) only for topics that currently have subscribers.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[[str, Any], Any]


class InMemoryPubSub:
    """
    Minimal PubSubClient implementation.

    Example:
        pubsub = InMemoryPubSub()
        pubsub.add_listener(session.deliver)
        pubsub.subscribe("orders")
        pubsub.publish("orders", {"id": 1})
    """

    def __init__(self) -> None:
        self._subscriptions: Counter[str] = Counter()
        self._listeners: list[Listener] = []
        self.history: list[tuple[str, str]] = []

    def subscribe(self, topic: str) -> None:
        self._subscriptions[topic] += 1
        self.history.append(("subscribe", topic))
        logger.debug(f"[pubsub] subscribe {topic} (count={self._subscriptions[topic]})")

    def unsubscribe(self, topic: str) -> None:
        if self._subscriptions[topic] <= 0:
            logger.warning(f"[pubsub] unsubscribe from inactive topic: {topic}")
            return
        self._subscriptions[topic] -= 1
        if self._subscriptions[topic] == 0:
            del self._subscriptions[topic]
        self.history.append(("unsubscribe", topic))
        logger.debug(f"[pubsub] unsubscribe {topic}")

    def is_subscribed(self, topic: str) -> bool:
        return self._subscriptions[topic] > 0

    def subscriber_count(self, topic: str) -> int:
        return self._subscriptions[topic]

    @property
    def topics(self) -> list[str]:
        return [topic for topic, count in self._subscriptions.items() if count > 0]

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def publish(self, topic: str, message: Any) -> int:
        """
        Hand a message to listeners.

        Returns:
            Number of listeners notified (0 if the topic has no subscribers)
        """
        if not self.is_subscribed(topic):
            logger.debug(f"[pubsub] dropped message for {topic}: no subscribers")
            return 0
        for listener in self._listeners:
            listener(topic, message)
        return len(self._listeners)
