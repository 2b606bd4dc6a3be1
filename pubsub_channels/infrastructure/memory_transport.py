"""
In-memory transport for local development and tests.

Mimics the Pub/Sub delivery model inside one process: every subscription
attached to a topic gets its own copy of each message, messages published
while a subscription has no listener wait until one registers, and a
message that is not acknowledged is redelivered up to a fixed number of
attempts before it is moved to ``dead_letters``.
"""

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Sequence

from pubsub_channels.core.domain import SubscriptionHandle, TopicHandle
from pubsub_channels.core.exceptions import ResourceNotFound, TransportError
from pubsub_channels.core.ports import MessageCallback

logger = logging.getLogger(__name__)

DEFAULT_MAX_DELIVERY_ATTEMPTS = 5


class MemoryEnvelope:
    """MessageEnvelope for in-memory delivery."""

    def __init__(self, payload: bytes, message_id: str, delivery_attempt: int = 1):
        self._payload = payload
        self.message_id = message_id
        self.delivery_attempt = delivery_attempt
        self.acked = False
        self.nacked = False

    @property
    def payload(self) -> bytes:
        return self._payload

    def acknowledge(self) -> None:
        self.acked = True

    def nack(self) -> None:
        self.nacked = True


@dataclass
class _Subscription:
    handle: SubscriptionHandle
    listeners: list[MessageCallback] = field(default_factory=list)
    pending: list[tuple[str, bytes]] = field(default_factory=list)
    turn: int = 0

    def next_listener(self) -> MessageCallback | None:
        if not self.listeners:
            return None
        listener = self.listeners[self.turn % len(self.listeners)]
        self.turn += 1
        return listener


class MemoryListener:
    """ListenerHandle for an in-memory subscription."""

    def __init__(self, transport: "InMemoryTransport", name: str, callback: MessageCallback):
        self._transport = transport
        self._name = name
        self._callback = callback

    def cancel(self) -> None:
        self._transport._remove_listener(self._name, self._callback)


class InMemoryTransport:
    """
    Thread-safe in-memory implementation of the ChannelTransport port.

    Delivery is synchronous: listeners run on the publishing thread before
    the publish call returns.
    """

    def __init__(self, max_delivery_attempts: int = DEFAULT_MAX_DELIVERY_ATTEMPTS):
        if max_delivery_attempts < 1:
            raise ValueError("max_delivery_attempts must be at least 1")
        self.max_delivery_attempts = max_delivery_attempts
        self.topics: dict[str, TopicHandle] = {}
        self.subscriptions: dict[str, _Subscription] = {}
        self.dead_letters: list[tuple[str, str, bytes]] = []
        self.closed = False
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    async def get_or_create_topic(self, name: str, auto_create: bool) -> TopicHandle:
        self._check_open()
        with self._lock:
            topic = self.topics.get(name)
            if topic is None:
                if not auto_create:
                    raise ResourceNotFound(f"Topic not found: {name}")
                topic = TopicHandle(name=name, path=f"memory://topics/{name}")
                self.topics[name] = topic
                logger.info(f"[MEMORY] Created topic {name}")
        return topic

    async def get_or_create_subscription(
        self, topic: TopicHandle, name: str, auto_create: bool
    ) -> SubscriptionHandle:
        self._check_open()
        with self._lock:
            if topic.name not in self.topics:
                raise TransportError(f"Topic was deleted: {topic.name}")
            subscription = self.subscriptions.get(name)
            if subscription is None:
                if not auto_create:
                    raise ResourceNotFound(f"Subscription not found: {name}")
                handle = SubscriptionHandle(
                    name=name, path=f"memory://subscriptions/{name}", topic=topic
                )
                subscription = _Subscription(handle=handle)
                self.subscriptions[name] = subscription
                logger.info(f"[MEMORY] Created subscription {name} on {topic.name}")
        return subscription.handle

    async def publish_to_topic(self, topic: TopicHandle, data: bytes) -> str:
        self._check_open()
        with self._lock:
            if topic.name not in self.topics:
                raise TransportError(f"Topic was deleted: {topic.name}")
            message_id = str(next(self._ids))
            targets = [
                s for s in self.subscriptions.values() if s.handle.topic.name == topic.name
            ]

        logger.debug(f"[MEMORY PUB] {topic.name} #{message_id}: {data[:80]!r}")
        for subscription in targets:
            self._deliver(subscription, message_id, data)
        return message_id

    async def publish_batch(
        self, topic: TopicHandle, payloads: Sequence[bytes]
    ) -> list[str]:
        return [await self.publish_to_topic(topic, data) for data in payloads]

    async def listen(
        self, subscription: SubscriptionHandle, on_message: MessageCallback
    ) -> MemoryListener:
        self._check_open()
        with self._lock:
            state = self.subscriptions.get(subscription.name)
            if state is None:
                raise TransportError(f"Subscription was deleted: {subscription.name}")
            state.listeners.append(on_message)
            backlog, state.pending = state.pending, []

        logger.info(f"[MEMORY SUB] Listening on {subscription.name}")
        for message_id, data in backlog:
            self._deliver(state, message_id, data)
        return MemoryListener(self, subscription.name, on_message)

    def delete_topic(self, name: str) -> None:
        """Remove a topic, as if deleted out of band."""
        with self._lock:
            self.topics.pop(name, None)

    def close(self) -> None:
        with self._lock:
            for subscription in self.subscriptions.values():
                subscription.listeners.clear()
        self.closed = True

    def _deliver(self, subscription: _Subscription, message_id: str, data: bytes) -> None:
        name = subscription.handle.name
        for attempt in range(1, self.max_delivery_attempts + 1):
            with self._lock:
                listener = subscription.next_listener()
                if listener is None:
                    subscription.pending.append((message_id, data))
                    return

            envelope = MemoryEnvelope(data, message_id, attempt)
            try:
                listener(envelope)
            except Exception as e:
                logger.error(f"[MEMORY ERROR] {name} #{message_id}: {e}")

            if envelope.acked:
                return

        logger.warning(
            f"[MEMORY] Message #{message_id} on {name} dead-lettered "
            f"after {self.max_delivery_attempts} attempts"
        )
        self.dead_letters.append((name, message_id, data))

    def _remove_listener(self, name: str, callback: MessageCallback) -> None:
        with self._lock:
            subscription = self.subscriptions.get(name)
            if subscription is not None and callback in subscription.listeners:
                subscription.listeners.remove(callback)

    def _check_open(self) -> None:
        if self.closed:
            raise TransportError("Transport is closed")
