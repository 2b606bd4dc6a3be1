"""
Port definitions (interfaces) for the channel adapter.

Ports define the contracts between the adapter core and message transports.
Infrastructure adapters implement these ports.
"""

from typing import Callable, Protocol, Sequence

from pubsub_channels.core.domain import SubscriptionHandle, TopicHandle


class MessageEnvelope(Protocol):
    """
    A delivered message plus its acknowledgment capability.

    Implemented by each transport around its native message type.
    """

    @property
    def payload(self) -> bytes:
        """Raw payload bytes as received from the transport."""
        ...

    def acknowledge(self) -> None:
        """Confirm the message was processed so it is not redelivered."""
        ...

    def nack(self) -> None:
        """Release the message back to the transport for redelivery."""
        ...


class ListenerHandle(Protocol):
    """Registration returned by ``ChannelTransport.listen``."""

    def cancel(self) -> None:
        """Stop delivering messages to the listener."""
        ...


MessageCallback = Callable[[MessageEnvelope], None]


class ChannelTransport(Protocol):
    """
    Port (interface) for the underlying message transport.

    This is implemented by infrastructure adapters (e.g., GooglePubSubTransport).
    The core depends on this interface, not on concrete SDK clients.

    Implementations raise ``ResourceNotFound`` when a resource is absent and
    ``auto_create`` is False. Any other exception is wrapped as
    ``TransportError`` by the resolver or adapter.
    """

    async def get_or_create_topic(self, name: str, auto_create: bool) -> TopicHandle:
        """
        Get the topic for a channel, creating it if allowed.

        Args:
            name: Channel name
            auto_create: Create the topic when it does not exist

        Returns:
            Handle to the topic
        """
        ...

    async def get_or_create_subscription(
        self, topic: TopicHandle, name: str, auto_create: bool
    ) -> SubscriptionHandle:
        """
        Get a named subscription under a topic, creating it if allowed.

        Args:
            topic: Topic the subscription belongs to
            name: Subscription name
            auto_create: Create the subscription when it does not exist

        Returns:
            Handle to the subscription
        """
        ...

    async def publish_to_topic(self, topic: TopicHandle, data: bytes) -> str:
        """Publish one encoded payload and return the transport's message ID."""
        ...

    async def publish_batch(
        self, topic: TopicHandle, payloads: Sequence[bytes]
    ) -> list[str]:
        """Publish encoded payloads in order and return order-aligned message IDs."""
        ...

    async def listen(
        self, subscription: SubscriptionHandle, on_message: MessageCallback
    ) -> ListenerHandle:
        """
        Register a callback for messages on a subscription.

        Returns once the registration succeeded. The callback may be invoked
        from a transport-owned thread.
        """
        ...

    def close(self) -> None:
        """Close the transport and cleanup resources."""
        ...
