"""
Channel adapter: the public publish/subscribe facade.

This module contains the adapter logic, independent of any specific
transport SDK. Transports are injected through the ChannelTransport port.
"""

import logging
from typing import Any, Callable, Sequence

from pubsub_channels.core.cache import TopicCache
from pubsub_channels.core.codec import PayloadCodec
from pubsub_channels.core.domain import (
    SubscriptionHandle,
    SubscriptionState,
    TopicHandle,
)
from pubsub_channels.core.exceptions import (
    ChannelAdapterError,
    MalformedPayload,
    TransportError,
)
from pubsub_channels.core.ports import ChannelTransport, ListenerHandle, MessageEnvelope
from pubsub_channels.core.resolver import ResourceResolver

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Any], None]
ErrorHandler = Callable[[Exception], None]


class ChannelSubscription:
    """
    A handler attached to a channel through this client's subscription.

    State moves UNRESOLVED -> RESOLVING -> ACTIVE and ends in CLOSED, either
    through close() or because resolution or listener setup failed.

    Delivery policy, per message:
    - payload decodes: the handler runs, then the message is acknowledged
      exactly once, even if the handler raised;
    - payload is malformed: the handler is not called and the message is
      nacked for redelivery, unless ``ack_malformed_payloads`` is set, in
      which case it is acknowledged and dropped.
    Errors go to ``on_error`` when given; otherwise they are re-raised from
    the listener callback, after the message is settled, for the transport
    to log.
    """

    def __init__(
        self,
        channel: str,
        name: str,
        handler: MessageHandler,
        codec: PayloadCodec,
        on_error: ErrorHandler | None = None,
        ack_malformed_payloads: bool = False,
    ):
        self.channel = channel
        self.name = name
        self.handler = handler
        self.codec = codec
        self.on_error = on_error
        self.ack_malformed_payloads = ack_malformed_payloads
        self.handle: SubscriptionHandle | None = None
        self.state = SubscriptionState.UNRESOLVED
        self._listener: ListenerHandle | None = None

    @property
    def is_active(self) -> bool:
        return self.state is SubscriptionState.ACTIVE

    def on_message(self, envelope: MessageEnvelope) -> None:
        """Listener callback registered with the transport."""
        if self.state is SubscriptionState.CLOSED:
            envelope.nack()
            return

        try:
            value = self.codec.decode(envelope.payload)
        except MalformedPayload as e:
            if self.ack_malformed_payloads:
                envelope.acknowledge()
            else:
                envelope.nack()
            self._report(e)
            return

        try:
            self.handler(value)
        except Exception as e:
            envelope.acknowledge()
            self._report(e)
            return

        envelope.acknowledge()

    def activate(self, handle: SubscriptionHandle, listener: ListenerHandle) -> None:
        self.handle = handle
        self._listener = listener
        self.state = SubscriptionState.ACTIVE

    def close(self) -> None:
        """Stop receiving messages. Closing twice is a no-op."""
        if self.state is SubscriptionState.CLOSED:
            return
        self.state = SubscriptionState.CLOSED
        if self._listener is not None:
            self._listener.cancel()
            self._listener = None
        logger.info(f"Closed subscription '{self.name}' on channel '{self.channel}'")

    def _report(self, error: Exception) -> None:
        if self.on_error is None:
            raise error
        self.on_error(error)


class ChannelAdapter:
    """
    Publish and subscribe to named channels over a pluggable transport.

    Values are framed through the payload codec on the way out and decoded
    on the way in. Topics are resolved once per channel and cached on the
    adapter instance; subscriptions are resolved on each subscribe call.
    """

    def __init__(
        self,
        transport: ChannelTransport,
        client_identity: str | None = None,
        auto_create_topics: bool = True,
        auto_create_subscriptions: bool = True,
        *,
        codec: PayloadCodec | None = None,
        ack_malformed_payloads: bool = False,
    ):
        """
        Initialize the channel adapter.

        Args:
            transport: Transport implementing the ChannelTransport port
            client_identity: Consumer group label used in subscription names
                ("default" when None)
            auto_create_topics: Create missing topics on resolution
            auto_create_subscriptions: Create missing subscriptions on resolution
            codec: Payload codec (defaults to canonical JSON)
            ack_malformed_payloads: Acknowledge undecodable messages instead
                of leaving them for redelivery
        """
        self.transport = transport
        self.codec = codec or PayloadCodec()
        self.ack_malformed_payloads = ack_malformed_payloads
        self.resolver = ResourceResolver(
            transport,
            cache=TopicCache(),
            client_identity=client_identity,
            auto_create_topics=auto_create_topics,
            auto_create_subscriptions=auto_create_subscriptions,
        )
        self._subscriptions: list[ChannelSubscription] = []

    @property
    def client_identity(self) -> str | None:
        return self.resolver.client_identity

    @property
    def auto_create_topics(self) -> bool:
        return self.resolver.auto_create_topics

    @property
    def auto_create_subscriptions(self) -> bool:
        return self.resolver.auto_create_subscriptions

    @property
    def subscriptions(self) -> list[ChannelSubscription]:
        return list(self._subscriptions)

    def make_payload(self, value: Any) -> bytes:
        """Frame a value for the wire."""
        return self.codec.encode(value)

    async def get_topic_for_channel(self, channel: str) -> TopicHandle:
        return await self.resolver.resolve_topic(channel)

    async def get_subscription_for_channel(self, channel: str) -> SubscriptionHandle:
        return await self.resolver.resolve_subscription(channel)

    async def publish(self, channel: str, value: Any) -> str:
        """
        Publish a value to a channel.

        Args:
            channel: Channel name
            value: Any representable value

        Returns:
            Result token from the transport (message ID)

        Raises:
            UnencodableValue: If the value cannot be framed
            ResourceNotFound: If the topic is absent and auto-creation is disabled
            TransportError: If the transport rejects the publish
        """
        data = self.make_payload(value)
        topic = await self.resolver.resolve_topic(channel)

        try:
            message_id = await self.transport.publish_to_topic(topic, data)
        except ChannelAdapterError:
            raise
        except Exception as e:
            raise TransportError(
                f"Failed to publish to channel '{channel}': {e}"
            ) from e

        logger.debug(f"Published message {message_id} to channel '{channel}'")
        return message_id

    async def publish_batch(self, channel: str, values: Sequence[Any]) -> list[str]:
        """
        Publish several values to a channel as a single transport batch.

        Args:
            channel: Channel name
            values: Ordered values to publish

        Returns:
            Result tokens from the transport, aligned with ``values``

        Raises:
            UnencodableValue: If any value cannot be framed (nothing is sent)
            ResourceNotFound: If the topic is absent and auto-creation is disabled
            TransportError: If the transport rejects the batch
        """
        payloads = [self.make_payload(value) for value in values]
        if not payloads:
            return []

        topic = await self.resolver.resolve_topic(channel)

        try:
            results = await self.transport.publish_batch(topic, payloads)
        except ChannelAdapterError:
            raise
        except Exception as e:
            raise TransportError(
                f"Failed to publish batch to channel '{channel}': {e}"
            ) from e

        logger.debug(f"Published batch of {len(payloads)} messages to channel '{channel}'")
        return results

    async def subscribe(
        self,
        channel: str,
        handler: MessageHandler,
        on_error: ErrorHandler | None = None,
    ) -> ChannelSubscription:
        """
        Subscribe a handler to a channel.

        The handler receives decoded values and is called from the
        transport's delivery context, one call per message.

        Args:
            channel: Channel name
            handler: Callable invoked with each decoded value
            on_error: Optional callable receiving MalformedPayload and
                handler exceptions; when None they are re-raised to the
                transport

        Returns:
            The active subscription

        Raises:
            ResourceNotFound: If the topic or subscription is absent and
                auto-creation is disabled for it
            TransportError: If resolution or listener registration fails
        """
        subscription = ChannelSubscription(
            channel,
            self.resolver.subscription_name(channel),
            handler,
            self.codec,
            on_error=on_error,
            ack_malformed_payloads=self.ack_malformed_payloads,
        )
        subscription.state = SubscriptionState.RESOLVING

        try:
            handle = await self.resolver.resolve_subscription(channel)
            listener = await self.transport.listen(handle, subscription.on_message)
        except ChannelAdapterError:
            subscription.state = SubscriptionState.CLOSED
            raise
        except Exception as e:
            subscription.state = SubscriptionState.CLOSED
            raise TransportError(
                f"Failed to listen on channel '{channel}': {e}"
            ) from e

        subscription.activate(handle, listener)
        self._subscriptions.append(subscription)
        logger.info(f"Subscribed to channel '{channel}' as '{subscription.name}'")
        return subscription

    def close(self) -> None:
        """Close every subscription created by this adapter."""
        for subscription in self._subscriptions:
            subscription.close()
        self._subscriptions.clear()
