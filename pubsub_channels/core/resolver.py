"""
Resolution of channel names to transport resources.

A channel maps to a topic of the same name. A subscriber maps to a
subscription named ``{client_identity}.{channel}`` under that topic, so one
client identity never shares a subscription across channels.
"""

import logging

from pubsub_channels.core.cache import TopicCache
from pubsub_channels.core.domain import SubscriptionHandle, TopicHandle
from pubsub_channels.core.exceptions import ChannelAdapterError, TransportError
from pubsub_channels.core.ports import ChannelTransport

logger = logging.getLogger(__name__)

DEFAULT_CLIENT_IDENTITY = "default"
SUBSCRIPTION_SEPARATOR = "."


class ResourceResolver:
    """
    Resolves topics and subscriptions for channels, creating them on demand.

    Topics are memoized in a TopicCache; subscriptions are resolved fresh
    on every call.
    """

    def __init__(
        self,
        transport: ChannelTransport,
        cache: TopicCache | None = None,
        client_identity: str | None = None,
        auto_create_topics: bool = True,
        auto_create_subscriptions: bool = True,
    ):
        """
        Initialize the resolver.

        Args:
            transport: Transport used for resource lookups
            cache: Topic cache (a fresh one is created when omitted)
            client_identity: Consumer group label, "default" when None
            auto_create_topics: Create missing topics during resolution
            auto_create_subscriptions: Create missing subscriptions during resolution
        """
        self.transport = transport
        self.cache = cache if cache is not None else TopicCache()
        self.client_identity = client_identity
        self.auto_create_topics = auto_create_topics
        self.auto_create_subscriptions = auto_create_subscriptions

    def subscription_name(self, channel: str) -> str:
        """Derive the subscription name for a channel."""
        identity = self.client_identity or DEFAULT_CLIENT_IDENTITY
        return f"{identity}{SUBSCRIPTION_SEPARATOR}{channel}"

    async def resolve_topic(self, channel: str) -> TopicHandle:
        """
        Resolve the topic for a channel, consulting the cache first.

        Args:
            channel: Channel name

        Returns:
            Topic handle for the channel

        Raises:
            ResourceNotFound: If the topic is absent and auto-creation is disabled
            TransportError: If the transport fails
        """
        cached = self.cache.get(channel)
        if cached is not None:
            logger.debug(f"Topic cache hit for channel: {channel}")
            return cached

        try:
            topic = await self.transport.get_or_create_topic(
                channel, auto_create=self.auto_create_topics
            )
        except ChannelAdapterError:
            raise
        except Exception as e:
            raise TransportError(
                f"Failed to resolve topic for channel '{channel}': {e}"
            ) from e

        self.cache.set(channel, topic)
        logger.info(f"Resolved topic for channel '{channel}': {topic.path}")
        return topic

    async def resolve_subscription(self, channel: str) -> SubscriptionHandle:
        """
        Resolve this client's subscription for a channel.

        Args:
            channel: Channel name

        Returns:
            Subscription handle named ``{client_identity}.{channel}``

        Raises:
            ResourceNotFound: If the topic or subscription is absent and
                auto-creation is disabled for it
            TransportError: If the transport fails
        """
        topic = await self.resolve_topic(channel)
        name = self.subscription_name(channel)

        try:
            subscription = await self.transport.get_or_create_subscription(
                topic, name, auto_create=self.auto_create_subscriptions
            )
        except ChannelAdapterError:
            raise
        except Exception as e:
            raise TransportError(
                f"Failed to resolve subscription '{name}' for channel '{channel}': {e}"
            ) from e

        logger.info(f"Resolved subscription for channel '{channel}': {subscription.path}")
        return subscription
