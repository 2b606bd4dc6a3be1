"""
Process wiring for the channel adapter.

Builds the configured transport and a ChannelAdapter on top of it.
Both are singletons for the process; call shutdown() before exit.
"""

import logging
from functools import lru_cache

from pubsub_channels.config import TRANSPORT_MEMORY, get_config
from pubsub_channels.core.ports import ChannelTransport
from pubsub_channels.core.services import ChannelAdapter
from pubsub_channels.infrastructure.google_pubsub_transport import (
    GooglePubSubTransport,
)
from pubsub_channels.infrastructure.memory_transport import InMemoryTransport

logger = logging.getLogger(__name__)


@lru_cache()
def get_transport() -> ChannelTransport:
    """
    Provide the transport selected by PUBSUB_TRANSPORT.

    Uses lru_cache for singleton behavior.
    """
    config = get_config()
    config.validate()

    if config.transport == TRANSPORT_MEMORY:
        logger.info("Using in-memory transport")
        return InMemoryTransport()

    return GooglePubSubTransport(
        project_id=config.project_id, publish_timeout=config.publish_timeout
    )


@lru_cache()
def get_channel_adapter() -> ChannelAdapter:
    """Provide the channel adapter wired to the configured transport."""
    config = get_config()
    return ChannelAdapter(
        get_transport(),
        client_identity=config.client_identity,
        auto_create_topics=config.auto_create_topics,
        auto_create_subscriptions=config.auto_create_subscriptions,
        ack_malformed_payloads=config.ack_malformed_payloads,
    )


def shutdown() -> None:
    """Close the adapter's subscriptions, then the transport."""
    if get_channel_adapter.cache_info().currsize:
        get_channel_adapter().close()
    if get_transport.cache_info().currsize:
        try:
            get_transport().close()
        except Exception as e:
            logger.warning(f"Error closing transport during shutdown: {e}")
    get_channel_adapter.cache_clear()
    get_transport.cache_clear()
    logger.info("Channel adapter shut down")
