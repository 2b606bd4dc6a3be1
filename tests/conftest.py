"""
Shared test configuration and fixtures.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from pubsub_channels.core.domain import SubscriptionHandle, TopicHandle

PROJECT_PATH = "projects/test-project"


def make_subscription(topic: TopicHandle, name: str, auto_create: bool = True):
    """Build the handle a transport would return for a subscription name."""
    return SubscriptionHandle(
        name=name, path=f"{PROJECT_PATH}/subscriptions/{name}", topic=topic
    )


def make_envelope(payload, events=None):
    """
    Build a mock message envelope.

    When an ``events`` list is given, acknowledge/nack append to it so tests
    can assert on ordering relative to the handler.
    """
    envelope = MagicMock()
    envelope.payload = payload
    if events is not None:
        envelope.acknowledge.side_effect = lambda: events.append("ack")
        envelope.nack.side_effect = lambda: events.append("nack")
    return envelope


@pytest.fixture
def topic():
    """Topic handle returned by the mock transport."""
    return TopicHandle(name="my_channel", path=f"{PROJECT_PATH}/topics/my_channel")


@pytest.fixture
def mock_transport(topic):
    """
    Mock ChannelTransport.

    Topic resolution returns the ``topic`` fixture, subscriptions are named
    after the requested name, and publishes succeed with fixed message IDs.
    """
    transport = MagicMock()
    transport.get_or_create_topic = AsyncMock(return_value=topic)
    transport.get_or_create_subscription = AsyncMock(side_effect=make_subscription)
    transport.publish_to_topic = AsyncMock(return_value="mock-message-id-123")
    transport.publish_batch = AsyncMock(return_value=["result1", "result2"])
    transport.listen = AsyncMock(return_value=MagicMock())
    return transport


def registered_listener(transport):
    """Return the on_message callback the adapter passed to transport.listen."""
    return transport.listen.call_args.args[1]
