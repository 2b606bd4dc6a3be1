"""
Unit tests for the GooglePubSubTransport infrastructure adapter.
"""

import logging
import os
from unittest.mock import MagicMock, patch

import pytest
from google.api_core import exceptions

from pubsub_channels.core.domain import TopicHandle
from pubsub_channels.core.exceptions import ResourceNotFound, TransportError
from pubsub_channels.infrastructure.google_pubsub_transport import (
    GooglePubSubEnvelope,
    GooglePubSubTransport,
)

TOPIC_PATH = "projects/test-project/topics/my_channel"
SUBSCRIPTION_PATH = "projects/test-project/subscriptions/default.my_channel"


@pytest.fixture
def mock_clients():
    """Patch the Pub/Sub publisher and subscriber client classes."""
    module = "pubsub_channels.infrastructure.google_pubsub_transport.pubsub_v1"
    with patch(f"{module}.PublisherClient") as mock_publisher_class, patch(
        f"{module}.SubscriberClient"
    ) as mock_subscriber_class:
        mock_publisher = MagicMock()
        mock_publisher_class.return_value = mock_publisher
        mock_publisher.topic_path.side_effect = (
            lambda project, topic: f"projects/{project}/topics/{topic}"
        )

        mock_subscriber = MagicMock()
        mock_subscriber_class.return_value = mock_subscriber
        mock_subscriber.subscription_path.side_effect = (
            lambda project, name: f"projects/{project}/subscriptions/{name}"
        )

        yield mock_publisher, mock_subscriber


@pytest.fixture
def transport(mock_clients):
    with patch.dict(os.environ, {"GCP_PROJECT_ID": "test-project"}):
        return GooglePubSubTransport()


@pytest.fixture
def topic():
    return TopicHandle(name="my_channel", path=TOPIC_PATH)


class TestGooglePubSubTransport:
    """Test transport initialization."""

    def test_initialization_reads_project_from_env(self, mock_clients):
        with patch.dict(os.environ, {"GCP_PROJECT_ID": "test-project"}):
            transport = GooglePubSubTransport(publish_timeout=3.0)

        assert transport.project_id == "test-project"
        assert transport.publish_timeout == 3.0
        assert transport.publisher is mock_clients[0]
        assert transport.subscriber is mock_clients[1]

    def test_explicit_project_id_wins(self, mock_clients):
        with patch.dict(os.environ, {"GCP_PROJECT_ID": "env-project"}):
            transport = GooglePubSubTransport(project_id="other-project")

        assert transport.project_id == "other-project"

    def test_missing_project_id_raises_error(self, mock_clients):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ValueError, match="GCP_PROJECT_ID must be set"):
                GooglePubSubTransport()

    def test_detects_emulator(self, mock_clients):
        with patch.dict(
            os.environ,
            {"GCP_PROJECT_ID": "test-project", "PUBSUB_EMULATOR_HOST": "localhost:8085"},
        ):
            transport = GooglePubSubTransport()

        assert transport.emulator_host == "localhost:8085"

    def test_close(self, transport, mock_clients):
        mock_publisher, mock_subscriber = mock_clients

        transport.close()

        mock_publisher.stop.assert_called_once()
        mock_subscriber.close.assert_called_once()


class TestGetOrCreateTopic:
    """Test topic lookup and creation."""

    @pytest.mark.asyncio
    async def test_existing_topic(self, transport, mock_clients):
        mock_publisher, _ = mock_clients

        handle = await transport.get_or_create_topic("my_channel", auto_create=True)

        assert handle == TopicHandle(name="my_channel", path=TOPIC_PATH)
        mock_publisher.get_topic.assert_called_once_with(request={"topic": TOPIC_PATH})
        mock_publisher.create_topic.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_topic_is_created(self, transport, mock_clients):
        mock_publisher, _ = mock_clients
        mock_publisher.get_topic.side_effect = exceptions.NotFound("Topic not found")

        handle = await transport.get_or_create_topic("my_channel", auto_create=True)

        assert handle.path == TOPIC_PATH
        mock_publisher.create_topic.assert_called_once_with(request={"name": TOPIC_PATH})

    @pytest.mark.asyncio
    async def test_missing_topic_without_auto_create(self, transport, mock_clients):
        mock_publisher, _ = mock_clients
        mock_publisher.get_topic.side_effect = exceptions.NotFound("Topic not found")

        with pytest.raises(ResourceNotFound, match=TOPIC_PATH):
            await transport.get_or_create_topic("my_channel", auto_create=False)

        mock_publisher.create_topic.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_creation_is_tolerated(self, transport, mock_clients):
        mock_publisher, _ = mock_clients
        mock_publisher.get_topic.side_effect = exceptions.NotFound("Topic not found")
        mock_publisher.create_topic.side_effect = exceptions.AlreadyExists("exists")

        handle = await transport.get_or_create_topic("my_channel", auto_create=True)

        assert handle.path == TOPIC_PATH

    @pytest.mark.asyncio
    async def test_permission_denied_is_transport_error(self, transport, mock_clients):
        mock_publisher, _ = mock_clients
        mock_publisher.get_topic.side_effect = exceptions.PermissionDenied(
            "Access denied"
        )

        with pytest.raises(TransportError) as exc_info:
            await transport.get_or_create_topic("my_channel", auto_create=True)

        assert isinstance(exc_info.value.__cause__, exceptions.PermissionDenied)

    @pytest.mark.asyncio
    async def test_create_failure_is_transport_error(self, transport, mock_clients):
        mock_publisher, _ = mock_clients
        mock_publisher.get_topic.side_effect = exceptions.NotFound("Topic not found")
        mock_publisher.create_topic.side_effect = exceptions.PermissionDenied(
            "Access denied"
        )

        with pytest.raises(TransportError, match="Failed to create"):
            await transport.get_or_create_topic("my_channel", auto_create=True)


class TestGetOrCreateSubscription:
    """Test subscription lookup and creation."""

    @pytest.mark.asyncio
    async def test_existing_subscription(self, transport, mock_clients, topic):
        _, mock_subscriber = mock_clients

        handle = await transport.get_or_create_subscription(
            topic, "default.my_channel", auto_create=True
        )

        assert handle.name == "default.my_channel"
        assert handle.path == SUBSCRIPTION_PATH
        assert handle.topic == topic
        mock_subscriber.get_subscription.assert_called_once_with(
            request={"subscription": SUBSCRIPTION_PATH}
        )
        mock_subscriber.create_subscription.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_subscription_is_created_on_topic(
        self, transport, mock_clients, topic
    ):
        _, mock_subscriber = mock_clients
        mock_subscriber.get_subscription.side_effect = exceptions.NotFound("missing")

        await transport.get_or_create_subscription(
            topic, "default.my_channel", auto_create=True
        )

        mock_subscriber.create_subscription.assert_called_once_with(
            request={"name": SUBSCRIPTION_PATH, "topic": TOPIC_PATH}
        )

    @pytest.mark.asyncio
    async def test_missing_subscription_without_auto_create(
        self, transport, mock_clients, topic
    ):
        _, mock_subscriber = mock_clients
        mock_subscriber.get_subscription.side_effect = exceptions.NotFound("missing")

        with pytest.raises(ResourceNotFound):
            await transport.get_or_create_subscription(
                topic, "default.my_channel", auto_create=False
            )

        mock_subscriber.create_subscription.assert_not_called()


class TestPublish:
    """Test publishing payloads."""

    @pytest.mark.asyncio
    async def test_publish_returns_message_id(self, transport, mock_clients, topic):
        mock_publisher, _ = mock_clients
        mock_future = MagicMock()
        mock_future.result.return_value = "test-message-id"
        mock_publisher.publish.return_value = mock_future

        message_id = await transport.publish_to_topic(topic, b'"Hello World!"')

        assert message_id == "test-message-id"
        mock_publisher.publish.assert_called_once_with(TOPIC_PATH, b'"Hello World!"')
        mock_future.result.assert_called_once_with(10.0)

    @pytest.mark.asyncio
    async def test_publish_failure_is_transport_error(
        self, transport, mock_clients, topic
    ):
        mock_publisher, _ = mock_clients
        mock_future = MagicMock()
        mock_future.result.side_effect = exceptions.NotFound("Topic not found")
        mock_publisher.publish.return_value = mock_future

        with pytest.raises(TransportError, match=TOPIC_PATH):
            await transport.publish_to_topic(topic, b"null")

    @pytest.mark.asyncio
    async def test_publish_batch_preserves_order(self, transport, mock_clients, topic):
        mock_publisher, _ = mock_clients
        futures = []
        for message_id in ("result1", "result2", "result3"):
            future = MagicMock()
            future.result.return_value = message_id
            futures.append(future)
        mock_publisher.publish.side_effect = futures

        results = await transport.publish_batch(topic, [b'"a"', b'{"x":1}', b"3"])

        assert results == ["result1", "result2", "result3"]
        sent = [c.args[1] for c in mock_publisher.publish.call_args_list]
        assert sent == [b'"a"', b'{"x":1}', b"3"]

    @pytest.mark.asyncio
    async def test_publish_batch_failure_is_transport_error(
        self, transport, mock_clients, topic
    ):
        mock_publisher, _ = mock_clients
        mock_publisher.publish.side_effect = RuntimeError("batch closed")

        with pytest.raises(TransportError):
            await transport.publish_batch(topic, [b'"a"'])


class TestListen:
    """Test streaming pull registration."""

    @pytest.mark.asyncio
    async def test_listen_wraps_messages_in_envelopes(
        self, transport, mock_clients, topic
    ):
        _, mock_subscriber = mock_clients
        subscription = await transport.get_or_create_subscription(
            topic, "default.my_channel", auto_create=True
        )
        on_message = MagicMock()

        await transport.listen(subscription, on_message)

        assert mock_subscriber.subscribe.call_args.args == (SUBSCRIPTION_PATH,)
        callback = mock_subscriber.subscribe.call_args.kwargs["callback"]

        message = MagicMock()
        message.data = b'"Hello World!"'
        callback(message)

        envelope = on_message.call_args.args[0]
        assert isinstance(envelope, GooglePubSubEnvelope)
        assert envelope.payload == b'"Hello World!"'
        envelope.acknowledge()
        message.ack.assert_called_once()
        envelope.nack()
        message.nack.assert_called_once()

    @pytest.mark.asyncio
    async def test_cancel_stops_streaming_pull(self, transport, mock_clients, topic):
        _, mock_subscriber = mock_clients
        streaming_future = MagicMock()
        mock_subscriber.subscribe.return_value = streaming_future
        subscription = await transport.get_or_create_subscription(
            topic, "default.my_channel", auto_create=True
        )

        listener = await transport.listen(subscription, MagicMock())
        listener.cancel()

        streaming_future.cancel.assert_called_once()

    @pytest.mark.asyncio
    async def test_listen_failure_is_transport_error(
        self, transport, mock_clients, topic
    ):
        _, mock_subscriber = mock_clients
        mock_subscriber.subscribe.side_effect = exceptions.PermissionDenied("denied")
        subscription = await transport.get_or_create_subscription(
            topic, "default.my_channel", auto_create=True
        )

        with pytest.raises(TransportError):
            await transport.listen(subscription, MagicMock())

    @pytest.mark.asyncio
    async def test_listener_error_is_logged_without_resettling(
        self, transport, mock_clients, topic, caplog
    ):
        """An error raised after the message was acked must not reach the client."""
        _, mock_subscriber = mock_clients
        subscription = await transport.get_or_create_subscription(
            topic, "default.my_channel", auto_create=True
        )

        def on_message(envelope):
            envelope.acknowledge()
            raise RuntimeError("handler failed")

        await transport.listen(subscription, on_message)
        callback = mock_subscriber.subscribe.call_args.kwargs["callback"]

        message = MagicMock()
        message.data = b'"Hello World!"'
        message.message_id = "msg-1"
        with caplog.at_level(logging.ERROR):
            callback(message)

        message.ack.assert_called_once()
        message.nack.assert_not_called()
        assert "msg-1" in caplog.text
        assert "handler failed" in caplog.text
