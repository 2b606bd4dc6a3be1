"""
Google Cloud Pub/Sub transport implementation.

This is a driven adapter that implements the ChannelTransport port
defined in the core.
"""

import asyncio
import logging
import os
from typing import Any, Callable, Sequence

from google.api_core import exceptions
from google.cloud import pubsub_v1

from pubsub_channels.config import DEFAULT_PUBLISH_TIMEOUT
from pubsub_channels.core.domain import SubscriptionHandle, TopicHandle
from pubsub_channels.core.exceptions import ResourceNotFound, TransportError
from pubsub_channels.core.ports import MessageCallback

logger = logging.getLogger(__name__)


class GooglePubSubEnvelope:
    """MessageEnvelope over a streaming-pull ``pubsub_v1.subscriber.message.Message``."""

    def __init__(self, message: Any):
        self._message = message

    @property
    def payload(self) -> bytes:
        return self._message.data

    @property
    def message_id(self) -> str:
        return self._message.message_id

    def acknowledge(self) -> None:
        self._message.ack()

    def nack(self) -> None:
        self._message.nack()


class GooglePubSubListener:
    """ListenerHandle over a ``StreamingPullFuture``."""

    def __init__(self, future: Any, subscription: SubscriptionHandle):
        self._future = future
        self.subscription = subscription

    def cancel(self) -> None:
        self._future.cancel()
        logger.info(f"Stopped streaming pull on {self.subscription.path}")


class GooglePubSubTransport:
    """
    Concrete implementation of ChannelTransport using Google Cloud Pub/Sub.

    Automatically detects and configures for:
    - Production: Uses GCP Pub/Sub service
    - Local development: Uses Pub/Sub emulator (via PUBSUB_EMULATOR_HOST)

    Topics are named after channels; subscriptions use the name chosen by
    the resolver. Blocking client calls run in a worker thread so they do
    not block the event loop.
    """

    def __init__(
        self,
        project_id: str | None = None,
        publish_timeout: float = DEFAULT_PUBLISH_TIMEOUT,
    ):
        """
        Initialize Google Cloud Pub/Sub transport.

        Args:
            project_id: GCP project ID (defaults to GCP_PROJECT_ID env var)
            publish_timeout: Seconds to wait for each publish result
        """
        self.project_id = project_id or os.getenv("GCP_PROJECT_ID")
        self.publish_timeout = publish_timeout

        # Check if using emulator
        self.emulator_host = os.getenv("PUBSUB_EMULATOR_HOST")

        if not self.project_id:
            raise ValueError("GCP_PROJECT_ID must be set for Pub/Sub transport")

        self.publisher = pubsub_v1.PublisherClient()
        self.subscriber = pubsub_v1.SubscriberClient()

        if self.emulator_host:
            logger.info(f"Using Pub/Sub emulator at {self.emulator_host}")
        else:
            logger.info(f"Pub/Sub transport initialized for project: {self.project_id}")

    async def get_or_create_topic(self, name: str, auto_create: bool) -> TopicHandle:
        """
        Get the topic for a channel, creating it when allowed.

        Args:
            name: Channel (topic) name
            auto_create: Create the topic if it does not exist

        Returns:
            Topic handle

        Raises:
            ResourceNotFound: If the topic does not exist and auto_create is False
            TransportError: For any other Pub/Sub failure
        """
        topic_path = self.publisher.topic_path(self.project_id, name)
        handle = TopicHandle(name=name, path=topic_path)

        try:
            await asyncio.to_thread(
                self.publisher.get_topic, request={"topic": topic_path}
            )
            return handle
        except exceptions.NotFound:
            if not auto_create:
                raise ResourceNotFound(f"Pub/Sub topic not found: {topic_path}")
        except exceptions.GoogleAPICallError as e:
            raise TransportError(f"Failed to get topic {topic_path}: {e}") from e

        await self._create(
            self.publisher.create_topic, {"name": topic_path}, topic_path
        )
        logger.info(f"Created Pub/Sub topic: {topic_path}")
        return handle

    async def get_or_create_subscription(
        self, topic: TopicHandle, name: str, auto_create: bool
    ) -> SubscriptionHandle:
        """
        Get a subscription under a topic, creating it when allowed.

        Args:
            topic: Topic handle the subscription is attached to
            name: Subscription name
            auto_create: Create the subscription if it does not exist

        Returns:
            Subscription handle

        Raises:
            ResourceNotFound: If the subscription does not exist and auto_create is False
            TransportError: For any other Pub/Sub failure
        """
        subscription_path = self.subscriber.subscription_path(self.project_id, name)
        handle = SubscriptionHandle(name=name, path=subscription_path, topic=topic)

        try:
            await asyncio.to_thread(
                self.subscriber.get_subscription,
                request={"subscription": subscription_path},
            )
            return handle
        except exceptions.NotFound:
            if not auto_create:
                raise ResourceNotFound(
                    f"Pub/Sub subscription not found: {subscription_path}"
                )
        except exceptions.GoogleAPICallError as e:
            raise TransportError(
                f"Failed to get subscription {subscription_path}: {e}"
            ) from e

        await self._create(
            self.subscriber.create_subscription,
            {"name": subscription_path, "topic": topic.path},
            subscription_path,
        )
        logger.info(f"Created Pub/Sub subscription: {subscription_path}")
        return handle

    async def publish_to_topic(self, topic: TopicHandle, data: bytes) -> str:
        """
        Publish a single payload.

        Returns:
            Message ID assigned by Pub/Sub

        Raises:
            TransportError: If publishing fails or times out
        """
        try:
            # Publish message (returns a future immediately)
            future = self.publisher.publish(topic.path, data)

            # Wait for the result in a thread pool to avoid blocking the event loop
            message_id: str = await asyncio.to_thread(
                future.result, self.publish_timeout
            )
        except Exception as e:
            raise TransportError(f"Failed to publish to {topic.path}: {e}") from e

        logger.debug(f"Published message to Pub/Sub: {message_id}")
        return message_id

    async def publish_batch(
        self, topic: TopicHandle, payloads: Sequence[bytes]
    ) -> list[str]:
        """
        Publish payloads in order; the client library groups them into batches.

        Returns:
            Message IDs in the same order as ``payloads``

        Raises:
            TransportError: If any publish fails or times out
        """
        try:
            futures = [self.publisher.publish(topic.path, data) for data in payloads]
            message_ids = await asyncio.gather(
                *(
                    asyncio.to_thread(future.result, self.publish_timeout)
                    for future in futures
                )
            )
        except Exception as e:
            raise TransportError(
                f"Failed to publish batch to {topic.path}: {e}"
            ) from e

        logger.debug(f"Published {len(message_ids)} messages to {topic.path}")
        return list(message_ids)

    async def listen(
        self, subscription: SubscriptionHandle, on_message: MessageCallback
    ) -> GooglePubSubListener:
        """
        Start a streaming pull that hands each message to ``on_message``.

        Messages are delivered on the subscriber client's callback thread pool.
        ``on_message`` settles the envelope before any error is reported, so
        errors escaping it are logged here rather than handed to the client
        library, which would nack the settled message and stop the stream.
        """

        def callback(message: Any) -> None:
            envelope = GooglePubSubEnvelope(message)
            try:
                on_message(envelope)
            except Exception:
                logger.exception(
                    f"Listener on {subscription.path} failed for message "
                    f"{envelope.message_id}"
                )

        try:
            future = self.subscriber.subscribe(subscription.path, callback=callback)
        except Exception as e:
            raise TransportError(
                f"Failed to listen on {subscription.path}: {e}"
            ) from e

        logger.info(f"Listening for messages on {subscription.path}")
        return GooglePubSubListener(future, subscription)

    def close(self) -> None:
        """Close the publisher and subscriber clients."""
        if self.publisher:
            # Flush any pending messages
            self.publisher.stop()
        if self.subscriber:
            self.subscriber.close()

    async def _create(
        self, create: Callable[..., Any], request: dict[str, str], path: str
    ) -> None:
        try:
            await asyncio.to_thread(create, request=request)
        except exceptions.AlreadyExists:
            # Created concurrently by another client
            logger.debug(f"Pub/Sub resource already exists: {path}")
        except exceptions.GoogleAPICallError as e:
            raise TransportError(f"Failed to create {path}: {e}") from e
