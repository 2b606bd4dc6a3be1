#!/usr/bin/env python3
"""
Publish a few example messages to a channel.

Configuration comes from the environment (or a .env file):
GCP_PROJECT_ID, PUBSUB_EMULATOR_HOST, PUBSUB_TRANSPORT, ...
"""

import argparse
import asyncio
import json

from dotenv import load_dotenv

from pubsub_channels.core.exceptions import ChannelAdapterError
from pubsub_channels.logging_config import setup_global_logging
from pubsub_channels.wiring import get_channel_adapter, shutdown

# Load environment variables from .env file
load_dotenv()


async def publish(channel: str, extra: list[str]) -> None:
    adapter = get_channel_adapter()

    message_id = await adapter.publish(channel, {"first_name": "Matthew"})
    print(f"Published mapping: {message_id}")

    message_id = await adapter.publish(channel, "Hello World")
    print(f"Published string: {message_id}")

    if extra:
        values = [json.loads(item) for item in extra]
        message_ids = await adapter.publish_batch(channel, values)
        print(f"Published batch: {', '.join(message_ids)}")


def main():
    parser = argparse.ArgumentParser(description="Publish example messages to a channel.")
    parser.add_argument("channel", nargs="?", default="my_channel", help="Channel name.")
    parser.add_argument(
        "values",
        nargs="*",
        help="Extra JSON values to publish as one batch, e.g. '{\"a\": 1}' '\"text\"'.",
    )
    args = parser.parse_args()

    setup_global_logging()
    try:
        asyncio.run(publish(args.channel, args.values))
    except ChannelAdapterError as e:
        print(f"Error: {e}")
    finally:
        shutdown()


if __name__ == "__main__":
    main()
