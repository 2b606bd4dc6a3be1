#!/usr/bin/env python3
"""
Subscribe to a channel and print every decoded message with its type.

Runs until interrupted. Set PUBSUB_CLIENT_IDENTITY to consume through a
named subscription ({identity}.{channel}) instead of default.{channel}.
"""

import argparse
import asyncio

from dotenv import load_dotenv

from pubsub_channels.logging_config import setup_global_logging
from pubsub_channels.wiring import get_channel_adapter, shutdown

# Load environment variables from .env file
load_dotenv()


def print_message(value):
    print(value)
    print(type(value).__name__)


def print_error(error: Exception):
    print(f"Rejected message: {error}")


async def consume(channel: str) -> None:
    adapter = get_channel_adapter()
    subscription = await adapter.subscribe(channel, print_message, on_error=print_error)
    print(f"Listening on {subscription.handle.path} (Ctrl+C to stop)")
    await asyncio.Event().wait()


def main():
    parser = argparse.ArgumentParser(description="Print messages received on a channel.")
    parser.add_argument("channel", nargs="?", default="my_channel", help="Channel name.")
    args = parser.parse_args()

    setup_global_logging()
    try:
        asyncio.run(consume(args.channel))
    except KeyboardInterrupt:
        pass
    finally:
        shutdown()


if __name__ == "__main__":
    main()
