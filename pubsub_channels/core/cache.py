"""
Topic handle cache.

Maps channel names to topic handles resolved earlier by the same adapter.
Entries live as long as the cache: there is no expiry or eviction, and a
topic deleted out of band surfaces as a transport error on the next publish.
"""

from typing import Iterator

from pubsub_channels.core.domain import TopicHandle


class TopicCache:
    """
    Per-adapter memo of resolved topics.

    Not locked: two concurrent misses for one channel may both resolve and
    both store. Resolution is idempotent, so the last write wins.
    """

    def __init__(self) -> None:
        self._topics: dict[str, TopicHandle] = {}

    def get(self, channel: str) -> TopicHandle | None:
        """Return the cached topic for a channel, or None on a miss."""
        return self._topics.get(channel)

    def set(self, channel: str, topic: TopicHandle) -> None:
        """Store the resolved topic for a channel."""
        self._topics[channel] = topic

    def channels(self) -> list[str]:
        """List channel names with a cached topic."""
        return list(self._topics.keys())

    def __contains__(self, channel: object) -> bool:
        return channel in self._topics

    def __len__(self) -> int:
        return len(self._topics)

    def __iter__(self) -> Iterator[str]:
        return iter(self._topics)
