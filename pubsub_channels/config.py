"""
Channel adapter configuration.

Loaded from environment variables; the adapter itself only needs the four
constructor arguments, the rest configures transport selection.
"""

import os
from dataclasses import dataclass
from functools import lru_cache

DEFAULT_PUBLISH_TIMEOUT = 10.0

TRANSPORT_GCP = "gcp"
TRANSPORT_MEMORY = "memory"
TRANSPORTS = (TRANSPORT_GCP, TRANSPORT_MEMORY)


def _env_flag(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").lower() == "true"


@dataclass
class ChannelAdapterConfig:
    """Configuration for the channel adapter and its transport."""

    project_id: str | None = None
    client_identity: str | None = None
    auto_create_topics: bool = True
    auto_create_subscriptions: bool = True
    ack_malformed_payloads: bool = False
    publish_timeout: float = DEFAULT_PUBLISH_TIMEOUT
    transport: str = TRANSPORT_GCP
    emulator_host: str | None = None

    @classmethod
    def from_env(cls) -> "ChannelAdapterConfig":
        """Load configuration from environment variables."""
        return cls(
            project_id=os.getenv("GCP_PROJECT_ID"),
            client_identity=os.getenv("PUBSUB_CLIENT_IDENTITY") or None,
            auto_create_topics=_env_flag("PUBSUB_AUTO_CREATE_TOPICS", True),
            auto_create_subscriptions=_env_flag(
                "PUBSUB_AUTO_CREATE_SUBSCRIPTIONS", True
            ),
            ack_malformed_payloads=_env_flag("PUBSUB_ACK_MALFORMED_PAYLOADS", False),
            publish_timeout=float(
                os.getenv("PUBSUB_PUBLISH_TIMEOUT", str(DEFAULT_PUBLISH_TIMEOUT))
            ),
            transport=os.getenv("PUBSUB_TRANSPORT", TRANSPORT_GCP).lower(),
            emulator_host=os.getenv("PUBSUB_EMULATOR_HOST"),
        )

    @property
    def using_emulator(self) -> bool:
        """Check if using the Pub/Sub emulator."""
        return bool(self.emulator_host)

    def validate(self) -> None:
        """Validate required configuration. Call at startup to fail fast."""
        if self.transport not in TRANSPORTS:
            raise ValueError(
                f"PUBSUB_TRANSPORT must be one of {', '.join(TRANSPORTS)}, "
                f"got '{self.transport}'"
            )
        if self.transport == TRANSPORT_GCP and not self.project_id:
            raise ValueError("GCP_PROJECT_ID must be set for the gcp transport")
        if self.publish_timeout <= 0:
            raise ValueError("PUBSUB_PUBLISH_TIMEOUT must be positive")


@lru_cache()
def get_config() -> ChannelAdapterConfig:
    """Get channel adapter configuration singleton."""
    return ChannelAdapterConfig.from_env()
