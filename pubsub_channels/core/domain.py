"""
Core domain models for channel resources.

Handles are produced by a transport and treated as opaque by the adapter:
it only reads ``name`` for logging and passes the handle back to the
transport that created it.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TopicHandle(BaseModel):
    """A transport-level publish target bound to a channel name."""

    name: str = Field(description="Channel name the topic was resolved for")
    path: str = Field(description="Fully qualified transport resource name")

    model_config = ConfigDict(frozen=True)


class SubscriptionHandle(BaseModel):
    """
    A transport-level receive target bound to a (channel, client identity) pair.
    """

    name: str = Field(description="Subscription name, e.g. search.orders")
    path: str = Field(description="Fully qualified transport resource name")
    topic: TopicHandle = Field(description="Topic the subscription is attached to")

    model_config = ConfigDict(frozen=True)


class SubscriptionState(str, Enum):
    """Lifecycle of a channel subscription."""

    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    ACTIVE = "active"
    CLOSED = "closed"
