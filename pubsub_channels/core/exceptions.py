"""
Domain exceptions for the channel adapter.

Every failure the adapter observes is raised as one of these, so callers
can handle transport problems without importing a transport SDK.
"""


class ChannelAdapterError(Exception):
    """Base exception for channel adapter errors."""

    pass


class ResourceNotFound(ChannelAdapterError):
    """
    Raised when a topic or subscription does not exist and auto-creation
    of that resource kind is disabled.
    """

    pass


class TransportError(ChannelAdapterError):
    """
    Raised for any failure surfaced by the transport during resolution,
    publishing, or listener setup.

    The original transport exception is always chained as ``__cause__``.
    """

    pass


class MalformedPayload(ChannelAdapterError):
    """Raised when received bytes are not a valid canonical encoding."""

    pass


class UnencodableValue(ChannelAdapterError):
    """
    Raised when a value cannot be represented on the wire
    (reference cycles, NaN, non-string mapping keys, unsupported types).
    """

    pass
