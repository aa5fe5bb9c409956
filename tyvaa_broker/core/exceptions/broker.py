"""
Message Broker Exceptions

All exceptions related to AMQP broker operations.

Author: Tyvaa Platform Team
Date: 2025-06-14
"""

from tyvaa_broker.core.exceptions.base import TyvaaBaseError


class BrokerError(TyvaaBaseError):
    """Base exception for message broker errors."""
    pass


class BrokerConnectionError(BrokerError):
    """
    Raised when the connection provider fails to establish a connection or channel.

    Also emitted as an ``error`` event by BrokerClient.
    """
    pass


class BrokerNotConnectedError(BrokerConnectionError):
    """
    Raised when an operation needs a channel and none is available.

    Either the on-demand connect failed (the cause is chained) or
    on-demand connect is disabled and no channel is held.
    """
    pass


class BrokerOperationError(BrokerError):
    """Raised when the endpoint rejects an operation (declare, send, cancel, purge)."""
    pass


class MessageSerializationError(BrokerError):
    """
    Raised when an outbound message cannot be serialized to JSON text.

    Surfaced to the caller before anything is sent; no event is emitted.
    """
    pass


class PoisonMessageError(BrokerError):
    """
    Raised when an inbound body is not valid UTF-8 JSON.

    BrokerClient handles this internally by nacking without requeue;
    subscribers never see it.
    """
    pass
