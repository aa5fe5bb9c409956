"""
Tyvaa Broker

AMQP message broker client for the Tyvaa ride-sharing services, with a
Redis-backed message store and an operations CLI.
"""

from tyvaa_broker.core.config import BrokerEvent, ConnectionState
from tyvaa_broker.core.exceptions import (
    BrokerConnectionError,
    BrokerError,
    BrokerNotConnectedError,
    BrokerOperationError,
    MessageSerializationError,
    PoisonMessageError,
)
from tyvaa_broker.infrastructure.message_broker import (
    AmqpConnectionProvider,
    BrokerClient,
    close_broker,
    get_broker,
    init_broker,
    install_signal_handlers,
)

__version__ = "1.0.0"

__all__ = [
    "AmqpConnectionProvider",
    "BrokerClient",
    "BrokerConnectionError",
    "BrokerError",
    "BrokerEvent",
    "BrokerNotConnectedError",
    "BrokerOperationError",
    "ConnectionState",
    "MessageSerializationError",
    "PoisonMessageError",
    "close_broker",
    "get_broker",
    "init_broker",
    "install_signal_handlers",
]
