"""
Message Broker Package

AMQP (RabbitMQ) client for publishing and consuming domain events.
"""

from .client import BrokerClient
from .connection import AmqpConnectionProvider
from .registry import close_broker, get_broker, init_broker, install_signal_handlers

__all__ = [
    "AmqpConnectionProvider",
    "BrokerClient",
    "close_broker",
    "get_broker",
    "init_broker",
    "install_signal_handlers",
]
