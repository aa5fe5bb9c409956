from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from aio_pika.abc import AbstractChannel, AbstractConnection, AbstractIncomingMessage

from tyvaa_broker.core.config.settings import BrokerSettings

# Subscriber callback: (parsed payload, raw delivery) -> None, sync or async
MessageHandler = Callable[[Any, AbstractIncomingMessage], Awaitable[None] | None]


class ConnectionProvider(ABC):
    """
    Abstract source of AMQP connection and channel handles.

    Implementations keep at most one connection/channel pair and hand
    out the cached pair while it is open.
    """

    @abstractmethod
    async def get_connection(self, config: BrokerSettings) -> AbstractConnection:
        """
        Return an open connection, establishing one if needed.

        Args:
            config: Broker settings (endpoint URL, retry policy).

        Returns:
            AbstractConnection: Open connection.
        """
        pass

    @abstractmethod
    async def get_channel(self, config: BrokerSettings) -> AbstractChannel:
        """
        Return an open channel on the current connection, creating one if needed.

        Args:
            config: Broker settings.

        Returns:
            AbstractChannel: Open channel.
        """
        pass

    @abstractmethod
    async def close_connection(self, connection: AbstractConnection | None) -> None:
        """
        Close the channel and the given connection.

        Must be safe to call repeatedly and with ``None``.
        """
        pass
