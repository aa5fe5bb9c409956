#!/usr/bin/env python3
"""
AMQP Connection Provider

Owns the transport-level link to RabbitMQ and the channel opened on it.

- A single cached connection/channel pair, reused while open
- Initial connect retried with a fixed delay (RABBITMQ_URL,
  BROKER_CONNECT_MAX_RETRIES attempts, BROKER_CONNECT_RETRY_DELAY apart)
- Concurrent callers share one connect attempt (asyncio.Lock)
- Cached handles dropped when the broker closes them

Author: Tyvaa Platform Team
Date: 2025-06-14
"""

import asyncio
from typing import Any

import aio_pika
from aio_pika.abc import AbstractChannel, AbstractConnection
from aio_pika.exceptions import AMQPConnectionError, AMQPError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from tyvaa_broker.core.config.settings import BrokerSettings
from tyvaa_broker.core.exceptions import BrokerConnectionError, ConfigurationError
from tyvaa_broker.core.interfaces import ConnectionProvider
from tyvaa_broker.core.logging import get_logger

logger = get_logger(__name__)

_TRANSIENT_ERRORS = (AMQPConnectionError, OSError, asyncio.TimeoutError)


class AmqpConnectionProvider(ConnectionProvider):
    """
    aio-pika backed ConnectionProvider.

    Usage:
        provider = AmqpConnectionProvider()
        channel = await provider.get_channel(settings.broker)
        ...
        await provider.close_connection(await provider.get_connection(settings.broker))
    """

    def __init__(self):
        self._connection: AbstractConnection | None = None
        self._channel: AbstractChannel | None = None
        self._lock = asyncio.Lock()

    @property
    def connection(self) -> AbstractConnection | None:
        return self._connection

    @property
    def channel(self) -> AbstractChannel | None:
        return self._channel

    async def get_connection(self, config: BrokerSettings) -> AbstractConnection:
        """
        Return the cached open connection or establish a new one.

        Raises:
            ConfigurationError: If RABBITMQ_URL is not set
            BrokerConnectionError: If every connect attempt failed
        """
        if _is_open(self._connection):
            return self._connection

        async with self._lock:
            # Another caller may have connected while we waited
            if _is_open(self._connection):
                return self._connection

            if not config.RABBITMQ_URL:
                raise ConfigurationError(
                    "RabbitMQ URL is not configured"
                ).with_suggestion("Set the RABBITMQ_URL environment variable")

            self._connection = None
            self._channel = None
            self._connection = await self._connect_with_retry(config)
            return self._connection

    async def get_channel(self, config: BrokerSettings) -> AbstractChannel:
        """
        Return the cached open channel or open one on the current connection.

        Raises:
            BrokerConnectionError: If the connection or channel cannot be established
        """
        if _is_open(self._channel):
            return self._channel

        connection = await self.get_connection(config)

        async with self._lock:
            if _is_open(self._channel):
                return self._channel

            try:
                channel = await connection.channel()
                if config.BROKER_PREFETCH_COUNT > 0:
                    await channel.set_qos(prefetch_count=config.BROKER_PREFETCH_COUNT)
            except AMQPError as e:
                logger.error("Failed to open RabbitMQ channel", stage="AMQP.CHAN", error=str(e))
                raise BrokerConnectionError.from_exception(
                    e, message=f"Failed to open RabbitMQ channel: {e}"
                ) from e

            channel.close_callbacks.add(self._on_channel_closed)
            self._channel = channel
            logger.info(
                "RabbitMQ channel created",
                stage="AMQP.CHAN",
                prefetch=config.BROKER_PREFETCH_COUNT,
            )
            return channel

    async def close_connection(self, connection: AbstractConnection | None) -> None:
        """
        Close the cached channel, then the connection.

        Close failures are logged; teardown always completes and leaves
        no cached handles behind.
        """
        channel, self._channel = self._channel, None
        connection = connection or self._connection
        if connection is self._connection:
            self._connection = None

        if channel is not None and not channel.is_closed:
            try:
                await channel.close()
                logger.info("RabbitMQ channel closed", stage="AMQP.CLOSE")
            except (AMQPError, OSError) as e:
                logger.error("Error closing RabbitMQ channel", stage="AMQP.CLOSE", error=str(e))

        if connection is not None and not connection.is_closed:
            try:
                await connection.close()
                logger.info("RabbitMQ connection closed", stage="AMQP.CLOSE")
            except (AMQPError, OSError) as e:
                logger.error(
                    "Error closing RabbitMQ connection", stage="AMQP.CLOSE", error=str(e)
                )

    async def _connect_with_retry(self, config: BrokerSettings) -> AbstractConnection:
        """Connect to RabbitMQ, retrying transient failures with a fixed delay."""
        max_retries = config.BROKER_CONNECT_MAX_RETRIES

        @retry(
            stop=stop_after_attempt(max_retries),
            wait=wait_fixed(config.BROKER_CONNECT_RETRY_DELAY),
            retry=retry_if_exception_type(_TRANSIENT_ERRORS),
            before_sleep=lambda retry_state: logger.warning(
                "Retrying RabbitMQ connection",
                stage="AMQP.RETRY",
                attempt=retry_state.attempt_number,
                max_retries=max_retries,
                delay=config.BROKER_CONNECT_RETRY_DELAY,
            ),
            reraise=True,
        )
        async def _do_connect() -> AbstractConnection:
            return await aio_pika.connect(
                config.RABBITMQ_URL,
                client_properties={"connection_name": config.BROKER_CONNECTION_NAME},
            )

        logger.info("Connecting to RabbitMQ", stage="AMQP.CONN", url=config.RABBITMQ_URL)
        try:
            connection = await _do_connect()
        except _TRANSIENT_ERRORS as e:
            logger.error(
                "Max RabbitMQ connection retries reached",
                stage="AMQP.CONN",
                attempts=max_retries,
                error=str(e),
            )
            raise BrokerConnectionError.from_exception(
                e,
                message=f"Could not connect to RabbitMQ after {max_retries} attempts: {e}",
                attempts=max_retries,
            ) from e

        connection.close_callbacks.add(self._on_connection_closed)
        logger.info("Successfully connected to RabbitMQ", stage="AMQP.CONN")
        return connection

    def _on_connection_closed(self, sender: Any, exc: BaseException | None = None) -> None:
        if sender is not self._connection:
            return
        logger.warning("RabbitMQ connection closed", stage="AMQP.CLOSED", error=_describe(exc))
        self._connection = None
        self._channel = None

    def _on_channel_closed(self, sender: Any, exc: BaseException | None = None) -> None:
        if sender is not self._channel:
            return
        logger.warning("RabbitMQ channel closed", stage="AMQP.CLOSED", error=_describe(exc))
        self._channel = None


def _is_open(handle: AbstractConnection | AbstractChannel | None) -> bool:
    return handle is not None and not handle.is_closed


def _describe(exc: BaseException | None) -> str | None:
    if exc is None:
        return None
    return str(exc) or exc.__class__.__name__
