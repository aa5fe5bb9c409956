#!/usr/bin/env python3
"""
AMQP Broker Client

Single point of access to a RabbitMQ endpoint for the Tyvaa services.

Architecture:
    BrokerClient (Public API)
        ├── ConnectionProvider (connection/channel handles, see connection.py)
        ├── Serializer (UTF-8 JSON bodies, see serializer.py)
        └── EventEmitter (lifecycle and operational events)

Semantics:
    - Connect on demand: any operation needing a channel connects first
      through a single guard (_ensure_channel)
    - At most one connection/channel pair; concurrent connects share one attempt
    - Acknowledgement is left to subscribers; unparseable deliveries are
      nacked without requeue and never reach the subscriber
    - No reconnection loop: after a broker-initiated close the next
      operation reconnects, or fails

Events (name -> payload):
    connected               None
    disconnected            {reason}
    error                   exception instance
    message-published       {queueName, msg} | {exchangeName, routingKey, msg}
    subscribed              {queueName, consumerTag}
    unsubscribed            {consumerTag, queueName}
    message-acknowledged    {messageId}
    message-nacked          {messageId, requeue}
    queue-purged            {queueName, messageCount}
    consumer-error          {queueName, consumerTag, error}

Author: Tyvaa Platform Team
Date: 2025-06-14
"""

import asyncio
import inspect
import uuid
from typing import Any

import aio_pika
from aio_pika import DeliveryMode
from aio_pika.abc import (
    AbstractChannel,
    AbstractConnection,
    AbstractIncomingMessage,
    AbstractQueue,
)
from aio_pika.exceptions import AMQPError

from tyvaa_broker.core.config import (
    DEFAULT_EXCHANGE,
    DEFAULT_NO_ACK,
    DEFAULT_PERSISTENT,
    DEFAULT_QUEUE_DURABLE,
    JSON_CONTENT_ENCODING,
    JSON_CONTENT_TYPE,
    BrokerEvent,
    ConnectionState,
    Settings,
    get_settings,
)
from tyvaa_broker.core.events import EventEmitter, EventListener
from tyvaa_broker.core.exceptions import (
    BrokerConnectionError,
    BrokerError,
    BrokerNotConnectedError,
    BrokerOperationError,
    PoisonMessageError,
    TyvaaBaseError,
)
from tyvaa_broker.core.interfaces import ConnectionProvider, MessageHandler
from tyvaa_broker.core.logging import clear_correlation_id, get_logger, set_correlation_id
from tyvaa_broker.infrastructure.message_broker.connection import AmqpConnectionProvider
from tyvaa_broker.infrastructure.message_broker.serializer import deserialize, serialize

logger = get_logger(__name__)


class BrokerClient:
    """
    Connect-on-demand AMQP client with publish/subscribe and acknowledgement controls.

    Usage:
        broker = BrokerClient()
        broker.on("message-published", lambda event: ...)

        await broker.send_to_queue("orders", {"id": 1, "total": 42.5})

        async def handle(payload, message):
            ...
            await broker.acknowledge(message)

        tag = await broker.subscribe("orders", handle)
        ...
        await broker.destroy()
    """

    def __init__(
        self,
        provider: ConnectionProvider | None = None,
        settings: Settings | None = None,
    ):
        self._settings = settings or get_settings()
        self._config = self._settings.broker
        self._provider = provider or AmqpConnectionProvider()
        self._emitter = EventEmitter()

        self._connection: AbstractConnection | None = None
        self._channel: AbstractChannel | None = None
        self._state = ConnectionState.DISCONNECTED
        self._connect_lock = asyncio.Lock()
        self._closing = False

        # consumer tag -> queue name, and the queue object the tag was issued on
        self._consumers: dict[str, str] = {}
        self._consumer_queues: dict[str, AbstractQueue] = {}
        # queue name -> declared queue, valid for the held channel
        self._queues: dict[str, AbstractQueue] = {}

    # =========================================================================
    # State & Events
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED and self._channel is not None

    @property
    def consumers(self) -> dict[str, str]:
        """Active consumer registrations (consumer tag -> queue name), as a copy."""
        return dict(self._consumers)

    def get_channel_instance(self) -> AbstractChannel | None:
        """Return the currently held channel, or None when disconnected."""
        return self._channel

    def on(self, event: str, listener: EventListener) -> None:
        self._emitter.on(event, listener)

    def once(self, event: str, listener: EventListener) -> None:
        self._emitter.once(event, listener)

    def off(self, event: str, listener: EventListener) -> None:
        self._emitter.off(event, listener)

    # =========================================================================
    # Connection Lifecycle
    # =========================================================================

    async def connect(self) -> AbstractChannel:
        """
        Establish the connection/channel pair, or return the held channel.

        Idempotent: when already connected no provider call is made. Concurrent
        callers wait on one attempt and reuse its result.

        Returns:
            AbstractChannel: The held channel

        Raises:
            BrokerConnectionError: If the provider fails (also emitted as ``error``)
            ConfigurationError: If the endpoint is not configured (also emitted)
        """
        if self.is_connected:
            return self._channel

        async with self._connect_lock:
            if self.is_connected:
                return self._channel

            self._state = ConnectionState.CONNECTING
            try:
                connection = await self._provider.get_connection(self._config)
                channel = await self._provider.get_channel(self._config)
            except Exception as e:
                self._state = ConnectionState.DISCONNECTED
                error = e
                if not isinstance(e, TyvaaBaseError):
                    error = BrokerConnectionError.from_exception(
                        e, message=f"Failed to connect to broker: {e}"
                    )
                logger.error("Broker connection failed", stage="BROKER.CONN", error=str(e))
                self._emitter.emit(BrokerEvent.ERROR, error)
                if error is e:
                    raise
                raise error from e

            if connection is not self._connection:
                connection.close_callbacks.add(self._on_transport_closed)
            channel.close_callbacks.add(self._on_transport_closed)
            self._connection = connection
            self._channel = channel
            self._state = ConnectionState.CONNECTED

        logger.info("Broker connected", stage="BROKER.CONN")
        self._emitter.emit(BrokerEvent.CONNECTED)
        return channel

    async def _ensure_channel(self) -> AbstractChannel:
        """
        Return a channel for an operation, connecting on demand.

        Raises:
            BrokerNotConnectedError: If no channel is held and connecting failed
                or on-demand connect is disabled
        """
        if self.is_connected:
            return self._channel

        if not self._config.BROKER_AUTO_CONNECT:
            raise BrokerNotConnectedError(
                "Broker is not connected and auto-connect is disabled"
            ).with_suggestion("Call connect() before issuing broker operations")

        try:
            return await self.connect()
        except BrokerNotConnectedError:
            raise
        except BrokerConnectionError as e:
            raise BrokerNotConnectedError.from_exception(
                e, message=f"Broker is not connected: {e.message}"
            ) from e

    def _on_transport_closed(self, sender: Any, exc: BaseException | None = None) -> None:
        """Close callback for the held connection and channel (broker-initiated close)."""
        if self._closing:
            return
        if sender is not self._connection and sender is not self._channel:
            return

        had_channel = self._channel is not None
        lost_consumers = list(self._consumers)
        reason = _describe(exc)

        if sender is self._connection:
            self._reset()
        else:
            # Channel-level close; the connection is still open
            self._drop_channel()

        if not had_channel:
            logger.info("Broker connection closed", stage="BROKER.CLOSED", reason=reason)
            return

        logger.warning(
            "Broker channel lost",
            stage="BROKER.CLOSED",
            reason=reason,
            connection_closed=self._connection is None,
            lost_consumers=lost_consumers,
        )
        self._emitter.emit(BrokerEvent.DISCONNECTED, {"reason": reason})
        if exc is not None:
            self._emitter.emit(
                BrokerEvent.ERROR,
                BrokerConnectionError.from_exception(
                    exc, message=f"Broker connection closed: {reason}"
                ),
            )

    def _drop_channel(self) -> None:
        """Forget the channel and everything bound to it (consumers, declared queues)."""
        self._channel = None
        self._consumers.clear()
        self._consumer_queues.clear()
        self._queues.clear()
        self._state = ConnectionState.DISCONNECTED

    def _reset(self) -> None:
        self._connection = None
        self._drop_channel()

    # =========================================================================
    # Queues & Publishing
    # =========================================================================

    async def assert_queue(
        self, name: str, durable: bool = DEFAULT_QUEUE_DURABLE, **options: Any
    ) -> AbstractQueue:
        """
        Declare a queue (idempotent).

        The declared queue is cached for the lifetime of the held channel;
        later calls for the same name return it without a round trip.

        Args:
            name: Queue name
            durable: Survive broker restarts
            **options: Extra declare options (exclusive, auto_delete, arguments, ...)

        Returns:
            AbstractQueue: The declared queue; ``declaration_result`` carries
            message_count and consumer_count
        """
        channel = await self._ensure_channel()
        cached = self._queues.get(name)
        if cached is not None:
            return cached

        try:
            queue = await channel.declare_queue(name, durable=durable, **options)
        except AMQPError as e:
            logger.error("Queue declaration failed", stage="BROKER.Q", queue=name, error=str(e))
            raise BrokerOperationError.from_exception(
                e, message=f"Failed to assert queue '{name}': {e}", queue=name
            ) from e

        self._queues[name] = queue
        logger.debug("Queue asserted", stage="BROKER.Q", queue=name, durable=durable)
        return queue

    async def send_to_queue(
        self,
        queue_name: str,
        message: Any,
        persistent: bool = DEFAULT_PERSISTENT,
        **properties: Any,
    ) -> str:
        """
        Send a message directly to a queue (through the default exchange).

        Args:
            queue_name: Destination queue (asserted first)
            message: JSON-serializable payload
            persistent: Persistent delivery mode
            **properties: Extra AMQP message properties (headers, priority, ...)

        Returns:
            str: The message_id of the sent message

        Raises:
            MessageSerializationError: If message is not JSON-serializable
            BrokerNotConnectedError: If no channel could be obtained
            BrokerOperationError: If the endpoint rejected the send
        """
        body = serialize(message)
        await self.assert_queue(queue_name)
        channel = await self._ensure_channel()
        amqp_message = _build_message(body, persistent, properties)

        try:
            await channel.default_exchange.publish(amqp_message, routing_key=queue_name)
        except AMQPError as e:
            logger.error("Send failed", stage="BROKER.PUB", queue=queue_name, error=str(e))
            raise BrokerOperationError.from_exception(
                e, message=f"Failed to send to queue '{queue_name}': {e}", queue=queue_name
            ) from e

        logger.debug(
            "Message sent", stage="BROKER.PUB", queue=queue_name, id=amqp_message.message_id
        )
        self._emitter.emit(
            BrokerEvent.MESSAGE_PUBLISHED, {"queueName": queue_name, "msg": message}
        )
        return amqp_message.message_id

    async def publish(
        self,
        exchange_name: str | None,
        routing_key: str,
        message: Any,
        persistent: bool = DEFAULT_PERSISTENT,
        **properties: Any,
    ) -> str:
        """
        Publish a message to an exchange.

        ``None`` or ``""`` selects the default exchange, where the routing key
        names the destination queue.

        Returns:
            str: The message_id of the published message
        """
        body = serialize(message)
        channel = await self._ensure_channel()
        exchange_name = exchange_name or DEFAULT_EXCHANGE
        amqp_message = _build_message(body, persistent, properties)

        try:
            if exchange_name == DEFAULT_EXCHANGE:
                exchange = channel.default_exchange
            else:
                exchange = await channel.get_exchange(exchange_name)
            await exchange.publish(amqp_message, routing_key=routing_key)
        except AMQPError as e:
            logger.error(
                "Publish failed",
                stage="BROKER.PUB",
                exchange=exchange_name,
                routing_key=routing_key,
                error=str(e),
            )
            raise BrokerOperationError.from_exception(
                e,
                message=f"Failed to publish to exchange '{exchange_name}': {e}",
                exchange=exchange_name,
                routing_key=routing_key,
            ) from e

        self._emitter.emit(
            BrokerEvent.MESSAGE_PUBLISHED,
            {"exchangeName": exchange_name, "routingKey": routing_key, "msg": message},
        )
        return amqp_message.message_id

    async def purge_queue(self, queue_name: str) -> int:
        """
        Remove every ready message from a queue.

        Returns:
            int: Number of messages purged
        """
        queue = await self.assert_queue(queue_name)
        try:
            result = await queue.purge()
        except AMQPError as e:
            raise BrokerOperationError.from_exception(
                e, message=f"Failed to purge queue '{queue_name}': {e}", queue=queue_name
            ) from e

        message_count = getattr(result, "message_count", None) or 0
        logger.info("Queue purged", stage="BROKER.PURGE", queue=queue_name, count=message_count)
        self._emitter.emit(
            BrokerEvent.QUEUE_PURGED, {"queueName": queue_name, "messageCount": message_count}
        )
        return message_count

    # =========================================================================
    # Consuming
    # =========================================================================

    async def subscribe(
        self,
        queue_name: str,
        on_message: MessageHandler,
        no_ack: bool = DEFAULT_NO_ACK,
    ) -> str:
        """
        Register a consumer on a queue.

        ``on_message(payload, message)`` receives the decoded JSON payload and
        the raw delivery; with ``no_ack=False`` the subscriber must call
        acknowledge() or nack(). Deliveries whose body is not valid JSON are
        nacked without requeue and the callback is not invoked.

        Returns:
            str: Broker-issued consumer tag
        """
        queue = await self.assert_queue(queue_name)

        async def _on_delivery(raw: AbstractIncomingMessage) -> None:
            await self._dispatch(queue_name, raw, on_message, no_ack)

        try:
            consumer_tag = await queue.consume(_on_delivery, no_ack=no_ack)
        except AMQPError as e:
            raise BrokerOperationError.from_exception(
                e, message=f"Failed to subscribe to queue '{queue_name}': {e}", queue=queue_name
            ) from e

        self._consumers[consumer_tag] = queue_name
        self._consumer_queues[consumer_tag] = queue

        logger.info(
            "Subscribed", stage="BROKER.SUB", queue=queue_name, consumer_tag=consumer_tag
        )
        self._emitter.emit(
            BrokerEvent.SUBSCRIBED, {"queueName": queue_name, "consumerTag": consumer_tag}
        )
        return consumer_tag

    async def _dispatch(
        self,
        queue_name: str,
        raw: AbstractIncomingMessage,
        on_message: MessageHandler,
        no_ack: bool,
    ) -> None:
        message_id = _message_id(raw)

        try:
            payload = deserialize(raw.body)
        except PoisonMessageError as e:
            logger.error(
                "Discarding unparseable message",
                stage="BROKER.POISON",
                queue=queue_name,
                message_id=message_id,
                error=e.message,
            )
            if not no_ack:
                await self.nack(raw, all_up_to=False, requeue=False)
            return

        set_correlation_id(str(message_id))
        try:
            result = on_message(payload, raw)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            # Left unacknowledged; redelivered when the channel closes
            logger.error(
                "Subscriber callback failed",
                stage="BROKER.CONSUME",
                queue=queue_name,
                message_id=message_id,
                error=str(e),
            )
            self._emitter.emit(
                BrokerEvent.CONSUMER_ERROR,
                {
                    "queueName": queue_name,
                    "consumerTag": getattr(raw, "consumer_tag", None),
                    "error": e,
                },
            )
        finally:
            clear_correlation_id()

    async def unsubscribe(self, consumer_tag: str) -> bool:
        """
        Cancel a consumer.

        Unknown tags are a no-op: a warning is logged, nothing is emitted
        and False is returned.

        Returns:
            bool: True if a registration was removed
        """
        queue_name = self._consumers.get(consumer_tag)
        if queue_name is None:
            logger.warning("Unknown consumer tag", stage="BROKER.UNSUB", consumer_tag=consumer_tag)
            return False

        queue = self._consumer_queues.get(consumer_tag)
        if queue is not None and self._channel is not None:
            try:
                await queue.cancel(consumer_tag)
            except AMQPError as e:
                raise BrokerOperationError.from_exception(
                    e,
                    message=f"Failed to cancel consumer '{consumer_tag}': {e}",
                    consumer_tag=consumer_tag,
                    queue=queue_name,
                ) from e

        del self._consumers[consumer_tag]
        self._consumer_queues.pop(consumer_tag, None)

        logger.info(
            "Unsubscribed", stage="BROKER.UNSUB", queue=queue_name, consumer_tag=consumer_tag
        )
        self._emitter.emit(
            BrokerEvent.UNSUBSCRIBED, {"consumerTag": consumer_tag, "queueName": queue_name}
        )
        return True

    async def acknowledge(self, message: AbstractIncomingMessage) -> None:
        """Positively acknowledge a delivery."""
        try:
            await message.ack()
        except AMQPError as e:
            raise BrokerOperationError.from_exception(
                e, message=f"Failed to acknowledge message: {e}"
            ) from e

        self._emitter.emit(BrokerEvent.MESSAGE_ACKNOWLEDGED, {"messageId": _message_id(message)})

    async def nack(
        self,
        message: AbstractIncomingMessage,
        all_up_to: bool = False,
        requeue: bool = True,
    ) -> None:
        """
        Negatively acknowledge a delivery.

        Args:
            message: The delivery
            all_up_to: Also nack every earlier unacknowledged delivery on the channel
            requeue: Return the message to the queue instead of dropping it
        """
        try:
            await message.nack(multiple=all_up_to, requeue=requeue)
        except AMQPError as e:
            raise BrokerOperationError.from_exception(
                e, message=f"Failed to nack message: {e}"
            ) from e

        self._emitter.emit(
            BrokerEvent.MESSAGE_NACKED,
            {"messageId": _message_id(message), "requeue": requeue},
        )

    # =========================================================================
    # Teardown
    # =========================================================================

    async def destroy(self) -> None:
        """
        Cancel every consumer, close channel and connection, drop all listeners.

        Safe to call more than once and when never connected.
        """
        self._closing = True
        try:
            for consumer_tag in list(self._consumers):
                try:
                    await self.unsubscribe(consumer_tag)
                except BrokerError as e:
                    logger.warning(
                        "Failed to cancel consumer during shutdown",
                        stage="BROKER.DESTROY",
                        consumer_tag=consumer_tag,
                        error=e.message,
                    )
                    self._consumers.pop(consumer_tag, None)
                    self._consumer_queues.pop(consumer_tag, None)

            if self._connection is not None or self._channel is not None:
                await self._provider.close_connection(self._connection)
                logger.info("Broker connection closed", stage="BROKER.DESTROY")
        finally:
            self._reset()
            self._emitter.remove_all_listeners()
            self._closing = False


def _build_message(body: bytes, persistent: bool, properties: dict[str, Any]) -> aio_pika.Message:
    properties.setdefault("message_id", uuid.uuid4().hex)
    properties.setdefault("content_type", JSON_CONTENT_TYPE)
    properties.setdefault("content_encoding", JSON_CONTENT_ENCODING)
    delivery_mode = DeliveryMode.PERSISTENT if persistent else DeliveryMode.NOT_PERSISTENT
    return aio_pika.Message(body, delivery_mode=delivery_mode, **properties)


def _message_id(message: AbstractIncomingMessage) -> Any:
    return getattr(message, "message_id", None) or getattr(message, "delivery_tag", None)


def _describe(exc: BaseException | None) -> str | None:
    if exc is None:
        return None
    return str(exc) or exc.__class__.__name__
