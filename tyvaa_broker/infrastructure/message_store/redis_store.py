#!/usr/bin/env python3
"""
Redis Message Store

JSON message lists kept in Redis, one list per queue name. Used to
buffer notification events and to inspect or clear them from the CLI.

List layout:
    save  -> LPUSH (newest at the head)
    pop   -> RPOP  (oldest first, FIFO)
    load  -> LRANGE 0 -1 (newest first)

Author: Tyvaa Platform Team
Date: 2025-06-14
"""

from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from tyvaa_broker.core.config import Settings, get_settings
from tyvaa_broker.core.exceptions import MessageStoreError
from tyvaa_broker.core.logging import get_logger
from tyvaa_broker.infrastructure.message_broker.serializer import deserialize, serialize

logger = get_logger(__name__)


class RedisMessageStore:
    """
    Async Redis-backed message lists.

    Usage:
        store = RedisMessageStore()
        await store.save("notification_created", {"token": "...", "eventType": "ride"})
        message = await store.pop("notification_created")
        await store.close()
    """

    def __init__(self, client: redis.Redis | None = None, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._prefix = self.settings.redis.REDIS_KEY_PREFIX
        self._client = client or redis.Redis.from_url(
            self.settings.redis.REDIS_URL, decode_responses=True
        )

    @property
    def client(self) -> redis.Redis:
        return self._client

    def key(self, queue: str) -> str:
        return f"{self._prefix}{queue}"

    async def connect(self) -> None:
        """
        Verify the Redis connection.

        Raises:
            MessageStoreError: If Redis is unreachable
        """
        try:
            await self._client.ping()
        except RedisError as e:
            logger.error("Failed to connect to Redis", stage="STORE.CONN", error=str(e))
            raise MessageStoreError.from_exception(
                e, message=f"Failed to connect to Redis: {e}"
            ) from e
        logger.info("Redis message store connected", stage="STORE.CONN")

    async def save(self, queue: str, message: Any) -> int:
        """
        Append a message to a queue list.

        Returns:
            int: List length after the push
        """
        payload = serialize(message).decode("utf-8")
        try:
            length = await self._client.lpush(self.key(queue), payload)
        except RedisError as e:
            raise self._error("save", queue, e) from e
        logger.debug("Message stored", stage="STORE.SAVE", queue=queue, length=length)
        return length

    async def load(self, queue: str) -> list[Any]:
        """Return every stored message, newest first."""
        try:
            entries = await self._client.lrange(self.key(queue), 0, -1)
        except RedisError as e:
            raise self._error("load", queue, e) from e
        return [deserialize(entry) for entry in entries]

    async def pop(self, queue: str) -> Any | None:
        """Remove and return the oldest message, or None when the list is empty."""
        try:
            entry = await self._client.rpop(self.key(queue))
        except RedisError as e:
            raise self._error("pop", queue, e) from e
        return deserialize(entry) if entry is not None else None

    async def clear(self, queue: str) -> int:
        """
        Delete a queue list.

        Returns:
            int: Number of keys deleted (0 or 1)
        """
        try:
            deleted = await self._client.delete(self.key(queue))
        except RedisError as e:
            raise self._error("clear", queue, e) from e
        logger.info("Queue cleared", stage="STORE.CLEAR", queue=queue, deleted=deleted)
        return deleted

    async def length(self, queue: str) -> int:
        try:
            return await self._client.llen(self.key(queue))
        except RedisError as e:
            raise self._error("length", queue, e) from e

    async def close(self) -> None:
        await self._client.aclose()

    def _error(self, operation: str, queue: str, exc: RedisError) -> MessageStoreError:
        logger.error(
            "Message store operation failed",
            stage="STORE.ERR",
            operation=operation,
            queue=queue,
            error=str(exc),
        )
        return MessageStoreError.from_exception(
            exc,
            message=f"Message store {operation} failed for '{queue}': {exc}",
            queue=queue,
        )
