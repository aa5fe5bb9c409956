"""
Message Serializer

Wire format of every message body: UTF-8 encoded JSON text of the caller's
value, with no envelope. orjson emits compact output, so
``{"id": 1, "total": 42.5}`` becomes ``b'{"id":1,"total":42.5}'``.
"""

from typing import Any

import orjson

from tyvaa_broker.core.exceptions import MessageSerializationError, PoisonMessageError


def serialize(message: Any) -> bytes:
    """
    Encode a message as UTF-8 JSON bytes.

    Raises:
        MessageSerializationError: If the value is not JSON-serializable
    """
    try:
        return orjson.dumps(message)
    except (orjson.JSONEncodeError, TypeError) as e:
        raise MessageSerializationError(
            f"Message is not JSON-serializable: {e}",
            details={"message_type": type(message).__name__},
        ) from e


def deserialize(body: bytes | bytearray | memoryview | str) -> Any:
    """
    Decode a UTF-8 JSON body.

    Raises:
        PoisonMessageError: If the body is not valid UTF-8 JSON text
    """
    try:
        return orjson.loads(body)
    except (orjson.JSONDecodeError, TypeError) as e:
        raise PoisonMessageError(
            f"Message body is not valid JSON: {e}",
            details={"body_size": len(body) if body is not None else 0},
        ) from e
