"""
Message Store Exceptions

Exceptions raised by the Redis-backed message store.
"""

from tyvaa_broker.core.exceptions.base import TyvaaBaseError


class MessageStoreError(TyvaaBaseError):
    """
    Raised when a message store operation fails.

    Common causes:
    - Redis unreachable
    - Key holds a non-list value
    """
    pass
