from .redis_store import RedisMessageStore

__all__ = [
    "RedisMessageStore",
]
