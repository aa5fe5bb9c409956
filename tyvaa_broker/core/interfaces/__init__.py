from tyvaa_broker.core.interfaces.message_broker import ConnectionProvider, MessageHandler

__all__ = [
    "ConnectionProvider",
    "MessageHandler",
]
