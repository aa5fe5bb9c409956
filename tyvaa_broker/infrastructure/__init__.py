"""
Infrastructure Layer

- **message_broker**: AMQP client, connection provider and process-wide registry
- **message_store**: Redis-backed message lists
"""
