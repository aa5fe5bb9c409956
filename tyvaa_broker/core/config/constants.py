"""
System Constants and Enumerations

This module defines constants and enumerations shared by the broker client,
the message store and the CLI.

Author: Tyvaa Platform Team
Date: 2025-06-14
"""

from enum import Enum

# ============================================================================
# Connection States
# ============================================================================


class ConnectionState(str, Enum):
    """
    Connection states of a BrokerClient.

    DISCONNECTED: No connection/channel pair is held (initial state)
    CONNECTING: A connect attempt is in flight
    CONNECTED: A live connection/channel pair is held
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


# ============================================================================
# Broker Events
# ============================================================================


class BrokerEvent(str, Enum):
    """
    Names of the events emitted by BrokerClient.

    Listeners subscribe by name; the string values are part of the public
    contract and must not change.
    """

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"
    MESSAGE_PUBLISHED = "message-published"
    SUBSCRIBED = "subscribed"
    UNSUBSCRIBED = "unsubscribed"
    MESSAGE_ACKNOWLEDGED = "message-acknowledged"
    MESSAGE_NACKED = "message-nacked"
    QUEUE_PURGED = "queue-purged"
    CONSUMER_ERROR = "consumer-error"


# ============================================================================
# Defaults
# ============================================================================

# Empty exchange name addresses the AMQP default (direct) exchange
DEFAULT_EXCHANGE = ""

DEFAULT_QUEUE_DURABLE = True
DEFAULT_PERSISTENT = True
DEFAULT_NO_ACK = False

JSON_CONTENT_TYPE = "application/json"
JSON_CONTENT_ENCODING = "utf-8"

# Connection retry (initial transport connect only)
DEFAULT_CONNECT_MAX_RETRIES = 10
DEFAULT_CONNECT_RETRY_DELAY = 5.0
