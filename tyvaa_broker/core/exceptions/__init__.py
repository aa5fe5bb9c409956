"""
Exception Module

Structured exception hierarchy for the broker package, organized by theme.

Module Structure:
-----------------
- **base.py**: TyvaaBaseError base class + ConfigurationError
- **broker.py**: AMQP broker exceptions
- **store.py**: Message store exceptions

Usage:
------
```python
from tyvaa_broker.core.exceptions import BrokerNotConnectedError

try:
    await broker.send_to_queue("orders", order)
except BrokerNotConnectedError:
    ...
```
"""

# Base exception
from tyvaa_broker.core.exceptions.base import ConfigurationError, TyvaaBaseError

# Broker exceptions
from tyvaa_broker.core.exceptions.broker import (
    BrokerConnectionError,
    BrokerError,
    BrokerNotConnectedError,
    BrokerOperationError,
    MessageSerializationError,
    PoisonMessageError,
)

# Store exceptions
from tyvaa_broker.core.exceptions.store import MessageStoreError

__all__ = [
    # Base
    "TyvaaBaseError",
    "ConfigurationError",
    # Broker
    "BrokerError",
    "BrokerConnectionError",
    "BrokerNotConnectedError",
    "BrokerOperationError",
    "MessageSerializationError",
    "PoisonMessageError",
    # Store
    "MessageStoreError",
]
