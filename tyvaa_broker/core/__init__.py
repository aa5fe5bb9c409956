"""
Core Module

Shared building blocks of the broker package:

- **config**: Pydantic settings, connection states and event names
- **exceptions**: Themed exception hierarchy
- **logging**: structlog configuration and correlation IDs
- **events**: In-process event emitter
- **interfaces**: Abstract connection provider
"""

from tyvaa_broker.core.config import BrokerEvent, ConnectionState, get_settings
from tyvaa_broker.core.events import EventEmitter
from tyvaa_broker.core.exceptions import BrokerError, TyvaaBaseError
from tyvaa_broker.core.logging import get_logger, setup_logging

__all__ = [
    "BrokerEvent",
    "ConnectionState",
    "get_settings",
    "EventEmitter",
    "BrokerError",
    "TyvaaBaseError",
    "get_logger",
    "setup_logging",
]
