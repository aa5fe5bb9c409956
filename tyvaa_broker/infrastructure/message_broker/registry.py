"""
Process-wide Broker Registry

One BrokerClient per process, installed explicitly at startup and torn
down at shutdown:

    broker = init_broker()          # startup / lifespan
    ...
    get_broker().send_to_queue(...) # anywhere
    ...
    await close_broker()            # shutdown

get_broker() never constructs a client on its own.
"""

import asyncio
import signal

from tyvaa_broker.core.exceptions import BrokerError
from tyvaa_broker.core.logging import get_logger
from tyvaa_broker.infrastructure.message_broker.client import BrokerClient

logger = get_logger(__name__)

_broker: BrokerClient | None = None


def init_broker(client: BrokerClient | None = None) -> BrokerClient:
    """
    Install the process-wide broker.

    Args:
        client: Pre-built client (dependency injection); a default
            BrokerClient is created when omitted

    Returns:
        BrokerClient: The installed broker

    Raises:
        BrokerError: If a different broker is already installed
    """
    global _broker

    if _broker is not None:
        if client is None or client is _broker:
            return _broker
        raise BrokerError("A broker is already initialized").with_suggestion(
            "Call close_broker() before installing another client"
        )

    _broker = client or BrokerClient()
    logger.info("Broker registry initialized", stage="BROKER.REGISTRY")
    return _broker


def get_broker() -> BrokerClient:
    """
    Get the process-wide broker.

    Raises:
        BrokerError: If init_broker() has not been called
    """
    if _broker is None:
        raise BrokerError("Broker is not initialized").with_suggestion(
            "Call init_broker() during application startup"
        )
    return _broker


async def close_broker() -> None:
    """Destroy and uninstall the process-wide broker (no-op if none)."""
    global _broker

    broker, _broker = _broker, None
    if broker is not None:
        await broker.destroy()
        logger.info("Broker registry closed", stage="BROKER.REGISTRY")


def install_signal_handlers(loop: asyncio.AbstractEventLoop | None = None) -> None:
    """
    Close the process-wide broker on SIGINT/SIGTERM.

    Must be called from within a running loop unless ``loop`` is given.
    Not supported on Windows event loops.
    """
    loop = loop or asyncio.get_running_loop()

    def _on_signal(signame: str) -> None:
        logger.info("Signal received, closing broker", stage="BROKER.SIGNAL", signal=signame)
        loop.create_task(close_broker())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _on_signal, sig.name)
