#!/usr/bin/env python3
"""
Broker Operations CLI

Inspect or clear Redis-backed message lists and purge AMQP queues.

Examples:
    tyvaa-broker inspect notification_created
    tyvaa-broker clear notification_created
    tyvaa-broker purge orders
"""

import argparse
import asyncio
import sys
from enum import Enum

import orjson

from tyvaa_broker.core.exceptions import ConfigurationError, TyvaaBaseError
from tyvaa_broker.core.logging import setup_logging
from tyvaa_broker.infrastructure.message_broker import BrokerClient
from tyvaa_broker.infrastructure.message_store import RedisMessageStore


class ExitCode(Enum):
    """Standardized exit codes."""

    SUCCESS = 0
    GENERAL_ERROR = 1
    CONFIGURATION_ERROR = 2


def create_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="tyvaa-broker",
        description="Tyvaa message broker operations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s inspect notification_created   # List stored messages (Redis)
  %(prog)s clear notification_created     # Delete a stored message list (Redis)
  %(prog)s purge orders                   # Purge an AMQP queue
        """,
    )

    parser.add_argument(
        "command",
        choices=["inspect", "clear", "purge"],
        help="Operation to perform",
    )
    parser.add_argument("queue", help="Queue name")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: WARNING)",
    )
    parser.add_argument(
        "--log-format",
        default="console",
        choices=["json", "console"],
        help="Log format (default: console)",
    )

    return parser


async def inspect_queue(queue: str, store: RedisMessageStore | None = None) -> list[str]:
    """Return printable lines for every stored message in ``queue``."""
    store = store or RedisMessageStore()
    try:
        messages = await store.load(queue)
    finally:
        await store.close()

    lines = [f"Contents of queue '{queue}':"]
    lines.extend(
        f"  [{index}]: {orjson.dumps(message).decode('utf-8')}"
        for index, message in enumerate(messages)
    )
    return lines


async def clear_queue(queue: str, store: RedisMessageStore | None = None) -> int:
    store = store or RedisMessageStore()
    try:
        return await store.clear(queue)
    finally:
        await store.close()


async def purge_queue(queue: str, broker: BrokerClient | None = None) -> int:
    broker = broker or BrokerClient()
    try:
        return await broker.purge_queue(queue)
    finally:
        await broker.destroy()


async def run(args: argparse.Namespace) -> list[str]:
    if args.command == "inspect":
        return await inspect_queue(args.queue)
    if args.command == "clear":
        deleted = await clear_queue(args.queue)
        return [f"Deleted queue '{args.queue}', result: {deleted}"]
    purged = await purge_queue(args.queue)
    return [f"Purged queue '{args.queue}', messages removed: {purged}"]


def main(argv: list[str] | None = None) -> int:
    """Application entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(log_level=args.log_level, log_format=args.log_format)

    try:
        lines = asyncio.run(run(args))
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return ExitCode.CONFIGURATION_ERROR.value
    except TyvaaBaseError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return ExitCode.GENERAL_ERROR.value
    except KeyboardInterrupt:
        print("Operation interrupted by user", file=sys.stderr)
        return ExitCode.GENERAL_ERROR.value

    for line in lines:
        print(line)
    return ExitCode.SUCCESS.value


if __name__ == "__main__":
    sys.exit(main())
