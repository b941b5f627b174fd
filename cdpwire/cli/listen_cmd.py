"""
Listen subcommand: stream CDP events to stdout as JSON lines.

Stops after --duration seconds, when --until's event arrives, or on Ctrl+C.
"""

import argparse
import asyncio
import json
import logging

from cdpwire.client import Client
from cdpwire.exceptions import CDPTimeoutError
from cdpwire.protocol import Event

logger = logging.getLogger(__name__)


def print_event(event: Event) -> None:
    print(json.dumps({"method": event.method, "params": event.params}), flush=True)


async def listen_handler_async(args: argparse.Namespace) -> int:
    async with await Client.from_config(args.config) as client:
        for method in args.methods:
            client.on(method, print_event)

        for domain in args.enable:
            await client.execute(f"{domain}.enable")
            logger.info(f"Enabled domain {domain}")

        if args.until:
            try:
                await client.wait_for(args.until, timeout=args.duration)
            except CDPTimeoutError:
                logger.info(f"{args.until} not seen within {args.duration}s")
        elif args.duration is not None:
            await asyncio.sleep(args.duration)
        else:
            await client.dispatcher.wait_stopped()

    return 0


def listen_handler(args: argparse.Namespace) -> int:
    return asyncio.run(listen_handler_async(args))


def register_subcommand(
    subparsers: argparse._SubParsersAction, parent: argparse.ArgumentParser
) -> None:
    listen_parser = subparsers.add_parser(
        "listen",
        parents=[parent],
        help="Print CDP events as JSON lines",
        description="Subscribe to event methods (or Domain.* wildcards) and print them",
        epilog="""
Examples:
  cdpwire listen Network.requestWillBeSent --enable Network --duration 30
  cdpwire listen 'Network.*' --enable Network --enable Page --until Page.loadEventFired
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    listen_parser.add_argument(
        "methods",
        nargs="+",
        help="Event methods to print (e.g. Console.messageAdded, Network.*)",
    )
    listen_parser.add_argument(
        "--enable",
        action="append",
        default=[],
        metavar="DOMAIN",
        help="Send DOMAIN.enable before listening (repeatable)",
    )
    listen_parser.add_argument(
        "--duration",
        type=float,
        help="Stop after this many seconds",
    )
    listen_parser.add_argument(
        "--until",
        metavar="METHOD",
        help="Stop when this event arrives",
    )
    listen_parser.set_defaults(func=listen_handler)
