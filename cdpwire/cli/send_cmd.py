"""
Send subcommand for executing one CDP command.
"""

import argparse
import asyncio
import json
import sys

from cdpwire.client import Client


async def send_handler_async(args: argparse.Namespace) -> int:
    """
    Connect to the configured target, execute METHOD and print the result.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    params = {}
    if args.params:
        try:
            params = json.loads(args.params)
        except json.JSONDecodeError as e:
            print(f"Error: Invalid JSON params: {e}", file=sys.stderr)
            return 1
        if not isinstance(params, dict):
            print("Error: --params must be a JSON object", file=sys.stderr)
            return 1

    async with await Client.from_config(args.config) as client:
        result = await client.execute(args.method, params)

    print(json.dumps(result, indent=2))
    return 0


def send_handler(args: argparse.Namespace) -> int:
    return asyncio.run(send_handler_async(args))


def register_subcommand(
    subparsers: argparse._SubParsersAction, parent: argparse.ArgumentParser
) -> None:
    send_parser = subparsers.add_parser(
        "send",
        parents=[parent],
        help="Execute one CDP command",
        description="Execute any CDP method with custom parameters",
        epilog="""
Examples:
  cdpwire send Runtime.evaluate --params '{"expression":"1+1","returnByValue":true}'
  cdpwire send Page.navigate --params '{"url":"https://example.com"}'
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    send_parser.add_argument(
        "method",
        help="CDP method to execute (e.g., Runtime.evaluate, Page.navigate)",
    )
    send_parser.add_argument(
        "--params",
        help="JSON-encoded parameters for the CDP method",
    )
    send_parser.set_defaults(func=send_handler)
