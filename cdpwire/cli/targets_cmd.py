"""
Targets subcommand: print the /json listing.
"""

import argparse
import json

from cdpwire.targets import list_targets


def targets_handler(args: argparse.Namespace) -> int:
    targets = list_targets(args.config.base_url)
    if args.ws_only:
        for target in targets:
            print(target.webSocketDebuggerUrl)
    else:
        print(json.dumps([t.to_dict() for t in targets], indent=2))
    return 0


def register_subcommand(
    subparsers: argparse._SubParsersAction, parent: argparse.ArgumentParser
) -> None:
    targets_parser = subparsers.add_parser(
        "targets",
        parents=[parent],
        help="List debuggable targets",
        description="List the targets served by the Chrome /json endpoint, in index order",
    )
    targets_parser.add_argument(
        "--ws-only",
        action="store_true",
        help="Print only webSocketDebuggerUrl values, one per line",
    )
    targets_parser.set_defaults(func=targets_handler)
