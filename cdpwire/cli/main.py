"""
Main CLI entry point for cdpwire.

Usage:
    python -m cdpwire.cli.main <subcommand> [options]

Subcommands:
    targets - List debuggable targets from the /json endpoint
    send    - Send one CDP command and print its result
    listen  - Print CDP events as JSON lines
"""

import argparse
import sys
from typing import List, Optional

from cdpwire.config import DEFAULT_CONFIG_FILE, Configuration
from cdpwire.exceptions import CDPError
from cdpwire.logging_setup import setup_logging


def create_parent_parser() -> argparse.ArgumentParser:
    """
    Create parent parser with global options shared across all subcommands.

    Unset options default to None so that environment and config-file values
    are not masked.
    """
    parent = argparse.ArgumentParser(add_help=False)

    parent.add_argument(
        "--base-url",
        help="Chrome HTTP endpoint (default: http://localhost:9222)",
    )
    parent.add_argument(
        "--target",
        type=int,
        dest="target_index",
        help="Index of the target in the /json listing (default: 0)",
    )
    parent.add_argument(
        "--timeout",
        type=float,
        help="Command timeout in seconds (default: 30.0)",
    )

    parent.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        help="Log level (default: info)",
    )
    parent.add_argument(
        "--log-format",
        choices=["text", "json"],
        help="Log output format (default: text)",
    )

    verbosity_group = parent.add_mutually_exclusive_group()
    verbosity_group.add_argument(
        "--quiet",
        action="store_true",
        help="Only log errors",
    )
    verbosity_group.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose debug output",
    )

    return parent


def create_main_parser(parent: argparse.ArgumentParser) -> argparse.ArgumentParser:
    """Create main parser with all subcommands."""
    parser = argparse.ArgumentParser(
        prog="cdpwire",
        description="Chrome DevTools Protocol client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List targets
  cdpwire targets

  # Evaluate JavaScript in the second target
  cdpwire send Runtime.evaluate --target 1 --params '{"expression":"document.title"}'

  # Watch network requests for 30 seconds
  cdpwire listen Network.requestWillBeSent --enable Network --duration 30
        """,
    )

    subparsers = parser.add_subparsers(
        dest="subcommand",
        title="subcommands",
        required=True,
    )

    from . import listen_cmd, send_cmd, targets_cmd

    targets_cmd.register_subcommand(subparsers, parent)
    send_cmd.register_subcommand(subparsers, parent)
    listen_cmd.register_subcommand(subparsers, parent)

    return parser


def build_config(args: argparse.Namespace) -> Configuration:
    """Load configuration with precedence: CLI > env > file > defaults."""
    config = Configuration.load(
        DEFAULT_CONFIG_FILE,
        base_url=args.base_url,
        target_index=args.target_index,
        timeout=args.timeout,
        log_level=args.log_level.upper() if args.log_level else None,
        log_format=args.log_format,
    )
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for CLI.

    Returns:
        Exit code (0 for success, 1 for CDP errors, 130 on interrupt)
    """
    parent = create_parent_parser()
    parser = create_main_parser(parent)
    args = parser.parse_args(argv)

    config = build_config(args)
    setup_logging(
        format_type=config.log_format,
        level=config.log_level,
        quiet=args.quiet,
        verbose=args.verbose,
    )
    args.config = config

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except CDPError as e:
        if args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        if e.details.get("recovery"):
            print(f"Recovery hint: {e.details['recovery']}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
