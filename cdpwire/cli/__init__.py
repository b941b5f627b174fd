"""Command-line host for cdpwire (targets, send, listen subcommands)."""
