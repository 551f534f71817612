"""apitrail CLI - Command line interface for apitrail."""

from apitrail.cli.commands import cli


def main() -> None:
    """Main entry point for the apitrail CLI."""
    cli(obj={})


__all__ = ["main", "cli"]
