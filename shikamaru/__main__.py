"""
Entry point for the `shikamaru` command-line interface.

This module provides the main() entry point that delegates to the Click CLI.
"""


def main():
    """Main entry point for the shikamaru CLI."""
    from .cli import cli

    cli()


if __name__ == "__main__":
    main()
