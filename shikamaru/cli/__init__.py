"""
Click-based CLI for shikamaru.

This module provides the main Click command group and serves as the
entry point for the shikamaru CLI.

Usage:
    from shikamaru.cli import cli
    cli()  # Invokes the CLI
"""

from __future__ import annotations

from pathlib import Path

import click

from .context import ShikamaruContext

# Version is loaded from package metadata
try:
    from importlib.metadata import version

    __version__ = version("shikamaru-cli")
except Exception:
    __version__ = "0.1.0"


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="shikamaru")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Config file (default: search for .shikamaru/config.toml)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None) -> None:
    """shikamaru - local multi-repository development environments

    Installs dependencies, starts every repository locally or in a
    generated Docker Compose stack, and stops everything on exit.

    \b
    Quick Start:
        shikamaru start api web     Install and start two repositories
        shikamaru compose           Write the compose manifest only
        shikamaru down              Tear down the compose stack
    """
    ctx.ensure_object(dict)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())
        ctx.exit(0)
    else:
        ctx.obj = ShikamaruContext.create(config_path=config_path)


def register_commands() -> None:
    """Register all CLI commands with the main group."""
    from .commands import COMMANDS

    for cmd in COMMANDS:
        cli.add_command(cmd)


# Register commands at module load time
register_commands()


__all__ = [
    "ShikamaruContext",
    "__version__",
    "cli",
    "register_commands",
]
