"""
Native Click implementation of the down command.

Usage: shikamaru down
"""

from __future__ import annotations

import asyncio

import click

from ..context import ShikamaruContext
from ._engine import build_engine


@click.command("down")
@click.pass_obj
def down(ctx: ShikamaruContext) -> None:
    """Tear down the stack described by the existing compose manifest."""
    engine = build_engine(ctx, ctx.settings.orchestration_options())

    manifest_path = engine.builder.manifest_path
    if not manifest_path.exists():
        click.echo(f"No compose manifest found at {manifest_path}")
        return

    report = asyncio.run(engine.shutdown.shutdown())
    engine.presenter.print_stop_report(report)
    if not report.success:
        raise SystemExit(1)
