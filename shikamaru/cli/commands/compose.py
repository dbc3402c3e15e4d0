"""
Native Click implementation of the compose command.

Usage: shikamaru compose [options] [REPO...]
"""

from __future__ import annotations

from pathlib import Path

import click

from ...core.exceptions import ShikamaruException
from ...core.models.targets import GlobalMode
from ..context import ShikamaruContext
from ._engine import build_engine, click_error, resolve_run


@click.command("compose")
@click.argument("repos", nargs=-1)
@click.option(
    "--projects-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory containing the repositories",
)
@click.option(
    "--mode",
    type=click.Choice([m.value for m in GlobalMode]),
    help="Execution mode for repositories without an override",
)
@click.option("--infra", multiple=True, help="Infrastructure service to provision")
@click.pass_obj
def compose(
    ctx: ShikamaruContext,
    repos: tuple[str, ...],
    projects_dir: Path | None,
    mode: str | None,
    infra: tuple[str, ...],
) -> None:
    """Write the Docker Compose manifest without starting anything.

    \b
    Examples:
        shikamaru compose --mode container api worker
        shikamaru compose --infra cache --infra queue
    """
    plan = resolve_run(ctx, repos, mode=mode, projects_dir=projects_dir, infra=infra)
    engine = build_engine(ctx, ctx.settings.orchestration_options())

    try:
        manifest = engine.builder.generate(plan.targets, plan.resolution)
    except ShikamaruException as e:
        raise click_error(e) from e

    if manifest is None:
        click.echo("No container services or infrastructure required.")
        return

    engine.presenter.print_success(f"Wrote {engine.builder.manifest_path}")
    for name in manifest.service_names:
        click.echo(f"  {name}")
