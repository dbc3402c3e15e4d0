"""
Native Click implementation of the start command.

Usage: shikamaru start [options] [REPO...]
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from pathlib import Path

import click

from ...core.exceptions import ShikamaruException
from ...core.models.outcomes import OrchestrationResult, StopReport
from ...core.models.targets import GlobalMode
from ...services.orchestration import (
    ProcessRegistry,
    ShutdownSignalHandler,
    planned_container_names,
)
from ..context import ShikamaruContext
from ._engine import Engine, RunPlan, build_engine, click_error, resolve_run

WATCHER_DRAIN_S = 5.0


@click.command("start")
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
@click.option("--concurrency", type=click.IntRange(min=1), help="Parallel installs/starts")
@click.option("--timeout-ms", type=click.IntRange(min=1), help="Per-repository timeout")
@click.option("--skip-install", is_flag=True, default=None, help="Skip dependency installation")
@click.option(
    "--infra",
    multiple=True,
    help="Infrastructure service to provision (postgres, timescaledb, redis, rabbitmq)",
)
@click.option("--follow/--no-follow", default=True, help="Stream service output to the console")
@click.option("-y", "--yes", is_flag=True, help="Start remaining services when installs fail")
@click.pass_obj
def start(
    ctx: ShikamaruContext,
    repos: tuple[str, ...],
    projects_dir: Path | None,
    mode: str | None,
    concurrency: int | None,
    timeout_ms: int | None,
    skip_install: bool | None,
    infra: tuple[str, ...],
    follow: bool,
    yes: bool,
) -> None:
    """Install and start repositories, then stop them on Ctrl+C.

    Local repositories have their dependencies installed and are started
    as child processes (frontends open in a new terminal window).
    Container repositories and infrastructure services run in a generated
    Docker Compose stack.

    \b
    Examples:
        shikamaru start api web
        shikamaru start --mode container --infra redis,postgres
        shikamaru start --concurrency 4 --skip-install
    """
    plan = resolve_run(ctx, repos, mode=mode, projects_dir=projects_dir, infra=infra)
    options = ctx.settings.orchestration_options(
        concurrency=concurrency,
        timeout_ms=timeout_ms,
        skip_install=skip_install,
        continue_on_install_failure=True if yes else None,
    )
    engine = build_engine(ctx, options, confirm_continue=_confirm_continue(ctx))

    try:
        result, report = asyncio.run(_run_session(engine, plan, follow))
    except ShikamaruException as e:
        raise click_error(e) from e

    engine.presenter.print_stop_report(report)
    if (result is not None and not result.success) or not report.success:
        raise SystemExit(1)


def _confirm_continue(ctx: ShikamaruContext) -> Callable[[list[str]], bool] | None:
    if not ctx.is_interactive:
        return None

    def confirm(failures: list[str]) -> bool:
        return click.confirm(
            f"Dependency installation failed for: {', '.join(failures)}. "
            "Start the remaining services anyway?",
            default=False,
        )

    return confirm


async def _run_session(
    engine: Engine,
    plan: RunPlan,
    follow: bool,
) -> tuple[OrchestrationResult | None, StopReport]:
    """Run both lanes, wait for a shutdown signal, then stop everything."""
    presenter = engine.presenter
    handler = ShutdownSignalHandler(
        on_first_interrupt=lambda: presenter.print("\nShutting down services..."),
        logger=engine.logger,
    )
    handler.install()
    unsubscribers: list[Callable[[], None]] = []
    result: OrchestrationResult | None = None
    try:
        try:
            result = await _run_until_interrupted(engine, plan, handler)
            if result is not None:
                presenter.print_result(result)

            if result is not None and result.running_services and not handler.is_interrupted():
                if follow:
                    unsubscribers = _follow_output(engine.registry)
                presenter.print("Press Ctrl+C to stop all services")
                await handler.stop_event.wait()
        finally:
            # Whatever reached the registry is stopped, even if the run raised.
            for unsubscribe in unsubscribers:
                unsubscribe()
            report = await engine.shutdown.shutdown(
                planned_container_names(plan.targets, plan.resolution)
            )
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(engine.starter.wait_watchers(), WATCHER_DRAIN_S)
        return result, report
    finally:
        handler.restore()


async def _run_until_interrupted(
    engine: Engine,
    plan: RunPlan,
    handler: ShutdownSignalHandler,
) -> OrchestrationResult | None:
    """The orchestration result, or None if a shutdown signal arrived first."""
    run_task = asyncio.ensure_future(
        engine.coordinator.run(plan.targets, plan.resolution, handler.stop_event)
    )
    stop_task = asyncio.ensure_future(handler.stop_event.wait())
    done, _ = await asyncio.wait({run_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)

    if run_task in done:
        stop_task.cancel()
        return run_task.result()

    run_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await run_task
    return None


def _follow_output(registry: ProcessRegistry) -> list[Callable[[], None]]:
    """Echo every managed stream as ``name | line``, history first."""

    def echo(name: str, line: str) -> None:
        click.echo(f"{name} | {line}")

    unsubscribers = []
    for process in registry.snapshot().values():
        for line in process.stream.history:
            echo(process.name, line)
        unsubscribers.append(process.stream.subscribe(echo))
    return unsubscribers
