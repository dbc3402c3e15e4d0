"""
Shared helpers for the start, compose and down commands.

Resolves targets from settings and CLI flags, and wires the orchestration
services together from the DI container.

Usage:
    from ._engine import build_engine, resolve_run, click_error
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import click

from ...core.bootstrap import bootstrap
from ...core.exceptions import ShikamaruException
from ...core.interfaces.framework import IFrameworkDetector
from ...core.interfaces.logger import ILogger
from ...core.interfaces.presenter import IPresenter
from ...core.interfaces.process import ICommandRunner, IProcessStopper
from ...core.models.compose import InfraServiceType
from ...core.models.options import ContainerOptions, EnvironmentResolution, OrchestrationOptions
from ...core.models.targets import GlobalMode, RepositoryTarget
from ...services.orchestration import (
    ContainerStackBuilder,
    ContainerStackRunner,
    DependencyInstaller,
    LocalServiceStarter,
    OrchestrationCoordinator,
    ProcessRegistry,
    ShutdownCoordinator,
)

if TYPE_CHECKING:
    from ...services.orchestration.coordinator import ConfirmContinue
    from ..context import ShikamaruContext


@dataclass
class Engine:
    """Every orchestration service for one run, sharing one registry."""

    registry: ProcessRegistry
    installer: DependencyInstaller
    starter: LocalServiceStarter
    builder: ContainerStackBuilder
    stack_runner: ContainerStackRunner
    shutdown: ShutdownCoordinator
    coordinator: OrchestrationCoordinator
    presenter: IPresenter
    logger: ILogger


@dataclass(frozen=True)
class RunPlan:
    """Targets and environment for one invocation."""

    targets: list[RepositoryTarget]
    resolution: EnvironmentResolution


def click_error(error: ShikamaruException) -> click.ClickException:
    """Convert a shikamaru error into a ClickException carrying its exit code."""
    lines = [str(error)]
    if error.suggestions:
        lines.append("")
        lines.extend(f"  - {s}" for s in error.suggestions)
    exc = click.ClickException("\n".join(lines))
    exc.exit_code = error.exit_code
    return exc


def parse_infra(values: tuple[str, ...]) -> list[InfraServiceType] | None:
    """
    Parse ``--infra`` values; comma-separated lists are accepted.

    Returns:
        The parsed list, or None when no flag was given

    Raises:
        click.BadParameter: If a value names no known service
    """
    if not values:
        return None
    parsed: list[InfraServiceType] = []
    for value in values:
        for part in value.split(","):
            if not part.strip():
                continue
            try:
                kind = InfraServiceType.from_identifier(part)
            except ValueError as e:
                raise click.BadParameter(str(e), param_hint="--infra") from e
            if kind not in parsed:
                parsed.append(kind)
    return parsed


def resolve_run(
    ctx: ShikamaruContext,
    repos: tuple[str, ...],
    *,
    mode: str | None = None,
    projects_dir: Path | None = None,
    infra: tuple[str, ...] = (),
) -> RunPlan:
    """
    Resolve repository targets and the environment for this run.

    Raises:
        click.ClickException: If no repositories are configured or named
    """
    settings = ctx.settings
    names = settings.target_names(list(repos))
    infra_types = parse_infra(infra)
    if not names and not (infra_types or settings.containers.infra):
        raise click.ClickException(
            "No repositories to run. Name them on the command line or add "
            "[[repos]] entries to .shikamaru/config.toml."
        )

    targets = settings.resolve_targets(
        names,
        ctx.cwd,
        global_mode=GlobalMode(mode) if mode else None,
        projects_dir=projects_dir,
    )
    for target in targets:
        if not target.path.is_dir():
            raise click.ClickException(f"Repository directory not found: {target.path}")

    return RunPlan(
        targets=targets,
        resolution=settings.environment_resolution(targets, infra_types),
    )


def build_engine(
    ctx: ShikamaruContext,
    options: OrchestrationOptions,
    container_options: ContainerOptions | None = None,
    confirm_continue: ConfirmContinue | None = None,
) -> Engine:
    """Bootstrap the container and construct the orchestration services."""
    container = bootstrap(ctx.settings)
    if container_options is None:
        container_options = ctx.settings.container_options(ctx.cwd)

    presenter: IPresenter = container.resolve(IPresenter)  # type: ignore[type-abstract]
    logger: ILogger = container.resolve(ILogger)  # type: ignore[type-abstract]
    runner: ICommandRunner = container.resolve(ICommandRunner)  # type: ignore[type-abstract]
    stopper: IProcessStopper = container.resolve(IProcessStopper)  # type: ignore[type-abstract]
    detector: IFrameworkDetector = container.resolve(
        IFrameworkDetector  # type: ignore[type-abstract]
    )

    registry = ProcessRegistry()
    installer = DependencyInstaller(runner, options, detector, presenter, logger)
    starter = LocalServiceStarter(
        runner,
        registry,
        options,
        container.get_terminal_launcher(sys.platform),
        detector,
        presenter,
        logger,
    )
    builder = ContainerStackBuilder(container_options, logger)
    stack_runner = ContainerStackRunner(runner, registry, container_options, logger)
    shutdown = ShutdownCoordinator(registry, stopper, stack_runner, container_options, logger)
    coordinator = OrchestrationCoordinator(
        installer,
        starter,
        builder,
        stack_runner,
        options,
        presenter,
        logger,
        confirm_continue,
    )
    return Engine(
        registry=registry,
        installer=installer,
        starter=starter,
        builder=builder,
        stack_runner=stack_runner,
        shutdown=shutdown,
        coordinator=coordinator,
        presenter=presenter,
        logger=logger,
    )
