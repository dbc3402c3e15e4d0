"""
Orchestration coordinator.

Runs the two lanes of a start run side by side: install then start for
local repositories, and manifest generation then stack bring-up for
container repositories and infrastructure. Both lanes publish into the
same process registry.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

from ...core.exceptions import ContainerStackError, HealthCheckError, ShikamaruException
from ...core.interfaces.logger import ILogger
from ...core.interfaces.presenter import IPresenter
from ...core.models.options import EnvironmentResolution, OrchestrationOptions
from ...core.models.outcomes import HealthRecord, InstallOutcome, OrchestrationResult, StartOutcome
from ...core.models.targets import RepositoryTarget
from .compose_builder import ContainerStackBuilder, slugify
from .compose_runner import ContainerStackRunner
from .installer import DependencyInstaller
from .starter import LocalServiceStarter

ConfirmContinue = Callable[[list[str]], bool]


@dataclass
class _ContainerLane:
    container_services: list[str] = field(default_factory=list)
    infra_services: list[str] = field(default_factory=list)
    health_records: list[HealthRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


@dataclass
class _LocalLane:
    install: InstallOutcome = field(default_factory=InstallOutcome)
    start: StartOutcome = field(default_factory=StartOutcome)
    warnings: list[str] = field(default_factory=list)


def planned_container_names(
    targets: list[RepositoryTarget],
    resolution: EnvironmentResolution,
) -> set[str]:
    """Names owned by the container stack: repo names, their slugs and infra services."""
    names: set[str] = set()
    for target in targets:
        if target.is_container:
            names.add(target.name)
            names.add(slugify(target.name))
    names.update(kind.value for kind in resolution.infra)
    return names


class OrchestrationCoordinator:
    """
    Drives one start run across the local and container lanes.

    Per-item failures stay in the install/start outcomes. A fatal container
    failure is reported and recorded in ``OrchestrationResult.errors``
    without interrupting the local lane.
    """

    def __init__(
        self,
        installer: DependencyInstaller,
        starter: LocalServiceStarter,
        builder: ContainerStackBuilder,
        stack_runner: ContainerStackRunner,
        options: OrchestrationOptions,
        presenter: IPresenter | None = None,
        logger: ILogger | None = None,
        confirm_continue: ConfirmContinue | None = None,
    ) -> None:
        self._installer = installer
        self._starter = starter
        self._builder = builder
        self._stack = stack_runner
        self._options = options
        self._presenter = presenter
        self._logger = logger
        self._confirm_continue = confirm_continue

    @property
    def presenter(self) -> IPresenter:
        if self._presenter is None:
            from ...presenters.console import ConsolePresenter

            self._presenter = ConsolePresenter()
        return self._presenter

    @property
    def logger(self) -> ILogger:
        if self._logger is None:
            from ..logging import NullLogger

            self._logger = NullLogger()
        return self._logger

    async def run(
        self,
        targets: list[RepositoryTarget],
        resolution: EnvironmentResolution,
        cancel_event: asyncio.Event | None = None,
    ) -> OrchestrationResult:
        """
        Run both lanes concurrently and merge their results.

        Args:
            targets: Every resolved repository for this run
            resolution: Port mappings and required infra set
            cancel_event: Stops dispatching new install/start work when set

        Returns:
            OrchestrationResult covering both lanes
        """
        local_targets = [t for t in targets if not t.is_container]
        self.logger.info(
            "Starting orchestration: %d local, %d container, infra=%s",
            len(local_targets),
            len(targets) - len(local_targets),
            [kind.value for kind in resolution.infra],
        )

        local, containers = await asyncio.gather(
            self._run_local(local_targets, cancel_event),
            self._run_containers(targets, resolution),
        )

        return OrchestrationResult(
            install=local.install,
            start=local.start,
            container_services=containers.container_services,
            infra_services=containers.infra_services,
            health_records=containers.health_records,
            errors=containers.errors,
            warnings=local.warnings,
        )

    async def _run_local(
        self,
        targets: list[RepositoryTarget],
        cancel_event: asyncio.Event | None,
    ) -> _LocalLane:
        lane = _LocalLane()
        if not targets:
            return lane

        lane.install = await self._installer.install(targets, cancel_event)
        failures = lane.install.install_failures
        if failures and not self._should_continue(failures):
            message = f"Skipped local startup because installs failed: {', '.join(failures)}"
            self.logger.warning(message)
            lane.warnings.append(message)
            return lane

        ready = set(lane.install.ready_services)
        lane.start = await self._starter.start(
            [t for t in targets if t.name in ready], cancel_event
        )
        return lane

    def _should_continue(self, failures: list[str]) -> bool:
        if self._options.continue_on_install_failure:
            return True
        if self._confirm_continue is None:
            return False
        return self._confirm_continue(failures)

    async def _run_containers(
        self,
        targets: list[RepositoryTarget],
        resolution: EnvironmentResolution,
    ) -> _ContainerLane:
        lane = _ContainerLane()
        try:
            manifest = self._builder.generate(targets, resolution)
        except ShikamaruException as e:
            self._report_container_failure(e, lane)
            return lane
        if manifest is None:
            return lane

        infra_names = {kind.value for kind in resolution.infra}
        services = manifest.service_names
        lane.infra_services = [name for name in services if name in infra_names]
        try:
            lane.health_records = await self._stack.up(services)
        except ContainerStackError as e:
            if isinstance(e, HealthCheckError):
                lane.health_records = e.records
            self._report_container_failure(e, lane)
            return lane
        except Exception as e:
            error = ContainerStackError(f"Container stack failed: {e}", cause=e)
            self._report_container_failure(error, lane)
            return lane

        lane.container_services = [name for name in services if name not in infra_names]
        return lane

    def _report_container_failure(self, error: ShikamaruException, lane: _ContainerLane) -> None:
        self.logger.error("Container lane failed: %s", error)
        lane.errors.append(error.message)
        self.presenter.print_error(error.message)
        if error.suggestions:
            self.presenter.print_suggestions("Container stack", error.suggestions)
