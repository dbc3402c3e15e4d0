"""
Shutdown coordinator.

Two best-effort phases: stop local processes, then tear down the container
stack. Failures are recorded in the StopReport; nothing is raised, so both
phases always run.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable

from ...core.interfaces.logger import ILogger
from ...core.interfaces.process import IProcessStopper
from ...core.models.compose import InfraServiceType
from ...core.models.options import ContainerOptions
from ...core.models.outcomes import DockerStopReport, StopError, StopKind, StopRecord, StopReport
from .compose_builder import read_manifest_services
from .compose_runner import ContainerStackRunner
from .managed_process import ManagedProcess
from .registry import ProcessRegistry

STOP_GRACE_S = 0.8
STACK_RECORD_NAME = "docker-compose"

_INFRA_NAMES = frozenset(kind.value for kind in InfraServiceType)


def stop_kind(service: str) -> StopKind:
    return StopKind.INFRA_DOCKER if service in _INFRA_NAMES else StopKind.PLANNED_DOCKER


class ShutdownCoordinator:
    """Stops everything the engine started and reports what happened."""

    def __init__(
        self,
        registry: ProcessRegistry,
        stopper: IProcessStopper,
        stack_runner: ContainerStackRunner,
        options: ContainerOptions,
        logger: ILogger | None = None,
        clock: Callable[[], float] = time.monotonic,
        grace_s: float = STOP_GRACE_S,
    ) -> None:
        self._registry = registry
        self._stopper = stopper
        self._stack = stack_runner
        self._options = options
        self._logger = logger
        self._clock = clock
        self._grace_s = grace_s

    @property
    def logger(self) -> ILogger:
        if self._logger is None:
            from ..logging import NullLogger

            self._logger = NullLogger()
        return self._logger

    async def shutdown(self, container_names: Iterable[str] = ()) -> StopReport:
        """
        Run both phases.

        Args:
            container_names: Names backed by the container stack; registry
                entries with these names are left to the stack teardown

        Returns:
            StopReport; ``success`` is True iff neither phase recorded an error
        """
        started = self._clock()
        initial = len(self._registry)

        stopped_processes, local_error = await self.stop_local(set(container_names))
        docker = await self.stop_stack()

        report = StopReport(
            stopped_services=initial,
            stopped_processes=stopped_processes,
            docker=docker,
            local_error=local_error,
            duration_ms=max(0, int((self._clock() - started) * 1000)),
        )
        self.logger.info(
            "Shutdown finished in %dms: %d processes, %d containers stopped, %d errors",
            report.duration_ms,
            report.stopped_processes,
            len(report.docker.stopped),
            report.error_count,
        )
        return report

    async def stop_local(self, container_names: set[str]) -> tuple[int, str | None]:
        """Stop registry processes not backed by the stack, then clear the registry."""
        processes = [
            p
            for p in self._registry.snapshot().values()
            if p.name not in container_names and not p.is_container_backed
        ]
        results = await asyncio.gather(
            *(self._stop_process(p) for p in processes), return_exceptions=True
        )
        self._registry.clear()

        errors = []
        for process, result in zip(processes, results):
            if isinstance(result, BaseException):
                self.logger.error("Failed to stop %s: %s", process.name, result)
                errors.append(f"{process.name}: {result}")
        return len(processes), "; ".join(errors) or None

    async def _stop_process(self, process: ManagedProcess) -> None:
        pid = process.pid
        if pid is None:
            return
        signalled = await self._stopper.stop_tree(pid, self._grace_s)
        self.logger.info(
            "Stopped %s (PID %d)%s", process.name, pid, "" if signalled else " (already exited)"
        )

    async def stop_stack(self) -> DockerStopReport:
        """Tear down the stack described by the manifest on disk, if any."""
        path = self._options.manifest_path
        if not path.exists():
            return DockerStopReport()

        try:
            services = read_manifest_services(path)
        except Exception as e:
            error = StopError(name=STACK_RECORD_NAME, kind=StopKind.PLANNED_DOCKER, error=str(e))
            return DockerStopReport(errors=[error])

        planned = [
            StopRecord(name=name, kind=stop_kind(name), stopped=False, reason="pending stop")
            for name in services
        ]
        try:
            await self._stack.down()
        except Exception as e:
            self.logger.error("Container stack teardown failed: %s", e)
            error = StopError(name=STACK_RECORD_NAME, kind=StopKind.PLANNED_DOCKER, error=str(e))
            return DockerStopReport(skipped=planned, errors=[error])

        return DockerStopReport(
            stopped=[
                StopRecord(name=r.name, kind=r.kind, stopped=True, reason="compose down")
                for r in planned
            ]
        )
