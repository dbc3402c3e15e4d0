"""
Container stack runner.

Drives the stack through build, start and health wait, then attaches to
each service's log output. Any failing transition moves the runner to
FAILED and raises; there is no retry.
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from ...core.exceptions import (
    ContainerBuildError,
    ContainerCommandError,
    ContainerStackError,
    ContainerStartError,
    ContainerStopError,
    HealthCheckTimeoutError,
    UnhealthyServiceError,
)
from ...core.interfaces.logger import ILogger
from ...core.interfaces.process import CommandResult, ICommandRunner, IProcessHandle
from ...core.models.options import ContainerOptions
from ...core.models.outcomes import HealthRecord, HealthStatus
from .compose_output import BuildOutputParser, ComposeEvent, ComposeEventKind, StartOutputParser
from .diagnostics import classify_docker_error, docker_suggestions
from .managed_process import ManagedProcess, ProcessKind
from .registry import ProcessRegistry
from .streams import OutputStream

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]

LOG_ATTACH_MARKER = "Docker service started"


class StackState(str, Enum):
    NOT_STARTED = "not-started"
    BUILDING = "building"
    BUILT = "built"
    STARTING = "starting"
    WAITING_HEALTHY = "waiting-healthy"
    HEALTHY = "healthy"
    FAILED = "failed"


_NEXT_STATE: dict[StackState, StackState] = {
    StackState.NOT_STARTED: StackState.BUILDING,
    StackState.BUILDING: StackState.BUILT,
    StackState.BUILT: StackState.STARTING,
    StackState.STARTING: StackState.WAITING_HEALTHY,
    StackState.WAITING_HEALTHY: StackState.HEALTHY,
}


@dataclass(frozen=True)
class ContainerStatus:
    """Health status if the container defines a probe, else its run state."""

    status: str
    has_healthcheck: bool


class ContainerStackRunner:
    """Builds, starts and health-gates the compose stack."""

    def __init__(
        self,
        runner: ICommandRunner,
        registry: ProcessRegistry,
        options: ContainerOptions,
        logger: ILogger | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._runner = runner
        self._registry = registry
        self._options = options
        self._logger = logger
        self._clock = clock
        self._sleep = sleep
        self._state = StackState.NOT_STARTED
        self._log_processes: list[ManagedProcess] = []
        self._pumps: set[asyncio.Task] = set()

    @property
    def logger(self) -> ILogger:
        if self._logger is None:
            from ..logging import NullLogger

            self._logger = NullLogger()
        return self._logger

    @property
    def state(self) -> StackState:
        return self._state

    @property
    def log_processes(self) -> list[ManagedProcess]:
        return list(self._log_processes)

    def _advance(self, expected: StackState) -> None:
        if self._state is not expected:
            raise ContainerStackError(
                f"Cannot leave state {self._state.value}; expected {expected.value}"
            )
        self._state = _NEXT_STATE[expected]
        self.logger.debug("Container stack state: %s", self._state.value)

    def _fail(self) -> None:
        self._state = StackState.FAILED
        self.logger.debug("Container stack state: %s", self._state.value)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def up(self, services: list[str]) -> list[HealthRecord]:
        """
        Build, start and wait for ``services``, then attach their logs.

        Returns:
            Health records of the wait

        Raises:
            ContainerBuildError, ContainerStartError, UnhealthyServiceError,
            HealthCheckTimeoutError
        """
        await self.build()
        await self.start()
        records = await self.wait_healthy(services)
        await self.attach_logs(services)
        return records

    async def build(self) -> None:
        self._advance(StackState.NOT_STARTED)
        parser = BuildOutputParser()
        argv = self._options.compose("build", "--progress=plain")
        self.logger.info("Building container images")

        def on_line(line: str) -> None:
            for event in parser.parse(line):
                self._log_event(event)

        result = await self._run_stack_command(argv, ContainerBuildError, on_line)
        if not result.ok:
            self._fail()
            raise self._command_error(ContainerBuildError, "Container build", result)
        self._advance(StackState.BUILDING)
        self.logger.info("All container images built successfully")

    async def start(self) -> None:
        self._advance(StackState.BUILT)
        parser = StartOutputParser()
        argv = self._options.compose("up", "-d")
        self.logger.info("Starting container services")

        def on_line(line: str) -> None:
            for event in parser.parse(line):
                self._log_event(event)

        result = await self._run_stack_command(argv, ContainerStartError, on_line)
        if not result.ok:
            self._fail()
            raise self._command_error(ContainerStartError, "Container start", result)
        self._advance(StackState.STARTING)

    async def wait_healthy(self, services: list[str]) -> list[HealthRecord]:
        """
        Poll every service until each is healthy, or running without a probe.

        Pending services are re-checked in insertion order on every pass.
        A probe reporting unhealthy, or a probe-less container that exited,
        fails immediately. Services still pending at the ceiling fail the
        whole wait.
        """
        if self._state is not StackState.WAITING_HEALTHY:
            raise ContainerStackError(
                f"Cannot wait for health in state {self._state.value}"
            )
        started = self._clock()
        pending = list(dict.fromkeys(services))
        records: list[HealthRecord] = []
        last_heartbeat: float | None = None

        def record(service: str, status: HealthStatus, message: str) -> HealthRecord:
            entry = HealthRecord(
                service=service,
                status=status,
                duration_ms=max(0, int((self._clock() - started) * 1000)),
                message=message,
            )
            records.append(entry)
            return entry

        while pending:
            for service in list(pending):
                container_id = await self.container_id(service)
                if not container_id:
                    continue
                observed = await self.inspect(container_id)

                if observed.has_healthcheck:
                    if observed.status == "healthy":
                        pending.remove(service)
                        record(service, HealthStatus.HEALTHY, "healthy")
                        self.logger.info("%s healthy", service)
                    elif observed.status == "unhealthy":
                        record(service, HealthStatus.UNHEALTHY, "health probe reported unhealthy")
                        self._fail()
                        raise UnhealthyServiceError(
                            f"Service {service} reported unhealthy",
                            services=[service],
                            records=records,
                        )
                elif observed.status == "running":
                    pending.remove(service)
                    record(service, HealthStatus.HEALTHY, "running (no healthcheck)")
                    self.logger.info("%s running (no healthcheck)", service)
                elif observed.status in ("exited", "dead"):
                    record(service, HealthStatus.ERROR, f"container {observed.status}")
                    self._fail()
                    raise UnhealthyServiceError(
                        f"Service {service} is not running (status: {observed.status})",
                        services=[service],
                        records=records,
                    )

            if not pending:
                break

            now = self._clock()
            if last_heartbeat is None or now - last_heartbeat >= self._options.heartbeat_s:
                self.logger.info(
                    "Waiting for health... (%d/%d)",
                    len(services) - len(pending),
                    len(services),
                )
                last_heartbeat = now

            if now - started >= self._options.health_timeout_s:
                for service in pending:
                    record(service, HealthStatus.TIMEOUT, "still pending at timeout")
                self._fail()
                raise HealthCheckTimeoutError(
                    pending,
                    timeout_s=self._options.health_timeout_s,
                    records=records,
                )

            await self._sleep(self._options.health_interval_s)

        self._advance(StackState.WAITING_HEALTHY)
        return records

    # -------------------------------------------------------------------------
    # Probing
    # -------------------------------------------------------------------------

    async def container_id(self, service: str) -> str | None:
        """Container id of a service, or None if it is not created yet."""
        try:
            result = await self._runner.run(self._options.compose("ps", "-q", service))
        except OSError as e:
            self.logger.debug("Could not resolve container for %s: %s", service, e)
            return None
        if not result.ok:
            return None
        container_id = result.output.strip().splitlines()
        return container_id[0].strip() if container_id else None

    async def inspect(self, container_id: str) -> ContainerStatus:
        try:
            result = await self._runner.run(self._options.docker("inspect", container_id))
        except OSError as e:
            self.logger.debug("docker inspect %s failed: %s", container_id, e)
            return ContainerStatus("unknown", False)
        try:
            data = json.loads(result.output)
            state = data[0]["State"]
        except (ValueError, LookupError, TypeError):
            return ContainerStatus("unknown", False)
        health = state.get("Health")
        status = (health or {}).get("Status") or state.get("Status") or "unknown"
        return ContainerStatus(str(status), bool(health))

    # -------------------------------------------------------------------------
    # Log attachment and teardown
    # -------------------------------------------------------------------------

    async def attach_logs(self, services: list[str]) -> list[ManagedProcess]:
        """Follow each service's logs into its own stream and publish them."""
        attached: list[ManagedProcess] = []
        for service in services:
            try:
                handle = await self._runner.spawn(self._options.compose("logs", "-f", service))
            except OSError as e:
                self.logger.warning("Could not stream logs for %s: %s", service, e)
                continue
            process = ManagedProcess(
                name=service,
                stream=OutputStream(service),
                handle=handle,
                kind=ProcessKind.CONTAINER_LOGS,
            )
            process.stream.write(LOG_ATTACH_MARKER)
            task = asyncio.ensure_future(self._pump(process, handle))
            self._pumps.add(task)
            task.add_done_callback(self._pumps.discard)
            attached.append(process)
            self.logger.info("Monitoring %s", service)

        self._log_processes.extend(attached)
        self._registry.publish(attached)
        return attached

    async def _pump(self, process: ManagedProcess, handle: IProcessHandle) -> None:
        try:
            async for line in handle.lines():
                if line.strip():
                    process.stream.write(line)
        except OSError as e:
            self.logger.warning("Log stream for %s ended: %s", process.name, e)
        await handle.wait()
        process.stream.close()

    def stop_log_attachments(self) -> list[str]:
        """Terminate every log-follow process; returns the services detached."""
        stopped = []
        for process in self._log_processes:
            if process.handle is not None:
                process.handle.terminate()
            stopped.append(process.name)
            self.logger.info("Stopped log streaming for %s", process.name)
        self._log_processes.clear()
        return stopped

    async def down(self) -> None:
        """
        Detach logs, then tear the stack down.

        Raises:
            ContainerStopError: If the compose down command fails
        """
        self.stop_log_attachments()
        argv = self._options.compose("down")
        self.logger.info("Stopping container stack")
        result = await self._run_stack_command(argv, ContainerStopError)
        if not result.ok:
            raise self._command_error(ContainerStopError, "Compose down", result)
        self.logger.info("Container stack stopped")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _run_stack_command(
        self,
        argv: list[str],
        error_cls: type[ContainerCommandError],
        on_line: Callable[[str], None] | None = None,
    ) -> CommandResult:
        try:
            return await self._runner.run(argv, on_line=on_line)
        except Exception as e:
            if error_cls is not ContainerStopError:
                self._fail()
            category = classify_docker_error(str(e))
            raise error_cls(
                f"Failed to run {' '.join(argv)}: {e}",
                command=" ".join(argv),
                category=category,
                suggestions=docker_suggestions(category),
                cause=e,
            ) from e

    def _command_error(
        self,
        error_cls: type[ContainerCommandError],
        label: str,
        result: CommandResult,
    ) -> ContainerCommandError:
        output = result.output or "Unknown error"
        category = classify_docker_error(output)
        self.logger.error(
            "%s failed with code %d [%s]: %s", label, result.returncode, category.value, output
        )
        return error_cls(
            f"{label} failed with code {result.returncode}",
            command=" ".join(result.argv),
            exit_code=result.returncode,
            output=output,
            category=category,
            suggestions=docker_suggestions(category),
        )

    def _log_event(self, event: ComposeEvent) -> None:
        service = event.service or "stack"
        if event.kind is ComposeEventKind.ERROR:
            self.logger.error("Build error in %s: %s", service, event.detail)
        elif event.kind is ComposeEventKind.WARNING:
            self.logger.warning("%s: %s", service, event.detail)
        else:
            self.logger.info("%s %s: %s", event.kind.value, service, event.detail)
