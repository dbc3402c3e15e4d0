"""
Local service starter.

Resolves the startup command of each ready repository and launches it:
frontend services in a detached terminal window, everything else as a
supervised child process whose merged output feeds an OutputStream.
"""

from __future__ import annotations

import asyncio
import shlex
import signal
from collections.abc import Sequence

from ...core.exceptions import ServiceConfigurationError, ServiceStartError, ShikamaruException
from ...core.interfaces.framework import IFrameworkDetector
from ...core.interfaces.logger import ILogger
from ...core.interfaces.presenter import IPresenter
from ...core.interfaces.process import ICommandRunner, IProcessHandle
from ...core.interfaces.terminal import ITerminalLauncher
from ...core.models.errors import StartupErrorCategory
from ...core.models.options import OrchestrationOptions
from ...core.models.outcomes import StartOutcome
from ...core.models.targets import FrameworkInfo, RepositoryTarget
from .concurrency import run_with_concurrency
from .diagnostics import OutputSignal, classify_startup_error, scan_output_line, startup_suggestions
from .framework_detector import read_package_scripts
from .managed_process import ManagedProcess, ProcessKind
from .registry import ProcessRegistry
from .streams import OutputStream

CONTAINER_STARTUP_COMMAND = "docker-compose up"
FALLBACK_STARTUP_COMMAND = "npm run start"
PACKAGE_MANAGERS = frozenset({"npm", "yarn", "pnpm"})

TERMINAL_MARKERS = (
    "Frontend app started in new terminal window",
    "Check the new terminal window for logs and output",
    "The app should be accessible at the configured port",
)


def _describe_exit(returncode: int) -> tuple[int | None, str | None]:
    """Split a returncode into (exit code, signal name)."""
    if returncode < 0:
        try:
            return None, signal.Signals(-returncode).name
        except ValueError:
            return None, str(-returncode)
    return returncode, None


class LocalServiceStarter:
    """
    Launches local services and tracks them in the process registry.

    Each process is published to the registry as soon as it is launched, so
    a cancelled or timed-out batch never hides a live child from shutdown.
    A supervised process that exits later removes itself.
    """

    def __init__(
        self,
        runner: ICommandRunner,
        registry: ProcessRegistry,
        options: OrchestrationOptions,
        terminal_launcher: ITerminalLauncher,
        detector: IFrameworkDetector | None = None,
        presenter: IPresenter | None = None,
        logger: ILogger | None = None,
    ) -> None:
        self._runner = runner
        self._registry = registry
        self._options = options
        self._terminal = terminal_launcher
        self._detector = detector
        self._presenter = presenter
        self._logger = logger
        self._watchers: set[asyncio.Task] = set()

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

    def detect(self, target: RepositoryTarget) -> FrameworkInfo | None:
        if self._detector is None:
            return None
        info = self._detector.detect(target.path)
        if info is not None:
            self.logger.info("%s: detected %s (%s)", target.name, info.framework, info.type.value)
            if info.version:
                self.logger.debug("%s: version %s", target.name, info.version)
        return info

    @staticmethod
    def resolve_startup_command(
        target: RepositoryTarget,
        framework: FrameworkInfo | None,
    ) -> str:
        """Explicit command > container sentinel > framework default > fallback."""
        if target.startup_command:
            return target.startup_command
        if target.is_container:
            return CONTAINER_STARTUP_COMMAND
        if framework is not None and framework.startup_command:
            return framework.startup_command
        return FALLBACK_STARTUP_COMMAND

    async def start(
        self,
        targets: list[RepositoryTarget],
        cancel_event: asyncio.Event | None = None,
    ) -> StartOutcome:
        """
        Start every target and publish the launched processes.

        Returns:
            StartOutcome partitioning every target name
        """
        total = len(targets)
        started = 0
        failed = 0

        async def worker(target: RepositoryTarget) -> ManagedProcess:
            nonlocal started, failed
            try:
                process = await self.start_one(target)
            except Exception:
                failed += 1
                raise
            else:
                started += 1
                self._publish(process)
                return process
            finally:
                self.logger.info(
                    "Startup progress: %d/%d - %d started, %d failed",
                    started + failed,
                    total,
                    started,
                    failed,
                )

        results = await run_with_concurrency(
            targets,
            worker,
            self._options.concurrency,
            timeout_ms=self._options.timeout_ms,
            cancel_event=cancel_event,
        )

        launched: list[ManagedProcess] = []
        failed_services: list[str] = []
        for result in results:
            if result.ok and result.value is not None:
                launched.append(result.value)
            else:
                failed_services.append(result.item.name)
                self._report_failure(result.item, result.error)

        return StartOutcome(
            processes=[p.name for p in launched],
            failed_services=failed_services,
        )

    def _publish(self, process: ManagedProcess) -> None:
        if process.kind is ProcessKind.TERMINAL or process.is_running:
            self._registry.publish([process])

    async def start_one(self, target: RepositoryTarget) -> ManagedProcess:
        """
        Launch a single service.

        Raises:
            ServiceConfigurationError: If a package script is missing
            ServiceStartError: If the process could not be spawned
        """
        framework = self.detect(target)
        command = self.resolve_startup_command(target, framework)
        self.logger.info("%s: using startup command %r", target.name, command)

        if framework is not None and framework.is_frontend:
            return await self._start_in_terminal(target, command)
        return await self._start_supervised(target, command)

    async def _start_supervised(self, target: RepositoryTarget, command: str) -> ManagedProcess:
        argv = shlex.split(command)
        if not argv:
            raise ServiceConfigurationError(
                f"Empty startup command for {target.name}",
                service=target.name,
                suggestions=startup_suggestions(StartupErrorCategory.CONFIGURATION),
            )
        self._validate_package_script(target, argv)

        self.logger.info("Executing %s in %s", command, target.path)
        handle = await self._spawn(target, argv)
        self.logger.info("Process started for %s (PID: %s)", target.name, handle.pid)

        process = ManagedProcess(
            name=target.name,
            stream=OutputStream(target.name),
            handle=handle,
            kind=ProcessKind.SUPERVISED,
        )
        self._watch(self._pump(process, handle))
        return process

    async def _start_in_terminal(self, target: RepositoryTarget, command: str) -> ManagedProcess:
        argv = self._terminal.build_command(target.path, command)
        self.logger.info("Starting frontend app %s in new terminal window", target.name)
        handle = await self._spawn(target, argv, detached=True)

        stream = OutputStream(target.name)
        for marker in TERMINAL_MARKERS:
            stream.write(marker)

        process = ManagedProcess(
            name=target.name,
            stream=stream,
            handle=handle,
            kind=ProcessKind.TERMINAL,
        )
        self._watch(self._watch_launcher(process, handle))
        return process

    async def _spawn(
        self,
        target: RepositoryTarget,
        argv: Sequence[str],
        detached: bool = False,
    ) -> IProcessHandle:
        try:
            return await self._runner.spawn(
                argv,
                cwd=target.path,
                detached=detached,
                capture=not detached,
            )
        except FileNotFoundError as e:
            category = StartupErrorCategory.COMMAND_NOT_FOUND
            raise ServiceStartError(
                f"Command not found for {target.name}: {argv[0]}",
                service=target.name,
                category=category,
                suggestions=startup_suggestions(category),
                cause=e,
            ) from e
        except PermissionError as e:
            category = StartupErrorCategory.PERMISSION
            raise ServiceStartError(
                f"Permission denied starting {target.name}: {e}",
                service=target.name,
                category=category,
                suggestions=startup_suggestions(category),
                cause=e,
            ) from e
        except OSError as e:
            category = classify_startup_error(str(e))
            raise ServiceStartError(
                f"Failed to start {target.name}: {e}",
                service=target.name,
                category=category,
                suggestions=startup_suggestions(category),
                cause=e,
            ) from e

    def _validate_package_script(self, target: RepositoryTarget, argv: list[str]) -> None:
        """Fail fast when ``<pm> run <script>`` names a script package.json lacks."""
        if len(argv) < 3 or argv[0] not in PACKAGE_MANAGERS or argv[1] != "run":
            return
        if not (target.path / "package.json").exists():
            return

        suggestions = startup_suggestions(StartupErrorCategory.CONFIGURATION)
        scripts = read_package_scripts(target.path)
        if scripts is None:
            raise ServiceConfigurationError(
                f"Invalid package.json in {target.name}",
                service=target.name,
                suggestions=suggestions,
            )
        script = argv[2]
        if not scripts.get(script):
            raise ServiceConfigurationError(
                f'Script "{script}" not found in package.json for {target.name}',
                service=target.name,
                suggestions=suggestions,
            )

    def _watch(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._watchers.add(task)
        task.add_done_callback(self._watchers.discard)

    async def _pump(self, process: ManagedProcess, handle: IProcessHandle) -> None:
        """Copy output into the stream, then record the exit."""
        name = process.name
        try:
            async for line in handle.lines():
                process.stream.write(line)
                hint = scan_output_line(line)
                if hint is OutputSignal.PORT_CONFLICT:
                    self.logger.warning("Port conflict detected for %s: %s", name, line.strip())
                elif hint is OutputSignal.STARTUP_ISSUE:
                    self.logger.warning("Startup issue for %s: %s", name, line.strip())
        except (OSError, ValueError) as e:
            process.stream.write(f"[{name}] process error: {e}")
            self.logger.error("Service %s encountered an error: %s", name, e)

        returncode = await handle.wait()
        code, sig = _describe_exit(returncode)
        process.stream.write(f"[{name}] exited code={code} sig={sig}")
        self.logger.info("Service %s exited with code %s", name, returncode)
        if self._registry.get(name) is process:
            self._registry.discard(name)
        process.stream.close()

    async def _watch_launcher(self, process: ManagedProcess, handle: IProcessHandle) -> None:
        returncode = await handle.wait()
        self.logger.info(
            "Terminal launcher for %s exited with code %s", process.name, returncode
        )

    async def wait_watchers(self) -> None:
        """Wait until every output pump and launcher watcher has finished."""
        if self._watchers:
            await asyncio.gather(*list(self._watchers), return_exceptions=True)

    def _report_failure(self, target: RepositoryTarget, error: Exception | None) -> None:
        if isinstance(error, ServiceStartError):
            category = error.category
        elif isinstance(error, ServiceConfigurationError):
            category = StartupErrorCategory.CONFIGURATION
        else:
            category = classify_startup_error(str(error))

        detail = error.message if isinstance(error, ShikamaruException) else str(error)
        self.logger.error("Startup failed for %s: %s", target.name, error)
        self.presenter.print_error(f"Startup failed for {target.name}: {detail} [{category.value}]")
        self.presenter.print_suggestions(target.name, startup_suggestions(category))
