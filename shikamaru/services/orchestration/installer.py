"""
Dependency installer.

Decides per repository whether installation is needed, runs the install
command with retry and exponential backoff, and partitions the targets into
ready and failed sets.
"""

from __future__ import annotations

import asyncio
import shlex
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ...core.exceptions import InstallError, OperationTimeoutError
from ...core.interfaces.framework import IFrameworkDetector
from ...core.interfaces.logger import ILogger
from ...core.interfaces.presenter import IPresenter
from ...core.interfaces.process import ICommandRunner
from ...core.models.errors import InstallErrorCategory
from ...core.models.options import OrchestrationOptions
from ...core.models.outcomes import InstallOutcome
from ...core.models.targets import RepositoryTarget
from .concurrency import run_with_concurrency
from .diagnostics import classify_install_error, install_suggestions, is_retryable_install_error

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry bound and exponential backoff for install attempts."""

    max_retries: int = 2
    base_delay_ms: int = 1000
    max_delay_ms: int = 5000

    @classmethod
    def from_options(cls, options: OrchestrationOptions) -> RetryPolicy:
        return cls(
            max_retries=options.install_retries,
            base_delay_ms=options.backoff_base_ms,
            max_delay_ms=options.backoff_max_ms,
        )

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_s(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based)."""
        delay_ms = min(self.base_delay_ms * 2 ** (attempt - 1), self.max_delay_ms)
        return delay_ms / 1000


class DependencyInstaller:
    """
    Installs dependencies for local-mode repositories.

    Per-repository failures never escape ``install``; they land in the
    ``install_failures`` partition of the returned outcome.
    """

    def __init__(
        self,
        runner: ICommandRunner,
        options: OrchestrationOptions,
        detector: IFrameworkDetector | None = None,
        presenter: IPresenter | None = None,
        logger: ILogger | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._runner = runner
        self._options = options
        self._detector = detector
        self._presenter = presenter
        self._logger = logger
        self._sleep = sleep
        self._policy = RetryPolicy.from_options(options)
        self._installed: set[str] = set()

    @property
    def presenter(self) -> IPresenter:
        if self._presenter is None:
            from ...presenters.console import ConsolePresenter

            self._presenter = ConsolePresenter()
        return self._presenter

    @property
    def logger(self) -> ILogger:
        """Get logger, resolving from container or creating NullLogger."""
        if self._logger is None:
            from ..logging import NullLogger

            self._logger = NullLogger()
        return self._logger

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def needs_install(self, target: RepositoryTarget) -> bool:
        """False when installs are skipped, the repo builds inside an image,
        or this installer already installed it."""
        if self._options.skip_install or target.is_container:
            return False
        return target.name not in self._installed

    def resolve_install_command(self, target: RepositoryTarget) -> str | None:
        """Explicit override, else the detected framework default, else None."""
        if target.install_command:
            return target.install_command
        if self._detector is not None:
            info = self._detector.detect(target.path)
            if info is not None and info.install_command:
                return info.install_command
        return None

    async def install(
        self,
        targets: list[RepositoryTarget],
        cancel_event: asyncio.Event | None = None,
    ) -> InstallOutcome:
        """
        Install dependencies for every target.

        Args:
            targets: Repositories to consider
            cancel_event: Stops dispatching new installs when set

        Returns:
            InstallOutcome partitioning every target name
        """
        total = len(targets)
        completed = 0

        async def worker(target: RepositoryTarget) -> None:
            nonlocal completed
            try:
                await self.install_one(target)
            finally:
                completed += 1
                self.logger.info("Install progress: %d/%d (%s)", completed, total, target.name)

        results = await run_with_concurrency(
            targets,
            worker,
            self._options.concurrency,
            timeout_ms=self._options.timeout_ms,
            cancel_event=cancel_event,
        )

        ready: list[str] = []
        failures: list[str] = []
        for result in results:
            if result.ok:
                ready.append(result.item.name)
                continue
            failures.append(result.item.name)
            self._report_failure(result.item, result.error)

        return InstallOutcome(ready_services=ready, install_failures=failures)

    async def install_one(self, target: RepositoryTarget) -> int:
        """
        Install one repository, retrying retryable failures.

        Returns:
            Number of attempts made (0 when nothing needed installing)

        Raises:
            InstallError: When retries are exhausted or the error is not retryable
        """
        if not self.needs_install(target):
            self.logger.debug("Skipping install for %s", target.name)
            return 0

        command = self.resolve_install_command(target)
        if command is None:
            self.logger.debug("No install command for %s", target.name)
            self._installed.add(target.name)
            return 0

        argv = shlex.split(command)
        for attempt in range(1, self._policy.max_attempts + 1):
            self.logger.info(
                "Installing %s: %s (attempt %d/%d)",
                target.name,
                command,
                attempt,
                self._policy.max_attempts,
            )
            try:
                result = await self._runner.run(argv, cwd=target.path)
            except FileNotFoundError as e:
                raise self._install_error(
                    target, InstallErrorCategory.COMMAND_NOT_FOUND, attempt, str(e), e
                ) from e
            except PermissionError as e:
                raise self._install_error(
                    target, InstallErrorCategory.PERMISSION, attempt, str(e), e
                ) from e

            if result.ok:
                self._installed.add(target.name)
                self.logger.info("Installed %s after %d attempt(s)", target.name, attempt)
                return attempt

            output = result.output or f"{command} exited with code {result.returncode}"
            if not is_retryable_install_error(output) or attempt >= self._policy.max_attempts:
                raise self._install_error(
                    target, classify_install_error(output), attempt, output
                )

            delay = self._policy.delay_s(attempt)
            self.logger.warning(
                "Install of %s failed (attempt %d), retrying in %.1fs",
                target.name,
                attempt,
                delay,
            )
            await self._sleep(delay)

        raise AssertionError("unreachable")

    def _install_error(
        self,
        target: RepositoryTarget,
        category: InstallErrorCategory,
        attempts: int,
        output: str,
        cause: Exception | None = None,
    ) -> InstallError:
        return InstallError(
            f"Install failed for {target.name} after {attempts} attempt(s)",
            repo=target.name,
            category=category,
            attempts=attempts,
            output=output,
            suggestions=install_suggestions(category, self._framework_name(target)),
            cause=cause,
        )

    def _framework_name(self, target: RepositoryTarget) -> str:
        if self._detector is not None:
            info = self._detector.detect(target.path)
            if info is not None:
                return info.framework
        return target.name

    def _report_failure(self, target: RepositoryTarget, error: Exception | None) -> None:
        if isinstance(error, InstallError):
            self.logger.error("%s: %s", error.message, error.output)
            self.presenter.print_error(f"{error.message} [{error.category.value}]")
            self.presenter.print_suggestions(target.name, error.suggestions)
        elif isinstance(error, OperationTimeoutError):
            self.logger.error("Install of %s timed out: %s", target.name, error)
            self.presenter.print_error(f"Install timed out for {target.name}: {error.message}")
            self.presenter.print_suggestions(
                target.name,
                install_suggestions(InstallErrorCategory.TIMEOUT, self._framework_name(target)),
            )
        else:
            self.logger.error("Install of %s failed: %s", target.name, error)
            self.presenter.print_error(f"Install failed for {target.name}: {error}")
