"""
Custom exception hierarchy for shikamaru.

Provides a structured exception hierarchy so that per-item failures can be
captured into outcomes, while phase-fatal failures propagate with their
diagnostic output and remediation suggestions attached.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models.errors import DockerErrorCategory, InstallErrorCategory, StartupErrorCategory
    from .models.outcomes import HealthRecord


class ShikamaruException(Exception):
    """
    Base exception for all shikamaru errors.

    Attributes:
        message: Human-readable error description
        context: Additional debugging context (service names, paths, etc.)
        suggestions: Remediation hints selected by error category
        exit_code: Suggested exit code for CLI (default: 1)
        recoverable: Whether retry/recovery may be possible
    """

    exit_code: int = 1
    recoverable: bool = True

    def __init__(
        self,
        message: str,
        *,
        context: dict | None = None,
        suggestions: Iterable[str] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        self.suggestions = list(suggestions or [])
        if cause is not None:
            self.__cause__ = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ShikamaruConfigError(ShikamaruException):
    """Base class for configuration-related errors."""

    recoverable: bool = False


class ConfigFileError(ShikamaruConfigError):
    """
    Error reading or parsing a configuration file.

    Raised for TOML parsing errors, file not found, permission errors, etc.
    """

    def __init__(
        self,
        message: str,
        *,
        file_path: str | None = None,
        context: dict | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if file_path:
            ctx["file_path"] = file_path
        super().__init__(message, context=ctx, cause=cause)


class ConfigValidationError(ShikamaruConfigError, ValueError):
    """
    Invalid or missing configuration value.

    Inherits from ValueError so callers validating input can catch either.
    """

    def __init__(
        self,
        message: str,
        *,
        key: str | None = None,
        value: str | None = None,
        context: dict | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if key:
            ctx["key"] = key
        if value is not None:
            ctx["value"] = value
        super().__init__(message, context=ctx, cause=cause)


class ServiceConfigurationError(ShikamaruConfigError):
    """
    A service is misconfigured (missing package script, invalid manifest).

    Raised before any process is spawned so the failure is immediate.
    """

    def __init__(
        self,
        message: str,
        *,
        service: str | None = None,
        context: dict | None = None,
        suggestions: Iterable[str] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = context or {}
        if service:
            ctx["service"] = service
        super().__init__(message, context=ctx, suggestions=suggestions, cause=cause)
        self.service = service


# =============================================================================
# Orchestration Errors (per-item, captured into outcomes)
# =============================================================================


class OrchestrationError(ShikamaruException):
    """Base class for install/start pipeline errors."""

    pass


class OperationAbortedError(OrchestrationError):
    """The cancellation signal was set before or while the item ran."""

    recoverable: bool = False

    def __init__(self, message: str = "Operation aborted", **kwargs) -> None:
        super().__init__(message, **kwargs)


class OperationTimeoutError(OrchestrationError):
    """A per-item timeout elapsed before the worker settled."""

    def __init__(self, timeout_ms: int, **kwargs) -> None:
        super().__init__(f"Operation timed out after {timeout_ms}ms", **kwargs)
        self.timeout_ms = timeout_ms


class InstallError(OrchestrationError):
    """
    Dependency installation failed after exhausting retries.

    Carries the classified category and the number of attempts made.
    """

    def __init__(
        self,
        message: str,
        *,
        repo: str,
        category: InstallErrorCategory,
        attempts: int,
        output: str = "",
        suggestions: Iterable[str] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            context={"repo": repo, "category": category.value, "attempts": attempts},
            suggestions=suggestions,
            cause=cause,
        )
        self.repo = repo
        self.category = category
        self.attempts = attempts
        self.output = output


class ServiceStartError(OrchestrationError):
    """A local service could not be launched."""

    def __init__(
        self,
        message: str,
        *,
        service: str,
        category: StartupErrorCategory,
        suggestions: Iterable[str] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            context={"service": service, "category": category.value},
            suggestions=suggestions,
            cause=cause,
        )
        self.service = service
        self.category = category


# =============================================================================
# Container Stack Errors (phase-fatal, propagated)
# =============================================================================


class ContainerStackError(ShikamaruException):
    """Base class for container stack failures."""

    recoverable: bool = False


class ComposeGenerationError(ContainerStackError):
    """The compose manifest could not be generated or written."""

    def __init__(
        self,
        message: str,
        *,
        manifest_path: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx = {"manifest_path": manifest_path} if manifest_path else None
        super().__init__(message, context=ctx, cause=cause)


class ContainerCommandError(ContainerStackError):
    """A compose command exited non-zero or could not be spawned."""

    def __init__(
        self,
        message: str,
        *,
        command: str,
        exit_code: int | None = None,
        output: str = "",
        category: DockerErrorCategory | None = None,
        suggestions: Iterable[str] | None = None,
        cause: Exception | None = None,
    ) -> None:
        ctx: dict = {"command": command}
        if exit_code is not None:
            ctx["exit_code"] = exit_code
        if category is not None:
            ctx["category"] = category.value
        super().__init__(message, context=ctx, suggestions=suggestions, cause=cause)
        self.command = command
        self.command_exit_code = exit_code
        self.output = output
        self.category = category


class ContainerBuildError(ContainerCommandError):
    """Image build for the manifest failed."""

    pass


class ContainerStartError(ContainerCommandError):
    """Starting the stack in detached mode failed."""

    pass


class ContainerStopError(ContainerCommandError):
    """Tearing down the stack failed."""

    pass


class HealthCheckError(ContainerStackError):
    """Base class for health-wait failures."""

    def __init__(
        self,
        message: str,
        *,
        services: list[str],
        records: list[HealthRecord] | None = None,
        context: dict | None = None,
    ) -> None:
        ctx = context or {}
        ctx["services"] = services
        super().__init__(message, context=ctx)
        self.services = services
        self.records = list(records or [])


class UnhealthyServiceError(HealthCheckError):
    """A service reported unhealthy, or exited without a health probe."""

    pass


class HealthCheckTimeoutError(HealthCheckError):
    """Services were still pending when the wait ceiling was reached."""

    def __init__(
        self,
        pending: list[str],
        *,
        timeout_s: float,
        records: list[HealthRecord] | None = None,
    ) -> None:
        super().__init__(
            f"Timed out waiting for services to become healthy: {', '.join(pending)}",
            services=pending,
            records=records,
            context={"timeout_s": timeout_s},
        )
        self.timeout_s = timeout_s
