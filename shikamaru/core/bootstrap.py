"""
Application bootstrap for shikamaru.

Initializes the DI container with the default collaborators.
This module should be called once at application startup.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .container import ServiceContainer, get_container
from .interfaces.framework import IFrameworkDetector
from .interfaces.logger import ILogger
from .interfaces.presenter import IPresenter
from .interfaces.process import ICommandRunner, IProcessStopper

if TYPE_CHECKING:
    from .settings import ShikamaruSettings

_initialized = False


def bootstrap(settings: ShikamaruSettings | None = None) -> ServiceContainer:
    """
    Bootstrap the shikamaru application.

    Initializes the DI container with:
    - Presenter and logger
    - Command runner, process stopper and framework detector
    - Terminal launchers per platform

    Args:
        settings: Loaded settings; logging is configured from them

    Returns:
        Initialized ServiceContainer
    """
    global _initialized

    container = get_container()

    if _initialized:
        return container

    _register_core_services(container, settings)
    _register_terminal_launchers(container)

    _initialized = True
    return container


def _register_core_services(
    container: ServiceContainer,
    settings: ShikamaruSettings | None,
) -> None:
    """Register core application services."""
    from ..presenters.console import ConsolePresenter
    from ..services.logging import ShikamaruLogger
    from ..services.orchestration.framework_detector import FrameworkDetector
    from ..services.orchestration.process_control import PsutilProcessStopper
    from ..services.orchestration.runner import AsyncCommandRunner

    presenter = ConsolePresenter()
    container.register_singleton(IPresenter, presenter)  # type: ignore[type-abstract]

    def create_logger() -> ILogger:
        if settings is None:
            return ShikamaruLogger()
        return ShikamaruLogger(
            level=settings.logging.level,
            console_enabled=settings.logging.console,
            file_enabled=settings.logging.file,
        )

    container.register_singleton(ILogger, factory=create_logger)  # type: ignore[type-abstract]
    container.register_class(ICommandRunner, AsyncCommandRunner)  # type: ignore[type-abstract]

    def resolve_logger() -> ILogger:
        return container.resolve(ILogger)  # type: ignore[type-abstract]

    container.register_singleton(
        IProcessStopper,  # type: ignore[type-abstract]
        factory=lambda: PsutilProcessStopper(resolve_logger()),
    )
    container.register_singleton(
        IFrameworkDetector,  # type: ignore[type-abstract]
        factory=lambda: FrameworkDetector(resolve_logger()),
    )


def _register_terminal_launchers(container: ServiceContainer) -> None:
    from ..services.orchestration.terminal import DEFAULT_LAUNCHERS

    for launcher_class in DEFAULT_LAUNCHERS:
        container.register_terminal_launcher(launcher_class.platform, launcher_class)


def reset() -> None:
    """
    Reset the application state.

    Useful for testing to ensure clean state between tests.
    """
    global _initialized
    ServiceContainer.reset()
    _initialized = False


def is_initialized() -> bool:
    """Check if the application has been bootstrapped."""
    return _initialized
