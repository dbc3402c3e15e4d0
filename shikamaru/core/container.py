"""
Dependency injection container for shikamaru.

Uses dependency-injector for DI with support for:
- Singleton lifetimes for instances, factories and classes
- Interface-based resolution with test overrides
- A per-platform registry of terminal launchers
"""

from collections.abc import Callable
from typing import Optional, TypeVar

from dependency_injector import providers

from .interfaces.terminal import ITerminalLauncher

T = TypeVar("T")


class ServiceContainer:
    """
    Dependency injection container for shikamaru.

    The container is only consulted at the composition root (bootstrap and
    CLI). Orchestration services receive their collaborators through their
    constructors.
    """

    _instance: Optional["ServiceContainer"] = None

    def __init__(self) -> None:
        self._providers: dict[type, providers.Provider] = {}
        self._terminal_launchers: dict[str, type[ITerminalLauncher]] = {}

    @classmethod
    def get_instance(cls) -> "ServiceContainer":
        """Get the global container instance (singleton)."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the global container (for testing)."""
        cls._instance = None

    # -------------------------------------------------------------------------
    # Core service registration (uses dependency-injector providers)
    # -------------------------------------------------------------------------

    def register_singleton(
        self,
        interface: type[T],
        implementation: T | None = None,
        factory: Callable[[], T] | None = None,
    ) -> None:
        """
        Register a singleton service.

        Args:
            interface: The interface type
            implementation: Optional concrete instance
            factory: Optional factory function (for lazy init)
        """
        if implementation is not None:
            self._providers[interface] = providers.Object(implementation)
        elif factory is not None:
            self._providers[interface] = providers.Singleton(factory)
        else:
            raise ValueError("Must provide either implementation or factory")

    def register_class(self, interface: type[T], implementation: type[T]) -> None:
        """Register a class, instantiated lazily on first resolve."""
        self._providers[interface] = providers.Singleton(implementation)

    def resolve(self, interface: type[T]) -> T:
        """
        Resolve a service by interface.

        Raises:
            KeyError: If no registration found
        """
        if interface not in self._providers:
            raise KeyError(f"No provider registered for: {interface}")
        return self._providers[interface]()

    def try_resolve(self, interface: type[T]) -> T | None:
        """Try to resolve a service, returning None if not registered."""
        if interface not in self._providers:
            return None
        return self._providers[interface]()

    def override(self, interface: type[T], provider: providers.Provider) -> None:
        """Override a registered provider (useful for testing)."""
        self._providers[interface] = provider

    # -------------------------------------------------------------------------
    # Terminal launcher registry
    # -------------------------------------------------------------------------

    def register_terminal_launcher(
        self,
        platform: str,
        launcher_class: type[ITerminalLauncher],
    ) -> None:
        """
        Register the terminal launcher used on a platform.

        Args:
            platform: ``sys.platform`` prefix (e.g. 'darwin', 'win32', 'linux')
            launcher_class: Launcher class implementing ITerminalLauncher
        """
        self._terminal_launchers[platform] = launcher_class

    def get_terminal_launcher(self, platform: str) -> ITerminalLauncher:
        """
        Get a terminal launcher for a platform.

        Falls back to the 'linux' launcher for other POSIX platforms.

        Raises:
            KeyError: If no launcher is registered for the platform
        """
        for key, launcher_class in self._terminal_launchers.items():
            if platform.startswith(key):
                return launcher_class()
        if "linux" in self._terminal_launchers:
            return self._terminal_launchers["linux"]()
        raise KeyError(f"No terminal launcher registered for platform: {platform}")


# -------------------------------------------------------------------------
# Module-level convenience functions
# -------------------------------------------------------------------------


def get_container() -> ServiceContainer:
    """Get the global service container instance."""
    return ServiceContainer.get_instance()


def resolve(interface: type[T]) -> T:
    """Resolve a service from the global container."""
    return get_container().resolve(interface)


def try_resolve(interface: type[T]) -> T | None:
    """Try to resolve a service, returning None if not registered."""
    return get_container().try_resolve(interface)
