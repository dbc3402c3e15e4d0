"""
Logger interface for orchestration diagnostics.

Kept apart from IPresenter: the presenter talks to the developer at the
terminal, the logger records what the engine did (retries, spawn pids,
health polls) for later inspection in the log file.
"""

from abc import ABC, abstractmethod
from typing import Any


class ILogger(ABC):
    """
    Interface for internal logging.

    Used for diagnostic output only. Anything the developer must act on
    goes through IPresenter instead.
    """

    @abstractmethod
    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log a debug-level message."""
        pass

    @abstractmethod
    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log an info-level message."""
        pass

    @abstractmethod
    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log a warning-level message."""
        pass

    @abstractmethod
    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        """Log an error-level message."""
        pass

    @abstractmethod
    def set_level(self, level: str) -> None:
        """
        Change the threshold of every attached handler.

        Args:
            level: One of 'debug', 'info', 'warning', 'error'
        """
        pass
