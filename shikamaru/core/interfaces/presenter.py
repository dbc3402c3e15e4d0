"""
Presenter interface for developer-facing output.

The orchestration services never print directly; they hand progress
lines, failure suggestions and reports to an IPresenter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..models.outcomes import HealthRecord, OrchestrationResult, StopReport


class IPresenter(ABC):
    """
    Interface for output presentation.

    Implementations decide how to render messages (colored console,
    captured list in tests, etc.).
    """

    @abstractmethod
    def print(self, message: str) -> None:
        """Print a plain progress message."""
        pass

    @abstractmethod
    def print_error(self, message: str) -> None:
        """Print an error message."""
        pass

    @abstractmethod
    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        pass

    @abstractmethod
    def print_success(self, message: str) -> None:
        """Print a success message."""
        pass

    @abstractmethod
    def print_table(self, headers: list[str], rows: list[list[str]]) -> None:
        """
        Print a table.

        Args:
            headers: Column headers
            rows: Table rows (list of row values)
        """
        pass

    @abstractmethod
    def print_suggestions(self, title: str, suggestions: list[str]) -> None:
        """
        Print remediation hints under a heading.

        Args:
            title: Heading naming the failed item
            suggestions: Hints, one per line
        """
        pass

    @abstractmethod
    def print_health(self, records: list[HealthRecord]) -> None:
        """Print per-service health wait results."""
        pass

    @abstractmethod
    def print_result(self, result: OrchestrationResult) -> None:
        """Print the summary of a start run."""
        pass

    @abstractmethod
    def print_stop_report(self, report: StopReport) -> None:
        """Print the summary of a shutdown."""
        pass

    @abstractmethod
    def confirm(self, message: str, default: bool = False) -> bool:
        """
        Ask for user confirmation.

        Args:
            message: Confirmation prompt
            default: Default value if user presses Enter

        Returns:
            True if confirmed, False otherwise
        """
        pass
