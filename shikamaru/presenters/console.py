"""
Console presenter for terminal output.

Implements human-readable output formatting for the CLI.
"""

import sys

from ..core.interfaces.presenter import IPresenter
from ..core.models.outcomes import HealthRecord, HealthStatus, OrchestrationResult, StopReport

_STATUS_COLORS = {
    HealthStatus.HEALTHY: "\033[92m",
    HealthStatus.UNHEALTHY: "\033[91m",
    HealthStatus.TIMEOUT: "\033[93m",
    HealthStatus.ERROR: "\033[91m",
}


class ConsolePresenter(IPresenter):
    """
    Console output presenter.

    Formats output for human-readable terminal display.
    """

    def __init__(self, use_color: bool = True, file=None) -> None:
        """
        Initialize console presenter.

        Args:
            use_color: Whether to use ANSI color codes
            file: Output file (defaults to sys.stdout)
        """
        self._use_color = use_color and sys.stdout.isatty()
        self._file = file or sys.stdout
        self._err_file = sys.stderr

    def print(self, message: str) -> None:
        """Print a message to output."""
        print(message, file=self._file)

    def print_error(self, message: str) -> None:
        """Print an error message to stderr."""
        if self._use_color:
            print(f"\033[91mError: {message}\033[0m", file=self._err_file)
        else:
            print(f"Error: {message}", file=self._err_file)

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        if self._use_color:
            print(f"\033[93mWarning: {message}\033[0m", file=self._err_file)
        else:
            print(f"Warning: {message}", file=self._err_file)

    def print_success(self, message: str) -> None:
        """Print a success message."""
        if self._use_color:
            print(f"\033[92m{message}\033[0m", file=self._file)
        else:
            print(message, file=self._file)

    def print_table(self, headers: list[str], rows: list[list[str]]) -> None:
        """
        Print a formatted table.

        Args:
            headers: Column headers
            rows: Table rows
        """
        if not rows:
            return

        widths = [len(h) for h in headers]
        for row in rows:
            for i, cell in enumerate(row):
                if i < len(widths):
                    widths[i] = max(widths[i], len(str(cell)))

        header_line = "  ".join(str(h).ljust(widths[i]) for i, h in enumerate(headers))
        if self._use_color:
            print(f"\033[1m{header_line}\033[0m", file=self._file)
        else:
            print(header_line, file=self._file)

        print("-" * len(header_line), file=self._file)

        for row in rows:
            row_line = "  ".join(
                str(cell).ljust(widths[i]) if i < len(widths) else str(cell)
                for i, cell in enumerate(row)
            )
            print(row_line, file=self._file)

    def print_suggestions(self, title: str, suggestions: list[str]) -> None:
        if not suggestions:
            return
        self.print_section(f"Suggestions for {title}")
        for suggestion in suggestions:
            print(f"  - {suggestion}", file=self._file)

    def print_health(self, records: list[HealthRecord]) -> None:
        """Print one row per health-waited service."""
        rows = [
            [
                record.service,
                self._status(record.status),
                format_duration(record.duration_ms),
                record.message or "",
            ]
            for record in records
        ]
        self.print_table(["SERVICE", "HEALTH", "WAITED", "DETAILS"], rows)

    def print_result(self, result: OrchestrationResult) -> None:
        """
        Print the summary of a start run.

        Args:
            result: Merged outcome of both lanes
        """
        self.print_section("Services")
        rows = []
        for name in result.install.install_failures:
            rows.append([name, "local", "install failed"])
        for name in result.start.processes:
            rows.append([name, "local", "running"])
        for name in result.start.failed_services:
            rows.append([name, "local", "start failed"])
        health = {record.service: record.status.value for record in result.health_records}
        for name in result.infra_services:
            fallback = "running" if result.success else "failed"
            rows.append([name, "infra", health.get(name, fallback)])
        for name in result.container_services:
            rows.append([name, "container", health.get(name, "running")])
        if rows:
            self.print_table(["NAME", "KIND", "STATUS"], rows)
        else:
            print("No services started.", file=self._file)

        if result.health_records:
            self.print_section("Container health")
            self.print_health(result.health_records)

        for warning in result.warnings:
            self.print_warning(warning)
        for error in result.errors:
            self.print_error(error)

        running = len(result.running_services)
        clean = not result.start.failed_services and not result.install.install_failures
        if result.success and clean:
            self.print_success(f"All {running} services running")
        else:
            print(f"{running} services running", file=self._file)

    def print_stop_report(self, report: StopReport) -> None:
        """Print what the shutdown stopped, skipped and failed on."""
        self.print_section("Shutdown")
        rows = [[record.name, record.kind.value, "stopped"] for record in report.docker.stopped]
        rows += [
            [record.name, record.kind.value, record.reason or "skipped"]
            for record in report.docker.skipped
        ]
        self.print_table(["SERVICE", "KIND", "STATUS"], rows)
        print(
            f"Stopped {report.stopped_processes} local processes in "
            f"{format_duration(report.duration_ms)}",
            file=self._file,
        )

        if report.local_error:
            self.print_error(report.local_error)
        for error in report.docker.errors:
            self.print_error(f"{error.name}: {error.error}")

        if report.success:
            self.print_success(report.message)
        else:
            self.print_warning(report.message)

    def confirm(self, message: str, default: bool = False) -> bool:
        """
        Ask for user confirmation.

        Args:
            message: Confirmation prompt
            default: Default value if user presses Enter

        Returns:
            True if confirmed, False otherwise
        """
        suffix = " [Y/n] " if default else " [y/N] "

        try:
            response = input(message + suffix).strip().lower()
            if not response:
                return default
            return response in ("y", "yes")
        except (EOFError, KeyboardInterrupt):
            print("", file=self._file)
            return False

    def print_section(self, title: str) -> None:
        """Print a section header."""
        if self._use_color:
            print(f"\n\033[1m{title}\033[0m", file=self._file)
        else:
            print(f"\n{title}", file=self._file)
        print("-" * len(title), file=self._file)

    def _status(self, status: HealthStatus) -> str:
        if not self._use_color:
            return status.value
        return f"{_STATUS_COLORS[status]}{status.value}\033[0m"


def format_duration(duration_ms: int | None) -> str:
    """Format milliseconds as a short human-readable string."""
    if duration_ms is None:
        return "?"

    if duration_ms < 1000:
        return f"{duration_ms}ms"
    elif duration_ms < 60_000:
        return f"{duration_ms / 1000:.1f}s"
    else:
        return f"{duration_ms / 60_000:.1f}m"
