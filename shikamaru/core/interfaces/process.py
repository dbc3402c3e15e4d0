"""
Process execution interfaces.

Everything that touches the operating system (running commands, spawning
long-lived services, tearing down process trees) sits behind these
interfaces so the orchestration services can be driven by fakes in tests.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

LineCallback = Callable[[str], None]


@dataclass(frozen=True)
class CommandResult:
    """Result of a command run to completion, stdout and stderr merged."""

    argv: list[str]
    returncode: int
    output: str = ""
    lines: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class IProcessHandle(ABC):
    """A spawned child process."""

    @property
    @abstractmethod
    def pid(self) -> int:
        """Operating system process id."""
        pass

    @property
    @abstractmethod
    def returncode(self) -> int | None:
        """Exit code, or None while still running."""
        pass

    @abstractmethod
    def lines(self) -> AsyncIterator[str]:
        """
        Iterate the merged stdout/stderr output line by line.

        Ends when the child closes its output. Yields nothing when the
        process was spawned without capture.
        """
        pass

    @abstractmethod
    async def wait(self) -> int:
        """Wait for exit and return the exit code."""
        pass

    @abstractmethod
    def terminate(self) -> None:
        """Ask the process to exit (SIGTERM)."""
        pass

    @abstractmethod
    def kill(self) -> None:
        """Force the process to exit (SIGKILL)."""
        pass


class ICommandRunner(ABC):
    """
    Runs external commands.

    Implementations raise OSError (usually FileNotFoundError) when the
    executable cannot be spawned at all; a non-zero exit is reported
    through the result instead.
    """

    @abstractmethod
    async def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        on_line: LineCallback | None = None,
    ) -> CommandResult:
        """
        Run a command to completion.

        Args:
            argv: Command and arguments
            cwd: Working directory
            env: Extra environment variables layered over os.environ
            on_line: Called for every output line as it arrives

        Returns:
            CommandResult with exit code and merged output
        """
        pass

    @abstractmethod
    async def spawn(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        detached: bool = False,
        capture: bool = True,
    ) -> IProcessHandle:
        """
        Start a long-lived process without waiting for it.

        Args:
            argv: Command and arguments
            cwd: Working directory
            env: Extra environment variables layered over os.environ
            detached: Start in a new session so it outlives the parent
            capture: Pipe merged output back through IProcessHandle.lines

        Returns:
            Handle for the running process
        """
        pass


class IProcessStopper(ABC):
    """Stops a process together with all of its descendants."""

    @abstractmethod
    async def stop_tree(self, pid: int, grace_s: float = 0.8) -> bool:
        """
        Terminate a process tree, escalating to kill after a grace period.

        Args:
            pid: Root process id
            grace_s: Seconds to wait between terminate and kill

        Returns:
            True if the root process was found and signalled
        """
        pass
