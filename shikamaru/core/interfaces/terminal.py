"""Terminal launcher interface for interactive frontend services."""

from abc import ABC, abstractmethod
from pathlib import Path


class ITerminalLauncher(ABC):
    """Builds the command that opens a new terminal window running a service."""

    platform: str = ""

    @abstractmethod
    def build_command(self, cwd: Path, command: str) -> list[str]:
        """
        Build argv that opens a terminal, changes to ``cwd`` and runs ``command``.

        Args:
            cwd: Directory the command runs in
            command: Shell command line to run inside the terminal

        Returns:
            argv to spawn detached
        """
        pass
