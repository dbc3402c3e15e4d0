"""Platform terminal launchers for frontend services."""

from __future__ import annotations

import shlex
from pathlib import Path

from ...core.interfaces.terminal import ITerminalLauncher


def _applescript_string(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


class MacTerminalLauncher(ITerminalLauncher):
    """Opens Terminal.app through osascript."""

    platform = "darwin"

    def build_command(self, cwd: Path, command: str) -> list[str]:
        script = f"cd {shlex.quote(str(cwd))} && {command}"
        return [
            "osascript",
            "-e",
            f'tell application "Terminal" to do script "{_applescript_string(script)}"',
        ]


class WindowsTerminalLauncher(ITerminalLauncher):
    """Opens a new cmd.exe window that stays open after the command."""

    platform = "win32"

    def build_command(self, cwd: Path, command: str) -> list[str]:
        return ["cmd", "/c", "start", "cmd", "/k", f'cd /d "{cwd}" && {command}']


class XtermLauncher(ITerminalLauncher):
    """Opens an xterm running bash; the shell stays open after the command."""

    platform = "linux"

    def build_command(self, cwd: Path, command: str) -> list[str]:
        return ["xterm", "-e", "bash", "-c", f"cd {shlex.quote(str(cwd))} && {command}; exec bash"]


DEFAULT_LAUNCHERS: tuple[type[ITerminalLauncher], ...] = (
    MacTerminalLauncher,
    WindowsTerminalLauncher,
    XtermLauncher,
)
