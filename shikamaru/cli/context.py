"""
Click context extension for shikamaru CLI.

Provides ShikamaruContext dataclass that holds shikamaru-specific data
passed through the Click command chain via ctx.obj.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

import click

from ..core.exceptions import ShikamaruConfigError
from ..core.settings import ShikamaruSettings, load_settings


@dataclass
class ShikamaruContext:
    """Extended context passed through Click command chain.

    Settings are loaded on first use so that ``--help`` works even when
    the configuration file is invalid.

    Attributes:
        cwd: Current working directory
        is_interactive: Whether stdin is a TTY (for prompts)
        config_path: Explicit config file, or None to search upward from cwd
    """

    cwd: Path
    is_interactive: bool
    config_path: Path | None = None
    _settings: ShikamaruSettings | None = field(default=None, repr=False)

    @classmethod
    def create(cls, cwd: Path | None = None, config_path: Path | None = None) -> ShikamaruContext:
        """Create a ShikamaruContext for the current environment.

        Args:
            cwd: Working directory override (defaults to Path.cwd())
            config_path: Explicit config file

        Returns:
            Configured ShikamaruContext instance
        """
        if cwd is None:
            cwd = Path.cwd()

        return cls(
            cwd=cwd,
            is_interactive=sys.stdin.isatty(),
            config_path=config_path,
        )

    @property
    def settings(self) -> ShikamaruSettings:
        """Loaded settings.

        Raises:
            click.ClickException: If the configuration is invalid
        """
        if self._settings is None:
            try:
                self._settings = load_settings(self.config_path, str(self.cwd))
            except ShikamaruConfigError as e:
                raise click.ClickException(str(e)) from e
            if self._settings.config_error:
                click.echo(f"Warning: {self._settings.config_error}", err=True)
        return self._settings
