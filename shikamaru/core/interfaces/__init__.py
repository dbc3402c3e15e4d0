"""Interfaces for the orchestration engine's pluggable collaborators."""

from .framework import IFrameworkDetector
from .logger import ILogger
from .presenter import IPresenter
from .process import (
    CommandResult,
    ICommandRunner,
    IProcessHandle,
    IProcessStopper,
    LineCallback,
)
from .terminal import ITerminalLauncher

__all__ = [
    "CommandResult",
    "ICommandRunner",
    "IFrameworkDetector",
    "ILogger",
    "IPresenter",
    "IProcessHandle",
    "IProcessStopper",
    "ITerminalLauncher",
    "LineCallback",
]
