"""
Repository target models.

A RepositoryTarget is the resolved, immutable description of one repository
for a single orchestration run: where it lives, how it runs, and which
install/startup commands apply.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated

from pydantic import Field

from .base import ImmutableModel


class ExecutionMode(str, Enum):
    """Resolved execution mode of a single repository."""

    LOCAL = "local"
    CONTAINER = "container"


class GlobalMode(str, Enum):
    """Run-wide default mode. Hybrid resolves to local unless a repo overrides it."""

    LOCAL = "local"
    CONTAINER = "container"
    HYBRID = "hybrid"

    def resolve(self) -> ExecutionMode:
        """Execution mode applied to repositories without an override."""
        if self is GlobalMode.CONTAINER:
            return ExecutionMode.CONTAINER
        return ExecutionMode.LOCAL


class ConfigSource(str, Enum):
    """Where a target's execution configuration came from."""

    REPO = "repo"
    GLOBAL = "global"


class RepositoryTarget(ImmutableModel):
    """A repository plus its resolved execution configuration."""

    name: Annotated[str, Field(min_length=1)]
    path: Path
    mode: ExecutionMode
    install_command: str | None = None
    startup_command: str | None = None
    source: ConfigSource = ConfigSource.GLOBAL

    @property
    def is_container(self) -> bool:
        return self.mode is ExecutionMode.CONTAINER


class PortAssignment(ImmutableModel):
    """Host/container port pair for one service."""

    host: Annotated[int, Field(ge=1, le=65535)]
    internal: Annotated[int, Field(ge=1, le=65535)]

    def as_compose_mapping(self) -> str:
        return f"{self.host}:{self.internal}"


class FrameworkType(str, Enum):
    """Service class reported by framework detection."""

    FRONTEND = "frontend"
    BACKEND = "backend"
    FULLSTACK = "fullstack"


class FrameworkInfo(ImmutableModel):
    """Result of framework detection for one repository path."""

    type: FrameworkType
    framework: str
    version: str | None = None
    startup_command: str
    install_command: str | None = None
    build_command: str | None = None
    default_port: int | None = None
    health_check_path: str | None = None

    @property
    def is_frontend(self) -> bool:
        return self.type is FrameworkType.FRONTEND
