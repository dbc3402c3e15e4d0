"""
Run options passed explicitly into the orchestration services.

Settings are converted into these value objects once per run; the
services never read configuration on their own.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

from pydantic import Field

from .base import ImmutableModel
from .compose import InfraServiceType
from .targets import ExecutionMode, PortAssignment


class OrchestrationOptions(ImmutableModel):
    """Concurrency, timeout and retry policy for install and start phases."""

    concurrency: Annotated[int, Field(ge=1)] = 1
    timeout_ms: Annotated[int, Field(gt=0)] | None = None
    skip_install: bool = False
    install_retries: Annotated[int, Field(ge=0)] = 2
    backoff_base_ms: Annotated[int, Field(ge=0)] = 1000
    backoff_max_ms: Annotated[int, Field(ge=0)] = 5000
    continue_on_install_failure: bool = False

    @property
    def timeout_s(self) -> float | None:
        return self.timeout_ms / 1000 if self.timeout_ms is not None else None


class ContainerOptions(ImmutableModel):
    """Commands, paths and polling policy for the container stack."""

    manifest_path: Path
    compose_command: tuple[str, ...] = ("docker", "compose")
    docker_command: tuple[str, ...] = ("docker",)
    network: str = "devnet3"
    health_timeout_s: Annotated[float, Field(gt=0)] = 300.0
    health_interval_s: Annotated[float, Field(gt=0)] = 2.0
    heartbeat_s: Annotated[float, Field(gt=0)] = 5.0

    def compose(self, *args: str) -> list[str]:
        """argv for a compose subcommand against the manifest."""
        return [*self.compose_command, "-f", str(self.manifest_path), *args]

    def docker(self, *args: str) -> list[str]:
        return [*self.docker_command, *args]


class EnvironmentResolution(ImmutableModel):
    """Output of environment resolution consumed by the engine.

    Repository modes, resolved port mappings and the required infra set
    are produced before orchestration starts and treated as given.
    """

    modes: dict[str, ExecutionMode] = Field(default_factory=dict)
    ports: dict[str, PortAssignment] = Field(default_factory=dict)
    infra: list[InfraServiceType] = Field(default_factory=list)
