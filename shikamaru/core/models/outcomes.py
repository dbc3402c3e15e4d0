"""
Outcome models produced by the orchestration phases.

Install and start outcomes are partitions over their input set; health
records and stop reports are structured results consumed by presenters.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated

from pydantic import Field, computed_field

from .base import ImmutableModel


class InstallOutcome(ImmutableModel):
    """Partition of targets into ready and failed installs."""

    ready_services: list[str] = Field(default_factory=list)
    install_failures: list[str] = Field(default_factory=list)


class StartOutcome(ImmutableModel):
    """Partition of ready targets into started and failed services.

    ``processes`` holds the names of launched services; the handles themselves
    live in the process registry.
    """

    processes: list[str] = Field(default_factory=list)
    failed_services: list[str] = Field(default_factory=list)


class HealthStatus(str, Enum):
    """Terminal states of the container health wait."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    TIMEOUT = "timeout"
    ERROR = "error"


class HealthRecord(ImmutableModel):
    """Health observation for a single container service."""

    service: str
    status: HealthStatus
    duration_ms: Annotated[int, Field(ge=0)]
    message: str | None = None


class StopKind(str, Enum):
    """Origin of a container stop record."""

    PLANNED_DOCKER = "planned-docker"
    INFRA_DOCKER = "infra-docker"


class StopRecord(ImmutableModel):
    """One container service handled during shutdown."""

    name: str
    kind: StopKind
    stopped: bool
    reason: str | None = None


class StopError(ImmutableModel):
    """An error recorded during shutdown."""

    name: str
    kind: StopKind
    error: str


class DockerStopReport(ImmutableModel):
    """Container part of the stop report."""

    stopped: list[StopRecord] = Field(default_factory=list)
    skipped: list[StopRecord] = Field(default_factory=list)
    errors: list[StopError] = Field(default_factory=list)


class StopReport(ImmutableModel):
    """Consolidated result of the shutdown procedure."""

    stopped_services: Annotated[int, Field(ge=0)]
    stopped_processes: Annotated[int, Field(ge=0)]
    docker: DockerStopReport
    local_error: str | None = None
    duration_ms: Annotated[int, Field(ge=0)]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def error_count(self) -> int:
        return len(self.docker.errors) + (1 if self.local_error else 0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        return self.error_count == 0

    @property
    def message(self) -> str:
        if self.success:
            return "All services stopped successfully"
        return "Stopped with some errors"


class OrchestrationResult(ImmutableModel):
    """Top-level result of a start run across both lanes."""

    install: InstallOutcome = Field(default_factory=InstallOutcome)
    start: StartOutcome = Field(default_factory=StartOutcome)
    container_services: list[str] = Field(default_factory=list)
    infra_services: list[str] = Field(default_factory=list)
    health_records: list[HealthRecord] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def running_services(self) -> list[str]:
        return [*self.container_services, *self.start.processes]
