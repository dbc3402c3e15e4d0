"""
Configuration models.

Provides Pydantic models for shikamaru configuration with validation.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import ConfigDict, Field, field_validator

from .base import ShikamaruBaseModel
from .compose import InfraServiceType
from .targets import ExecutionMode, GlobalMode

LogLevel = Literal["debug", "info", "warning", "error"]


class ConfigBaseModel(ShikamaruBaseModel):
    """Base model for config sections with relaxed strict mode for TOML loading."""

    model_config = ConfigDict(
        strict=False,  # Allow coercion from TOML types
        validate_assignment=True,
        extra="ignore",  # Ignore unknown fields in config files
        populate_by_name=True,
        revalidate_instances="never",
    )


class ExecutionConfig(ConfigBaseModel):
    """Run-wide execution defaults."""

    projects_dir: str = "."
    global_mode: GlobalMode = GlobalMode.HYBRID
    install_command: str | None = None
    startup_command: str | None = None
    skip_install: bool = False


class RepoConfig(ConfigBaseModel):
    """Per-repository override."""

    name: Annotated[str, Field(min_length=1)]
    mode: ExecutionMode = ExecutionMode.LOCAL
    install_command: str | None = None
    startup_command: str | None = None


class OrchestrationConfig(ConfigBaseModel):
    """Concurrency, timeout and retry policy."""

    concurrency: Annotated[int, Field(ge=1)] = 1
    timeout_ms: Annotated[int, Field(gt=0)] | None = None
    install_retries: Annotated[int, Field(ge=0)] = 2
    backoff_base_ms: Annotated[int, Field(ge=0)] = 1000
    backoff_max_ms: Annotated[int, Field(ge=0)] = 5000
    continue_on_install_failure: bool = False


class ContainersConfig(ConfigBaseModel):
    """Container stack configuration section."""

    manifest_file: str = "docker-compose.unified.yml"
    compose_command: list[str] = Field(default_factory=lambda: ["docker", "compose"])
    docker_command: list[str] = Field(default_factory=lambda: ["docker"])
    network: str = "devnet3"
    health_timeout_s: Annotated[float, Field(gt=0)] = 300.0
    health_interval_s: Annotated[float, Field(gt=0)] = 2.0
    infra: list[InfraServiceType] = Field(default_factory=list)

    @field_validator("infra", mode="before")
    @classmethod
    def parse_infra(cls, v: object) -> object:
        """Accept service names and family aliases."""
        if isinstance(v, str):
            v = [part for part in v.split(",") if part.strip()]
        if isinstance(v, list):
            return [
                InfraServiceType.from_identifier(item) if isinstance(item, str) else item
                for item in v
            ]
        return v

    @field_validator("compose_command", "docker_command", mode="before")
    @classmethod
    def split_command(cls, v: object) -> object:
        if isinstance(v, str):
            return v.split()
        return v


class PortConfig(ConfigBaseModel):
    """Port mapping for one repository."""

    host: Annotated[int, Field(ge=1, le=65535)]
    internal: Annotated[int, Field(ge=1, le=65535)]


class LoggingConfig(ConfigBaseModel):
    """Logging configuration section."""

    level: LogLevel = "warning"
    console: bool = False
    file: bool = True
