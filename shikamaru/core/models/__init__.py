"""
Pydantic models for shikamaru.

This package provides typed, validated models for targets, outcomes,
compose manifests and configuration sections.
"""

from .base import ImmutableModel, ShikamaruBaseModel

# Container stack models
from .compose import (
    BuildSpec,
    ComposeManifest,
    ComposeService,
    ContainerServiceSpec,
    DependencyCondition,
    Healthcheck,
    InfraServiceType,
    ServiceFamily,
)

# Configuration models
from .config import (
    ContainersConfig,
    ExecutionConfig,
    LoggingConfig,
    OrchestrationConfig,
    PortConfig,
    RepoConfig,
)
from .errors import DockerErrorCategory, InstallErrorCategory, StartupErrorCategory
from .options import ContainerOptions, EnvironmentResolution, OrchestrationOptions

# Outcome models
from .outcomes import (
    DockerStopReport,
    HealthRecord,
    HealthStatus,
    InstallOutcome,
    OrchestrationResult,
    StartOutcome,
    StopError,
    StopKind,
    StopRecord,
    StopReport,
)
from .targets import (
    ConfigSource,
    ExecutionMode,
    FrameworkInfo,
    FrameworkType,
    GlobalMode,
    PortAssignment,
    RepositoryTarget,
)

__all__ = [
    "BuildSpec",
    "ComposeManifest",
    "ComposeService",
    "ConfigSource",
    "ContainerOptions",
    "ContainerServiceSpec",
    "ContainersConfig",
    "DependencyCondition",
    "DockerErrorCategory",
    "DockerStopReport",
    "EnvironmentResolution",
    "ExecutionConfig",
    "ExecutionMode",
    "FrameworkInfo",
    "FrameworkType",
    "GlobalMode",
    "HealthRecord",
    "HealthStatus",
    "Healthcheck",
    "ImmutableModel",
    "InfraServiceType",
    "InstallErrorCategory",
    "InstallOutcome",
    "LoggingConfig",
    "OrchestrationConfig",
    "OrchestrationOptions",
    "OrchestrationResult",
    "PortAssignment",
    "PortConfig",
    "RepoConfig",
    "RepositoryTarget",
    "ServiceFamily",
    "ShikamaruBaseModel",
    "StartOutcome",
    "StartupErrorCategory",
    "StopError",
    "StopKind",
    "StopRecord",
    "StopReport",
]
