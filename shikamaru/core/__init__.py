"""
Core infrastructure for shikamaru.

This module provides:
- ServiceContainer: DI container using dependency-injector
- Application bootstrap for initialization
- Interface definitions for the pluggable collaborators
- Custom exception hierarchy
"""

from .bootstrap import bootstrap, is_initialized, reset
from .container import ServiceContainer, get_container, resolve, try_resolve
from .exceptions import (
    ComposeGenerationError,
    ConfigFileError,
    ConfigValidationError,
    ContainerBuildError,
    ContainerCommandError,
    ContainerStackError,
    ContainerStartError,
    ContainerStopError,
    HealthCheckError,
    HealthCheckTimeoutError,
    InstallError,
    OperationAbortedError,
    OperationTimeoutError,
    OrchestrationError,
    ServiceConfigurationError,
    ServiceStartError,
    ShikamaruConfigError,
    ShikamaruException,
    UnhealthyServiceError,
)

__all__ = [
    "ComposeGenerationError",
    "ConfigFileError",
    "ConfigValidationError",
    "ContainerBuildError",
    "ContainerCommandError",
    "ContainerStackError",
    "ContainerStartError",
    "ContainerStopError",
    "HealthCheckError",
    "HealthCheckTimeoutError",
    "InstallError",
    "OperationAbortedError",
    "OperationTimeoutError",
    "OrchestrationError",
    "ServiceConfigurationError",
    "ServiceContainer",
    "ServiceStartError",
    "ShikamaruConfigError",
    "ShikamaruException",
    "UnhealthyServiceError",
    "bootstrap",
    "get_container",
    "is_initialized",
    "reset",
    "resolve",
    "try_resolve",
]
