"""
Error category enums.

Each phase of the orchestration classifies failures into a closed set of
categories; remediation suggestions are keyed by these enums.
"""

from __future__ import annotations

from enum import Enum


class InstallErrorCategory(str, Enum):
    """Dependency installation failure categories."""

    PERMISSION = "permission"
    COMMAND_NOT_FOUND = "command-not-found"
    NETWORK = "network"
    REGISTRY = "registry"
    SYNTAX = "syntax"
    VERSION = "version"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class StartupErrorCategory(str, Enum):
    """Local service startup failure categories."""

    PORT_CONFLICT = "port-conflict"
    PERMISSION = "permission"
    COMMAND_NOT_FOUND = "command-not-found"
    DEPENDENCY = "dependency"
    CONFIGURATION = "configuration"
    CONNECTION = "connection"
    SYNTAX = "syntax"
    UNKNOWN = "unknown"


class DockerErrorCategory(str, Enum):
    """Container build/start failure categories."""

    PORT_CONFLICT = "port-conflict"
    PERMISSION = "permission"
    FILE_NOT_FOUND = "file-not-found"
    NETWORK = "network"
    BUILD = "build"
    IMAGE = "image"
    VOLUME = "volume"
    RESOURCE = "resource"
    SYNTAX = "syntax"
    UNKNOWN = "unknown"
