"""
Service orchestration engine.

Bounded-concurrency install and start of local repositories, compose
stack synthesis and health gating for container repositories, and the
coordinated shutdown of everything started.
"""

from .compose_builder import ContainerStackBuilder, read_manifest_services, slugify
from .compose_runner import ContainerStackRunner, StackState
from .concurrency import ItemResult, run_with_concurrency
from .coordinator import OrchestrationCoordinator, planned_container_names
from .framework_detector import FrameworkDetector
from .installer import DependencyInstaller, RetryPolicy
from .managed_process import ManagedProcess, ProcessKind
from .process_control import PsutilProcessStopper
from .registry import ProcessRegistry
from .runner import AsyncCommandRunner
from .shutdown import ShutdownCoordinator
from .signal_handler import ShutdownSignalHandler
from .starter import LocalServiceStarter
from .streams import OutputStream

__all__ = [
    "AsyncCommandRunner",
    "ContainerStackBuilder",
    "ContainerStackRunner",
    "DependencyInstaller",
    "FrameworkDetector",
    "ItemResult",
    "LocalServiceStarter",
    "ManagedProcess",
    "OrchestrationCoordinator",
    "OutputStream",
    "ProcessKind",
    "ProcessRegistry",
    "PsutilProcessStopper",
    "RetryPolicy",
    "ShutdownCoordinator",
    "ShutdownSignalHandler",
    "StackState",
    "planned_container_names",
    "read_manifest_services",
    "run_with_concurrency",
    "slugify",
]
