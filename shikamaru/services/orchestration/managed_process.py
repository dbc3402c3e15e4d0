"""Uniform handle for anything the engine launched or attached to."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from ...core.interfaces.process import IProcessHandle
from .streams import OutputStream


class ProcessKind(str, Enum):
    """How a managed process is backed."""

    SUPERVISED = "supervised"
    TERMINAL = "terminal"
    CONTAINER_LOGS = "container-logs"


@dataclass
class ManagedProcess:
    """
    A name, its output stream and the underlying process handle.

    For TERMINAL processes the handle is the launcher process only; the
    service itself runs inside the terminal window and is not supervised.
    """

    name: str
    stream: OutputStream
    handle: IProcessHandle | None
    kind: ProcessKind = ProcessKind.SUPERVISED

    @property
    def pid(self) -> int | None:
        return self.handle.pid if self.handle is not None else None

    @property
    def is_running(self) -> bool:
        return self.handle is not None and self.handle.returncode is None

    @property
    def is_container_backed(self) -> bool:
        return self.kind is ProcessKind.CONTAINER_LOGS
