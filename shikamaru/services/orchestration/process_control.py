"""Process tree termination backed by psutil."""

from __future__ import annotations

import asyncio

import psutil

from ...core.interfaces.logger import ILogger
from ...core.interfaces.process import IProcessStopper


class PsutilProcessStopper(IProcessStopper):
    """
    Terminates a process and all of its descendants.

    Children are signalled before the parent so package-manager wrappers
    (npm, yarn) cannot respawn them; survivors of the grace period are killed.
    """

    def __init__(self, logger: ILogger | None = None) -> None:
        self._logger = logger

    @property
    def logger(self) -> ILogger:
        if self._logger is None:
            from ..logging import NullLogger

            self._logger = NullLogger()
        return self._logger

    async def stop_tree(self, pid: int, grace_s: float = 0.8) -> bool:
        return await asyncio.to_thread(self._stop_tree, pid, grace_s)

    def _stop_tree(self, pid: int, grace_s: float) -> bool:
        try:
            parent = psutil.Process(pid)
            children = parent.children(recursive=True)
        except psutil.NoSuchProcess:
            return False

        for proc in [*children, parent]:
            try:
                proc.terminate()
            except psutil.NoSuchProcess:
                pass

        _, alive = psutil.wait_procs([parent, *children], timeout=grace_s)
        for proc in alive:
            try:
                self.logger.warning("Force killing stuck process PID %d", proc.pid)
                proc.kill()
            except psutil.NoSuchProcess:
                pass
        if alive:
            psutil.wait_procs(alive, timeout=2.0)
        return True
