"""
Signal handling for the foreground orchestration session.

The first SIGINT, SIGTERM or SIGHUP requests one graceful shutdown; a
second SIGINT aborts immediately with the conventional exit code 130.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from collections.abc import Callable

from ...core.interfaces.logger import ILogger

SHUTDOWN_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGINT", "SIGTERM", "SIGHUP") if hasattr(signal, name)
)


class ShutdownSignalHandler:
    """
    Turns termination signals into a shutdown request.

    ``stop_event`` is set on the first signal; the session awaits it and then
    runs the shutdown coordinator.
    """

    def __init__(
        self,
        on_first_interrupt: Callable[[], None] | None = None,
        on_abort: Callable[[], None] | None = None,
        logger: ILogger | None = None,
    ) -> None:
        self.stop_event = asyncio.Event()
        self._interrupt_count = 0
        self._on_first_interrupt = on_first_interrupt
        self._on_abort = on_abort
        self._logger = logger
        self._loop: asyncio.AbstractEventLoop | None = None
        self._installed: list[int] = []
        self._fallback_handler = None

    @property
    def logger(self) -> ILogger:
        if self._logger is None:
            from ..logging import NullLogger

            self._logger = NullLogger()
        return self._logger

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Install handlers on the running loop."""
        self._loop = loop or asyncio.get_running_loop()
        for signum in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(signum, self._handle_signal, signum)
                self._installed.append(signum)
            except (NotImplementedError, RuntimeError):
                if signum == signal.SIGINT:
                    self._fallback_handler = signal.signal(signal.SIGINT, self._handle_threadsafe)
        self.logger.debug("Installed shutdown handlers for %s", self._installed)

    def restore(self) -> None:
        """Remove the installed handlers."""
        if self._loop is not None:
            for signum in self._installed:
                self._loop.remove_signal_handler(signum)
        self._installed.clear()
        if self._fallback_handler is not None:
            signal.signal(signal.SIGINT, self._fallback_handler)
            self._fallback_handler = None

    def is_interrupted(self) -> bool:
        return self.stop_event.is_set()

    def get_interrupt_count(self) -> int:
        return self._interrupt_count

    def _handle_threadsafe(self, signum: int, frame) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._handle_signal, signum)

    def _handle_signal(self, signum: int) -> None:
        if signum == signal.SIGINT:
            self._interrupt_count += 1
        self.logger.debug("Signal %d received: interrupt_count=%d", signum, self._interrupt_count)

        if self._interrupt_count >= 2:
            self.logger.debug("Second interrupt, aborting immediately")
            if self._on_abort:
                self._on_abort()
            sys.exit(130)

        if not self.stop_event.is_set():
            self.stop_event.set()
            if self._on_first_interrupt:
                self._on_first_interrupt()
