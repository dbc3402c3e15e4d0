"""
Line-oriented output streams for managed services.

Every managed service (local process, detached terminal, attached container
logs) writes into one OutputStream. Log viewers read the retained history
and follow live lines.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncIterator, Callable

LineListener = Callable[[str, str], None]

DEFAULT_HISTORY = 1000


class OutputStream:
    """
    Named, ordered stream of output lines with bounded history.

    Writes are synchronous and never block; readers iterate with
    ``follow()`` which yields the retained history first.
    """

    def __init__(self, name: str, history: int = DEFAULT_HISTORY) -> None:
        self.name = name
        self._history: deque[str] = deque(maxlen=history)
        self._listeners: list[LineListener] = []
        self._queues: list[asyncio.Queue[str | None]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def history(self) -> list[str]:
        return list(self._history)

    def write(self, text: str) -> None:
        """Append text, one entry per line. Writes after close are dropped."""
        if self._closed:
            return
        for line in text.splitlines() or [""]:
            self._history.append(line)
            for listener in list(self._listeners):
                listener(self.name, line)
            for queue in self._queues:
                queue.put_nowait(line)

    def subscribe(self, listener: LineListener) -> Callable[[], None]:
        """Call ``listener(name, line)`` for every future line.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for queue in self._queues:
            queue.put_nowait(None)

    async def follow(self) -> AsyncIterator[str]:
        """Yield retained history, then live lines until the stream closes."""
        queue: asyncio.Queue[str | None] = asyncio.Queue()
        backlog = list(self._history)
        if self._closed:
            for line in backlog:
                yield line
            return
        self._queues.append(queue)
        try:
            for line in backlog:
                yield line
            while True:
                line = await queue.get()
                if line is None:
                    return
                yield line
        finally:
            self._queues.remove(queue)
