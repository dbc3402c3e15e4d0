"""
Registry of running services.

The registry is the one piece of shared mutable state in the engine. It is
never mutated in place: every change builds a new mapping and swaps it in,
so readers holding a snapshot always see a consistent view.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from types import MappingProxyType

from .managed_process import ManagedProcess


class ProcessRegistry:
    """Copy-on-write map of service name to ManagedProcess."""

    def __init__(self) -> None:
        self._processes: Mapping[str, ManagedProcess] = MappingProxyType({})

    def snapshot(self) -> Mapping[str, ManagedProcess]:
        """Read-only view of the current mapping."""
        return self._processes

    @property
    def names(self) -> list[str]:
        return list(self._processes)

    def get(self, name: str) -> ManagedProcess | None:
        return self._processes.get(name)

    def __len__(self) -> int:
        return len(self._processes)

    def __contains__(self, name: object) -> bool:
        return name in self._processes

    def publish(self, processes: Iterable[ManagedProcess]) -> None:
        """Swap in the current mapping plus ``processes`` (later names win)."""
        updated = dict(self._processes)
        for process in processes:
            updated[process.name] = process
        self._processes = MappingProxyType(updated)

    def discard(self, name: str) -> ManagedProcess | None:
        """Remove one entry if present, returning it."""
        removed = self._processes.get(name)
        if removed is not None:
            self._processes = MappingProxyType(
                {k: v for k, v in self._processes.items() if k != name}
            )
        return removed

    def clear(self) -> None:
        self._processes = MappingProxyType({})
