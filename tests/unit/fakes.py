"""
In-memory doubles for the process interfaces.

FakeCommandRunner answers ``run`` and ``spawn`` from scripted outcomes keyed
by argv prefix, and records every call. FakeHandle is a process that either
exits immediately or stays alive until finished, terminated or killed.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from shikamaru.core.interfaces.presenter import IPresenter
from shikamaru.core.interfaces.process import (
    CommandResult,
    ICommandRunner,
    IProcessHandle,
    IProcessStopper,
    LineCallback,
)
from shikamaru.core.interfaces.terminal import ITerminalLauncher


class FakeHandle(IProcessHandle):
    """A scripted child process."""

    _next_pid = 1000

    def __init__(
        self,
        lines: Sequence[str] = (),
        returncode: int = 0,
        hold: bool = False,
        pid: int | None = None,
    ) -> None:
        if pid is None:
            FakeHandle._next_pid += 1
            pid = FakeHandle._next_pid
        self._pid = pid
        self._lines = list(lines)
        self._final = returncode
        self._returncode: int | None = None
        self._hold = hold
        self._exited: asyncio.Event | None = None
        self.terminated = False
        self.killed = False

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def returncode(self) -> int | None:
        return self._returncode

    def _event(self) -> asyncio.Event:
        if self._exited is None:
            self._exited = asyncio.Event()
            if self._returncode is not None:
                self._exited.set()
        return self._exited

    async def lines(self) -> AsyncIterator[str]:
        for line in self._lines:
            yield line
        if self._hold:
            await self._event().wait()

    async def wait(self) -> int:
        if self._hold:
            await self._event().wait()
        elif self._returncode is None:
            self._returncode = self._final
        assert self._returncode is not None
        return self._returncode

    def finish(self, returncode: int = 0) -> None:
        self._returncode = returncode
        self._event().set()

    def terminate(self) -> None:
        self.terminated = True
        if self._returncode is None:
            self.finish(-15)

    def kill(self) -> None:
        self.killed = True
        if self._returncode is None:
            self.finish(-9)


@dataclass
class SpawnCall:
    argv: list[str]
    cwd: Path | None
    detached: bool
    capture: bool


class FakeCommandRunner(ICommandRunner):
    """
    Scripted command runner.

    ``on_run(prefix, *outcomes)`` queues outcomes for argv starting with
    ``prefix``; the last outcome repeats. Unscripted commands succeed with
    no output. ``on_spawn(prefix, factory)`` supplies handles the same way.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.cwds: list[Path | None] = []
        self.spawned: list[SpawnCall] = []
        self.handles: list[FakeHandle] = []
        self._runs: list[tuple[tuple[str, ...], list]] = []
        self._spawns: list[tuple[tuple[str, ...], Callable[[], FakeHandle | BaseException]]] = []

    def on_run(self, prefix: Sequence[str], *outcomes) -> FakeCommandRunner:
        self._runs.append((tuple(prefix), list(outcomes)))
        return self

    def on_spawn(
        self,
        prefix: Sequence[str],
        factory: Callable[[], FakeHandle | BaseException],
    ) -> FakeCommandRunner:
        self._spawns.append((tuple(prefix), factory))
        return self

    def calls_matching(self, *prefix: str) -> list[list[str]]:
        return [argv for argv in self.calls if tuple(argv[: len(prefix)]) == prefix]

    @staticmethod
    def _best(entries, argv: list[str]):
        best = None
        for prefix, value in entries:
            if tuple(argv[: len(prefix)]) != prefix:
                continue
            if best is None or len(prefix) >= len(best[0]):
                best = (prefix, value)
        return best[1] if best is not None else None

    async def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        on_line: LineCallback | None = None,
    ) -> CommandResult:
        argv = list(argv)
        self.calls.append(argv)
        self.cwds.append(cwd)
        await asyncio.sleep(0)

        outcomes = self._best(self._runs, argv)
        outcome = (0, "")
        if outcomes:
            outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if callable(outcome):
            outcome = outcome(argv)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, CommandResult):
            return outcome

        returncode, output = outcome
        lines = output.splitlines()
        if on_line is not None:
            for line in lines:
                on_line(line)
        return CommandResult(argv=argv, returncode=returncode, output=output, lines=lines)

    async def spawn(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        detached: bool = False,
        capture: bool = True,
    ) -> IProcessHandle:
        argv = list(argv)
        self.spawned.append(SpawnCall(argv, cwd, detached, capture))
        factory = self._best(self._spawns, argv)
        handle = factory() if factory is not None else FakeHandle(hold=True)
        if isinstance(handle, BaseException):
            raise handle
        self.handles.append(handle)
        return handle


class FakeStopper(IProcessStopper):
    """Records stopped pids; optionally fails for some."""

    def __init__(self, failing: Mapping[int, Exception] | None = None) -> None:
        self.stopped: list[int] = []
        self._failing = dict(failing or {})

    async def stop_tree(self, pid: int, grace_s: float = 0.8) -> bool:
        if pid in self._failing:
            raise self._failing[pid]
        self.stopped.append(pid)
        return True


class FakeTerminal(ITerminalLauncher):
    platform = "test"

    def build_command(self, cwd: Path, command: str) -> list[str]:
        return ["term", str(cwd), command]


class RecordingPresenter(IPresenter):
    """Captures every presenter call as (method, args)."""

    def __init__(self, confirm_answer: bool = False) -> None:
        self.calls: list[tuple[str, tuple]] = []
        self._confirm_answer = confirm_answer

    def _record(self, method: str, *args) -> None:
        self.calls.append((method, args))

    def of(self, method: str) -> list[tuple]:
        return [args for name, args in self.calls if name == method]

    def print(self, message):
        self._record("print", message)

    def print_error(self, message):
        self._record("print_error", message)

    def print_warning(self, message):
        self._record("print_warning", message)

    def print_success(self, message):
        self._record("print_success", message)

    def print_table(self, headers, rows):
        self._record("print_table", headers, rows)

    def print_suggestions(self, title, suggestions):
        self._record("print_suggestions", title, list(suggestions))

    def print_health(self, records):
        self._record("print_health", records)

    def print_result(self, result):
        self._record("print_result", result)

    def print_stop_report(self, report):
        self._record("print_stop_report", report)

    def confirm(self, message, default=False):
        self._record("confirm", message)
        return self._confirm_answer


class FakeClock:
    """Monotonic clock advanced by the injected sleep."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)
