"""
asyncio-based command runner.

Children get stdin closed and stdout/stderr merged into a single pipe so
that output order is preserved line for line.
"""

from __future__ import annotations

import asyncio
import os
import subprocess
import sys
from collections.abc import AsyncIterator, Mapping, Sequence
from pathlib import Path

from ...core.interfaces.process import (
    CommandResult,
    ICommandRunner,
    IProcessHandle,
    LineCallback,
)


def _merged_env(env: Mapping[str, str] | None) -> dict[str, str] | None:
    if not env:
        return None
    merged = dict(os.environ)
    merged.update(env)
    return merged


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\r\n")


def _session_kwargs(detached: bool) -> dict:
    """Own process group: a Ctrl-C at the terminal reaches only the orchestrator."""
    if sys.platform == "win32":
        flags = subprocess.CREATE_NEW_PROCESS_GROUP
        if detached:
            flags |= subprocess.DETACHED_PROCESS
        return {"creationflags": flags}
    return {"start_new_session": True}


class AsyncProcessHandle(IProcessHandle):
    """IProcessHandle over an asyncio subprocess."""

    def __init__(self, process: asyncio.subprocess.Process) -> None:
        self._process = process

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> int | None:
        return self._process.returncode

    async def lines(self) -> AsyncIterator[str]:
        """
        Yield output lines until EOF.

        A line longer than the stream buffer limit is yielded in
        limit-sized pieces instead of failing the read.
        """
        stdout = self._process.stdout
        if stdout is None:
            return
        split = False
        while True:
            try:
                raw = await stdout.readuntil(b"\n")
            except asyncio.IncompleteReadError as e:
                raw = e.partial
                if not raw:
                    return
            except asyncio.LimitOverrunError as e:
                split = True
                yield _decode(await stdout.read(e.consumed))
                continue
            if split and not raw.strip(b"\r\n"):
                # terminator of a line already yielded in pieces
                split = False
                continue
            split = False
            yield _decode(raw)

    async def wait(self) -> int:
        return await self._process.wait()

    def terminate(self) -> None:
        if self._process.returncode is None:
            try:
                self._process.terminate()
            except ProcessLookupError:
                pass

    def kill(self) -> None:
        if self._process.returncode is None:
            try:
                self._process.kill()
            except ProcessLookupError:
                pass


class AsyncCommandRunner(ICommandRunner):
    """Runs commands with asyncio.create_subprocess_exec."""

    async def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        on_line: LineCallback | None = None,
    ) -> CommandResult:
        handle = await self.spawn(argv, cwd=cwd, env=env)
        collected: list[str] = []
        async for line in handle.lines():
            collected.append(line)
            if on_line is not None:
                on_line(line)
        returncode = await handle.wait()
        return CommandResult(
            argv=list(argv),
            returncode=returncode,
            output="\n".join(collected),
            lines=collected,
        )

    async def spawn(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        detached: bool = False,
        capture: bool = True,
    ) -> IProcessHandle:
        capture = capture and not detached
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE if capture else asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.STDOUT if capture else asyncio.subprocess.DEVNULL,
            cwd=str(cwd) if cwd is not None else None,
            env=_merged_env(env),
            **_session_kwargs(detached),
        )
        return AsyncProcessHandle(process)
