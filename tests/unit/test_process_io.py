"""
Unit tests for the process-facing adapters.

AsyncCommandRunner and PsutilProcessStopper run real child processes of the
current interpreter; terminal launchers and compose output parsers are pure.
"""

import asyncio
import subprocess
import sys
from pathlib import Path
from unittest.mock import patch

import psutil
import pytest

from shikamaru.services.orchestration.compose_output import (
    BuildOutputParser,
    ComposeEventKind,
    StartOutputParser,
)
from shikamaru.services.orchestration.process_control import PsutilProcessStopper
from shikamaru.services.orchestration.runner import AsyncCommandRunner
from shikamaru.services.orchestration.terminal import (
    MacTerminalLauncher,
    WindowsTerminalLauncher,
    XtermLauncher,
)

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")


class TestAsyncCommandRunner:
    def test_run_merges_stdout_and_stderr(self, tmp_path):
        script = "import sys; print('out'); sys.stdout.flush(); print('err', file=sys.stderr)"
        seen = []

        result = asyncio.run(
            AsyncCommandRunner().run(
                [sys.executable, "-c", script], cwd=tmp_path, on_line=seen.append
            )
        )

        assert result.ok
        assert sorted(result.lines) == ["err", "out"]
        assert seen == result.lines

    def test_nonzero_exit_and_env(self, tmp_path):
        script = "import os, sys; print(os.environ['SHIKAMARU_TEST_VALUE']); sys.exit(3)"

        result = asyncio.run(
            AsyncCommandRunner().run(
                [sys.executable, "-c", script], env={"SHIKAMARU_TEST_VALUE": "42"}
            )
        )

        assert result.returncode == 3
        assert not result.ok
        assert result.output == "42"

    def test_cwd(self, tmp_path):
        script = "import os; print(os.getcwd())"

        result = asyncio.run(AsyncCommandRunner().run([sys.executable, "-c", script], cwd=tmp_path))

        assert Path(result.output).resolve() == tmp_path.resolve()

    def test_overlong_line_is_split_not_fatal(self):
        """A line past the stream buffer limit arrives in pieces, then reading goes on."""
        script = "print('x' * 200000); print('tail')"

        result = asyncio.run(AsyncCommandRunner().run([sys.executable, "-c", script]))

        assert result.ok
        assert result.lines[-1] == "tail"
        pieces = result.lines[:-1]
        assert len(pieces) > 1
        assert "".join(pieces) == "x" * 200000

    def test_missing_binary_raises(self):
        with pytest.raises(FileNotFoundError):
            asyncio.run(AsyncCommandRunner().run(["definitely-not-a-real-binary-xyz"]))

    @posix_only
    def test_spawned_handle_terminates(self):
        async def scenario():
            handle = await AsyncCommandRunner().spawn(
                [sys.executable, "-c", "import time; time.sleep(30)"]
            )
            assert handle.returncode is None
            handle.terminate()
            return await handle.wait()

        assert asyncio.run(scenario()) < 0


class TestPsutilProcessStopper:
    @posix_only
    def test_stops_process_tree(self):
        script = (
            "import subprocess, sys, time; "
            "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)']); "
            "time.sleep(30)"
        )
        parent = subprocess.Popen([sys.executable, "-c", script])
        try:
            stopped = asyncio.run(PsutilProcessStopper().stop_tree(parent.pid, grace_s=2.0))

            assert stopped is True
            assert parent.wait(timeout=5) is not None
        finally:
            if parent.poll() is None:
                parent.kill()

    def test_missing_process_returns_false(self):
        with patch(
            "shikamaru.services.orchestration.process_control.psutil.Process",
            side_effect=psutil.NoSuchProcess(999999),
        ):
            assert asyncio.run(PsutilProcessStopper().stop_tree(999999)) is False


class TestTerminalLaunchers:
    def test_xterm(self):
        argv = XtermLauncher().build_command(Path("/work/my app"), "npm start")

        assert argv[:4] == ["xterm", "-e", "bash", "-c"]
        assert argv[4] == "cd '/work/my app' && npm start; exec bash"

    def test_macos_escapes_quotes(self):
        argv = MacTerminalLauncher().build_command(Path("/work/web"), 'echo "hi"')

        assert argv[:2] == ["osascript", "-e"]
        assert 'do script "cd /work/web && echo \\"hi\\""' in argv[2]

    def test_windows(self):
        argv = WindowsTerminalLauncher().build_command(Path("C:/work/web"), "npm start")

        assert argv[:5] == ["cmd", "/c", "start", "cmd", "/k"]
        assert argv[5].endswith("&& npm start")


class TestComposeOutputParsers:
    def test_build_tracks_current_service(self):
        parser = BuildOutputParser()

        events = parser.parse("#5 building api")
        progress = parser.parse("Step 2/5 : RUN npm ci")

        assert events[0].kind is ComposeEventKind.BUILDING
        assert parser.current_service == "api"
        assert [e.kind for e in progress] == [ComposeEventKind.STEP, ComposeEventKind.PROGRESS]
        assert progress[1].detail == "Step 2/5 (40%)"

    def test_build_errors_and_warnings(self):
        parser = BuildOutputParser()

        assert parser.parse("ERROR: failed to solve")[0].kind is ComposeEventKind.ERROR
        assert parser.parse("WARNING: deprecated flag")[0].kind is ComposeEventKind.WARNING
        assert parser.parse("   ") == []

    @pytest.mark.parametrize(
        "line, kind, service",
        [
            (" Container redis  Created", ComposeEventKind.CREATED, "redis"),
            (" Container api  Started", ComposeEventKind.STARTED, "api"),
            ("Creating postgres ... done", ComposeEventKind.CREATED, "postgres"),
            ("rabbitmq is up-to-date", ComposeEventKind.UP_TO_DATE, "rabbitmq"),
        ],
    )
    def test_start_events(self, line, kind, service):
        (event,) = StartOutputParser().parse(line)

        assert event.kind is kind
        assert event.service == service

    def test_unrecognised_start_line(self):
        assert StartOutputParser().parse("Network devnet3  Creating") == []
