"""
Unit tests for LocalServiceStarter.

Covers startup command resolution, supervised vs terminal launches,
package script validation, output streaming and registry updates.
"""

import asyncio
from pathlib import Path

import pytest
from fakes import FakeCommandRunner, FakeHandle, FakeTerminal, RecordingPresenter

from shikamaru.core.models.options import OrchestrationOptions
from shikamaru.core.models.targets import (
    ExecutionMode,
    FrameworkInfo,
    FrameworkType,
    RepositoryTarget,
)
from shikamaru.services.orchestration.framework_detector import FrameworkDetector
from shikamaru.services.orchestration.managed_process import ProcessKind
from shikamaru.services.orchestration.registry import ProcessRegistry
from shikamaru.services.orchestration.starter import TERMINAL_MARKERS, LocalServiceStarter


def _target(path: Path, startup=None, mode=ExecutionMode.LOCAL) -> RepositoryTarget:
    return RepositoryTarget(name=path.name, path=path, mode=mode, startup_command=startup)


@pytest.fixture
def runner():
    return FakeCommandRunner()


@pytest.fixture
def registry():
    return ProcessRegistry()


@pytest.fixture
def presenter():
    return RecordingPresenter()


@pytest.fixture
def starter(runner, registry, presenter):
    return LocalServiceStarter(
        runner,
        registry,
        OrchestrationOptions(concurrency=2),
        FakeTerminal(),
        detector=FrameworkDetector(),
        presenter=presenter,
    )


class TestStartupCommandResolution:
    """Explicit > container sentinel > framework default > fallback."""

    @pytest.fixture
    def framework(self):
        return FrameworkInfo(
            type=FrameworkType.BACKEND, framework="Go", startup_command="go run ."
        )

    def test_explicit_command(self, tmp_path, framework):
        target = _target(tmp_path, startup="make serve")
        assert LocalServiceStarter.resolve_startup_command(target, framework) == "make serve"

    def test_container_sentinel(self, tmp_path, framework):
        target = _target(tmp_path, mode=ExecutionMode.CONTAINER)
        assert LocalServiceStarter.resolve_startup_command(target, framework) == "docker-compose up"

    def test_framework_default(self, tmp_path, framework):
        command = LocalServiceStarter.resolve_startup_command(_target(tmp_path), framework)
        assert command == "go run ."

    def test_fallback(self, tmp_path):
        command = LocalServiceStarter.resolve_startup_command(_target(tmp_path), None)
        assert command == "npm run start"


class TestSupervisedStart:
    """Non-frontend services run as supervised children."""

    def test_example_scenario(self, starter, runner, registry, make_repo):
        """api and web both start and are published under their names."""
        targets = [
            _target(make_repo("api"), startup="node server.js"),
            _target(make_repo("web"), startup="python -m http.server"),
        ]

        outcome = asyncio.run(starter.start(targets))

        assert outcome.processes == ["api", "web"]
        assert outcome.failed_services == []
        assert sorted(registry.names) == ["api", "web"]
        assert [call.argv for call in runner.spawned] == [
            ["node", "server.js"],
            ["python", "-m", "http.server"],
        ]
        assert all(call.capture and not call.detached for call in runner.spawned)

    def test_exited_process_leaves_registry(self, starter, runner, registry, make_repo):
        """A process that exits on its own removes its registry entry."""
        runner.on_spawn(["node"], lambda: FakeHandle(lines=["listening", "bye"], returncode=3))

        async def scenario():
            outcome = await starter.start([_target(make_repo("api"), startup="node a.js")])
            await starter.wait_watchers()
            return outcome

        outcome = asyncio.run(scenario())

        assert outcome.processes == ["api"]
        assert "api" not in registry

    def test_stream_contents(self, runner, registry, presenter, make_repo):
        runner.on_spawn(["node"], lambda: FakeHandle(lines=["ready on 3000"], hold=True))
        starter = LocalServiceStarter(
            runner, registry, OrchestrationOptions(), FakeTerminal(), presenter=presenter
        )

        async def scenario():
            await starter.start([_target(make_repo("api"), startup="node a.js")])
            process = registry.get("api")
            for _ in range(5):
                await asyncio.sleep(0)
            runner.handles[0].finish(0)
            await starter.wait_watchers()
            return process

        process = asyncio.run(scenario())

        assert process.kind is ProcessKind.SUPERVISED
        assert process.stream.history == ["ready on 3000", "[api] exited code=0 sig=None"]
        assert process.stream.closed

    def test_signal_exit_is_annotated(self, runner, registry, presenter, make_repo):
        starter = LocalServiceStarter(
            runner, registry, OrchestrationOptions(), FakeTerminal(), presenter=presenter
        )

        async def scenario():
            await starter.start([_target(make_repo("api"), startup="node a.js")])
            process = registry.get("api")
            runner.handles[0].terminate()
            await starter.wait_watchers()
            return process

        process = asyncio.run(scenario())

        assert process.stream.history[-1] == "[api] exited code=None sig=SIGTERM"

    def test_spawn_failure_lands_in_failed_services(
        self, starter, runner, registry, presenter, make_repo
    ):
        runner.on_spawn(
            ["missing-binary"], lambda: FileNotFoundError(2, "No such file", "missing-binary")
        )
        targets = [
            _target(make_repo("api"), startup="missing-binary --serve"),
            _target(make_repo("web"), startup="node web.js"),
        ]

        outcome = asyncio.run(starter.start(targets))

        assert outcome.processes == ["web"]
        assert outcome.failed_services == ["api"]
        assert registry.names == ["web"]
        error = presenter.of("print_error")[0][0]
        assert error == (
            "Startup failed for api: Command not found for api: missing-binary "
            "[command-not-found]"
        )


class GatedRunner(FakeCommandRunner):
    """Spawns of ``slow`` block until the gate opens."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()

    async def spawn(self, argv, **kwargs):
        if argv[0] == "slow":
            await self.gate.wait()
        return await super().spawn(argv, **kwargs)


class TestInterruptedBatch:
    """Processes launched before a batch is cut short stay visible to shutdown."""

    def test_cancelled_start_keeps_launched_processes(self, registry, presenter, make_repo):
        runner = GatedRunner()
        starter = LocalServiceStarter(
            runner,
            registry,
            OrchestrationOptions(concurrency=2),
            FakeTerminal(),
            presenter=presenter,
        )
        targets = [
            _target(make_repo("api"), startup="node a.js"),
            _target(make_repo("web"), startup="slow start"),
        ]

        async def scenario():
            task = asyncio.ensure_future(starter.start(targets))
            for _ in range(10):
                await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return registry.names

        names = asyncio.run(scenario())

        assert names == ["api"]
        assert runner.handles[0].returncode is None

    def test_timed_out_item_is_published_when_it_launches(
        self, registry, presenter, make_repo
    ):
        runner = GatedRunner()
        starter = LocalServiceStarter(
            runner,
            registry,
            OrchestrationOptions(timeout_ms=10),
            FakeTerminal(),
            presenter=presenter,
        )

        async def scenario():
            outcome = await starter.start([_target(make_repo("api"), startup="slow start")])
            before = registry.names
            runner.gate.set()
            for _ in range(10):
                await asyncio.sleep(0)
            return outcome, before, registry.names

        outcome, before, after = asyncio.run(scenario())

        assert outcome.failed_services == ["api"]
        assert before == []
        assert after == ["api"]


class TestPackageScriptValidation:
    """npm/yarn/pnpm run <script> must name a script that exists."""

    def test_missing_script_fails_before_spawn(self, starter, runner, presenter, make_repo):
        repo = make_repo("api", {"package.json": {"scripts": {"start": "node ."}}})

        outcome = asyncio.run(starter.start([_target(repo, startup="npm run dev")]))

        assert outcome.failed_services == ["api"]
        assert runner.spawned == []
        assert presenter.of("print_error")[0][0] == (
            'Startup failed for api: Script "dev" not found in package.json for api [configuration]'
        )

    def test_invalid_package_json(self, starter, runner, presenter, make_repo):
        repo = make_repo("api", {"package.json": "{not json"})

        outcome = asyncio.run(starter.start([_target(repo, startup="yarn run start")]))

        assert outcome.failed_services == ["api"]
        assert "Invalid package.json in api" in presenter.of("print_error")[0][0]

    def test_existing_script_spawns(self, starter, runner, make_repo):
        repo = make_repo("api", {"package.json": {"scripts": {"dev": "nodemon"}}})

        outcome = asyncio.run(starter.start([_target(repo, startup="npm run dev")]))

        assert outcome.processes == ["api"]
        assert runner.spawned[0].argv == ["npm", "run", "dev"]


class TestTerminalStart:
    """Frontend services open in a detached terminal window."""

    def test_frontend_launches_in_terminal(self, starter, runner, registry, make_repo):
        package = {"dependencies": {"react": "^18"}, "scripts": {"start": "react-scripts start"}}
        repo = make_repo("web", {"package.json": package})

        outcome = asyncio.run(starter.start([_target(repo)]))

        assert outcome.processes == ["web"]
        call = runner.spawned[0]
        assert call.argv == ["term", str(repo), "npm run start"]
        assert call.detached
        assert not call.capture

        process = registry.get("web")
        assert process.kind is ProcessKind.TERMINAL
        assert process.stream.history == list(TERMINAL_MARKERS)

    def test_backend_node_is_supervised(self, starter, runner, make_repo):
        package = {"dependencies": {"express": "4"}, "scripts": {"start": "node ."}}
        repo = make_repo("api", {"package.json": package})

        asyncio.run(starter.start([_target(repo)]))

        assert runner.spawned[0].argv == ["npm", "run", "start"]
        assert not runner.spawned[0].detached
