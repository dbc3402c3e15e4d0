"""
Unit tests for ShutdownCoordinator.

Both phases are best-effort: local process failures and compose teardown
failures end up in the StopReport instead of being raised.
"""

import asyncio

import pytest
import yaml
from fakes import FakeClock, FakeCommandRunner, FakeHandle, FakeStopper

from shikamaru.core.models.options import ContainerOptions
from shikamaru.core.models.outcomes import StopKind
from shikamaru.services.orchestration.compose_runner import ContainerStackRunner
from shikamaru.services.orchestration.managed_process import ManagedProcess, ProcessKind
from shikamaru.services.orchestration.registry import ProcessRegistry
from shikamaru.services.orchestration.shutdown import ShutdownCoordinator, stop_kind
from shikamaru.services.orchestration.streams import OutputStream


def _process(name: str, pid: int, kind: ProcessKind = ProcessKind.SUPERVISED) -> ManagedProcess:
    return ManagedProcess(
        name=name, stream=OutputStream(name), handle=FakeHandle(hold=True, pid=pid), kind=kind
    )


def _write_manifest(options: ContainerOptions, *services: str) -> None:
    options.manifest_path.write_text(
        yaml.safe_dump({"services": {name: {"image": "x"} for name in services}})
    )


@pytest.fixture
def options(tmp_path):
    return ContainerOptions(manifest_path=tmp_path / "docker-compose.yml")


@pytest.fixture
def runner():
    return FakeCommandRunner()


@pytest.fixture
def registry():
    return ProcessRegistry()


def _coordinator(registry, runner, options, stopper=None):
    stack = ContainerStackRunner(runner, registry, options)
    return ShutdownCoordinator(
        registry, stopper or FakeStopper(), stack, options, clock=FakeClock()
    )


class TestStopKind:
    @pytest.mark.parametrize(
        "name, kind",
        [
            ("redis", StopKind.INFRA_DOCKER),
            ("postgres", StopKind.INFRA_DOCKER),
            ("api", StopKind.PLANNED_DOCKER),
        ],
    )
    def test_stop_kind(self, name, kind):
        assert stop_kind(name) is kind


class TestShutdown:
    """Full shutdown across local processes and the container stack."""

    def test_local_processes_and_stack(self, registry, runner, options):
        """Two local processes plus a manifest with two services."""
        registry.publish([_process("api", 201), _process("web", 202, ProcessKind.TERMINAL)])
        _write_manifest(options, "redis", "billing")
        stopper = FakeStopper()

        report = asyncio.run(_coordinator(registry, runner, options, stopper).shutdown())

        assert report.success
        assert report.stopped_services == 2
        assert report.stopped_processes == 2
        assert sorted(stopper.stopped) == [201, 202]
        assert [(r.name, r.kind, r.stopped) for r in report.docker.stopped] == [
            ("redis", StopKind.INFRA_DOCKER, True),
            ("billing", StopKind.PLANNED_DOCKER, True),
        ]
        assert report.docker.errors == []
        assert len(registry) == 0
        assert runner.calls == [options.compose("down")]

    def test_no_manifest_skips_stack(self, registry, runner, options):
        registry.publish([_process("api", 301)])

        report = asyncio.run(_coordinator(registry, runner, options).shutdown())

        assert report.success
        assert report.stopped_processes == 1
        assert report.docker.stopped == []
        assert runner.calls == []

    def test_nothing_running(self, registry, runner, options):
        report = asyncio.run(_coordinator(registry, runner, options).shutdown())

        assert report.success
        assert report.stopped_services == 0
        assert report.message == "All services stopped successfully"

    def test_container_names_are_left_to_the_stack(self, registry, runner, options):
        """Registry entries owned by the stack are not signalled directly."""
        registry.publish(
            [
                _process("api", 401),
                _process("billing", 402),
                _process("redis", 403, ProcessKind.CONTAINER_LOGS),
            ]
        )
        stopper = FakeStopper()

        report = asyncio.run(
            _coordinator(registry, runner, options, stopper).shutdown({"billing"})
        )

        assert stopper.stopped == [401]
        assert report.stopped_processes == 1
        assert report.stopped_services == 3
        assert len(registry) == 0

    def test_compose_down_failure_is_recorded(self, registry, runner, options):
        _write_manifest(options, "postgres", "api")
        runner.on_run(options.compose("down"), (1, "Cannot connect to the Docker daemon"))

        report = asyncio.run(_coordinator(registry, runner, options).shutdown())

        assert not report.success
        assert report.error_count == 1
        error = report.docker.errors[0]
        assert error.name == "docker-compose"
        assert error.kind is StopKind.PLANNED_DOCKER
        assert "Compose down failed with code 1" in error.error
        assert [r.name for r in report.docker.skipped] == ["postgres", "api"]
        assert report.docker.stopped == []
        assert report.message == "Stopped with some errors"

    def test_local_stop_failure_does_not_block_stack(self, registry, runner, options):
        registry.publish([_process("api", 501), _process("web", 502)])
        _write_manifest(options, "redis")
        stopper = FakeStopper(failing={501: PermissionError("Operation not permitted")})

        report = asyncio.run(_coordinator(registry, runner, options, stopper).shutdown())

        assert not report.success
        assert report.local_error == "api: Operation not permitted"
        assert stopper.stopped == [502]
        assert [r.name for r in report.docker.stopped] == ["redis"]
        assert len(registry) == 0

    def test_unreadable_manifest_is_recorded(self, registry, runner, options):
        options.manifest_path.write_text("services: [unclosed")

        report = asyncio.run(_coordinator(registry, runner, options).shutdown())

        assert report.error_count == 1
        assert "Failed to read compose manifest" in report.docker.errors[0].error
        assert runner.calls == []
