"""Unit tests for bootstrap, the service container and logging."""

import pytest

from shikamaru.core.bootstrap import bootstrap, is_initialized, reset
from shikamaru.core.container import get_container
from shikamaru.core.di import resolve_or_default
from shikamaru.core.interfaces.framework import IFrameworkDetector
from shikamaru.core.interfaces.logger import ILogger
from shikamaru.core.interfaces.presenter import IPresenter
from shikamaru.core.interfaces.process import ICommandRunner, IProcessStopper
from shikamaru.core.models.options import ContainerOptions
from shikamaru.core.settings import load_settings
from shikamaru.presenters import ConsolePresenter
from shikamaru.services.logging import NullLogger, ShikamaruLogger
from shikamaru.services.orchestration.compose_runner import ContainerStackRunner
from shikamaru.services.orchestration.framework_detector import FrameworkDetector
from shikamaru.services.orchestration.process_control import PsutilProcessStopper
from shikamaru.services.orchestration.registry import ProcessRegistry
from shikamaru.services.orchestration.runner import AsyncCommandRunner
from shikamaru.services.orchestration.terminal import (
    MacTerminalLauncher,
    WindowsTerminalLauncher,
    XtermLauncher,
)


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setenv("SHIKAMARU_LOGGING__FILE", "false")
    return load_settings(start_dir=str(tmp_path))


class TestBootstrap:
    def test_registers_default_services(self, settings):
        container = bootstrap(settings)

        assert is_initialized()
        assert isinstance(container.resolve(IPresenter), ConsolePresenter)
        assert isinstance(container.resolve(ILogger), ShikamaruLogger)
        assert isinstance(container.resolve(ICommandRunner), AsyncCommandRunner)
        assert isinstance(container.resolve(IProcessStopper), PsutilProcessStopper)
        assert isinstance(container.resolve(IFrameworkDetector), FrameworkDetector)

    def test_is_idempotent(self, settings):
        first = bootstrap(settings)
        logger = first.resolve(ILogger)

        assert bootstrap(settings) is first
        assert first.resolve(ILogger) is logger

    def test_reset(self, settings):
        bootstrap(settings)

        reset()

        assert not is_initialized()
        assert get_container().try_resolve(ILogger) is None

    @pytest.mark.parametrize(
        "platform, launcher",
        [
            ("darwin", MacTerminalLauncher),
            ("win32", WindowsTerminalLauncher),
            ("linux", XtermLauncher),
            ("freebsd13", XtermLauncher),
        ],
    )
    def test_terminal_launcher_per_platform(self, settings, platform, launcher):
        container = bootstrap(settings)

        assert isinstance(container.get_terminal_launcher(platform), launcher)

    def test_collaborators_share_the_container_logger(self, settings):
        container = bootstrap(settings)
        logger = container.resolve(ILogger)

        assert container.resolve(IProcessStopper).logger is logger
        assert container.resolve(IFrameworkDetector).logger is logger

    def test_services_never_reach_into_the_container(self, settings, tmp_path):
        """Without an injected logger a service logs nowhere, bootstrapped or not."""
        bootstrap(settings)

        options = ContainerOptions(manifest_path=tmp_path / "stack.yml")
        stack = ContainerStackRunner(AsyncCommandRunner(), ProcessRegistry(), options)

        assert isinstance(stack.logger, NullLogger)
        assert isinstance(FrameworkDetector().logger, NullLogger)


class TestResolveOrDefault:
    def test_default_without_bootstrap(self):
        assert isinstance(resolve_or_default(ILogger, NullLogger), NullLogger)

    def test_registered_instance_wins(self, settings):
        bootstrap(settings)

        assert isinstance(resolve_or_default(ILogger, NullLogger), ShikamaruLogger)


class TestShikamaruLogger:
    def test_writes_to_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "shikamaru.log"
        logger = ShikamaruLogger(name="shikamaru.test", level="info", log_file=log_file)

        logger.info("Started %s", "api")
        logger.debug("hidden")

        text = log_file.read_text()
        assert "[INFO] shikamaru.test: Started api" in text
        assert "hidden" not in text

    def test_set_level(self, tmp_path):
        log_file = tmp_path / "shikamaru.log"
        logger = ShikamaruLogger(name="shikamaru.level", level="error", log_file=log_file)

        logger.warning("dropped")
        logger.set_level("debug")
        logger.debug("kept")

        text = log_file.read_text()
        assert "dropped" not in text
        assert "kept" in text
