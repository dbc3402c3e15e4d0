"""Unit tests for ConsolePresenter summaries."""

import io

import pytest

from shikamaru.core.models.outcomes import (
    DockerStopReport,
    HealthRecord,
    HealthStatus,
    InstallOutcome,
    OrchestrationResult,
    StartOutcome,
    StopError,
    StopKind,
    StopRecord,
    StopReport,
)
from shikamaru.presenters import ConsolePresenter, format_duration


@pytest.fixture
def out():
    return io.StringIO()


@pytest.fixture
def presenter(out):
    return ConsolePresenter(use_color=False, file=out)


class TestFormatDuration:
    @pytest.mark.parametrize(
        "ms, expected",
        [(None, "?"), (250, "250ms"), (1500, "1.5s"), (90_000, "1.5m")],
    )
    def test_format_duration(self, ms, expected):
        assert format_duration(ms) == expected


class TestPrintResult:
    def test_all_running(self, presenter, out):
        result = OrchestrationResult(
            install=InstallOutcome(ready_services=["api"]),
            start=StartOutcome(processes=["api"]),
            infra_services=["redis"],
            container_services=["billing"],
            health_records=[
                HealthRecord(service="redis", status=HealthStatus.HEALTHY, duration_ms=1200),
                HealthRecord(service="billing", status=HealthStatus.HEALTHY, duration_ms=3400),
            ],
        )

        presenter.print_result(result)

        text = out.getvalue()
        assert "NAME" in text and "KIND" in text
        assert "redis" in text and "infra" in text
        assert "3.4s" in text
        assert "All 2 services running" in text

    def test_failures_are_reported(self, presenter, out, capsys):
        result = OrchestrationResult(
            install=InstallOutcome(install_failures=["api"]),
            warnings=["Skipped local startup because installs failed: api"],
            errors=["Container build failed with code 1"],
        )

        presenter.print_result(result)

        text = out.getvalue()
        assert "install failed" in text
        assert "0 services running" in text
        err = capsys.readouterr().err
        assert "Warning: Skipped local startup because installs failed: api" in err
        assert "Error: Container build failed with code 1" in err

    def test_nothing_started(self, presenter, out):
        presenter.print_result(OrchestrationResult())

        assert "No services started." in out.getvalue()


class TestPrintStopReport:
    def test_success(self, presenter, out):
        report = StopReport(
            stopped_services=2,
            stopped_processes=2,
            docker=DockerStopReport(
                stopped=[
                    StopRecord(name="redis", kind=StopKind.INFRA_DOCKER, stopped=True),
                ]
            ),
            duration_ms=850,
        )

        presenter.print_stop_report(report)

        text = out.getvalue()
        assert "infra-docker" in text
        assert "Stopped 2 local processes in 850ms" in text
        assert "All services stopped successfully" in text

    def test_errors(self, presenter, out, capsys):
        report = StopReport(
            stopped_services=0,
            stopped_processes=0,
            docker=DockerStopReport(
                errors=[
                    StopError(
                        name="docker-compose", kind=StopKind.PLANNED_DOCKER, error="daemon down"
                    )
                ]
            ),
            duration_ms=10,
        )

        presenter.print_stop_report(report)

        err = capsys.readouterr().err
        assert "Error: docker-compose: daemon down" in err
        assert "Warning: Stopped with some errors" in err


class TestPrintSuggestions:
    def test_lists_each_suggestion(self, presenter, out):
        presenter.print_suggestions("api", ["Check package.json syntax", "Run npm install"])

        text = out.getvalue()
        assert "Suggestions for api" in text
        assert "  - Run npm install" in text

    def test_empty_prints_nothing(self, presenter, out):
        presenter.print_suggestions("api", [])

        assert out.getvalue() == ""
