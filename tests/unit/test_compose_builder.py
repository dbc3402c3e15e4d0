"""
Unit tests for ContainerStackBuilder.

Manifest synthesis: infra services, app build services, port sources,
the health-gated dependency graph and the written YAML.
"""

import pytest
import yaml

from shikamaru.core.exceptions import ComposeGenerationError
from shikamaru.core.models.compose import InfraServiceType
from shikamaru.core.models.options import ContainerOptions, EnvironmentResolution
from shikamaru.core.models.targets import ExecutionMode, PortAssignment, RepositoryTarget
from shikamaru.services.orchestration.compose_builder import (
    ContainerStackBuilder,
    read_manifest_services,
    slugify,
)


def _container(path, name=None) -> RepositoryTarget:
    return RepositoryTarget(name=name or path.name, path=path, mode=ExecutionMode.CONTAINER)


@pytest.fixture
def options(tmp_path):
    return ContainerOptions(manifest_path=tmp_path / "out" / "docker-compose.yml")


@pytest.fixture
def builder(options):
    return ContainerStackBuilder(options)


class TestSlugify:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("api", "api"),
            ("My_Service", "my-service"),
            ("billing.api v2", "billing-api-v2"),
            ("--edge--", "edge"),
        ],
    )
    def test_slugify(self, name, expected):
        assert slugify(name) == expected


class TestBuildSpecs:
    """Only container-mode repos with a Dockerfile become build services."""

    def test_local_and_dockerless_repos_are_skipped(self, builder, make_repo):
        local = RepositoryTarget(
            name="web", path=make_repo("web", {"Dockerfile": "FROM node"}),
            mode=ExecutionMode.LOCAL,
        )
        dockerless = _container(make_repo("worker"))
        built = _container(make_repo("api", {"Dockerfile": "FROM node\nEXPOSE 3000\n"}))

        specs = builder.detect_build_specs([local, dockerless, built], {})

        assert [s.name for s in specs] == ["api"]
        assert specs[0].build.context == str(built.path)
        assert specs[0].build.dockerfile == "Dockerfile"

    def test_mapped_ports_take_precedence(self, builder, make_repo):
        target = _container(make_repo("api", {"Dockerfile": "EXPOSE 3000\n"}))
        ports = {"api": PortAssignment(host=4001, internal=3000)}

        specs = builder.detect_build_specs([target], ports)

        assert specs[0].ports == ["4001:3000"]

    def test_expose_lines_are_mapped_port_for_port(self, builder, make_repo):
        dockerfile = "FROM python:3.12\nEXPOSE 8000\n  EXPOSE 9090\n# EXPOSE 1\n"
        target = _container(make_repo("api", {"Dockerfile": dockerfile}))

        specs = builder.detect_build_specs([target], {})

        assert specs[0].ports == ["8000:8000", "9090:9090"]

    def test_service_name_is_slugified(self, builder, make_repo):
        target = _container(make_repo("Billing_API", {"Dockerfile": "FROM x"}))

        specs = builder.detect_build_specs([target], {})

        assert specs[0].name == "billing-api"
        assert specs[0].repo == "Billing_API"


class TestManifest:
    """build_manifest assembles infra and app services."""

    def test_cache_queue_and_one_app(self, builder, make_repo):
        """redis + rabbitmq + api: api waits for both to be healthy."""
        target = _container(make_repo("api", {"Dockerfile": "EXPOSE 3000"}))
        infra = [InfraServiceType.REDIS, InfraServiceType.RABBITMQ]
        specs = builder.detect_build_specs([target], {}, infra)

        manifest = builder.build_manifest(specs, infra)

        assert manifest.service_names == ["redis", "rabbitmq", "api"]
        api = manifest.services["api"]
        assert set(api.depends_on) == {"redis", "rabbitmq"}
        assert all(c.condition == "service_healthy" for c in api.depends_on.values())
        assert api.networks == ["devnet3"]
        assert manifest.networks == {"devnet3": {"driver": "bridge"}}
        assert set(manifest.volumes) == {"redisdata", "rabbitmqdata"}

    def test_infra_services_have_healthchecks(self, builder):
        infra = list(InfraServiceType)

        manifest = builder.build_manifest([], infra)

        assert sorted(manifest.service_names) == ["postgres", "rabbitmq", "redis", "timescaledb"]
        for service in manifest.services.values():
            assert service.has_healthcheck
            assert service.image
            assert service.depends_on is None

    def test_duplicate_infra_is_collapsed(self, builder):
        manifest = builder.build_manifest([], [InfraServiceType.REDIS, InfraServiceType.REDIS])

        assert manifest.service_names == ["redis"]

    def test_app_without_infra_has_no_depends_on(self, builder, make_repo):
        target = _container(make_repo("api", {"Dockerfile": "EXPOSE 3000"}))

        manifest = builder.build_manifest(builder.detect_build_specs([target], {}), [])

        assert manifest.services["api"].depends_on is None


class TestGenerate:
    """generate writes the manifest or reports there is nothing to do."""

    def test_nothing_to_containerize(self, builder, options, make_repo):
        target = RepositoryTarget(name="api", path=make_repo("api"), mode=ExecutionMode.LOCAL)

        assert builder.generate([target], EnvironmentResolution()) is None
        assert not options.manifest_path.exists()

    def test_writes_yaml(self, builder, options, make_repo):
        target = _container(make_repo("api", {"Dockerfile": "EXPOSE 3000"}))
        resolution = EnvironmentResolution(infra=[InfraServiceType.POSTGRES])

        manifest = builder.generate([target], resolution)

        assert manifest is not None
        data = yaml.safe_load(options.manifest_path.read_text())
        assert list(data["services"]) == ["postgres", "api"]
        assert data["services"]["api"]["depends_on"] == {
            "postgres": {"condition": "service_healthy"}
        }
        assert data["services"]["api"]["build"] == {
            "context": str(target.path),
            "dockerfile": "Dockerfile",
        }
        assert "image" not in data["services"]["api"]
        assert data["services"]["postgres"]["healthcheck"]["test"][0] == "CMD-SHELL"
        assert read_manifest_services(options.manifest_path) == ["postgres", "api"]

    def test_regenerating_replaces_the_file(self, builder, options, make_repo):
        builder.generate([], EnvironmentResolution(infra=[InfraServiceType.REDIS]))
        builder.generate([], EnvironmentResolution(infra=[InfraServiceType.RABBITMQ]))

        assert read_manifest_services(options.manifest_path) == ["rabbitmq"]

    def test_write_failure_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        builder = ContainerStackBuilder(ContainerOptions(manifest_path=blocker / "compose.yml"))

        with pytest.raises(ComposeGenerationError, match="Failed to write compose manifest"):
            builder.generate([], EnvironmentResolution(infra=[InfraServiceType.REDIS]))


class TestReadManifestServices:
    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "compose.yml"
        path.write_text("services: [unclosed")

        with pytest.raises(ComposeGenerationError):
            read_manifest_services(path)

    def test_missing_services_key(self, tmp_path):
        path = tmp_path / "compose.yml"
        path.write_text("networks: {}\n")

        assert read_manifest_services(path) == []
