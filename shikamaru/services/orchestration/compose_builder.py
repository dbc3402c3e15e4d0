"""
Container stack builder.

Synthesizes one compose manifest covering the required infrastructure
services plus a build service per container-mode repository that has a
Dockerfile. Every application service waits for every infra service in the
manifest to report healthy.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from pathlib import Path

import yaml

from ...core.exceptions import ComposeGenerationError
from ...core.interfaces.logger import ILogger
from ...core.models.compose import (
    BuildSpec,
    ComposeManifest,
    ComposeService,
    ContainerServiceSpec,
    DependencyCondition,
    Healthcheck,
    InfraServiceType,
)
from ...core.models.options import ContainerOptions, EnvironmentResolution
from ...core.models.targets import PortAssignment, RepositoryTarget

DOCKERFILE = "Dockerfile"

_SLUG_RE = re.compile(r"[^a-z0-9]+")
_EXPOSE_RE = re.compile(r"^EXPOSE\s+(\d+)")


def slugify(name: str) -> str:
    """Compose-safe service name: lower-case, non-alphanumerics collapsed to '-'."""
    return _SLUG_RE.sub("-", name.lower()).strip("-")


def _redis(network: str) -> ComposeService:
    return ComposeService(
        image="redis/redis-stack-server:latest",
        container_name="redis",
        ports=["${REDIS_PORT:-6379}:6379"],
        volumes=["redisdata:/data"],
        healthcheck=Healthcheck(test=["CMD", "redis-cli", "ping"]),
        networks=[network],
    )


def _rabbitmq(network: str) -> ComposeService:
    return ComposeService(
        image="rabbitmq:3-management-alpine",
        container_name="rabbitmq",
        environment={
            "RABBITMQ_DEFAULT_USER": "${RABBITMQ_USERNAME:-guest}",
            "RABBITMQ_DEFAULT_PASS": "${RABBITMQ_PASSWORD:-guest}",
        },
        ports=[
            "${RABBITMQ_PORT:-5672}:5672",
            "${RABBITMQ_MANAGEMENT_PORT:-15672}:15672",
        ],
        volumes=["rabbitmqdata:/var/lib/rabbitmq"],
        healthcheck=Healthcheck(
            test=["CMD-SHELL", "rabbitmq-diagnostics -q ping"],
            start_period="30s",
        ),
        networks=[network],
    )


def _postgres(network: str) -> ComposeService:
    return ComposeService(
        image="postgres:15-alpine",
        container_name="postgres",
        environment={
            "POSTGRES_USER": "${POSTGRES_USERNAME:-default_user}",
            "POSTGRES_PASSWORD": "${POSTGRES_PASSWORD:-default_password}",
            "POSTGRES_DB": "${POSTGRES_DATABASE:-default_db}",
        },
        ports=["${POSTGRES_PORT:-5432}:5432"],
        volumes=["pgdata:/var/lib/postgresql/data"],
        healthcheck=Healthcheck(
            test=["CMD-SHELL", "pg_isready -U ${POSTGRES_USERNAME:-default_user}"],
            start_period="30s",
        ),
        networks=[network],
    )


def _timescaledb(network: str) -> ComposeService:
    return ComposeService(
        image="timescale/timescaledb-ha:pg15-latest",
        container_name="timescaledb",
        environment={
            "POSTGRES_USER": "${POSTGRES_TIMESCALE_USERNAME:-default_user}",
            "POSTGRES_PASSWORD": "${POSTGRES_TIMESCALE_PASSWORD:-default_password}",
            "POSTGRES_DB": "${POSTGRES_TIMESCALE_DATABASE:-default_timescale_db}",
        },
        ports=["${POSTGRES_TIMESCALE_PORT:-5433}:5432"],
        volumes=["tsdata:/var/lib/postgresql/data"],
        healthcheck=Healthcheck(
            test=["CMD-SHELL", "pg_isready -U ${POSTGRES_TIMESCALE_USERNAME:-default_user}"],
            start_period="30s",
        ),
        networks=[network],
    )


# Canonical spec factory and named volume per infra type.
INFRA_SPECS: dict[InfraServiceType, tuple[Callable[[str], ComposeService], str]] = {
    InfraServiceType.REDIS: (_redis, "redisdata"),
    InfraServiceType.RABBITMQ: (_rabbitmq, "rabbitmqdata"),
    InfraServiceType.POSTGRES: (_postgres, "pgdata"),
    InfraServiceType.TIMESCALEDB: (_timescaledb, "tsdata"),
}


class ContainerStackBuilder:
    """Builds and writes the compose manifest for one run."""

    def __init__(self, options: ContainerOptions, logger: ILogger | None = None) -> None:
        self._options = options
        self._logger = logger

    @property
    def logger(self) -> ILogger:
        if self._logger is None:
            from ..logging import NullLogger

            self._logger = NullLogger()
        return self._logger

    @property
    def manifest_path(self) -> Path:
        return self._options.manifest_path

    def detect_build_specs(
        self,
        targets: list[RepositoryTarget],
        ports: dict[str, PortAssignment],
        infra: list[InfraServiceType] | None = None,
    ) -> list[ContainerServiceSpec]:
        """
        One build spec per container-mode target that has a Dockerfile.

        Port mappings come from ``ports`` (keyed by slug or repo name); when a
        repo has none, its Dockerfile EXPOSE lines are mapped port-for-port.
        """
        specs = []
        depends_on = [kind.value for kind in infra or []]
        for target in targets:
            if not target.is_container:
                continue
            dockerfile = target.path / DOCKERFILE
            if not dockerfile.exists():
                self.logger.warning(
                    "Repository %s configured for containers but no Dockerfile found",
                    target.name,
                )
                continue

            name = slugify(target.name)
            assignment = ports.get(name) or ports.get(target.name)
            if assignment is not None:
                mapped = [assignment.as_compose_mapping()]
                self.logger.info("Using mapped ports for %s: %s", name, mapped[0])
            else:
                mapped = self.dockerfile_ports(dockerfile)
                self.logger.info("Using Dockerfile ports for %s: %s", name, ", ".join(mapped))

            specs.append(
                ContainerServiceSpec(
                    name=name,
                    repo=target.name,
                    build=BuildSpec(context=str(target.path), dockerfile=DOCKERFILE),
                    ports=mapped,
                    depends_on=depends_on,
                    networks=[self._options.network],
                )
            )
        return specs

    def dockerfile_ports(self, dockerfile: Path) -> list[str]:
        """``port:port`` mappings for each EXPOSE line."""
        try:
            content = dockerfile.read_text(encoding="utf-8")
        except OSError as e:
            self.logger.warning("Could not read Dockerfile at %s: %s", dockerfile, e)
            return []
        ports = []
        for line in content.splitlines():
            match = _EXPOSE_RE.match(line.strip())
            if match:
                ports.append(f"{match.group(1)}:{match.group(1)}")
        return ports

    def build_manifest(
        self,
        specs: list[ContainerServiceSpec],
        infra: list[InfraServiceType],
    ) -> ComposeManifest:
        """Assemble infra services, app services and the health-gated graph."""
        network = self._options.network
        manifest = ComposeManifest(networks={network: {"driver": "bridge"}})

        for kind in dict.fromkeys(infra):
            factory, volume = INFRA_SPECS[kind]
            manifest.services[kind.value] = factory(network)
            manifest.volumes[volume] = {}

        infra_names = [kind.value for kind in dict.fromkeys(infra)]
        for spec in specs:
            gated = [
                name
                for name in dict.fromkeys([*spec.depends_on, *infra_names])
                if name in manifest.services and name != spec.name
            ]
            manifest.services[spec.name] = ComposeService(
                build=spec.build,
                ports=spec.ports or None,
                environment=spec.environment or None,
                depends_on={name: DependencyCondition() for name in gated} or None,
                networks=spec.networks or [network],
                volumes=spec.volumes or None,
            )
        return manifest

    def write_manifest(self, manifest: ComposeManifest) -> Path:
        """
        Serialize the manifest to the configured path, replacing any prior one.

        Raises:
            ComposeGenerationError: If the file cannot be written
        """
        path = self._options.manifest_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                yaml.safe_dump(manifest.to_compose_dict(), f, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            raise ComposeGenerationError(
                f"Failed to write compose manifest: {e}",
                manifest_path=str(path),
                cause=e,
            ) from e
        self.logger.info(
            "Wrote compose manifest %s with services: %s",
            path,
            ", ".join(manifest.service_names),
        )
        return path

    def generate(
        self,
        targets: list[RepositoryTarget],
        resolution: EnvironmentResolution,
    ) -> ComposeManifest | None:
        """
        Detect, assemble and write the manifest.

        Returns:
            The written manifest, or None when there is nothing to containerize
        """
        specs = self.detect_build_specs(targets, resolution.ports, resolution.infra)
        if not specs and not resolution.infra:
            self.logger.info("No container services or infrastructure required")
            return None
        manifest = self.build_manifest(specs, resolution.infra)
        self.write_manifest(manifest)
        return manifest


def read_manifest_services(path: Path) -> list[str]:
    """
    Service names declared by an existing manifest file.

    Raises:
        ComposeGenerationError: If the file cannot be read or parsed
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ComposeGenerationError(
            f"Failed to read compose manifest: {e}",
            manifest_path=str(path),
            cause=e,
        ) from e
    services = data.get("services") if isinstance(data, dict) else None
    return list(services) if isinstance(services, dict) else []
