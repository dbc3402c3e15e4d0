"""
Container stack models.

Describes application build services, infrastructure service types and the
Docker Compose manifest synthesized from them.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any

from pydantic import Field

from .base import ImmutableModel, ShikamaruBaseModel


class ServiceFamily(str, Enum):
    """Infrastructure service families."""

    DATA_STORE = "data-store"
    TIME_SERIES = "time-series"
    CACHE = "cache"
    QUEUE = "queue"


class InfraServiceType(str, Enum):
    """Infrastructure services that can be provisioned in the stack."""

    POSTGRES = "postgres"
    TIMESCALEDB = "timescaledb"
    REDIS = "redis"
    RABBITMQ = "rabbitmq"

    @property
    def family(self) -> ServiceFamily:
        return _FAMILIES[self]

    @classmethod
    def from_identifier(cls, identifier: str) -> InfraServiceType:
        """Parse a service name or a family alias (``cache`` -> ``redis``).

        Raises:
            ValueError: If the identifier names no known infra service
        """
        key = identifier.strip().lower()
        for member in cls:
            if member.value == key:
                return member
        for member, family in _FAMILIES.items():
            if family.value == key:
                return member
        raise ValueError(f"Unknown infrastructure service: {identifier!r}")


_FAMILIES: dict[InfraServiceType, ServiceFamily] = {
    InfraServiceType.POSTGRES: ServiceFamily.DATA_STORE,
    InfraServiceType.TIMESCALEDB: ServiceFamily.TIME_SERIES,
    InfraServiceType.REDIS: ServiceFamily.CACHE,
    InfraServiceType.RABBITMQ: ServiceFamily.QUEUE,
}


class BuildSpec(ImmutableModel):
    """Build context for an application image."""

    context: str
    dockerfile: str = "Dockerfile"


class ContainerServiceSpec(ImmutableModel):
    """An application repository to be built and run inside the stack."""

    name: Annotated[str, Field(min_length=1)]
    repo: str
    build: BuildSpec
    ports: list[str] = Field(default_factory=list)
    environment: dict[str, str] = Field(default_factory=dict)
    depends_on: list[str] = Field(default_factory=list)
    networks: list[str] = Field(default_factory=list)
    volumes: list[str] = Field(default_factory=list)


class Healthcheck(ImmutableModel):
    """Compose healthcheck block."""

    test: list[str]
    interval: str = "10s"
    timeout: str = "5s"
    retries: int = 5
    start_period: str = "10s"


class DependencyCondition(ImmutableModel):
    """Compose ``depends_on`` entry."""

    condition: str = "service_healthy"


class ComposeService(ShikamaruBaseModel):
    """One service entry of the compose manifest."""

    image: str | None = None
    build: BuildSpec | None = None
    container_name: str | None = None
    restart: str | None = "unless-stopped"
    environment: dict[str, str] | None = None
    ports: list[str] | None = None
    volumes: list[str] | None = None
    healthcheck: Healthcheck | None = None
    depends_on: dict[str, DependencyCondition] | None = None
    networks: list[str] | None = None

    @property
    def has_healthcheck(self) -> bool:
        return self.healthcheck is not None


class ComposeManifest(ShikamaruBaseModel):
    """The full ``{services, networks, volumes}`` graph for one run."""

    services: dict[str, ComposeService] = Field(default_factory=dict)
    networks: dict[str, dict[str, Any]] = Field(default_factory=dict)
    volumes: dict[str, dict[str, Any]] = Field(default_factory=dict)

    @property
    def service_names(self) -> list[str]:
        return list(self.services)

    def to_compose_dict(self) -> dict[str, Any]:
        """Serialize to the plain structure written to the compose file."""
        return {
            "services": {
                name: service.model_dump(exclude_none=True, mode="json")
                for name, service in self.services.items()
            },
            "networks": self.networks,
            "volumes": self.volumes,
        }
