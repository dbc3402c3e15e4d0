"""
Pydantic Settings for shikamaru configuration.

Provides settings loading from TOML files, environment variables, and defaults,
and converts the loaded settings into the value objects the orchestration
services receive.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib

from pydantic import Field, PrivateAttr, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from .exceptions import ConfigValidationError
from .models.config import (
    ContainersConfig,
    ExecutionConfig,
    LoggingConfig,
    OrchestrationConfig,
    PortConfig,
    RepoConfig,
)
from .models.options import ContainerOptions, EnvironmentResolution, OrchestrationOptions
from .models.targets import ConfigSource, GlobalMode, PortAssignment, RepositoryTarget

CONFIG_DIR_NAME = ".shikamaru"
CONFIG_FILE_NAME = "config.toml"


def _get_logger():
    from ..services.logging import NullLogger
    from .di import resolve_or_default
    from .interfaces.logger import ILogger

    return resolve_or_default(ILogger, NullLogger)


def find_config_file(start_dir: str | None = None) -> Path | None:
    """
    Find .shikamaru/config.toml by walking up from start_dir (or cwd).

    A pyproject.toml with a [tool.shikamaru] table is accepted too.

    Returns:
        Path to config file, or None if not found.
    """
    start = Path(start_dir) if start_dir else Path.cwd()

    for parent in [start, *list(start.parents)]:
        config_path = parent / CONFIG_DIR_NAME / CONFIG_FILE_NAME
        if config_path.exists():
            return config_path

        pyproject = parent / "pyproject.toml"
        if pyproject.exists():
            try:
                with open(pyproject, "rb") as f:
                    data = tomllib.load(f)
                if "shikamaru" in data.get("tool", {}):
                    return pyproject
            except tomllib.TOMLDecodeError as e:
                _get_logger().debug("Failed to parse pyproject.toml at %s: %s", pyproject, e)
            except OSError as e:
                _get_logger().debug("Failed to read pyproject.toml at %s: %s", pyproject, e)

    return None


class TomlConfigSource(PydanticBaseSettingsSource):
    """Settings source that loads from TOML config files."""

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        config_path: Path | None = None,
        start_dir: str | None = None,
    ):
        super().__init__(settings_cls)
        self._config_path = config_path
        self._start_dir = start_dir
        self._data: dict[str, Any] | None = None

    def _load_toml(self) -> dict[str, Any]:
        """Load and cache TOML data."""
        if self._data is not None:
            return self._data

        self._data = {}

        path = self._config_path
        if path is None:
            path = find_config_file(self._start_dir)

        if path is None:
            return self._data

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if path.name == "pyproject.toml":
                data = data.get("tool", {}).get("shikamaru", {})

            self._data = data
            self._data["_config_file"] = str(path)

        except tomllib.TOMLDecodeError as e:
            _get_logger().warning("Failed to parse config file %s: %s", path, e)
            self._data["_config_error"] = f"Failed to parse config file: {e}"
        except OSError as e:
            _get_logger().warning("Failed to read config file %s: %s", path, e)
            self._data["_config_error"] = f"Failed to read config file: {e}"

        return self._data

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        data = self._load_toml()
        return data.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return {k: v for k, v in self._load_toml().items() if not k.startswith("_")}


class ShikamaruSettings(BaseSettings):
    """Shikamaru configuration with TOML and environment variable support.

    Priority (highest to lowest):
    1. Explicit init values
    2. Environment variables (SHIKAMARU_<section>__<field>)
    3. TOML config file (.shikamaru/config.toml or pyproject.toml [tool.shikamaru])
    4. Model defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="SHIKAMARU_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    execution: ExecutionConfig = ExecutionConfig()
    repos: list[RepoConfig] = Field(default_factory=list)
    orchestration: OrchestrationConfig = OrchestrationConfig()
    containers: ContainersConfig = ContainersConfig()
    ports: dict[str, PortConfig] = Field(default_factory=dict)
    logging: LoggingConfig = LoggingConfig()

    _config_file: str | None = PrivateAttr(default=None)
    _config_error: str | None = PrivateAttr(default=None)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Add TOML loading below environment variables.

        The config location is passed through module-level variables since
        this hook receives no per-instance arguments.
        """
        toml_source = TomlConfigSource(
            settings_cls,
            config_path=_current_config_path,
            start_dir=_current_start_dir,
        )
        return (
            init_settings,
            env_settings,
            toml_source,
        )

    @property
    def config_file(self) -> str | None:
        return self._config_file

    @property
    def config_error(self) -> str | None:
        return self._config_error

    def repo_config(self, name: str) -> RepoConfig | None:
        for repo in self.repos:
            if repo.name == name:
                return repo
        return None

    def target_names(self, requested: list[str] | tuple[str, ...] = ()) -> list[str]:
        """Union of configured repo names and requested names, in order."""
        names: list[str] = []
        for name in [*(r.name for r in self.repos), *requested]:
            if name not in names:
                names.append(name)
        return names

    def resolve_targets(
        self,
        names: list[str],
        cwd: Path,
        global_mode: GlobalMode | None = None,
        projects_dir: Path | None = None,
    ) -> list[RepositoryTarget]:
        """
        Resolve the execution configuration of each named repository.

        A repo override supplies the mode and any commands it sets; missing
        commands fall back to the global ones. Repos without an override get
        the global mode and commands.

        Args:
            names: Repository names (directories under projects_dir)
            cwd: Directory projects_dir is relative to
            global_mode: Override for execution.global_mode
            projects_dir: Override for execution.projects_dir

        Returns:
            One RepositoryTarget per name, in input order
        """
        root = (cwd / (projects_dir or self.execution.projects_dir)).resolve()
        mode = global_mode or self.execution.global_mode
        targets = []
        for name in names:
            repo = self.repo_config(name)
            if repo is not None:
                target = RepositoryTarget(
                    name=name,
                    path=root / name,
                    mode=repo.mode,
                    install_command=repo.install_command or self.execution.install_command,
                    startup_command=repo.startup_command or self.execution.startup_command,
                    source=ConfigSource.REPO,
                )
            else:
                target = RepositoryTarget(
                    name=name,
                    path=root / name,
                    mode=mode.resolve(),
                    install_command=self.execution.install_command,
                    startup_command=self.execution.startup_command,
                    source=ConfigSource.GLOBAL,
                )
            targets.append(target)
        return targets

    def orchestration_options(self, **overrides: Any) -> OrchestrationOptions:
        """Build OrchestrationOptions, letting CLI flags override settings."""
        values: dict[str, Any] = {
            "concurrency": self.orchestration.concurrency,
            "timeout_ms": self.orchestration.timeout_ms,
            "skip_install": self.execution.skip_install,
            "install_retries": self.orchestration.install_retries,
            "backoff_base_ms": self.orchestration.backoff_base_ms,
            "backoff_max_ms": self.orchestration.backoff_max_ms,
            "continue_on_install_failure": self.orchestration.continue_on_install_failure,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return OrchestrationOptions(**values)

    def container_options(self, cwd: Path) -> ContainerOptions:
        return ContainerOptions(
            manifest_path=cwd / self.containers.manifest_file,
            compose_command=tuple(self.containers.compose_command),
            docker_command=tuple(self.containers.docker_command),
            network=self.containers.network,
            health_timeout_s=self.containers.health_timeout_s,
            health_interval_s=self.containers.health_interval_s,
        )

    def environment_resolution(
        self,
        targets: list[RepositoryTarget],
        infra: list | None = None,
    ) -> EnvironmentResolution:
        """Modes, ports and infra set for the given targets."""
        return EnvironmentResolution(
            modes={t.name: t.mode for t in targets},
            ports={
                name: PortAssignment(host=port.host, internal=port.internal)
                for name, port in self.ports.items()
            },
            infra=list(infra if infra is not None else self.containers.infra),
        )


_current_config_path: Path | None = None
_current_start_dir: str | None = None


def load_settings(
    config_path: Path | None = None,
    start_dir: str | None = None,
) -> ShikamaruSettings:
    """Load shikamaru settings from config file and environment.

    Args:
        config_path: Explicit path to config file
        start_dir: Directory to start searching from (if config_path not given)

    Returns:
        ShikamaruSettings instance with all sources merged
    """
    global _current_config_path, _current_start_dir

    _current_config_path = config_path
    _current_start_dir = start_dir

    try:
        try:
            settings = ShikamaruSettings()
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}", cause=e) from e

        toml_data = TomlConfigSource(ShikamaruSettings, config_path, start_dir)._load_toml()
        settings._config_file = toml_data.get("_config_file")
        settings._config_error = toml_data.get("_config_error")

        return settings
    finally:
        _current_config_path = None
        _current_start_dir = None
