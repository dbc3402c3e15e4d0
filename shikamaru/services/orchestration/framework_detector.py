"""
Framework detection from repository marker files.

Node projects are classified by their declared dependencies so that
frontend toolchains (React, Vue, Angular, ...) are launched in a terminal;
other ecosystems are recognised by marker files in a fixed priority order.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ...core.interfaces.framework import IFrameworkDetector
from ...core.interfaces.logger import ILogger
from ...core.models.targets import FrameworkInfo, FrameworkType

NODE_SCRIPT_PRIORITY = ("start", "dev", "serve", "start:dev")
COMPOSE_FILES = ("docker-compose.yml", "docker-compose.yaml", "compose.yml", "compose.yaml")


@dataclass(frozen=True)
class NodeFramework:
    """A frontend framework recognised by a package.json dependency."""

    name: str
    dependency: str
    type: FrameworkType
    startup_command: str
    default_port: int


# Checked in order: meta-frameworks before the libraries they build on.
NODE_FRONTENDS: tuple[NodeFramework, ...] = (
    NodeFramework("Angular", "@angular/core", FrameworkType.FRONTEND, "ng serve", 4200),
    NodeFramework("Next.js", "next", FrameworkType.FULLSTACK, "npm run dev", 3000),
    NodeFramework("Vue.js", "vue", FrameworkType.FRONTEND, "npm run serve", 8080),
    NodeFramework("Svelte", "svelte", FrameworkType.FRONTEND, "npm run dev", 5173),
    NodeFramework("React", "react", FrameworkType.FRONTEND, "npm start", 3000),
    NodeFramework("Vite", "vite", FrameworkType.FRONTEND, "npm run dev", 5173),
)


@dataclass(frozen=True)
class MarkerFramework:
    """A non-Node framework recognised by marker files."""

    name: str
    markers: tuple[str, ...]
    startup_command: str
    install_command: str | None
    build_command: str | None
    default_port: int
    health_check_path: str | None = None


MARKER_FRAMEWORKS: tuple[MarkerFramework, ...] = (
    MarkerFramework(
        ".NET", ("*.csproj", "*.sln", "Program.cs"),
        "dotnet run", "dotnet restore", "dotnet build", 5000, "/health",
    ),
    MarkerFramework(
        "Maven", ("pom.xml",),
        "mvn spring-boot:run", "mvn install", "mvn clean package", 8080, "/actuator/health",
    ),
    MarkerFramework(
        "Gradle", ("build.gradle", "build.gradle.kts"),
        "gradle bootRun", "gradle build", "gradle build", 8080,
    ),
    MarkerFramework(
        "Django", ("manage.py",),
        "python manage.py runserver", None, "python manage.py collectstatic", 8000, "/health",
    ),
    MarkerFramework(
        "FastAPI", ("main.py",),
        "uvicorn main:app --reload", None, None, 8000, "/docs",
    ),
    MarkerFramework(
        "Flask", ("app.py",),
        "python app.py", None, None, 5000, "/health",
    ),
    MarkerFramework(
        "Poetry", ("poetry.lock",),
        "poetry run python main.py", "poetry install", "poetry build", 8000,
    ),
    MarkerFramework(
        "Python", ("requirements.txt", "pyproject.toml"),
        "python main.py", None, None, 8000,
    ),
    MarkerFramework(
        "Go", ("go.mod", "main.go"),
        "go run .", "go mod download", "go build", 8080, "/health",
    ),
    MarkerFramework(
        "Rust", ("Cargo.toml",),
        "cargo run", "cargo build", "cargo build --release", 8080, "/health",
    ),
)

_PYTHON_FAMILY = {"Django", "FastAPI", "Flask", "Python"}
_VERSION_PATTERNS = {
    "Maven": ("pom.xml", re.compile(r"<version>([^<]+)</version>")),
    ".NET": ("*.csproj", re.compile(r"<TargetFramework>([^<]+)</TargetFramework>")),
    "Python": ("pyproject.toml", re.compile(r"""version\s*=\s*["']([^"']+)["']""")),
}


class FrameworkDetector(IFrameworkDetector):
    """Detects the framework of a repository checkout."""

    def __init__(self, logger: ILogger | None = None) -> None:
        self._logger = logger

    @property
    def logger(self) -> ILogger:
        if self._logger is None:
            from ..logging import NullLogger

            self._logger = NullLogger()
        return self._logger

    def detect(self, path: Path) -> FrameworkInfo | None:
        if not path.is_dir():
            return None
        try:
            if (path / "package.json").exists():
                return self._detect_node(path)
            for framework in MARKER_FRAMEWORKS:
                if any(_matches(path, marker) for marker in framework.markers):
                    return self._from_markers(path, framework)
        except OSError as e:
            self.logger.debug("Framework detection failed for %s: %s", path, e)
        return None

    def _detect_node(self, path: Path) -> FrameworkInfo:
        package = _read_package_json(path / "package.json", self.logger)
        scripts: dict[str, Any] = package.get("scripts") or {}
        deps = {**(package.get("devDependencies") or {}), **(package.get("dependencies") or {})}

        frontend = next((f for f in NODE_FRONTENDS if f.dependency in deps), None)
        startup = next(
            (f"npm run {name}" for name in NODE_SCRIPT_PRIORITY if scripts.get(name)), None
        )

        if (path / "yarn.lock").exists():
            install = "yarn install"
        elif (path / "pnpm-lock.yaml").exists():
            install = "pnpm install"
        else:
            install = "npm install"

        if frontend is not None:
            return FrameworkInfo(
                type=frontend.type,
                framework=frontend.name,
                version=_str_or_none(package.get("version")),
                startup_command=startup or frontend.startup_command,
                install_command=install,
                build_command="npm run build" if scripts.get("build") else None,
                default_port=frontend.default_port,
            )
        return FrameworkInfo(
            type=FrameworkType.BACKEND,
            framework="Node.js",
            version=_str_or_none(package.get("version")),
            startup_command=startup or "node index.js",
            install_command=install,
            build_command="npm run build" if scripts.get("build") else None,
            default_port=3000,
            health_check_path="/health",
        )

    def _from_markers(self, path: Path, framework: MarkerFramework) -> FrameworkInfo:
        startup = framework.startup_command
        install = framework.install_command
        if framework.name in _PYTHON_FAMILY:
            if (path / "pyproject.toml").exists():
                install = "poetry install"
            elif (path / "requirements.txt").exists():
                install = "pip install -r requirements.txt"
        elif framework.name == ".NET":
            if any((path / name).exists() for name in COMPOSE_FILES):
                startup, install = "docker-compose up", "docker-compose build"
            else:
                project = _first_match(path, "*.sln") or _first_match(path, "*.csproj")
                if project is not None:
                    startup = f"dotnet run --project {project.name}"
                    install = f"dotnet restore {project.name}"

        return FrameworkInfo(
            type=FrameworkType.BACKEND,
            framework=framework.name,
            version=self._version(path, framework.name),
            startup_command=startup,
            install_command=install,
            build_command=framework.build_command,
            default_port=framework.default_port,
            health_check_path=framework.health_check_path,
        )

    def _version(self, path: Path, name: str) -> str | None:
        key = "Python" if name in _PYTHON_FAMILY else name
        if key not in _VERSION_PATTERNS:
            return None
        pattern_file, regex = _VERSION_PATTERNS[key]
        source = _first_match(path, pattern_file)
        if source is None:
            return None
        match = regex.search(source.read_text(encoding="utf-8", errors="replace"))
        return match.group(1) if match else None


def _matches(path: Path, marker: str) -> bool:
    if "*" in marker:
        return _first_match(path, marker) is not None
    return (path / marker).exists()


def _first_match(path: Path, pattern: str) -> Path | None:
    if "*" not in pattern:
        candidate = path / pattern
        return candidate if candidate.exists() else None
    return next(iter(sorted(path.glob(pattern))), None)


def _read_package_json(path: Path, logger: ILogger) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("Could not read %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def read_package_scripts(repo_path: Path) -> dict[str, Any] | None:
    """Scripts table of a repo's package.json, or None if there is no readable one."""
    package_json = repo_path / "package.json"
    if not package_json.exists():
        return None
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    scripts = data.get("scripts") or {}
    return scripts if isinstance(scripts, dict) else {}
