"""
Failure classification and remediation suggestions.

Classification is substring matching on lower-cased output; the first rule
that matches wins, so rule order is significant. Suggestion lists are fixed
per category.
"""

from __future__ import annotations

from enum import Enum

from ...core.models.errors import DockerErrorCategory, InstallErrorCategory, StartupErrorCategory

_INSTALL_RULES: tuple[tuple[tuple[str, ...], InstallErrorCategory], ...] = (
    (("permission", "eacces"), InstallErrorCategory.PERMISSION),
    (("enoent", "not found"), InstallErrorCategory.COMMAND_NOT_FOUND),
    (("network", "timeout"), InstallErrorCategory.NETWORK),
    (("registry", "npm"), InstallErrorCategory.REGISTRY),
    (("syntax", "parse"), InstallErrorCategory.SYNTAX),
    (("version", "incompatible"), InstallErrorCategory.VERSION),
)

_NON_RETRYABLE = ("permission", "eacces", "enoent", "not found", "syntax", "parse")
_RETRYABLE = (
    "network",
    "timeout",
    "econnreset",
    "enotfound",
    "registry",
    "npm",
    "yarn",
    "pnpm",
)

_STARTUP_RULES: tuple[tuple[tuple[str, ...], StartupErrorCategory], ...] = (
    (("port", "address already in use", "eaddrinuse"), StartupErrorCategory.PORT_CONFLICT),
    (("permission", "eacces"), StartupErrorCategory.PERMISSION),
    (("enoent", "not found"), StartupErrorCategory.COMMAND_NOT_FOUND),
    (("dependency", "module"), StartupErrorCategory.DEPENDENCY),
    (("configuration", "config"), StartupErrorCategory.CONFIGURATION),
    (("timeout", "connection"), StartupErrorCategory.CONNECTION),
    (("syntax", "parse"), StartupErrorCategory.SYNTAX),
)

_DOCKER_RULES: tuple[tuple[tuple[str, ...], DockerErrorCategory], ...] = (
    (("port", "address already in use"), DockerErrorCategory.PORT_CONFLICT),
    (("permission", "denied"), DockerErrorCategory.PERMISSION),
    (("not found", "no such file"), DockerErrorCategory.FILE_NOT_FOUND),
    (("network", "connection"), DockerErrorCategory.NETWORK),
    (("build", "dockerfile"), DockerErrorCategory.BUILD),
    (("image", "pull"), DockerErrorCategory.IMAGE),
    (("volume", "mount"), DockerErrorCategory.VOLUME),
    (("memory", "disk space"), DockerErrorCategory.RESOURCE),
    (("syntax", "yaml"), DockerErrorCategory.SYNTAX),
)

INSTALL_SUGGESTIONS: dict[InstallErrorCategory, tuple[str, ...]] = {
    InstallErrorCategory.PERMISSION: (
        "Run with elevated permissions (sudo/admin)",
        "Check file permissions in the project directory",
        "Verify package manager installation",
    ),
    InstallErrorCategory.COMMAND_NOT_FOUND: (
        "Install the required package manager/tool for {framework}",
        "Add the package manager to PATH",
        "Use npx for npm commands: npx npm install",
    ),
    InstallErrorCategory.NETWORK: (
        "Check internet connection",
        "Configure proxy if behind a corporate firewall",
        "Try a different npm registry",
        "Clear the package manager cache",
    ),
    InstallErrorCategory.REGISTRY: (
        "Clear the package manager cache",
        "Check npm/yarn registry configuration",
        "Try using a different registry",
        "Verify package.json dependencies",
    ),
    InstallErrorCategory.SYNTAX: (
        "Check package.json syntax",
        "Verify lockfile integrity",
        "Remove node_modules and reinstall",
    ),
    InstallErrorCategory.VERSION: (
        "Update package manager to latest version",
        "Check Node.js version compatibility",
        "Update dependencies to compatible versions",
    ),
    InstallErrorCategory.TIMEOUT: (
        "Increase orchestration.timeout_ms or lower orchestration.concurrency",
        "Check internet connection",
        "Try manual installation to debug",
    ),
    InstallErrorCategory.UNKNOWN: (
        "Check project configuration",
        "Verify all dependencies are available",
        "Try manual installation to debug",
    ),
}

STARTUP_SUGGESTIONS: dict[StartupErrorCategory, tuple[str, ...]] = {
    StartupErrorCategory.PORT_CONFLICT: (
        "Check if another service is using the same port",
        "Configure a different port in the service configuration",
        "Stop conflicting services: lsof -ti:PORT | xargs kill",
    ),
    StartupErrorCategory.PERMISSION: (
        "Check file permissions in the project directory",
        "Run with elevated permissions if required",
        "Verify service configuration files are readable",
    ),
    StartupErrorCategory.COMMAND_NOT_FOUND: (
        "Verify the startup command is correctly configured",
        "Check if required binaries are installed and in PATH",
        "Review the service configuration for typos",
    ),
    StartupErrorCategory.DEPENDENCY: (
        "Reinstall dependencies: npm install or yarn install",
        "Check for missing peer dependencies",
        "Verify package.json and lockfile integrity",
    ),
    StartupErrorCategory.CONFIGURATION: (
        "Review service configuration files",
        "Check environment variables and .env files",
        "Verify configuration syntax and required fields",
    ),
    StartupErrorCategory.CONNECTION: (
        "Check if required services (database, API) are running",
        "Verify network connectivity and firewall settings",
        "Check service URLs and connection strings",
    ),
    StartupErrorCategory.SYNTAX: (
        "Check source code for syntax errors",
        "Verify configuration file syntax",
        "Run linter to identify issues",
    ),
    StartupErrorCategory.UNKNOWN: (
        "Check service logs for detailed error information",
        "Verify all dependencies are properly installed",
        "Try running the service manually to debug",
    ),
}

DOCKER_SUGGESTIONS: dict[DockerErrorCategory, tuple[str, ...]] = {
    DockerErrorCategory.PORT_CONFLICT: (
        "Check if ports are already in use: lsof -i :PORT",
        "Stop conflicting services or change port mappings",
        "Use different host ports in the compose configuration",
    ),
    DockerErrorCategory.PERMISSION: (
        "Run with elevated permissions (sudo)",
        "Add user to docker group: sudo usermod -aG docker $USER",
        "Check Docker daemon is running: sudo systemctl start docker",
    ),
    DockerErrorCategory.FILE_NOT_FOUND: (
        "Verify Dockerfile exists in the project directory",
        "Check file paths in docker-compose.yml",
        "Ensure all referenced files and directories exist",
    ),
    DockerErrorCategory.NETWORK: (
        "Check Docker network configuration",
        "Verify internet connectivity for image pulls",
        "Configure Docker proxy settings if behind firewall",
    ),
    DockerErrorCategory.BUILD: (
        "Check Dockerfile syntax and instructions",
        "Verify all build context files are present",
        "Review build logs for specific error details",
    ),
    DockerErrorCategory.IMAGE: (
        "Pull images manually: docker pull IMAGE_NAME",
        "Check image availability in registry",
        "Verify image names and tags are correct",
    ),
    DockerErrorCategory.VOLUME: (
        "Check volume permissions and ownership",
        "Verify volume paths exist and are accessible",
        "Create missing directories for volume mounts",
    ),
    DockerErrorCategory.RESOURCE: (
        "Check available disk space: df -h",
        "Monitor system resources: docker system df",
        "Clean up unused Docker resources: docker system prune",
    ),
    DockerErrorCategory.SYNTAX: (
        "Validate docker-compose.yml syntax",
        "Check YAML indentation and formatting",
        "Use docker-compose config to validate configuration",
    ),
    DockerErrorCategory.UNKNOWN: (
        "Check Docker daemon status: docker info",
        "Review Docker logs: journalctl -u docker",
        "Try running docker-compose manually to debug",
    ),
}


def _classify(text: str, rules, default: Enum):
    lowered = text.lower()
    for needles, category in rules:
        if any(needle in lowered for needle in needles):
            return category
    return default


def classify_install_error(text: str) -> InstallErrorCategory:
    """Classify install output or an exception message."""
    return _classify(text, _INSTALL_RULES, InstallErrorCategory.UNKNOWN)


def is_retryable_install_error(text: str) -> bool:
    """
    Decide whether an install failure is worth retrying.

    Permission, missing-command and syntax failures are never retried even
    when the output also mentions the package manager by name.
    """
    lowered = text.lower()
    if any(needle in lowered for needle in _NON_RETRYABLE):
        return False
    return any(needle in lowered for needle in _RETRYABLE)


def classify_startup_error(text: str) -> StartupErrorCategory:
    return _classify(text, _STARTUP_RULES, StartupErrorCategory.UNKNOWN)


def classify_docker_error(text: str) -> DockerErrorCategory:
    return _classify(text, _DOCKER_RULES, DockerErrorCategory.UNKNOWN)


def install_suggestions(
    category: InstallErrorCategory,
    framework: str = "this project",
) -> list[str]:
    return [line.format(framework=framework) for line in INSTALL_SUGGESTIONS[category]]


def startup_suggestions(category: StartupErrorCategory) -> list[str]:
    return list(STARTUP_SUGGESTIONS[category])


def docker_suggestions(category: DockerErrorCategory) -> list[str]:
    return list(DOCKER_SUGGESTIONS[category])


class OutputSignal(str, Enum):
    """Early-warning signals spotted in live service output."""

    PORT_CONFLICT = "port-conflict"
    STARTUP_ISSUE = "startup-issue"


_PORT_CONFLICT_PHRASES = ("already in use", "eaddrinuse", "address already in use")
_ISSUE_PHRASES = ("error", "failed", "cannot", "unable")


def scan_output_line(line: str) -> OutputSignal | None:
    """Flag port conflicts and generic failure phrases in a line of output."""
    lowered = line.lower()
    if "port" in lowered and any(p in lowered for p in _PORT_CONFLICT_PHRASES):
        return OutputSignal.PORT_CONFLICT
    if any(p in lowered for p in _ISSUE_PHRASES):
        return OutputSignal.STARTUP_ISSUE
    return None
