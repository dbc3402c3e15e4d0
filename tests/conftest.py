"""
Shared pytest fixtures for shikamaru tests.

- reset_container: every test starts with an empty DI container
- make_repo: creates a repository directory with the given files
"""

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from shikamaru.core.bootstrap import reset


@pytest.fixture(autouse=True)
def reset_container():
    """Ensure no registrations leak between tests."""
    reset()
    yield
    reset()


@pytest.fixture
def make_repo(tmp_path: Path) -> Callable[..., Path]:
    """
    Create ``tmp_path/<name>`` containing ``files``.

    Dict values are written as JSON (handy for package.json).
    """

    def _make(name: str, files: dict | None = None) -> Path:
        repo = tmp_path / name
        repo.mkdir(parents=True, exist_ok=True)
        for rel, content in (files or {}).items():
            path = repo / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, dict):
                content = json.dumps(content)
            path.write_text(content)
        return repo

    return _make
