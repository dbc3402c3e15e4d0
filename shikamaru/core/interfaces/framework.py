"""Framework detection interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from ..models.targets import FrameworkInfo


class IFrameworkDetector(ABC):
    """Inspects a repository checkout and reports how to install and run it."""

    @abstractmethod
    def detect(self, path: Path) -> FrameworkInfo | None:
        """
        Detect the framework used by the repository at ``path``.

        Returns:
            FrameworkInfo, or None if nothing recognisable was found
        """
        pass
