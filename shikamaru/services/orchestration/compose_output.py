"""
Line parsers for compose build and start output.

Purely observational: the parsers turn raw output lines into events the
stack runner logs. They never influence success or failure, which is
decided by the command's exit code alone.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum


class ComposeEventKind(str, Enum):
    STEP = "step"
    BUILDING = "building"
    PROGRESS = "progress"
    BUILT = "built"
    PULLING = "pulling"
    WARNING = "warning"
    ERROR = "error"
    CREATED = "created"
    STARTED = "started"
    RECREATED = "recreated"
    UP_TO_DATE = "up-to-date"


@dataclass(frozen=True)
class ComposeEvent:
    kind: ComposeEventKind
    service: str | None
    detail: str


_BUILDING_RE = re.compile(r"(?:#\d+\s+)?building\s+([A-Za-z][\w.-]*)", re.IGNORECASE)
_PERCENT_RE = re.compile(r"(\d+)%")
_STEP_RE = re.compile(r"Step\s+(\d+)/(\d+)")
_STEP_MARKERS = ("Step ", "RUN ", "COPY ", "ADD ", "FROM ", "WORKDIR ")
_BUILT_MARKERS = ("Successfully built", "Successfully tagged", "naming to docker.io")
_ERROR_MARKERS = ("ERROR", "failed", "Error")
_PULL_MARKERS = ("Pulling", "Download")
_WARNING_MARKERS = ("WARNING", "warning")


class BuildOutputParser:
    """Tracks the service being built and reports coarse progress."""

    def __init__(self) -> None:
        self.current_service: str | None = None
        self._progress = 0

    def parse(self, line: str) -> list[ComposeEvent]:
        text = line.strip()
        if not text:
            return []
        events: list[ComposeEvent] = []

        if any(marker in text for marker in _STEP_MARKERS):
            events.append(ComposeEvent(ComposeEventKind.STEP, self.current_service, text))

        building = _BUILDING_RE.search(text)
        if building:
            self.current_service = building.group(1)
            self._progress = 0
            events.append(ComposeEvent(ComposeEventKind.BUILDING, self.current_service, text))

        if self.current_service:
            percent = _PERCENT_RE.search(text)
            if percent:
                value = int(percent.group(1))
                if value > self._progress and value % 25 == 0:
                    self._progress = value
                    events.append(
                        ComposeEvent(
                            ComposeEventKind.PROGRESS,
                            self.current_service,
                            f"{value}% complete",
                        )
                    )
            step = _STEP_RE.search(text)
            if step:
                current, total = int(step.group(1)), int(step.group(2))
                value = round(current / total * 100) if total else 0
                if value > self._progress and value % 20 == 0:
                    self._progress = value
                    events.append(
                        ComposeEvent(
                            ComposeEventKind.PROGRESS,
                            self.current_service,
                            f"Step {current}/{total} ({value}%)",
                        )
                    )

        if any(marker in text for marker in _BUILT_MARKERS):
            events.append(ComposeEvent(ComposeEventKind.BUILT, self.current_service, text))
        if any(marker in text for marker in _ERROR_MARKERS):
            events.append(ComposeEvent(ComposeEventKind.ERROR, self.current_service, text))
        elif any(marker in text for marker in _WARNING_MARKERS):
            events.append(ComposeEvent(ComposeEventKind.WARNING, self.current_service, text))
        if any(marker in text for marker in _PULL_MARKERS):
            events.append(ComposeEvent(ComposeEventKind.PULLING, self.current_service, text))
        return events


_START_PATTERNS: tuple[tuple[re.Pattern[str], ComposeEventKind], ...] = (
    (re.compile(r"Creating\s+([\w.-]+)\s+\.\.\.\s+done"), ComposeEventKind.CREATED),
    (re.compile(r"Starting\s+([\w.-]+)\s+\.\.\.\s+done"), ComposeEventKind.STARTED),
    (re.compile(r"Recreating\s+([\w.-]+)\s+\.\.\.\s+done"), ComposeEventKind.RECREATED),
    (re.compile(r"([\w.-]+)\s+is up-to-date"), ComposeEventKind.UP_TO_DATE),
    (re.compile(r"Container\s+([\w.-]+)\s+Created"), ComposeEventKind.CREATED),
    (re.compile(r"Container\s+([\w.-]+)\s+(?:Started|Running|Healthy)"), ComposeEventKind.STARTED),
    (re.compile(r"Container\s+([\w.-]+)\s+Recreated"), ComposeEventKind.RECREATED),
    (re.compile(r"Pulling\s+([\w.-]+)"), ComposeEventKind.PULLING),
)


class StartOutputParser:
    """Reports per-service create/start/up-to-date events."""

    def parse(self, line: str) -> list[ComposeEvent]:
        text = line.strip()
        for pattern, kind in _START_PATTERNS:
            match = pattern.search(text)
            if match:
                return [ComposeEvent(kind, match.group(1), text)]
        return []
