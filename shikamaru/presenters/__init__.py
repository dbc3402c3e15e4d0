"""Presenters for user-facing output."""

from .console import ConsolePresenter, format_duration

__all__ = ["ConsolePresenter", "format_duration"]
