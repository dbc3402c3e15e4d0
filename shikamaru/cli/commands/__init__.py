"""
Click command implementations for shikamaru CLI.

Each module corresponds to a shikamaru command (e.g., start.py implements
'shikamaru start'). Commands are registered with the main CLI group via
the register_commands() function in shikamaru.cli.
"""

from .compose import compose
from .down import down
from .start import start

COMMANDS = [
    compose,
    down,
    start,
]

__all__ = [
    "COMMANDS",
    "compose",
    "down",
    "start",
]
