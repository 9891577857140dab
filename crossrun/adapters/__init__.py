"""Command runners — how the engine executes shell commands.

Public re-exports for convenient access.
"""

from crossrun.adapters.base import CommandRunner
from crossrun.adapters.mock import MockCall, MockRunner
from crossrun.adapters.shell.command import ShellCommandRunner

__all__ = [
    "CommandRunner",
    "MockCall",
    "MockRunner",
    "ShellCommandRunner",
]
