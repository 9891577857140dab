"""
Shell command runner — execute commands through the system shell.

This is the default runner: it hands the command to ``sh -c`` (or
``cmd`` on Windows) via ``subprocess.run`` and captures its output.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from pathlib import Path

from crossrun.adapters.base import CommandRunner
from crossrun.core.errors import TimeoutFailure
from crossrun.core.models.result import CommandOutcome

logger = logging.getLogger(__name__)


class ShellCommandRunner(CommandRunner):
    """Run shell commands and capture stdout/stderr.

    Args:
        cwd: Working directory for commands (default: current directory).
        env_overrides: Extra environment variables layered over ``os.environ``.
        default_timeout_ms: Bound applied when a call gives none.
    """

    def __init__(
        self,
        cwd: str | Path | None = None,
        env_overrides: dict[str, str] | None = None,
        default_timeout_ms: int | None = None,
    ):
        self._cwd = cwd
        self._env_overrides = dict(env_overrides or {})
        self._default_timeout_ms = default_timeout_ms

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        if os.name == "nt":
            return shutil.which("cmd") is not None
        return shutil.which("sh") is not None

    def run(self, command: str, timeout_ms: int | None = None) -> CommandOutcome:
        timeout_ms = timeout_ms or self._default_timeout_ms
        timeout_s = timeout_ms / 1000 if timeout_ms else None

        env = None
        if self._env_overrides:
            env = os.environ.copy()
            env.update(self._env_overrides)

        logger.debug("Executing: %s (cwd=%s, timeout=%sms)", command, self._cwd, timeout_ms)
        start = time.monotonic()

        try:
            result = subprocess.run(
                command,
                shell=True,
                cwd=self._cwd,
                env=env,
                capture_output=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout_s,
            )
        except subprocess.TimeoutExpired:
            return CommandOutcome.failure(str(TimeoutFailure(timeout_ms or 0)))
        except Exception as e:
            logger.debug("Command launch failed: %s", e)
            return CommandOutcome.failure(f"Command execution error: {e}")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.debug("Command exited %d after %dms", result.returncode, elapsed_ms)

        if result.returncode == 0:
            return CommandOutcome.ok(result.stdout)

        stderr = result.stderr.strip()
        return CommandOutcome.failure(
            stderr or f"Command exited with code {result.returncode}",
            output=result.stdout,
        )
