"""
Run use case — execute a pipeline file.

The full vertical slice from user intent to a finished run: load the
pipeline, resolve the target platform, wire the engine to a command
runner and the event bus, execute, and collect metrics.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from crossrun.adapters.base import CommandRunner
from crossrun.core.config.loader import ConfigError, find_pipeline_file, load_pipeline
from crossrun.core.engine.executor import PipelineExecutor
from crossrun.core.models.platform import Platform
from crossrun.core.models.result import RunResult
from crossrun.core.models.run import Run
from crossrun.core.observability.metrics import MetricsRegistry, attach_run_metrics
from crossrun.core.services.detection import detect_platform
from crossrun.core.services.event_bus import EventBus

logger = logging.getLogger(__name__)


@dataclass
class PipelineRun:
    """Result of the run use case."""

    result: RunResult | None = None
    run: Run | None = None
    config_path: Path | None = None
    platform: Platform | None = None
    metrics: MetricsRegistry = field(default_factory=MetricsRegistry)
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.error is None and self.result is not None and self.result.success

    def to_dict(self) -> dict:
        data: dict = {
            "config_path": str(self.config_path) if self.config_path else None,
            "platform": self.platform.value if self.platform else None,
        }
        if self.error:
            data["error"] = self.error
            return data

        data["pipeline"] = self.run.name if self.run else None
        if self.result:
            data["result"] = self.result.to_dict()
        data["metrics"] = self.metrics.to_dict()
        return data


def resolve_platform(
    requested: Platform | str | None,
    run: Run,
    detect: Callable[[], Platform] = detect_platform,
) -> Platform:
    """Target platform: explicit request, then the pipeline's own, then the host.

    Raises:
        ValueError: If ``requested`` is not a known platform.
    """
    if requested:
        return Platform(requested)
    if run.platform is not None:
        return run.platform
    detected = detect()
    logger.info("No platform given, detected host platform: %s", detected)
    return detected


def run_pipeline(
    config_path: Path | None = None,
    platform: Platform | str | None = None,
    runner: CommandRunner | None = None,
    bus: EventBus | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> PipelineRun:
    """Load and execute a pipeline.

    Args:
        config_path: Optional explicit path to pipeline.yml.
        platform: Optional target platform. Detected if neither this nor
            the pipeline sets one.
        runner: Command runner. Defaults to the shell runner.
        bus: Event bus to publish progress to. A private one if None.
        sleep: Backoff sleep, injectable for tests.

    Returns:
        PipelineRun with the engine's RunResult, or an error.
    """
    outcome = PipelineRun()

    # ── Load pipeline ────────────────────────────────────────────
    try:
        if config_path is None:
            config_path = find_pipeline_file()
        outcome.config_path = config_path
        run = load_pipeline(config_path)
        outcome.run = run
    except ConfigError as e:
        outcome.error = str(e)
        return outcome

    # ── Resolve platform ─────────────────────────────────────────
    try:
        outcome.platform = resolve_platform(platform, run)
    except ValueError:
        valid = ", ".join(p.value for p in Platform)
        outcome.error = f"Unknown platform '{platform}'. Expected one of: {valid}"
        return outcome

    # ── Wire and execute ─────────────────────────────────────────
    if runner is None:
        from crossrun.adapters.shell.command import ShellCommandRunner

        workdir = config_path.parent.resolve() if config_path else None
        runner = ShellCommandRunner(cwd=workdir)

    if bus is None:
        bus = EventBus()
    unsubscribe = attach_run_metrics(bus, outcome.metrics)

    try:
        executor = PipelineExecutor(runner, bus=bus, sleep=sleep)
        outcome.result = executor.execute_run(run, outcome.platform)
    finally:
        unsubscribe()

    return outcome
