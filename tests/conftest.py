"""
Shared test fixtures and configuration.
"""

import textwrap
from pathlib import Path

import pytest

from crossrun.adapters.mock import MockRunner
from crossrun.core.engine.executor import PipelineExecutor
from crossrun.core.engine.retry import RetryExecutor
from crossrun.core.services.event_bus import EventBus


class RecordingSleep:
    """Stand-in for ``time.sleep`` that records instead of blocking."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def mock_runner() -> MockRunner:
    return MockRunner()


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def retry_executor(mock_runner: MockRunner, bus: EventBus, sleeps: RecordingSleep) -> RetryExecutor:
    return RetryExecutor(mock_runner, bus=bus, sleep=sleeps)


@pytest.fixture
def pipeline_executor(
    mock_runner: MockRunner, bus: EventBus, sleeps: RecordingSleep
) -> PipelineExecutor:
    return PipelineExecutor(mock_runner, bus=bus, sleep=sleeps)


@pytest.fixture
def write_pipeline(tmp_path: Path):
    """Write a dedented pipeline.yml into tmp_path and return its path."""

    def _write(content: str, name: str = "pipeline.yml") -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(content))
        return path

    return _write
