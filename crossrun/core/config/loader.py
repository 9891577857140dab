"""
Configuration loader — reads pipeline.yml into a Run.

Reads YAML, expands step shorthands (``parallel:`` and ``type:``),
validates against the Pydantic models, and returns a typed ``Run``.
Every failure surfaces as a ``ConfigError``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from crossrun.core.errors import CrossrunError
from crossrun.core.models.builders import docker_step, package_install_step, shell_step
from crossrun.core.models.operation import Step
from crossrun.core.models.run import Run

logger = logging.getLogger(__name__)

# Default pipeline filename
PIPELINE_FILE = "pipeline.yml"

_PACKAGE_FIELDS = ("package", "manager", "version")
_DOCKER_FIELDS = (
    "image", "tag", "container_name", "port", "environment", "volumes", "run_command",
)


class ConfigError(CrossrunError):
    """Raised when a pipeline file is missing or invalid."""


def find_pipeline_file(start_dir: Path | None = None) -> Path | None:
    """Search for pipeline.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to pipeline.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / PIPELINE_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_pipeline(path: Path | None = None) -> Run:
    """Load and validate a pipeline definition.

    Args:
        path: Explicit path to the pipeline file. If None, searches upward.

    Returns:
        Validated Run model.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    if path is None:
        path = find_pipeline_file()

    if path is None:
        raise ConfigError(f"No {PIPELINE_FILE} found. Specify one with --config.")

    if not path.is_file():
        raise ConfigError(f"Pipeline file not found: {path}")

    logger.debug("Loading pipeline from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    run = parse_pipeline(data)
    logger.info(
        "Loaded pipeline '%s': %d pre-conditions, %d steps, %d tests",
        run.id, len(run.pre_conditions), len(run.steps), len(run.tests),
    )
    return run


def parse_pipeline(data: dict[str, Any]) -> Run:
    """Build a Run from an already-parsed mapping."""
    data = dict(data)
    try:
        steps = [_parse_step(raw) for raw in data.pop("steps", None) or []]
        return Run.model_validate({**data, "steps": steps})
    except ConfigError:
        raise
    except (ValidationError, ValueError, TypeError) as e:
        raise ConfigError(f"Invalid pipeline configuration: {e}") from e


# ── Step shorthands ─────────────────────────────────────────────


def _parse_step(raw: Any) -> Step:
    if isinstance(raw, Step):
        return raw
    if not isinstance(raw, dict):
        raise ConfigError(f"Expected a mapping for each step, got {type(raw).__name__}")

    options = dict(raw)
    step_type = options.pop("type", None)
    children = options.pop("parallel", None)

    if children is not None:
        if step_type is not None:
            raise ConfigError(f"Step '{options.get('id')}': 'parallel' cannot be combined with 'type'")
        if not isinstance(children, list) or not children:
            raise ConfigError(f"Step '{options.get('id')}': 'parallel' needs a list of steps")
        options["children"] = tuple(_parse_step(child) for child in children)
        return Step.model_validate(options)

    if step_type is None:
        return Step.model_validate(options)

    step_id = options.pop("id", None)
    name = options.pop("name", step_id)
    if step_type == "package":
        builder_args = _take(options, _PACKAGE_FIELDS)
        return package_install_step(step_id, name, **builder_args, **options)
    if step_type == "docker":
        builder_args = _take(options, _DOCKER_FIELDS)
        return docker_step(step_id, name, **builder_args, **options)
    if step_type == "shell":
        return shell_step(step_id, name, **options)

    raise ConfigError(f"Step '{step_id}': unknown step type '{step_type}'")


def _take(options: dict[str, Any], fields: tuple[str, ...]) -> dict[str, Any]:
    return {key: options.pop(key) for key in fields if key in options}
