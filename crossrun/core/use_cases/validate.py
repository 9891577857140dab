"""
Validate use case — check a pipeline file without executing it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from crossrun.core.config.loader import ConfigError, find_pipeline_file, load_pipeline
from crossrun.core.models.platform import Platform, is_compatible
from crossrun.core.models.run import Run
from crossrun.core.reliability.backoff import DEFAULT_BACKOFF
from crossrun.core.use_cases.run import resolve_platform


@dataclass
class OperationCheck:
    """Validation verdict for one operation."""

    id: str
    kind: str
    name: str
    applies: bool
    missing: list[str] = field(default_factory=list)
    retry_delays: list[float] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "applies": self.applies,
            "missing": self.missing,
            "retry_delays": self.retry_delays,
        }


@dataclass
class ValidateResult:
    """Result of pipeline validation."""

    valid: bool = False
    run: Run | None = None
    config_path: Path | None = None
    platform: Platform | None = None
    operations: list[OperationCheck] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "pipeline": self.run.name if self.run else None,
            "platform": self.platform.value if self.platform else None,
            "operations": [op.to_dict() for op in self.operations],
            "errors": self.errors,
            "warnings": self.warnings,
        }


def check_pipeline(
    config_path: Path | None = None,
    platform: Platform | str | None = None,
) -> ValidateResult:
    """Validate a pipeline and report which operations would run.

    Args:
        config_path: Optional explicit path to pipeline.yml.
        platform: Platform to check against. Resolved like ``run``.

    Returns:
        ValidateResult; ``valid`` is False when the file does not load
        or any applicable operation is missing parameters.
    """
    result = ValidateResult()

    try:
        if config_path is None:
            config_path = find_pipeline_file()
        result.config_path = config_path
        run = load_pipeline(config_path)
        result.run = run
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    try:
        target = resolve_platform(platform, run)
    except ValueError:
        result.errors.append(f"Unknown platform '{platform}'")
        return result
    result.platform = target

    top_level = [*run.pre_conditions, *run.steps, *run.tests]
    for op in top_level:
        check = OperationCheck(
            id=op.id,
            kind=op.kind.value,
            name=op.name,
            applies=is_compatible(target, op.platform),
            missing=op.validate_parameters(),
            retry_delays=DEFAULT_BACKOFF.schedule(op.max_retries),
        )
        result.operations.append(check)
        if check.applies and check.missing:
            result.errors.append(
                f"{op.kind.label} '{op.name}' is missing parameters: {', '.join(check.missing)}"
            )

    if run.steps and not any(is_compatible(target, s.platform) for s in run.steps):
        result.errors.append(f"No steps found for platform: {target.value}")
    if not run.steps:
        result.warnings.append("Pipeline declares no steps.")

    skipped = [c.id for c in result.operations if not c.applies]
    if skipped:
        result.warnings.append(
            f"Skipped on {target.value}: {', '.join(skipped)}"
        )

    result.valid = not result.errors
    return result
