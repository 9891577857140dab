"""
CLI progress rendering — engine events and results to the terminal.

``ProgressPrinter`` subscribes to the event bus and prints one line per
operation as it finishes. ``render_summary`` prints the final report.
Nothing here influences execution.
"""

from __future__ import annotations

import threading
from typing import Any

import click

from crossrun.core.models.result import OperationResult, RunResult, StepResult

_PHASE_TITLES = {
    "pre_condition": "Pre-conditions",
    "step": "Steps",
    "test": "Tests",
}


class ProgressPrinter:
    """Event bus subscriber that prints live progress.

    Parallel children publish from worker threads; output lines are
    serialised so they never interleave.
    """

    def __init__(self, verbose: bool = False, quiet: bool = False) -> None:
        self.verbose = verbose
        self.quiet = quiet
        self._lock = threading.Lock()

    def __call__(self, event: dict[str, Any]) -> None:
        if self.quiet:
            return
        handler = getattr(self, "_on_" + event["type"].replace(":", "_"), None)
        if handler is not None:
            with self._lock:
                handler(event)

    def _on_run_started(self, event: dict[str, Any]) -> None:
        data = event["data"]
        click.secho(f"\n▶ {data.get('name') or event['key']}", fg="cyan", bold=True)
        if data.get("platform"):
            click.echo(f"   Platform: {data['platform']}")

    def _on_phase_started(self, event: dict[str, Any]) -> None:
        data = event["data"]
        if data.get("count"):
            title = _PHASE_TITLES.get(data["phase"], data["phase"])
            click.secho(f"\n   {title} ({data['count']})", bold=True)

    def _on_operation_started(self, event: dict[str, Any]) -> None:
        if self.verbose:
            click.echo(f"     … {event['data']['name']}: {event.get('command', '')}")

    def _on_operation_retrying(self, event: dict[str, Any]) -> None:
        click.secho(
            f"     ↻ {event['data']['name']} — retry {event['retry']}/{event['max_retries']}"
            f" in {event['delay_s']:.0f}s",
            fg="yellow",
        )
        if self.verbose and event.get("error"):
            click.echo(f"       │ {event['error']}")

    def _on_operation_succeeded(self, event: dict[str, Any]) -> None:
        click.secho(f"     ✓ {event['data']['name']}", fg="green", nl=False)
        click.echo(f" ({event.get('duration_ms', 0)}ms)")

    def _on_operation_failed(self, event: dict[str, Any]) -> None:
        click.secho(f"     ✗ {event['data']['name']}", fg="red", nl=False)
        click.echo(f" ({event.get('duration_ms', 0)}ms)")
        for line in (event.get("error") or "").split("\n")[:5]:
            click.echo(f"       │ {line}")


# ── Summary ─────────────────────────────────────────────────────


def render_summary(result: RunResult, verbose: bool = False) -> None:
    """Print the per-phase results and the overall verdict."""
    click.echo()
    click.secho("   Summary", bold=True)
    for title, results in (
        ("Pre-conditions", result.pre_condition_results),
        ("Steps", result.step_results),
        ("Tests", result.test_results),
    ):
        if not results:
            continue
        passed = sum(1 for r in results if r.success)
        click.echo(f"   {title}: {passed}/{len(results)} passed")
        for r in results:
            _render_result(r, verbose, indent="     ")

    click.echo()
    color = "green" if result.success else "red"
    click.secho(
        f"   Result: {result.status} in {result.total_duration_ms}ms",
        fg=color,
        bold=True,
    )
    if result.error:
        click.secho(f"   {result.error}", fg="red")
    click.echo()


def _render_result(r: OperationResult, verbose: bool, indent: str) -> None:
    marker, color = ("✓", "green") if r.success else ("✗", "red")
    click.secho(f"{indent}{marker} {r.operation_id}", fg=color, nl=False)
    retries = f", {r.retry_count} retries" if r.retry_count else ""
    click.echo(f" ({r.duration_ms}ms{retries})")

    if r.error:
        for line in r.error.split("\n")[:5]:
            click.echo(f"{indent}  │ {line}")
    elif verbose and r.output:
        for line in r.output.split("\n")[:10]:
            click.echo(f"{indent}  │ {line}")

    if isinstance(r, StepResult):
        for child in r.child_results:
            _render_result(child, verbose, indent + "  ")
