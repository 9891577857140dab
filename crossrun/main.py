"""
crossrun — CLI entrypoint.

Usage:
    python -m crossrun.main --help
    crossrun run
    crossrun run --platform ubuntu --json
    crossrun validate
    crossrun platform
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from crossrun import __version__
from crossrun.core.models.platform import Platform
from crossrun.core.observability.logging_config import resolve_level, setup_logging_from_env

_PLATFORM_CHOICE = click.Choice([p.value for p in Platform], case_sensitive=False)


@click.group()
@click.version_option(version=__version__, prog_name="crossrun")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to pipeline.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """crossrun — run pipelines across platforms."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging_from_env(resolve_level(debug=debug, verbose=verbose, quiet=quiet))


@cli.command()
@click.option("--platform", "-p", "platform", type=_PLATFORM_CHOICE, default=None,
              help="Target platform (default: pipeline's, else detected).")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(ctx: click.Context, platform: str | None, as_json: bool) -> None:
    """Execute the pipeline.

    Examples:

        crossrun run

        crossrun --config deploy.yml run --platform fedora
    """
    from crossrun.core.services.event_bus import EventBus
    from crossrun.core.use_cases.run import run_pipeline
    from crossrun.ui.cli.progress import ProgressPrinter, render_summary

    bus = EventBus()
    if not as_json:
        bus.subscribe(ProgressPrinter(
            verbose=ctx.obj.get("verbose", False),
            quiet=ctx.obj.get("quiet", False),
        ))

    outcome = run_pipeline(
        config_path=ctx.obj.get("config_path"),
        platform=platform,
        bus=bus,
    )

    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
        if not outcome.success:
            sys.exit(1)
        return

    if outcome.error:
        click.secho(f"❌ {outcome.error}", fg="red")
        sys.exit(1)

    assert outcome.result is not None
    render_summary(outcome.result, verbose=ctx.obj.get("verbose", False))

    if not outcome.success:
        sys.exit(1)


@cli.command()
@click.option("--platform", "-p", "platform", type=_PLATFORM_CHOICE, default=None,
              help="Platform to validate against.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def validate(ctx: click.Context, platform: str | None, as_json: bool) -> None:
    """Validate the pipeline without executing it."""
    from crossrun.core.use_cases.validate import check_pipeline

    result = check_pipeline(config_path=ctx.obj.get("config_path"), platform=platform)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if not result.valid:
            sys.exit(1)
        return

    if result.run is not None:
        click.secho(f"\n🔎 {result.run.name}", fg="cyan", bold=True)
        if result.config_path:
            click.echo(f"   File: {result.config_path}")
        if result.platform:
            click.echo(f"   Platform: {result.platform.value}")
        click.echo()

        for check in result.operations:
            if not check.applies:
                click.secho(f"   ⊘ {check.kind}: {check.name} (skipped)", fg="yellow")
            elif check.missing:
                click.secho(f"   ✗ {check.kind}: {check.name}", fg="red", nl=False)
                click.echo(f" — missing {', '.join(check.missing)}")
            else:
                click.secho(f"   ✓ {check.kind}: {check.name}", fg="green", nl=False)
                if check.retry_delays:
                    waits = ", ".join(f"{d:g}s" for d in check.retry_delays)
                    click.echo(f" (retries after {waits})")
                else:
                    click.echo()

    for warning in result.warnings:
        click.secho(f"   ⚠️  {warning}", fg="yellow")
    for error in result.errors:
        click.secho(f"   ❌ {error}", fg="red")

    click.echo()
    if result.valid:
        click.secho("   Pipeline is valid.", fg="green", bold=True)
    else:
        sys.exit(1)


@cli.command("platform")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def platform_cmd(as_json: bool) -> None:
    """Show the detected host platform."""
    from crossrun.core.models.platform import display_name, platform_family
    from crossrun.core.services.detection import detect_platform

    detected = detect_platform()
    family = [p.value for p in platform_family(detected)]

    if as_json:
        click.echo(json.dumps({
            "platform": detected.value,
            "display_name": display_name(detected),
            "family": family,
        }, indent=2))
        return

    click.secho(f"🖥  {display_name(detected)}", bold=True, nl=False)
    click.echo(f" ({detected.value})")
    if family != [detected.value]:
        click.echo(f"   Family: {', '.join(family)}")


if __name__ == "__main__":
    cli()
