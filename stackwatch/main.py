"""
stackwatch — CLI entrypoint.

Usage:
    stackwatch --help
    stackwatch run
    stackwatch run --once --dry-run
    stackwatch status
    stackwatch config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from stackwatch import __version__
from stackwatch.core.observability.logging_config import setup_logging

_STATUS_COLORS = {"ok": "green", "partial": "yellow", "failed": "red"}


@click.group()
@click.version_option(version=__version__, prog_name="stackwatch")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to stackwatch.yml (default: ./stackwatch.yml if present).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """stackwatch — keep docker compose stacks in sync with a git repository."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("STACKWATCH_LOG_LEVEL", "INFO")

    setup_logging(
        level=level,
        log_file=os.environ.get("STACKWATCH_LOG_FILE"),
        log_file_level=os.environ.get("STACKWATCH_LOG_FILE_LEVEL"),
    )


@cli.command()
@click.option("--once", is_flag=True, help="Run a single cycle and exit.")
@click.option("--dry-run", is_flag=True, help="Plan but don't execute or save state.")
@click.option("--mock", is_flag=True, help="Use mock adapter (no real execution).")
@click.option(
    "--interval",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Poll interval in seconds (overrides configuration).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output --once result as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    once: bool,
    dry_run: bool,
    mock: bool,
    interval: float | None,
    as_json: bool,
) -> None:
    """Watch the repository and reconcile stacks.

    Examples:

        stackwatch run

        stackwatch run --once --dry-run

        stackwatch run --interval 60
    """
    from stackwatch.core.config.loader import ConfigError, load_settings
    from stackwatch.core.use_cases.reconcile import build_reconciler

    try:
        settings = load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if interval is not None:
        settings.poll_interval = interval

    reconciler = build_reconciler(settings, dry_run=dry_run, mock_mode=mock)

    if not once:
        mode_label = " [dry-run]" if dry_run else " [mock]" if mock else ""
        if not ctx.obj.get("quiet"):
            click.secho(f"👀 Watching {settings.repo_url} ({settings.branch}){mode_label}", fg="cyan", bold=True)
            click.echo(f"   Every {settings.poll_interval:g}s. Press Ctrl+C to stop.")
        try:
            reconciler.run_forever()
        except KeyboardInterrupt:
            click.echo()
            click.secho("Stopped.", fg="yellow")
        return

    result = reconciler.run_cycle()

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.status in ("error", "failed", "partial") else 0)

    if result.status == "error":
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)
    if result.status == "waiting":
        click.secho("⏳ Repository is empty, nothing to deploy yet.", fg="yellow")
        return
    if result.status == "unchanged":
        click.secho("✓ No updates found.", fg="green")
        return

    plan = result.plan
    report = result.report
    assert plan is not None and report is not None

    mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
    click.secho(f"\n⚡ {mode_label}{plan.kind} cycle {result.operation_id}", fg="cyan", bold=True)
    if result.revision:
        click.echo(f"   Revision: {result.revision[:12]}")
    click.echo(f"   Deploy: {len(plan.to_deploy)} | Remove: {len(plan.to_remove)}")
    click.echo()

    for (unit, action), outcome in sorted(report.outcomes.items()):
        label = f"{action} {unit}"
        timing = f" ({outcome.duration_ms}ms)" if outcome.duration_ms else ""
        if outcome.skipped:
            click.secho(f"   ⊘ {label}", fg="yellow")
        elif outcome.ok:
            click.secho(f"   ✓ {label}", fg="green", nl=False)
            click.echo(timing)
        else:
            click.secho(f"   ✗ {label}", fg="red", nl=False)
            click.echo(timing)
            for line in (outcome.error or "").split("\n")[:5]:
                click.echo(f"     │ {line}")

    for warning in result.warnings:
        click.secho(f"   ⚠️  {warning}", fg="yellow")

    click.echo()
    click.secho(
        f"   Result: {report.succeeded}/{report.total} succeeded",
        fg=_STATUS_COLORS.get(report.status, "white"),
        bold=True,
    )
    click.echo()

    if report.failed > 0:
        sys.exit(1)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--recent", default=5, show_default=True, help="Number of ledger entries to show.")
@click.pass_context
def status(ctx: click.Context, as_json: bool, recent: int) -> None:
    """Show stacks on disk, the saved baseline and recent cycles."""
    from stackwatch.core.use_cases.status import get_status

    result = get_status(config_path=ctx.obj.get("config_path"), recent=recent)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    settings = result.settings
    assert settings is not None

    if not ctx.obj.get("quiet"):
        click.secho(f"\n📦 {settings.repo_url}", fg="cyan", bold=True)
        click.echo(f"   Branch: {settings.branch}")
        click.echo(f"   Stacks: {settings.stacks_root}")
        click.echo()

    # Stacks on disk
    if result.scan_error:
        click.secho(f"   ⚠️  {result.scan_error}", fg="yellow")
    else:
        click.secho(f"   Stacks: {len(result.eligible)}", fg="white", bold=True)
        state = result.state
        for unit in result.units:
            if not unit.eligible:
                click.secho(f"     ⊘ {unit.name} ", fg="yellow", nl=False)
                click.echo(f"({unit.skip_reason})")
                continue
            marker = ""
            if state and unit.name in state.failed_units:
                marker = f" ✗ last {state.failed_units[unit.name]} failed"
            elif state and unit.name in state.deployed_units:
                marker = " ✓"
            click.echo(f"     • {unit.name}  [{unit.manifest}]{marker}")

    if result.pending:
        click.echo()
        click.secho("   Not yet deployed:", fg="white", bold=True)
        for name in result.pending:
            click.echo(f"     • {name}")

    if result.state and result.state.last_revision:
        click.echo()
        click.echo(f"   Last revision: {result.state.last_revision[:12]}")
        click.echo(f"   Updated at:    {result.state.updated_at}")

    if result.recent:
        click.echo()
        click.secho("   Recent cycles:", fg="white", bold=True)
        for entry in reversed(result.recent):
            click.echo(f"     {entry.timestamp}  {entry.plan_kind:<8} ", nl=False)
            click.secho(entry.status, fg=_STATUS_COLORS.get(entry.status, "white"), nl=False)
            click.echo(f"  {entry.actions_succeeded}/{entry.actions_total}")

    click.echo()


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate configuration and show the effective settings."""
    from stackwatch.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.settings is not None
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        if result.config_path:
            click.echo(f"   File: {result.config_path}")
        for key, value in result.settings.to_dict().items():
            click.echo(f"   {key}: {value}")
        for name, status in result.adapters.items():
            if status["available"]:
                click.secho(f"   ✓ adapter {name}", fg="green")
            else:
                click.secho(f"   ✗ adapter {name}", fg="red")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


if __name__ == "__main__":
    cli()
