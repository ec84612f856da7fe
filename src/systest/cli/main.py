"""Command-line interface for systest.

Exit codes for ``systest run``:
    0  every run succeeded (or the trigger was skipped)
    1  at least one run failed or timed out
    2  the pipeline aborted (resolution, credential or configuration error)
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import click

from systest import __version__
from systest.archive.archiver import LocalDirectorySink
from systest.config.constants import BASE_TIER, HOURLY_TIER
from systest.config.loader import ConfigLoader
from systest.config.models import LoggingConfig, SystestConfig
from systest.errors import (
    ConfigurationError,
    CredentialError,
    ExecutionFailure,
    ExecutionTimeout,
    ResolutionError,
)
from systest.orchestrator import SystemTestOrchestrator
from systest.reporting.summary import format_chain_summary, write_report_json
from systest.targets.registry import TargetRegistry
from systest.targets.resolver import TargetResolver, find_partition_conflicts
from systest.trigger.classifier import classify as classify_event
from systest.trigger.events import (
    ManualRequest,
    RepositoryChange,
    Scheduled,
    event_from_environment,
    event_from_source,
)

logger = logging.getLogger(__name__)

EVENT_SOURCES = ["schedule", "workflow_dispatch", "pull_request", "push"]

EXIT_FAILED = 1
EXIT_ABORTED = 2


def _configure_logging(settings: LoggingConfig, verbose: bool = False, quiet: bool = False) -> None:
    """Configure root logging from settings and CLI flags."""
    level = logging.getLevelName(settings.level)
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format=settings.format, datefmt=settings.datefmt)
    logging.getLogger().setLevel(level)


def _environ(ctx: click.Context) -> Mapping[str, str]:
    obj = ctx.obj or {}
    return obj.get("environ", os.environ)


def _load_config(config_file: Path | None) -> SystestConfig:
    try:
        return ConfigLoader().load(config_file)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ABORTED)


def _load_registry(manifest: Path) -> TargetRegistry:
    try:
        return TargetRegistry.from_yaml(manifest)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ABORTED)


def _build_event(
    environ: Mapping[str, str],
    from_env: bool,
    event: str | None,
    targets: str | None,
    jobs: str | None,
    changed_paths: tuple[str, ...],
) -> Scheduled | ManualRequest | RepositoryChange:
    if from_env:
        return event_from_environment(environ)
    if event is None:
        raise click.UsageError("Either --event or --from-env is required.")
    return event_from_source(event, targets=targets, jobs=jobs, changed_paths=changed_paths)


config_option = click.option(
    "--config",
    "config_file",
    type=click.Path(path_type=Path),
    help="Path to systest.yaml (default: ./systest.yaml if present).",
)
manifest_option = click.option(
    "--manifest",
    "-m",
    type=click.Path(path_type=Path),
    default=Path("targets.yaml"),
    show_default=True,
    help="Target manifest listing registered targets and their tags.",
)


def event_options(func: Any) -> Any:
    """Options shared by commands that build a trigger event."""
    func = click.option(
        "--changed-path",
        "changed_paths",
        multiple=True,
        help="Changed repository path (repository-change triggers). Repeatable.",
    )(func)
    func = click.option("--jobs", "-j", default=None, help="Concurrent jobs (manual trigger).")(func)
    func = click.option("--targets", "-t", default=None, help="Target selector (manual trigger).")(
        func
    )
    func = click.option(
        "--from-env", is_flag=True, help="Read the trigger from CI environment variables."
    )(func)
    func = click.option(
        "--event", "-e", type=click.Choice(EVENT_SOURCES), help="Trigger source."
    )(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="systest")
def cli() -> None:
    """Systest - trigger-driven system test scheduling.

    Classify a CI trigger, resolve test targets, run them and chain the
    hourly tier after a successful scheduled run.
    """
    pass


@cli.command()
@event_options
@manifest_option
@config_option
@click.option(
    "--report",
    type=click.Path(path_type=Path),
    help="Write the full chain report as JSON.",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (for CI).")
@click.pass_context
def run(
    ctx: click.Context,
    event: str | None,
    from_env: bool,
    targets: str | None,
    jobs: str | None,
    changed_paths: tuple[str, ...],
    manifest: Path,
    config_file: Path | None,
    report: Path | None,
    verbose: bool,
    quiet: bool,
) -> None:
    """Run system tests for a trigger and chain the hourly tier.

    Examples:

        systest run --event schedule

        systest run --event workflow_dispatch --targets //rs/tests/nns:all --jobs 8

        systest run --from-env --report report.json
    """
    if verbose and quiet:
        raise click.UsageError("Cannot use --verbose and --quiet together.")

    environ = _environ(ctx)
    trigger = _build_event(environ, from_env, event, targets, jobs, changed_paths)
    config = _load_config(config_file)
    _configure_logging(config.logging, verbose, quiet)
    registry = _load_registry(manifest)

    obj = ctx.obj or {}
    orchestrator = SystemTestOrchestrator(
        config,
        registry,
        runner=obj.get("runner"),
        sink=obj.get("sink"),
        environ=environ,
    )

    if not orchestrator.should_run(trigger):
        click.echo("No watched paths changed, skipping system tests.")
        return

    try:
        chain = orchestrator.run(trigger)
    except (ResolutionError, CredentialError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ABORTED)

    if not quiet:
        click.echo(format_chain_summary(chain))
    if report:
        write_report_json(chain, report)

    exit_code = 0
    for result in chain.runs:
        try:
            result.raise_for_status()
        except (ExecutionFailure, ExecutionTimeout) as e:
            click.echo(f"{type(e).__name__}: {e}", err=True)
            exit_code = EXIT_FAILED
    sys.exit(exit_code)


@cli.command()
@event_options
@config_option
@click.pass_context
def classify(
    ctx: click.Context,
    event: str | None,
    from_env: bool,
    targets: str | None,
    jobs: str | None,
    changed_paths: tuple[str, ...],
    config_file: Path | None,
) -> None:
    """Print the run intent for a trigger as JSON."""
    trigger = _build_event(_environ(ctx), from_env, event, targets, jobs, changed_paths)
    intent = classify_event(trigger, _load_config(config_file))
    click.echo(intent.model_dump_json(indent=2))


@cli.command()
@manifest_option
@config_option
@click.option("--selector", "-s", default="all", show_default=True, help="Target selector.")
@click.option(
    "--profile",
    "-p",
    type=click.Choice([BASE_TIER, HOURLY_TIER]),
    default=BASE_TIER,
    show_default=True,
    help="Tag filter profile.",
)
def resolve(manifest: Path, config_file: Path | None, selector: str, profile: str) -> None:
    """Print the targets a selector resolves to, one per line."""
    config = _load_config(config_file)
    resolver = TargetResolver(_load_registry(manifest))
    try:
        targets = resolver.resolve(selector, config.profile(profile))
    except ResolutionError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ABORTED)
    for label in targets:
        click.echo(label)


@cli.command()
@manifest_option
@config_option
def audit(manifest: Path, config_file: Path | None) -> None:
    """Report targets whose tier-marker tags overlap."""
    config = _load_config(config_file)
    registry = _load_registry(manifest)
    conflicts = find_partition_conflicts(
        registry, [config.base_profile(), config.hourly_profile()]
    )
    if not conflicts:
        click.echo("No tier partition conflicts.")
        return
    for conflict in conflicts:
        tiers = ", ".join(conflict.selected_by) or "no tier"
        click.echo(f"{conflict.label}: tagged {', '.join(conflict.markers)}; selected by {tiers}")
    sys.exit(EXIT_FAILED)


@cli.command()
@config_option
def prune(config_file: Path | None) -> None:
    """Remove archives whose retention period has expired."""
    config = _load_config(config_file)
    removed = LocalDirectorySink(Path(config.archive.root)).prune_expired()
    click.echo(f"Pruned {len(removed)} archive(s).")
    for name in removed:
        click.echo(f"  {name}")


def main() -> None:
    """Entry point for the systest CLI."""
    cli()


if __name__ == "__main__":
    main()
