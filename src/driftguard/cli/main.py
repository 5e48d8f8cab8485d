"""Main CLI entry point."""

import sys
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from driftguard import __version__
from driftguard.cli.output import (
    render_diff,
    render_host_results,
    render_plan,
    render_records,
    render_sets,
    render_summary,
)
from driftguard.config.models import DriftGuardConfig
from driftguard.config.parser import Config, ConfigValidationError
from driftguard.desired.builtin import builtin_set_names, find_builtin
from driftguard.engine.results import HostResult, HostStatus
from driftguard.orchestrator.fleet import normalize_hosts
from driftguard.orchestrator.reconciler import FleetReconciler
from driftguard.reporting.export import read_rows, write_rows
from driftguard.reporting.reporter import DriftReport, DriftReporter
from driftguard.state.models import DesiredSet
from driftguard.transport.local import LocalTransport
from driftguard.utils.errors import ConfigurationError, DriftGuardError
from driftguard.utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)

DEFAULT_CONFIG_FILE = "driftguard.yaml"

EXIT_OK = 0
EXIT_HOST_ERRORS = 1
EXIT_PREFLIGHT = 2


def fail_preflight(message: str, details: Optional[str] = None) -> None:
    """Print a fatal pre-flight error and exit before any host is touched."""
    console.print(f"[red]Error:[/red] {message}")
    if details:
        console.print(details)
    sys.exit(EXIT_PREFLIGHT)


@click.group()
@click.version_option(__version__, prog_name="driftguard")
@click.option('--config', 'config_path', type=click.Path(dir_okay=False),
              help=f'Path to configuration file (default: ./{DEFAULT_CONFIG_FILE} when present)')
@click.option('--log-level', type=click.Choice(['debug', 'info', 'warning', 'error']),
              help='Console log level')
@click.option('--log-dir', type=click.Path(file_okay=False), help='Directory for JSON log files')
@click.pass_context
def cli(ctx, config_path, log_level, log_dir):
    """Fleet configuration drift detection and additive reconciliation."""
    ctx.ensure_object(dict)

    config = load_config(config_path)
    ctx.obj['config'] = config

    # Setup logging
    settings = config.settings.logging
    setup_logging(log_level or settings.level, log_dir or settings.log_dir)


def load_config(config_path: Optional[str] = None) -> Config:
    """Load and validate the configuration file, exiting with code 2 on failure."""
    if config_path is None and Path(DEFAULT_CONFIG_FILE).exists():
        config_path = DEFAULT_CONFIG_FILE

    try:
        return Config(config_path).load()
    except FileNotFoundError:
        fail_preflight(f"Configuration file not found: {config_path}")
    except ConfigValidationError as e:
        fail_preflight("Configuration validation failed:", str(e))


def host_options(func: Callable) -> Callable:
    """Options selecting hosts and how their stores are reached."""
    options = [
        click.option('--host', 'hosts', multiple=True, help='Target host (repeatable)'),
        click.option('--hosts-file', type=click.Path(exists=True, dir_okay=False),
                     help='File with one host per line'),
        click.option('--store', help='Store path template containing {host}'),
        click.option('--concurrency', type=int, help='Maximum hosts processed in parallel'),
        click.option('--timeout', type=float, help='Overall run timeout in seconds'),
        click.option('--output', 'output_path', type=click.Path(dir_okay=False),
                     help='Export rows to a .json or .csv file'),
        click.option('--fail-on-drift', is_flag=True, help='Exit with code 1 when drift is found'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def desired_options(func: Callable) -> Callable:
    """Options selecting the desired-state set."""
    options = [
        click.option('--set', 'set_name', required=True, help='Desired-state set name'),
        click.option('--desired-file', type=click.Path(dir_okay=False),
                     help='Local desired-set file tried before remote and built-in sources'),
        click.option('--remote-base', help='Base URL serving {set}.json documents'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_settings(
    config: Config,
    store: Optional[str] = None,
    concurrency: Optional[int] = None,
    timeout: Optional[float] = None,
    remote_base: Optional[str] = None,
) -> DriftGuardConfig:
    """Apply command-line overrides to the loaded configuration."""
    try:
        settings = config.with_overrides(
            store={'path_template': store},
            fleet={'concurrency': concurrency, 'timeout': timeout},
            desired={'remote_base': remote_base},
        )
    except ConfigValidationError as e:
        fail_preflight("Invalid option:", str(e))

    if not settings.store.path_template:
        fail_preflight(
            "No store path template configured",
            "Pass [cyan]--store[/cyan] (e.g. /mnt/{host}/app/web.config.json) "
            "or set store.path_template in the configuration file.",
        )
    return settings


def resolve_hosts(
    hosts: Tuple[str, ...], hosts_file: Optional[str], settings: DriftGuardConfig
) -> List[str]:
    """Combine --host, --hosts-file and configured hosts; exits with code 2 when empty."""
    candidates = list(hosts)
    if hosts_file:
        candidates.extend(Path(hosts_file).read_text(encoding="utf-8").splitlines())
    if not candidates:
        candidates = list(settings.fleet.hosts)

    resolved = normalize_hosts(candidates)
    if not resolved:
        fail_preflight(
            "No hosts resolved",
            "Pass [cyan]--host[/cyan], [cyan]--hosts-file[/cyan] or set fleet.hosts in the configuration file.",
        )
    return resolved


def create_reconciler(settings: DriftGuardConfig) -> FleetReconciler:
    """Create the fleet reconciler with all dependencies."""
    transport = LocalTransport(settings.store.path_template)
    return FleetReconciler(settings, transport)


def resolve_desired(
    reconciler: FleetReconciler,
    set_name: str,
    desired_file: Optional[str],
    remote_base: Optional[str],
) -> DesiredSet:
    """Resolve the desired set once; any failure is fatal for the run."""
    try:
        desired = reconciler.resolve_desired(set_name, explicit_path=desired_file, remote_base=remote_base)
    except DriftGuardError as e:
        fail_preflight(e.to_user_message())

    console.print(
        f"[bold]Desired set:[/bold] {desired.name} "
        f"({len(desired)} records, source: {desired.source.value})"
    )
    return desired


def run_with_progress(description: str, total: int, run: Callable) -> List[HostResult]:
    """Run a fleet operation while showing per-host progress."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
        transient=True,
    ) as progress:
        task_id = progress.add_task(f"[cyan]{description}...", total=total)

        def on_host_complete(host: str, status: HostStatus, message: Optional[str]):
            mark = "[green]✓[/green]" if status != HostStatus.ERROR else "[red]✗[/red]"
            progress.update(task_id, advance=1, description=f"{mark} {host}")

        return run(on_host_complete)


def finish(
    results: List[HostResult],
    settings: DriftGuardConfig,
    output_path: Optional[str],
    fail_on_drift: bool,
) -> None:
    """Summarize, export and exit with the run's exit code."""
    report = DriftReporter(settings.record_schema).summarize_results(results)
    render_summary(console, report)

    if output_path:
        try:
            written = write_rows(report.rows, output_path, settings.record_schema)
            console.print(f"[dim]Exported {len(report.rows)} row(s) to {written}[/dim]")
        except DriftGuardError as e:
            console.print(f"[red]Export failed:[/red] {e.message}")
            sys.exit(EXIT_HOST_ERRORS)

    sys.exit(exit_code(report, fail_on_drift))


def exit_code(report: DriftReport, fail_on_drift: bool = False) -> int:
    """0 when clean; 1 on host errors, or on drift when requested."""
    if report.has_errors():
        return EXIT_HOST_ERRORS
    if fail_on_drift and report.has_drift():
        return EXIT_HOST_ERRORS
    return EXIT_OK


@cli.command()
@host_options
@click.option('--show-secrets', is_flag=True, help='Show secret payload values unmasked')
@click.pass_context
def collect(ctx, hosts, hosts_file, store, concurrency, timeout, output_path, fail_on_drift, show_secrets):
    """Collect actual-state records from each host."""
    settings = build_settings(ctx.obj['config'], store, concurrency, timeout)
    targets = resolve_hosts(hosts, hosts_file, settings)
    reconciler = create_reconciler(settings)

    results = run_with_progress(
        "Collecting", len(targets), lambda cb: reconciler.collect(targets, progress_callback=cb)
    )

    render_records(console, results, settings.record_schema, show_secrets)
    render_host_results(console, results)
    finish(results, settings, output_path, fail_on_drift)


@cli.command()
@host_options
@desired_options
@click.option('--show-unchanged', is_flag=True, help='Also list unchanged records')
@click.pass_context
def diff(ctx, hosts, hosts_file, store, concurrency, timeout, output_path, fail_on_drift,
         set_name, desired_file, remote_base, show_unchanged):
    """Classify each host's records against a desired set."""
    settings = build_settings(ctx.obj['config'], store, concurrency, timeout, remote_base)
    targets = resolve_hosts(hosts, hosts_file, settings)
    reconciler = create_reconciler(settings)
    desired = resolve_desired(reconciler, set_name, desired_file, remote_base)

    results = run_with_progress(
        "Diffing", len(targets), lambda cb: reconciler.diff(targets, desired, progress_callback=cb)
    )

    render_diff(console, results, show_unchanged)
    render_host_results(console, results)
    finish(results, settings, output_path, fail_on_drift)


@cli.command()
@host_options
@desired_options
@click.option('--show-secrets', is_flag=True, help='Show secret payload values unmasked')
@click.pass_context
def plan(ctx, hosts, hosts_file, store, concurrency, timeout, output_path, fail_on_drift,
         set_name, desired_file, remote_base, show_secrets):
    """Show the additions each host needs without changing anything."""
    settings = build_settings(ctx.obj['config'], store, concurrency, timeout, remote_base)
    targets = resolve_hosts(hosts, hosts_file, settings)
    reconciler = create_reconciler(settings)
    desired = resolve_desired(reconciler, set_name, desired_file, remote_base)

    results = run_with_progress(
        "Planning", len(targets), lambda cb: reconciler.plan(targets, desired, progress_callback=cb)
    )

    render_plan(console, results, settings.record_schema, show_secrets)
    render_host_results(console, results)
    finish(results, settings, output_path, fail_on_drift)


@cli.command()
@host_options
@desired_options
@click.option('--dry-run', is_flag=True, help='Preview the projected result without backup or write')
@click.option('--yes', '-y', is_flag=True, help='Skip confirmation prompt')
@click.option('--show-secrets', is_flag=True, help='Show secret payload values unmasked')
@click.pass_context
def apply(ctx, hosts, hosts_file, store, concurrency, timeout, output_path, fail_on_drift,
          set_name, desired_file, remote_base, dry_run, yes, show_secrets):
    """Back up each store and append the missing desired records."""
    settings = build_settings(ctx.obj['config'], store, concurrency, timeout, remote_base)
    targets = resolve_hosts(hosts, hosts_file, settings)
    reconciler = create_reconciler(settings)
    desired = resolve_desired(reconciler, set_name, desired_file, remote_base)

    console.print(Panel.fit(
        f"[bold]{'Previewing' if dry_run else 'Applying'} {desired.name}[/bold]\n"
        f"Hosts: {len(targets)}\n"
        f"Concurrency: {settings.fleet.concurrency}\n"
        f"Mode: {'dry run' if dry_run else 'write with backup'}",
        title="Reconciliation",
        border_style="cyan"
    ))

    if not dry_run and not yes:
        planned = run_with_progress(
            "Planning", len(targets), lambda cb: reconciler.plan(targets, desired, progress_callback=cb)
        )
        render_plan(console, planned, settings.record_schema, show_secrets)
        additions = sum(r.plan.size() for r in planned if r.plan is not None)
        if additions and not click.confirm(
            f"Add {additions} record(s) across {len(targets)} host(s)?", default=False
        ):
            console.print("[yellow]Aborted; nothing was applied[/yellow]")
            sys.exit(EXIT_OK)

    results = run_with_progress(
        "Previewing" if dry_run else "Applying",
        len(targets),
        lambda cb: reconciler.apply(targets, desired, dry_run=dry_run, progress_callback=cb),
    )

    if dry_run:
        render_plan(console, results, settings.record_schema, show_secrets)
    render_host_results(console, results, title="Preview Results" if dry_run else "Apply Results")
    finish(results, settings, output_path, fail_on_drift)


@cli.command()
@click.argument('input_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--fail-on-drift', is_flag=True, help='Exit with code 1 when drift is found')
@click.pass_context
def report(ctx, input_path, fail_on_drift):
    """Summarize a previously exported .json or .csv file."""
    schema = ctx.obj['config'].settings.record_schema
    try:
        rows = read_rows(input_path, schema)
    except DriftGuardError as e:
        fail_preflight(e.to_user_message())

    summary = DriftReporter(schema).summarize_rows(rows)
    render_summary(console, summary)
    sys.exit(exit_code(summary, fail_on_drift))


@cli.command()
def sets():
    """List built-in desired sets."""
    render_sets(console, [find_builtin(name) for name in builtin_set_names()])


def main():
    """Main entry point."""
    try:
        cli(obj={})
    except ConfigurationError as e:
        console.print(f"[red]{e.to_user_message()}[/red]")
        sys.exit(EXIT_PREFLIGHT)


if __name__ == '__main__':
    main()
