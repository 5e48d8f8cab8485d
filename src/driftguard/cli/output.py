"""Rich rendering helpers for CLI output."""

from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from driftguard.config.models import RecordSchema
from driftguard.engine.diff import DiffKind
from driftguard.engine.results import HostResult, HostStatus
from driftguard.reporting.reporter import CLASSIFICATION_ORDER, DriftReport, mask_value
from driftguard.state.models import Record

STATUS_STYLES = {
    HostStatus.SUCCESS.value: "green",
    HostStatus.WARNING.value: "yellow",
    HostStatus.ERROR.value: "red",
    DiffKind.ADDED.value: "cyan",
    DiffKind.REMOVED.value: "magenta",
    DiffKind.CHANGED.value: "yellow",
    DiffKind.UNCHANGED.value: "dim",
}


def styled(classification: str) -> str:
    style = STATUS_STYLES.get(classification)
    return f"[{style}]{classification}[/{style}]" if style else classification


def format_payload(record: Record, schema: RecordSchema, show_secrets: bool = False) -> str:
    """Render payload fields as ``name=value`` pairs, masking secrets."""
    parts = []
    for name in schema.payload_fields:
        value = record.payload.get(name)
        if value is None:
            continue
        if name in schema.secret_fields and not show_secrets:
            value = mask_value(value)
        parts.append(f"{name}={value}")
    return ", ".join(parts)


def render_summary(console: Console, report: DriftReport) -> None:
    """Print per-host counts and totals; always printed, even when empty."""
    table = Table(title="Drift Summary", show_header=True, header_style="bold")
    table.add_column("Host", style="cyan", no_wrap=True)
    table.add_column("Classification")
    table.add_column("Count", justify="right")

    for row in report.counts:
        table.add_row(row.host, styled(row.classification), str(row.count))

    if not report.counts:
        table.add_row("[dim]-[/dim]", "[dim]no results[/dim]", "0")

    console.print(table)

    totals = ", ".join(
        f"{styled(name)}: {report.totals.get(name, 0)}" for name in CLASSIFICATION_ORDER
    )
    console.print(f"\n[bold]Hosts:[/bold] {report.host_count}  [bold]Totals:[/bold] {totals}")


def render_host_results(console: Console, results: List[HostResult], title: str = "Host Results") -> None:
    """Print one row per host outcome."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Host", style="cyan", no_wrap=True)
    table.add_column("Operation")
    table.add_column("Status")
    table.add_column("Applied", justify="right")
    table.add_column("Backup")
    table.add_column("Message")

    for result in results:
        table.add_row(
            result.host,
            result.operation,
            styled(result.status.value),
            str(result.applied_count),
            result.backup.backup_path if result.backup else "",
            result.message,
        )

    console.print(table)


def render_records(
    console: Console,
    results: List[HostResult],
    schema: RecordSchema,
    show_secrets: bool = False,
) -> None:
    """Print the records collected from each host."""
    table = Table(title="Collected Records", show_header=True, header_style="bold")
    table.add_column("Host", style="cyan", no_wrap=True)
    for name in schema.identity_fields:
        table.add_column(name)
    table.add_column("Payload")

    for result in results:
        if result.records is None:
            continue
        for record in result.records.sorted_records():
            table.add_row(
                result.host,
                *[_cell(record.identity.get(name)) for name in schema.identity_fields],
                format_payload(record, schema, show_secrets),
            )

    console.print(table)


def render_diff(console: Console, results: List[HostResult], show_unchanged: bool = False) -> None:
    """Print classified identities for each host."""
    table = Table(title="Differences", show_header=True, header_style="bold")
    table.add_column("Host", style="cyan", no_wrap=True)
    table.add_column("Record")
    table.add_column("Classification")
    table.add_column("Changed Fields")

    for result in results:
        if result.diff is None:
            continue
        for entry in result.diff.entries:
            if entry.kind == DiffKind.UNCHANGED and not show_unchanged:
                continue
            table.add_row(
                result.host,
                entry.label,
                styled(entry.kind.value),
                ", ".join(entry.changed_fields),
            )

    console.print(table)


def render_plan(
    console: Console,
    results: List[HostResult],
    schema: RecordSchema,
    show_secrets: bool = False,
) -> None:
    """Print planned additions for each host."""
    table = Table(title="Planned Changes", show_header=True, header_style="bold")
    table.add_column("Host", style="cyan", no_wrap=True)
    table.add_column("Operation")
    table.add_column("Record")
    table.add_column("Payload")

    for result in results:
        if result.plan is None:
            continue
        for operation in result.plan.operations:
            table.add_row(
                result.host,
                f"[green]{operation.op_type.value}[/green]",
                operation.record.label,
                format_payload(operation.record, schema, show_secrets),
            )

    console.print(table)

    report_only = sum(
        len(r.plan.diff.changed()) + len(r.plan.diff.removed()) for r in results if r.plan is not None
    )
    if report_only:
        console.print(
            f"[yellow]{report_only} changed or removed record(s) are reported only and will not be modified[/yellow]"
        )


def render_sets(console: Console, sets: List[Dict[str, Any]]) -> None:
    """Print available built-in desired sets."""
    table = Table(title="Built-in Desired Sets", show_header=True, header_style="bold")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Records", justify="right")
    table.add_column("Description")

    for definition in sets:
        table.add_row(
            definition["name"],
            str(len(definition.get("records", []))),
            definition.get("description", ""),
        )

    console.print(table)


def _cell(value: Optional[str]) -> str:
    return "[dim]<absent>[/dim]" if value is None else value
