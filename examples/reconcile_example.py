"""Example of using the reconciliation pipeline programmatically."""

from driftguard.config.parser import Config
from driftguard.orchestrator import FleetReconciler
from driftguard.reporting import DriftReporter, write_rows
from driftguard.transport.local import LocalTransport
from driftguard.utils.errors import DriftGuardError
from driftguard.utils.logging import setup_logging


def example_drift_detection(reconciler: FleetReconciler, hosts):
    """Example: Detect drift against a desired set."""
    print("=" * 60)
    print("Example 1: Drift Detection")
    print("=" * 60)

    desired = reconciler.resolve_desired('baseline', explicit_path='examples/desired/baseline.json')
    results = reconciler.diff(hosts, desired)

    for result in results:
        print(f"\n  Host: {result.host} ({result.status.value})")
        if result.diff is None:
            print(f"  Error: {result.message}")
            continue
        for entry in result.diff.entries:
            if entry.kind.value != 'unchanged':
                print(f"    {entry.kind.value:9} {entry.label} {', '.join(entry.changed_fields)}")

    return desired, results


def example_preview_and_apply(reconciler: FleetReconciler, hosts, desired):
    """Example: Preview additions, then apply them with backups."""
    print("\n" + "=" * 60)
    print("Example 2: Preview and Apply")
    print("=" * 60)

    for result in reconciler.apply(hosts, desired, dry_run=True):
        print(f"  {result.host}: {result.message}")

    for result in reconciler.apply(hosts, desired):
        backup = result.backup.backup_path if result.backup else 'no backup needed'
        print(f"  {result.host}: {result.status.value} - {result.message} ({backup})")


def example_report(reconciler: FleetReconciler, hosts, desired):
    """Example: Summarize and export a fleet run."""
    print("\n" + "=" * 60)
    print("Example 3: Report and Export")
    print("=" * 60)

    results = reconciler.diff(hosts, desired)
    report = DriftReporter(reconciler.config.record_schema).summarize_results(results)

    for count in report.counts:
        print(f"  {count.host:12} {count.classification:10} {count.count}")

    path = write_rows(report.rows, 'drift-report.csv', reconciler.config.record_schema)
    print(f"\nExported {len(report.rows)} rows to {path}")


def main():
    setup_logging('info')

    try:
        settings = Config('examples/driftguard.yaml').load().settings
        reconciler = FleetReconciler(settings, LocalTransport(settings.store.path_template))

        desired, _ = example_drift_detection(reconciler, settings.fleet.hosts)
        example_preview_and_apply(reconciler, settings.fleet.hosts, desired)
        example_report(reconciler, settings.fleet.hosts, desired)
    except DriftGuardError as e:
        print(e.to_user_message())


if __name__ == '__main__':
    main()
