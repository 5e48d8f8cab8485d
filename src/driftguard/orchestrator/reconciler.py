"""Pipeline service that coordinates loading, diffing, planning and applying."""

from typing import Iterable, List, Optional, Tuple

from driftguard.config.models import DriftGuardConfig
from driftguard.desired.provider import DesiredSetProvider
from driftguard.engine.applier import PatchApplier
from driftguard.engine.diff import DiffEngine, DiffResult
from driftguard.engine.planner import PatchPlan, ReconciliationPlanner
from driftguard.engine.results import ApplyPhase, HostResult, HostStatus
from driftguard.orchestrator.fleet import FleetOrchestrator, ProgressCallback
from driftguard.state.loader import StateLoader, StoreSnapshot
from driftguard.state.models import DesiredSet
from driftguard.transport.base import HostTransport
from driftguard.utils.logging import get_logger

logger = get_logger(__name__)


def _describe_counts(diff: DiffResult) -> str:
    return ", ".join(f"{count} {kind}" for kind, count in diff.counts().items())


class FleetReconciler:
    """Coordinates desired-set resolution and per-host reconciliation."""

    def __init__(
        self,
        config: DriftGuardConfig,
        transport: HostTransport,
        provider: Optional[DesiredSetProvider] = None,
        orchestrator: Optional[FleetOrchestrator] = None,
        applier: Optional[PatchApplier] = None,
    ):
        """Initialize fleet reconciler.

        Args:
            config: Run configuration
            transport: Transport used to reach every host
            provider: Desired-set provider
            orchestrator: Fan-out orchestrator; built from ``config.fleet`` when None
            applier: Patch applier; built from ``transport`` when None
        """
        self.config = config
        self.transport = transport
        self.provider = provider or DesiredSetProvider(config)

        # Initialize components
        self.loader = StateLoader(config, transport)
        self.engine = DiffEngine()
        self.planner = ReconciliationPlanner()
        self.applier = applier or PatchApplier(transport)
        self.orchestrator = orchestrator or FleetOrchestrator(
            max_workers=config.fleet.concurrency,
            timeout=config.fleet.timeout,
        )

        self.logger = get_logger(__name__)

    def resolve_desired(
        self,
        set_name: str,
        explicit_path: Optional[str] = None,
        remote_base: Optional[str] = None,
    ) -> DesiredSet:
        """Resolve the desired set once, before any host is touched.

        Raises:
            NotFoundError, ParseError, ConflictError: Pre-flight failures
        """
        return self.provider.resolve(set_name, explicit_path=explicit_path, remote_base=remote_base)

    def collect(
        self, hosts: Iterable[str], progress_callback: Optional[ProgressCallback] = None
    ) -> List[HostResult]:
        """Load the actual-state records of every host."""
        return self.orchestrator.run(
            hosts, self._collect_host, operation="collect", progress_callback=progress_callback
        )

    def diff(
        self,
        hosts: Iterable[str],
        desired: DesiredSet,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[HostResult]:
        """Classify each host's records against the desired set."""
        return self.orchestrator.run(
            hosts,
            lambda host: self._diff_host(host, desired),
            operation="diff",
            progress_callback=progress_callback,
        )

    def plan(
        self,
        hosts: Iterable[str],
        desired: DesiredSet,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[HostResult]:
        """Compute a patch plan per host without touching any store."""
        return self.orchestrator.run(
            hosts,
            lambda host: self._plan_host(host, desired),
            operation="plan",
            progress_callback=progress_callback,
        )

    def apply(
        self,
        hosts: Iterable[str],
        desired: DesiredSet,
        dry_run: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[HostResult]:
        """Plan and apply additions on every host.

        Args:
            hosts: Target hosts
            desired: Resolved desired set shared by every worker
            dry_run: Preview the projected post-state without backup or write
            progress_callback: Optional per-host completion callback

        Returns:
            One HostResult per host, sorted by host
        """
        self.logger.info(
            f"{'Previewing' if dry_run else 'Applying'} desired set '{desired.name}' "
            f"({len(desired)} records)"
        )
        return self.orchestrator.run(
            hosts,
            lambda host: self._apply_host(host, desired, dry_run),
            operation="preview" if dry_run else "apply",
            progress_callback=progress_callback,
        )

    def _collect_host(self, host: str) -> HostResult:
        records = self.loader.load(host)
        return HostResult(
            host=host,
            operation="collect",
            status=HostStatus.SUCCESS,
            message=f"{len(records)} record(s)",
            phase=ApplyPhase.LOADED,
            records=records,
        )

    def _load_and_diff(self, host: str, desired: DesiredSet) -> Tuple[StoreSnapshot, DiffResult]:
        snapshot = self.loader.load_snapshot(host)
        diff = self.engine.diff(desired.records, snapshot.records, host=host)
        return snapshot, diff

    def _diff_host(self, host: str, desired: DesiredSet) -> HostResult:
        snapshot, diff = self._load_and_diff(host, desired)
        return HostResult(
            host=host,
            operation="diff",
            status=HostStatus.SUCCESS,
            message=_describe_counts(diff),
            phase=ApplyPhase.DIFFED,
            records=snapshot.records,
            diff=diff,
        )

    def _plan_host(self, host: str, desired: DesiredSet) -> HostResult:
        snapshot, diff = self._load_and_diff(host, desired)
        plan = self.planner.plan(diff)
        return HostResult(
            host=host,
            operation="plan",
            status=HostStatus.SUCCESS,
            message=self._describe_plan(plan),
            phase=ApplyPhase.PLANNED,
            records=snapshot.records,
            diff=diff,
            plan=plan,
        )

    def _apply_host(self, host: str, desired: DesiredSet, dry_run: bool) -> HostResult:
        snapshot, diff = self._load_and_diff(host, desired)
        plan = self.planner.plan(diff)
        result = self.applier.apply(host, plan, snapshot, dry_run=dry_run)
        result.records = snapshot.records
        return result

    @staticmethod
    def _describe_plan(plan: PatchPlan) -> str:
        summary = plan.get_summary()
        message = f"{summary['add']} addition(s) planned"
        report_only = summary['report_only_changed'] + summary['report_only_removed']
        if report_only:
            message += f"; {report_only} drifted record(s) report-only"
        return message
