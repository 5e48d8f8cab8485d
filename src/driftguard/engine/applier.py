"""Patch applier with a backup-before-write guard."""

import time
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Callable, Optional

from driftguard.engine.planner import PatchPlan
from driftguard.engine.results import ApplyPhase, BackupArtifact, HostResult, HostStatus
from driftguard.state.loader import StoreSnapshot
from driftguard.transport.base import HostTransport
from driftguard.utils.errors import DriftGuardError, ErrorContext, WriteError
from driftguard.utils.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]

BACKUP_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S%fZ"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def backup_name(store_location: str, created_at: datetime) -> str:
    """Backup file name: ``<original-name>.<timestamp>.bak``."""
    return f"{PurePath(store_location).name}.{created_at.strftime(BACKUP_TIMESTAMP_FORMAT)}.bak"


class WriteIntent:
    """Scoped write intent for one host's store.

    Entering creates a verified byte-for-byte backup of the current store;
    nothing may be written before ``__enter__`` returns. The backup is never
    removed, including when the guarded block raises.
    """

    def __init__(
        self,
        transport: HostTransport,
        host: str,
        expected: bytes,
        clock: Clock = _utcnow,
    ):
        """
        Initialize WriteIntent.

        Args:
            transport: Transport for the host
            host: Host whose store will be mutated
            expected: Store bytes the pending mutation was computed from
            clock: Source of the backup timestamp
        """
        self.transport = transport
        self.host = host
        self.expected = expected
        self.clock = clock
        self.artifact: Optional[BackupArtifact] = None

    def __enter__(self) -> "WriteIntent":
        location = self.transport.location(self.host)
        context = ErrorContext(host=self.host, store_path=location, operation="backup")

        current = self.transport.read_store(self.host)
        if current != self.expected:
            raise WriteError(
                f"Store {location} changed after it was read; refusing to overwrite",
                context=context,
                suggestions=["Re-run the command to plan against the current store"],
            )

        created_at = self.clock()
        name = backup_name(location, created_at)
        backup_path = self.transport.write_sibling(self.host, name, current)

        if self.transport.read_sibling(self.host, name) != current:
            raise WriteError(
                f"Backup verification failed for {backup_path}",
                context=context,
            )

        self.artifact = BackupArtifact(
            source_path=location,
            backup_path=backup_path,
            created_at=created_at,
            size=len(current),
            verified=True,
        )
        logger.info(f"Backed up store to {backup_path}", extra={"host": self.host})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and self.artifact is not None:
            logger.error(
                f"Write failed; backup retained at {self.artifact.backup_path}",
                extra={"host": self.host},
            )
        return False


class PatchApplier:
    """Executes a PatchPlan against one host's store."""

    def __init__(self, transport: HostTransport, clock: Clock = _utcnow):
        """
        Initialize PatchApplier.

        Args:
            transport: Transport used to back up and write stores
            clock: Source of backup timestamps
        """
        self.transport = transport
        self.clock = clock
        self.logger = get_logger(__name__)

    def apply(
        self,
        host: str,
        plan: PatchPlan,
        snapshot: StoreSnapshot,
        dry_run: bool = False,
    ) -> HostResult:
        """Apply a plan to a host.

        An empty plan is a successful no-op. Otherwise a verified backup is
        taken, the planned records are appended to the document, and the
        whole document is persisted atomically. In preview mode nothing is
        backed up or written; the projected post-state is returned instead.

        Args:
            host: Target host
            plan: Plan computed from ``snapshot``
            snapshot: Store snapshot the plan was derived from
            dry_run: Preview without backup or persistence

        Returns:
            HostResult; write failures after the backup are reported as
            ``error`` results that carry the retained backup
        """
        start = time.monotonic()
        projected = snapshot.records.extended(plan.records())

        if dry_run:
            return HostResult(
                host=host,
                operation="preview",
                status=HostStatus.SUCCESS,
                message=f"Would add {plan.size()} record(s)",
                phase=ApplyPhase.PLANNED,
                plan=plan,
                diff=plan.diff,
                projected=projected,
                duration=time.monotonic() - start,
            )

        if plan.is_empty():
            return HostResult(
                host=host,
                operation="apply",
                status=HostStatus.SUCCESS,
                message="No changes needed",
                applied_count=0,
                phase=ApplyPhase.PLANNED,
                plan=plan,
                diff=plan.diff,
                projected=snapshot.records,
                duration=time.monotonic() - start,
            )

        phase = ApplyPhase.BACKUP_PENDING
        intent = WriteIntent(self.transport, host, snapshot.raw, clock=self.clock)
        try:
            with intent:
                phase = ApplyPhase.BACKED_UP
                document = snapshot.document.copy()
                phase = ApplyPhase.APPLYING
                document.append_entries([record.to_entry() for record in plan.records()])
                self.transport.write_store(host, document.serialize())
                phase = ApplyPhase.APPLIED
        except DriftGuardError as e:
            e.context.host = host
            self.logger.error(
                f"Apply failed during {phase.value}: {e.message}", extra={"host": host}
            )
            return HostResult(
                host=host,
                operation="apply",
                status=HostStatus.ERROR,
                message=e.message,
                phase=ApplyPhase.FAILED,
                plan=plan,
                diff=plan.diff,
                backup=intent.artifact,
                error=e,
                duration=time.monotonic() - start,
            )

        duration = time.monotonic() - start
        self.logger.info(
            f"Applied {plan.size()} record(s) in {duration:.2f}s",
            extra={"host": host, "operation": "apply", "duration": duration},
        )
        return HostResult(
            host=host,
            operation="apply",
            status=HostStatus.SUCCESS,
            message=f"Added {plan.size()} record(s)",
            applied_count=plan.size(),
            phase=phase,
            plan=plan,
            diff=plan.diff,
            projected=projected,
            backup=intent.artifact,
            duration=duration,
        )
