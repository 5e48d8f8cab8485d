"""Reconciliation planner turning a diff into an additive patch plan."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from driftguard.engine.diff import DiffKind, DiffResult
from driftguard.state.models import Record
from driftguard.utils.logging import get_logger

logger = get_logger(__name__)


class OperationType(Enum):
    """Patch operations; reconciliation is additive only."""
    ADD = "add"


@dataclass(frozen=True)
class PatchOperation:
    """A single corrective operation."""

    op_type: OperationType
    record: Record


@dataclass(frozen=True)
class PatchPlan:
    """Ordered operations for one host, with the diff they were derived from."""

    operations: Tuple[PatchOperation, ...]
    diff: DiffResult
    host: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def is_empty(self) -> bool:
        """Check if the plan has no operations."""
        return len(self.operations) == 0

    def size(self) -> int:
        return len(self.operations)

    def records(self) -> List[Record]:
        """Records added by the plan, in order."""
        return [op.record for op in self.operations]

    def get_summary(self) -> Dict[str, int]:
        """Planned operations plus drift that is reported but not corrected."""
        return {
            'add': self.size(),
            'report_only_changed': len(self.diff.changed()),
            'report_only_removed': len(self.diff.removed()),
            'unchanged': len(self.diff.unchanged()),
        }


class ReconciliationPlanner:
    """Creates additive patch plans.

    Only ``added`` identities produce operations. ``changed`` and
    ``removed`` identities are surfaced through the diff but never patched,
    so planning against a store that already holds every desired identity
    yields an empty plan.
    """

    def __init__(self):
        """Initialize reconciliation planner."""
        self.logger = get_logger(__name__)

    def plan(self, diff: DiffResult) -> PatchPlan:
        """Create a patch plan from a diff.

        Args:
            diff: Classified difference for one host

        Returns:
            PatchPlan with one ADD per added entry, in diff order
        """
        operations = tuple(
            PatchOperation(OperationType.ADD, entry.desired)
            for entry in diff.entries
            if entry.kind == DiffKind.ADDED
        )

        plan = PatchPlan(operations=operations, diff=diff, host=diff.host)
        skipped = len(diff.changed()) + len(diff.removed())
        if skipped:
            self.logger.info(
                f"Planned {plan.size()} addition(s); {skipped} drifted record(s) are report-only",
                extra={"host": diff.host} if diff.host else None,
            )
        return plan
