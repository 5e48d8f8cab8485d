"""Per-host outcome types shared by the applier and the fleet orchestrator."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from driftguard.engine.diff import DiffResult
from driftguard.engine.planner import PatchPlan
from driftguard.state.models import IdentityKey, RecordSet, key_sort_value
from driftguard.utils.errors import DriftGuardError


class HostStatus(Enum):
    """Outcome of one host operation."""
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class ApplyPhase(Enum):
    """Per-host apply state machine."""
    LOADED = "loaded"
    DIFFED = "diffed"
    PLANNED = "planned"
    BACKUP_PENDING = "backup_pending"
    BACKED_UP = "backed_up"
    APPLYING = "applying"
    APPLIED = "applied"
    FAILED = "failed"


@dataclass(frozen=True)
class BackupArtifact:
    """Byte-for-byte copy of a store taken before mutation; never auto-deleted."""

    source_path: str
    backup_path: str
    created_at: datetime
    size: int
    verified: bool = False


@dataclass
class HostResult:
    """Result of a collect, diff, plan or apply operation on one host."""

    host: str
    operation: str
    status: HostStatus
    message: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    record_key: Optional[IdentityKey] = None
    applied_count: int = 0
    phase: Optional[ApplyPhase] = None
    records: Optional[RecordSet] = None
    diff: Optional[DiffResult] = None
    plan: Optional[PatchPlan] = None
    projected: Optional[RecordSet] = None
    backup: Optional[BackupArtifact] = None
    error: Optional[DriftGuardError] = None
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        return self.status == HostStatus.SUCCESS

    def is_warning(self) -> bool:
        return self.status == HostStatus.WARNING

    def is_error(self) -> bool:
        return self.status == HostStatus.ERROR

    def sort_key(self) -> Tuple:
        """Order by host (case-insensitive), then record identity."""
        record_order = key_sort_value(self.record_key) if self.record_key is not None else ()
        return (self.host.casefold(), record_order)
