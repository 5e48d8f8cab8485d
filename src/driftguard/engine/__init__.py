"""Diff, planning and patch application."""

from driftguard.engine.diff import DiffEngine, DiffEntry, DiffKind, DiffResult
from driftguard.engine.planner import (
    OperationType,
    PatchOperation,
    PatchPlan,
    ReconciliationPlanner,
)
from driftguard.engine.results import ApplyPhase, BackupArtifact, HostResult, HostStatus
from driftguard.engine.applier import PatchApplier, WriteIntent, backup_name

__all__ = [
    # Diff
    'DiffEngine',
    'DiffEntry',
    'DiffKind',
    'DiffResult',

    # Planning
    'OperationType',
    'PatchOperation',
    'PatchPlan',
    'ReconciliationPlanner',

    # Application
    'ApplyPhase',
    'BackupArtifact',
    'HostResult',
    'HostStatus',
    'PatchApplier',
    'WriteIntent',
    'backup_name',
]
