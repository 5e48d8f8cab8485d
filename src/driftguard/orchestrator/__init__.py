"""Fleet fan-out and pipeline coordination."""

from driftguard.orchestrator.fleet import (
    DEFAULT_MAX_WORKERS,
    FleetOrchestrator,
    HostOperation,
    ProgressCallback,
    ResultCollector,
    normalize_hosts,
)
from driftguard.orchestrator.reconciler import FleetReconciler

__all__ = [
    'DEFAULT_MAX_WORKERS',
    'FleetOrchestrator',
    'FleetReconciler',
    'HostOperation',
    'ProgressCallback',
    'ResultCollector',
    'normalize_hosts',
]
