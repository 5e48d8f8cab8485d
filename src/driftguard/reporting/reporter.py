"""Drift reporter aggregating per-host diffs and results into a summary."""

from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, Field

from driftguard.config.models import RecordSchema
from driftguard.engine.diff import DiffKind, DiffResult
from driftguard.engine.results import HostResult, HostStatus
from driftguard.utils.logging import get_logger

logger = get_logger(__name__)

CLASSIFICATION_ORDER = [kind.value for kind in (
    DiffKind.ADDED, DiffKind.REMOVED, DiffKind.CHANGED, DiffKind.UNCHANGED
)] + [status.value for status in HostStatus]

DRIFT_CLASSIFICATIONS = {DiffKind.ADDED.value, DiffKind.REMOVED.value, DiffKind.CHANGED.value}

MASK = "********"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def mask_value(value: Optional[str]) -> Optional[str]:
    """Obfuscate a secret value for display; absent and empty values are kept."""
    if not value:
        return value
    return MASK


def classification_rank(classification: str) -> int:
    """Position of a classification in report order; unknown ones sort last."""
    try:
        return CLASSIFICATION_ORDER.index(classification)
    except ValueError:
        return len(CLASSIFICATION_ORDER)


class ExportRow(BaseModel):
    """One exported entry: a classified identity or a host outcome."""

    host: str = Field(..., description="Host identifier")
    identity: Dict[str, Optional[str]] = Field(
        default_factory=dict, description="Identity field values; empty for host outcomes"
    )
    classification: str = Field(..., description="Diff classification or host status")
    changed_fields: List[str] = Field(default_factory=list, description="Differing payload fields")
    message: str = Field("", description="Host outcome message")
    timestamp: datetime = Field(default_factory=_utcnow, description="When the entry was produced")


class CountRow(BaseModel):
    """Number of entries for one (host, classification) group."""

    host: str
    classification: str
    count: int = Field(..., ge=0)


class DriftReport(BaseModel):
    """Summary of a fleet run."""

    counts: List[CountRow] = Field(default_factory=list, description="Ordered per-host counts")
    totals: Dict[str, int] = Field(default_factory=dict, description="Counts per classification")
    rows: List[ExportRow] = Field(default_factory=list, description="Per-entry detail for export")
    host_count: int = Field(0, description="Number of distinct hosts")
    error_count: int = Field(0, description="Number of error outcomes")
    generated_at: datetime = Field(default_factory=_utcnow, description="Report generation time")

    def has_drift(self) -> bool:
        """Check if any host has added, removed or changed identities."""
        return any(self.totals.get(name, 0) for name in DRIFT_CLASSIFICATIONS)

    def has_errors(self) -> bool:
        return self.error_count > 0

    def get_by_host(self, host: str) -> List[ExportRow]:
        """Get rows for one host (case-insensitive)."""
        folded = host.casefold()
        return [row for row in self.rows if row.host.casefold() == folded]

    def get_by_classification(self, classification: str) -> List[ExportRow]:
        return [row for row in self.rows if row.classification == classification]


SummaryInput = Tuple[str, Union[DiffResult, HostResult]]


class DriftReporter:
    """Builds read-only drift reports.

    Diff entries become one row each. A HostResult becomes a status row
    carrying its message, followed by the rows of its diff when it has one.
    Counts are grouped by (host, classification) and ordered by host, then
    by added, removed, changed, unchanged, success, warning, error.
    """

    def __init__(self, schema: Optional[RecordSchema] = None):
        """Initialize drift reporter.

        Args:
            schema: Record schema naming the identity fields to export
        """
        self.schema = schema or RecordSchema()

    def summarize(self, results: Iterable[SummaryInput]) -> DriftReport:
        """Summarize diffs and host results.

        Args:
            results: ``(host, DiffResult | HostResult)`` pairs in any order

        Returns:
            DriftReport
        """
        rows: List[ExportRow] = []
        for host, item in results:
            if isinstance(item, HostResult):
                rows.extend(self._host_rows(host, item))
            elif isinstance(item, DiffResult):
                rows.extend(self._diff_rows(host, item))
            else:
                raise TypeError(f"Cannot summarize {type(item).__name__}")
        return self.summarize_rows(rows)

    def summarize_results(self, results: Iterable[HostResult]) -> DriftReport:
        """Summarize orchestrator output."""
        return self.summarize((result.host, result) for result in results)

    def summarize_rows(self, rows: Iterable[ExportRow]) -> DriftReport:
        """Aggregate already-built rows, e.g. rows read back from an export."""
        rows = sorted(rows, key=self._row_sort_key)

        grouped: Counter = Counter((row.host, row.classification) for row in rows)
        counts = [
            CountRow(host=host, classification=classification, count=count)
            for (host, classification), count in sorted(
                grouped.items(),
                key=lambda item: (item[0][0].casefold(), classification_rank(item[0][1])),
            )
        ]

        totals = {name: 0 for name in CLASSIFICATION_ORDER}
        for count in counts:
            totals[count.classification] = totals.get(count.classification, 0) + count.count

        report = DriftReport(
            counts=counts,
            totals=totals,
            rows=rows,
            host_count=len({row.host.casefold() for row in rows}),
            error_count=totals.get(HostStatus.ERROR.value, 0),
        )
        logger.debug(f"Report summarized: {report.totals}")
        return report

    def _row_sort_key(self, row: ExportRow):
        identity = tuple(
            (0, "") if row.identity.get(name) is None else (1, row.identity[name].casefold())
            for name in self.schema.identity_fields
        )
        # Host outcomes precede the identities of the same host
        return (row.host.casefold(), bool(row.identity), identity, classification_rank(row.classification))

    def _host_rows(self, host: str, result: HostResult) -> List[ExportRow]:
        rows = [ExportRow(
            host=host,
            classification=result.status.value,
            message=result.message,
            timestamp=result.timestamp,
        )]
        if result.diff is not None:
            rows.extend(self._diff_rows(host, result.diff, result.timestamp))
        return rows

    def _diff_rows(
        self, host: str, diff: DiffResult, timestamp: Optional[datetime] = None
    ) -> List[ExportRow]:
        timestamp = timestamp or _utcnow()
        return [
            ExportRow(
                host=host,
                identity={name: entry.record.identity.get(name) for name in self.schema.identity_fields},
                classification=entry.kind.value,
                changed_fields=list(entry.changed_fields),
                timestamp=timestamp,
            )
            for entry in diff.entries
        ]
