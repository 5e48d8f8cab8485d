"""Diff engine classifying desired vs actual records."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple

from driftguard.state.models import IdentityKey, Record, RecordSet, key_sort_value
from driftguard.utils.logging import get_logger

logger = get_logger(__name__)


class DiffKind(Enum):
    """Classification of one identity."""
    ADDED = "added"  # Desired but not present on the host
    REMOVED = "removed"  # Present on the host but not desired
    UNCHANGED = "unchanged"
    CHANGED = "changed"  # Present on both, payload differs


@dataclass(frozen=True)
class DiffEntry:
    """Classified difference for a single identity."""

    kind: DiffKind
    key: IdentityKey
    desired: Optional[Record] = None
    actual: Optional[Record] = None
    changed_fields: Tuple[str, ...] = ()

    @property
    def record(self) -> Record:
        """The desired record, or the actual one for removed entries."""
        return self.desired if self.desired is not None else self.actual

    @property
    def label(self) -> str:
        return self.record.label


@dataclass(frozen=True)
class DiffResult:
    """Entries covering the union of both inputs' identities, sorted by key."""

    entries: Tuple[DiffEntry, ...] = ()
    host: Optional[str] = None

    def by_kind(self, kind: DiffKind) -> List[DiffEntry]:
        """Get entries of one classification."""
        return [entry for entry in self.entries if entry.kind == kind]

    def added(self) -> List[DiffEntry]:
        return self.by_kind(DiffKind.ADDED)

    def removed(self) -> List[DiffEntry]:
        return self.by_kind(DiffKind.REMOVED)

    def unchanged(self) -> List[DiffEntry]:
        return self.by_kind(DiffKind.UNCHANGED)

    def changed(self) -> List[DiffEntry]:
        return self.by_kind(DiffKind.CHANGED)

    def keys(self) -> List[IdentityKey]:
        return [entry.key for entry in self.entries]

    def counts(self) -> Dict[str, int]:
        """Count entries per classification (every kind present, zero included)."""
        counts = {kind.value: 0 for kind in DiffKind}
        for entry in self.entries:
            counts[entry.kind.value] += 1
        return counts

    def has_drift(self) -> bool:
        """Check if any identity is not unchanged."""
        return any(entry.kind != DiffKind.UNCHANGED for entry in self.entries)

    def __len__(self) -> int:
        return len(self.entries)


def _payload_value(record: Record, field_name: str) -> Optional[str]:
    # Empty payloads are omitted when written, so "" and absent compare equal
    return record.payload.get(field_name) or None


class DiffEngine:
    """Computes a classified difference between two RecordSets.

    Identity keys are already case-folded by the records; payload fields are
    compared with exact string equality.
    """

    def diff(
        self, desired: RecordSet, actual: RecordSet, host: Optional[str] = None
    ) -> DiffResult:
        """Classify every identity in ``keys(desired) | keys(actual)``.

        Args:
            desired: Desired-state records
            actual: Actual-state records from a host
            host: Host the actual records came from

        Returns:
            DiffResult sorted by identity key
        """
        union = set(desired.keys()) | set(actual.keys())
        entries = []

        for key in sorted(union, key=key_sort_value):
            desired_record = desired.get(key)
            actual_record = actual.get(key)

            if actual_record is None:
                entries.append(DiffEntry(DiffKind.ADDED, key, desired=desired_record))
            elif desired_record is None:
                entries.append(DiffEntry(DiffKind.REMOVED, key, actual=actual_record))
            else:
                changed = self._changed_fields(desired_record, actual_record)
                kind = DiffKind.CHANGED if changed else DiffKind.UNCHANGED
                entries.append(
                    DiffEntry(
                        kind,
                        key,
                        desired=desired_record,
                        actual=actual_record,
                        changed_fields=changed,
                    )
                )

        result = DiffResult(entries=tuple(entries), host=host)
        logger.debug(f"Diff computed: {result.counts()}", extra={"host": host} if host else None)
        return result

    def _changed_fields(self, desired: Record, actual: Record) -> Tuple[str, ...]:
        fields = list(desired.payload)
        fields.extend(name for name in actual.payload if name not in desired.payload)
        return tuple(
            name
            for name in fields
            if _payload_value(desired, name) != _payload_value(actual, name)
        )
