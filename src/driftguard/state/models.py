"""Record data models with case-insensitive identity."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from driftguard.config.models import RecordSchema
from driftguard.utils.errors import ConflictError, ErrorContext, ParseError

IdentityKey = Tuple[Optional[str], ...]

WILDCARD = "*"


def fold(value: Optional[str]) -> Optional[str]:
    """Case-fold an identity value, keeping absent values distinct from empty ones."""
    return None if value is None else value.casefold()


def key_sort_value(key: IdentityKey) -> Tuple[Tuple[int, str], ...]:
    """Total ordering for identity keys; absent values sort first."""
    return tuple((0, "") if v is None else (1, v) for v in key)


def normalize_value(field_name: str, value: Any) -> Optional[str]:
    """Normalize a scalar field value read from a structured document.

    Raises:
        ParseError: If the value is not a scalar
    """
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "True" if value else "False"
    if isinstance(value, (int, float)):
        return str(value)
    raise ParseError(
        f"Field '{field_name}' must be a scalar value, got {type(value).__name__}"
    )


class Record(BaseModel):
    """A single managed configuration entry."""

    model_config = ConfigDict(frozen=True)

    identity: Dict[str, Optional[str]] = Field(..., description="Ordered identity fields")
    payload: Dict[str, Optional[str]] = Field(
        default_factory=dict, description="Non-identity value fields"
    )

    @property
    def key(self) -> IdentityKey:
        """Case-insensitive identity key."""
        return tuple(fold(v) for v in self.identity.values())

    @property
    def sort_key(self) -> Tuple[Tuple[int, str], ...]:
        """Deterministic ordering key."""
        return key_sort_value(self.key)

    @property
    def label(self) -> str:
        """Readable identity, e.g. ``System.Workflow/System.Workflow/*``."""
        return "/".join("<absent>" if v is None else v for v in self.identity.values())

    def get(self, field_name: str) -> Optional[str]:
        """Get an identity or payload value by field name."""
        if field_name in self.identity:
            return self.identity[field_name]
        return self.payload.get(field_name)

    def to_entry(self) -> Dict[str, str]:
        """Convert to a document entry; absent fields and empty payloads are omitted."""
        entry = {name: value for name, value in self.identity.items() if value is not None}
        entry.update({name: value for name, value in self.payload.items() if value})
        return entry

    @classmethod
    def from_entry(
        cls, schema: RecordSchema, entry: Any, strict: bool = False
    ) -> "Record":
        """Build a Record from a raw document entry.

        Args:
            schema: Field schema for the managed record type
            entry: Raw mapping read from a document
            strict: Reject unknown fields and missing required fields (desired sets)

        Returns:
            Normalized Record

        Raises:
            ParseError: If the entry is not a mapping or violates the schema
        """
        if not isinstance(entry, dict):
            raise ParseError(f"Record entry must be a mapping, got {type(entry).__name__}")

        if strict:
            problems = []
            declared = set(schema.all_fields)
            unknown = [name for name in entry if name not in declared]
            if unknown:
                problems.append(f"unknown field(s): {', '.join(sorted(map(str, unknown)))}")
            missing = [
                name for name in schema.effective_required_fields if entry.get(name) is None
            ]
            if missing:
                problems.append(f"missing required field(s): {', '.join(missing)}")
            if problems:
                raise ParseError(
                    f"Record {entry!r} violates schema '{schema.name}': {'; '.join(problems)}"
                )

        identity = {
            name: normalize_value(name, entry.get(name)) for name in schema.identity_fields
        }
        payload = {
            name: normalize_value(name, entry.get(name)) for name in schema.payload_fields
        }
        return cls(identity=identity, payload=payload)


class RecordSet:
    """Mapping from identity key to Record; keys are unique."""

    def __init__(self, records: Iterable[Record] = (), name: Optional[str] = None):
        """
        Initialize RecordSet.

        Args:
            records: Records to add in order
            name: Label used in conflict messages (host or set name)

        Raises:
            ConflictError: If two records share an identity key
        """
        self.name = name
        self._records: Dict[IdentityKey, Record] = {}
        for record in records:
            self.add(record)

    def add(self, record: Record) -> None:
        """Add a record, rejecting duplicate identities."""
        existing = self._records.get(record.key)
        if existing is not None:
            where = f" in {self.name}" if self.name else ""
            raise ConflictError(
                f"Duplicate identity{where}: '{record.label}' collides with '{existing.label}'",
                context=ErrorContext(additional_info={"key": list(record.key)}),
            )
        self._records[record.key] = record

    def get(self, key: IdentityKey) -> Optional[Record]:
        """Get a record by identity key."""
        return self._records.get(key)

    def keys(self) -> List[IdentityKey]:
        """Identity keys in insertion order."""
        return list(self._records.keys())

    def records(self) -> List[Record]:
        """Records in insertion order."""
        return list(self._records.values())

    def sorted_records(self) -> List[Record]:
        """Records sorted by identity key."""
        return sorted(self._records.values(), key=lambda r: r.sort_key)

    def extended(self, records: Iterable[Record]) -> "RecordSet":
        """Return a new RecordSet with the given records appended."""
        return RecordSet(list(self._records.values()) + list(records), name=self.name)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"RecordSet(name={self.name!r}, size={len(self)})"

    @classmethod
    def from_entries(
        cls,
        schema: RecordSchema,
        entries: Iterable[Any],
        strict: bool = False,
        name: Optional[str] = None,
    ) -> "RecordSet":
        """Build a RecordSet from raw document entries.

        Raises:
            ParseError: If an entry violates the schema
            ConflictError: If two entries share an identity key
        """
        return cls((Record.from_entry(schema, entry, strict=strict) for entry in entries), name=name)


class DesiredSetSource(Enum):
    """Where a desired set was resolved from."""
    LOCAL_FILE = "local_file"
    REMOTE = "remote"
    CACHE = "cache"
    BUILTIN = "builtin"


@dataclass(frozen=True)
class DesiredSet:
    """Named desired-state set with provenance; immutable once loaded."""

    name: str
    description: str
    records: RecordSet
    source: DesiredSetSource
    location: Optional[str] = None

    def __len__(self) -> int:
        return len(self.records)
