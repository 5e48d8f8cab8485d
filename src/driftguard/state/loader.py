"""State loader for extracting a host's actual records from its store."""

from dataclasses import dataclass
from typing import Optional

from driftguard.config.models import DriftGuardConfig
from driftguard.state.models import RecordSet
from driftguard.state.store import StoreDocument, StoreFormat
from driftguard.transport.base import HostTransport
from driftguard.utils.errors import DriftGuardError
from driftguard.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoreSnapshot:
    """Point-in-time view of one host's store."""

    host: str
    document: StoreDocument
    records: RecordSet
    raw: bytes
    location: Optional[str] = None


class StateLoader:
    """Reads a host's store and normalizes the managed section into a RecordSet."""

    def __init__(self, config: DriftGuardConfig, transport: HostTransport):
        """
        Initialize StateLoader.

        Args:
            config: Run configuration (schema and store settings)
            transport: Transport used to reach each host
        """
        self.config = config
        self.transport = transport
        self.logger = get_logger(__name__)

    def load(self, host: str) -> RecordSet:
        """
        Load the actual-state RecordSet for a host.

        Raises:
            NotFoundError: If the store or its section is missing
            ParseError: If the store is malformed
            TransportError: If the host cannot be reached
            ConflictError: If two entries share an identity key
        """
        return self.load_snapshot(host).records

    def load_snapshot(self, host: str) -> StoreSnapshot:
        """
        Load the store document, its records and the raw bytes read.

        Raises:
            NotFoundError, ParseError, TransportError, ConflictError
        """
        store = self.config.store
        location = self.transport.location(host)
        raw = self.transport.read_store(host)

        try:
            document = StoreDocument.parse(
                raw,
                StoreFormat.detect(location, store.format),
                store.section,
                indent=store.indent,
                location=location,
            )
            records = RecordSet.from_entries(
                self.config.record_schema, document.entries(), strict=False, name=host
            )
        except DriftGuardError as e:
            e.context.host = host
            e.context.store_path = e.context.store_path or location
            raise

        self.logger.debug(
            f"Loaded {len(records)} record(s) from {location}",
            extra={"host": host, "operation": "collect"},
        )
        return StoreSnapshot(
            host=host, document=document, records=records, raw=raw, location=location
        )
