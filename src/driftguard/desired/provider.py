"""Desired-set resolution from a local file, a remote source or built-in definitions."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from driftguard.config.models import DriftGuardConfig
from driftguard.desired.builtin import builtin_set_names, find_builtin
from driftguard.state.models import DesiredSet, DesiredSetSource, RecordSet
from driftguard.utils.errors import (
    DriftGuardError,
    ErrorContext,
    NotFoundError,
    ParseError,
    TransportError,
    error_handler,
)
from driftguard.utils.logging import get_logger
from driftguard.utils.retry import RetryStrategy

logger = get_logger(__name__)

DESIRED_SET_EXTENSION = "json"


class DesiredSetDocument(BaseModel):
    """On-disk/over-the-wire shape of a desired-state set."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    description: str = ""
    records: List[Dict[str, Any]] = Field(default_factory=list)


class DesiredSetProvider:
    """Resolves a named desired set.

    Resolution order is explicit path, remote fetch (falling back to the
    last cached copy of that fetch), then built-in definitions. A source
    that cannot be read falls through to the next one; a source that yields
    content which fails validation stops resolution with an error.
    """

    def __init__(
        self,
        config: DriftGuardConfig,
        session: Optional[requests.Session] = None,
        retry_strategy: Optional[RetryStrategy] = None,
    ):
        """
        Initialize DesiredSetProvider.

        Args:
            config: Run configuration (schema and desired-set settings)
            session: HTTP session for remote fetches
            retry_strategy: Backoff policy for remote fetches
        """
        self.config = config
        self.session = session or requests.Session()
        self.retry_strategy = retry_strategy or RetryStrategy(
            max_retries=config.desired.max_retries
        )
        self.logger = get_logger(__name__)

    def available_builtin_sets(self) -> List[str]:
        """Names of built-in desired sets."""
        return builtin_set_names()

    def resolve(
        self,
        set_name: str,
        explicit_path: Optional[str] = None,
        remote_base: Optional[str] = None,
    ) -> DesiredSet:
        """
        Resolve a desired set.

        Args:
            set_name: Name of the desired set
            explicit_path: Local file to try first
            remote_base: Base URL; defaults to the configured remote base

        Returns:
            Immutable DesiredSet

        Raises:
            NotFoundError: If no source yields content
            ParseError: If the first content found is malformed or violates the schema
            ConflictError: If the first content found has duplicate identities
        """
        remote_base = remote_base or self.config.desired.remote_base
        failures: List[str] = []

        if explicit_path:
            try:
                raw = self._read_file(Path(explicit_path), set_name)
            except (NotFoundError, TransportError) as e:
                self.logger.warning(f"Desired-set file unavailable, trying next source: {e.message}")
                failures.append(f"file: {e.message}")
            else:
                return self._build(raw, set_name, DesiredSetSource.LOCAL_FILE, explicit_path)

        if remote_base:
            url = f"{remote_base.rstrip('/')}/{set_name}.{DESIRED_SET_EXTENSION}"
            try:
                raw = self._fetch_remote(url, set_name)
            except (NotFoundError, TransportError) as e:
                self.logger.warning(f"Remote desired set unavailable: {e.message}")
                failures.append(f"remote: {e.message}")
                cached = self._cache_path(set_name)
                if cached is not None and cached.exists():
                    try:
                        raw = self._read_file(cached, set_name)
                    except (NotFoundError, TransportError) as cache_error:
                        self.logger.warning(f"Cached desired set unreadable: {cache_error.message}")
                        failures.append(f"cache: {cache_error.message}")
                    else:
                        self.logger.warning(f"Using cached copy of '{set_name}' from {cached}")
                        return self._build(raw, set_name, DesiredSetSource.CACHE, str(cached))
            else:
                desired = self._build(raw, set_name, DesiredSetSource.REMOTE, url)
                self._write_cache(set_name, raw)
                return desired

        definition = find_builtin(set_name)
        if definition:
            return self._build_from_data(
                definition, set_name, DesiredSetSource.BUILTIN, "builtin"
            )

        failures.append("builtin: no built-in set with this name")
        raise NotFoundError(
            f"Desired set '{set_name}' could not be resolved",
            context=ErrorContext(set_name=set_name, additional_info={"attempts": failures}),
            suggestions=[
                f"Built-in sets: {', '.join(self.available_builtin_sets())}",
                "Pass --desired-file or --remote-base to use another source",
            ],
        )

    def _read_file(self, path: Path, set_name: str) -> bytes:
        try:
            return path.expanduser().read_bytes()
        except OSError as e:
            raise error_handler.handle_exception(
                e, ErrorContext(set_name=set_name, store_path=str(path), operation="resolve")
            )

    def _fetch_remote(self, url: str, set_name: str) -> bytes:
        timeout = self.config.desired.request_timeout

        def fetch() -> bytes:
            response = self.session.get(url, timeout=timeout)
            response.raise_for_status()
            return response.content

        self.logger.info(f"Fetching desired set '{set_name}' from {url}")
        try:
            return self.retry_strategy.execute_with_retry(fetch)
        except requests.RequestException as e:
            raise error_handler.handle_exception(
                e, ErrorContext(set_name=set_name, store_path=url, operation="resolve")
            )

    def _cache_path(self, set_name: str) -> Optional[Path]:
        cache_dir = self.config.desired.cache_dir
        if not cache_dir:
            return None
        return Path(cache_dir).expanduser() / f"{set_name}.{DESIRED_SET_EXTENSION}"

    def _write_cache(self, set_name: str, raw: bytes) -> None:
        cached = self._cache_path(set_name)
        if cached is None:
            return
        try:
            cached.parent.mkdir(parents=True, exist_ok=True)
            temp_path = cached.with_suffix(".tmp")
            temp_path.write_bytes(raw)
            temp_path.replace(cached)
        except OSError as e:
            # Cache write failures are non-fatal
            self.logger.warning(f"Failed to cache desired set '{set_name}': {e}")

    def _build(
        self, raw: bytes, set_name: str, source: DesiredSetSource, location: str
    ) -> DesiredSet:
        context = ErrorContext(set_name=set_name, store_path=location, operation="resolve")
        try:
            text = raw.decode("utf-8-sig")
            if location.lower().endswith((".yaml", ".yml")):
                data = yaml.safe_load(text)
            else:
                data = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise ParseError(
                f"Malformed desired set '{set_name}' from {location}: {e}",
                context=context,
                cause=e,
            )
        return self._build_from_data(data, set_name, source, location)

    def _build_from_data(
        self, data: Any, set_name: str, source: DesiredSetSource, location: str
    ) -> DesiredSet:
        context = ErrorContext(set_name=set_name, store_path=location, operation="resolve")
        try:
            document = DesiredSetDocument.model_validate(data)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in e.errors()
            )
            raise ParseError(
                f"Invalid desired set '{set_name}' from {location}: {problems}",
                context=context,
                cause=e,
            )

        if document.name.casefold() != set_name.casefold():
            self.logger.warning(
                f"Desired set requested as '{set_name}' declares name '{document.name}'"
            )

        try:
            records = RecordSet.from_entries(
                self.config.record_schema, document.records, strict=True, name=document.name
            )
        except DriftGuardError as e:
            e.context.set_name = set_name
            e.context.store_path = location
            raise

        self.logger.info(
            f"Resolved desired set '{document.name}' ({len(records)} records) from {source.value}"
        )
        return DesiredSet(
            name=document.name,
            description=document.description,
            records=records,
            source=source,
            location=location,
        )
