"""Structured configuration store documents (JSON or YAML)."""

import copy
import json
from enum import Enum
from typing import Any, Dict, List, Optional

import yaml

from driftguard.utils.errors import ErrorContext, NotFoundError, ParseError


class StoreFormat(Enum):
    """Supported store encodings."""
    JSON = "json"
    YAML = "yaml"

    @classmethod
    def detect(cls, location: str, configured: Optional[str] = None) -> "StoreFormat":
        """Pick a format from configuration or the file extension."""
        if configured:
            return cls(configured)
        lowered = location.lower()
        if lowered.endswith((".yaml", ".yml")):
            return cls.YAML
        return cls.JSON


class StoreDocument:
    """In-memory representation of a host's configuration store.

    Only the list found at ``section`` is managed. Everything else in the
    document, including unknown fields on existing entries, is written back
    untouched.
    """

    def __init__(
        self,
        data: Dict[str, Any],
        fmt: StoreFormat,
        section: str,
        indent: int = 2,
        location: Optional[str] = None,
    ):
        self.data = data
        self.format = fmt
        self.section = section
        self.indent = indent
        self.location = location

    @classmethod
    def parse(
        cls,
        raw: bytes,
        fmt: StoreFormat,
        section: str,
        indent: int = 2,
        location: Optional[str] = None,
    ) -> "StoreDocument":
        """
        Parse raw store bytes.

        Raises:
            ParseError: If the text is malformed or the root is not a mapping
        """
        context = ErrorContext(store_path=location, operation="parse")
        try:
            text = raw.decode("utf-8-sig")
            if fmt == StoreFormat.JSON:
                data = json.loads(text) if text.strip() else {}
            else:
                data = yaml.safe_load(text) or {}
        except UnicodeDecodeError as e:
            raise ParseError(f"Store is not valid UTF-8: {e}", context=context, cause=e)
        except json.JSONDecodeError as e:
            raise ParseError(f"Malformed JSON store: {e}", context=context, cause=e)
        except yaml.YAMLError as e:
            raise ParseError(f"Malformed YAML store: {e}", context=context, cause=e)

        if not isinstance(data, dict):
            raise ParseError(
                f"Store root must be a mapping, got {type(data).__name__}", context=context
            )
        return cls(data, fmt, section, indent=indent, location=location)

    def _parent_and_leaf(self):
        parts = self.section.split(".")
        current: Any = self.data
        for part in parts[:-1]:
            if not isinstance(current, dict) or part not in current:
                raise NotFoundError(
                    f"Section '{self.section}' not found in store",
                    context=ErrorContext(store_path=self.location),
                )
            current = current[part]
        if not isinstance(current, dict) or parts[-1] not in current:
            raise NotFoundError(
                f"Section '{self.section}' not found in store",
                context=ErrorContext(store_path=self.location),
            )
        return current, parts[-1]

    def entries(self) -> List[Any]:
        """
        Get the managed entries.

        Returns:
            Entries at the section path; an empty or null section yields []

        Raises:
            NotFoundError: If the section path does not exist
            ParseError: If the section is not a list
        """
        parent, leaf = self._parent_and_leaf()
        value = parent[leaf]
        if value is None:
            return []
        if not isinstance(value, list):
            raise ParseError(
                f"Section '{self.section}' must hold a list, got {type(value).__name__}",
                context=ErrorContext(store_path=self.location),
            )
        return value

    def append_entries(self, new_entries: List[Dict[str, str]]) -> None:
        """Append entries to the managed section in order."""
        parent, leaf = self._parent_and_leaf()
        if parent[leaf] is None:
            parent[leaf] = []
        self.entries().extend(copy.deepcopy(new_entries))

    def copy(self) -> "StoreDocument":
        """Deep copy so mutations never touch a loaded snapshot."""
        return StoreDocument(
            copy.deepcopy(self.data),
            self.format,
            self.section,
            indent=self.indent,
            location=self.location,
        )

    def serialize(self) -> bytes:
        """Serialize the full document."""
        if self.format == StoreFormat.JSON:
            text = json.dumps(self.data, indent=self.indent or None, ensure_ascii=False) + "\n"
        else:
            text = yaml.safe_dump(
                self.data, sort_keys=False, default_flow_style=False, allow_unicode=True
            )
        return text.encode("utf-8")
