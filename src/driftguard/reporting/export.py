"""Export artifact read/write (JSON array or CSV, picked by extension)."""

import csv
import json
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from pydantic import ValidationError

from driftguard.config.models import RecordSchema
from driftguard.reporting.reporter import ExportRow
from driftguard.utils.errors import ErrorContext, NotFoundError, ParseError, WriteError
from driftguard.utils.logging import get_logger

logger = get_logger(__name__)

FIXED_COLUMNS = ["classification", "changed_fields", "message", "timestamp"]
CHANGED_FIELDS_SEPARATOR = ";"


def export_columns(schema: RecordSchema) -> List[str]:
    """Column order: host, identity fields, then the fixed columns."""
    return ["host", *schema.identity_fields, *FIXED_COLUMNS]


def _is_csv(path: Path) -> bool:
    return path.suffix.lower() == ".csv"


def _flatten(row: ExportRow, schema: RecordSchema, for_csv: bool) -> Dict:
    flat = {"host": row.host}
    for name in schema.identity_fields:
        value = row.identity.get(name)
        flat[name] = "" if (for_csv and value is None) else value
    flat["classification"] = row.classification
    flat["changed_fields"] = (
        CHANGED_FIELDS_SEPARATOR.join(row.changed_fields) if for_csv else list(row.changed_fields)
    )
    flat["message"] = row.message
    flat["timestamp"] = row.timestamp.isoformat()
    return flat


def write_rows(rows: Iterable[ExportRow], path: str, schema: Optional[RecordSchema] = None) -> Path:
    """Write export rows to ``path``.

    Args:
        rows: Rows to export
        path: Output file; ``.csv`` selects CSV, anything else JSON
        schema: Record schema naming the identity columns

    Returns:
        Path written

    Raises:
        WriteError: If the file cannot be written
    """
    schema = schema or RecordSchema()
    output = Path(path).expanduser()
    columns = export_columns(schema)
    rows = list(rows)

    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        temp_path = output.with_name(f".{output.name}.tmp")
        with open(temp_path, "w", encoding="utf-8", newline="") as f:
            if _is_csv(output):
                writer = csv.DictWriter(f, fieldnames=columns)
                writer.writeheader()
                for row in rows:
                    writer.writerow(_flatten(row, schema, for_csv=True))
            else:
                json.dump([_flatten(row, schema, for_csv=False) for row in rows], f, indent=2)
                f.write("\n")
        os.replace(temp_path, output)
    except OSError as e:
        raise WriteError(
            f"Failed to write export {output}: {e}",
            context=ErrorContext(store_path=str(output), operation="export"),
            cause=e,
        )

    logger.info(f"Exported {len(rows)} row(s) to {output}")
    return output


def read_rows(path: str, schema: Optional[RecordSchema] = None) -> List[ExportRow]:
    """Read export rows written by :func:`write_rows`.

    Empty CSV identity cells are read back as absent values.

    Raises:
        NotFoundError: If the file does not exist
        ParseError: If the file is malformed
    """
    schema = schema or RecordSchema()
    source = Path(path).expanduser()
    context = ErrorContext(store_path=str(source), operation="report")

    try:
        with open(source, "r", encoding="utf-8-sig", newline="") as f:
            if _is_csv(source):
                raw_rows = list(csv.DictReader(f))
            else:
                raw_rows = json.load(f)
    except FileNotFoundError as e:
        raise NotFoundError(f"Export file not found: {source}", context=context, cause=e)
    except (json.JSONDecodeError, csv.Error, UnicodeDecodeError) as e:
        raise ParseError(f"Malformed export file {source}: {e}", context=context, cause=e)

    if not isinstance(raw_rows, list):
        raise ParseError(f"Export file {source} must contain a list of rows", context=context)

    rows = []
    for index, raw in enumerate(raw_rows, start=1):
        if not isinstance(raw, dict):
            raise ParseError(f"Row {index} in {source} is not an object", context=context)
        try:
            rows.append(_unflatten(raw, schema, from_csv=_is_csv(source)))
        except ValidationError as e:
            raise ParseError(f"Invalid row {index} in {source}: {e}", context=context, cause=e)
    return rows


def _unflatten(raw: Dict, schema: RecordSchema, from_csv: bool = False) -> ExportRow:
    identity = {name: raw.get(name) for name in schema.identity_fields}
    if from_csv:
        # CSV cannot tell an empty cell from an absent value
        identity = {name: value or None for name, value in identity.items()}
    if not any(value is not None for value in identity.values()):
        identity = {}

    changed = raw.get("changed_fields") or []
    if isinstance(changed, str):
        changed = [name for name in changed.split(CHANGED_FIELDS_SEPARATOR) if name]

    data = {
        "host": raw.get("host"),
        "identity": identity,
        "classification": raw.get("classification"),
        "changed_fields": changed,
        "message": raw.get("message") or "",
    }
    if raw.get("timestamp"):
        data["timestamp"] = raw["timestamp"]
    return ExportRow.model_validate(data)
