"""Drift reports and export artifacts."""

from driftguard.reporting.reporter import (
    CLASSIFICATION_ORDER,
    CountRow,
    DriftReport,
    DriftReporter,
    ExportRow,
    mask_value,
)
from driftguard.reporting.export import export_columns, read_rows, write_rows

__all__ = [
    'CLASSIFICATION_ORDER',
    'CountRow',
    'DriftReport',
    'DriftReporter',
    'ExportRow',
    'export_columns',
    'mask_value',
    'read_rows',
    'write_rows',
]
