"""Configuration management for driftguard."""

from .models import (
    RecordSchema,
    StoreSettings,
    FleetSettings,
    DesiredSettings,
    LoggingSettings,
    DriftGuardConfig,
)
from .parser import Config, ConfigValidationError

__all__ = [
    "RecordSchema",
    "StoreSettings",
    "FleetSettings",
    "DesiredSettings",
    "LoggingSettings",
    "DriftGuardConfig",
    "Config",
    "ConfigValidationError",
]
