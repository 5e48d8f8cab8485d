"""YAML configuration parser for driftguard."""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from .models import DriftGuardConfig


class ConfigValidationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  - {location}: {msg}")

        return "\n".join(error_lines)


class Config:
    """Configuration manager for driftguard."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to driftguard.yaml; defaults are used when None
        """
        self.config_path = Path(config_path) if config_path else None
        self.data: Dict = {}
        self.settings: DriftGuardConfig = DriftGuardConfig()

    def load(self) -> "Config":
        """Load and validate configuration from YAML file.

        Returns:
            Self for method chaining

        Raises:
            ConfigValidationError: If configuration is invalid
            FileNotFoundError: If configuration file doesn't exist
        """
        if self.config_path is None:
            self.settings = DriftGuardConfig()
            return self

        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                self.data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        if not isinstance(self.data, dict):
            raise ConfigValidationError("Configuration root must be a mapping")

        validation_errors = self.validate()
        if validation_errors:
            raise ConfigValidationError(
                f"Configuration validation failed with {len(validation_errors)} error(s)",
                validation_errors,
            )

        self.settings = DriftGuardConfig.model_validate(self.data)
        return self

    def validate(self) -> List[Dict]:
        """Validate configuration against schema.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        try:
            DriftGuardConfig.model_validate(self.data)
        except ValidationError as e:
            for error in e.errors():
                errors.append({"loc": list(error["loc"]), "msg": error["msg"]})
        return errors

    def with_overrides(self, **sections: Dict) -> DriftGuardConfig:
        """Return settings with per-section overrides applied.

        Keys with a ``None`` value are ignored so unset CLI flags do not
        clobber file values.

        Args:
            **sections: Mapping of section name (store, fleet, desired, logging) to field updates

        Returns:
            New validated DriftGuardConfig

        Raises:
            ConfigValidationError: If the overridden values are invalid
        """
        data = self.settings.model_dump(by_alias=True)
        for section, updates in sections.items():
            for key, value in (updates or {}).items():
                if value is not None:
                    data[section][key] = value

        try:
            return DriftGuardConfig.model_validate(data)
        except ValidationError as e:
            raise ConfigValidationError(
                "Invalid command-line override",
                [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()],
            )

    def to_dict(self) -> Dict:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation of configuration
        """
        return self.settings.model_dump(by_alias=True)
