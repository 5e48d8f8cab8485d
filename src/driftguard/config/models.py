"""Pydantic models for configuration schema."""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RecordSchema(BaseModel):
    """Field schema for the managed record type.

    Identity fields decide whether two records denote the same entity and are
    compared case-insensitively. Payload fields carry values (possibly secret)
    that are compared exactly.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field("authorized-type", min_length=1, description="Record type name")
    identity_fields: List[str] = Field(
        default_factory=lambda: ["Assembly", "Namespace", "TypeName"],
        min_length=1,
        description="Ordered identity key fields",
    )
    payload_fields: List[str] = Field(
        default_factory=lambda: ["Authorized"], description="Non-identity value fields"
    )
    required_fields: Optional[List[str]] = Field(
        None, description="Fields every desired record must carry (defaults to identity fields)"
    )
    secret_fields: List[str] = Field(
        default_factory=list, description="Payload fields masked when displayed"
    )

    @field_validator("identity_fields", "payload_fields")
    @classmethod
    def validate_unique(cls, v: List[str]) -> List[str]:
        """Reject empty or repeated field names."""
        seen = set()
        for name in v:
            if not name or not name.strip():
                raise ValueError("Field names must be non-empty strings")
            if name in seen:
                raise ValueError(f"Field '{name}' is declared more than once")
            seen.add(name)
        return v

    @model_validator(mode="after")
    def validate_field_sets(self):
        """Validate that the field groups are consistent."""
        overlap = set(self.identity_fields) & set(self.payload_fields)
        if overlap:
            raise ValueError(
                f"Fields cannot be both identity and payload: {', '.join(sorted(overlap))}"
            )
        declared = set(self.identity_fields) | set(self.payload_fields)
        for name in self.required_fields or []:
            if name not in declared:
                raise ValueError(f"Required field '{name}' is not a declared field")
        for name in self.secret_fields:
            if name not in self.payload_fields:
                raise ValueError(f"Secret field '{name}' must be a payload field")
        return self

    @property
    def all_fields(self) -> List[str]:
        """Identity fields followed by payload fields."""
        return list(self.identity_fields) + list(self.payload_fields)

    @property
    def effective_required_fields(self) -> List[str]:
        """Required fields, defaulting to the identity fields."""
        if self.required_fields is None:
            return list(self.identity_fields)
        return list(self.required_fields)


class StoreSettings(BaseModel):
    """Where and how each host's configuration store is read."""

    model_config = ConfigDict(extra="forbid")

    path_template: Optional[str] = Field(
        None, description="Store path with a {host} placeholder, e.g. /mnt/{host}/app/settings.json"
    )
    format: Optional[str] = Field(
        None, pattern="^(json|yaml)$", description="Store format; inferred from extension when unset"
    )
    section: str = Field(
        "configuration.authorizedTypes",
        min_length=1,
        description="Dotted path to the list of managed entries",
    )
    indent: int = Field(2, ge=0, le=8, description="Indentation used when writing JSON stores")

    @field_validator("path_template")
    @classmethod
    def validate_path_template(cls, v: Optional[str]) -> Optional[str]:
        """Require the {host} placeholder."""
        if v is not None and "{host}" not in v:
            raise ValueError("path_template must contain the {host} placeholder")
        return v


class FleetSettings(BaseModel):
    """Fan-out settings."""

    model_config = ConfigDict(extra="forbid")

    hosts: List[str] = Field(default_factory=list)
    concurrency: int = Field(8, ge=1, le=256)
    timeout: Optional[float] = Field(None, gt=0, description="Overall run timeout in seconds")


class DesiredSettings(BaseModel):
    """Desired-set resolution settings."""

    model_config = ConfigDict(extra="forbid")

    remote_base: Optional[str] = Field(None, description="Base URL serving {set}.json documents")
    cache_dir: Optional[str] = Field(".driftguard/cache", description="Write-through cache for remote sets")
    request_timeout: float = Field(10.0, gt=0)
    max_retries: int = Field(3, ge=0, le=10)

    @field_validator("remote_base")
    @classmethod
    def validate_remote_base(cls, v: Optional[str]) -> Optional[str]:
        """Validate remote base URL scheme."""
        if v is not None and not v.startswith(("http://", "https://")):
            raise ValueError(f"remote_base must be an http(s) URL: {v}")
        return v


class LoggingSettings(BaseModel):
    """Logging settings."""

    model_config = ConfigDict(extra="forbid")

    level: str = Field("info", pattern="^(debug|info|warning|error)$")
    log_dir: Optional[str] = None


class DriftGuardConfig(BaseModel):
    """Top-level configuration passed to every component."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    record_schema: RecordSchema = Field(default_factory=RecordSchema, alias="schema")
    store: StoreSettings = Field(default_factory=StoreSettings)
    fleet: FleetSettings = Field(default_factory=FleetSettings)
    desired: DesiredSettings = Field(default_factory=DesiredSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
