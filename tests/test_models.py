import pytest
from pydantic import ValidationError

from driftguard.config.models import RecordSchema
from driftguard.state.models import WILDCARD, Record, RecordSet
from driftguard.utils.errors import ConflictError, ParseError

from conftest import entry, record


def test_identity_is_case_insensitive():
    upper = record("Foo.Bar")
    lower = record("foo.bar")

    assert upper.key == lower.key
    assert upper.identity["Namespace"] == "Foo.Bar"


def test_duplicate_identity_raises_conflict():
    with pytest.raises(ConflictError, match="Duplicate identity in baseline"):
        RecordSet([record("Foo.Bar"), record("FOO.BAR", authorized="False")], name="baseline")


def test_absent_identity_field_is_distinct_from_empty(schema):
    absent = Record.from_entry(schema, {"Assembly": "A", "Namespace": "N"})
    empty = Record.from_entry(schema, {"Assembly": "A", "Namespace": "N", "TypeName": ""})

    assert absent.key != empty.key
    assert len(RecordSet([absent, empty])) == 2


def test_wildcard_is_kept_verbatim():
    wildcard = record("System.Workflow.*", "*")

    assert wildcard.identity["TypeName"] == WILDCARD
    assert wildcard.to_entry()["Namespace"] == "System.Workflow.*"


def test_scalar_values_are_normalized(schema):
    converted = Record.from_entry(
        schema, {"Assembly": "A", "Namespace": "N", "TypeName": 7, "Authorized": True}
    )

    assert converted.identity["TypeName"] == "7"
    assert converted.payload["Authorized"] == "True"


def test_non_scalar_value_is_rejected(schema):
    with pytest.raises(ParseError, match="must be a scalar"):
        Record.from_entry(schema, {"Assembly": "A", "Namespace": ["N"], "TypeName": "T"})


def test_non_mapping_entry_is_rejected(schema):
    with pytest.raises(ParseError, match="must be a mapping"):
        Record.from_entry(schema, "System.Guid")


def test_strict_rejects_unknown_fields(schema):
    raw = dict(entry("Foo"), Comment="legacy")

    with pytest.raises(ParseError, match="unknown field"):
        Record.from_entry(schema, raw, strict=True)

    assert Record.from_entry(schema, raw).key == record("Foo").key


def test_strict_rejects_missing_required_fields(schema):
    with pytest.raises(ParseError, match="missing required field\\(s\\): TypeName"):
        Record.from_entry(schema, {"Assembly": "A", "Namespace": "N"}, strict=True)


def test_to_entry_omits_absent_and_empty_values(schema):
    converted = Record.from_entry(schema, {"Assembly": "A", "Namespace": "N", "Authorized": ""})

    assert converted.to_entry() == {"Assembly": "A", "Namespace": "N"}


def test_extended_returns_new_set():
    base = RecordSet([record("One")], name="host1")
    extended = base.extended([record("Two")])

    assert len(base) == 1
    assert len(extended) == 2
    assert extended.name == "host1"


def test_sorted_records_places_absent_values_first(schema):
    absent = Record.from_entry(schema, {"Assembly": "A", "Namespace": "N"})
    present = Record.from_entry(schema, {"Assembly": "A", "Namespace": "N", "TypeName": "T"})

    ordered = RecordSet([present, absent]).sorted_records()

    assert ordered == [absent, present]


def test_schema_rejects_overlapping_fields():
    with pytest.raises(ValidationError):
        RecordSchema(identity_fields=["Name"], payload_fields=["Name"])


def test_schema_rejects_secret_outside_payload():
    with pytest.raises(ValidationError):
        RecordSchema(identity_fields=["Name"], payload_fields=["Value"], secret_fields=["Name"])


def test_schema_required_fields_default_to_identity():
    schema = RecordSchema(identity_fields=["KeyId"], payload_fields=["Secret"], secret_fields=["Secret"])

    assert schema.effective_required_fields == ["KeyId"]
    assert schema.all_fields == ["KeyId", "Secret"]
