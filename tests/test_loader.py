import pytest

from driftguard.config.models import DriftGuardConfig, StoreSettings
from driftguard.state.loader import StateLoader
from driftguard.transport.local import LocalTransport
from driftguard.utils.errors import ConflictError, NotFoundError, ParseError, TransportError

from conftest import R1, R2, entry


def test_load_returns_records(config, transport, fleet):
    fleet.write("web01", [R1, R2])

    records = StateLoader(config, transport).load("web01")

    assert len(records) == 2
    assert records.name == "web01"


def test_snapshot_keeps_raw_bytes_and_document(config, transport, fleet):
    path = fleet.write("web01", [R1])

    snapshot = StateLoader(config, transport).load_snapshot("web01")

    assert snapshot.raw == path.read_bytes()
    assert snapshot.location == str(path)
    assert snapshot.document.data["appSettings"] == {"mode": "production"}


@pytest.mark.parametrize("section", [[], None])
def test_empty_section_yields_empty_set(config, transport, fleet, section):
    fleet.write("web01", section)

    assert len(StateLoader(config, transport).load("web01")) == 0


def test_missing_section_is_not_found(config, transport, fleet):
    fleet.write_raw("web01", b'{"configuration": {}}')

    with pytest.raises(NotFoundError) as exc_info:
        StateLoader(config, transport).load("web01")

    assert exc_info.value.context.host == "web01"


def test_malformed_store_is_parse_error(config, transport, fleet):
    fleet.write_raw("web01", b'{"configuration": ')

    with pytest.raises(ParseError) as exc_info:
        StateLoader(config, transport).load("web01")

    assert exc_info.value.context.store_path == str(fleet.path("web01"))


def test_section_must_be_a_list(config, transport, fleet):
    fleet.write_raw("web01", b'{"configuration": {"authorizedTypes": {"Namespace": "x"}}}')

    with pytest.raises(ParseError, match="must hold a list"):
        StateLoader(config, transport).load("web01")


def test_unreachable_host_is_transport_error(config, transport):
    with pytest.raises(TransportError, match="unreachable"):
        StateLoader(config, transport).load("offline")


def test_missing_store_file_is_not_found(config, transport, fleet):
    (fleet.root / "web02").mkdir()

    with pytest.raises(NotFoundError, match="Store not found"):
        StateLoader(config, transport).load("web02")


def test_unknown_fields_on_actual_entries_are_ignored(config, transport, fleet):
    fleet.write("web01", [dict(R1, Comment="added by hand")])

    [loaded] = StateLoader(config, transport).load("web01").records()

    assert loaded.to_entry() == R1


def test_duplicate_actual_entries_conflict(config, transport, fleet):
    fleet.write("web01", [entry("Foo.Bar"), entry("FOO.BAR")])

    with pytest.raises(ConflictError):
        StateLoader(config, transport).load("web01")


def test_utf8_bom_is_accepted(config, transport, fleet):
    fleet.write_raw("web01", b'\xef\xbb\xbf{"configuration": {"authorizedTypes": []}}')

    assert len(StateLoader(config, transport).load("web01")) == 0


def test_yaml_store(fleet):
    template = str(fleet.root / "{host}" / "web.yaml")
    path = fleet.root / "web01" / "web.yaml"
    path.parent.mkdir()
    path.write_text(
        "configuration:\n"
        "  authorizedTypes:\n"
        "    - Assembly: A\n"
        "      Namespace: N\n"
        "      TypeName: '*'\n"
        "      Authorized: true\n",
        encoding="utf-8",
    )
    config = DriftGuardConfig(store=StoreSettings(path_template=template))

    [loaded] = StateLoader(config, LocalTransport(template)).load("web01").records()

    assert loaded.identity["TypeName"] == "*"
    assert loaded.payload["Authorized"] == "True"


def test_custom_section_path(fleet, transport):
    fleet.write_raw(
        "web01",
        b'{"system": {"workflow": {"types": [{"Assembly": "A", "Namespace": "N", "TypeName": "T"}]}}}',
    )
    config = DriftGuardConfig(
        store=StoreSettings(path_template=fleet.template, section="system.workflow.types")
    )

    assert len(StateLoader(config, transport).load("web01")) == 1
