from datetime import datetime, timezone

import pytest

from driftguard.engine.applier import PatchApplier, WriteIntent, backup_name
from driftguard.engine.diff import DiffEngine
from driftguard.engine.planner import ReconciliationPlanner
from driftguard.engine.results import ApplyPhase, HostStatus
from driftguard.state.loader import StateLoader
from driftguard.state.models import RecordSet
from driftguard.transport.local import LocalTransport
from driftguard.utils.errors import WriteError

from conftest import R1, R2, R3, R4

FIXED_TIME = datetime(2024, 3, 5, 14, 30, 15, 123456, tzinfo=timezone.utc)


class FailingWriteTransport(LocalTransport):
    def write_store(self, host, data):
        raise WriteError(f"Disk full writing store for {host}")


def _plan(config, transport, host, desired_entries):
    snapshot = StateLoader(config, transport).load_snapshot(host)
    desired = RecordSet.from_entries(config.record_schema, desired_entries)
    diff = DiffEngine().diff(desired, snapshot.records, host=host)
    return snapshot, ReconciliationPlanner().plan(diff)


def test_backup_name_is_sortable():
    assert backup_name("/srv/web01/web.json", FIXED_TIME) == "web.json.20240305T143015123456Z.bak"


def test_apply_appends_records_and_keeps_backup(config, transport, fleet):
    original = fleet.write("web01", [R1, R4]).read_bytes()
    snapshot, plan = _plan(config, transport, "web01", [R1, R2, R3])

    result = PatchApplier(transport, clock=lambda: FIXED_TIME).apply("web01", plan, snapshot)

    assert result.status == HostStatus.SUCCESS
    assert result.applied_count == 2
    assert result.phase == ApplyPhase.APPLIED
    assert fleet.entries("web01") == [R1, R4, R2, R3]
    assert fleet.read("web01")["appSettings"] == {"mode": "production"}

    [backup] = fleet.backups("web01")
    assert backup.name == "web.json.20240305T143015123456Z.bak"
    assert backup.read_bytes() == original
    assert result.backup.backup_path == str(backup)
    assert result.backup.verified
    assert result.backup.size == len(original)


def test_reapply_is_a_noop(config, transport, fleet):
    fleet.write("web01", [R1, R4])
    applier = PatchApplier(transport)
    snapshot, plan = _plan(config, transport, "web01", [R1, R2, R3])
    applier.apply("web01", plan, snapshot)

    snapshot, plan = _plan(config, transport, "web01", [R1, R2, R3])
    result = applier.apply("web01", plan, snapshot)

    assert plan.is_empty()
    assert result.status == HostStatus.SUCCESS
    assert result.applied_count == 0
    assert result.backup is None
    assert len(fleet.backups("web01")) == 1


def test_dry_run_writes_nothing(config, transport, fleet):
    original = fleet.write("web01", [R1]).read_bytes()
    snapshot, plan = _plan(config, transport, "web01", [R1, R2])

    result = PatchApplier(transport).apply("web01", plan, snapshot, dry_run=True)

    assert result.operation == "preview"
    assert result.status == HostStatus.SUCCESS
    assert len(result.projected) == 2
    assert result.backup is None
    assert fleet.path("web01").read_bytes() == original
    assert fleet.backups("web01") == []


def test_write_failure_retains_backup(config, fleet):
    original = fleet.write("web01", [R1]).read_bytes()
    transport = FailingWriteTransport(fleet.template)
    snapshot, plan = _plan(config, transport, "web01", [R1, R2])

    result = PatchApplier(transport).apply("web01", plan, snapshot)

    assert result.status == HostStatus.ERROR
    assert result.phase == ApplyPhase.FAILED
    assert isinstance(result.error, WriteError)
    assert fleet.path("web01").read_bytes() == original
    [backup] = fleet.backups("web01")
    assert result.backup.backup_path == str(backup)
    assert backup.read_bytes() == original


def test_store_changed_after_load_is_refused(config, transport, fleet):
    fleet.write("web01", [R1])
    snapshot, plan = _plan(config, transport, "web01", [R1, R2])
    fleet.write("web01", [R1, R3])

    result = PatchApplier(transport).apply("web01", plan, snapshot)

    assert result.status == HostStatus.ERROR
    assert "changed after it was read" in result.message
    assert result.backup is None
    assert fleet.backups("web01") == []
    assert fleet.entries("web01") == [R1, R3]


def test_write_intent_backs_up_before_block(transport, fleet):
    original = fleet.write("web01", [R1]).read_bytes()

    with pytest.raises(RuntimeError):
        with WriteIntent(transport, "web01", original, clock=lambda: FIXED_TIME) as intent:
            assert fleet.backups("web01")
            raise RuntimeError("interrupted")

    assert intent.artifact.verified
    assert fleet.backups("web01")[0].read_bytes() == original


def test_null_section_is_created_on_apply(config, transport, fleet):
    fleet.write("web01", None)
    snapshot, plan = _plan(config, transport, "web01", [R1])

    PatchApplier(transport).apply("web01", plan, snapshot)

    assert fleet.entries("web01") == [R1]
