from driftguard.engine.diff import DiffEngine
from driftguard.engine.planner import OperationType, ReconciliationPlanner
from driftguard.state.models import RecordSet

from conftest import R1, R2, R3, R4, record, record_set


def test_plan_adds_only_missing_records(schema):
    desired = RecordSet.from_entries(schema, [R1, R2, R3])
    actual = RecordSet.from_entries(schema, [R1, R4])

    plan = ReconciliationPlanner().plan(DiffEngine().diff(desired, actual, host="web01"))

    assert [op.op_type for op in plan.operations] == [OperationType.ADD, OperationType.ADD]
    assert [r.identity["Namespace"] for r in plan.records()] == ["Contoso.Rules", "Contoso.Serialization"]
    assert plan.host == "web01"


def test_removed_and_changed_are_never_planned():
    desired = record_set(record("Changed", authorized="True"))
    actual = record_set(record("Changed", authorized="False"), record("Extra"))

    diff = DiffEngine().diff(desired, actual)
    plan = ReconciliationPlanner().plan(diff)

    assert plan.is_empty()
    assert plan.get_summary() == {
        "add": 0,
        "report_only_changed": 1,
        "report_only_removed": 1,
        "unchanged": 0,
    }


def test_replanning_after_apply_is_empty(schema):
    desired = RecordSet.from_entries(schema, [R1, R2, R3])
    actual = RecordSet.from_entries(schema, [R1, R4])
    engine = DiffEngine()
    planner = ReconciliationPlanner()

    plan = planner.plan(engine.diff(desired, actual))
    after = actual.extended(plan.records())
    rediff = engine.diff(desired, after)

    assert planner.plan(rediff).is_empty()
    assert len(rediff.unchanged()) == 3
    assert [e.record.identity["Namespace"] for e in rediff.removed()] == ["Legacy.Extensions"]
    assert rediff.added() == []
