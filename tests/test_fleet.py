import threading
import time

import pytest

from driftguard.engine.results import HostResult, HostStatus
from driftguard.orchestrator import fleet as fleet_module
from driftguard.orchestrator.fleet import FleetOrchestrator, normalize_hosts
from driftguard.orchestrator.reconciler import FleetReconciler
from driftguard.utils.errors import TransportError

from conftest import R1, R2, R3, R4


def _ok(host):
    return HostResult(host=host, operation="collect", status=HostStatus.SUCCESS)


def test_normalize_hosts_strips_and_deduplicates():
    assert normalize_hosts([" web01 ", "WEB01", "", "# comment", "web02"]) == ["web01", "web02"]


def test_results_are_sorted_by_host():
    def slow_first(host):
        if host == "a-host":
            time.sleep(0.05)
        return _ok(host)

    results = FleetOrchestrator(max_workers=4).run(["c-host", "B-host", "a-host"], slow_first)

    assert [r.host for r in results] == ["a-host", "B-host", "c-host"]


def test_failures_are_isolated():
    def op(host):
        if host == "bad":
            raise TransportError("unreachable")
        if host == "boom":
            raise RuntimeError("unexpected")
        return _ok(host)

    results = {r.host: r for r in FleetOrchestrator().run(["good", "bad", "boom"], op)}

    assert results["good"].is_success()
    assert results["bad"].is_error()
    assert results["bad"].message == "unreachable"
    assert results["boom"].is_error()
    assert results["boom"].error is not None


def test_concurrency_is_bounded():
    lock = threading.Lock()
    active = []
    peak = []

    def op(host):
        with lock:
            active.append(host)
            peak.append(len(active))
        time.sleep(0.02)
        with lock:
            active.remove(host)
        return _ok(host)

    FleetOrchestrator(max_workers=2).run([f"h{i}" for i in range(8)], op)

    assert max(peak) <= 2


def test_cancel_reports_unstarted_hosts():
    orchestrator = FleetOrchestrator(max_workers=1)

    def op(host):
        orchestrator.cancel()
        return _ok(host)

    results = orchestrator.run(["h1", "h2", "h3"], op)

    assert len(results) == 3
    assert orchestrator.cancelled
    assert sum(r.is_success() for r in results) == 1
    assert all("Not started" in r.message for r in results if r.is_warning())


def test_interrupt_stops_scheduling_queued_hosts(monkeypatch):
    ran = []

    def op(host):
        ran.append(host)
        time.sleep(0.05)
        return _ok(host)

    def interrupted_wait(futures, timeout=None):
        time.sleep(0.01)
        raise KeyboardInterrupt

    monkeypatch.setattr(fleet_module, "wait", interrupted_wait)
    orchestrator = FleetOrchestrator(max_workers=1)

    with pytest.raises(KeyboardInterrupt):
        orchestrator.run([f"h{i}" for i in range(6)], op)

    assert len(ran) <= 1
    assert orchestrator.cancelled


def test_cancel_does_not_leak_into_next_run():
    orchestrator = FleetOrchestrator(max_workers=1)

    def cancelling(host):
        orchestrator.cancel()
        return _ok(host)

    orchestrator.run(["a", "b"], cancelling)
    results = orchestrator.run(["a", "b"], _ok)

    assert [r.status for r in results] == [HostStatus.SUCCESS, HostStatus.SUCCESS]


def test_timeout_reports_every_host():
    release = threading.Event()

    def op(host):
        if host == "stuck":
            release.wait(5)
        return _ok(host)

    try:
        results = FleetOrchestrator(max_workers=1).run(["stuck", "waiting"], op, timeout=0.1)
    finally:
        release.set()

    by_host = {r.host: r for r in results}
    assert by_host["stuck"].is_error()
    assert "outcome unknown" in by_host["stuck"].message
    assert by_host["waiting"].is_warning()


def test_progress_callback_receives_each_host():
    seen = []

    FleetOrchestrator().run(["h1", "h2"], _ok, progress_callback=lambda host, status, msg: seen.append((host, status)))

    assert sorted(seen) == [("h1", HostStatus.SUCCESS), ("h2", HostStatus.SUCCESS)]


def test_empty_host_list_returns_nothing():
    assert FleetOrchestrator().run([], _ok) == []


def test_apply_isolates_unreachable_host(config, transport, fleet, desired_file):
    fleet.write("h1", [R1, R4])
    desired_path = desired_file([R1, R2, R3])
    reconciler = FleetReconciler(config, transport)
    desired = reconciler.resolve_desired("baseline", explicit_path=str(desired_path))

    results = reconciler.apply(["h1", "h2"], desired)

    h1, h2 = results
    assert h1.host == "h1" and h1.is_success()
    assert h1.applied_count == 2
    assert h2.host == "h2" and h2.is_error()
    assert isinstance(h2.error, TransportError)
    assert len(fleet.entries("h1")) == 4


def test_reconciler_pipeline_is_idempotent(config, transport, fleet, desired_file):
    fleet.write("h1", [R1, R4])
    reconciler = FleetReconciler(config, transport)
    desired = reconciler.resolve_desired("baseline", explicit_path=str(desired_file([R1, R2, R3])))

    [before] = reconciler.diff(["h1"], desired)
    reconciler.apply(["h1"], desired)
    [after] = reconciler.plan(["h1"], desired)
    [collected] = reconciler.collect(["h1"])

    assert before.diff.counts() == {"added": 2, "removed": 1, "unchanged": 1, "changed": 0}
    assert after.plan.is_empty()
    assert after.diff.counts() == {"added": 0, "removed": 1, "unchanged": 3, "changed": 0}
    assert len(collected.records) == 4


def test_preview_leaves_store_untouched(config, transport, fleet):
    original = fleet.write("h1", []).read_bytes()
    reconciler = FleetReconciler(config, transport)
    desired = reconciler.resolve_desired("workflow-foundation")

    [result] = reconciler.apply(["h1"], desired, dry_run=True)

    assert result.operation == "preview"
    assert len(result.projected) == len(desired)
    assert fleet.path("h1").read_bytes() == original
