"""Tests for the enrollment import workflow."""

from __future__ import annotations

import pytest

from autopilot_import.exceptions import (
    AuthenticationError,
    DeviceNotEligibleError,
    GraphRequestError,
    ImportFailedError,
    ImportTimeoutError,
    RegistrationError,
)
from autopilot_import.marker import CompletionMarker
from autopilot_import.models import ImportState, RegistrationResult
from autopilot_import.orchestrator import ImportOrchestrator, PollDecision, WorkflowOutcome, classify_import

from conftest import SERIAL, FakeClock, FakeCollector, FakeGraphClient, FakeTokenClient, make_record


def build(config, graph=None, collector=None, token_client=None, clock=None):
    clock = clock or FakeClock()
    orchestrator = ImportOrchestrator(
        config,
        collector=collector or FakeCollector(),
        token_client=token_client or FakeTokenClient(),
        graph_client=graph or FakeGraphClient(),
        sleep=clock.sleep,
        clock=clock,
    )
    return orchestrator


def test_classify_import():
    assert classify_import(None) is PollDecision.CONTINUE
    assert classify_import(make_record("unknown")) is PollDecision.CONTINUE
    assert classify_import(make_record("pending")) is PollDecision.CONTINUE
    assert classify_import(make_record("processing")) is PollDecision.CONTINUE
    assert classify_import(make_record("complete")) is PollDecision.SUCCEED
    assert classify_import(make_record("error", code=806)) is PollDecision.SUCCEED
    assert classify_import(make_record("failed", code=0, name="ZtdDeviceAlreadyAssigned")) is PollDecision.SUCCEED
    assert classify_import(make_record("error", code=808)) is PollDecision.FAIL


def test_marker_present_skips_without_network(config):
    """An existing marker ends the run before any device or network access."""
    config.marker_path.write_text("done\n", encoding="utf-8")
    collector = FakeCollector()
    token_client = FakeTokenClient()
    graph = FakeGraphClient()

    orchestrator = build(config, graph=graph, collector=collector, token_client=token_client)

    assert orchestrator.execute() is WorkflowOutcome.SKIPPED
    assert orchestrator.run() == 0
    assert collector.calls == 0
    assert token_client.calls == 0
    assert graph.calls == []
    assert config.marker_path.read_text(encoding="utf-8") == "done\n"


def test_new_registration_polls_to_complete(config, log_messages):
    """Absent device is registered and polled through every in-progress state."""
    graph = FakeGraphClient(
        statuses=[make_record("unknown"), make_record("pending"), make_record("processing"), make_record("complete")],
    )
    config.group_tag = "Kiosk"

    outcome = build(config, graph=graph).execute()

    assert outcome is WorkflowOutcome.COMPLETE
    assert graph.call_names() == ["find", "register", "get", "get", "get", "get"]
    assert graph.calls[1] == ("register", SERIAL, "Kiosk")

    marker = CompletionMarker(config.marker_path).read()
    assert marker is not None
    assert "Serial number: SER123" in marker
    assert "Import id: import-1" in marker
    assert "Import state: complete" in marker
    assert "Group tag: Kiosk" in marker

    # one progress message per state transition, none repeated
    progress = [m for m in log_messages if "pick it up" in m or "queued for processing" in m or "being processed" in m]
    assert progress == [
        "Import import-1 accepted, waiting for the service to pick it up",
        "Import import-1 is queued for processing",
        "Hardware hash for import import-1 is being processed",
    ]


def test_unchanged_state_logs_heartbeat_every_fifth_poll(config, log_messages):
    graph = FakeGraphClient(statuses=[make_record("pending")] * 11 + [make_record("complete")])

    assert build(config, graph=graph).run() == 0

    queued = [m for m in log_messages if "is queued for processing" in m]
    assert queued == [
        "Import import-1 is queued for processing",
        "Import import-1 is queued for processing (poll 5)",
        "Import import-1 is queued for processing (poll 10)",
    ]


def test_conflict_on_register_follows_existing_record(config):
    """A duplicate response takes the same polling path as a fresh creation."""
    graph = FakeGraphClient(
        lookups=[None, make_record("pending", import_id="existing")],
        registration=RegistrationResult(import_id=None, already_exists=True),
        statuses=[make_record("processing", import_id="existing"), make_record("complete", import_id="existing")],
    )

    outcome = build(config, graph=graph).execute()

    assert outcome is WorkflowOutcome.COMPLETE
    assert graph.calls == [("find", SERIAL), ("register", SERIAL, None), ("find", SERIAL), ("get", "existing"), ("get", "existing")]
    assert config.marker_path.exists()


def test_conflict_without_record_is_success(config):
    graph = FakeGraphClient(
        lookups=[None],
        registration=RegistrationResult(import_id=None, already_exists=True),
    )

    assert build(config, graph=graph).execute() is WorkflowOutcome.ALREADY_REGISTERED
    assert "get" not in graph.call_names()
    assert config.marker_path.exists()


def test_conflict_with_failed_recovery_lookup_is_fatal(config):
    """After a duplicate response the second lookup must succeed before the device counts as registered."""
    graph = FakeGraphClient(
        lookups=[GraphRequestError("HTTP 503", status=503)],
        registration=RegistrationResult(import_id=None, already_exists=True),
        statuses=[make_record("error", import_id="existing", code=808, name="ZtdDeviceAssignedToOtherTenant")],
    )
    orchestrator = build(config, graph=graph)

    with pytest.raises(GraphRequestError):
        orchestrator.execute()

    assert graph.call_names() == ["find", "register", "find"]
    assert not config.marker_path.exists()
    assert orchestrator.run() == 1
    assert not config.marker_path.exists()


def test_existing_complete_import_short_circuits(config):
    graph = FakeGraphClient(lookups=[make_record("complete", import_id="done-before")])

    assert build(config, graph=graph).execute() is WorkflowOutcome.COMPLETE
    assert graph.call_names() == ["find"]
    assert "Import id: done-before" in config.marker_path.read_text(encoding="utf-8")


def test_existing_pending_import_resumes_polling(config):
    graph = FakeGraphClient(
        lookups=[make_record("pending", import_id="resume-me")],
        statuses=[make_record("complete", import_id="resume-me")],
    )

    assert build(config, graph=graph).execute() is WorkflowOutcome.COMPLETE
    assert graph.call_names() == ["find", "get"]
    assert graph.calls[1] == ("get", "resume-me")


def test_already_assigned_error_is_success(config):
    """Error 806 is a benign outcome."""
    graph = FakeGraphClient(statuses=[make_record("pending"), make_record("error", code=806, name="ZtdDeviceAlreadyAssigned")])

    orchestrator = build(config, graph=graph)

    assert orchestrator.execute() is WorkflowOutcome.ALREADY_ASSIGNED
    assert config.marker_path.exists()


def test_genuine_error_fails_with_code(config, log_messages):
    graph = FakeGraphClient(statuses=[make_record("pending"), make_record("error", code=808, name="ZtdDeviceAssignedToOtherTenant")])

    with pytest.raises(ImportFailedError) as excinfo:
        build(config, graph=graph).execute()

    assert excinfo.value.error_code == 808
    assert excinfo.value.error_name == "ZtdDeviceAssignedToOtherTenant"
    assert not config.marker_path.exists()

    assert build(config, graph=FakeGraphClient(statuses=[make_record("failed", code=808)])).run() == 1
    assert any("808" in m for m in log_messages if "Autopilot import failed" in m)
    assert not config.marker_path.exists()


def test_timeout_fails_without_marker(config):
    clock = FakeClock()
    graph = FakeGraphClient(statuses=[make_record("processing")])

    with pytest.raises(ImportTimeoutError) as excinfo:
        build(config, graph=graph, clock=clock).execute()

    assert excinfo.value.elapsed_seconds == 900
    assert excinfo.value.attempts == 31
    assert clock.now == 900
    assert not config.marker_path.exists()


def test_timeout_exit_code(config):
    graph = FakeGraphClient(statuses=[make_record("pending")])

    assert build(config, graph=graph).run() == 1
    assert not config.marker_path.exists()


def test_not_found_while_polling_keeps_waiting(config):
    """A 404 on the status lookup means the import is not visible yet."""
    graph = FakeGraphClient(
        statuses=[GraphRequestError("not found", status=404), GraphRequestError("not found", status=404), make_record("complete")],
    )

    assert build(config, graph=graph).execute() is WorkflowOutcome.COMPLETE
    assert graph.call_names().count("get") == 3


def test_other_polling_error_is_fatal(config):
    graph = FakeGraphClient(statuses=[make_record("pending"), GraphRequestError("HTTP 500", status=500)])

    with pytest.raises(GraphRequestError):
        build(config, graph=graph).execute()

    assert not config.marker_path.exists()


def test_lookup_failure_fails_open(config, log_messages):
    """A failed existence check proceeds to registration."""
    graph = FakeGraphClient(lookups=[GraphRequestError("HTTP 403", status=403)])

    assert build(config, graph=graph).execute() is WorkflowOutcome.COMPLETE
    assert graph.call_names() == ["find", "register", "get"]
    assert any("Could not check for an existing import" in m for m in log_messages)


def test_strict_lookup_surfaces_failure(config):
    config.strict_lookup = True
    graph = FakeGraphClient(lookups=[GraphRequestError("HTTP 403", status=403)])

    with pytest.raises(GraphRequestError):
        build(config, graph=graph).execute()

    assert graph.call_names() == ["find"]


def test_registration_error_exits_one(config):
    graph = FakeGraphClient(registration=RegistrationError("Invalid hardware hash"))

    assert build(config, graph=graph).run() == 1
    assert "get" not in graph.call_names()
    assert not config.marker_path.exists()


def test_authentication_error_exits_one(config):
    graph = FakeGraphClient()
    token_client = FakeTokenClient(error=AuthenticationError("bad secret"))

    assert build(config, graph=graph, token_client=token_client).run() == 1
    assert graph.calls == []


def test_ineligible_device_exits_one_before_network(config):
    token_client = FakeTokenClient()
    graph = FakeGraphClient()
    collector = FakeCollector(DeviceNotEligibleError("no hardware hash"))

    assert build(config, graph=graph, collector=collector, token_client=token_client).run() == 1
    assert token_client.calls == 0
    assert graph.calls == []


def test_invalid_config_exits_one(config):
    config.client_secret = ""
    collector = FakeCollector()

    assert build(config, collector=collector).run() == 1
    assert collector.calls == 0


def test_unexpected_exception_exits_one(config, log_messages):
    graph = FakeGraphClient(statuses=[RuntimeError("kaboom")])

    assert build(config, graph=graph).run() == 1
    assert "Unexpected error during Autopilot import" in log_messages


def test_second_run_after_success_is_skipped(config):
    """The marker written by one run stops the next one."""
    first = FakeGraphClient()
    assert build(config, graph=first).run() == 0
    contents = config.marker_path.read_text(encoding="utf-8")

    second = FakeGraphClient()
    assert build(config, graph=second).run() == 0
    assert second.calls == []
    assert config.marker_path.read_text(encoding="utf-8") == contents
    assert [p.name for p in config.work_dir.iterdir()] == ["import_complete.tag"]


def test_import_state_recorded_for_already_assigned(config):
    graph = FakeGraphClient(lookups=[make_record("error", import_id="assigned", code=806)])

    assert build(config, graph=graph).execute() is WorkflowOutcome.ALREADY_ASSIGNED
    assert f"Import state: {ImportState.ERROR.value}" in config.marker_path.read_text(encoding="utf-8")
