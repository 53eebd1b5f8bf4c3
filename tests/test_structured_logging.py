from __future__ import annotations

import json
import logging

import pytest

from service_manager.common.logging import bind_invocation_id, get_invocation_id, init_structured_logging, log_event
from service_manager.errors import AuthorizationError, CollaboratorFailure
from tests.conftest import OWNER, STRANGER, World


def _lines(capsys) -> list[dict]:
    out = capsys.readouterr().out.strip().splitlines()
    return [json.loads(line) for line in out if line.strip()]


def test_log_event_emits_one_json_line_with_core_fields(monkeypatch, capsys, restore_root_logging) -> None:
    monkeypatch.setenv("GIT_SHA", "deadbeef")
    init_structured_logging(service="unit-test", env="test", level="INFO")

    with bind_invocation_id(invocation_id="inv-1"):
        log_event(logging.getLogger("unit"), "something_happened", quorum=3)

    (line,) = _lines(capsys)
    assert line["service"] == "unit-test"
    assert line["env"] == "test"
    assert line["sha"] == "deadbeef"
    assert line["severity"] == "INFO"
    assert line["event_type"] == "something_happened"
    assert line["invocation_id"] == "inv-1"
    assert line["quorum"] == 3
    assert line["logger"] == "unit"


def test_nested_binds_reuse_the_outer_invocation_id() -> None:
    assert get_invocation_id() is None
    with bind_invocation_id() as outer:
        with bind_invocation_id() as inner:
            assert inner == outer
            assert get_invocation_id() == outer
    assert get_invocation_id() is None


def test_denied_call_logs_warning(world: World, capsys, restore_root_logging) -> None:
    init_structured_logging(service="unit-test", level="INFO")

    with pytest.raises(AuthorizationError):
        world.manager.update_metadata_uri(caller=STRANGER, uri="x")

    denied = [line for line in _lines(capsys) if line["event_type"] == "authorization_denied"]
    assert len(denied) == 1
    assert denied[0]["severity"] == "WARNING"
    assert denied[0]["operation"] == "update_metadata_uri"
    assert denied[0]["caller"] == STRANGER
    assert denied[0]["invocation_id"]


def test_collaborator_failure_logs_error_with_collaborator_name(world: World, capsys, restore_root_logging) -> None:
    init_structured_logging(service="unit-test", level="INFO")
    world.directory.fail_on.add("update_metadata")

    with pytest.raises(CollaboratorFailure):
        world.manager.update_metadata_uri(caller=OWNER, uri="x")

    failed = [line for line in _lines(capsys) if line["event_type"] == "collaborator_call_failed"]
    assert len(failed) == 1
    assert failed[0]["severity"] == "ERROR"
    assert failed[0]["collaborator"] == "directory"
    assert failed[0]["operation"] == "update_metadata"
    assert "simulated failure" in failed[0]["error"]


def test_published_events_are_logged(world: World, capsys, restore_root_logging) -> None:
    init_structured_logging(service="unit-test", level="INFO")

    world.manager.update_metadata_uri(caller=OWNER, uri="https://example.org")

    logged = [line for line in _lines(capsys) if line["event_type"] == "service_event"]
    assert [line["event_name"] for line in logged] == ["MetadataURIUpdated"]
    assert logged[0]["event_data"] == {"uri": "https://example.org"}


def test_identity_fields_come_from_service_env(monkeypatch, capsys, restore_root_logging) -> None:
    monkeypatch.setenv("SERVICE_NAME", "avs-service-manager")
    monkeypatch.setenv("ENV", "staging")
    monkeypatch.setenv("SERVICE_MANAGER_VERSION", "1.2.3")
    monkeypatch.delenv("GIT_SHA", raising=False)
    init_structured_logging(level="info")

    log_event(logging.getLogger("unit"), "booted")

    (line,) = _lines(capsys)
    assert line["service"] == "avs-service-manager"
    assert line["env"] == "staging"
    assert line["version"] == "1.2.3"
    assert line["sha"] == "unknown"
