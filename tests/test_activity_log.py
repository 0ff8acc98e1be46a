import json
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

import cadence.mcp as mcp
import cadence.mcp_tasks as mcp_tasks
from cadence.errors import McpError
from cadence.mcp import _resolve_git_head, add_task, read_activity_log, toggle_task

NOTE = "notes/inbox.md"


def _build_request(vault_root):
    return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(vault_path=vault_root)))


def _read_activity_entries(vault_root):
    log_path = vault_root / mcp.ACTIVITY_LOG_FILENAME
    assert log_path.exists()
    entries = []
    for line in log_path.read_text(encoding="utf-8").splitlines():
        if line.strip():
            entries.append(json.loads(line))
    return entries


def _assert_activity_entry(entry, operation, path, commit_sha, summary):
    assert entry["operation"] == operation
    assert entry["path"] == path
    assert entry["commitSha"] == commit_sha
    assert entry["summary"] == summary
    datetime.fromisoformat(entry["timestamp"])


def test_add_and_toggle_append_activity_entries(tmp_path):
    added = add_task({"text": "Call Bob", "path": NOTE}, _build_request(tmp_path))
    address = added["data"]["address"]
    toggled = toggle_task({"address": address}, _build_request(tmp_path))

    entries = _read_activity_entries(tmp_path)
    assert len(entries) == 2
    _assert_activity_entry(
        entries[0], "add_task", NOTE, added["data"]["commitSha"], "add task"
    )
    _assert_activity_entry(
        entries[1], "toggle_task", NOTE, toggled["data"]["commitSha"], "complete task"
    )


def test_read_activity_log_limits_and_filters(tmp_path):
    log_path = tmp_path / mcp.ACTIVITY_LOG_FILENAME
    lines = [
        json.dumps({"timestamp": "2024-01-01T00:00:00+00:00", "operation": "add_task"}),
        "not json",
        json.dumps({"timestamp": "2024-02-01T00:00:00+00:00", "operation": "toggle_task"}),
        json.dumps({"timestamp": "2024-03-01T00:00:00+00:00", "operation": "rollover_tasks"}),
    ]
    log_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    limited = read_activity_log({"limit": 2}, _build_request(tmp_path))
    since = read_activity_log({"since": "2024-01-15"}, _build_request(tmp_path))

    assert [entry["operation"] for entry in limited["data"]["entries"]] == [
        "toggle_task",
        "rollover_tasks",
    ]
    assert [entry["operation"] for entry in since["data"]["entries"]] == [
        "toggle_task",
        "rollover_tasks",
    ]


def test_read_activity_log_filters_by_operation(tmp_path):
    added = add_task({"text": "Call Bob", "path": NOTE}, _build_request(tmp_path))
    toggle_task({"address": added["data"]["address"]}, _build_request(tmp_path))

    payload = read_activity_log({"operation": "add_task"}, _build_request(tmp_path))

    assert [entry["operation"] for entry in payload["data"]["entries"]] == ["add_task"]


def test_read_activity_log_without_log_file(tmp_path):
    payload = read_activity_log({}, _build_request(tmp_path))

    assert payload == {"ok": True, "data": {"entries": []}}


@pytest.mark.parametrize(
    ("payload", "code"),
    [
        ({"limit": 0}, "INVALID_TYPE"),
        ({"limit": True}, "INVALID_TYPE"),
        ({"since": "yesterday-ish"}, "INVALID_DATE"),
        ({"operation": 3}, "INVALID_TYPE"),
        ({"verbose": True}, "UNKNOWN_FIELD"),
    ],
)
def test_read_activity_log_rejects_bad_payload(tmp_path, payload, code):
    with pytest.raises(McpError) as excinfo:
        read_activity_log(payload, _build_request(tmp_path))

    assert excinfo.value.error.code == code


def test_activity_log_failure_rolls_back_commit(tmp_path, monkeypatch):
    first = add_task({"text": "First", "path": NOTE}, _build_request(tmp_path))
    note_path = tmp_path / NOTE
    initial_content = note_path.read_text(encoding="utf-8")
    initial_head = _resolve_git_head(tmp_path)

    def _fail_log(*_args, **_kwargs):
        raise RuntimeError("log failed")

    monkeypatch.setattr(mcp_tasks, "_append_activity_log", _fail_log)

    with pytest.raises(McpError) as excinfo:
        add_task({"text": "Second", "path": NOTE}, _build_request(tmp_path))

    assert excinfo.value.error.code == "LOG_ERROR"
    assert note_path.read_text(encoding="utf-8") == initial_content
    assert _resolve_git_head(tmp_path) == initial_head

    entries = _read_activity_entries(tmp_path)
    assert len(entries) == 1
    assert entries[0]["commitSha"] == first["data"]["commitSha"]


def test_activity_entry_timestamps_are_utc(tmp_path):
    add_task({"text": "Stamp", "path": NOTE}, _build_request(tmp_path))

    entry = _read_activity_entries(tmp_path)[0]

    assert datetime.fromisoformat(entry["timestamp"]).tzinfo == timezone.utc
