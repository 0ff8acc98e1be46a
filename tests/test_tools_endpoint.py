from fastapi.testclient import TestClient

from cadence.main import create_app
from tools.mcp_tools import load_tool_definitions, tool_names


def test_tools_endpoint_returns_tool_definitions(tmp_path, monkeypatch):
    monkeypatch.setenv("CADENCE_VAULT_PATH", str(tmp_path))
    monkeypatch.delenv("CADENCE_SERVICE_TOKEN", raising=False)

    app = create_app()
    with TestClient(app) as client:
        response = client.get("/tools")

    assert response.status_code == 200
    payload = response.json()
    assert payload["ok"] is True
    tools = payload["data"]["tools"]
    assert payload["data"]["count"] == len(tools)
    assert set(tool_names(tools)) == {
        "get_open_tasks",
        "get_overdue_tasks",
        "aggregate_tasks",
        "rollover_tasks",
        "toggle_task",
        "add_task",
        "update_task_metadata",
        "read_activity_log",
    }


def test_every_tool_schema_has_a_route(tmp_path, monkeypatch):
    monkeypatch.setenv("CADENCE_VAULT_PATH", str(tmp_path))
    app = create_app()
    paths = {getattr(route, "path", None) for route in app.routes}

    for name in tool_names(load_tool_definitions()):
        assert f"/tool:{name}" in paths


def test_tools_endpoint_reports_schema_errors(tmp_path, monkeypatch):
    monkeypatch.setenv("CADENCE_VAULT_PATH", str(tmp_path))
    monkeypatch.delenv("CADENCE_SERVICE_TOKEN", raising=False)
    monkeypatch.setattr(
        "tools.mcp_tools.TOOLS_JSON_PATH", tmp_path / "missing.json"
    )

    app = create_app()
    with TestClient(app) as client:
        response = client.get("/tools")

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "TOOL_SCHEMA_ERROR"
