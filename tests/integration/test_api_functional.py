from fastapi.testclient import TestClient

DEBUG_COMMAND = """---
description: Debug a production problem
argument-hint: [error description]
allowed-tools: Task(coder_agent), Read
requires-argument: true
category: development
---

Help with: $ARGUMENTS
"""

STATUS_COMMAND = """---
description: Project status report
category: orchestration
---

Report project status for $ARGUMENTS.
"""


def _client(tmp_path) -> TestClient:
    # Importing api.main also builds the env-configured module-level app.
    from agile_dispatch.api.main import create_app
    from agile_dispatch.services import build_services

    commands_dir = tmp_path / ".claude" / "commands"
    commands_dir.mkdir(parents=True)
    (commands_dir / "debug.md").write_text(DEBUG_COMMAND, encoding="utf-8")
    (commands_dir / "project-status.md").write_text(STATUS_COMMAND, encoding="utf-8")
    return TestClient(create_app(build_services(project_root=tmp_path, commands_dir=commands_dir)))


def test_api_dispatch_search_archive_metrics(tmp_path) -> None:
    client = _client(tmp_path)

    health = client.get("/health").json()
    assert health["command_count"] == 2
    assert health["collaborator"] == "deterministic"

    commands_resp = client.get("/commands")
    assert commands_resp.status_code == 200
    assert {c["name"] for c in commands_resp.json()["categories"]["development"]} == {"debug"}
    assert client.get("/commands/debug").json()["allowed_tools"] == ["Read", "Task(coder_agent)"]

    invoke_resp = client.post("/invoke", json={"line": "/debug null pointer in parser"})
    assert invoke_resp.status_code == 200
    payload = invoke_resp.json()
    assert payload["status"] == "completed"
    assert payload["prompt"] == "Help with: null pointer in parser"
    assert payload["record"]["path"] == "project-documents/development/debug-1.md"

    dispatch_resp = client.post("/dispatch", json={"command": "project-status"})
    assert dispatch_resp.status_code == 200
    assert dispatch_resp.json()["record"]["category"] == "orchestration"

    detail_resp = client.get("/documents/development/debug-1")
    assert detail_resp.status_code == 200
    assert detail_resp.json()["agent"] == "coder_agent"

    search_resp = client.get("/search", params={"q": "DEBUG"})
    assert search_resp.status_code == 200
    items = search_resp.json()["items"]
    assert [item["record"]["name"] for item in items] == ["debug-1"]
    assert "name" in items[0]["matched_fields"]

    archive_resp = client.delete("/documents/development/debug-1")
    assert archive_resp.status_code == 200
    assert archive_resp.json()["archived"] is True
    assert client.get("/search", params={"q": "debug"}).json()["items"] == []
    assert client.get("/documents/development").json()["items"] == []

    stats = client.get("/stats").json()
    assert stats["total_documents"] == 1
    assert stats["archived_documents"] == 1

    trace_resp = client.get(f"/traces/{payload['trace_id']}")
    assert trace_resp.status_code == 200
    assert trace_resp.json()["command"] == "debug"

    metrics = client.get("/metrics").json()
    assert metrics["total_dispatches"] == 2
    assert metrics["completed"] == 2


def test_api_maps_failures_to_status_codes(tmp_path) -> None:
    client = _client(tmp_path)

    unknown = client.post("/dispatch", json={"command": "nonexistent", "arguments": "x"})
    assert unknown.status_code == 404
    assert unknown.json()["detail"]["status"] == "failed"

    missing = client.post("/invoke", json={"line": "/debug"})
    assert missing.status_code == 422
    assert "requires an argument" in missing.json()["detail"]["reason"]

    assert client.get("/search", params={"q": ""}).status_code == 422
    assert client.get("/documents/development/nope").status_code == 404
    assert client.delete("/documents/development/nope").status_code == 404
    assert client.get("/commands/nope").status_code == 404
    assert client.get("/documents").json()["items"] == []
    assert client.get("/metrics").json()["failed"] == 2


def test_api_workflow_state_round_trip(tmp_path) -> None:
    client = _client(tmp_path)

    assert client.get("/workflow-state").json()["current_phase"] == "setup"

    update = {"current_phase": "implementation", "progress_percentage": 40, "active_sprint": "sprint-2"}
    assert client.put("/workflow-state", json=update).status_code == 200
    assert client.get("/workflow-state").json()["active_sprint"] == "sprint-2"
    assert client.put("/workflow-state", json={"progress_percentage": 150}).status_code == 422


def test_api_json_twin_and_dependencies(tmp_path) -> None:
    client = _client(tmp_path)
    record = client.post("/invoke", json={"line": "/debug parser crash"}).json()["record"]
    twin = tmp_path / "machine-data" / "development" / "debug-1.json"
    twin.parent.mkdir(parents=True)
    twin.write_text('{"summary": "crash"}', encoding="utf-8")

    attached = client.post(
        "/documents/json",
        json={"md_path": record["path"], "json_path": "machine-data/development/debug-1.json"},
    )
    assert attached.status_code == 200
    assert attached.json()["token_counts"]["json"] == 5

    deps = client.put(
        "/documents/development/debug-1/dependencies",
        json={"dependencies": ["planning/roadmap"]},
    )
    assert deps.status_code == 200
    assert deps.json()["dependencies"] == ["planning/roadmap"]

    missing = client.post("/documents/json", json={"md_path": "nope.md", "json_path": "nope.json"})
    assert missing.status_code == 404
    assert client.put("/documents/development/nope/dependencies", json={}).status_code == 404


def test_importing_api_module_leaves_logging_untouched() -> None:
    import importlib
    import logging

    import agile_dispatch.api.main as api_main

    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level

    importlib.reload(api_main)

    assert root.handlers == handlers
    assert root.level == level
