"""End-to-end tests for the REST and WebSocket API."""

import sys
import time

import pytest
from fastapi.testclient import TestClient
from websockets.sync.client import connect

from editorbridge.backend.app import create_app

from .conftest import FAKE_SERVER, posix_only

CONFIG = {
    "lsp": {
        "servers": {
            "fake": {"command": sys.executable, "args": [str(FAKE_SERVER)], "manifest": "fake.toml"},
        },
    },
    "terminal": {"shell": "/bin/sh"},
}


@pytest.fixture
def client():
    app = create_app(None, CONFIG)
    with TestClient(app) as client:
        yield client


def error_code(response):
    body = response.json()
    assert response.status_code == 200
    assert body["success"] is False
    return body["error"]["code"]


class TestLspApi:
    """Tests for /api/lsp."""

    def test_detect(self, client, tmp_path):
        (tmp_path / "go.mod").write_text("module demo\n")
        source = tmp_path / "pkg" / "demo.go"
        source.parent.mkdir()
        source.write_text("package pkg\n")

        response = client.post("/api/lsp/detect", json={"path": str(source)})
        body = response.json()
        assert body["success"] is True
        assert body["data"] == {"project_type": "go", "root_path": str(tmp_path)}

    def test_detect_configured_manifest(self, client, tmp_path):
        (tmp_path / "fake.toml").write_text("")
        response = client.post("/api/lsp/detect", json={"path": str(tmp_path)})
        assert response.json()["data"]["project_type"] == "fake"

    def test_detect_unknown(self, client, tmp_path):
        response = client.post("/api/lsp/detect", json={"path": str(tmp_path)})
        assert error_code(response) == "UNKNOWN_PROJECT"
        assert response.json()["message"] == "unknown"

    def test_detect_missing_path(self, client, tmp_path):
        response = client.post("/api/lsp/detect", json={"path": str(tmp_path / "missing")})
        assert error_code(response) == "NOT_FOUND"

    def test_available(self, client):
        response = client.get("/api/lsp/available/fake")
        assert response.json() == {"success": True, "message": None, "data": True}

    def test_available_unknown_language(self, client):
        assert error_code(client.get("/api/lsp/available/cobol")) == "CONFIGURATION_ERROR"

    def test_start_unknown_language(self, client, tmp_path):
        response = client.post("/api/lsp/start", json={"language": "cobol", "root_path": str(tmp_path)})
        assert error_code(response) == "CONFIGURATION_ERROR"

    def test_start_validation(self, client):
        response = client.post("/api/lsp/start", json={"language": "go"})
        assert error_code(response) == "VALIDATION_ERROR"

    def test_stop_unknown(self, client):
        assert error_code(client.post("/api/lsp/0123456789abcdef/stop")) == "NOT_FOUND"

    def test_start_connect_stop(self, client, tmp_path):
        response = client.post("/api/lsp/start", json={"language": "fake", "root_path": str(tmp_path)})
        data = response.json()["data"]
        lsp_id, port = data["lsp_id"], data["port"]

        body = '{"jsonrpc":"2.0","id":1,"method":"initialize","params":{}}'
        with connect(f"ws://127.0.0.1:{port}") as ws:
            ws.send(body)
            assert ws.recv(timeout=5) == body

        [instance] = client.get("/api/lsp").json()["data"]
        assert instance["lsp_id"] == lsp_id
        assert instance["language"] == "fake"
        assert instance["alive"] is True

        assert client.post(f"/api/lsp/{lsp_id}/stop").json()["success"] is True
        assert client.get("/api/lsp").json()["data"] == []
        assert error_code(client.post(f"/api/lsp/{lsp_id}/stop")) == "NOT_FOUND"


@posix_only
class TestTerminalApi:
    """Tests for /api/terminals and the terminal event stream."""

    def _read_until(self, ws, predicate, limit=200):
        messages = []
        for _ in range(limit):
            message = ws.receive_json()
            messages.append(message)
            if predicate(message, messages):
                return messages
        raise AssertionError(f"condition not met, got {messages!r}")

    def test_rest_lifecycle(self, client, tmp_path):
        response = client.post("/api/terminals/t1/start", json={"working_dir": str(tmp_path)})
        assert response.json()["data"] == {"terminal_id": "t1"}
        assert client.get("/api/terminals").json()["data"] == [{"terminal_id": "t1"}]

        assert client.post("/api/terminals/t1/write", json={"data": "true\n"}).json()["success"]
        assert client.post("/api/terminals/t1/resize", json={"cols": 120, "rows": 40}).json()["success"]

        assert client.post("/api/terminals/t1/stop").json()["success"] is True
        assert client.get("/api/terminals").json()["data"] == []

    def test_unknown_terminal(self, client):
        assert error_code(client.post("/api/terminals/nope/write", json={"data": "ls\n"})) == "NOT_FOUND"
        assert error_code(client.post("/api/terminals/nope/stop")) == "NOT_FOUND"

    def test_resize_bounds(self, client):
        response = client.post("/api/terminals/t1/resize", json={"cols": 0, "rows": 40})
        assert error_code(response) == "VALIDATION_ERROR"

    def test_event_stream(self, client, tmp_path):
        client.post("/api/terminals/t1/start", json={"working_dir": str(tmp_path)})

        with client.websocket_connect("/api/ws/terminals/t1") as ws:
            ws.send_json({"type": "input", "data": "echo $((40 + 2))\n"})
            messages = self._read_until(
                ws, lambda m, ms: "42" in "".join(x.get("data", "") for x in ms)
            )
            assert all(m["terminal_id"] == "t1" and m["type"] == "output" for m in messages)

            ws.send_json({"type": "bogus"})
            error = self._read_until(ws, lambda m, ms: m["type"] == "error")[-1]
            assert error["code"] == "VALIDATION_ERROR"

            client.post("/api/terminals/t1/stop")
            self._read_until(ws, lambda m, ms: m["type"] == "exit")

    def test_output_before_subscribe_is_replayed(self, client, tmp_path):
        client.post("/api/terminals/t1/start", json={"working_dir": str(tmp_path)})
        client.post("/api/terminals/t1/write", json={"data": "echo $((40 + 2))\n"})
        time.sleep(0.5)

        with client.websocket_connect("/api/ws/terminals/t1") as ws:
            self._read_until(ws, lambda m, ms: "42" in "".join(x.get("data", "") for x in ms))

            client.post("/api/terminals/t1/stop")
            self._read_until(ws, lambda m, ms: m["type"] == "exit")

    def test_stream_input_to_unknown_terminal(self, client):
        with client.websocket_connect("/api/ws/terminals/ghost") as ws:
            ws.send_json({"type": "input", "data": "ls\n"})
            message = ws.receive_json()
            assert message == {
                "terminal_id": "ghost",
                "type": "error",
                "code": "NOT_FOUND",
                "message": "Terminal not found: terminal_id=ghost",
            }
