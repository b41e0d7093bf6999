"""
Tests for the HTTP gateway and the command-line entry point.

Run: python -m pytest tests/test_gateway.py -v
"""

import json
import sys

import pytest
from fastapi.testclient import TestClient

from rootguard.__main__ import main
from rootguard.config.config import SandboxConfig
from rootguard.gateway.server import create_app
from rootguard.service import create_file_service


@pytest.fixture
def root(tmp_path):
    r = tmp_path / "sandbox"
    r.mkdir()
    return r.resolve()


@pytest.fixture
def client(root):
    service = create_file_service(SandboxConfig.from_directories([str(root)]))
    return TestClient(create_app(service))


class TestGateway:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok", "roots": 1}

    def test_roots(self, client, root):
        body = client.get("/roots").json()
        assert body["allowed_directories"] == [str(root)]
        assert body["trash"] == str(root / ".trash")

    def test_tools(self, client):
        tools = client.get("/tools").json()["tools"]
        assert len(tools) == 19
        read = next(t for t in tools if t["name"] == "read_file")
        assert read["parameters"]["path"]["required"] is True

    def test_single_call(self, client, root):
        (root / "a.txt").write_text("hello", "utf-8")
        r = client.post("/call", json={"tool": "read_file", "args": {"path": str(root / "a.txt")}})
        assert r.status_code == 200
        assert r.json() == {"success": True, "output": "hello", "error": None, "kind": None}

    def test_batch_call(self, client, root):
        (root / "a.txt").write_text("A", "utf-8")
        r = client.post("/call", json=[
            {"tool": "read_file", "args": {"path": str(root / "a.txt")}},
            {"tool": "read_file", "args": {"path": "/etc/passwd"}},
        ])
        results = r.json()
        assert isinstance(results, list)
        assert results[0]["output"] == "A"
        assert results[1]["success"] is False
        assert results[1]["kind"] == "AccessDenied"

    def test_invalid_json(self, client):
        r = client.post("/call", content=b"{not json", headers={"content-type": "application/json"})
        assert r.status_code == 400
        assert r.json()["success"] is False

    def test_payload_without_tool(self, client):
        r = client.post("/call", json={"args": {}})
        assert r.status_code == 400


class TestCli:
    def test_single_operation(self, root, monkeypatch, capsys):
        (root / "a.txt").write_text("from cli", "utf-8")
        monkeypatch.setattr(sys, "argv", [
            "rootguard", str(root), "--tool", "read_file",
            "--args", json.dumps({"path": str(root / "a.txt")}),
        ])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 0
        assert "from cli" in capsys.readouterr().out

    def test_denied_operation_exits_nonzero(self, root, tmp_path, monkeypatch, capsys):
        monkeypatch.setattr(sys, "argv", [
            "rootguard", str(root), "--tool", "read_file",
            "--args", json.dumps({"path": str(tmp_path / "x.txt")}),
        ])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1
        assert "[AccessDenied]" in capsys.readouterr().err

    def test_bad_args_json(self, root, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["rootguard", str(root), "--tool", "read_file", "--args", "{oops"])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 2

    def test_missing_root_exits(self, tmp_path, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["rootguard", str(tmp_path / "nope"), "--tool", "list_trash"])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1
