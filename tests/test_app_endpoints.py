import asyncio
import json
from typing import Optional
from urllib.parse import urlencode

import pytest

import app


async def _call_app(method: str, path: str, *, query: Optional[dict] = None):
    scope = {
        "type": "http",
        "http_version": "1.1",
        "method": method.upper(),
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "scheme": "http",
        "query_string": urlencode(query or {}, doseq=True).encode(),
        "headers": [(b"host", b"testserver")],
        "client": ("testclient", 12345),
        "server": ("testserver", 80),
        "state": {},
    }

    messages = []

    async def receive():
        return {"type": "http.disconnect"}

    async def send(message):
        messages.append(message)

    await app.app(scope, receive, send)
    status = 500
    body = b""
    for message in messages:
        if message["type"] == "http.response.start":
            status = message["status"]
        elif message["type"] == "http.response.body":
            body += message.get("body", b"")
    return status, body.decode("utf-8")


def _get(path: str, query: Optional[dict] = None) -> tuple[int, dict]:
    status, text = asyncio.run(_call_app("GET", path, query=query))
    return status, json.loads(text or "{}")


@pytest.fixture
def served_bank(monkeypatch, bank_file):
    monkeypatch.setenv("ITEM_BANK_PATH", str(bank_file))
    monkeypatch.delenv("AUTO_ASSIGN_ON_LOAD", raising=False)
    monkeypatch.delenv("LOW_COVERAGE_THRESHOLD", raising=False)
    app.reset_bank()
    yield bank_file
    app.reset_bank()


def test_api_data_returns_hierarchy_and_statistics(served_bank):
    status, payload = _get("/api/data")
    assert status == 200
    assert payload["hierarchy"]["metadata"]["gradeLevels"] == ["9", "11"]
    assert payload["statistics"]["overallCoverage"] == 33


def test_api_gaps_uses_threshold(served_bank):
    status, payload = _get("/api/gaps")
    assert status == 200
    assert payload["threshold"] == 5
    assert payload["hasGaps"] is True
    assert "Algebra" in payload["domainsWithLowCoverage"]

    status, payload = _get("/api/gaps", {"threshold": 2})
    assert payload["domainsWithLowCoverage"] == ["Geometry"]

    status, payload = _get("/api/gaps", {"threshold": -1})
    assert status == 400


def test_api_validation(served_bank):
    status, payload = _get("/api/validation")
    assert status == 200
    assert payload == {"isValid": True, "errors": [], "warnings": []}


def test_api_statistics(served_bank):
    status, payload = _get("/api/statistics")
    assert status == 200
    assert payload["totalItems"] == 2


def test_root_renders_outline(served_bank):
    status, text = asyncio.run(_call_app("GET", "/"))
    assert status == 200
    assert "<h1>Math Item Bank</h1>" in text
    assert "Grade 9" in text
    assert "A.REI.1" in text


def test_auto_assign_on_load(monkeypatch, served_bank):
    monkeypatch.setenv("AUTO_ASSIGN_ON_LOAD", "true")
    app.reset_bank()
    status, payload = _get("/api/statistics")
    assert status == 200
    assert payload["subskillStats"]["itemsWithSubskills"] >= 1


def test_missing_bank_is_server_error(monkeypatch, tmp_path):
    monkeypatch.setenv("ITEM_BANK_PATH", str(tmp_path / "absent.json"))
    app.reset_bank()
    try:
        status, payload = _get("/api/data")
    finally:
        app.reset_bank()
    assert status == 500
    assert "Failed to load item bank" in payload["detail"]
