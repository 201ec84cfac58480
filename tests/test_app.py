"""App-level behaviour: health check, error shapes and logging setup."""

import json
import logging

import requests
from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.logging_config import JSONFormatter, configure_logging
from app.main import app
from app.services import issue_lifecycle, storage
from tests.conftest import auth_headers


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    body = res.json()
    assert body["ok"] is True
    assert body["time"]


def test_malformed_json_is_400(client, citizen):
    res = client.post(
        "/issues",
        content=b"{not json",
        headers={**auth_headers(citizen), "Content-Type": "application/json"},
    )
    assert res.status_code == 400
    assert "message" in res.json()


def test_unhandled_error_is_500_with_message(monkeypatch, citizen):
    def boom(*args, **kwargs):
        raise RuntimeError("database on fire")

    monkeypatch.setattr(issue_lifecycle, "list_issues", boom)
    client = TestClient(app, raise_server_exceptions=False)
    res = client.get("/issues", headers=auth_headers(citizen))
    assert res.status_code == 500
    assert res.json() == {"message": "database on fire"}


def test_json_formatter_includes_extras():
    record = logging.LogRecord("app.request", logging.INFO, __file__, 1, "GET /issues -> 200", None, None)
    record.method = "GET"
    record.status = 200
    record.duration_ms = 1.5
    entry = json.loads(JSONFormatter().format(record))
    assert entry["message"] == "GET /issues -> 200"
    assert entry["level"] == "INFO"
    assert entry["method"] == "GET"
    assert entry["status"] == 200
    assert "issue_id" not in entry


def test_configure_logging_is_idempotent():
    configure_logging()
    configure_logging()
    ours = [h for h in logging.getLogger().handlers if getattr(h, "_urban_handler", False)]
    assert len(ours) == 1


def test_validation_details_are_logged(client, citizen, staff, make_issue, caplog):
    issue = make_issue(citizen)
    with caplog.at_level(logging.INFO, logger="app.request"):
        res = client.patch(f"/issues/{issue.id}/status", json={"status": "FIXED"}, headers=auth_headers(staff))
    assert res.status_code == 400
    assert res.json() == {"message": "Invalid status"}
    rejected = [r for r in caplog.records if "rejected" in r.getMessage()]
    assert len(rejected) == 1
    assert "FIXED" in rejected[0].getMessage()


def test_storage_failure_is_a_server_error(client, citizen, make_issue, monkeypatch):
    def refuse(*args, **kwargs):
        raise requests.ConnectionError("bucket unreachable")

    monkeypatch.setattr(settings, "supabase_url", "https://storage.invalid")
    monkeypatch.setattr(settings, "supabase_service_role", "service-key")
    monkeypatch.setattr(storage.requests, "post", refuse)

    issue = make_issue(citizen)
    res = client.post(
        f"/issues/{issue.id}/photos",
        files=[("files", ("hole.png", b"\x89PNG fake", "image/png"))],
        headers=auth_headers(citizen),
    )
    assert res.status_code == 500
    assert res.json() == {"message": "Image upload failed"}
    assert client.get(f"/issues/{issue.id}", headers=auth_headers(citizen)).json()["photos"] == []
