"""API endpoint tests for the webhook server.

The app is built with create_app() around an in-memory provider, so no token
or network is needed. Webhook bodies are signed with the test secret the same
way GitHub signs them.
"""

import hashlib
import hmac
import json
import logging
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from config import Settings
from core.store import MetricsStore
from integrations.base import DeliveryHistoryProvider
from main import create_app
from schemas.history import PipelineRun, RunOutcome

SECRET = "webhook_test_secret"


class StubProvider(DeliveryHistoryProvider):
    def __init__(self, runs=None):
        self.runs = runs or []
        self.calls = 0

    async def list_runs(self, repository, branch, status=None):
        self.calls += 1
        runs = [r for r in self.runs if r.branch == branch]
        if status == "success":
            return [r for r in runs if r.outcome is RunOutcome.SUCCESS]
        return runs

    async def list_incidents(self, repository, since):
        return []


def make_runs(branch="main", successes=7, failures=3):
    now = datetime.now(timezone.utc)
    return [
        PipelineRun(
            created_at=now - timedelta(days=i + 1),
            completed_at=now - timedelta(days=i + 1) + timedelta(minutes=20),
            outcome=RunOutcome.SUCCESS if i < successes else RunOutcome.FAILURE,
            branch=branch,
        )
        for i in range(successes + failures)
    ]


def sign(body: bytes, secret: str = SECRET) -> str:
    return "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


@pytest.fixture
def store():
    return MetricsStore()


@pytest.fixture
def provider():
    return StubProvider(runs=make_runs() + make_runs(branch="release/1.2", successes=1, failures=1))


@pytest.fixture
def client(store, provider):
    app = create_app(
        Settings(github_token="test-token", webhook_secret=SECRET),
        provider=provider,
        store=store,
    )
    with TestClient(app) as c:
        yield c


def post_event(client, event_type: str, payload: dict, signature: str | None = None):
    body = json.dumps(payload).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-GitHub-Event": event_type,
        "X-Hub-Signature-256": signature if signature is not None else sign(body),
    }
    return client.post("/webhook", content=body, headers=headers)


def push_payload(ref="refs/heads/main", repository="acme/api") -> dict:
    return {"ref": ref, "repository": {"full_name": repository}}


# ── Health + metrics ──────────────────────────────────────────────────────────

def test_health(client):
    res = client.get("/health")
    assert res.json()["status"] == "ok"


def test_metrics_feed_starts_without_samples(client):
    res = client.get("/metrics")
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/plain")
    assert "# HELP dora_deployment_frequency" in res.text
    assert 'branch="' not in res.text


# ── Webhook: computing events ─────────────────────────────────────────────────

class TestComputingEvents:
    def test_push_returns_snapshot(self, client):
        res = post_event(client, "push", push_payload())
        assert res.status_code == 200
        body = res.json()
        assert body["branch"] == "main"
        assert body["successful_count"] == 7
        assert body["failed_count"] == 3
        assert body["deployment_frequency"] == pytest.approx(10 / 30)
        assert body["change_failure_rate"] == pytest.approx(0.3)
        assert body["lead_time_minutes"] == pytest.approx(20.0)
        assert body["restore_time_hours"] == 0.0

    def test_push_updates_metrics_feed(self, client):
        post_event(client, "push", push_payload())
        text = client.get("/metrics").text
        assert 'dora_change_failure_rate{branch="main"} 0.3' in text
        assert 'dora_successful_deployments{branch="main"} 7.0' in text
        assert 'dora_failed_deployments{branch="main"} 3.0' in text

    def test_metrics_feed_logs_recorded_branches(self, client, caplog):
        post_event(client, "push", push_payload(ref="refs/heads/develop"))
        post_event(client, "push", push_payload())
        with caplog.at_level(logging.DEBUG, logger="main"):
            client.get("/metrics")
        assert "Serving metrics for 2 branch(es): develop, main" in caplog.text

    def test_push_to_nested_branch_uses_full_branch_name(self, client, store):
        res = post_event(client, "push", push_payload(ref="refs/heads/release/1.2"))
        assert res.json()["branch"] == "release/1.2"
        assert store.branches() == ["release/1.2"]

    def test_workflow_run_uses_head_branch(self, client):
        res = post_event(client, "workflow_run", {
            "action": "completed",
            "workflow_run": {"head_branch": "release/1.2"},
            "repository": {"full_name": "acme/api"},
        })
        assert res.status_code == 200
        assert res.json()["change_failure_rate"] == pytest.approx(0.5)

    def test_legacy_sha1_signature_is_accepted(self, client):
        body = json.dumps(push_payload()).encode("utf-8")
        legacy = "sha1=" + hmac.new(SECRET.encode("utf-8"), body, hashlib.sha1).hexdigest()
        res = client.post("/webhook", content=body, headers={
            "X-GitHub-Event": "push",
            "X-Hub-Signature": legacy,
        })
        assert res.status_code == 200


# ── Webhook: ignored events ───────────────────────────────────────────────────

class TestIgnoredEvents:
    def test_ping_gets_pong(self, client, store):
        res = post_event(client, "ping", {"zen": "Design for failure."})
        assert res.status_code == 200
        assert res.text == "Pong!"
        assert len(store) == 0

    def test_unrecognised_event_has_no_body_and_no_store_write(self, client, store, provider):
        res = post_event(client, "issues", {"action": "opened"})
        assert res.status_code == 200
        assert res.content == b""
        assert len(store) == 0
        assert provider.calls == 0

    def test_check_suite_is_logged_and_ignored(self, client, store):
        res = post_event(client, "check_suite", {
            "check_suite": {"head_branch": "main"},
            "repository": {"full_name": "acme/api"},
        })
        assert res.status_code == 200
        assert len(store) == 0


# ── Webhook: rejected requests ────────────────────────────────────────────────

class TestRejectedRequests:
    def test_bad_signature_is_401(self, client, store):
        res = post_event(client, "push", push_payload(), signature=sign(b"other", SECRET))
        assert res.status_code == 401
        assert len(store) == 0

    def test_wrong_secret_is_401(self, client):
        body = json.dumps(push_payload()).encode("utf-8")
        res = client.post("/webhook", content=body, headers={
            "X-GitHub-Event": "push",
            "X-Hub-Signature-256": sign(body, "not_the_secret"),
        })
        assert res.status_code == 401

    def test_missing_signature_is_401(self, client):
        res = client.post("/webhook", content=b"{}", headers={"X-GitHub-Event": "push"})
        assert res.status_code == 401

    def test_missing_event_header_is_400(self, client):
        body = b"{}"
        res = client.post("/webhook", content=body, headers={"X-Hub-Signature-256": sign(body)})
        assert res.status_code == 400

    def test_invalid_json_is_400(self, client):
        body = b"not json"
        res = client.post("/webhook", content=body, headers={
            "X-GitHub-Event": "push",
            "X-Hub-Signature-256": sign(body),
        })
        assert res.status_code == 400

    def test_push_without_repository_is_400(self, client, store):
        res = post_event(client, "push", {"ref": "refs/heads/main"})
        assert res.status_code == 400
        assert len(store) == 0

    def test_json_array_body_is_400(self, client):
        body = b"[]"
        res = client.post("/webhook", content=body, headers={
            "X-GitHub-Event": "push",
            "X-Hub-Signature-256": sign(body),
        })
        assert res.status_code == 400
