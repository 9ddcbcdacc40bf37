"""Tests for the FastAPI application using TestClient and in-memory fakes."""

import asyncio
import json

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from issue_bridge.cache import IssueCache
from issue_bridge.config import BridgeConfig, ConfigurationError
from issue_bridge.connectors.github.webhook import WebhookProcessor, compute_signature
from issue_bridge.connectors.linear.client import LinearClientError
from issue_bridge.server import create_app

SECRET = "webhook-secret"
DELIVERIES = "issue_bridge_webhook_deliveries_total"


class DictFetcher:
    def __init__(self, issues=None, error=None, delay=0.0):
        self.issues = dict(issues or {})
        self.error = error
        self.delay = delay
        self.calls: list[str] = []

    async def fetch_issue(self, identifier):
        self.calls.append(identifier)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.issues.get(identifier)


class RecordingLabeler:
    def __init__(self, error=None):
        self.calls: list[str] = []
        self.error = error

    async def ensure_public_label(self, identifier):
        self.calls.append(identifier)
        if self.error is not None:
            raise self.error


@pytest.fixture
def config():
    return BridgeConfig(linear_team_key="MIR", github_webhook_secret=SECRET)


@pytest.fixture
def labeler():
    return RecordingLabeler()


def _client(config, fetcher, labeler, **kwargs) -> TestClient:
    app = create_app(
        config,
        issue_cache=IssueCache(fetcher),
        processor=WebhookProcessor(SECRET, config.linear_team_key, labeler),
        **kwargs,
    )
    return TestClient(app)


def _signed_post(client, event, payload, secret=SECRET):
    body = json.dumps(payload).encode()
    return client.post(
        "/webhook/github",
        content=body,
        headers={
            "X-GitHub-Event": event,
            "X-Hub-Signature-256": compute_signature(secret.encode(), body),
            "Content-Type": "application/json",
        },
    )


class TestHealth:
    def test_health(self, config, labeler):
        response = _client(config, DictFetcher(), labeler).get("/health")

        assert response.status_code == 200
        assert response.text == "ok"

    def test_metrics_mounted(self, config, labeler):
        response = _client(config, DictFetcher(), labeler).get("/metrics/")

        assert response.status_code == 200
        assert "issue_bridge_cache_lookups" in response.text


class TestIssueEndpoint:
    def test_public_issue_full_details(self, config, labeler, public_issue):
        client = _client(config, DictFetcher({"MIR-42": public_issue}), labeler)

        response = client.get("/issues/mir-42")

        assert response.status_code == 200
        body = response.json()
        assert body["identifier"] == "MIR-42"
        assert body["title"] == "Crash on start"
        assert body["public"] is True

    def test_private_issue_stub(self, config, labeler, private_issue):
        client = _client(config, DictFetcher({"MIR-7": private_issue}), labeler)

        response = client.get("/issues/MIR-7")

        assert response.status_code == 200
        assert response.json() == {"identifier": "MIR-7", "public": False}

    def test_not_found(self, config, labeler):
        assert _client(config, DictFetcher(), labeler).get("/issues/MIR-1").status_code == 404

    @pytest.mark.parametrize("path", ["/issues/ENG-1", "/issues/MIR42", "/issues/MIR-1x"])
    def test_other_team_or_malformed_never_fetched(self, config, labeler, path):
        fetcher = DictFetcher()

        assert _client(config, fetcher, labeler).get(path).status_code == 404
        assert fetcher.calls == []

    def test_upstream_error(self, config, labeler):
        fetcher = DictFetcher(error=LinearClientError("503"))
        assert _client(config, fetcher, labeler).get("/issues/MIR-1").status_code == 500

    def test_timeout(self, config, labeler):
        fetcher = DictFetcher(delay=1.0)
        client = _client(config, fetcher, labeler, request_timeout=0.01)

        assert client.get("/issues/MIR-1").status_code == 504

    def test_served_from_cache(self, config, labeler, public_issue):
        fetcher = DictFetcher({"MIR-42": public_issue})
        client = _client(config, fetcher, labeler)

        client.get("/issues/MIR-42")
        client.get("/issues/MIR-42")

        assert fetcher.calls == ["MIR-42"]


class TestWebhook:
    def test_push_labels_in_order(self, config, labeler):
        client = _client(config, DictFetcher(), labeler)

        response = _signed_post(
            client, "push", {"commits": [{"message": "Fix MIR-42, follow-up to MIR-7"}]}
        )

        assert response.status_code == 200
        assert labeler.calls == ["MIR-42", "MIR-7"]
        assert response.json() == {
            "status": "ok",
            "event": "push",
            "identifiers": ["MIR-42", "MIR-7"],
            "applied": ["MIR-42", "MIR-7"],
            "failed": [],
        }

    def test_other_team_no_attempts(self, config, labeler):
        client = _client(config, DictFetcher(), labeler)

        response = _signed_post(client, "push", {"commits": [{"message": "ENG-5"}]})

        assert response.status_code == 200
        assert labeler.calls == []

    def test_bad_signature_rejected(self, config, labeler):
        client = _client(config, DictFetcher(), labeler)

        response = _signed_post(
            client, "push", {"commits": [{"message": "MIR-1"}]}, secret="wrong"
        )

        assert response.status_code == 403
        assert labeler.calls == []

    def test_missing_signature_rejected(self, config, labeler):
        client = _client(config, DictFetcher(), labeler)

        response = client.post(
            "/webhook/github",
            content=b'{"commits": [{"message": "MIR-1"}]}',
            headers={"X-GitHub-Event": "push"},
        )

        assert response.status_code == 403
        assert labeler.calls == []

    def test_unknown_event_names_share_one_series(self, config, labeler):
        client = _client(config, DictFetcher(), labeler)
        labels = {"event": "other", "status": "rejected"}
        before = REGISTRY.get_sample_value(DELIVERIES, labels) or 0.0

        for i in range(5):
            response = client.post(
                "/webhook/github", content=b"{}", headers={"X-GitHub-Event": f"junk-{i}"}
            )
            assert response.status_code == 403

        assert REGISTRY.get_sample_value(DELIVERIES, labels) == before + 5
        assert REGISTRY.get_sample_value(DELIVERIES, {"event": "junk-0", "status": "rejected"}) is None

    def test_supported_event_keeps_its_label(self, config, labeler):
        client = _client(config, DictFetcher(), labeler)
        labels = {"event": "issue_comment", "status": "accepted"}
        before = REGISTRY.get_sample_value(DELIVERIES, labels) or 0.0

        _signed_post(client, "issue_comment", {"comment": {"body": "ENG-1"}})

        assert REGISTRY.get_sample_value(DELIVERIES, labels) == before + 1

    def test_labeler_error_still_ok(self, config):
        labeler = RecordingLabeler(error=LinearClientError("linear down"))
        client = _client(config, DictFetcher(), labeler)

        response = _signed_post(client, "issues", {"issue": {"title": "MIR-3", "body": ""}})

        assert response.status_code == 200
        assert response.json()["failed"] == ["MIR-3"]

    def test_oversized_body(self, config, labeler):
        client = _client(config, DictFetcher(), labeler)
        body = b"x" * ((1 << 20) + 1)

        response = client.post(
            "/webhook/github",
            content=body,
            headers={
                "X-GitHub-Event": "push",
                "X-Hub-Signature-256": compute_signature(SECRET.encode(), body),
            },
        )

        assert response.status_code == 413
        assert labeler.calls == []

    def test_unknown_event_acknowledged(self, config, labeler):
        client = _client(config, DictFetcher(), labeler)

        response = _signed_post(client, "star", {"action": "created"})

        assert response.status_code == 200
        assert response.json()["identifiers"] == []


class TestCreateApp:
    def test_requires_linear_settings(self):
        with pytest.raises(ConfigurationError, match="LINEAR_API_KEY"):
            create_app(BridgeConfig(linear_team_key="MIR"))

    def test_builds_default_collaborators(self):
        config = BridgeConfig(linear_api_key="lin_api_x", linear_team_key="MIR")
        with TestClient(create_app(config)) as client:
            assert client.get("/health").text == "ok"
