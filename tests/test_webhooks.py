"""Tests for the webhook request state machine and signature checks."""

from __future__ import annotations

import json

from fastapi.testclient import TestClient
import pytest

from reviewgate.models.schemas import EventAction
from reviewgate.routers.webhooks import sign_payload, verify_signature
from reviewgate.services.gateway import build_gateway_app
from tests.helpers import RecordingQueue, pull_request_payload

SECRET = "s3cr3t"


def make_client(secret: str = SECRET) -> tuple[TestClient, RecordingQueue]:
    queue = RecordingQueue()
    app = build_gateway_app(queue, secret=secret)
    return TestClient(app), queue


def post_event(client, payload, event="pull_request", secret=SECRET, path="/webhook", signature=None):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    headers = {"X-GitHub-Event": event, "Content-Type": "application/json"}
    if signature is None and secret:
        signature = sign_payload(body, secret)
    if signature:
        headers["X-Hub-Signature-256"] = signature
    return client.post(path, content=body, headers=headers)


class TestVerifySignature:
    def test_signed_body_verifies(self):
        body = b'{"action": "opened"}'
        assert verify_signature(body, sign_payload(body, SECRET), SECRET)

    def test_any_single_flipped_byte_fails(self):
        body = b'{"action": "opened", "number": 7}'
        signature = sign_payload(body, SECRET)
        for position in range(len(body)):
            tampered = bytearray(body)
            tampered[position] ^= 0x01
            assert not verify_signature(bytes(tampered), signature, SECRET)

    def test_missing_or_wrong_secret(self):
        body = b"{}"
        assert not verify_signature(body, None, SECRET)
        assert not verify_signature(body, "", SECRET)
        assert not verify_signature(body, sign_payload(body, "other"), SECRET)
        assert not verify_signature(body, "sha256=zz", SECRET)


class TestRequestStateMachine:
    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH"])
    def test_non_post_is_405_on_every_path(self, method):
        client, _ = make_client()
        for path in ("/webhook", "/health", "/nowhere"):
            response = client.request(method, path)
            assert response.status_code == 405
            assert response.json() == {"error": "Method not allowed"}

    def test_health_bypasses_signature(self):
        client, queue = make_client()
        response = client.post("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["timestamp"]
        assert queue.events == []

    def test_unknown_path_is_404(self):
        client, _ = make_client()
        response = post_event(client, pull_request_payload(), path="/hooks")
        assert response.status_code == 404
        assert response.json() == {"error": "Not found"}

    def test_bad_signature_is_401(self):
        client, queue = make_client()
        response = post_event(client, pull_request_payload(), signature="sha256=" + "0" * 64)
        assert response.status_code == 401
        assert queue.events == []

    def test_missing_signature_is_401(self):
        client, _ = make_client()
        body = json.dumps(pull_request_payload()).encode()
        response = client.post("/webhook", content=body, headers={"X-GitHub-Event": "pull_request"})
        assert response.status_code == 401

    def test_non_pull_request_event_is_ignored(self):
        client, queue = make_client()
        response = post_event(client, {"zen": "Keep it logically awesome."}, event="ping")
        assert response.status_code == 200
        assert response.json()["ignored"] is True
        assert "ping" in response.json()["message"]
        assert queue.events == []

    def test_malformed_json_is_400(self):
        client, _ = make_client()
        response = post_event(client, b"{not json")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON payload"}

    def test_json_that_is_not_an_object_is_400(self):
        client, _ = make_client()
        assert post_event(client, b"[1, 2]").status_code == 400

    def test_closed_action_is_ignored(self):
        client, queue = make_client()
        response = post_event(client, pull_request_payload(action="closed"))
        assert response.status_code == 200
        assert response.json() == {"message": "PR action 'closed' ignored", "ignored": True}
        assert queue.events == []

    @pytest.mark.parametrize(
        "wire,expected",
        [
            ("opened", EventAction.OPENED),
            ("synchronize", EventAction.SYNCHRONIZED),
            ("reopened", EventAction.REOPENED),
            ("ready_for_review", EventAction.READY_FOR_REVIEW),
        ],
    )
    def test_reviewable_action_is_published(self, wire, expected):
        client, queue = make_client()
        response = post_event(client, pull_request_payload(action=wire, number=7))

        assert response.status_code == 200
        assert response.json() == {"message": "Review triggered", "pr": 7, "action": expected.value}
        (event,) = queue.events
        assert event.action is expected
        assert event.subject_id == 7
        assert event.repository.owner == "acme"
        assert event.repository.name == "rocket"
        assert event.sender_id == "octocat"
        assert event.head_sha == "abc123"

    def test_root_path_alias(self):
        client, queue = make_client()
        assert post_event(client, pull_request_payload(), path="/").status_code == 200
        assert len(queue.events) == 1

    def test_incomplete_pull_request_payload_is_400(self):
        client, queue = make_client()
        response = post_event(client, {"action": "opened", "repository": {"name": "rocket"}})
        assert response.status_code == 400
        assert queue.events == []

    def test_no_secret_skips_verification(self):
        client, queue = make_client(secret="")
        response = post_event(client, pull_request_payload(), secret="")
        assert response.status_code == 200
        assert len(queue.events) == 1

    def test_custom_paths(self):
        app = build_gateway_app(RecordingQueue(), secret="", webhook_path="/gh", health_path="/alive")
        client = TestClient(app)
        assert client.post("/alive").status_code == 200
        assert post_event(client, pull_request_payload(), secret="", path="/gh").status_code == 200
        assert post_event(client, pull_request_payload(), secret="", path="/webhook").status_code == 404
