"""GitHub pull request webhook receiver routes."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import Any

from fastapi import APIRouter, Header, HTTPException, Request, status
from pydantic import ValidationError

from reviewgate.models.schemas import (
    REVIEWABLE_ACTIONS,
    EventAction,
    HealthResponse,
    WebhookAck,
    WebhookIgnored,
)
from reviewgate.services.event_normalizer import normalize_pull_request_event
from reviewgate.services.event_queue import EventQueue

logger = logging.getLogger(__name__)

PULL_REQUEST_EVENT = "pull_request"
SIGNATURE_PREFIX = "sha256="


def sign_payload(payload: bytes, secret: str) -> str:
    """Return the `X-Hub-Signature-256` value GitHub would send for ``payload``."""
    digest = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: bytes, signature: str | None, secret: str) -> bool:
    """Constant-time check of a GitHub HMAC-SHA256 signature header."""
    if not signature:
        return False
    expected = sign_payload(payload, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def _get_queue(request: Request) -> EventQueue:
    queue = getattr(request.app.state, "event_queue", None)
    if queue is None:
        raise HTTPException(status_code=500, detail="Event queue is not configured")
    return queue


def _parse_body(raw_payload: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(raw_payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")
    return payload


async def health_check() -> HealthResponse:
    """Liveness probe; bypasses signature and event checks."""
    return HealthResponse()


async def receive_webhook(
    request: Request,
    x_github_event: str | None = Header(default=None, alias="X-GitHub-Event"),
    x_hub_signature_256: str | None = Header(default=None, alias="X-Hub-Signature-256"),
) -> WebhookAck | WebhookIgnored:
    """Verify, filter, and publish a pull request event."""
    raw_payload = await request.body()

    secret = getattr(request.app.state, "webhook_secret", "")
    if secret and not verify_signature(raw_payload, x_hub_signature_256, secret):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")

    if x_github_event != PULL_REQUEST_EVENT:
        return WebhookIgnored(message=f"Event '{x_github_event}' ignored")

    payload = _parse_body(raw_payload)

    action = EventAction.from_wire(payload.get("action"))
    if action not in REVIEWABLE_ACTIONS:
        return WebhookIgnored(message=f"PR action '{payload.get('action')}' ignored")

    try:
        event = normalize_pull_request_event(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payload is not a valid pull request event",
        ) from exc

    queue = _get_queue(request)
    await queue.publish(event)

    logger.info(
        "Webhook received: PR #%s %r (%s) repository=%s",
        event.subject_id,
        event.title,
        event.action.value,
        event.repository.full_name,
    )
    return WebhookAck(pr=event.subject_id, action=event.action)


def build_webhook_router(webhook_path: str = "/webhook", health_path: str = "/health") -> APIRouter:
    """Mount the health probe, the webhook path, and its root alias."""
    router = APIRouter()
    router.add_api_route(
        health_path,
        health_check,
        methods=["POST"],
        response_model=HealthResponse,
        summary="Health check",
    )
    for path in dict.fromkeys((webhook_path, "/")):
        router.add_api_route(
            path,
            receive_webhook,
            methods=["POST"],
            response_model=None,
            summary="GitHub pull request webhook",
        )
    return router
