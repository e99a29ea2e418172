"""GitHub pull request payload normalization."""

from __future__ import annotations

from typing import Any

from reviewgate.models.schemas import EventAction, InboundEvent, RepositoryRef


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def normalize_pull_request_event(payload: dict[str, Any]) -> InboundEvent:
    """Normalize a GitHub `pull_request` webhook body into an ``InboundEvent``.

    Raises ``pydantic.ValidationError`` when the payload lacks the pull
    request number or the repository owner/name.
    """
    repo = _mapping(payload.get("repository"))
    pr = _mapping(payload.get("pull_request"))
    sender = _mapping(payload.get("sender"))

    owner = repo.get("owner")
    if isinstance(owner, dict):
        owner = owner.get("login")
    if not owner and isinstance(repo.get("full_name"), str) and "/" in repo["full_name"]:
        owner = repo["full_name"].split("/", 1)[0]

    return InboundEvent(
        action=EventAction.from_wire(payload.get("action")),
        subject_id=payload.get("number", pr.get("number")),
        repository=RepositoryRef(owner=owner, name=repo.get("name")),
        sender_id=str(sender.get("login") or sender.get("id") or ""),
        head_sha=_mapping(pr.get("head")).get("sha"),
        title=pr.get("title"),
        payload=payload,
    )
