"""Free-text extraction from GitHub webhook payloads.

Each supported event type maps to the few text fields where people mention
Linear issues. Payload shapes are pydantic models that declare only those
fields; everything else in the delivery is ignored.

extract_texts() never raises: an unknown event type, invalid JSON or a
payload of the wrong shape all produce an empty list.
"""

import logging
from typing import Optional

from pydantic import BaseModel, ValidationError

logger = logging.getLogger("issue_bridge.github.events")

__all__ = ["SUPPORTED_EVENTS", "extract_texts"]


class _Commit(BaseModel):
    message: Optional[str] = None


class _TitledBody(BaseModel):
    title: Optional[str] = None
    body: Optional[str] = None


class _Body(BaseModel):
    body: Optional[str] = None


class _EventPayload(BaseModel):
    def texts(self) -> list[str]:
        raise NotImplementedError


class PushPayload(_EventPayload):
    commits: list[_Commit] = []

    def texts(self) -> list[str]:
        return [c.message or "" for c in self.commits]


class PullRequestPayload(_EventPayload):
    pull_request: _TitledBody = _TitledBody()

    def texts(self) -> list[str]:
        return [self.pull_request.title or "", self.pull_request.body or ""]


class IssuesPayload(_EventPayload):
    issue: _TitledBody = _TitledBody()

    def texts(self) -> list[str]:
        return [self.issue.title or "", self.issue.body or ""]


class CommentPayload(_EventPayload):
    """issue_comment and pull_request_review_comment deliveries."""

    comment: _Body = _Body()

    def texts(self) -> list[str]:
        return [self.comment.body or ""]


class ReviewPayload(_EventPayload):
    review: _Body = _Body()

    def texts(self) -> list[str]:
        return [self.review.body or ""]


_PAYLOAD_MODELS: dict[str, type[_EventPayload]] = {
    "push": PushPayload,
    "pull_request": PullRequestPayload,
    "issues": IssuesPayload,
    "issue_comment": CommentPayload,
    "pull_request_review": ReviewPayload,
    "pull_request_review_comment": CommentPayload,
}

SUPPORTED_EVENTS = frozenset(_PAYLOAD_MODELS)


def extract_texts(event_type: str, body: bytes) -> list[str]:
    """Return the free-text fields of a webhook delivery, in payload order.

    Args:
        event_type: Value of the X-GitHub-Event header
        body: Raw request body

    Returns:
        Text fields to scan for identifiers; empty for unknown events and
        malformed payloads
    """
    model = _PAYLOAD_MODELS.get(event_type)
    if model is None:
        return []

    try:
        payload = model.model_validate_json(body)
    except ValidationError as e:
        logger.warning(
            "webhook_payload_unparseable",
            extra={"event": event_type, "errors": e.error_count()},
        )
        return []

    return payload.texts()
