"""Authenticated GitHub webhook ingestion.

WebhookProcessor holds the framework-independent part of the webhook
endpoint:

1. Verify X-Hub-Signature-256 (HMAC-SHA256 of the raw body, hex, "sha256="
   prefix) in constant time.
2. Pull the free-text fields for the event type and scan them for issue
   identifiers.
3. Keep the configured team's identifiers and ask the labeler to mark each
   one public.

Labeling failures are logged and counted, never raised: once a delivery is
authenticated GitHub always gets a success response, so a Linear outage does
not turn into a redelivery storm.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Optional

from issue_bridge.connectors.github.events import extract_texts
from issue_bridge.connectors.linear.labeler import Labeler
from issue_bridge.identifiers import filter_team, scan_identifiers

logger = logging.getLogger("issue_bridge.github.webhook")

MAX_BODY_SIZE = 1 << 20  # 1 MiB
SIGNATURE_HEADER = "X-Hub-Signature-256"
EVENT_HEADER = "X-GitHub-Event"
SIGNATURE_PREFIX = "sha256="


class WebhookAuthenticationError(Exception):
    """Raised when a delivery's signature is missing, malformed or wrong."""


@dataclass
class WebhookResult:
    """Outcome of one authenticated delivery.

    Attributes:
        event_type: X-GitHub-Event value
        identifiers: Team identifiers found, in first-occurrence order
        applied: Identifiers the labeler processed without error
        failed: Identifiers whose labeling raised
    """

    event_type: str
    identifiers: list[str] = field(default_factory=list)
    applied: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "event": self.event_type,
            "identifiers": self.identifiers,
            "applied": self.applied,
            "failed": self.failed,
        }


def compute_signature(secret: bytes, body: bytes) -> str:
    """X-Hub-Signature-256 value GitHub sends for body."""
    return SIGNATURE_PREFIX + hmac.new(secret, body, hashlib.sha256).hexdigest()


class WebhookProcessor:
    """Verifies and processes GitHub webhook deliveries for one Linear team.

    Attributes:
        team_key: Upper-case team key; identifiers of other teams are ignored
        labeler: Anything with async ensure_public_label(identifier)
    """

    def __init__(self, secret: str, team_key: str, labeler: Labeler) -> None:
        """Initialize processor.

        Args:
            secret: Webhook shared secret; an empty secret rejects every delivery
            team_key: Linear team key (any case)
            labeler: Label applier, usually a PublicLabeler
        """
        self._secret = secret.encode()
        self.team_key = team_key.upper()
        self.labeler = labeler

    def verify_signature(self, body: bytes, signature: Optional[str]) -> bool:
        """Check a delivery's signature header against the raw body.

        Args:
            body: Raw request body bytes, exactly as received
            signature: X-Hub-Signature-256 header value, or None when absent

        Returns:
            True only for a well-formed, matching signature
        """
        if not self._secret:
            return False
        if not signature or not signature.startswith(SIGNATURE_PREFIX):
            return False
        try:
            received = bytes.fromhex(signature[len(SIGNATURE_PREFIX):])
        except ValueError:
            return False
        expected = hmac.new(self._secret, body, hashlib.sha256).digest()
        return hmac.compare_digest(received, expected)

    def authenticate(self, body: bytes, signature: Optional[str]) -> None:
        """Raise WebhookAuthenticationError unless verify_signature() passes."""
        if not self.verify_signature(body, signature):
            raise WebhookAuthenticationError("invalid signature")

    def find_identifiers(self, event_type: str, body: bytes) -> list[str]:
        """Team identifiers referenced by a delivery, first occurrence first."""
        text = "".join(t + "\n" for t in extract_texts(event_type, body))
        return filter_team(scan_identifiers(text), self.team_key)

    async def process(self, event_type: str, body: bytes) -> WebhookResult:
        """Label every team issue a verified delivery mentions.

        The caller must have authenticated the body first. Each identifier is
        handled independently; errors are logged and recorded in the result.

        Args:
            event_type: X-GitHub-Event header value
            body: Raw, verified request body

        Returns:
            WebhookResult describing what was attempted
        """
        result = WebhookResult(event_type=event_type)
        result.identifiers = self.find_identifiers(event_type, body)

        for identifier in result.identifiers:
            try:
                await self.labeler.ensure_public_label(identifier)
            except Exception as e:
                logger.error(
                    "ensure_public_label_failed",
                    extra={"identifier": identifier, "error": str(e)},
                )
                result.failed.append(identifier)
            else:
                result.applied.append(identifier)

        if result.identifiers:
            logger.info("webhook_processed", extra=result.to_dict())
        return result
