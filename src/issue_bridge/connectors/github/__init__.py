"""GitHub integration package.

Paginated REST client, webhook payload extraction and verification, and the
repository backfill scanner.
"""

from .backfill import BackfillError, RepoScanner
from .client import GitHubClient, GitHubClientError, RateLimitExceeded, next_page_url
from .events import SUPPORTED_EVENTS, extract_texts
from .webhook import (
    EVENT_HEADER,
    MAX_BODY_SIZE,
    SIGNATURE_HEADER,
    WebhookAuthenticationError,
    WebhookProcessor,
    WebhookResult,
    compute_signature,
)

__all__ = [
    "EVENT_HEADER",
    "MAX_BODY_SIZE",
    "SIGNATURE_HEADER",
    "SUPPORTED_EVENTS",
    "BackfillError",
    "GitHubClient",
    "GitHubClientError",
    "RateLimitExceeded",
    "RepoScanner",
    "WebhookAuthenticationError",
    "WebhookProcessor",
    "WebhookResult",
    "compute_signature",
    "extract_texts",
    "next_page_url",
]
