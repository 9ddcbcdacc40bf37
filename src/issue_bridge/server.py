"""Issue bridge HTTP service.

FastAPI application exposing:
- GET /health: liveness probe, plain "ok"
- GET /issues/{identifier}: cached issue lookup; full details only for
  issues labeled public
- POST /webhook/github: signed GitHub deliveries that trigger public labeling
- /metrics: Prometheus exposition

create_app() builds the collaborators from configuration unless they are
passed in, which is how the tests run it against fakes.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import make_asgi_app
from pydantic import BaseModel, Field
from starlette.requests import ClientDisconnect

from issue_bridge.__version__ import __version__
from issue_bridge.cache import IssueCache
from issue_bridge.config import BridgeConfig, get_config
from issue_bridge.connectors.github.events import SUPPORTED_EVENTS
from issue_bridge.connectors.github.webhook import (
    EVENT_HEADER,
    MAX_BODY_SIZE,
    SIGNATURE_HEADER,
    WebhookProcessor,
)
from issue_bridge.connectors.linear import LinearClient, PublicLabeler
from issue_bridge.identifiers import identifier_matcher
from issue_bridge.metrics import webhook_deliveries_total

logger = logging.getLogger("issue_bridge.server")


class IssueStubResponse(BaseModel):
    """Response for an issue that exists but is not public."""

    identifier: str = Field(..., description="Issue identifier, e.g. MIR-42")
    public: bool = Field(False, description="Always false for stubs")


class WebhookResponse(BaseModel):
    """Acknowledgement of an authenticated delivery."""

    status: str = Field("ok", description="Always ok once authenticated")
    event: str = Field(..., description="X-GitHub-Event value")
    identifiers: list[str] = Field(default_factory=list, description="Team identifiers found")
    applied: list[str] = Field(default_factory=list, description="Labeled or already public")
    failed: list[str] = Field(default_factory=list, description="Labeling raised an error")


class PayloadTooLarge(Exception):
    pass


async def _read_body(request: Request, limit: int = MAX_BODY_SIZE) -> bytes:
    """Read the request body, refusing to buffer more than limit bytes."""
    chunks: list[bytes] = []
    size = 0
    async for chunk in request.stream():
        size += len(chunk)
        if size > limit:
            raise PayloadTooLarge(f"body exceeds {limit} bytes")
        chunks.append(chunk)
    return b"".join(chunks)


def create_app(
    config: Optional[BridgeConfig] = None,
    *,
    issue_cache: Optional[IssueCache] = None,
    processor: Optional[WebhookProcessor] = None,
    request_timeout: Optional[float] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Settings; get_config() when omitted
        issue_cache: Cache for the issue endpoint; built on a LinearClient when omitted
        processor: Webhook processor; built on a PublicLabeler when omitted
        request_timeout: Deadline for issue lookups in seconds
            (default: config.request_timeout_seconds)

    Raises:
        ConfigurationError: If a collaborator must be built and the Linear
            API key or team key is missing
    """
    config = config or get_config()
    timeout = request_timeout if request_timeout is not None else config.request_timeout_seconds

    owned: list[LinearClient] = []
    if issue_cache is None or processor is None:
        config.require("linear_api_key", "linear_team_key")
        linear = LinearClient(
            config.linear_api_key.get_secret_value(), endpoint=config.linear_api_url
        )
        owned.append(linear)
        if issue_cache is None:
            issue_cache = IssueCache(linear, ttl=config.cache_ttl_seconds)
        if processor is None:
            processor = WebhookProcessor(
                config.github_webhook_secret.get_secret_value(),
                config.linear_team_key,
                PublicLabeler(linear, config.linear_team_key),
            )

    matcher = identifier_matcher(config.linear_team_key or processor.team_key)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "server_starting",
            extra={"team": processor.team_key, "version": __version__},
        )
        yield
        for client in owned:
            await client.close()

    app = FastAPI(
        title="Linear Issue Bridge",
        description="Public Linear issue lookups and GitHub-driven public labeling",
        version=__version__,
        lifespan=lifespan,
    )
    app.mount("/metrics", make_asgi_app())

    @app.get("/health", response_class=PlainTextResponse, tags=["Health"])
    async def health() -> str:
        return "ok"

    @app.get("/issues/{identifier}", tags=["Issues"])
    async def get_issue(identifier: str) -> Any:
        """
        Look up an issue through the cache.

        Identifiers are upper-cased and must belong to the configured team.
        Non-public issues are reported as a stub without any details.
        """
        identifier = identifier.upper()
        if not matcher.fullmatch(identifier):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

        try:
            issue = await asyncio.wait_for(issue_cache.get(identifier), timeout)
        except asyncio.TimeoutError:
            logger.error("issue_lookup_timeout", extra={"identifier": identifier})
            raise HTTPException(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="Upstream timeout"
            )
        except Exception as e:
            logger.error(
                "issue_lookup_failed", extra={"identifier": identifier, "error": str(e)}
            )
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to fetch issue",
            )

        if issue is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
        if not issue.is_public:
            return IssueStubResponse(identifier=identifier)
        return {**issue.to_dict(), "public": True}

    @app.post("/webhook/github", response_model=WebhookResponse, tags=["Webhooks"])
    async def github_webhook(request: Request) -> Any:
        """
        Receive a GitHub delivery.

        Unreadable or oversized bodies and bad signatures are rejected. Once
        authenticated, the response is 200 whatever the labeling outcome.
        """
        event_type = request.headers.get(EVENT_HEADER, "")
        # Header is unauthenticated; keep the label set bounded
        metric_event = event_type if event_type in SUPPORTED_EVENTS else "other"

        try:
            body = await _read_body(request)
        except PayloadTooLarge:
            webhook_deliveries_total.labels(event=metric_event, status="rejected").inc()
            return JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content={"detail": "Payload too large"},
            )
        except ClientDisconnect:
            webhook_deliveries_total.labels(event=metric_event, status="rejected").inc()
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"detail": "Failed to read body"},
            )

        if not processor.verify_signature(body, request.headers.get(SIGNATURE_HEADER)):
            logger.warning("webhook_signature_invalid", extra={"event": event_type})
            webhook_deliveries_total.labels(event=metric_event, status="rejected").inc()
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={"detail": "Invalid signature"},
            )

        result = await processor.process(event_type, body)
        webhook_deliveries_total.labels(event=metric_event, status="accepted").inc()
        return WebhookResponse(**result.to_dict())

    return app
