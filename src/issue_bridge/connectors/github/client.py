"""GitHub REST API client.

Provides an async httpx-based client for GitHub REST API v3 list endpoints.
Implements Link header pagination, rate limit handling (primary + secondary)
and exponential backoff for transient failures.

Requests carry a Bearer token only when one is configured; anonymous clients
send no Authorization header at all.

Reference: https://docs.github.com/en/rest
Rate limits: https://docs.github.com/en/rest/using-the-rest-api/rate-limits-for-the-rest-api
"""

import asyncio
import logging
import random
import re
import time
from collections.abc import AsyncIterator, Mapping
from datetime import datetime, timezone
from typing import Any

import httpx

from issue_bridge.config import DEFAULT_GITHUB_API_URL

logger = logging.getLogger("issue_bridge.github.client")

_LINK_NEXT_RE = re.compile(r'\s*<([^>]+)>;\s*rel="next"')


class GitHubClientError(Exception):
    """A GitHub request failed: transport error, non-2xx status or bad page."""


class RateLimitExceeded(GitHubClientError):
    """Still rate limited after the last retry."""

    def __init__(self, reset_at: datetime, message: str = "Rate limit exceeded"):
        self.reset_at = reset_at
        super().__init__(f"{message}. Resets at {reset_at.isoformat()}")


def next_page_url(headers: Mapping[str, str]) -> str | None:
    """Pagination cursor: the rel="next" URL of a response, or None on the last page.

    Format: <https://api.github.com/...?page=2>; rel="next", <...>; rel="last"
    """
    link_header = headers.get("Link") or headers.get("link") or ""
    for part in link_header.split(","):
        match = _LINK_NEXT_RE.match(part.strip())
        if match:
            return match.group(1)
    return None


class GitHubClient:
    """GitHub REST API client using httpx.

    Uses a long-lived httpx.AsyncClient with connection pooling. Every
    non-2xx response that survives the retry policy raises GitHubClientError;
    callers never see partial pages.

    Attributes:
        base_url: GitHub API base URL (default: https://api.github.com)
        repo: Target repository in owner/repo format
        max_retries: Retries for 5xx, timeouts and rate limit responses
        _rate_limit_remaining: Tracked from X-RateLimit-Remaining header
        _rate_limit_reset: Tracked from X-RateLimit-Reset header

    Example:
        >>> async with GitHubClient("owner/repo", token="ghp_token") as client:
        ...     async for page in client.iter_pages("/repos/owner/repo/pulls", {"state": "all"}):
        ...         print(len(page))
    """

    BASE_URL = DEFAULT_GITHUB_API_URL

    MIN_REQUEST_DELAY_MS = 100  # Minimum delay between requests (ms)

    CONNECT_TIMEOUT = 5.0  # seconds
    READ_TIMEOUT = 30.0  # seconds
    WRITE_TIMEOUT = 5.0  # seconds
    POOL_TIMEOUT = 5.0  # seconds

    MAX_RETRIES = 3
    BASE_BACKOFF = 2  # seconds, exponential: min(60, 2^attempt)
    MAX_BACKOFF = 60  # seconds

    DEFAULT_PER_PAGE = 100
    MAX_PAGES = 1000  # runaway pagination guard

    def __init__(
        self,
        repo: str,
        token: str | None = None,
        base_url: str | None = None,
        min_delay_ms: int = MIN_REQUEST_DELAY_MS,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        """Initialize GitHub client.

        Args:
            repo: Target repository in owner/repo format
            token: GitHub token; None or empty sends unauthenticated requests
            base_url: GitHub API base URL (default: https://api.github.com)
            min_delay_ms: Minimum delay between requests in milliseconds
            max_retries: Retries for transient failures before giving up
        """
        self.repo = repo
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.max_retries = max_retries
        self._min_delay_s = min_delay_ms / 1000.0

        self._rate_limit_remaining: int | None = None
        self._rate_limit_reset: float | None = None
        self._last_request_time: float = 0.0

        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "linear-issue-bridge/1.0",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(
                connect=self.CONNECT_TIMEOUT,
                read=self.READ_TIMEOUT,
                write=self.WRITE_TIMEOUT,
                pool=self.POOL_TIMEOUT,
            ),
        )

    async def __aenter__(self) -> "GitHubClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit -- close httpx client."""
        await self.close()

    async def close(self) -> None:
        """Close the httpx client and release connections."""
        await self._client.aclose()

    def repo_path(self, suffix: str) -> str:
        """API path under the configured repository ("/pulls" -> "/repos/o/r/pulls")."""
        return f"/repos/{self.repo}{suffix}"

    # --- Rate limiting ---

    async def _throttle(self) -> None:
        """Keep at least min_delay between consecutive requests."""
        wait = self._min_delay_s - (time.monotonic() - self._last_request_time)
        if wait > 0:
            await asyncio.sleep(wait)

    def _track_rate_limit(self, headers: Mapping[str, str]) -> None:
        """Remember the primary rate limit window GitHub reported."""
        remaining = headers.get("X-RateLimit-Remaining")
        reset = headers.get("X-RateLimit-Reset")
        try:
            if remaining is not None:
                self._rate_limit_remaining = int(remaining)
            if reset is not None:
                self._rate_limit_reset = float(reset)
        except ValueError:
            logger.warning(
                "github_rate_limit_headers_invalid",
                extra={"remaining": remaining, "reset": reset},
            )

    def _backoff(self, attempt: int) -> float:
        return float(min(self.MAX_BACKOFF, self.BASE_BACKOFF ** (attempt + 1)))

    def _retry_delay(self, response: httpx.Response, attempt: int) -> float | None:
        """Seconds to wait before retrying a failed response, None if it is final.

        Raises:
            RateLimitExceeded: If a rate limit response arrives on the last attempt
        """
        status = response.status_code
        last_attempt = attempt >= self.max_retries

        # Primary limit: 403 with an exhausted window
        if status == 403 and response.headers.get("X-RateLimit-Remaining") == "0":
            try:
                reset = float(response.headers.get("X-RateLimit-Reset", "0"))
            except ValueError:
                reset = time.time() + self.MAX_BACKOFF
            if last_attempt:
                raise RateLimitExceeded(datetime.fromtimestamp(reset, tz=timezone.utc))
            return min(max(1.0, reset - time.time()), self.MAX_BACKOFF)

        # Secondary limit: 429 with Retry-After
        if status == 429:
            try:
                retry_after = int(response.headers.get("Retry-After", "60"))
            except ValueError:
                retry_after = 60
            if last_attempt:
                raise RateLimitExceeded(
                    datetime.fromtimestamp(time.time() + retry_after, tz=timezone.utc),
                    "Secondary rate limit exceeded",
                )
            return float(min(retry_after, self.MAX_BACKOFF))

        if status >= 500 and not last_attempt:
            return self._backoff(attempt) + random.uniform(0, 1)

        return None

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """GitHub's JSON "message" field, falling back to the raw body."""
        try:
            body = response.json()
        except (ValueError, UnicodeDecodeError):
            return response.text
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.text

    # --- Requests ---

    async def _raw_request(
        self,
        method: str,
        url: str,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request, retrying rate limits, 5xx and timeouts.

        Args:
            method: HTTP method
            url: API path relative to base_url, or an absolute URL from a Link header
            params: Query parameters

        Returns:
            httpx.Response with a 2xx status

        Raises:
            GitHubClientError: On any other status once retries are spent, or
                on a transport failure
            RateLimitExceeded: When still rate limited on the last attempt
        """
        for attempt in range(self.max_retries + 1):
            await self._throttle()
            self._last_request_time = time.monotonic()

            try:
                response = await self._client.request(method, url, params=params)
            except httpx.TimeoutException as e:
                if attempt >= self.max_retries:
                    raise GitHubClientError(
                        f"Request timeout after {self.max_retries} retries: {e}"
                    ) from e
                delay = self._backoff(attempt)
                logger.warning(
                    "github_request_timeout",
                    extra={"url": url, "attempt": attempt + 1, "retry_in": delay},
                )
                await asyncio.sleep(delay)
                continue
            except httpx.HTTPError as e:
                raise GitHubClientError(f"HTTP error: {e}") from e

            self._track_rate_limit(response.headers)
            if 200 <= response.status_code < 300:
                return response

            delay = self._retry_delay(response, attempt)
            if delay is None:
                raise GitHubClientError(
                    f"GitHub API error {response.status_code}: {self._error_message(response)}"
                )
            logger.warning(
                "github_request_retrying",
                extra={
                    "url": url,
                    "status": response.status_code,
                    "attempt": attempt + 1,
                    "retry_in": round(delay, 1),
                },
            )
            await asyncio.sleep(delay)

        raise GitHubClientError("Request failed after all retries")

    # --- Pagination ---

    async def iter_pages(
        self,
        path: str,
        params: dict[str, str] | None = None,
    ) -> AsyncIterator[Any]:
        """Yield the decoded JSON body of every page of a list endpoint.

        Follows GitHub's Link header pagination pattern:
        - Set per_page=100 on the first request
        - After each page, next_page_url() gives the following request
        - Stop when there is no rel="next" link

        Decoding individual items is left to the caller.

        Args:
            path: API path of the first page
            params: Query parameters for the first page (per_page added)

        Yields:
            Decoded JSON of each page, in order

        Raises:
            GitHubClientError: If any page fails, the next link points off
                base_url, or the listing runs past MAX_PAGES
        """
        current_url: str | None = path
        current_params: dict[str, str] | None = {
            **(params or {}),
            "per_page": str(self.DEFAULT_PER_PAGE),
        }

        for page in range(1, self.MAX_PAGES + 1):
            response = await self._raw_request("GET", current_url, params=current_params)
            try:
                data = response.json()
            except ValueError as e:
                raise GitHubClientError(f"decode page {page} of {path}: {e}") from e

            yield data

            current_url = self._checked_next_url(response.headers)
            if current_url is None:
                return

            # Parameters are embedded in the Link URL
            current_params = None
            logger.debug("github_next_page", extra={"path": path, "page": page + 1})

        logger.error(
            "github_pagination_page_cap", extra={"path": path, "max_pages": self.MAX_PAGES}
        )
        raise GitHubClientError(f"pagination of {path} exceeded {self.MAX_PAGES} pages")

    def _checked_next_url(self, headers: Mapping[str, str]) -> str | None:
        """rel="next" URL of a page, None on the last page.

        Raises:
            GitHubClientError: If the next URL is not under base_url
        """
        url = next_page_url(headers)
        if url is None:
            return None
        if not url.startswith(self.base_url + "/"):
            logger.error("github_link_off_host_rejected", extra={"url": url[:100]})
            raise GitHubClientError(f"next page link off {self.base_url}: {url[:100]}")
        return url

    # --- Repository listings ---

    def list_pull_requests(self, state: str = "all") -> AsyncIterator[Any]:
        """Pages of pull requests in the given state (open, closed, all)."""
        return self.iter_pages(self.repo_path("/pulls"), {"state": state})

    def list_issues(self, state: str = "all") -> AsyncIterator[Any]:
        """Pages of issues (GitHub includes pull requests here) in the given state."""
        return self.iter_pages(self.repo_path("/issues"), {"state": state})

    def list_issue_comments(self) -> AsyncIterator[Any]:
        """Pages of every issue and PR conversation comment in the repository."""
        return self.iter_pages(self.repo_path("/issues/comments"))

    def list_review_comments(self) -> AsyncIterator[Any]:
        """Pages of every pull request review (diff) comment in the repository."""
        return self.iter_pages(self.repo_path("/pulls/comments"))

    def get_rate_limit_status(self) -> dict[str, Any]:
        """Current rate limit tracking, for logging."""
        return {
            "primary_remaining": self._rate_limit_remaining,
            "primary_reset": self._rate_limit_reset,
        }
