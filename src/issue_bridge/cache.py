"""Read-through TTL cache for Linear issues.

Wraps an IssueFetcher. A lookup inside the freshness window is answered from
memory, including "not found" results, so repeated requests for a missing
issue do not hit Linear either. Outside the window the fetcher is called and
its result replaces the entry.

Fetch errors propagate and leave the existing entry (if any) in place.

Entries are never evicted: the identifier space of one team is small and the
cache lives only as long as the process.

Known race: the remote fetch runs outside the lock, so two callers missing on
the same key at the same time both fetch and both write; the later write
wins. Upstream call volume is the only cost.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from issue_bridge.connectors.linear.labeler import IssueFetcher
from issue_bridge.connectors.linear.models import Issue
from issue_bridge.metrics import cache_lookups_total

logger = logging.getLogger("issue_bridge.cache")

DEFAULT_TTL = 5 * 60.0  # seconds


@dataclass(frozen=True)
class CacheEntry:
    issue: Optional[Issue]
    fetched_at: float


class IssueCache:
    """Issue lookups with a fixed freshness window.

    Attributes:
        fetcher: Source of truth, usually a LinearClient
        ttl: Freshness window in seconds
    """

    def __init__(
        self,
        fetcher: IssueFetcher,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty cache.

        Args:
            fetcher: Object providing async fetch_issue(identifier)
            ttl: Freshness window in seconds
            clock: Monotonic time source in seconds (injectable for tests)
        """
        self.fetcher = fetcher
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._write_lock = threading.Lock()

    async def get(self, identifier: str) -> Optional[Issue]:
        """Return the issue for identifier, fetching it when missing or stale.

        Args:
            identifier: Canonical (upper-case) identifier

        Returns:
            The Issue, or None if it does not exist

        Raises:
            Exception: Whatever the fetcher raised; the cache is left unchanged
        """
        # Single dict read; no lock needed for readers
        entry = self._entries.get(identifier)
        if entry is not None and self._clock() - entry.fetched_at < self.ttl:
            cache_lookups_total.labels(result="hit").inc()
            return entry.issue

        try:
            issue = await self.fetcher.fetch_issue(identifier)
        except Exception:
            cache_lookups_total.labels(result="error").inc()
            raise

        cache_lookups_total.labels(result="miss").inc()
        with self._write_lock:
            self._entries[identifier] = CacheEntry(issue=issue, fetched_at=self._clock())

        logger.debug(
            "issue_cache_refreshed",
            extra={"identifier": identifier, "found": issue is not None},
        )
        return issue

    def __len__(self) -> int:
        return len(self._entries)
