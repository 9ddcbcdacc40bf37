"""Idempotent public-label application.

PublicLabeler makes sure an issue carries the team's "public" label:

1. Fetch the issue live (never from the cache: label decisions must see
   current labels).
2. Missing issue or already labeled: log and return.
3. Resolve the label's UUID, once per labeler instance. Concurrent callers
   wait for the first lookup and share its outcome. A failed lookup, or a
   team without the label, is remembered and re-raised to every later caller
   without retrying.
4. Add the label with a single mutation.

Concurrent calls for the same identifier may both see "not labeled" and both
add the label; Linear's issueAddLabel is idempotent, so that is harmless.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, cast

from issue_bridge.config import ConfigurationError
from issue_bridge.connectors.linear.client import LinearClientError
from issue_bridge.connectors.linear.models import PUBLIC_LABEL, Issue
from issue_bridge.metrics import label_applications_total

logger = logging.getLogger("issue_bridge.linear.labeler")


class IssueFetcher(Protocol):
    async def fetch_issue(self, identifier: str) -> Optional[Issue]: ...


class LinearBackend(IssueFetcher, Protocol):
    """The subset of LinearClient the labeler depends on."""

    async def fetch_label_by_name(self, team_key: str, name: str) -> Optional[str]: ...

    async def add_label(self, issue_id: str, label_id: str) -> None: ...


class Labeler(Protocol):
    async def ensure_public_label(self, identifier: str) -> None: ...


class LabelNotFoundError(ConfigurationError):
    """The team has no label with the expected name."""

    def __init__(self, name: str, team_key: str):
        self.name = name
        self.team_key = team_key
        super().__init__(f"label {name!r} not found in team {team_key}")


@dataclass(frozen=True)
class LabelResolution:
    label_id: Optional[str] = None
    error: Optional[BaseException] = None


class PublicLabeler:
    """Applies the "public" label to issues of one team.

    Attributes:
        backend: Linear client (or a fake implementing LinearBackend)
        team_key: Team whose "public" label is applied
        label_name: Label name, "public" unless overridden
    """

    def __init__(
        self,
        backend: LinearBackend,
        team_key: str,
        label_name: str = PUBLIC_LABEL,
    ) -> None:
        self.backend = backend
        self.team_key = team_key
        self.label_name = label_name
        self._resolution: Optional[LabelResolution] = None
        self._resolve_lock = asyncio.Lock()

    async def ensure_public_label(self, identifier: str) -> None:
        """Make sure the issue carries the public label.

        Args:
            identifier: Upper-case issue identifier (MIR-42)

        Raises:
            LinearClientError: If fetching the issue or adding the label fails
            LabelNotFoundError: If the team has no public label
            Exception: Whatever the one-time label lookup raised, re-raised as is
        """
        try:
            issue = await self.backend.fetch_issue(identifier)
        except LinearClientError as e:
            label_applications_total.labels(outcome="failed").inc()
            raise LinearClientError(f"fetch issue {identifier}: {e}") from e

        if issue is None:
            logger.info("issue_not_found_skipping", extra={"identifier": identifier})
            label_applications_total.labels(outcome="not_found").inc()
            return

        if issue.has_label(self.label_name):
            logger.info("issue_already_labeled", extra={"identifier": identifier})
            label_applications_total.labels(outcome="already_labeled").inc()
            return

        try:
            label_id = await self.resolve_label_id()
        except Exception:
            label_applications_total.labels(outcome="failed").inc()
            raise

        try:
            await self.backend.add_label(issue.id, label_id)
        except LinearClientError as e:
            label_applications_total.labels(outcome="failed").inc()
            raise LinearClientError(f"add label to {identifier}: {e}") from e

        logger.info("public_label_applied", extra={"identifier": identifier})
        label_applications_total.labels(outcome="applied").inc()

    async def resolve_label_id(self) -> str:
        """Return the label UUID, looking it up at most once per instance.

        Raises:
            LabelNotFoundError: If the lookup found no such label
            Exception: The lookup's own error; the same object on every call
        """
        if self._resolution is None:
            async with self._resolve_lock:
                # Another caller may have finished while we waited
                if self._resolution is None:
                    self._resolution = await self._lookup()

        if self._resolution.error is not None:
            # Shared error object; drop frames left by earlier raises
            raise self._resolution.error.with_traceback(None)
        return cast(str, self._resolution.label_id)

    async def _lookup(self) -> LabelResolution:
        try:
            label_id = await self.backend.fetch_label_by_name(self.team_key, self.label_name)
        except Exception as e:
            logger.error(
                "label_resolution_failed",
                extra={"team": self.team_key, "label": self.label_name, "error": str(e)},
            )
            return LabelResolution(error=e)

        if not label_id:
            error = LabelNotFoundError(self.label_name, self.team_key)
            logger.error(
                "label_resolution_failed",
                extra={"team": self.team_key, "label": self.label_name, "error": str(error)},
            )
            return LabelResolution(error=error)

        logger.info("label_resolved", extra={"team": self.team_key, "label": self.label_name})
        return LabelResolution(label_id=label_id)
