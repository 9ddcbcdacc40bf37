"""Historical identifier scan of one repository.

RepoScanner walks every place a Linear identifier may have been mentioned
before the webhook was installed, strictly one source after another:

1. Local git history (only when a checkout is configured)
2. Pull requests, all states (title + body)
3. Issues, all states (title + body)
4. Issue and PR conversation comments (body)
5. Pull request review comments (body)

Results are filtered to one team and merged in discovery order: the first
source to mention an identifier decides its position.

Any failure is fatal. A partial scan would under-label silently, so no
identifiers are returned unless every source was read completely.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Iterable
from pathlib import Path
from typing import Any, Optional

from issue_bridge.connectors.github.client import GitHubClient, GitHubClientError
from issue_bridge.identifiers import filter_team, scan_identifiers
from issue_bridge.metrics import backfill_identifiers_total

logger = logging.getLogger("issue_bridge.github.backfill")

_Decoder = Callable[[dict], list[str]]


class BackfillError(Exception):
    """Raised when local history cannot be read."""


def _title_and_body(item: dict) -> list[str]:
    return [item.get("title") or "", item.get("body") or ""]


def _body(item: dict) -> list[str]:
    return [item.get("body") or ""]


class _OrderedIdentifiers:
    """Insertion-ordered set of identifier strings."""

    def __init__(self) -> None:
        self._seen: dict[str, None] = {}

    def add_all(self, identifiers: Iterable[str]) -> int:
        """Add identifiers, returning how many were new."""
        before = len(self._seen)
        for identifier in identifiers:
            self._seen.setdefault(identifier)
        return len(self._seen) - before

    def __len__(self) -> int:
        return len(self._seen)

    def to_list(self) -> list[str]:
        return list(self._seen)


class RepoScanner:
    """Collects every team identifier a repository has ever referenced.

    Attributes:
        client: GitHub client bound to the target repository
        git_dir: Local checkout whose log is scanned, or None to skip it
    """

    def __init__(self, client: GitHubClient, git_dir: Optional[Path] = None) -> None:
        self.client = client
        self.git_dir = git_dir

    async def scan_repo(self, team_key: str) -> list[str]:
        """Scan every source and return the team's identifiers.

        Args:
            team_key: Linear team key; other teams' identifiers are dropped

        Returns:
            Unique identifiers in first-discovery order

        Raises:
            BackfillError: If git log cannot be run or exits non-zero
            GitHubClientError: If any page of any listing fails
        """
        found = _OrderedIdentifiers()

        if self.git_dir is not None:
            messages = await self._read_git_log()
            self._record(found, "git log", team_key, [messages])

        remote_sources: list[tuple[str, Callable[[], AsyncIterator[Any]], _Decoder]] = [
            ("pull requests", self.client.list_pull_requests, _title_and_body),
            ("issues", self.client.list_issues, _title_and_body),
            ("issue comments", self.client.list_issue_comments, _body),
            ("review comments", self.client.list_review_comments, _body),
        ]
        for source, list_pages, decode in remote_sources:
            texts = await self._collect_texts(source, list_pages(), decode)
            self._record(found, source, team_key, texts)

        logger.info(
            "backfill_scan_complete",
            extra={
                "team": team_key.upper(),
                "total_ids": len(found),
                "rate_limit": self.client.get_rate_limit_status(),
            },
        )
        return found.to_list()

    def _record(
        self,
        found: _OrderedIdentifiers,
        source: str,
        team_key: str,
        texts: list[str],
    ) -> None:
        identifiers = filter_team(scan_identifiers("\n".join(texts)), team_key)
        new_ids = found.add_all(identifiers)
        backfill_identifiers_total.labels(source=source).inc(new_ids)
        logger.info(
            "backfill_source_scanned",
            extra={"source": source, "new_ids": new_ids, "total_ids": len(found)},
        )

    @staticmethod
    async def _collect_texts(
        source: str,
        pages: AsyncIterator[Any],
        decode: _Decoder,
    ) -> list[str]:
        texts: list[str] = []
        async for page in pages:
            if not isinstance(page, list):
                raise GitHubClientError(f"{source}: expected a JSON array page")
            for item in page:
                if isinstance(item, dict):
                    texts.extend(decode(item))
        return texts

    async def _read_git_log(self) -> str:
        """Full message of every commit reachable from HEAD in git_dir."""
        try:
            proc = await asyncio.create_subprocess_exec(
                "git",
                "-C",
                str(self.git_dir),
                "log",
                "--format=%B",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()
        except OSError as e:
            raise BackfillError(f"git log: {e}") from e

        if proc.returncode != 0:
            raise BackfillError(
                f"git log exited {proc.returncode}: {stderr.decode(errors='replace').strip()}"
            )
        return stdout.decode(errors="replace")
