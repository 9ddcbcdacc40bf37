"""Linear issue value types.

Issues are read-only snapshots of remote state. Every fetch builds a new
Issue from the GraphQL node; nothing mutates an Issue after construction.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from urllib.parse import urlparse

__all__ = [
    "PUBLIC_LABEL",
    "Attachment",
    "Issue",
    "Label",
    "State",
]

PUBLIC_LABEL = "public"


@dataclass(frozen=True)
class State:
    """Workflow state; type is one of backlog, unstarted, started, completed, cancelled."""

    name: str = ""
    color: str = ""
    type: str = ""


@dataclass(frozen=True)
class Label:
    id: str
    name: str
    color: str = ""


@dataclass(frozen=True)
class Attachment:
    url: str
    title: str = ""

    @property
    def is_github_pull_request(self) -> bool:
        """True for links to a GitHub pull request (github.com/<owner>/<repo>/pull/<n>)."""
        parsed = urlparse(self.url)
        if parsed.hostname not in ("github.com", "www.github.com"):
            return False
        parts = [p for p in parsed.path.split("/") if p]
        return len(parts) >= 4 and parts[2] == "pull" and parts[3].isdigit()


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    # Linear returns RFC 3339 with a Z suffix
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _nodes(container: Any) -> list[dict[str, Any]]:
    if not isinstance(container, dict):
        return []
    return [n for n in container.get("nodes") or [] if isinstance(n, dict)]


@dataclass(frozen=True)
class Issue:
    """A Linear issue as returned by the IssueByIdentifier query.

    Attributes:
        id: Opaque Linear UUID, used for mutations
        identifier: Human identifier (MIR-42)
        title: Issue title
        description: Markdown description
        state: Workflow state
        priority: 0 (none) to 4 (low)
        labels: Labels attached to the issue
        attachments: Linked resources (pull requests, documents)
        url: Canonical Linear URL
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    id: str
    identifier: str
    title: str = ""
    description: str = ""
    state: State = field(default_factory=State)
    priority: int = 0
    labels: tuple[Label, ...] = ()
    attachments: tuple[Attachment, ...] = ()
    url: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def has_label(self, name: str) -> bool:
        return any(label.name == name for label in self.labels)

    @property
    def is_public(self) -> bool:
        return self.has_label(PUBLIC_LABEL)

    def github_pull_requests(self) -> list[Attachment]:
        """Attachments linking to GitHub pull requests, in attachment order."""
        return [a for a in self.attachments if a.is_github_pull_request]

    @classmethod
    def from_node(cls, node: dict[str, Any]) -> "Issue":
        """Build an Issue from a GraphQL issue node.

        Optional fields missing from the node (or null) take their empty
        defaults, mirroring how partial nodes come back for restricted teams.
        """
        state = node.get("state") or {}
        return cls(
            id=node["id"],
            identifier=node["identifier"],
            title=node.get("title") or "",
            description=node.get("description") or "",
            state=State(
                name=state.get("name") or "",
                color=state.get("color") or "",
                type=state.get("type") or "",
            ),
            priority=int(node.get("priority") or 0),
            labels=tuple(
                Label(id=n.get("id") or "", name=n.get("name") or "", color=n.get("color") or "")
                for n in _nodes(node.get("labels"))
            ),
            attachments=tuple(
                Attachment(url=n.get("url") or "", title=n.get("title") or "")
                for n in _nodes(node.get("attachments"))
            ),
            url=node.get("url") or "",
            created_at=_parse_timestamp(node.get("createdAt")),
            updated_at=_parse_timestamp(node.get("updatedAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dict for API responses and logging."""
        return {
            "id": self.id,
            "identifier": self.identifier,
            "title": self.title,
            "description": self.description,
            "state": {
                "name": self.state.name,
                "color": self.state.color,
                "type": self.state.type,
            },
            "priority": self.priority,
            "labels": [
                {"id": label.id, "name": label.name, "color": label.color}
                for label in self.labels
            ],
            "attachments": [{"url": a.url, "title": a.title} for a in self.attachments],
            "pull_requests": [
                {"url": a.url, "title": a.title} for a in self.github_pull_requests()
            ],
            "url": self.url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
