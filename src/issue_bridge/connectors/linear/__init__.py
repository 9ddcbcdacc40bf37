"""Linear integration package.

Async GraphQL client for issue lookup and labeling, immutable issue models,
and the PublicLabeler that applies the team's "public" label exactly once per
issue.
"""

from .client import LinearClient, LinearClientError
from .labeler import (
    IssueFetcher,
    LabelNotFoundError,
    Labeler,
    LabelResolution,
    LinearBackend,
    PublicLabeler,
)
from .models import PUBLIC_LABEL, Attachment, Issue, Label, State

__all__ = [
    "PUBLIC_LABEL",
    "Attachment",
    "Issue",
    "IssueFetcher",
    "Label",
    "LabelNotFoundError",
    "LabelResolution",
    "Labeler",
    "LinearBackend",
    "LinearClient",
    "LinearClientError",
    "PublicLabeler",
    "State",
]
