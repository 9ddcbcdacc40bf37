"""Linear GraphQL API client.

Provides an async httpx-based client for the three Linear operations the
bridge needs: fetch an issue by identifier, look up a team label by name, and
add a label to an issue.

Reference: https://developers.linear.app/docs/graphql/working-with-the-graphql-api
"""

import logging
from typing import Any

import httpx

from issue_bridge.config import DEFAULT_LINEAR_API_URL
from issue_bridge.connectors.linear.models import Issue
from issue_bridge.identifiers import parse_identifier

logger = logging.getLogger("issue_bridge.linear.client")


class LinearClientError(Exception):
    """Raised when a Linear API request fails.

    Wraps transport errors, non-200 responses and GraphQL error arrays.
    """

    pass


ISSUE_BY_IDENTIFIER_QUERY = """
query IssueByIdentifier($teamKey: String!, $number: Float!) {
  issues(
    filter: {
      team: { key: { eq: $teamKey } }
      number: { eq: $number }
    }
    first: 1
  ) {
    nodes {
      id
      identifier
      title
      description
      url
      priority
      createdAt
      updatedAt
      state {
        name
        color
        type
      }
      labels {
        nodes {
          id
          name
          color
        }
      }
      attachments {
        nodes {
          url
          title
        }
      }
    }
  }
}
"""

LABEL_BY_NAME_QUERY = """
query LabelByName($teamKey: String!, $labelName: String!) {
  issueLabels(
    filter: {
      team: { key: { eq: $teamKey } }
      name: { eq: $labelName }
    }
    first: 1
  ) {
    nodes {
      id
      name
    }
  }
}
"""

ADD_LABEL_MUTATION = """
mutation AddLabel($issueID: String!, $labelID: String!) {
  issueAddLabel(id: $issueID, labelId: $labelID) {
    success
  }
}
"""


class LinearClient:
    """Linear GraphQL client using httpx with API key auth.

    Uses a long-lived httpx.AsyncClient with connection pooling. Not-found
    results are returned as None, never raised.

    Example:
        >>> async with LinearClient("lin_api_key") as client:
        ...     issue = await client.fetch_issue("MIR-42")
        ...     if issue is not None and not issue.is_public:
        ...         label_id = await client.fetch_label_by_name("MIR", "public")
    """

    CONNECT_TIMEOUT = 5.0  # seconds
    READ_TIMEOUT = 10.0  # seconds
    WRITE_TIMEOUT = 5.0  # seconds
    POOL_TIMEOUT = 5.0  # seconds

    def __init__(self, api_key: str, endpoint: str = DEFAULT_LINEAR_API_URL) -> None:
        """Initialize client.

        Args:
            api_key: Linear personal API key (sent verbatim, no Bearer prefix)
            endpoint: GraphQL endpoint, overridable for tests and proxies
        """
        self.endpoint = endpoint
        self._client = httpx.AsyncClient(
            headers={
                "Authorization": api_key,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(
                connect=self.CONNECT_TIMEOUT,
                read=self.READ_TIMEOUT,
                write=self.WRITE_TIMEOUT,
                pool=self.POOL_TIMEOUT,
            ),
        )

    async def __aenter__(self) -> "LinearClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the httpx client and release connections."""
        await self._client.aclose()

    async def _execute(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """POST a GraphQL document and return its data object.

        Raises:
            LinearClientError: On transport failure, non-200 status, undecodable
                body, or a non-empty GraphQL errors array
        """
        try:
            response = await self._client.post(
                self.endpoint, json={"query": query, "variables": variables}
            )
        except httpx.TimeoutException as e:
            raise LinearClientError(f"Linear API request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise LinearClientError(f"Linear API request failed: {e}") from e

        if response.status_code != 200:
            raise LinearClientError(
                f"Linear API returned {response.status_code}: {response.text}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise LinearClientError(f"decode response: {e}") from e

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            first = errors[0]
            message = first.get("message", first) if isinstance(first, dict) else first
            raise LinearClientError(f"Linear API error: {message}")

        data = body.get("data") if isinstance(body, dict) else None
        if not isinstance(data, dict):
            raise LinearClientError("Linear API response has no data")
        return data

    async def fetch_issue(self, identifier: str) -> Issue | None:
        """Retrieve an issue by its identifier (e.g. "MIR-42").

        Args:
            identifier: Upper-case identifier

        Returns:
            The Issue, or None if no issue with that identifier exists

        Raises:
            IdentifierParseError: If identifier is not TEAM-NUMBER
            LinearClientError: If the request fails
        """
        parsed = parse_identifier(identifier)
        data = await self._execute(
            ISSUE_BY_IDENTIFIER_QUERY,
            {"teamKey": parsed.team_key, "number": float(parsed.number)},
        )
        try:
            nodes = data["issues"]["nodes"]
            if not nodes:
                return None
            return Issue.from_node(nodes[0])
        except (KeyError, TypeError, ValueError) as e:
            raise LinearClientError(f"decode issue data: {e}") from e

    async def fetch_label_by_name(self, team_key: str, name: str) -> str | None:
        """Return the UUID of a team label by exact name, or None if missing."""
        data = await self._execute(
            LABEL_BY_NAME_QUERY, {"teamKey": team_key, "labelName": name}
        )
        try:
            nodes = data["issueLabels"]["nodes"]
        except (KeyError, TypeError) as e:
            raise LinearClientError(f"decode label data: {e}") from e
        if not nodes:
            return None
        return nodes[0].get("id") or None

    async def add_label(self, issue_id: str, label_id: str) -> None:
        """Append a label to an issue. Adding a label twice is a no-op on Linear's side."""
        data = await self._execute(
            ADD_LABEL_MUTATION, {"issueID": issue_id, "labelID": label_id}
        )
        result = data.get("issueAddLabel") or {}
        if result.get("success") is False:
            raise LinearClientError(f"issueAddLabel reported failure for issue {issue_id}")
        logger.debug("linear_label_added", extra={"issue_id": issue_id, "label_id": label_id})
