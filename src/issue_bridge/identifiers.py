"""Linear issue identifier grammar.

Identifiers look like ``MIR-42``: a team key, a hyphen and the issue number.
Two entry points:

- parse_identifier() splits a single structured string into its parts.
- scan_identifiers() finds every identifier mentioned in free text (commit
  messages, PR bodies, comments). Scanning is case-sensitive: only upper-case
  team keys match, so ``mir-42`` in prose is ignored.
"""

import re
from dataclasses import dataclass

__all__ = [
    "Identifier",
    "IdentifierParseError",
    "filter_team",
    "identifier_matcher",
    "parse_identifier",
    "scan_identifiers",
    "team_prefix",
]

# ASCII word boundaries so a token glued to non-ASCII letters still matches
ISSUE_PATTERN = re.compile(r"\b([A-Z]+-\d+)\b", re.ASCII)


class IdentifierParseError(ValueError):
    """Raised when a string is not a TEAM-NUMBER identifier."""


@dataclass(frozen=True)
class Identifier:
    """A parsed issue identifier."""

    team_key: str
    number: int

    def __str__(self) -> str:
        return f"{self.team_key}-{self.number}"


def parse_identifier(identifier: str) -> Identifier:
    """Split an identifier such as "MIR-42" into ("MIR", 42).

    The team key is everything before the first hyphen; the remainder must be
    a non-negative decimal integer.

    Args:
        identifier: Identifier string, already canonicalized by the caller

    Returns:
        Parsed Identifier

    Raises:
        IdentifierParseError: If there is no hyphen, the team key is empty,
            or the number part is not made of digits
    """
    team_key, sep, number = identifier.partition("-")
    if not sep or not team_key:
        raise IdentifierParseError(f"invalid identifier format: {identifier}")
    if not number.isascii() or not number.isdigit():
        raise IdentifierParseError(f"invalid issue number in {identifier}")
    return Identifier(team_key=team_key, number=int(number))


def scan_identifiers(text: str) -> list[str]:
    """Extract all issue identifiers (e.g. MIR-42) from free text.

    Returns:
        Unique identifiers in first-occurrence order; an empty list when the
        text mentions none.
    """
    # dict preserves insertion order
    return list(dict.fromkeys(ISSUE_PATTERN.findall(text)))


def team_prefix(team_key: str) -> str:
    """Prefix every identifier of the team starts with ("MIR" -> "MIR-")."""
    return team_key.upper() + "-"


def filter_team(identifiers: list[str], team_key: str) -> list[str]:
    """Keep only identifiers belonging to team_key, preserving order."""
    prefix = team_prefix(team_key)
    return [ident for ident in identifiers if ident.startswith(prefix)]


def identifier_matcher(team_key: str) -> re.Pattern[str]:
    """Compile a full-match pattern for one team's identifiers (^MIR-\\d+$)."""
    return re.compile(r"^" + re.escape(team_key.upper()) + r"-\d+$", re.ASCII)
