"""Linear issue bridge.

Serves cached Linear issue lookups (details only for issues labeled public)
and labels issues public when GitHub activity references them, either live
through a signed webhook or in bulk through a repository backfill.

Python Version: 3.10+ required
"""

# Configure before other imports so module loggers pick up the handler
from .logging_config import StructuredFormatter, configure_logging

configure_logging()

from .__version__ import __version__  # noqa: E402
from .cache import IssueCache  # noqa: E402
from .config import BridgeConfig, ConfigurationError, get_config, reset_config  # noqa: E402
from .identifiers import (  # noqa: E402
    Identifier,
    IdentifierParseError,
    parse_identifier,
    scan_identifiers,
)

__all__ = [
    "BridgeConfig",
    "ConfigurationError",
    "Identifier",
    "IdentifierParseError",
    "IssueCache",
    "StructuredFormatter",
    "__version__",
    "configure_logging",
    "get_config",
    "reset_config",
    "parse_identifier",
    "scan_identifiers",
]
