"""Version information for the Linear issue bridge.

Single source of truth for version number.
Follows PEP 440 and semantic versioning principles.
"""

__version__ = "1.2.0"
__version_info__ = tuple(int(part) for part in __version__.split("."))

# Version history:
# 1.2.0 - Prometheus counters, JSON issue endpoint, gh auth token fallback
# 1.1.0 - GitHub webhook ingestion and repository backfill
# 1.0.0 - Issue lookup with read-through cache
