"""
Prometheus metrics definitions for the issue bridge.

Counters cover the four places where the bridge talks to the outside world:
issue cache lookups, public label applications, webhook deliveries and
backfill scans. Naming follows prometheus_client conventions: snake_case,
issue_bridge_ prefix.
"""

from prometheus_client import Counter

cache_lookups_total = Counter(
    "issue_bridge_cache_lookups_total",
    "Issue cache lookups",
    ["result"],
    # result: hit, miss, error
)

label_applications_total = Counter(
    "issue_bridge_label_applications_total",
    "Public label application attempts",
    ["outcome"],
    # outcome: applied, already_labeled, not_found, failed
)

webhook_deliveries_total = Counter(
    "issue_bridge_webhook_deliveries_total",
    "GitHub webhook deliveries received",
    ["event", "status"],
    # status: accepted, rejected
)

backfill_identifiers_total = Counter(
    "issue_bridge_backfill_identifiers_total",
    "New identifiers discovered by repository backfill",
    ["source"],
    # source: git log, pull requests, issues, issue comments, review comments
)
