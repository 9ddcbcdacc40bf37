"""External service connectors (Linear GraphQL, GitHub REST and webhooks)."""
