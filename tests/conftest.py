"""Shared pytest fixtures for issue bridge tests.

Fixture Organization:
    - Environment isolation: every test runs with bridge settings unset and
      the config singleton reset, from an empty working directory (no .env)
    - Sample data fixtures: ready-made Issue instances
"""

import pytest

from issue_bridge.config import reset_config
from issue_bridge.connectors.linear.models import Issue, Label, State

BRIDGE_ENV_VARS = (
    "LINEAR_API_KEY",
    "LINEAR_TEAM_KEY",
    "LINEAR_API_URL",
    "GITHUB_WEBHOOK_SECRET",
    "GITHUB_TOKEN",
    "GITHUB_REPO",
    "GITHUB_API_URL",
    "BACKFILL_GIT_DIR",
    "CACHE_TTL_SECONDS",
    "REQUEST_TIMEOUT_SECONDS",
    "HOST",
    "PORT",
    "LOG_LEVEL",
    "LOG_FORMAT",
)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Run each test without ambient settings and with a fresh config singleton."""
    for name in BRIDGE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def public_issue() -> Issue:
    return Issue(
        id="uuid-42",
        identifier="MIR-42",
        title="Crash on start",
        description="Steps to reproduce",
        state=State(name="Done", color="#5e6ad2", type="completed"),
        labels=(Label(id="label-public", name="public"),),
    )


@pytest.fixture
def private_issue() -> Issue:
    return Issue(
        id="uuid-7",
        identifier="MIR-7",
        title="Internal roadmap",
        labels=(Label(id="label-bug", name="bug"),),
    )
