"""Unit tests for bridge configuration with pydantic-settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from issue_bridge.config import (
    DEFAULT_GITHUB_API_URL,
    DEFAULT_LINEAR_API_URL,
    BridgeConfig,
    ConfigurationError,
    get_config,
    reset_config,
    validate_repo,
)


class TestBridgeConfig:
    """BridgeConfig defaults, environment loading and validation."""

    def test_defaults(self):
        config = get_config()

        assert config.linear_api_key.get_secret_value() == ""
        assert config.linear_team_key == ""
        assert config.linear_api_url == DEFAULT_LINEAR_API_URL
        assert config.github_api_url == DEFAULT_GITHUB_API_URL
        assert config.backfill_git_dir is None
        assert config.cache_ttl_seconds == 300.0
        assert config.request_timeout_seconds == 10.0
        assert config.port == 8080
        assert config.log_level == "INFO"
        assert config.log_format == "json"

    def test_loads_from_environment(self, monkeypatch):
        monkeypatch.setenv("LINEAR_API_KEY", "lin_api_x")
        monkeypatch.setenv("LINEAR_TEAM_KEY", " mir ")
        monkeypatch.setenv("GITHUB_REPO", "acme/runtime")
        monkeypatch.setenv("BACKFILL_GIT_DIR", "/src/runtime")
        monkeypatch.setenv("CACHE_TTL_SECONDS", "60")

        config = get_config()

        assert config.linear_api_key.get_secret_value() == "lin_api_x"
        assert config.linear_team_key == "MIR"
        assert config.github_repo == "acme/runtime"
        assert config.backfill_git_dir == Path("/src/runtime")
        assert config.cache_ttl_seconds == 60.0

    def test_loads_from_dotenv(self, tmp_path):
        (tmp_path / ".env").write_text("LINEAR_TEAM_KEY=eng\nLOG_FORMAT=text\n")

        config = BridgeConfig()

        assert config.linear_team_key == "ENG"
        assert config.log_format == "text"

    def test_secrets_hidden_in_repr(self, monkeypatch):
        monkeypatch.setenv("GITHUB_WEBHOOK_SECRET", "hunter2")
        assert "hunter2" not in repr(get_config())

    @pytest.mark.parametrize("repo", ["acme", "acme/", "/runtime", "a/b/c"])
    def test_invalid_github_repo(self, monkeypatch, repo):
        monkeypatch.setenv("GITHUB_REPO", repo)
        with pytest.raises(ValidationError):
            BridgeConfig()

    def test_invalid_log_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "VERBOSE")
        with pytest.raises(ValidationError):
            BridgeConfig()

    def test_log_level_upper_cased(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert BridgeConfig().log_level == "DEBUG"

    def test_ttl_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("CACHE_TTL_SECONDS", "0")
        with pytest.raises(ValidationError):
            BridgeConfig()

    def test_frozen(self):
        config = get_config()
        with pytest.raises(ValidationError):
            config.port = 9090


class TestValidateRepo:
    def test_strips_whitespace(self):
        assert validate_repo("  acme/runtime \n") == "acme/runtime"

    def test_empty_allowed(self):
        assert validate_repo("   ") == ""

    @pytest.mark.parametrize("repo", ["acme", "acme/", "/runtime", "a/b/c"])
    def test_rejects_malformed(self, repo):
        with pytest.raises(ValueError, match="owner/repo"):
            validate_repo(repo)


class TestRequire:
    def test_lists_every_missing_setting(self):
        config = BridgeConfig(linear_team_key="MIR")

        with pytest.raises(ConfigurationError) as exc_info:
            config.require("linear_api_key", "linear_team_key", "github_repo")

        assert str(exc_info.value) == "LINEAR_API_KEY, GITHUB_REPO required"

    def test_passes_when_set(self):
        config = BridgeConfig(linear_api_key="k", linear_team_key="MIR")
        config.require("linear_api_key", "linear_team_key")


class TestSingleton:
    def test_cached_until_reset(self, monkeypatch):
        first = get_config()
        assert get_config() is first

        monkeypatch.setenv("LINEAR_TEAM_KEY", "ops")
        assert get_config().linear_team_key == ""

        reset_config()
        assert get_config().linear_team_key == "OPS"
