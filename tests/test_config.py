"""Tests for environment configuration."""

from pathlib import Path

import pytest

from glt.config import ApiFilters, Config
from glt.exceptions import ConfigError


def _config(**env: str) -> Config:
    env.setdefault("GITLAB_TOKEN", "glpat-test")
    return Config.from_env(env.get)


class TestConfigFromEnv:
    """Tests for Config.from_env."""

    def test_defaults(self) -> None:
        """Only the token is required."""
        config = _config()
        assert config.gitlab_url == "https://gitlab.com"
        assert config.gitlab_token == "glpat-test"
        assert config.cache_ttl == 300
        assert config.cache_path.name == "cache.json"
        assert config.proxy is None
        assert config.filters == ApiFilters(per_page=100)

    def test_missing_token(self) -> None:
        """Without a token there is nothing to browse."""
        with pytest.raises(ConfigError, match="GITLAB_TOKEN"):
            Config.from_env({}.get)

    def test_empty_values_count_as_unset(self) -> None:
        """Blank variables fall back to defaults."""
        config = _config(GITLAB_URL="  ", GITLAB_OWNED="", GITLAB_PER_PAGE="")
        assert config.gitlab_url == "https://gitlab.com"
        assert config.filters.owned is None
        assert config.filters.per_page == 100
        with pytest.raises(ConfigError):
            Config.from_env({"GITLAB_TOKEN": "  "}.get)

    def test_filters(self) -> None:
        """Boolean and visibility filters are parsed."""
        config = _config(
            GITLAB_INCLUDE_SUBGROUPS="yes",
            GITLAB_TOP_LEVEL_ONLY="1",
            GITLAB_OWNED="false",
            GITLAB_ALL_AVAILABLE="On",
            GITLAB_VISIBILITY="Internal",
            GITLAB_PER_PAGE="20",
        )
        assert config.filters == ApiFilters(
            include_subgroups=True,
            top_level_only=True,
            owned=False,
            all_available=True,
            visibility="internal",
            per_page=20,
        )

    def test_url_proxy_and_cache(self, tmp_path) -> None:
        """Connection and cache settings are taken as given."""
        config = _config(
            GITLAB_URL="https://gitlab.example.com/",
            GITLAB_PROXY="http://127.0.0.1:8080",
            GITLAB_CACHE_PATH=str(tmp_path / "c.json"),
            GITLAB_CACHE_TTL_SECONDS="0",
        )
        assert config.gitlab_url == "https://gitlab.example.com"
        assert config.proxy == "http://127.0.0.1:8080"
        assert config.cache_path == Path(tmp_path / "c.json")
        assert config.cache_ttl == 0

    @pytest.mark.parametrize(
        "env",
        [
            {"GITLAB_PER_PAGE": "0"},
            {"GITLAB_PER_PAGE": "101"},
            {"GITLAB_PER_PAGE": "ten"},
            {"GITLAB_CACHE_TTL_SECONDS": "-5"},
            {"GITLAB_OWNED": "maybe"},
            {"GITLAB_VISIBILITY": "secret"},
        ],
    )
    def test_invalid_values(self, env: dict) -> None:
        """Bad values fail fast with ConfigError."""
        with pytest.raises(ConfigError):
            _config(**env)


def test_filters_are_immutable() -> None:
    """Configuration is built once and never changed."""
    filters = ApiFilters()
    with pytest.raises(AttributeError):
        filters.owned = True
