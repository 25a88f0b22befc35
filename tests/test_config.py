"""
Unit tests for repo_lens.config
"""

from __future__ import annotations

import pytest

_ENV_VARS = [
    "REPO_LENS_REPOSITORY", "GITHUB_TOKEN", "REPO_LENS_PATH_BUDGET",
    "REPO_LENS_CACHE_TTL_DAYS", "OPENAI_API_KEY", "OPENAI_MODEL",
    "REPO_LENS_SEARCH_TOP_K",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestConfig:
    def test_defaults(self):
        from repo_lens.config import Config

        config = Config()
        assert config.REPOSITORY == ""
        assert config.repository() is None
        assert config.PATH_BUDGET == 60
        assert config.MAX_FILES == 1000
        assert config.CACHE_TTL_DAYS == 14
        assert config.MOCK_OVERLAP_THRESHOLD == pytest.approx(0.9)
        assert config.OPENAI_API_KEY == ""

    def test_yaml_values_and_sections(self):
        from repo_lens.config import Config

        config = Config({
            "repository": "acme/shop",
            "crawl": {"path_budget": 80, "max_depth": 5, "max_files": 250},
            "search": {"search_top_k": 7},
            "openai": {"api_key": "sk-yaml", "model": "local-model"},
        })
        assert str(config.repository()) == "acme/shop"
        assert config.PATH_BUDGET == 80
        assert config.MAX_DEPTH == 5
        assert config.MAX_FILES == 250
        assert config.SEARCH_TOP_K == 7
        assert config.OPENAI_API_KEY == "sk-yaml"
        assert config.OPENAI_MODEL == "local-model"

    def test_top_level_key_wins_over_section(self):
        from repo_lens.config import Config

        config = Config({"path_budget": 90, "crawl": {"path_budget": 80}})
        assert config.PATH_BUDGET == 90

    def test_environment_overrides_yaml(self, monkeypatch):
        from repo_lens.config import Config

        monkeypatch.setenv("REPO_LENS_PATH_BUDGET", "25")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        config = Config({"path_budget": 80, "openai": {"api_key": "sk-yaml"}})
        assert config.PATH_BUDGET == 25
        assert config.OPENAI_API_KEY == "sk-env"

    def test_bad_values_raise_config_error(self, monkeypatch):
        from repo_lens.config import Config, ConfigError

        with pytest.raises(ConfigError, match="path_budget"):
            Config({"path_budget": "lots"})
        monkeypatch.setenv("REPO_LENS_CACHE_TTL_DAYS", "forever")
        with pytest.raises(ConfigError, match="REPO_LENS_CACHE_TTL_DAYS"):
            Config()

    def test_load_from_file(self, tmp_path):
        from repo_lens.config import Config

        path = tmp_path / ".repo_lens.yaml"
        path.write_text("repository: acme/blog\ncache:\n  cache_ttl_days: 3\n")
        config = Config.load(str(path))
        assert config.REPOSITORY == "acme/blog"
        assert config.CACHE_TTL_DAYS == 3

    def test_load_missing_or_broken_file(self, tmp_path):
        from repo_lens.config import Config

        assert Config.load(str(tmp_path / "absent.yaml")).PATH_BUDGET == 60
        broken = tmp_path / "broken.yaml"
        broken.write_text("repository: [unclosed\n")
        assert Config.load(str(broken)).REPOSITORY == ""


class TestParseRepository:
    @pytest.mark.parametrize("value", [
        "acme/shop",
        " acme/shop/ ",
        "https://github.com/acme/shop",
        "https://github.com/acme/shop.git",
        "github.com/acme/shop",
    ])
    def test_accepted_forms(self, value):
        from repo_lens.config import RepositoryRef, parse_repository

        assert parse_repository(value) == RepositoryRef("acme", "shop")

    @pytest.mark.parametrize("value", ["", "acme", "acme/shop/extra", None])
    def test_rejected_forms(self, value):
        from repo_lens.config import ConfigError, parse_repository

        with pytest.raises(ConfigError):
            parse_repository(value)

    def test_fingerprint(self):
        from repo_lens.config import RepositoryRef

        ref = RepositoryRef("Acme", "Shop")
        assert ref.fingerprint == "Acme/Shop"
        assert str(ref) == "Acme/Shop"
