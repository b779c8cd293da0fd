"""
Unit tests for static configuration loading.
"""

import pytest

from ggetracker.core.config import Config, Environment


@pytest.fixture
def env(monkeypatch):
    yield monkeypatch
    monkeypatch.undo()
    Config.load()


class TestLoad:
    def test_defaults(self):
        assert Config.CACHE_DEFAULT_TTL == 1_200
        assert Config.FETCH_RETRY_ATTEMPTS == 3
        assert Config.is_testing()

    def test_reads_environment(self, env):
        env.setenv("CACHE_DEFAULT_TTL", "600")
        env.setenv("BROWSER_HEADLESS", "no")
        env.setenv("REDIS_URL", "redis://cache:6379/2")
        Config.load()

        assert Config.CACHE_DEFAULT_TTL == 600
        assert Config.BROWSER_HEADLESS is False
        assert Config.REDIS_URL == "redis://cache:6379/2"

    @pytest.mark.parametrize("raw", ["abc", "0", "100000000"])
    def test_invalid_integers_fall_back(self, env, raw):
        env.setenv("CACHE_DEFAULT_TTL", raw)
        Config.load()

        assert Config.CACHE_DEFAULT_TTL == 1_200
        assert any("CACHE_DEFAULT_TTL" in key for key in Config.get_metrics().validation_errors)

    def test_invalid_boolean_falls_back(self, env):
        env.setenv("DEBUG", "maybe")
        Config.load()
        assert Config.DEBUG is False

    def test_summary_has_no_urls(self):
        summary = Config.get_config_summary()
        assert summary["environment"] == "testing"
        assert not any("url" in key for key in summary)


class TestEnvironment:
    def test_from_string(self):
        assert Environment.from_string("PRODUCTION") is Environment.PRODUCTION
        assert Environment.from_string("weird") is Environment.DEVELOPMENT
