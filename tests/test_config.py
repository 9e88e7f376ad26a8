"""
Tests for environment configuration and gateway selection.
"""

import logging

import pytest

from pathdash.config import DEFAULT_DATABASE_URL, configure_logging, get_settings
from pathdash.errors import ConfigError
from pathdash.gateway import RestGateway, SqlGateway, get_gateway, reset_gateway

ENV_VARS = [
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "PATHDASH_DATABASE_URL",
    "PATHDASH_HTTP_TIMEOUT",
    "PATHDASH_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestSettings:
    def test_defaults(self):
        s = get_settings()

        assert s.supabase_url is None
        assert s.database_url == DEFAULT_DATABASE_URL
        assert s.http_timeout == 10.0
        assert s.log_level == "INFO"
        assert s.uses_hosted_backend is False

    def test_hosted_backend(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://demo.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")
        monkeypatch.setenv("PATHDASH_HTTP_TIMEOUT", "2.5")
        monkeypatch.setenv("PATHDASH_LOG_LEVEL", "debug")

        s = get_settings()

        assert s.uses_hosted_backend is True
        assert s.http_timeout == 2.5
        assert s.log_level == "DEBUG"

    @pytest.mark.parametrize("var", ["SUPABASE_URL", "SUPABASE_ANON_KEY"])
    def test_url_and_key_go_together(self, monkeypatch, var):
        monkeypatch.setenv(var, "something")

        with pytest.raises(ConfigError):
            get_settings()

    def test_blank_values_count_as_unset(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "  ")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "")

        assert get_settings().uses_hosted_backend is False

    def test_bad_timeout(self, monkeypatch):
        monkeypatch.setenv("PATHDASH_HTTP_TIMEOUT", "soon")

        with pytest.raises(ConfigError, match="PATHDASH_HTTP_TIMEOUT"):
            get_settings()


class TestGetGateway:
    def test_local_database_by_default(self, monkeypatch):
        monkeypatch.setenv("PATHDASH_DATABASE_URL", "sqlite+pysqlite:///:memory:")

        gw = get_gateway()

        assert isinstance(gw, SqlGateway)
        assert get_gateway() is gw

    def test_hosted_backend_when_configured(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://demo.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon-key")

        assert isinstance(get_gateway(), RestGateway)

    def test_reset_builds_a_new_gateway(self, monkeypatch):
        monkeypatch.setenv("PATHDASH_DATABASE_URL", "sqlite+pysqlite:///:memory:")
        first = get_gateway()

        reset_gateway()

        assert get_gateway() is not first

    def test_config_error_is_not_cached(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://demo.supabase.co")
        with pytest.raises(ConfigError):
            get_gateway()

        monkeypatch.delenv("SUPABASE_URL")
        monkeypatch.setenv("PATHDASH_DATABASE_URL", "sqlite+pysqlite:///:memory:")
        assert isinstance(get_gateway(), SqlGateway)


def test_configure_logging_quiets_urllib3():
    configure_logging("DEBUG")
    assert logging.getLogger("urllib3").level == logging.WARNING
