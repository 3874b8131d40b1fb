"""Tests for settings parsing."""

import pytest

from workspace_collab.services.email import EmailConfig
from workspace_collab.settings import Settings


class TestDatabaseUrl:
    """Async driver normalisation."""

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("postgres://u:p@db:5432/collab", "postgresql+asyncpg://u:p@db:5432/collab"),
            ("postgresql://u:p@db:5432/collab", "postgresql+asyncpg://u:p@db:5432/collab"),
            ("postgresql+asyncpg://u:p@db:5432/collab", "postgresql+asyncpg://u:p@db:5432/collab"),
            ("sqlite:///./collab.db", "sqlite+aiosqlite:///./collab.db"),
        ],
    )
    def test_async_driver(self, url, expected):
        assert Settings(database_url=url).database_url == expected

    def test_sslmode_is_dropped(self):
        config = Settings(database_url="postgres://u:p@db.example.com/collab?sslmode=require&application_name=x")
        assert config.database_url == "postgresql+asyncpg://u:p@db.example.com/collab?application_name=x"


class TestEmailSettings:
    """Email configuration derived from settings."""

    def test_disabled_without_key(self):
        config = Settings(resend_api_key=None, email_from="noreply@example.com")
        assert not EmailConfig.from_settings(config).enabled

    def test_from_name_falls_back_to_app_name(self):
        config = Settings(
            resend_api_key="re_x",
            email_from="noreply@example.com",
            email_from_name=None,
            access_url="https://coder.example.com/",
        )
        email = EmailConfig.from_settings(config)

        assert email.enabled
        assert email.from_name == config.app_name
        assert email.accept_url("tok") == "https://coder.example.com/invitation/tok"


class TestProxySettings:
    """Client address handling."""

    def test_forwarded_for_untrusted_by_default(self):
        assert Settings().trust_forwarded_for is False

    def test_forwarded_for_from_environment(self, monkeypatch):
        monkeypatch.setenv("TRUST_FORWARDED_FOR", "true")
        assert Settings().trust_forwarded_for is True
