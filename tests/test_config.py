"""
Tests for Settings loading and derived values.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from joingate.core.config import Settings
from joingate.core.dates import format_date
from joingate.domain.validation import ReasonLimits

from .conftest import ADMIN_CHAT_ID, TARGET_CHAT_ID


def make_settings(**overrides) -> Settings:
    values = {
        "bot_token": "123:abc",
        "target_chat_id": TARGET_CHAT_ID,
        "admin_review_chat_id": ADMIN_CHAT_ID,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestSettings:
    def test_defaults(self):
        settings = make_settings()

        assert settings.reason_limits == ReasonLimits(min_reason_words=10, max_reason_chars=1000)
        assert settings.reason_ttl_seconds == 604800
        assert settings.timezone == "Europe/Berlin"
        assert settings.locale == "de"
        assert settings.webhook_path == "/api/bot"

    def test_loads_from_environment(self, monkeypatch):
        monkeypatch.setenv("BOT_TOKEN", "999:env")
        monkeypatch.setenv("TARGET_CHAT_ID", "-100123")
        monkeypatch.setenv("ADMIN_REVIEW_CHAT_ID", "-100456")
        monkeypatch.setenv("MIN_REASON_WORDS", "3")

        settings = Settings(_env_file=None)

        assert settings.bot_token == "999:env"
        assert settings.target_chat_id == -100123
        assert settings.reason_limits.min_reason_words == 3

    @pytest.mark.parametrize("field", ["target_chat_id", "admin_review_chat_id"])
    def test_chat_ids_must_be_negative(self, field):
        with pytest.raises(ValidationError):
            make_settings(**{field: 12345})

    @pytest.mark.parametrize("field", ["min_reason_words", "max_reason_chars", "reason_ttl_seconds"])
    def test_limits_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            make_settings(**{field: 0})

    def test_webhook_path_must_be_absolute(self):
        with pytest.raises(ValidationError):
            make_settings(webhook_path="api/bot")

    def test_webhook_url(self):
        assert make_settings().webhook_url is None
        assert make_settings(public_base_url="https://bot.example.com/").webhook_url == "https://bot.example.com/api/bot"


class TestStorageSelection:
    def test_memory_without_database(self):
        assert make_settings().resolved_storage_type == "memory"

    def test_auto_detects_sql(self):
        assert make_settings(database_url="sqlite+aiosqlite:///./joingate.db").resolved_storage_type == "sql"

    def test_explicit_memory_wins(self):
        settings = make_settings(storage_type="memory", database_url="sqlite+aiosqlite:///./joingate.db")

        assert settings.resolved_storage_type == "memory"

    def test_sql_without_database_falls_back(self):
        assert make_settings(storage_type="sql").resolved_storage_type == "memory"

    def test_empty_strings_are_unset(self):
        settings = make_settings(storage_type="", database_url="", webhook_secret_token="")

        assert settings.storage_type is None
        assert settings.database_url is None
        assert settings.webhook_secret_token is None

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgres://u:p@db/joingate", "postgresql+asyncpg://u:p@db/joingate"),
            ("postgresql://u:p@db/joingate", "postgresql+asyncpg://u:p@db/joingate"),
            ("sqlite+aiosqlite:///./joingate.db", "sqlite+aiosqlite:///./joingate.db"),
        ],
    )
    def test_async_database_url(self, url, expected):
        assert make_settings(database_url=url).database_url_async == expected


class TestFormatDate:
    def test_berlin_summer_time(self):
        value = datetime(2025, 7, 1, 10, 30, tzinfo=timezone.utc)

        assert format_date(value, "Europe/Berlin") == "01.07., 12:30"
        assert format_date(value, "Europe/Berlin", include_year=True) == "01.07.2025, 12:30"

    def test_unknown_timezone_falls_back_to_iso(self):
        value = datetime(2025, 7, 1, 10, 30, tzinfo=timezone.utc)

        assert format_date(value, "Mars/Olympus_Mons") == value.isoformat()
