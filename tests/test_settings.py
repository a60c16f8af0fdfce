"""Tests for environment-driven configuration."""

from datetime import timedelta

import pytest

from chorus_aggregates.core.settings import Settings, settings
from chorus_aggregates.services import AggregateEngine


def test_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("UPVOTE_SCORE", "NECRO_BUMP_WINDOW_HOURS", "INSTALL_TRIGGERS", "DATABASE_URL"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(_env_file=None)
    assert settings.upvote_score == 1
    assert settings.necro_bump_window_hours == 48
    assert settings.install_triggers is True
    assert settings.database_url.startswith("sqlite")


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("UPVOTE_SCORE", "5")
    monkeypatch.setenv("NECRO_BUMP_WINDOW_HOURS", "12")
    settings = Settings(_env_file=None)
    assert settings.upvote_score == 5
    assert settings.necro_bump_window_hours == 12


def test_effective_database_url_prefers_test_database(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://app@db/chorus")
    monkeypatch.setenv("TEST_DATABASE_URL", "sqlite://")
    monkeypatch.setenv("USE_TEST_DATABASE", "false")
    settings = Settings(_env_file=None)
    assert settings.effective_database_url == "postgresql+asyncpg://app@db/chorus"
    assert settings.database_url_sync == "postgresql+psycopg://app@db/chorus"

    monkeypatch.setenv("USE_TEST_DATABASE", "true")
    assert Settings(_env_file=None).effective_database_url == "sqlite://"


def test_engine_falls_back_to_settings() -> None:
    engine = AggregateEngine(upvote_score=2)
    assert engine.upvote_score == 2
    assert engine.necro_window == timedelta(hours=settings.necro_bump_window_hours)



def test_settings_only_hold_engine_configuration() -> None:
    """Every setting is read by the engine, the session layer or the scripts."""
    assert set(Settings.model_fields) == {
        "database_url",
        "test_database_url",
        "use_testing_database",
        "sql_debug",
        "log_level",
        "upvote_score",
        "necro_bump_window_hours",
        "install_triggers",
    }
