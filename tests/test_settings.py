from league.settings import MEMORY_DATABASE_URL, load_settings
from league.store import MemoryStore, open_store


def test_defaults_use_memory_store(monkeypatch):
    for key in ("DATABASE_URL", "ADMIN_PIN", "DEFAULT_PAR", "APP_PORT", "PORT", "LOG_LEVEL"):
        monkeypatch.delenv(key, raising=False)

    settings = load_settings()

    assert settings.database_url == MEMORY_DATABASE_URL
    assert settings.admin_pin == "1234"
    assert settings.default_par == 72
    assert settings.app_port == 8000
    assert isinstance(open_store(settings), MemoryStore)


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", " postgresql://league@db/league ")
    monkeypatch.setenv("LEADERBOARD_DEBOUNCE_SECONDS", "1.5")
    monkeypatch.setenv("SEASON_STANDINGS_LIMIT", "10")
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.delenv("APP_PORT", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    settings = load_settings()

    assert settings.database_url == "postgresql://league@db/league"
    assert settings.leaderboard_debounce_seconds == 1.5
    assert settings.season_standings_limit == 10
    assert settings.app_port == 9000
    assert settings.log_level == "debug"


def test_bad_values_fall_back(monkeypatch, caplog):
    monkeypatch.setenv("DATABASE_URL", "league.sqlite3")
    monkeypatch.setenv("DEFAULT_PAR", "seventy-two")

    settings = load_settings()

    assert settings.database_url == MEMORY_DATABASE_URL
    assert settings.default_par == 72
    assert "DEFAULT_PAR" in caplog.text
