from mara.config import load_settings


def test_defaults(monkeypatch):
    for name in ("DATABASE_URL", "PORT", "FRONTEND_URL", "RETENTION_DAYS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings.database_url is None
    assert settings.port == 3001
    assert settings.frontend_url == "*"
    assert settings.session_ttl_seconds == 86400
    assert settings.chat_id_ttl_seconds == 2592000


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", " postgresql://mara@db/mara ")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("RETENTION_DAYS", "bogus")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.database_url == "postgresql://mara@db/mara"
    assert settings.port == 8080
    assert settings.retention_days == 30
    assert settings.log_level == "DEBUG"


def test_blank_database_url_means_cache(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "")
    assert load_settings().database_url is None
