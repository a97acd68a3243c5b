from app.core import config
from app.core.config import Settings


def test_comma_separated_origins_and_hosts_are_split(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example,https://b.example")
    monkeypatch.setenv("ALLOWED_HOSTS", "a.example, b.example ,")

    loaded = Settings()

    assert loaded.ALLOWED_ORIGINS == ["https://a.example", "https://b.example"]
    assert loaded.ALLOWED_HOSTS == ["a.example", "b.example"]


def test_single_origin_is_a_one_item_list(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://miniapp.example")

    assert Settings().ALLOWED_ORIGINS == ["https://miniapp.example"]


def test_blank_bot_token_counts_as_missing(monkeypatch):
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "   ")

    assert Settings().TELEGRAM_BOT_TOKEN is None


def test_production_origins_exclude_local_dev_servers(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://miniapp.example")

    assert Settings().get_effective_cors_origins() == ["https://miniapp.example"]


def test_environment_helpers_follow_settings(monkeypatch):
    monkeypatch.setattr(config.settings, "ENVIRONMENT", "production")
    assert config.is_production() is True
    assert config.is_development() is False

    monkeypatch.setattr(config.settings, "ENVIRONMENT", "development")
    assert config.is_production() is False
    assert config.is_development() is True
