from mastosync.config import Settings


def test_settings_defaults(monkeypatch) -> None:
    monkeypatch.setenv("TG_BOT_TOKEN", "123:abc")
    for name in ("REDIS_URL", "POST_APPEND_SOURCE", "DEFAULT_LANGUAGE", "MEDIA_PROCESS_TIMEOUT_SEC"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()
    assert settings.bot_token == "123:abc"
    assert settings.redis_url is None
    assert settings.post_append_source is True
    assert settings.default_language == "en"
    assert settings.media_process_interval_sec == 1.0
    assert settings.media_process_timeout_sec == 60.0


def test_settings_append_source_can_be_disabled(monkeypatch) -> None:
    monkeypatch.setenv("TG_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("POST_APPEND_SOURCE", "false")

    settings = Settings.from_env()
    assert settings.post_append_source is False


def test_settings_empty_redis_url_is_none(monkeypatch) -> None:
    monkeypatch.setenv("TG_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("REDIS_URL", "")

    settings = Settings.from_env()
    assert settings.redis_url is None


def test_settings_default_language_is_normalized(monkeypatch) -> None:
    monkeypatch.setenv("TG_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("DEFAULT_LANGUAGE", " DE ")
    monkeypatch.setenv("MEDIA_PROCESS_TIMEOUT_SEC", "15")

    settings = Settings.from_env()
    assert settings.default_language == "de"
    assert settings.media_process_timeout_sec == 15.0
