import pytest

from config import load_settings

ENV_VARS = [
    "ALLOWED_ORIGINS",
    "LOG_LEVEL",
    "EXPORT_TIMEOUT_SECONDS",
    "EXPORT_COMPRESSION_LEVEL",
    "EXPORT_MAX_WORKERS",
    "EXPORT_CONCURRENCY",
    "MAX_UPLOAD_BYTES",
    "MAX_IMAGE_PIXELS",
    "RATE_LIMIT_MAX_REQUESTS",
    "RATE_LIMIT_WINDOW_SECONDS",
    "GOOGLE_AI_MODEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = load_settings()
    assert settings.allowed_origins == ["*"]
    assert settings.log_level == "INFO"
    assert settings.export_timeout_seconds == 60.0
    assert settings.export_compression_level == 6
    assert settings.export_max_workers == 1
    assert settings.export_concurrency == 4
    assert settings.max_upload_bytes == 10 * 1024 * 1024
    assert settings.rate_limit_max_requests == 20
    assert settings.rate_limit_window_seconds == 3600
    assert settings.redis_url is None
    assert settings.google_ai_api_key is None
    assert settings.google_ai_model == "gemini-3-pro-image-preview"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example,")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("EXPORT_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("EXPORT_COMPRESSION_LEVEL", "9")
    monkeypatch.setenv("EXPORT_MAX_WORKERS", "4")

    settings = load_settings()
    assert settings.allowed_origins == ["https://a.example", "https://b.example"]
    assert settings.log_level == "DEBUG"
    assert settings.export_timeout_seconds == 12.5
    assert settings.export_compression_level == 9
    assert settings.export_max_workers == 4


def test_blank_values_use_defaults(monkeypatch):
    monkeypatch.setenv("EXPORT_COMPRESSION_LEVEL", "  ")
    assert load_settings().export_compression_level == 6


@pytest.mark.parametrize(
    "name, value",
    [
        ("EXPORT_COMPRESSION_LEVEL", "10"),
        ("EXPORT_COMPRESSION_LEVEL", "fast"),
        ("EXPORT_MAX_WORKERS", "0"),
        ("EXPORT_CONCURRENCY", "0"),
        ("RATE_LIMIT_MAX_REQUESTS", "-5"),
        ("EXPORT_TIMEOUT_SECONDS", "0"),
        ("EXPORT_TIMEOUT_SECONDS", "soon"),
    ],
)
def test_invalid_values_name_the_variable(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValueError, match=name):
        load_settings()
