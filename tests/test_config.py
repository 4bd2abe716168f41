"""Tests for environment-driven settings."""

import pytest

from authenticity.config import ALLOWED_CONTENT_TYPES, Settings


def test_defaults(monkeypatch):
    for name in ("DB_PATH", "MAX_UPLOAD_MB", "RECENT_LIMIT", "CORS_ORIGINS", "LOG_LEVEL"):
        monkeypatch.delenv(f"AUTHENTICITY_{name}", raising=False)
    settings = Settings.from_env()
    assert settings.db_path == ""
    assert settings.max_upload_bytes == 10 * 1024 * 1024
    assert settings.max_upload_mb == 10
    assert settings.recent_limit == 10
    assert settings.cors_origins == ("*",)
    assert settings.allowed_content_types == ALLOWED_CONTENT_TYPES


def test_overrides(monkeypatch):
    monkeypatch.setenv("AUTHENTICITY_DB_PATH", "/tmp/analyses.db")
    monkeypatch.setenv("AUTHENTICITY_MAX_UPLOAD_MB", "2")
    monkeypatch.setenv("AUTHENTICITY_CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("AUTHENTICITY_LOG_LEVEL", "debug")
    settings = Settings.from_env()
    assert settings.db_path == "/tmp/analyses.db"
    assert settings.max_upload_bytes == 2 * 1024 * 1024
    assert settings.cors_origins == ("https://a.example", "https://b.example")
    assert settings.log_level == "DEBUG"


def test_bad_integer(monkeypatch):
    monkeypatch.setenv("AUTHENTICITY_RECENT_LIMIT", "lots")
    with pytest.raises(ValueError):
        Settings.from_env()
