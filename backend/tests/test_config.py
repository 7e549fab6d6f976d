"""
Tests for centralized configuration.
"""
import pytest
from studio.core.config import Settings, get_settings, reload_settings


@pytest.mark.unit
def test_settings_defaults(monkeypatch):
    for var in ("MAX_FILE_SIZE_MB", "MAX_DATASET_ROWS", "RATE_LIMIT_PER_MINUTE", "LOG_LEVEL", "PROFILER_NUMERIC_RATIO"):
        monkeypatch.delenv(var, raising=False)
    settings = Settings.from_env()

    assert settings.max_file_size_mb == 25
    assert settings.max_dataset_rows == 5000
    assert settings.rate_limit_per_minute == 10
    assert settings.request_timeout_seconds == 300
    assert settings.log_level == "INFO"


@pytest.mark.unit
def test_profiler_threshold_defaults():
    settings = Settings()

    assert settings.type_sample_size == 200
    assert settings.id_unique_ratio == 0.95
    assert settings.numeric_ratio == 0.8
    assert settings.datetime_ratio == 0.7
    assert settings.categorical_unique_ratio == 0.5
    assert settings.categorical_max_distinct == 50
    assert settings.text_min_avg_length == 50
    assert settings.top_values_limit == 10


@pytest.mark.unit
def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("MAX_FILE_SIZE_MB", "100")
    monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "20")
    monkeypatch.setenv("PROFILER_NUMERIC_RATIO", "0.9")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    try:
        settings = reload_settings()

        assert settings.max_file_size_mb == 100
        assert settings.rate_limit_per_minute == 20
        assert settings.numeric_ratio == 0.9
        assert settings.log_level == "DEBUG"
    finally:
        monkeypatch.undo()
        reload_settings()


@pytest.mark.unit
def test_settings_validation():
    with pytest.raises(ValueError):
        Settings(max_file_size_mb=0)

    with pytest.raises(ValueError):
        Settings(max_file_size_mb=2000)

    with pytest.raises(ValueError):
        Settings(log_level="INVALID")

    with pytest.raises(ValueError):
        Settings(numeric_ratio=1.5)


@pytest.mark.unit
def test_settings_properties():
    settings = Settings(max_file_size_mb=50, allowed_origins="http://a.test, http://b.test,")

    assert settings.max_file_size_bytes == 50 * 1024 * 1024
    assert settings.allowed_origins_list == ["http://a.test", "http://b.test"]


@pytest.mark.unit
def test_settings_singleton():
    assert get_settings() is get_settings()
