import pytest
from pydantic import ValidationError

from frontend.config import Settings, get_settings


def test_defaults() -> None:
    settings = Settings()
    assert settings.listen_addr == ""
    assert settings.bind_host == "0.0.0.0"
    assert settings.port == 8080
    assert settings.base_url == ""
    assert settings.enable_tracing is False
    assert settings.enable_profiler is False
    assert settings.enable_healthz is True
    assert settings.service_name == "frontend"


def test_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("LISTEN_ADDR", "127.0.0.1")
    monkeypatch.setenv("PORT", "9090")
    monkeypatch.setenv("BASE_URL", "/shop")
    monkeypatch.setenv("ENABLE_TRACING", "1")
    monkeypatch.setenv("ENABLE_PROFILER", "1")
    monkeypatch.setenv("COLLECTOR_SERVICE_ADDR", "otel:4317")

    settings = Settings()
    assert settings.bind_host == "127.0.0.1"
    assert settings.port == 9090
    assert settings.base_url == "/shop"
    assert settings.enable_tracing is True
    assert settings.enable_profiler is True
    assert settings.collector_service_addr == "otel:4317"


@pytest.mark.parametrize("value", ["0", "true", "yes", "", " "])
def test_toggles_are_on_only_for_one(monkeypatch, value) -> None:
    monkeypatch.setenv("ENABLE_TRACING", value)
    monkeypatch.setenv("ENABLE_PROFILER", value)
    settings = Settings()
    assert settings.enable_tracing is False
    assert settings.enable_profiler is False


def test_empty_port_uses_default(monkeypatch) -> None:
    monkeypatch.setenv("PORT", "")
    assert Settings().port == 8080


def test_settings_are_immutable() -> None:
    settings = Settings()
    with pytest.raises(ValidationError):
        settings.port = 1234


def test_settings_are_read_once(monkeypatch) -> None:
    first = get_settings()
    monkeypatch.setenv("PORT", "9999")
    assert get_settings() is first
    assert get_settings().port == 8080
