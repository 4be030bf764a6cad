"""Tests for preflight doctor checks and environment settings."""

from __future__ import annotations

import pytest

from scripts.doctor import run_doctor
from streamgate.core.config import DEFAULT_USER_AGENT, GatewaySettings


def test_doctor_passes_with_defaults() -> None:
    result = run_doctor({})
    assert result.ok is True
    assert result.messages == ["Doctor checks passed."]


def test_doctor_fails_on_malformed_interval() -> None:
    result = run_doctor({"QUEUE_MIN_INTERVAL_MS": "fast"})
    assert result.ok is False
    joined = "\n".join(result.messages)
    assert "QUEUE_MIN_INTERVAL_MS must be a number" in joined


def test_doctor_fails_on_negative_timeout() -> None:
    result = run_doctor({"PROVIDER_HTTP_TIMEOUT": "-1"})
    assert result.ok is False
    assert "must not be negative" in "\n".join(result.messages)


def test_doctor_fails_on_bad_logging_config() -> None:
    result = run_doctor({"LOG_LEVEL": "chatty", "LOG_FORMAT": "xml"})
    assert result.ok is False
    joined = "\n".join(result.messages)
    assert "LOG_LEVEL" in joined
    assert "LOG_FORMAT" in joined


def test_doctor_fails_on_relative_base_url() -> None:
    result = run_doctor({"COHERE_BASE_URL": "/proxy/cohere"})
    assert result.ok is False
    assert "COHERE_BASE_URL" in "\n".join(result.messages)


def test_doctor_warns_on_unknown_base_url() -> None:
    result = run_doctor({"OPENAI_BASE_URL": "https://api.example.com"})
    assert result.ok is True
    assert "Warnings:" in result.messages
    assert any("OPENAI_BASE_URL" in m for m in result.messages)


def test_doctor_warns_on_short_interval_and_timeouts() -> None:
    result = run_doctor({
        "QUEUE_MIN_INTERVAL_MS": "20",
        "PROVIDER_HTTP_TIMEOUT": "60",
        "STREAM_TIMEOUT": "30",
    })
    assert result.ok is True
    joined = "\n".join(result.messages)
    assert "QUEUE_MIN_INTERVAL_MS below 100 ms" in joined
    assert "STREAM_TIMEOUT is shorter" in joined


def test_settings_from_env() -> None:
    settings = GatewaySettings.from_env({
        "QUEUE_MIN_INTERVAL_MS": "500",
        "STREAM_TIMEOUT": "0",
        "LOG_LEVEL": "debug",
        "GROQ_BASE_URL": "http://localhost:9000/",
    })
    assert settings.queue_min_interval == 0.5
    assert settings.stream_timeout is None
    assert settings.log_level == "DEBUG"
    assert settings.user_agent == DEFAULT_USER_AGENT
    assert settings.base_url_for("Groq") == "http://localhost:9000"
    assert settings.base_url_for("cohere") is None


def test_settings_reject_bad_numbers() -> None:
    with pytest.raises(ValueError):
        GatewaySettings.from_env({"STREAM_TIMEOUT": "soon"})


def test_settings_reject_zero_http_timeout() -> None:
    with pytest.raises(ValueError, match="must be positive"):
        GatewaySettings.from_env({"PROVIDER_HTTP_TIMEOUT": "0"})


def test_doctor_fails_on_zero_http_timeout() -> None:
    result = run_doctor({"PROVIDER_HTTP_TIMEOUT": "0"})
    assert result.ok is False
    assert "PROVIDER_HTTP_TIMEOUT must be positive" in "\n".join(result.messages)
