"""Tests for environment and portal.yaml configuration loading."""

from __future__ import annotations

import logging

import pytest

from abuseportal.config import Config, load_config, validate_config
from abuseportal.reporter.base import TIME_ZONES

ENV_VARS = (
    "PORTAL_HOST",
    "PORTAL_PORT",
    "MSRC_REPORT_ENDPOINT",
    "MSRC_CVRF_BASE",
    "UPSTREAM_TIMEOUT_SECONDS",
    "RATE_LIMIT_PER_MINUTE",
    "RATE_LIMIT_MAX_KEYS",
    "SECURITY_HEADERS",
    "BULLETIN_CACHE_TTL_SECONDS",
    "BULLETIN_STALE_SECONDS",
    "SUBMISSION_DELAY_MS",
    "AZURE_CLIENT_ID",
    "AZURE_TENANT_ID",
    "MSRC_API_SCOPE",
    "REDIRECT_URI",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_defaults(clean_env):
    config = load_config()

    assert config.portal_port == 8080
    assert config.report_endpoint.startswith("https://")
    assert config.rate_limit_per_minute == 30
    assert config.submission_delay_ms == 1000
    assert config.time_zones == list(TIME_ZONES)
    assert config.auth_configured is False
    assert config.config_dir == clean_env
    assert validate_config(config) == []


def test_environment_overrides(clean_env, monkeypatch):
    monkeypatch.setenv("PORTAL_PORT", "9000")
    monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "5")
    monkeypatch.setenv("SUBMISSION_DELAY_MS", "250")
    monkeypatch.setenv("AZURE_CLIENT_ID", "client")
    monkeypatch.setenv("AZURE_TENANT_ID", "tenant")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = load_config()

    assert config.portal_port == 9000
    assert config.rate_limit_per_minute == 5
    assert config.submission_delay_ms == 250
    assert config.auth_configured is True
    assert config.log_level == "DEBUG"


def test_security_headers_flag(clean_env, monkeypatch):
    assert load_config().security_headers is True
    monkeypatch.setenv("SECURITY_HEADERS", "off")
    assert load_config().security_headers is False


def test_portal_yaml_overrides_env(clean_env, monkeypatch):
    monkeypatch.setenv("SUBMISSION_DELAY_MS", "250")
    (clean_env / "portal.yaml").write_text("time_zones: [UTC, ' CET ', '']\nsubmission_delay_ms: 0\n")

    config = load_config()

    assert config.time_zones == ["UTC", "CET"]
    assert config.submission_delay_ms == 0


def test_broken_portal_yaml_is_ignored(clean_env, caplog):
    (clean_env / "portal.yaml").write_text("time_zones: [unterminated\n")

    with caplog.at_level(logging.WARNING):
        config = load_config()

    assert config.time_zones == list(TIME_ZONES)
    assert "portal.yaml" in caplog.text


def test_validate_config_reports_problems(caplog):
    config = Config(
        portal_port=70000,
        upstream_timeout_seconds=0,
        rate_limit_per_minute=0,
        bulletin_stale_seconds=-1,
        submission_delay_ms=-5,
        cvrf_base_url="ftp://example.com",
    )

    with caplog.at_level(logging.WARNING):
        errors = validate_config(config)

    assert "PORTAL_PORT must be between 1 and 65535" in errors
    assert "UPSTREAM_TIMEOUT_SECONDS must be positive" in errors
    assert "RATE_LIMIT_PER_MINUTE must be positive" in errors
    assert "Bulletin cache durations cannot be negative" in errors
    assert "SUBMISSION_DELAY_MS cannot be negative" in errors
    assert "MSRC_CVRF_BASE must be an http(s) URL" in errors
    # Missing sign-in settings only warn.
    assert "AZURE_CLIENT_ID is not set" in caplog.text
