"""Configuration management for the abuse report portal."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .bulletins.client import MSRC_CVRF_BASE
from .reporter.base import TIME_ZONES
from .reporter.msrc import MSRC_REPORT_ENDPOINT
from .utils.helpers import env_flag

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Portal configuration loaded from environment variables."""

    # Web server
    portal_host: str = "127.0.0.1"
    portal_port: int = 8080

    # Upstream APIs
    report_endpoint: str = MSRC_REPORT_ENDPOINT
    cvrf_base_url: str = MSRC_CVRF_BASE
    upstream_timeout_seconds: float = 30.0

    # API protection
    rate_limit_per_minute: int = 30
    rate_limit_max_keys: int = 10_000
    security_headers: bool = True

    # Bulletin caching (mirrors the Cache-Control the API advertises)
    bulletin_cache_ttl_seconds: int = 3600
    bulletin_stale_seconds: int = 86400

    # Bulk submission
    submission_delay_ms: int = 1000
    time_zones: list[str] = field(default_factory=lambda: list(TIME_ZONES))

    # Browser sign-in (public identifiers only)
    azure_client_id: str = ""
    azure_tenant_id: str = ""
    msrc_api_scope: str = ""
    redirect_uri: str = ""

    # Paths
    config_dir: Path = field(default_factory=lambda: Path("./config"))
    log_level: str = "INFO"

    @property
    def auth_configured(self) -> bool:
        return bool(self.azure_client_id and self.azure_tenant_id)


def _load_portal_overrides(config_dir: Path) -> dict:
    """Load optional overrides from config/portal.yaml."""
    path = Path(config_dir or ".") / "portal.yaml"
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except Exception as exc:
        logger.warning("Failed to parse portal.yaml: %s", exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring portal.yaml: expected a mapping, got %s", type(data).__name__)
        return {}

    overrides: dict = {}
    zones = data.get("time_zones")
    if isinstance(zones, list):
        cleaned = [str(z).strip() for z in zones if str(z or "").strip()]
        if cleaned:
            overrides["time_zones"] = cleaned

    delay = data.get("submission_delay_ms")
    if delay is not None:
        try:
            overrides["submission_delay_ms"] = max(0, int(delay))
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid submission_delay_ms in portal.yaml: %r", delay)

    return overrides


def load_config() -> Config:
    """Load configuration from environment variables."""
    load_dotenv()

    config_dir = Path(os.getenv("CONFIG_DIR", "./config"))
    overrides = _load_portal_overrides(config_dir)

    return Config(
        portal_host=os.getenv("PORTAL_HOST", "127.0.0.1"),
        portal_port=int(os.getenv("PORTAL_PORT", "8080")),
        report_endpoint=os.getenv("MSRC_REPORT_ENDPOINT", MSRC_REPORT_ENDPOINT),
        cvrf_base_url=os.getenv("MSRC_CVRF_BASE", MSRC_CVRF_BASE),
        upstream_timeout_seconds=float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "30")),
        rate_limit_per_minute=int(os.getenv("RATE_LIMIT_PER_MINUTE", "30")),
        rate_limit_max_keys=int(os.getenv("RATE_LIMIT_MAX_KEYS", "10000")),
        security_headers=env_flag(os.getenv("SECURITY_HEADERS"), default=True),
        bulletin_cache_ttl_seconds=int(os.getenv("BULLETIN_CACHE_TTL_SECONDS", "3600")),
        bulletin_stale_seconds=int(os.getenv("BULLETIN_STALE_SECONDS", "86400")),
        submission_delay_ms=overrides.get(
            "submission_delay_ms",
            int(os.getenv("SUBMISSION_DELAY_MS", "1000")),
        ),
        time_zones=overrides.get("time_zones", list(TIME_ZONES)),
        azure_client_id=os.getenv("AZURE_CLIENT_ID", ""),
        azure_tenant_id=os.getenv("AZURE_TENANT_ID", ""),
        msrc_api_scope=os.getenv("MSRC_API_SCOPE", ""),
        redirect_uri=os.getenv("REDIRECT_URI", ""),
        config_dir=config_dir,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of error messages."""
    errors: list[str] = []
    if not 0 < int(config.portal_port) < 65536:
        errors.append("PORTAL_PORT must be between 1 and 65535")
    if config.upstream_timeout_seconds <= 0:
        errors.append("UPSTREAM_TIMEOUT_SECONDS must be positive")
    if config.rate_limit_per_minute <= 0:
        errors.append("RATE_LIMIT_PER_MINUTE must be positive")
    if config.rate_limit_max_keys <= 0:
        errors.append("RATE_LIMIT_MAX_KEYS must be positive")
    if config.bulletin_cache_ttl_seconds < 0 or config.bulletin_stale_seconds < 0:
        errors.append("Bulletin cache durations cannot be negative")
    if config.submission_delay_ms < 0:
        errors.append("SUBMISSION_DELAY_MS cannot be negative")
    for name, url in (("MSRC_REPORT_ENDPOINT", config.report_endpoint), ("MSRC_CVRF_BASE", config.cvrf_base_url)):
        if not url.startswith(("http://", "https://")):
            errors.append(f"{name} must be an http(s) URL")

    if not config.azure_client_id:
        # Sign-in is delegated to the browser; the API proxy still works with pasted tokens.
        logger.warning("AZURE_CLIENT_ID is not set; browser sign-in will be unavailable")
    if not config.azure_tenant_id:
        logger.warning("AZURE_TENANT_ID is not set; browser sign-in will be unavailable")

    return errors
