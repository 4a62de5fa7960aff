"""Portal web server configuration dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..bulletins.client import MSRC_CVRF_BASE
from ..reporter.msrc import MSRC_REPORT_ENDPOINT


@dataclass(slots=True)
class PortalConfig:
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8080
    report_endpoint: str = MSRC_REPORT_ENDPOINT
    cvrf_base_url: str = MSRC_CVRF_BASE
    upstream_timeout_seconds: float = 30.0
    rate_limit_per_minute: int = 30
    rate_limit_max_keys: int = 10_000
    security_headers: bool = True
    bulletin_cache_ttl_seconds: int = 3600
    bulletin_stale_seconds: int = 86400
    submission_delay_ms: int = 1000
    time_zones: list[str] = field(default_factory=list)
    azure_client_id: str = ""
    azure_tenant_id: str = ""
    msrc_api_scope: str = ""
    redirect_uri: str = ""

    @property
    def cache_control(self) -> str:
        return (
            f"public, s-maxage={self.bulletin_cache_ttl_seconds}, "
            f"stale-while-revalidate={self.bulletin_stale_seconds}"
        )

    @property
    def auth_configured(self) -> bool:
        return bool(self.azure_client_id and self.azure_tenant_id)
