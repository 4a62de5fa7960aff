"""Core portal server initialization and lifecycle."""

from __future__ import annotations

import logging

from aiohttp import web

from ..bulletins.client import MSRCBulletinClient
from ..reporter.msrc import MSRCAbuseReporter
from .rate_limit import InMemoryRateLimitStore, RateLimitStore
from .server_config import PortalConfig

logger = logging.getLogger(__name__)


class PortalServerCoreMixin:
    """Core portal server lifecycle."""

    def __init__(
        self,
        *,
        config: PortalConfig,
        rate_limit_store: RateLimitStore | None = None,
        abuse_gateway: MSRCAbuseReporter | None = None,
        bulletin_client: MSRCBulletinClient | None = None,
    ):
        self.config = config
        self.rate_limit_store = rate_limit_store or InMemoryRateLimitStore(
            limit=config.rate_limit_per_minute,
            window_seconds=60,
            max_keys=config.rate_limit_max_keys,
        )
        self.abuse_gateway = abuse_gateway or MSRCAbuseReporter(
            endpoint=config.report_endpoint,
            timeout=config.upstream_timeout_seconds,
        )
        self.bulletin_client = bulletin_client or MSRCBulletinClient(
            config.cvrf_base_url,
            timeout=config.upstream_timeout_seconds,
            cache_ttl=config.bulletin_cache_ttl_seconds,
            stale_ttl=config.bulletin_stale_seconds,
        )

        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

        self._app = web.Application(
            middlewares=[
                self._security_headers_middleware,
                self._rate_limit_middleware,
            ]
        )
        self._app.on_cleanup.append(self._close_gateways)
        self._register_routes()

    @property
    def app(self) -> web.Application:
        return self._app

    async def start(self) -> None:
        if not self.config.enabled:
            return
        if self._runner:
            return
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, host=self.config.host, port=int(self.config.port))
        await self._site.start()

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
        self._site = None

    async def _close_gateways(self, app: web.Application) -> None:
        await self.abuse_gateway.close()
        await self.bulletin_client.close()

    async def _healthz(self, request: web.Request) -> web.Response:
        return web.json_response({"ok": True})
