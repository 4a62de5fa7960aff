"""Standalone portal web server process.

Run:
  python -m abuseportal.dashboard.main
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from ..config import Config, load_config, validate_config
from .server import PortalConfig, PortalServer

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def build_portal_config(config: Config) -> PortalConfig:
    return PortalConfig(
        enabled=True,
        host=config.portal_host,
        port=config.portal_port,
        report_endpoint=config.report_endpoint,
        cvrf_base_url=config.cvrf_base_url,
        upstream_timeout_seconds=config.upstream_timeout_seconds,
        rate_limit_per_minute=config.rate_limit_per_minute,
        rate_limit_max_keys=config.rate_limit_max_keys,
        security_headers=config.security_headers,
        bulletin_cache_ttl_seconds=config.bulletin_cache_ttl_seconds,
        bulletin_stale_seconds=config.bulletin_stale_seconds,
        submission_delay_ms=config.submission_delay_ms,
        time_zones=list(config.time_zones),
        azure_client_id=config.azure_client_id,
        azure_tenant_id=config.azure_tenant_id,
        msrc_api_scope=config.msrc_api_scope,
        redirect_uri=config.redirect_uri,
    )


async def run_portal() -> None:
    config = load_config()
    logging.getLogger().setLevel(config.log_level)

    errors = validate_config(config)
    if errors:
        for error in errors:
            logger.error("Config error: %s", error)
        raise SystemExit(1)

    server = PortalServer(config=build_portal_config(config))

    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loop does not support add_signal_handler.
            pass

    await server.start()
    logger.info("Portal running on http://%s:%s", config.portal_host, config.portal_port)
    try:
        await stop_event.wait()
    finally:
        await server.stop()


def main() -> None:
    asyncio.run(run_portal())


if __name__ == "__main__":
    main()
