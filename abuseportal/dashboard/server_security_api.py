"""Security bulletin API handlers."""

from __future__ import annotations

import logging

from aiohttp import web

from ..bulletins.client import (
    BulletinError,
    BulletinNotFoundError,
    InvalidIdentifierError,
    UpstreamStatusError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from ..bulletins.models import UpdateQuery

logger = logging.getLogger(__name__)


def _upstream_failure(exc: BulletinError, error: str) -> web.Response:
    if isinstance(exc, UpstreamTimeoutError):
        return web.json_response({"error": "Request timeout"}, status=504)
    if isinstance(exc, UpstreamUnavailableError):
        return web.json_response({"error": error, "status": 502}, status=502)
    status = exc.status_code if isinstance(exc, UpstreamStatusError) else 500
    return web.json_response({"error": error, "status": status}, status=status)


class PortalServerSecurityApiMixin:
    """Read-only proxy over the security bulletin API."""

    async def _api_security_updates(self, request: web.Request) -> web.Response:
        query = UpdateQuery.from_params(request.query)
        try:
            payload = await self.bulletin_client.list_updates(query)
        except BulletinError as exc:
            return _upstream_failure(exc, "Failed to fetch security updates")
        except Exception:
            logger.exception("Error fetching security updates")
            return web.json_response({"error": "Internal Server Error"}, status=500)
        return self._with_cache_headers(web.json_response(payload))

    async def _api_security_cve(self, request: web.Request) -> web.Response:
        cve_id = request.match_info.get("cve_id", "")
        try:
            payload = await self.bulletin_client.get_by_cve(cve_id)
        except InvalidIdentifierError as exc:
            return web.json_response(
                {"error": "Invalid CVE ID format", "message": exc.message},
                status=400,
            )
        except BulletinNotFoundError as exc:
            return web.json_response(
                {
                    "error": "CVE not found",
                    "cve": exc.identifier,
                    "message": "No Microsoft security updates found for this CVE",
                },
                status=404,
            )
        except BulletinError as exc:
            return _upstream_failure(exc, "Failed to fetch CVE data")
        except Exception:
            logger.exception("Error fetching CVE %s", cve_id)
            return web.json_response({"error": "Internal Server Error"}, status=500)
        return self._with_cache_headers(web.json_response(payload))

    async def _api_security_cvrf(self, request: web.Request) -> web.Response:
        doc_id = request.match_info.get("doc_id", "")
        try:
            payload = await self.bulletin_client.get_cvrf(doc_id)
        except InvalidIdentifierError as exc:
            return web.json_response(
                {"error": "Invalid CVRF document ID format", "message": exc.message},
                status=400,
            )
        except BulletinNotFoundError:
            return web.json_response({"error": "CVRF document not found", "id": doc_id}, status=404)
        except BulletinError as exc:
            return _upstream_failure(exc, "Failed to fetch CVRF document")
        except Exception:
            logger.exception("Error fetching CVRF document %s", doc_id)
            return web.json_response({"error": "Internal Server Error"}, status=500)
        return self._with_cache_headers(web.json_response(payload))
