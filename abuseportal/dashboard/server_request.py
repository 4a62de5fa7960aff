"""Request helper methods for the portal server."""

from __future__ import annotations

from aiohttp import web


class PortalServerRequestMixin:
    """Request helper utilities."""

    def _client_ip(self, request: web.Request) -> str:
        """Best-effort client IP extraction (supports X-Forwarded-For)."""
        forwarded = request.headers.get("X-Forwarded-For", "")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        remote = (request.remote or "").strip()
        return remote or "unknown"

    def _public_base_url(self, request: web.Request) -> str:
        proto = (request.headers.get("X-Forwarded-Proto") or request.scheme or "http").split(",")[0].strip()
        host = (
            request.headers.get("X-Forwarded-Host")
            or request.headers.get("Host")
            or request.host
            or ""
        )
        host = host.split(",")[0].strip()
        return f"{proto}://{host}"

    def _with_cache_headers(self, response: web.Response) -> web.Response:
        response.headers["Cache-Control"] = self.config.cache_control
        return response
