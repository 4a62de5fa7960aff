"""Security middlewares and request guards for the portal server."""

from __future__ import annotations

import logging

from aiohttp import web

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
}

RATE_LIMIT_BODY = {
    "error": "Too Many Requests",
    "message": "Rate limit exceeded. Please try again later.",
}


def _is_api_path(path: str) -> bool:
    return path == "/api" or path.startswith("/api/")


class PortalServerSecurityMixin:
    """Rate limiting, security headers and bearer checks."""

    @web.middleware
    async def _security_headers_middleware(self, request: web.Request, handler):  # type: ignore[override]
        if not self.config.security_headers or not _is_api_path(request.path or ""):
            return await handler(request)
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            exc.headers.update(SECURITY_HEADERS)
            raise
        response.headers.update(SECURITY_HEADERS)
        return response

    @web.middleware
    async def _rate_limit_middleware(self, request: web.Request, handler):  # type: ignore[override]
        if not _is_api_path(request.path or ""):
            return await handler(request)

        client = self._client_ip(request)
        decision = self.rate_limit_store.hit(client)
        if not decision.allowed:
            logger.warning("Rate limit exceeded for %s on %s", client, request.path)
            return web.json_response(
                RATE_LIMIT_BODY,
                status=429,
                headers={"Retry-After": str(decision.retry_after or 60)},
            )
        return await handler(request)

    @staticmethod
    def _bearer_authorization(request: web.Request) -> str | None:
        """Return the Authorization header when it looks like a usable bearer token."""
        auth = request.headers.get("Authorization", "")
        if not auth.startswith("Bearer ") or len(auth) <= 10:
            return None
        return auth

    async def _read_json(self, request: web.Request) -> dict:
        try:
            data = await request.json()
        except Exception:
            raise web.HTTPBadRequest(text="Invalid JSON payload")
        if not isinstance(data, dict):
            raise web.HTTPBadRequest(text="Invalid JSON payload")
        return data
