"""Abuse report API handlers (proxy and form helpers)."""

from __future__ import annotations

import logging
import re
from typing import Any

from aiohttp import web

from ..reporter.base import (
    DESTINATION_INCIDENTS,
    INCIDENT_THREAT_MAP,
    INCIDENT_TYPES,
    THREAT_HINTS,
    THREAT_TYPES,
    TIME_ZONES,
    UpstreamTimeoutError,
)
from ..reporter.targets import validate_targets

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
_TIME_RE = re.compile(r"\d{2}:\d{2}:\d{2}", re.ASCII)

_INCIDENT_VALUES = {i.value for i in INCIDENT_TYPES}
_THREAT_VALUES = {t.value for t in THREAT_TYPES}


def _bad_request(message: str) -> web.Response:
    return web.json_response({"error": "Bad Request", "message": message}, status=400)


def _non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


def validate_report_body(body: Any) -> str | None:
    """Return the first problem with a report payload, or None when acceptable."""
    if not isinstance(body, dict):
        return "Invalid request body"
    if body.get("incidentType") not in _INCIDENT_VALUES:
        return "Invalid or missing incidentType"
    if body.get("threatType") not in _THREAT_VALUES:
        return "Invalid or missing threatType"
    email = body.get("reporterEmail")
    if not _non_empty_str(email) or "@" not in email:
        return "Invalid or missing reporterEmail"
    if not _non_empty_str(body.get("reporterName")):
        return "Invalid or missing reporterName"
    if not _non_empty_str(body.get("reportNotes")):
        return "Invalid or missing reportNotes"
    date = body.get("date")
    if not _non_empty_str(date) or not _DATE_RE.fullmatch(date):
        return "Invalid date format"
    time_value = body.get("time")
    if not _non_empty_str(time_value) or not _TIME_RE.fullmatch(time_value):
        return "Invalid time format"
    return None


class PortalServerReportApiMixin:
    """Report proxy and report-form helper endpoints."""

    async def _api_report(self, request: web.Request) -> web.Response:
        """Relay one abuse report to the upstream API with the caller's token."""
        authorization = self._bearer_authorization(request)
        if authorization is None:
            return web.json_response(
                {"error": "Unauthorized", "message": "Valid authorization token required"},
                status=401,
            )

        try:
            body = await request.json()
        except Exception:
            return _bad_request("Invalid JSON in request body")

        problem = validate_report_body(body)
        if problem:
            return _bad_request(problem)

        try:
            status, data = await self.abuse_gateway.forward(body, authorization=authorization)
        except UpstreamTimeoutError:
            logger.warning("Abuse API timed out for %s", self._client_ip(request))
            return web.json_response({"error": "Request timeout"}, status=504)
        except Exception:
            logger.exception("[API Route Error] report relay failed")
            return web.json_response({"error": "Internal Server Error"}, status=500)

        if not 200 <= status < 300:
            return web.json_response(
                {"error": "Failed to submit report", "status": status},
                status=status,
            )
        return web.json_response(data, status=200)

    async def _api_taxonomy(self, request: web.Request) -> web.Response:
        """Choices the report form offers, in display order."""
        time_zones = list(self.config.time_zones or TIME_ZONES)
        return web.json_response(
            {
                "incidentTypes": [i.value for i in INCIDENT_TYPES],
                "threatTypes": [t.value for t in THREAT_TYPES],
                "threatMap": {
                    incident.value: [t.value for t in threats]
                    for incident, threats in INCIDENT_THREAT_MAP.items()
                },
                "destinationIncidents": [i.value for i in INCIDENT_TYPES if i in DESTINATION_INCIDENTS],
                "timeZones": time_zones,
                "defaultTimeZone": time_zones[0] if time_zones else "GMT",
                "hints": THREAT_HINTS,
                "delayMs": self.config.submission_delay_ms,
            }
        )

    async def _api_validate_targets(self, request: web.Request) -> web.Response:
        """Live validation of the bulk target text for one threat type."""
        data = await self._read_json(request)
        text = data.get("text")
        threat_type = data.get("threatType")
        if text is not None and not isinstance(text, str):
            return _bad_request("text must be a string")
        result = validate_targets(text or "", threat_type or "")
        return web.json_response(result.to_dict())

    async def _api_auth_config(self, request: web.Request) -> web.Response:
        """Public sign-in settings for the browser; no secrets are involved."""
        cfg = self.config
        scopes = [cfg.msrc_api_scope] if cfg.msrc_api_scope else ["openid", "profile", "email", "User.Read"]
        return web.json_response(
            {
                "configured": cfg.auth_configured,
                "hasClientId": bool(cfg.azure_client_id),
                "hasTenantId": bool(cfg.azure_tenant_id),
                "hasCustomScope": bool(cfg.msrc_api_scope),
                "clientId": cfg.azure_client_id,
                "authority": f"https://login.microsoftonline.com/{cfg.azure_tenant_id}",
                "redirectUri": cfg.redirect_uri or self._public_base_url(request),
                "scopes": scopes,
            }
        )
