"""HTTP gateways that deliver abuse reports.

Two transports are supported:

- ``MSRCAbuseReporter`` talks to the upstream abuse API directly with the
  caller's bearer token (this is also what the portal's own
  ``POST /api/report`` proxy uses).
- ``PortalReportClient`` goes through a running portal's ``/api/report``
  route, the same path the browser form takes.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from .base import (
    AbuseReport,
    APIError,
    ConfigurationError,
    ReportResult,
    ReportStatus,
    UpstreamTimeoutError,
)

logger = logging.getLogger(__name__)

MSRC_REPORT_ENDPOINT = "https://api.msrc.microsoft.com/report/v2.0/abuse"


def _parse_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON body; non-JSON text is wrapped as ``{"message": text}``."""
    text = response.text
    try:
        data = json.loads(text) if text else {}
    except ValueError:
        return {"message": text}
    if isinstance(data, dict):
        return data
    return {"value": data}


class BaseHTTPReporter:
    """
    Base class for reporters that use HTTP APIs.

    Provides:
    - Shared httpx client with sensible defaults
    - Standard error handling (timeouts, transport errors)

    Subclasses implement `_do_submit()` instead of `submit()`.
    """

    platform_name: str = "unknown"

    # HTTP client defaults
    timeout_seconds: float = 30.0
    user_agent: str = "AbusePortal/1.0"

    def __init__(
        self,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if timeout is not None:
            self.timeout_seconds = float(timeout)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                headers={"User-Agent": self.user_agent},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def submit(self, report: AbuseReport) -> ReportResult:
        """
        Submit with automatic error handling.

        Never raises: timeouts and transport failures come back as FAILED
        results so a bulk run can carry on with the next target.
        """
        try:
            return await self._do_submit(report)

        except (httpx.TimeoutException, UpstreamTimeoutError):
            logger.warning("%s: request timed out for %s", self.platform_name, report.target)
            return ReportResult(
                platform=self.platform_name,
                status=ReportStatus.FAILED,
                status_code=504,
                message="Request timed out",
            )

        except APIError as e:
            logger.warning("%s: rejected %s (HTTP %s)", self.platform_name, report.target, e.status_code)
            return ReportResult(
                platform=self.platform_name,
                status=ReportStatus.FAILED,
                status_code=e.status_code,
                message=e.message,
            )

        except ConfigurationError as e:
            return ReportResult(
                platform=self.platform_name,
                status=ReportStatus.FAILED,
                message=str(e),
            )

        except httpx.TransportError as e:
            logger.warning("%s: network error for %s: %s", self.platform_name, report.target, e)
            return ReportResult(
                platform=self.platform_name,
                status=ReportStatus.FAILED,
                message=f"Network error: {e}",
            )

        except Exception as e:
            logger.exception(f"Unexpected error in {self.platform_name}: {e}")
            return ReportResult(
                platform=self.platform_name,
                status=ReportStatus.FAILED,
                message=f"Unexpected error: {str(e)}",
            )

    async def _do_submit(self, report: AbuseReport) -> ReportResult:
        """
        Perform the actual submission.

        Subclasses must implement this method. The base `submit()` wraps this
        with standard error handling.
        """
        raise NotImplementedError("Subclasses must implement _do_submit()")

    async def _post_json(
        self,
        url: str,
        data: dict[str, Any],
        headers: Optional[dict[str, str]] = None,
    ) -> httpx.Response:
        """Helper for JSON POST requests."""
        client = await self._get_client()
        return await client.post(url, json=data, headers=headers)


class MSRCAbuseReporter(BaseHTTPReporter):
    """Submit reports straight to the upstream abuse API."""

    platform_name = "msrc"

    def __init__(
        self,
        bearer_token: str = "",
        *,
        endpoint: str = MSRC_REPORT_ENDPOINT,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.bearer_token = (bearer_token or "").strip()
        self.endpoint = endpoint

    def is_configured(self) -> bool:
        return bool(self.bearer_token)

    async def _do_submit(self, report: AbuseReport) -> ReportResult:
        if not self.is_configured():
            raise ConfigurationError("Bearer token not configured")
        status_code, data = await self.forward(
            report.to_payload(),
            authorization=f"Bearer {self.bearer_token}",
        )
        if 200 <= status_code < 300:
            return ReportResult(
                platform=self.platform_name,
                status=ReportStatus.SUBMITTED,
                status_code=status_code,
                message="Submitted",
                response_data=data,
            )
        return ReportResult(
            platform=self.platform_name,
            status=ReportStatus.FAILED,
            status_code=status_code,
            message=f"Failed to submit report (HTTP {status_code})",
            response_data={"error": "Failed to submit report", "status": status_code},
        )

    async def forward(self, payload: dict[str, Any], *, authorization: str) -> tuple[int, dict[str, Any]]:
        """Relay a report payload upstream as-is.

        Returns the upstream status and decoded body. Error bodies are logged
        here and must not be shown to end users. Raises UpstreamTimeoutError
        when the upstream does not answer in time.
        """
        try:
            response = await self._post_json(
                self.endpoint,
                payload,
                headers={"Authorization": authorization, "Content-Type": "application/json"},
            )
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError(f"Upstream did not respond within {self.timeout_seconds}s") from exc

        data = _parse_body(response)
        if not response.is_success:
            logger.error(
                "[MSRC API Error] status=%s details=%s",
                response.status_code,
                data,
            )
        return response.status_code, data


class PortalReportClient(BaseHTTPReporter):
    """Submit reports through a running portal's ``POST /api/report``."""

    platform_name = "portal"

    def __init__(
        self,
        base_url: str,
        bearer_token: str,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.base_url = base_url.rstrip("/")
        self.bearer_token = (bearer_token or "").strip()

    async def _do_submit(self, report: AbuseReport) -> ReportResult:
        response = await self._post_json(
            f"{self.base_url}/api/report",
            report.to_payload(),
            headers={"Authorization": f"Bearer {self.bearer_token}"},
        )
        data = _parse_body(response)
        if response.is_success:
            return ReportResult(
                platform=self.platform_name,
                status=ReportStatus.SUBMITTED,
                status_code=response.status_code,
                message="Submitted",
                response_data=data,
            )
        # The portal has already sanitized upstream errors.
        raise APIError(response.status_code, json.dumps(data), response.text)
