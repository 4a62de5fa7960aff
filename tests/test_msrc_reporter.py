"""Tests for the abuse API gateways (upstream faked with httpx.MockTransport)."""

from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from abuseportal.reporter.base import ReportStatus, UpstreamTimeoutError
from abuseportal.reporter.builder import build_report
from abuseportal.reporter.msrc import MSRC_REPORT_ENDPOINT, MSRCAbuseReporter, PortalReportClient

NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_submit_posts_payload_with_bearer(recorder, spam_form):
    handler = recorder(lambda request: httpx.Response(200, json={"id": "abc"}))
    reporter = MSRCAbuseReporter("token-123", transport=handler.transport)

    result = await reporter.submit(build_report("192.0.2.1", spam_form, now=NOW))
    await reporter.close()

    assert result.status == ReportStatus.SUBMITTED
    assert result.response_data == {"id": "abc"}
    request = handler.requests[0]
    assert str(request.url) == MSRC_REPORT_ENDPOINT
    assert request.headers["Authorization"] == "Bearer token-123"
    assert handler.json_bodies()[0]["sourceIp"] == "192.0.2.1"
    assert handler.json_bodies()[0]["date"] == "2024-01-02"


@pytest.mark.asyncio
async def test_non_json_success_body_is_wrapped(recorder, spam_form):
    handler = recorder(lambda request: httpx.Response(200, text="Accepted"))
    reporter = MSRCAbuseReporter("token-123", transport=handler.transport)

    result = await reporter.submit(build_report("192.0.2.1", spam_form, now=NOW))

    assert result.ok
    assert result.response_data == {"message": "Accepted"}


@pytest.mark.asyncio
async def test_upstream_error_body_is_not_exposed(recorder, spam_form):
    handler = recorder(lambda request: httpx.Response(403, json={"detail": "internal reason"}))
    reporter = MSRCAbuseReporter("token-123", transport=handler.transport)

    result = await reporter.submit(build_report("192.0.2.1", spam_form, now=NOW))

    assert result.status == ReportStatus.FAILED
    assert result.status_code == 403
    assert result.response_data == {"error": "Failed to submit report", "status": 403}
    assert "internal reason" not in (result.message or "")


@pytest.mark.asyncio
async def test_timeout_becomes_failed_result(spam_form):
    def raise_timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    reporter = MSRCAbuseReporter("token-123", transport=httpx.MockTransport(raise_timeout))
    result = await reporter.submit(build_report("192.0.2.1", spam_form, now=NOW))

    assert result.status == ReportStatus.FAILED
    assert result.status_code == 504
    assert result.message == "Request timed out"


@pytest.mark.asyncio
async def test_network_error_becomes_failed_result_without_status(spam_form):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    reporter = MSRCAbuseReporter("token-123", transport=httpx.MockTransport(refuse))
    result = await reporter.submit(build_report("192.0.2.1", spam_form, now=NOW))

    assert result.status == ReportStatus.FAILED
    assert result.status_code is None
    assert result.message.startswith("Network error")


@pytest.mark.asyncio
async def test_forward_returns_status_and_raises_on_timeout(recorder):
    handler = recorder(lambda request: httpx.Response(201, json={"ok": True}))
    reporter = MSRCAbuseReporter(transport=handler.transport)
    status, data = await reporter.forward({"a": 1}, authorization="Bearer abcdefghij")
    assert (status, data) == (201, {"ok": True})
    assert handler.requests[0].headers["Authorization"] == "Bearer abcdefghij"

    def raise_timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("slow", request=request)

    slow = MSRCAbuseReporter(transport=httpx.MockTransport(raise_timeout))
    with pytest.raises(UpstreamTimeoutError):
        await slow.forward({"a": 1}, authorization="Bearer abcdefghij")


@pytest.mark.asyncio
async def test_portal_client_posts_to_portal_route(recorder, spam_form):
    handler = recorder(lambda request: httpx.Response(400, json={"error": "Bad Request", "message": "Invalid date format"}))
    client = PortalReportClient("http://portal.local/", "token-123", transport=handler.transport)

    result = await client.submit(build_report("192.0.2.1", spam_form, now=NOW))
    await client.close()

    assert str(handler.requests[0].url) == "http://portal.local/api/report"
    assert result.status == ReportStatus.FAILED
    assert result.status_code == 400
    assert "Invalid date format" in result.message


def test_is_configured_requires_token():
    assert MSRCAbuseReporter("  ").is_configured() is False
    assert MSRCAbuseReporter("abc").is_configured() is True


@pytest.mark.asyncio
async def test_submit_without_token_fails_without_calling_upstream(recorder, spam_form):
    handler = recorder(lambda request: httpx.Response(200, json={}))
    reporter = MSRCAbuseReporter("", transport=handler.transport)

    result = await reporter.submit(build_report("192.0.2.1", spam_form, now=NOW))

    assert result.status == ReportStatus.FAILED
    assert result.message == "Bearer token not configured"
    assert handler.requests == []
