"""Cached read-only gateway to the security bulletin (CVRF) API."""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..cache import CacheManager
from ..utils.validators import is_valid_cve_id, is_valid_cvrf_id
from .models import UpdateQuery
from .query import apply_query

logger = logging.getLogger(__name__)

MSRC_CVRF_BASE = "https://api.msrc.microsoft.com/cvrf/v3.0"


class BulletinError(Exception):
    """Base exception for bulletin lookups."""

    status_code: int = 500


class InvalidIdentifierError(BulletinError):
    """CVE or CVRF identifier is malformed; no upstream call was made."""

    status_code = 400

    def __init__(self, kind: str, identifier: str, message: str):
        self.kind = kind
        self.identifier = identifier
        self.message = message
        super().__init__(f"Invalid {kind} identifier {identifier!r}: {message}")


class BulletinNotFoundError(BulletinError):
    status_code = 404

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"No bulletin data for {identifier}")


class UpstreamStatusError(BulletinError):
    """Upstream answered with a non-success status."""

    def __init__(self, status_code: int, url: str = ""):
        self.status_code = status_code
        self.url = url
        super().__init__(f"Upstream returned HTTP {status_code} for {url}")


class UpstreamTimeoutError(BulletinError):
    status_code = 504


class UpstreamUnavailableError(BulletinError):
    status_code = 502


class MSRCBulletinClient:
    """
    Listing, CVE and CVRF lookups against the bulletin API.

    Successful upstream bodies are cached per URL for ``cache_ttl`` seconds
    and served stale for a further ``stale_ttl`` seconds while a background
    refresh runs. Failures are never cached.
    """

    user_agent: str = "AbusePortal/1.0"

    def __init__(
        self,
        base_url: str = MSRC_CVRF_BASE,
        *,
        timeout: float = 30.0,
        cache_ttl: int = 3600,
        stale_ttl: int = 86400,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[CacheManager] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = float(timeout)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.cache = cache or CacheManager(
            ttl_seconds=cache_ttl,
            stale_seconds=stale_ttl,
            namespace="cvrf",
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        await self.cache.wait_for_refreshes()
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def _fetch_json(self, path: str) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        client = await self._get_client()
        try:
            response = await client.get(url)
        except httpx.TimeoutException as exc:
            logger.warning("Bulletin API timed out: %s", url)
            raise UpstreamTimeoutError(f"Timed out fetching {url}") from exc
        except httpx.TransportError as exc:
            logger.warning("Bulletin API unreachable: %s (%s)", url, exc)
            raise UpstreamUnavailableError(f"Could not reach {url}: {exc}") from exc

        if not response.is_success:
            logger.error(
                "Bulletin API error: status=%s url=%s body=%s",
                response.status_code,
                url,
                response.text[:500],
            )
            raise UpstreamStatusError(response.status_code, url)

        try:
            data = response.json()
        except ValueError as exc:
            logger.error("Bulletin API returned non-JSON body for %s", url)
            raise UpstreamUnavailableError(f"Invalid JSON from {url}") from exc
        if not isinstance(data, dict):
            return {"value": data}
        return data

    async def _cached_json(self, path: str) -> dict[str, Any]:
        return await self.cache.get_or_fetch(path, lambda: self._fetch_json(path))

    async def list_updates(self, query: Optional[UpdateQuery] = None) -> dict[str, Any]:
        """Fetch the bulletin listing and apply search/order/paging locally."""
        query = query or UpdateQuery()
        key = query.upstream_key
        path = f"/updates('{quote(key, safe='')}')" if key else "/updates"
        data = await self._cached_json(path)

        value = data.get("value")
        updates = [u for u in value if isinstance(u, dict)] if isinstance(value, list) else []
        page, total_count = apply_query(updates, query)
        return {**data, "value": page, "totalCount": total_count}

    async def get_by_cve(self, cve_id: str) -> dict[str, Any]:
        """All bulletins that address one CVE; the id is normalised to upper case."""
        if not is_valid_cve_id(cve_id):
            raise InvalidIdentifierError(
                "CVE",
                cve_id,
                "CVE ID must be in format CVE-yyyy-nnnnn (e.g., CVE-2024-12345)",
            )
        cve = cve_id.strip().upper()
        try:
            data = await self._cached_json(f"/updates('{cve}')")
        except UpstreamStatusError as e:
            if e.status_code == 404:
                raise BulletinNotFoundError(cve) from e
            raise

        value = data.get("value")
        updates = value if isinstance(value, list) else []
        return {"cve": cve, "updates": updates, "totalUpdates": len(updates), **data}

    async def get_cvrf(self, document_id: str) -> dict[str, Any]:
        """Full CVRF document for a monthly release such as ``2024-Jan``."""
        if not is_valid_cvrf_id(document_id):
            raise InvalidIdentifierError(
                "CVRF",
                document_id,
                "ID must be in format yyyy-mmm (e.g., 2024-Jan)",
            )
        year, month = document_id.strip().split("-", 1)
        doc_id = f"{year}-{month.capitalize()}"
        try:
            return await self._cached_json(f"/cvrf/{doc_id}")
        except UpstreamStatusError as e:
            if e.status_code == 404:
                raise BulletinNotFoundError(doc_id) from e
            raise
