"""Route registration for the portal server."""

from __future__ import annotations


class PortalServerRoutesMixin:
    """Route registration helper."""

    def _register_routes(self) -> None:
        # Health check
        self._app.router.add_get("/healthz", self._healthz)

        # Abuse report proxy + form helpers
        self._app.router.add_post("/api/report", self._api_report)
        self._app.router.add_get("/api/taxonomy", self._api_taxonomy)
        self._app.router.add_post("/api/targets/validate", self._api_validate_targets)
        self._app.router.add_get("/api/auth/config", self._api_auth_config)

        # Security bulletin proxy
        self._app.router.add_get("/api/security/updates", self._api_security_updates)
        self._app.router.add_get("/api/security/cve/{cve_id}", self._api_security_cve)
        self._app.router.add_get("/api/security/cvrf/{doc_id}", self._api_security_cvrf)

        # Server-rendered pages
        self._app.router.add_get("/", self._index)
        self._app.router.add_get("/security", self._security_index)
        self._app.router.add_get("/security/cve/{cve_id}", self._security_cve_page)
        self._app.router.add_get("/security/cvrf/{doc_id}", self._security_cvrf_page)
        self._app.router.add_get("/security/{tail:.*}", self._fallback_not_found)
