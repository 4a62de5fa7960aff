"""Security bulletin (CVRF) lookups."""

from .client import (
    MSRC_CVRF_BASE,
    BulletinError,
    BulletinNotFoundError,
    InvalidIdentifierError,
    MSRCBulletinClient,
    UpstreamStatusError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from .models import CVRFDocument, SecurityUpdate, UpdateQuery, cvss_severity, extract_value, update_kind
from .query import apply_query

__all__ = [
    "MSRC_CVRF_BASE",
    "MSRCBulletinClient",
    # Errors
    "BulletinError",
    "BulletinNotFoundError",
    "InvalidIdentifierError",
    "UpstreamStatusError",
    "UpstreamTimeoutError",
    "UpstreamUnavailableError",
    # Models
    "CVRFDocument",
    "SecurityUpdate",
    "UpdateQuery",
    "apply_query",
    "cvss_severity",
    "extract_value",
    "update_kind",
]
