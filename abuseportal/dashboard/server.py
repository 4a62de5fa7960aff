"""Public import surface for the portal web server."""

from __future__ import annotations

from .rate_limit import InMemoryRateLimitStore, RateLimitDecision, RateLimitStore
from .server_app import PortalConfig, PortalServer

__all__ = [
    "InMemoryRateLimitStore",
    "PortalConfig",
    "PortalServer",
    "RateLimitDecision",
    "RateLimitStore",
]
