"""Composed portal server class."""

from __future__ import annotations

from .server_config import PortalConfig
from .server_core import PortalServerCoreMixin
from .server_pages import PortalServerPagesMixin
from .server_report_api import PortalServerReportApiMixin
from .server_request import PortalServerRequestMixin
from .server_routes import PortalServerRoutesMixin
from .server_security import PortalServerSecurityMixin
from .server_security_api import PortalServerSecurityApiMixin


class PortalServer(
    PortalServerCoreMixin,
    PortalServerSecurityMixin,
    PortalServerRequestMixin,
    PortalServerReportApiMixin,
    PortalServerSecurityApiMixin,
    PortalServerPagesMixin,
    PortalServerRoutesMixin,
):
    """Portal server composed from mixins."""


__all__ = ["PortalConfig", "PortalServer"]
