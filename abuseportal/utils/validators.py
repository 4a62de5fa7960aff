"""Format checks for report targets and bulletin identifiers.

All predicates are pure: they never raise, and anything that is not a
string (or does not match) is simply reported as invalid.
"""

from __future__ import annotations

import ipaddress
import re
from urllib.parse import urlparse

_IPV4_RE = re.compile(r"^(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)(\.(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)){3}$", re.ASCII)
_DIGITS_RE = re.compile(r"[0-9]+")
_HEX_GROUP_RE = re.compile(r"^[0-9a-fA-F:.]+$")
_UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
_CVE_RE = re.compile(r"^CVE-\d{4}-\d{4,}$", re.IGNORECASE | re.ASCII)
_CVRF_ID_RE = re.compile(r"^\d{4}-(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)$", re.IGNORECASE | re.ASCII)

# Same checks, exported for the browser form (JavaScript RegExp syntax)
CLIENT_PATTERNS = {
    "ipv4": _IPV4_RE.pattern,
    "ipv6Chars": _HEX_GROUP_RE.pattern,
    "uuid": _UUID_RE.pattern,
    "port": r"^[0-9]+$",
}


def is_valid_ipv4(value: object) -> bool:
    return isinstance(value, str) and bool(_IPV4_RE.fullmatch(value))


def is_valid_ipv6(value: object) -> bool:
    # Plain colon-hex literals only: no zone ids, no brackets.
    if not isinstance(value, str) or ":" not in value or not _HEX_GROUP_RE.fullmatch(value):
        return False
    try:
        ipaddress.IPv6Address(value)
    except ValueError:
        return False
    return True


def is_valid_ip(value: object) -> bool:
    """Dotted-quad IPv4 or full/compressed IPv6."""
    return is_valid_ipv4(value) or is_valid_ipv6(value)


def is_valid_url(value: object) -> bool:
    """Absolute http(s) URL with a host."""
    if not isinstance(value, str) or not value or value != value.strip():
        return False
    if any(ch.isspace() for ch in value):
        return False
    try:
        parsed = urlparse(value)
        # Accessing .port raises on garbage like "http://host:99999"
        parsed.port
    except ValueError:
        return False
    return parsed.scheme.lower() in ("http", "https") and bool(parsed.hostname)


def is_valid_subscription_id(value: object) -> bool:
    """Canonical 8-4-4-4-12 hex UUID."""
    return isinstance(value, str) and bool(_UUID_RE.fullmatch(value))


def is_valid_port(value: object) -> bool:
    """Integer text in [1, 65535]."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        port = value
    elif isinstance(value, str):
        text = value.strip()
        if not _DIGITS_RE.fullmatch(text):
            return False
        port = int(text)
    else:
        return False
    return 1 <= port <= 65535


def is_valid_cve_id(value: object) -> bool:
    """CVE-YYYY-NNNN (four or more digits), case-insensitive."""
    return isinstance(value, str) and bool(_CVE_RE.fullmatch(value))


def is_valid_cvrf_id(value: object) -> bool:
    """CVRF document id such as 2024-Jan."""
    return isinstance(value, str) and bool(_CVRF_ID_RE.fullmatch(value))
