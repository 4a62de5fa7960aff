"""Base types for abuse reporting in the portal."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class IncidentType(str, Enum):
    """Category of abuse being reported."""

    BRUTE_FORCE = "Brute Force"
    DENIAL_OF_SERVICE = "Denial of Service"
    ILLEGAL = "Illegal/Violates the rights of others"
    MALWARE = "Malware"
    PHISHING = "Phishing"
    SPAM = "Spam"


class ThreatType(str, Enum):
    """Kind of indicator being reported."""

    IP_ADDRESS = "IP Address"
    URL = "URL"
    AZURE_SUBSCRIPTION = "Azure Subscription"


# Display order used by the report form
INCIDENT_TYPES: tuple[IncidentType, ...] = (
    IncidentType.BRUTE_FORCE,
    IncidentType.DENIAL_OF_SERVICE,
    IncidentType.MALWARE,
    IncidentType.ILLEGAL,
    IncidentType.PHISHING,
    IncidentType.SPAM,
)

THREAT_TYPES: tuple[ThreatType, ...] = (
    ThreatType.IP_ADDRESS,
    ThreatType.URL,
    ThreatType.AZURE_SUBSCRIPTION,
)

# Threat types accepted by the upstream API for each incident type
INCIDENT_THREAT_MAP: dict[IncidentType, tuple[ThreatType, ...]] = {
    IncidentType.BRUTE_FORCE: (ThreatType.IP_ADDRESS,),
    IncidentType.DENIAL_OF_SERVICE: (ThreatType.IP_ADDRESS,),
    IncidentType.MALWARE: (ThreatType.IP_ADDRESS, ThreatType.URL),
    IncidentType.PHISHING: (ThreatType.URL,),
    IncidentType.SPAM: (ThreatType.IP_ADDRESS,),
    IncidentType.ILLEGAL: (ThreatType.IP_ADDRESS, ThreatType.URL),
}

# Incident types that also report the attacked host
DESTINATION_INCIDENTS: frozenset[IncidentType] = frozenset(
    {IncidentType.BRUTE_FORCE, IncidentType.DENIAL_OF_SERVICE}
)

TIME_ZONES: tuple[str, ...] = (
    "GMT", "UTC", "PST", "PDT", "EST", "EDT", "CST", "CDT", "MST", "MDT", "IST", "CET", "JST",
)

THREAT_HINTS: dict[str, dict[str, str]] = {
    "default": {
        "label": "Target List (One per line)",
        "placeholder": "Paste IPs, URLs, or Subscription IDs based on threat type.",
    },
    ThreatType.IP_ADDRESS.value: {
        "label": "IP Addresses (One per line)",
        "placeholder": "192.168.1.5\n10.0.0.1\n203.0.113.42",
    },
    ThreatType.URL.value: {
        "label": "URLs (One per line)",
        "placeholder": "https://malicious-site.com/login\nhttp://phishing.example.com\nhttps://fake-portal.net",
    },
    ThreatType.AZURE_SUBSCRIPTION.value: {
        "label": "Azure Subscription IDs (One per line)",
        "placeholder": "00000000-0000-0000-0000-000000000000\n11111111-1111-1111-1111-111111111111",
    },
}


def parse_incident_type(value: object) -> Optional[IncidentType]:
    """Return the IncidentType for a display value, or None."""
    if isinstance(value, IncidentType):
        return value
    try:
        return IncidentType(str(value or "").strip())
    except ValueError:
        return None


def parse_threat_type(value: object) -> Optional[ThreatType]:
    """Return the ThreatType for a display value, or None."""
    if isinstance(value, ThreatType):
        return value
    try:
        return ThreatType(str(value or "").strip())
    except ValueError:
        return None


def allowed_threat_types(incident_type: object) -> tuple[ThreatType, ...]:
    """Threat types selectable for an incident type (empty when unknown)."""
    incident = parse_incident_type(incident_type)
    if incident is None:
        return ()
    return INCIDENT_THREAT_MAP.get(incident, ())


def coerce_threat_selection(incident_type: object, threat_type: object) -> Optional[ThreatType]:
    """Keep the current threat selection only if the incident type allows it."""
    threat = parse_threat_type(threat_type)
    if threat is None:
        return None
    return threat if threat in allowed_threat_types(incident_type) else None


def requires_destination(incident_type: object, threat_type: object) -> bool:
    """Brute force and DoS reports against an IP also carry the attacked host."""
    incident = parse_incident_type(incident_type)
    threat = parse_threat_type(threat_type)
    return incident in DESTINATION_INCIDENTS and threat == ThreatType.IP_ADDRESS


class ReportStatus(str, Enum):
    """Status of an abuse report submission."""

    SUBMITTED = "submitted"  # Upstream accepted the report
    FAILED = "failed"  # Upstream rejected it or the call failed


@dataclass
class AbuseReport:
    """One abuse report as accepted by the upstream reporting API."""

    date: str  # YYYY-MM-DD
    time: str  # HH:mm:ss
    time_zone: str
    incident_type: IncidentType
    threat_type: ThreatType
    reporter_email: str
    reporter_name: str
    report_notes: str
    anonymize_report: bool = False
    test_submission: bool = False

    # Exactly one of these is set, depending on threat_type
    source_ip: Optional[str] = None
    source_url: Optional[str] = None
    reported_subscription_id: Optional[str] = None

    # Brute Force / Denial of Service only
    destination_ip: Optional[str] = None
    destination_port: Optional[str] = None

    # Optional upstream fields the form never fills in
    attack_method: Optional[str] = None
    source: Optional[str] = None  # "CertPortalV2" | "ReportApi"
    severity: Optional[str] = None  # "High" | "Medium" | "Low"
    source_port: Optional[str] = None
    destination_url: Optional[str] = None
    reported_tenant_id: Optional[str] = None

    _FIELD_NAMES = {
        "time_zone": "timeZone",
        "incident_type": "incidentType",
        "threat_type": "threatType",
        "reporter_email": "reporterEmail",
        "reporter_name": "reporterName",
        "report_notes": "reportNotes",
        "anonymize_report": "anonymizeReport",
        "test_submission": "testSubmission",
        "source_ip": "sourceIp",
        "source_url": "sourceUrl",
        "reported_subscription_id": "reportedSubscriptionId",
        "destination_ip": "destinationIp",
        "destination_port": "destinationPort",
        "attack_method": "attackMethod",
        "source_port": "sourcePort",
        "destination_url": "destinationUrl",
        "reported_tenant_id": "reportedTenantId",
    }

    @property
    def target(self) -> Optional[str]:
        """The reported indicator, whichever field holds it."""
        return self.source_ip or self.source_url or self.reported_subscription_id

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the upstream JSON shape, omitting unset optional fields."""
        payload: dict[str, Any] = {}
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            payload[self._FIELD_NAMES.get(name, name)] = value
        return payload


@dataclass
class ReportResult:
    """Result of a report submission attempt."""

    platform: str
    status: ReportStatus
    status_code: Optional[int] = None
    message: Optional[str] = None
    response_data: Optional[dict] = None
    submitted_at: Optional[datetime] = None

    def __post_init__(self):
        if self.status == ReportStatus.SUBMITTED and not self.submitted_at:
            self.submitted_at = datetime.now()

    @property
    def ok(self) -> bool:
        return self.status == ReportStatus.SUBMITTED


class ReporterError(Exception):
    """Base exception for reporter errors."""

    pass


class APIError(ReporterError):
    """API returned an error."""

    def __init__(self, status_code: int, message: str, response_body: str = ""):
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(f"API error {status_code}: {message}")


class ConfigurationError(ReporterError):
    """Reporter not properly configured."""

    pass


class FormValidationError(ReporterError):
    """Report form is incomplete; nothing may be submitted."""

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid report form")


class UpstreamTimeoutError(ReporterError):
    """Upstream did not answer within the configured timeout."""

    pass
