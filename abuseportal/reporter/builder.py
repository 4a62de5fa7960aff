"""Build AbuseReport payloads from the report form."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from ..utils.validators import is_valid_ip, is_valid_port
from .base import (
    AbuseReport,
    FormValidationError,
    ThreatType,
    allowed_threat_types,
    parse_incident_type,
    parse_threat_type,
    requires_destination,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = "Please fill in all required fields"
INVALID_EMAIL_MESSAGE = "Reporter email must be a valid email address"
DESTINATION_REQUIRED_MESSAGE = "Destination IP and Port are required for {incident} incidents"
INVALID_DESTINATION_IP_MESSAGE = "Invalid destination IP address format"
INVALID_DESTINATION_PORT_MESSAGE = "Destination port must be between 1 and 65535"


@dataclass
class ReportForm:
    """Selections shared by every report in one bulk submission."""

    incident_type: str = ""
    threat_type: str = ""
    description: str = ""
    reporter_name: str = ""
    reporter_email: str = ""
    time_zone: str = "GMT"
    anonymize: bool = False
    test: bool = False
    destination_ip: str = ""
    destination_port: str = ""
    delay_ms: Optional[int] = None  # per-run override of the submitter default

    @property
    def needs_destination(self) -> bool:
        return requires_destination(self.incident_type, self.threat_type)


def validate_form(form: ReportForm) -> list[str]:
    """Return blocking form errors; an empty list means submission may start."""
    errors: list[str] = []
    required = (
        form.incident_type,
        form.threat_type,
        form.reporter_name,
        form.reporter_email,
        form.description,
    )
    if not all((value or "").strip() for value in required):
        return [REQUIRED_FIELDS_MESSAGE]

    incident = parse_incident_type(form.incident_type)
    threat = parse_threat_type(form.threat_type)
    if incident is None:
        errors.append(f"Unknown incident type: {form.incident_type}")
    if threat is None:
        errors.append(f"Unknown threat type: {form.threat_type}")
    if incident is not None and threat is not None and threat not in allowed_threat_types(incident):
        errors.append(f"Threat type '{threat.value}' is not allowed for {incident.value} incidents")
    if "@" not in form.reporter_email:
        errors.append(INVALID_EMAIL_MESSAGE)

    if form.needs_destination:
        dest_ip = (form.destination_ip or "").strip()
        dest_port = (form.destination_port or "").strip()
        if not dest_ip or not dest_port:
            errors.append(DESTINATION_REQUIRED_MESSAGE.format(incident=incident.value))
        else:
            if not is_valid_ip(dest_ip):
                errors.append(INVALID_DESTINATION_IP_MESSAGE)
            if not is_valid_port(dest_port):
                errors.append(INVALID_DESTINATION_PORT_MESSAGE)
    return errors


def ensure_form_ready(form: ReportForm) -> None:
    """Raise FormValidationError when the form cannot be submitted."""
    errors = validate_form(form)
    if errors:
        raise FormValidationError(errors)


def build_report(target: str, form: ReportForm, now: Optional[datetime] = None) -> AbuseReport:
    """Build the report for one bulk target line.

    ``date``/``time`` come from the wall clock (UTC) at build time; the
    selected time zone travels alongside as a label only.
    """
    now = now or datetime.now(timezone.utc)
    incident = parse_incident_type(form.incident_type) or form.incident_type
    threat = parse_threat_type(form.threat_type) or form.threat_type

    report = AbuseReport(
        date=now.strftime("%Y-%m-%d"),
        time=now.strftime("%H:%M:%S"),
        time_zone=form.time_zone,
        incident_type=incident,
        threat_type=threat,
        reporter_email=form.reporter_email,
        reporter_name=form.reporter_name,
        report_notes=form.description,
        anonymize_report=bool(form.anonymize),
        test_submission=bool(form.test),
    )

    if form.needs_destination:
        report.destination_ip = form.destination_ip.strip()
        report.destination_port = form.destination_port.strip()

    if threat == ThreatType.URL:
        report.source_url = target
    elif threat == ThreatType.IP_ADDRESS:
        report.source_ip = target
    elif threat == ThreatType.AZURE_SUBSCRIPTION:
        report.reported_subscription_id = target
    else:
        logger.debug("No dedicated field for threat type %r; adding target to notes", threat)
        report.report_notes += f"\nSuspected Target: {target}"

    return report
