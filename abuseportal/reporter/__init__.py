"""Reporter modules for abuse report submission."""

from .base import (
    AbuseReport,
    APIError,
    ConfigurationError,
    FormValidationError,
    IncidentType,
    ReporterError,
    ReportResult,
    ReportStatus,
    ThreatType,
    UpstreamTimeoutError,
    allowed_threat_types,
    requires_destination,
)
from .builder import ReportForm, build_report, ensure_form_ready, validate_form
from .msrc import BaseHTTPReporter, MSRCAbuseReporter, PortalReportClient
from .submission import (
    BulkSubmitter,
    InvalidEntryPolicy,
    LogOutcome,
    SubmissionLog,
    SubmissionLogEntry,
    SubmissionState,
    SubmissionSummary,
)
from .targets import ValidationResult, split_targets, validate_entry, validate_targets

__all__ = [
    # Base types
    "AbuseReport",
    "IncidentType",
    "ThreatType",
    "ReportResult",
    "ReportStatus",
    "allowed_threat_types",
    "requires_destination",
    # Errors
    "ReporterError",
    "APIError",
    "ConfigurationError",
    "FormValidationError",
    "UpstreamTimeoutError",
    # Form + targets
    "ReportForm",
    "build_report",
    "ensure_form_ready",
    "validate_form",
    "ValidationResult",
    "split_targets",
    "validate_entry",
    "validate_targets",
    # Gateways
    "BaseHTTPReporter",
    "MSRCAbuseReporter",
    "PortalReportClient",
    # Bulk submission
    "BulkSubmitter",
    "InvalidEntryPolicy",
    "LogOutcome",
    "SubmissionLog",
    "SubmissionLogEntry",
    "SubmissionState",
    "SubmissionSummary",
]
