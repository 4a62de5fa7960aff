"""Bulk target list parsing and live validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from ..utils.validators import is_valid_ip, is_valid_subscription_id, is_valid_url
from .base import ThreatType, parse_threat_type

_VALIDATORS: dict[ThreatType, Callable[[object], bool]] = {
    ThreatType.IP_ADDRESS: is_valid_ip,
    ThreatType.URL: is_valid_url,
    ThreatType.AZURE_SUBSCRIPTION: is_valid_subscription_id,
}


@dataclass
class ValidationResult:
    """Counts and entries for the current bulk text / threat type."""

    valid_count: int = 0
    invalid_count: int = 0
    entries: list[str] = field(default_factory=list)
    invalid_entries: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.entries)

    @property
    def valid_entries(self) -> list[str]:
        invalid = set(self.invalid_entries)
        return [e for e in self.entries if e not in invalid]

    def to_dict(self) -> dict:
        return {
            "valid": self.valid_count,
            "invalid": self.invalid_count,
            "entries": list(self.entries),
            "invalidEntries": list(self.invalid_entries),
        }


def split_targets(raw: Optional[str]) -> list[str]:
    """Split raw text into trimmed, non-empty lines, keeping order."""
    if not raw:
        return []
    return [line.strip() for line in raw.split("\n") if line.strip()]


def validate_entry(entry: object, threat_type: object) -> bool:
    """Check one target against the format expected for the threat type."""
    if not isinstance(entry, str) or not entry.strip():
        return False
    threat = parse_threat_type(threat_type)
    validator = _VALIDATORS.get(threat) if threat else None
    if validator is None:
        return False
    return validator(entry)


def validate_targets(raw: Optional[str], threat_type: object) -> ValidationResult:
    """Classify every non-empty line of ``raw`` for the selected threat type.

    Invalid lines stay in ``entries`` so they can be flagged to the user;
    they are additionally listed in ``invalid_entries``. With no threat type
    selected, or blank text, the result is empty.
    """
    threat = parse_threat_type(threat_type)
    if threat is None or not (raw or "").strip():
        return ValidationResult()

    result = ValidationResult()
    for entry in split_targets(raw):
        result.entries.append(entry)
        if validate_entry(entry, threat):
            result.valid_count += 1
        else:
            result.invalid_count += 1
            result.invalid_entries.append(entry)
    return result
