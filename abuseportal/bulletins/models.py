"""Read-only views over security bulletin API JSON."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ..utils.helpers import coerce_int


def extract_value(value: Any) -> str:
    """Return the text of a CVRF field.

    CVRF fields arrive either as a bare string or wrapped as
    ``{"Value": ...}`` (possibly nested); both shapes yield the same text.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping) and "Value" in value:
        return extract_value(value.get("Value"))
    return str(value)


def parse_release_date(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 release date (``Z`` suffix allowed); None if unusable."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def cvss_severity(score: float) -> str:
    """Map a CVSS base score to its qualitative rating."""
    if score >= 9:
        return "Critical"
    if score >= 7:
        return "High"
    if score >= 4:
        return "Medium"
    return "Low"


def update_kind(title: Optional[str]) -> str:
    """Classify a bulletin as a monthly security update or Mariner release notes."""
    return "mariner" if "mariner" in (title or "").lower() else "security"


@dataclass(frozen=True)
class SecurityUpdate:
    """One entry of the bulletin listing."""

    id: str
    alias: str = ""
    document_title: str = ""
    severity: Optional[str] = None
    initial_release_date: str = ""
    current_release_date: str = ""
    cvrf_url: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SecurityUpdate":
        return cls(
            id=str(data.get("ID") or ""),
            alias=str(data.get("Alias") or ""),
            document_title=extract_value(data.get("DocumentTitle")),
            severity=data.get("Severity"),
            initial_release_date=str(data.get("InitialReleaseDate") or ""),
            current_release_date=str(data.get("CurrentReleaseDate") or ""),
            cvrf_url=str(data.get("CvrfUrl") or ""),
        )

    @property
    def kind(self) -> str:
        return update_kind(self.document_title)


# Query parameters accepted from callers of the listing endpoint
@dataclass
class UpdateQuery:
    """Filters, ordering and paging applied locally to the bulletin list."""

    year: Optional[str] = None
    cve: Optional[str] = None
    id: Optional[str] = None
    search: Optional[str] = None
    year_filter: Optional[str] = None
    order_by: Optional[str] = None
    order: Optional[str] = None
    skip: int = 0
    top: int = 50

    @property
    def upstream_key(self) -> Optional[str]:
        """Key the upstream API filters on itself (first of year, cve, id)."""
        return self.year or self.cve or self.id or None

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> "UpdateQuery":
        def _get(*names: str) -> Optional[str]:
            for name in names:
                value = params.get(name)
                if value:
                    return value
            return None

        return cls(
            year=_get("year"),
            cve=_get("cve"),
            id=_get("id"),
            search=_get("search"),
            year_filter=_get("yearFilter"),
            order_by=_get("orderby", "$orderby"),
            order=_get("order"),
            skip=coerce_int(_get("skip", "$skip"), default=0, min_value=0),
            top=coerce_int(_get("top", "$top"), default=50, min_value=0),
        )


class CVRFDocument:
    """Wrapper over a raw CVRF document with shape-agnostic accessors."""

    def __init__(self, data: Mapping[str, Any]):
        self.data = dict(data or {})

    def _tracking(self) -> Mapping[str, Any]:
        tracking = self.data.get("DocumentTracking")
        return tracking if isinstance(tracking, Mapping) else {}

    @property
    def title(self) -> str:
        return extract_value(self.data.get("DocumentTitle"))

    @property
    def document_type(self) -> str:
        return extract_value(self.data.get("DocumentType")) or "Security Update"

    @property
    def publisher(self) -> str:
        publisher = self.data.get("DocumentPublisher")
        if not isinstance(publisher, Mapping):
            return ""
        return extract_value(publisher.get("IssuingAuthority")) or extract_value(publisher.get("ContactDetails"))

    @property
    def tracking_id(self) -> str:
        ident = self._tracking().get("Identification")
        if not isinstance(ident, Mapping):
            return ""
        return extract_value(ident.get("ID"))

    @property
    def status(self) -> str:
        return extract_value(self._tracking().get("Status"))

    @property
    def version(self) -> str:
        return extract_value(self._tracking().get("Version"))

    @property
    def initial_release_date(self) -> str:
        return extract_value(self._tracking().get("InitialReleaseDate"))

    @property
    def current_release_date(self) -> str:
        return extract_value(self._tracking().get("CurrentReleaseDate"))

    @property
    def revision_history(self) -> list[dict[str, str]]:
        revisions = []
        for rev in self._tracking().get("RevisionHistory") or []:
            if not isinstance(rev, Mapping):
                continue
            revisions.append({
                "number": extract_value(rev.get("Number")),
                "date": extract_value(rev.get("Date")),
                "description": extract_value(rev.get("Description")),
            })
        return revisions

    @property
    def notes(self) -> list[dict[str, str]]:
        items = []
        for note in self.data.get("DocumentNotes") or []:
            if not isinstance(note, Mapping):
                continue
            text = extract_value(note.get("Value"))
            if text:
                items.append({"title": extract_value(note.get("Title")), "text": text})
        return items

    @property
    def vulnerabilities(self) -> list[dict[str, Any]]:
        """Vulnerabilities with titles/notes normalized and the top CVSS score."""
        vulns = []
        for vuln in self.data.get("Vulnerability") or []:
            if not isinstance(vuln, Mapping):
                continue
            scores = [
                s.get("BaseScore")
                for s in vuln.get("CVSSScoreSets") or []
                if isinstance(s, Mapping) and isinstance(s.get("BaseScore"), (int, float))
            ]
            base_score = max(scores) if scores else None
            vulns.append({
                "cve": extract_value(vuln.get("CVE")),
                "title": extract_value(vuln.get("Title")),
                "notes": [
                    extract_value(n.get("Value"))
                    for n in vuln.get("Notes") or []
                    if isinstance(n, Mapping) and extract_value(n.get("Value"))
                ],
                "remediations": [
                    {
                        "description": extract_value(r.get("Description")),
                        "url": extract_value(r.get("URL")),
                    }
                    for r in vuln.get("Remediations") or []
                    if isinstance(r, Mapping)
                ],
                "base_score": base_score,
                "severity": cvss_severity(base_score) if base_score is not None else None,
            })
        return vulns

    @property
    def products(self) -> list[dict[str, str]]:
        tree = self.data.get("ProductTree")
        if not isinstance(tree, Mapping):
            return []
        return [
            {"id": extract_value(p.get("ProductID")), "name": extract_value(p.get("Value"))}
            for p in tree.get("FullProductName") or []
            if isinstance(p, Mapping)
        ]

    def search_vulnerabilities(self, query: str) -> list[dict[str, Any]]:
        needle = (query or "").strip().lower()
        if not needle:
            return self.vulnerabilities
        return [
            v for v in self.vulnerabilities
            if needle in v["cve"].lower() or needle in v["title"].lower()
        ]

    def search_products(self, query: str) -> list[dict[str, str]]:
        needle = (query or "").strip().lower()
        if not needle:
            return self.products
        return [p for p in self.products if needle in p["name"].lower() or needle in p["id"].lower()]
