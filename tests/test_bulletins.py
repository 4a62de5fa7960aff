"""Tests for bulletin models, local query processing and the cached gateway."""

from __future__ import annotations

import httpx
import pytest

from abuseportal.bulletins.client import (
    BulletinNotFoundError,
    InvalidIdentifierError,
    MSRCBulletinClient,
    UpstreamStatusError,
    UpstreamTimeoutError,
)
from abuseportal.bulletins.models import (
    CVRFDocument,
    SecurityUpdate,
    UpdateQuery,
    cvss_severity,
    extract_value,
    update_kind,
)
from abuseportal.bulletins.query import apply_query, parse_order

BASE = "https://cvrf.test/v3.0"

UPDATES = [
    {"ID": "2024-Jan", "Alias": "2024-Jan", "DocumentTitle": "January 2024 Security Updates",
     "CurrentReleaseDate": "2024-01-09T08:00:00Z", "InitialReleaseDate": "2024-01-09T08:00:00Z"},
    {"ID": "2024-Feb", "Alias": "2024-Feb", "DocumentTitle": "February 2024 Security Updates",
     "CurrentReleaseDate": "2024-02-13T08:00:00Z", "InitialReleaseDate": "2024-02-13T08:00:00Z"},
    {"ID": "2023-Dec", "Alias": "2023-Dec", "DocumentTitle": "CBL Mariner December 2023",
     "CurrentReleaseDate": "2023-12-12T08:00:00Z", "InitialReleaseDate": "2023-12-12T08:00:00Z"},
    {"ID": "2023-Nov", "Alias": "2023-Nov", "DocumentTitle": "November 2023 Security Updates"},
]


def test_search_is_case_insensitive_and_counts_before_paging():
    page, total = apply_query(UPDATES, UpdateQuery(search="SECURITY", top=1))
    assert total == 3
    assert [u["ID"] for u in page] == ["2024-Feb"]


def test_year_filter_matches_id_prefix():
    page, total = apply_query(UPDATES, UpdateQuery(year_filter="2023"))
    assert total == 2
    assert {u["ID"] for u in page} == {"2023-Dec", "2023-Nov"}


def test_default_sort_is_newest_first_with_missing_dates_last():
    page, _ = apply_query(UPDATES, UpdateQuery())
    assert [u["ID"] for u in page] == ["2024-Feb", "2024-Jan", "2023-Dec", "2023-Nov"]


def test_ascending_date_sort_still_puts_missing_last():
    page, _ = apply_query(UPDATES, UpdateQuery(order_by="CurrentReleaseDate asc"))
    assert [u["ID"] for u in page] == ["2023-Dec", "2024-Jan", "2024-Feb", "2023-Nov"]


def test_string_sort_and_skip():
    page, total = apply_query(UPDATES, UpdateQuery(order_by="ID", order="asc", skip=1, top=2))
    assert total == 4
    assert [u["ID"] for u in page] == ["2023-Nov", "2024-Feb"]


def test_parse_order_variants():
    assert parse_order(UpdateQuery()) == ("CurrentReleaseDate", True)
    assert parse_order(UpdateQuery(order_by="ID asc")) == ("ID", False)
    assert parse_order(UpdateQuery(order_by="ID", order="asc")) == ("ID", False)
    assert parse_order(UpdateQuery(order_by="ID")) == ("ID", True)


def test_update_query_from_params_accepts_odata_aliases():
    query = UpdateQuery.from_params({"$orderby": "ID asc", "$top": "5", "$skip": "10", "yearFilter": "2024"})
    assert query.order_by == "ID asc"
    assert query.top == 5
    assert query.skip == 10
    assert query.year_filter == "2024"

    defaults = UpdateQuery.from_params({"top": "abc"})
    assert defaults.top == 50 and defaults.skip == 0


def test_upstream_key_prefers_year_then_cve_then_id():
    assert UpdateQuery(year="2024", cve="CVE-2024-1234").upstream_key == "2024"
    assert UpdateQuery(cve="CVE-2024-1234", id="x").upstream_key == "CVE-2024-1234"
    assert UpdateQuery().upstream_key is None


def test_value_helpers():
    assert extract_value({"Value": "Title"}) == "Title"
    assert extract_value({"Value": {"Value": "Nested"}}) == "Nested"
    assert extract_value(None) == ""
    assert cvss_severity(9.8) == "Critical"
    assert cvss_severity(7.0) == "High"
    assert cvss_severity(4.0) == "Medium"
    assert cvss_severity(3.9) == "Low"
    assert update_kind("CBL Mariner December 2023") == "mariner"
    assert update_kind("January 2024 Security Updates") == "security"
    assert SecurityUpdate.from_dict(UPDATES[2]).kind == "mariner"


def test_cvrf_document_accessors():
    doc = CVRFDocument({
        "DocumentTitle": {"Value": "January 2024 Security Updates"},
        "DocumentTracking": {
            "Identification": {"ID": {"Value": "2024-Jan"}},
            "Status": "Final",
            "Version": "1.0",
            "RevisionHistory": [{"Number": "1.0", "Date": "2024-01-09T08:00:00", "Description": {"Value": "Initial"}}],
        },
        "DocumentNotes": [{"Title": "Release Notes", "Value": "Notes here"}, {"Title": "Empty", "Value": ""}],
        "Vulnerability": [
            {"CVE": "CVE-2024-0001", "Title": {"Value": "Remote Code Execution"},
             "CVSSScoreSets": [{"BaseScore": 8.8}, {"BaseScore": 9.1}]},
            {"CVE": "CVE-2024-0002", "Title": {"Value": "Information Disclosure"}},
        ],
        "ProductTree": {"FullProductName": [{"ProductID": "11568", "Value": "Windows 11"}]},
    })
    assert doc.title == "January 2024 Security Updates"
    assert doc.document_type == "Security Update"
    assert doc.tracking_id == "2024-Jan"
    assert doc.revision_history == [{"number": "1.0", "date": "2024-01-09T08:00:00", "description": "Initial"}]
    assert doc.notes == [{"title": "Release Notes", "text": "Notes here"}]
    vulns = doc.vulnerabilities
    assert vulns[0]["base_score"] == 9.1 and vulns[0]["severity"] == "Critical"
    assert vulns[1]["severity"] is None
    assert [v["cve"] for v in doc.search_vulnerabilities("disclosure")] == ["CVE-2024-0002"]
    assert doc.search_products("windows") == [{"id": "11568", "name": "Windows 11"}]


def _client(handler) -> MSRCBulletinClient:
    return MSRCBulletinClient(BASE, transport=handler.transport)


@pytest.mark.asyncio
async def test_list_updates_applies_query_locally(recorder):
    handler = recorder(lambda request: httpx.Response(200, json={"@odata.context": "ctx", "value": UPDATES}))
    client = _client(handler)

    payload = await client.list_updates(UpdateQuery(year_filter="2024", top=1))

    assert str(handler.requests[0].url) == f"{BASE}/updates"
    assert payload["@odata.context"] == "ctx"
    assert payload["totalCount"] == 2
    assert [u["ID"] for u in payload["value"]] == ["2024-Feb"]
    await client.close()


@pytest.mark.asyncio
async def test_list_updates_keyed_lookup_is_url_encoded(recorder):
    handler = recorder(lambda request: httpx.Response(200, json={"value": []}))
    client = _client(handler)

    await client.list_updates(UpdateQuery(year="2024", id="ignored"))

    assert handler.requests[0].url.raw_path.decode() == "/v3.0/updates('2024')"
    await client.close()


@pytest.mark.asyncio
async def test_listing_is_cached_within_ttl(recorder):
    handler = recorder(lambda request: httpx.Response(200, json={"value": UPDATES}))
    client = _client(handler)

    await client.list_updates()
    await client.list_updates(UpdateQuery(search="mariner"))

    assert len(handler.requests) == 1
    await client.close()


@pytest.mark.asyncio
async def test_upstream_error_status_raises(recorder):
    handler = recorder(lambda request: httpx.Response(503, text="down"))
    client = _client(handler)

    with pytest.raises(UpstreamStatusError) as exc:
        await client.list_updates()
    assert exc.value.status_code == 503
    await client.close()


@pytest.mark.asyncio
async def test_timeout_raises_bulletin_timeout():
    def raise_timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    client = MSRCBulletinClient(BASE, transport=httpx.MockTransport(raise_timeout))
    with pytest.raises(UpstreamTimeoutError):
        await client.get_cvrf("2024-Jan")
    await client.close()


@pytest.mark.asyncio
async def test_get_by_cve_normalises_and_reshapes(recorder):
    handler = recorder(lambda request: httpx.Response(200, json={"@odata.context": "ctx", "value": UPDATES[:2]}))
    client = _client(handler)

    payload = await client.get_by_cve("cve-2024-21307")

    assert handler.requests[0].url.raw_path.decode() == "/v3.0/updates('CVE-2024-21307')"
    assert payload["cve"] == "CVE-2024-21307"
    assert payload["totalUpdates"] == 2
    assert payload["updates"] == UPDATES[:2]
    assert payload["@odata.context"] == "ctx"
    await client.close()


@pytest.mark.asyncio
async def test_invalid_identifiers_never_reach_upstream(recorder):
    handler = recorder(lambda request: httpx.Response(200, json={}))
    client = _client(handler)

    with pytest.raises(InvalidIdentifierError):
        await client.get_by_cve("CVE-24-1")
    with pytest.raises(InvalidIdentifierError):
        await client.get_cvrf("2024-January")
    assert handler.requests == []
    await client.close()


@pytest.mark.asyncio
async def test_not_found_maps_to_bulletin_not_found(recorder):
    handler = recorder(lambda request: httpx.Response(404, json={}))
    client = _client(handler)

    with pytest.raises(BulletinNotFoundError) as exc:
        await client.get_by_cve("CVE-2099-99999")
    assert exc.value.identifier == "CVE-2099-99999"

    with pytest.raises(BulletinNotFoundError):
        await client.get_cvrf("2099-jan")
    assert str(handler.requests[-1].url) == f"{BASE}/cvrf/2099-Jan"
    await client.close()
