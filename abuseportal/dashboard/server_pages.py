"""Server-rendered HTML pages (report form and security bulletins)."""

from __future__ import annotations

import json
import logging
from urllib.parse import quote

from aiohttp import web

from ..bulletins.client import BulletinError, BulletinNotFoundError, InvalidIdentifierError
from ..bulletins.models import CVRFDocument, SecurityUpdate, UpdateQuery, cvss_severity
from ..reporter.base import DESTINATION_INCIDENTS, INCIDENT_THREAT_MAP, INCIDENT_TYPES, THREAT_HINTS, TIME_ZONES
from ..reporter.builder import (
    DESTINATION_REQUIRED_MESSAGE,
    INVALID_DESTINATION_IP_MESSAGE,
    INVALID_DESTINATION_PORT_MESSAGE,
    INVALID_EMAIL_MESSAGE,
    REQUIRED_FIELDS_MESSAGE,
)
from ..utils.validators import CLIENT_PATTERNS, is_valid_cve_id
from .server_helpers import (
    _error_panel,
    _escape,
    _format_date,
    _select_options,
    _severity_badge,
    _year_options,
)
from .server_layout import _layout

logger = logging.getLogger(__name__)

LISTING_PAGE_SIZE = 100
UPDATE_KINDS = (("all", "All updates"), ("security", "Security updates"), ("mariner", "Mariner"))

FORM_MESSAGES = {
    "required": REQUIRED_FIELDS_MESSAGE,
    "email": INVALID_EMAIL_MESSAGE,
    "token": "A bearer token is required to submit reports",
    "destinationRequired": DESTINATION_REQUIRED_MESSAGE,
    "destinationIp": INVALID_DESTINATION_IP_MESSAGE,
    "destinationPort": INVALID_DESTINATION_PORT_MESSAGE,
    "rateLimited": "Rate limit reached; remaining submissions may fail. Try a longer delay.",
}

_REPORT_FORM_SCRIPT = """
const taxonomy = $TAXONOMY;
const form = document.getElementById('report-form');
const f = form.elements;
const incident = f.incidentType;
const threat = f.threatType;
const logBox = document.getElementById('log');
const destBox = document.getElementById('destination');
const notice = document.getElementById('notice');
const progress = document.getElementById('progress');
const progressLabel = document.getElementById('progress-label');
const submitBtn = document.getElementById('submit-btn');
const cancelBtn = document.getElementById('cancel-btn');
const clearBtn = document.getElementById('clear-btn');
const patterns = {};
for (const [name, source] of Object.entries(taxonomy.patterns)) patterns[name] = new RegExp(source);
let running = false;
let cancelled = false;

function isIPv4(v) { return patterns.ipv4.test(v); }
function isIPv6(v) {
  if (!v.includes(':') || !patterns.ipv6Chars.test(v)) return false;
  try { new URL('http://[' + v + ']/'); return true; } catch (e) { return false; }
}
function isIP(v) { return isIPv4(v) || isIPv6(v); }
function isURL(v) {
  if (!v || v !== v.trim() || /\\s/.test(v)) return false;
  try {
    const u = new URL(v);
    return (u.protocol === 'http:' || u.protocol === 'https:') && u.hostname !== '';
  } catch (e) { return false; }
}
function isPort(v) {
  const t = v.trim();
  if (!patterns.port.test(t)) return false;
  const n = Number(t);
  return n >= 1 && n <= 65535;
}
const entryChecks = {'IP Address': isIP, 'URL': isURL, 'Azure Subscription': v => patterns.uuid.test(v)};
const targetField = {'IP Address': 'sourceIp', 'URL': 'sourceUrl', 'Azure Subscription': 'reportedSubscriptionId'};

function classify(text) {
  const check = entryChecks[threat.value];
  if (!check) return {entries: [], invalid: []};
  const entries = text.split('\\n').map(s => s.trim()).filter(Boolean);
  return {entries, invalid: entries.filter(e => !check(e))};
}
function showCounts() {
  const c = classify(f.targets.value);
  const valid = c.entries.length - c.invalid.length;
  document.getElementById('counts').textContent = c.entries.length
    ? `${valid} valid, ${c.invalid.length} invalid` + (c.invalid.length ? ' (invalid entries will be skipped)' : '')
    : '';
}
function needsDestination() {
  return taxonomy.destinationIncidents.includes(incident.value) && threat.value === 'IP Address';
}
function refreshDestination() {
  const needed = needsDestination();
  destBox.hidden = !needed;
  f.destinationIp.required = needed;
  f.destinationPort.required = needed;
}
function refreshHint() {
  const hint = taxonomy.hints[threat.value] || taxonomy.hints['default'];
  document.getElementById('hint-label').textContent = hint.label;
  f.targets.placeholder = hint.placeholder;
}
function refreshThreats() {
  const allowed = taxonomy.threatMap[incident.value] || [];
  const current = threat.value;
  threat.innerHTML = '<option value="">Select threat type</option>' +
    allowed.map(t => `<option>${t}</option>`).join('');
  threat.value = allowed.includes(current) ? current : '';
  refreshDestination();
  refreshHint();
  showCounts();
}
function formErrors(entries) {
  const m = taxonomy.messages;
  const required = [incident.value, threat.value, f.reporterName.value, f.reporterEmail.value, f.reportNotes.value];
  if (required.some(v => !v.trim()) || entries.length === 0) return [m.required];
  const errors = [];
  if (!f.reporterEmail.value.includes('@')) errors.push(m.email);
  if (!f.token.value.trim()) errors.push(m.token);
  if (needsDestination()) {
    const ip = f.destinationIp.value.trim();
    const port = f.destinationPort.value.trim();
    if (!ip || !port) errors.push(m.destinationRequired.replace('{incident}', incident.value));
    else {
      if (!isIP(ip)) errors.push(m.destinationIp);
      if (!isPort(port)) errors.push(m.destinationPort);
    }
  }
  return errors;
}
function notify(message) { notice.textContent = message; notice.hidden = !message; }
function log(line) { logBox.textContent += line + '\\n'; }
function setProgress(done, total) {
  progress.value = total ? Math.round(100 * done / total) : 0;
  progressLabel.textContent = `${progress.value}%`;
}
function setRunning(on) {
  running = on;
  submitBtn.disabled = on;
  cancelBtn.disabled = !on;
  clearBtn.disabled = on;
}
function sleep(ms) { return new Promise(resolve => setTimeout(resolve, ms)); }
async function errorDetail(res) {
  const text = await res.text();
  try { return JSON.stringify(JSON.parse(text)); } catch (e) { return text || `HTTP ${res.status}`; }
}
async function sendReport(item) {
  const now = new Date().toISOString();
  const body = {date: now.slice(0, 10), time: now.slice(11, 19), timeZone: f.timeZone.value,
    incidentType: incident.value, threatType: threat.value, reporterEmail: f.reporterEmail.value.trim(),
    reporterName: f.reporterName.value.trim(), reportNotes: f.reportNotes.value,
    anonymizeReport: f.anonymize.checked, testSubmission: f.test.checked};
  body[targetField[threat.value]] = item;
  if (needsDestination()) {
    body.destinationIp = f.destinationIp.value.trim();
    body.destinationPort = f.destinationPort.value.trim();
  }
  try {
    const res = await fetch('/api/report', {method: 'POST', headers: {'Content-Type': 'application/json',
      'Authorization': 'Bearer ' + f.token.value.trim()}, body: JSON.stringify(body)});
    if (res.ok) { log(`[SUCCESS] Submitted: ${item}`); return true; }
    if (res.status === 429) notify(taxonomy.messages.rateLimited);
    log(`[ERROR] Failed ${item}: ${await errorDetail(res)}`);
  } catch (e) {
    log(`[ERROR] Network/Client Error ${item}: ${e.message}`);
  }
  return false;
}

incident.addEventListener('change', refreshThreats);
threat.addEventListener('change', () => { refreshDestination(); refreshHint(); showCounts(); });
f.targets.addEventListener('input', showCounts);
cancelBtn.addEventListener('click', () => { cancelled = true; });
clearBtn.addEventListener('click', () => {
  if (running) return;
  logBox.textContent = '';
  setProgress(0, 0);
});
form.addEventListener('submit', async (ev) => {
  ev.preventDefault();
  if (running) return;
  const c = classify(f.targets.value);
  const errors = formErrors(c.entries);
  if (errors.length) { notify(errors.join(' ')); return; }
  notify('');
  const delayText = f.delayMs.value.trim();
  const delay = delayText === '' ? taxonomy.delayMs : Math.max(0, parseInt(delayText, 10) || 0);
  const items = c.entries;
  const check = entryChecks[threat.value];
  cancelled = false;
  setRunning(true);
  logBox.textContent = '';
  setProgress(0, items.length);
  let ok = 0;
  let processed = 0;
  for (let i = 0; i < items.length; i++) {
    if (cancelled) break;
    const item = items[i];
    if (check(item)) {
      if (await sendReport(item)) ok++;
    } else {
      log(`[SKIPPED] Invalid ${threat.value} format, not submitted: ${item}`);
    }
    processed = i + 1;
    setProgress(processed, items.length);
    if (i < items.length - 1) {
      if (cancelled) break;
      log(`[INFO] Waiting ${delay}ms before next submission... (${i + 1}/${items.length})`);
      await sleep(delay);
    }
  }
  if (cancelled) {
    log(`[CANCELLED] Cancelled after ${processed} of ${items.length} items. ${items.length - processed} not submitted.`);
  } else {
    log(`[COMPLETE] Finished processing ${items.length} items. Success: ${ok}`);
  }
  setRunning(false);
});
refreshThreats();
"""


class PortalServerPagesMixin:
    """HTML handlers."""

    def _not_found_page(self, message: str = "The page you are looking for does not exist.") -> web.Response:
        body = (
            '<div class="panel"><h1>Not found</h1>'
            f"<p>{_escape(message)}</p>"
            '<p><a href="/security">Back to Security Updates</a></p></div>'
        )
        return web.Response(text=_layout(title="Not found", body=body), content_type="text/html", status=404)

    def _error_page(self, title: str, message: str, *, status: int) -> web.Response:
        body = f"<h1>{_escape(title)}</h1>" + _error_panel(message)
        return web.Response(text=_layout(title=title, body=body), content_type="text/html", status=status)

    async def _index(self, request: web.Request) -> web.Response:
        time_zones = list(self.config.time_zones or TIME_ZONES)
        taxonomy = {
            "threatMap": {i.value: [t.value for t in ts] for i, ts in INCIDENT_THREAT_MAP.items()},
            "destinationIncidents": [i.value for i in INCIDENT_TYPES if i in DESTINATION_INCIDENTS],
            "delayMs": self.config.submission_delay_ms,
            "hints": THREAT_HINTS,
            "patterns": CLIENT_PATTERNS,
            "messages": FORM_MESSAGES,
        }
        # Embedded in a <script>; keep "</" from closing the tag.
        taxonomy_js = json.dumps(taxonomy).replace("</", "<\\/")
        hint = THREAT_HINTS["default"]
        incident_options = _select_options(((i.value, i.value) for i in INCIDENT_TYPES), "")
        tz_options = _select_options(((tz, tz) for tz in time_zones), time_zones[0] if time_zones else "GMT")
        hint_label = _escape(hint["label"])
        hint_placeholder = _escape(hint["placeholder"])
        delay_ms = int(self.config.submission_delay_ms)
        script = _REPORT_FORM_SCRIPT.replace("$TAXONOMY", taxonomy_js)
        body = f"""
<h1>Report Abuse</h1>
<form id="report-form" class="panel" novalidate>
  <p><label>Incident type <select name="incidentType" required>
    <option value="">Select incident type</option>
    {incident_options}
  </select></label>
  <label>Threat type <select name="threatType" required><option value="">Select threat type</option></select></label>
  <label>Time zone <select name="timeZone">{tz_options}</select></label></p>
  <p id="destination" hidden>
    <label>Destination IP <input name="destinationIp"></label>
    <label>Destination port <input name="destinationPort" inputmode="numeric"></label>
  </p>
  <p><label>Name <input name="reporterName" required></label>
  <label>Email <input name="reporterEmail" type="email" required></label>
  <label>Bearer token <input name="token" type="password" required></label></p>
  <p><label>Description<br><textarea name="reportNotes" rows="4" cols="80" required></textarea></label></p>
  <p><label><span id="hint-label">{hint_label}</span><br>
    <textarea name="targets" rows="8" cols="80" placeholder="{hint_placeholder}" required></textarea></label></p>
  <p class="muted" id="counts"></p>
  <p><label><input type="checkbox" name="anonymize"> Anonymize report</label>
  <label><input type="checkbox" name="test"> Test submission</label>
  <label>Delay between submissions (ms) <input name="delayMs" type="number" min="0" step="100" value="{delay_ms}"></label></p>
  <p class="panel panel-error" id="notice" hidden></p>
  <p><button type="submit" id="submit-btn">Submit reports</button>
  <button type="button" id="cancel-btn" disabled>Cancel</button>
  <button type="button" id="clear-btn">Clear logs</button></p>
  <p><progress id="progress" max="100" value="0"></progress> <span id="progress-label">0%</span></p>
</form>
<pre class="panel" id="log"></pre>
<script>{script}</script>
"""
        return web.Response(text=_layout(title="Report Abuse", body=body, active="/"), content_type="text/html")

    async def _security_index(self, request: web.Request) -> web.Response:
        cve = (request.query.get("cve") or "").strip()
        if cve:
            if is_valid_cve_id(cve):
                raise web.HTTPFound(f"/security/cve/{quote(cve.upper())}")
            return self._error_page(
                "Invalid CVE ID",
                "Invalid CVE ID format. Please use format: CVE-YYYY-NNNNN",
                status=400,
            )

        year = (request.query.get("year") or "").strip()
        search = (request.query.get("q") or "").strip()
        kind = (request.query.get("type") or "all").strip().lower()
        query = UpdateQuery(search=search or None, year_filter=year or None, top=LISTING_PAGE_SIZE)

        try:
            payload = await self.bulletin_client.list_updates(query)
        except BulletinError as exc:
            logger.warning("Security updates page failed: %s", exc)
            return self._error_page(
                "Security Updates",
                "Failed to fetch security updates. Please try again later.",
                status=502,
            )

        updates = [SecurityUpdate.from_dict(u) for u in payload.get("value") or []]
        matching = payload.get("totalCount", len(updates))
        shown = [u for u in updates if kind == "all" or u.kind == kind]

        rows = "".join(
            "<tr>"
            f'<td><a href="/security/cvrf/{quote(u.id)}">{_escape(u.id)}</a></td>'
            f"<td>{_escape(u.document_title)}</td>"
            f'<td><span class="badge kind-{u.kind}">{"Mariner" if u.kind == "mariner" else "Security"}</span></td>'
            f"<td>{_format_date(u.initial_release_date)}</td>"
            f"<td>{_format_date(u.current_release_date)}</td>"
            "</tr>"
            for u in shown
        )
        if not rows:
            rows = '<tr><td colspan="5">No updates match the current filters. <a href="/security">Clear all filters</a></td></tr>'

        body = f"""
<h1>Security Updates</h1>
<div class="panel">
  <form class="filters" method="get" action="/security">
    <input name="q" value="{_escape(search)}" placeholder="Search by title, ID or alias">
    <select name="year">{_year_options(year)}</select>
    <select name="type">{_select_options(UPDATE_KINDS, kind)}</select>
    <button type="submit">Filter</button>
  </form>
  <form class="filters" method="get" action="/security">
    <input name="cve" placeholder="CVE-2024-12345"><button type="submit">Look up CVE</button>
  </form>
</div>
<p class="muted">Showing {len(shown)} of {len(updates)} updates ({matching} matching)</p>
<table class="panel">
  <thead><tr><th>ID</th><th>Title</th><th>Type</th><th>Initial release</th><th>Last updated</th></tr></thead>
  <tbody>{rows}</tbody>
</table>
"""
        return web.Response(text=_layout(title="Security Updates", body=body), content_type="text/html")

    async def _security_cve_page(self, request: web.Request) -> web.Response:
        cve_id = request.match_info.get("cve_id", "")
        try:
            payload = await self.bulletin_client.get_by_cve(cve_id)
        except InvalidIdentifierError:
            return self._error_page(
                "Invalid CVE ID",
                "Invalid CVE ID format. Please use format: CVE-YYYY-NNNNN",
                status=400,
            )
        except BulletinNotFoundError:
            return self._not_found_page(f"No Microsoft security updates found for {cve_id.upper()}")
        except BulletinError as exc:
            logger.warning("CVE page failed for %s: %s", cve_id, exc)
            return self._error_page("CVE lookup", "Failed to fetch CVE data", status=502)

        updates = [SecurityUpdate.from_dict(u) for u in payload.get("updates") or [] if isinstance(u, dict)]
        items = "".join(
            '<div class="panel">'
            f'<h3><a href="/security/cvrf/{quote(u.id)}">{_escape(u.document_title or u.id)}</a> '
            f"{_severity_badge(u.severity)}</h3>"
            f'<p class="muted">Released {_format_date(u.initial_release_date)}, '
            f"updated {_format_date(u.current_release_date)}</p>"
            "</div>"
            for u in updates
        )
        body = (
            f"<h1>{_escape(payload.get('cve'))}</h1>"
            f'<p class="muted">{payload.get("totalUpdates", 0)} related security update(s)</p>'
            + (items or "<p>No related updates.</p>")
        )
        return web.Response(text=_layout(title=str(payload.get("cve")), body=body), content_type="text/html")

    async def _security_cvrf_page(self, request: web.Request) -> web.Response:
        doc_id = request.match_info.get("doc_id", "")
        try:
            data = await self.bulletin_client.get_cvrf(doc_id)
        except InvalidIdentifierError:
            return self._error_page(
                "Invalid document ID",
                "ID must be in format yyyy-mmm (e.g., 2024-Jan)",
                status=400,
            )
        except BulletinNotFoundError:
            return self._not_found_page(f"CVRF document {doc_id} was not found")
        except BulletinError as exc:
            logger.warning("CVRF page failed for %s: %s", doc_id, exc)
            return self._error_page("CVRF document", "Failed to fetch CVRF document", status=502)

        doc = CVRFDocument(data)
        tab = (request.query.get("tab") or "overview").strip().lower()
        search = (request.query.get("q") or "").strip()

        if tab == "vulnerabilities":
            vulns = doc.search_vulnerabilities(search)
            content = "".join(self._render_vulnerability(v) for v in vulns) or "<p>No vulnerabilities match.</p>"
            content = f'<p class="muted">{len(vulns)} of {len(doc.vulnerabilities)} vulnerabilities</p>' + content
        elif tab == "products":
            products = doc.search_products(search)
            rows = "".join(
                f"<tr><td>{_escape(p['id'])}</td><td>{_escape(p['name'])}</td></tr>" for p in products
            )
            content = (
                f'<p class="muted">{len(products)} of {len(doc.products)} products</p>'
                f"<table><thead><tr><th>Product ID</th><th>Name</th></tr></thead><tbody>{rows}</tbody></table>"
            )
        else:
            tab = "overview"
            notes = "".join(
                f"<h3>{_escape(n['title'])}</h3><div>{_escape(n['text'])}</div>" for n in doc.notes
            )
            revisions = "".join(
                f"<tr><td>{_escape(r['number'])}</td><td>{_format_date(r['date'])}</td>"
                f"<td>{_escape(r['description'])}</td></tr>"
                for r in doc.revision_history
            )
            content = (
                f"<p>Type: {_escape(doc.document_type)} | Status: {_escape(doc.status or '-')} | "
                f"Version: {_escape(doc.version or '-')}</p>"
                f"<p>Released {_format_date(doc.initial_release_date)}, "
                f"updated {_format_date(doc.current_release_date)}</p>"
                f"<p>{len(doc.vulnerabilities)} vulnerabilities, {len(doc.products)} products</p>"
                + notes
                + (f"<h3>Revision history</h3><table><tbody>{revisions}</tbody></table>" if revisions else "")
            )

        base = f"/security/cvrf/{quote(doc_id)}"
        tabs = " | ".join(
            f'<a href="{base}?tab={name}">{"<b>" + label + "</b>" if name == tab else label}</a>'
            for name, label in (("overview", "Overview"), ("vulnerabilities", "Vulnerabilities"), ("products", "Products"))
        )
        search_form = ""
        if tab != "overview":
            search_form = (
                f'<form class="filters" method="get" action="{base}">'
                f'<input type="hidden" name="tab" value="{tab}">'
                f'<input name="q" value="{_escape(search)}" placeholder="Search">'
                '<button type="submit">Search</button></form>'
            )
        title = doc.title or doc_id
        body = (
            f"<h1>{_escape(title)}</h1>"
            f'<p class="muted">{_escape(doc.tracking_id or doc_id)} {_escape(doc.publisher)}</p>'
            f'<div class="panel">{tabs}</div>{search_form}<div class="panel">{content}</div>'
        )
        return web.Response(text=_layout(title=title, body=body), content_type="text/html")

    @staticmethod
    def _render_vulnerability(vuln: dict) -> str:
        score = vuln.get("base_score")
        score_html = ""
        if score is not None:
            severity = cvss_severity(score)
            score_html = f"{_severity_badge(severity)} <b>{score:.1f}</b>"
        cve = vuln.get("cve") or ""
        heading = f'<a href="/security/cve/{quote(cve)}">{_escape(cve)}</a>' if cve else "Vulnerability"
        notes = "".join(f"<p>{_escape(n)}</p>" for n in vuln.get("notes") or [])
        remediations = "".join(
            f"<li>{_escape(r['description'] or r['url'])}"
            + (f' (<a href="{_escape(r["url"])}">link</a>)' if r.get("url") else "")
            + "</li>"
            for r in vuln.get("remediations") or []
        )
        return (
            '<div class="panel">'
            f"<h3>{heading} {score_html}</h3>"
            f"<p>{_escape(vuln.get('title'))}</p>"
            + notes
            + (f"<h4>Remediations</h4><ul>{remediations}</ul>" if remediations else "")
            + "</div>"
        )

    async def _fallback_not_found(self, request: web.Request) -> web.Response:
        return self._not_found_page()
