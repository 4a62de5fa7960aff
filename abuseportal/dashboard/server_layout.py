"""Layout template for server-rendered pages."""

from __future__ import annotations

from string import Template

from .server_helpers import _escape

_LAYOUT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>$title</title>
  <style>$style</style>
</head>
<body>
  <header class="site-header"><span class="brand">Security Response Center</span></header>
  <nav class="site-nav">$nav</nav>
  <main class="container">
$body
  </main>
</body>
</html>
"""
)

_LAYOUT_STYLE = """
body{font-family:system-ui,-apple-system,"Segoe UI",sans-serif;margin:0;background:#f5f5f5;color:#1b1b1b}
.site-header{background:#2f2f2f;color:#fff;height:48px;display:flex;align-items:center;padding:0 24px}
.brand{font-weight:600}
.site-nav{background:#f8f8f8;border-bottom:1px solid #ddd;padding:0 16px}
.nav-link{display:inline-block;padding:12px 16px;color:#555;text-decoration:none;border-bottom:2px solid transparent}
.nav-link.active{color:#0067b8;border-bottom-color:#0067b8}
.container{max-width:1100px;margin:0 auto;padding:24px 16px}
.panel{background:#fff;border:1px solid #e0e0e0;border-radius:6px;padding:16px;margin-bottom:16px}
.panel-error{border-color:#f1b0b0;background:#fff4f4}
table{width:100%;border-collapse:collapse}
th,td{text-align:left;padding:8px;border-bottom:1px solid #eee;vertical-align:top}
.badge{display:inline-block;padding:2px 10px;border-radius:999px;font-size:12px;font-weight:600}
.sev-critical{background:#fde2e2;color:#9b1c1c}
.sev-high{background:#ffedd5;color:#9a3412}
.sev-medium{background:#fef9c3;color:#854d0e}
.sev-low{background:#dcfce7;color:#166534}
.sev-none,.kind-security{background:#e5e7eb;color:#374151}
.kind-mariner{background:#ede9fe;color:#5b21b6}
.muted{color:#666;font-size:13px}
form.filters{display:flex;gap:8px;flex-wrap:wrap}
"""

_NAV_ITEMS = (
    ("/", "Report Abuse"),
    ("/security", "Security Updates"),
)


def _layout(*, title: str, body: str, active: str = "/security") -> str:
    """Render the base HTML layout wrapper."""
    nav = "".join(
        f'<a class="nav-link{" active" if href == active else ""}" href="{href}">{label}</a>'
        for href, label in _NAV_ITEMS
    )
    return _LAYOUT_TEMPLATE.safe_substitute(
        title=_escape(title),
        body=body,
        nav=nav,
        style=_LAYOUT_STYLE,
    )
