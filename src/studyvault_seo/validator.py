"""Sitemap validation.

Checks a rendered ``<urlset>`` against the rules search engines enforce:
namespace, required ``<loc>``, ``<lastmod>`` format and no future dates,
known ``<changefreq>`` values, ``<priority>`` in [0, 1], unique locations.
Missing ``<lastmod>`` is only a warning.
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from datetime import UTC, date, datetime

from studyvault_seo.builder import SITEMAP_NAMESPACE
from studyvault_seo.models.results import ValidationReport
from studyvault_seo.models.sitemap import ChangeFrequency

_NS = {"sm": SITEMAP_NAMESPACE}
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_CHANGEFREQS = {freq.value for freq in ChangeFrequency}


def _parse_lastmod(text: str) -> date | None:
    """Accept ``YYYY-MM-DD`` or a full ISO-8601 timestamp."""
    try:
        if _DATE_RE.match(text):
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def validate_sitemap(xml_text: str, *, today: date | None = None) -> ValidationReport:
    today = today or datetime.now(UTC).date()
    report = ValidationReport()

    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as exc:
        report.errors.append(f"XML parse error: {exc}")
        return report

    if root.tag != f"{{{SITEMAP_NAMESPACE}}}urlset":
        report.errors.append(f"Root element must be <urlset> in {SITEMAP_NAMESPACE}, got {root.tag}")
        return report

    seen: set[str] = set()
    urls = root.findall("sm:url", _NS)
    report.url_count = len(urls)

    for index, url in enumerate(urls):
        loc = (url.findtext("sm:loc", default="", namespaces=_NS) or "").strip()
        if not loc:
            report.errors.append(f"URL at index {index} is missing a <loc> element")
            continue
        if loc in seen:
            report.errors.append(f"Duplicate <loc>: {loc}")
        seen.add(loc)

        lastmod = url.findtext("sm:lastmod", namespaces=_NS)
        if lastmod is None:
            report.warnings.append(f"{loc} is missing a <lastmod> element")
        else:
            parsed = _parse_lastmod(lastmod.strip())
            if parsed is None:
                report.errors.append(f"{loc} has an invalid <lastmod>: {lastmod}")
            elif parsed > today:
                report.errors.append(f"{loc} has a future <lastmod>: {lastmod}")

        changefreq = url.findtext("sm:changefreq", namespaces=_NS)
        if changefreq is not None and changefreq.strip() not in _CHANGEFREQS:
            report.errors.append(f"{loc} has an unknown <changefreq>: {changefreq}")

        priority = url.findtext("sm:priority", namespaces=_NS)
        if priority is not None:
            try:
                value = float(priority)
            except ValueError:
                value = -1.0
            if not 0.0 <= value <= 1.0:
                report.errors.append(f"{loc} has an out-of-range <priority>: {priority}")

    return report
