from __future__ import annotations

from xml.etree import ElementTree as ET

from stopgap.domain.models.site_index import SiteIndexEntry

SITEMAP_NAMESPACE = "http://www.sitemaps.org/schemas/sitemap/0.9"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

_XML_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&apos;",
}


class SitemapParseError(ValueError):
    pass


def escape_xml(value: str) -> str:
    return "".join(_XML_ESCAPES.get(ch, ch) for ch in value)


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(node: ET.Element, name: str) -> str | None:
    for child in node:
        if _local_name(child.tag) == name:
            text = (child.text or "").strip()
            return text or None
    return None


def parse_sitemap(text: str) -> list[SiteIndexEntry]:
    if not text.strip():
        return []
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise SitemapParseError(f"Sitemap is not well-formed XML: {exc}") from exc
    if _local_name(root.tag) != "urlset":
        raise SitemapParseError(f"Expected <urlset> root element, found <{_local_name(root.tag)}>")

    entries: list[SiteIndexEntry] = []
    for node in root:
        if _local_name(node.tag) != "url":
            continue
        loc = _child_text(node, "loc")
        if not loc:
            continue
        entries.append(
            SiteIndexEntry(
                loc=loc,
                lastmod=_child_text(node, "lastmod"),
                changefreq=_child_text(node, "changefreq"),
                priority=_child_text(node, "priority"),
            )
        )
    return entries


def render_sitemap(entries: list[SiteIndexEntry]) -> str:
    lines = [XML_DECLARATION, f'<urlset xmlns="{SITEMAP_NAMESPACE}">']
    for entry in entries:
        lines.append("  <url>")
        lines.append(f"    <loc>{escape_xml(entry.loc)}</loc>")
        if entry.lastmod:
            lines.append(f"    <lastmod>{escape_xml(entry.lastmod)}</lastmod>")
        if entry.changefreq:
            lines.append(f"    <changefreq>{escape_xml(entry.changefreq)}</changefreq>")
        if entry.priority:
            lines.append(f"    <priority>{escape_xml(entry.priority)}</priority>")
        lines.append("  </url>")
    lines.append("</urlset>")
    return "\n".join(lines) + "\n"
