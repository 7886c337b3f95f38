from __future__ import annotations

import logging
import urllib.error
import urllib.request
from collections import deque
from html.parser import HTMLParser
from urllib.parse import urljoin, urlparse

from stopgap.core.resource_naming import has_document_extension
from stopgap.core.urls import matches_glob_pattern
from stopgap.domain.models.links import ScannedLink, ScanRequest

logger = logging.getLogger(__name__)

_SKIPPED_SCHEMES = ("mailto:", "tel:", "javascript:", "data:")
_LINK_ATTRIBUTES = {
    "a": "href",
    "area": "href",
    "link": "href",
    "img": "src",
    "iframe": "src",
    "script": "src",
    "source": "src",
}


class _LinkExtractor(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.links: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        attribute = _LINK_ATTRIBUTES.get(tag)
        if attribute is None:
            return
        for name, value in attrs:
            if name == attribute and value:
                self.links.append(value.strip())


def extract_links(html: str) -> list[str]:
    parser = _LinkExtractor()
    parser.feed(html)
    parser.close()
    return parser.links


def _fetch_html(url: str, *, timeout: float, user_agent: str) -> str | None:
    request = urllib.request.Request(url, headers={"User-Agent": user_agent, "Accept": "text/html"})
    with urllib.request.urlopen(request, timeout=timeout) as response:
        content_type = str(response.headers.get("Content-Type") or "")
        if "html" not in content_type.lower():
            return None
        charset = response.headers.get_content_charset() or "utf-8"
        return response.read().decode(charset, errors="replace")


class SiteLinkScanner:
    """Breadth-first crawl of a site, collecting every link found on each page."""

    def __init__(self, *, timeout: float = 10.0, user_agent: str = "Stopgap-Link-Scanner/1.0") -> None:
        self.timeout = timeout
        self.user_agent = user_agent

    def scan_site(self, request: ScanRequest) -> list[ScannedLink]:
        base = request.base_url.rstrip("/")
        base_host = urlparse(base).netloc
        queue: deque[tuple[str, int]] = deque([("/", 0)])
        visited: set[str] = set()
        seen: set[tuple[str, str]] = set()
        links: list[ScannedLink] = []

        while queue:
            page_path, depth = queue.popleft()
            if page_path in visited:
                continue
            visited.add(page_path)

            try:
                html = _fetch_html(base + page_path, timeout=self.timeout, user_agent=self.user_agent)
            except (urllib.error.URLError, OSError, ValueError) as exc:
                logger.warning("Unable to crawl %s: %s", page_path, exc)
                continue
            if html is None:
                continue

            for raw in extract_links(html):
                classified = self._classify(raw, page_path, base, base_host)
                if classified is None:
                    continue
                url, kind = classified
                if kind == "external" and not request.include_external:
                    continue
                if any(matches_glob_pattern(url, pattern) for pattern in request.exclude_patterns):
                    continue
                key = (url, page_path)
                if key in seen:
                    continue
                seen.add(key)
                links.append(ScannedLink(url=url, source_file=page_path, link_kind=kind))
                if kind == "internal" and depth + 1 <= request.max_depth and url not in visited:
                    queue.append((url, depth + 1))

        logger.info("Scanned %d pages, found %d links", len(visited), len(links))
        return links

    @staticmethod
    def _classify(raw: str, page_path: str, base: str, base_host: str) -> tuple[str, str] | None:
        if not raw or raw.startswith("#") or raw.lower().startswith(_SKIPPED_SCHEMES):
            return None
        absolute = urljoin(base + page_path, raw)
        parsed = urlparse(absolute)
        if parsed.scheme not in {"http", "https"}:
            return None
        if parsed.netloc != base_host:
            return absolute.split("#", 1)[0], "external"
        path = parsed.path or "/"
        if parsed.query:
            path = f"{path}?{parsed.query}"
        kind = "download" if has_document_extension(parsed.path) else "internal"
        return path, kind
