from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from stopgap.application.services.temporary_page_service import TemporaryPageService
from stopgap.core.errors import PersistenceError, SiteIndexError
from stopgap.core.files import write_text_atomic
from stopgap.core.time import w3c_date
from stopgap.core.urls import is_placeholder_location
from stopgap.domain.models.site_index import SiteIndexEntry
from stopgap.infrastructure.sitemap.sitemap_document import (
    SitemapParseError,
    parse_sitemap,
    render_sitemap,
)

logger = logging.getLogger(__name__)

MAX_SITEMAP_URLS = 50_000
PLACEHOLDER_CHANGEFREQ = "weekly"
PRIORITY_WEIGHTS = {"high": "0.8", "medium": "0.6", "low": "0.4"}
DEFAULT_PRIORITY_WEIGHT = "0.5"


@dataclass(slots=True)
class SiteIndexSyncResult:
    removed: int
    added: int
    total: int


@dataclass(slots=True)
class SiteIndexIssue:
    level: str
    message: str


@dataclass(slots=True)
class SiteIndexReport:
    ok: bool
    url_count: int
    placeholder_count: int
    issues: list[SiteIndexIssue] = field(default_factory=list)


class SiteIndexService:
    """Keeps the placeholder entries of the sitemap in step with the registry."""

    def __init__(
        self,
        sitemap_path: Path,
        page_service: TemporaryPageService,
        *,
        base_url: str,
    ) -> None:
        self.sitemap_path = sitemap_path
        self.page_service = page_service
        self.base_url = base_url.rstrip("/")

    def sync(self) -> SiteIndexSyncResult:
        entries = self._read_entries()
        kept = [e for e in entries if not self._is_placeholder(e)]
        removed = len(entries) - len(kept)

        try:
            registry = self.page_service.list()
        except PersistenceError as exc:
            raise SiteIndexError(f"Unable to read registry for sitemap sync: {exc}") from exc

        lastmod = w3c_date()
        added = [
            SiteIndexEntry(
                loc=f"{self.base_url}{self.page_service.route_for(entry)}",
                lastmod=lastmod,
                changefreq=PLACEHOLDER_CHANGEFREQ,
                priority=PRIORITY_WEIGHTS.get(entry.priority, DEFAULT_PRIORITY_WEIGHT),
            )
            for entry in registry.values()
        ]
        merged = kept + added
        self._write_entries(merged)
        logger.info(
            "Sitemap synced: %d placeholder entries removed, %d added (%d total)",
            removed,
            len(added),
            len(merged),
        )
        return SiteIndexSyncResult(removed=removed, added=len(added), total=len(merged))

    def remove_all(self) -> int:
        entries = self._read_entries()
        kept = [e for e in entries if not self._is_placeholder(e)]
        removed = len(entries) - len(kept)
        if removed or not self.sitemap_path.exists():
            self._write_entries(kept)
        logger.info("Removed %d placeholder entries from sitemap", removed)
        return removed

    def validate(self) -> SiteIndexReport:
        issues: list[SiteIndexIssue] = []
        if not self.sitemap_path.exists():
            return SiteIndexReport(
                ok=False,
                url_count=0,
                placeholder_count=0,
                issues=[SiteIndexIssue(level="error", message=f"Sitemap not found: {self.sitemap_path}")],
            )

        text = self._read_text()
        if "<?xml" not in text:
            issues.append(SiteIndexIssue(level="error", message="Missing XML declaration."))
        if "<urlset" not in text:
            issues.append(SiteIndexIssue(level="error", message="Missing <urlset> container."))

        try:
            entries = parse_sitemap(text)
        except SitemapParseError as exc:
            issues.append(SiteIndexIssue(level="error", message=str(exc)))
            entries = []

        url_count = len(entries)
        placeholder_count = sum(1 for e in entries if self._is_placeholder(e))
        if url_count == 0:
            issues.append(SiteIndexIssue(level="error", message="Sitemap contains no URLs."))
        elif url_count > MAX_SITEMAP_URLS:
            issues.append(
                SiteIndexIssue(
                    level="error",
                    message=f"Sitemap contains {url_count} URLs, above the {MAX_SITEMAP_URLS} limit.",
                )
            )
        if placeholder_count:
            issues.append(
                SiteIndexIssue(
                    level="warning",
                    message=f"{placeholder_count} temporary page URL(s) listed in sitemap.",
                )
            )

        return SiteIndexReport(
            ok=not any(i.level == "error" for i in issues),
            url_count=url_count,
            placeholder_count=placeholder_count,
            issues=issues,
        )

    def read_entries(self) -> list[SiteIndexEntry]:
        return self._read_entries()

    def _is_placeholder(self, entry: SiteIndexEntry) -> bool:
        return is_placeholder_location(entry.loc, self.page_service.placeholder_base)

    def _read_text(self) -> str:
        try:
            return self.sitemap_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SiteIndexError(f"Unable to read sitemap {self.sitemap_path}: {exc}") from exc

    def _read_entries(self) -> list[SiteIndexEntry]:
        if not self.sitemap_path.exists():
            return []
        try:
            return parse_sitemap(self._read_text())
        except SitemapParseError as exc:
            raise SiteIndexError(f"Unable to parse sitemap {self.sitemap_path}: {exc}") from exc

    def _write_entries(self, entries: list[SiteIndexEntry]) -> None:
        try:
            write_text_atomic(self.sitemap_path, render_sitemap(entries))
        except OSError as exc:
            raise SiteIndexError(f"Unable to write sitemap {self.sitemap_path}: {exc}") from exc
