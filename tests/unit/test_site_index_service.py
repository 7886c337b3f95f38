import re
from pathlib import Path

import pytest

from stopgap.application.services.site_index_service import SiteIndexService
from stopgap.application.services.temporary_page_service import TemporaryPageRequest, TemporaryPageService
from stopgap.core.errors import SiteIndexError
from stopgap.infrastructure.db.repos.redirect_rule_repo import RedirectRuleRepo
from stopgap.infrastructure.db.repos.resource_entry_repo import ResourceEntryRepo
from stopgap.infrastructure.db.sqlite import initialize_schema

EXISTING_SITEMAP = """<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://site.test/</loc><priority>1.0</priority></url>
  <url><loc>https://site.test/blog/temporary-resource-notes</loc></url>
  <url><loc>https://site.test/temporary-resource?url=%2Fold.pdf&amp;source=%2F</loc></url>
  <url><loc>https://site.test/contact</loc><changefreq>monthly</changefreq></url>
</urlset>
"""


def _schema_path() -> Path:
    return Path(__file__).resolve().parents[2] / "src" / "stopgap" / "infrastructure" / "db" / "schema.sql"


def _services(tmp_path: Path) -> tuple[TemporaryPageService, SiteIndexService]:
    db_path = tmp_path / "stopgap.db"
    initialize_schema(db_path, _schema_path())
    pages = TemporaryPageService(ResourceEntryRepo(db_path), RedirectRuleRepo(db_path))
    site_index = SiteIndexService(tmp_path / "public" / "sitemap.xml", pages, base_url="https://site.test/")
    return pages, site_index


def test_sync_replaces_placeholder_entries_and_keeps_others(tmp_path: Path) -> None:
    pages, site_index = _services(tmp_path)
    site_index.sitemap_path.parent.mkdir(parents=True)
    site_index.sitemap_path.write_text(EXISTING_SITEMAP, encoding="utf-8")
    pages.upsert(TemporaryPageRequest(resource_url="/ressources/guide.pdf", priority="high"))
    pages.upsert(TemporaryPageRequest(resource_url="/outils/x", priority="low"))

    result = site_index.sync()

    assert (result.removed, result.added, result.total) == (1, 2, 5)
    entries = site_index.read_entries()
    assert [e.loc for e in entries[:3]] == [
        "https://site.test/",
        "https://site.test/blog/temporary-resource-notes",
        "https://site.test/contact",
    ]
    assert entries[2].changefreq == "monthly"
    placeholders = entries[3:]
    assert all(e.loc.startswith("https://site.test/temporary-resource?url=") for e in placeholders)
    assert sorted(e.priority for e in placeholders) == ["0.4", "0.8"]
    assert {e.changefreq for e in placeholders} == {"weekly"}
    assert all(re.fullmatch(r"\d{4}-\d{2}-\d{2}", e.lastmod) for e in placeholders)
    assert "&amp;source=" in site_index.sitemap_path.read_text(encoding="utf-8")


def test_sync_is_stable_when_repeated(tmp_path: Path) -> None:
    pages, site_index = _services(tmp_path)
    pages.upsert(TemporaryPageRequest(resource_url="/a.pdf"))

    site_index.sync()
    second = site_index.sync()

    assert (second.removed, second.added, second.total) == (1, 1, 1)


def test_remove_all_drops_only_placeholder_entries(tmp_path: Path) -> None:
    _, site_index = _services(tmp_path)
    site_index.sitemap_path.parent.mkdir(parents=True)
    site_index.sitemap_path.write_text(EXISTING_SITEMAP, encoding="utf-8")

    assert site_index.remove_all() == 1
    assert [e.loc for e in site_index.read_entries()] == [
        "https://site.test/",
        "https://site.test/blog/temporary-resource-notes",
        "https://site.test/contact",
    ]
    assert site_index.remove_all() == 0


def test_validate_reports_structure_and_placeholder_warning(tmp_path: Path) -> None:
    _, site_index = _services(tmp_path)

    missing = site_index.validate()
    assert missing.ok is False
    assert "not found" in missing.issues[0].message

    site_index.sitemap_path.parent.mkdir(parents=True)
    site_index.sitemap_path.write_text(EXISTING_SITEMAP, encoding="utf-8")
    report = site_index.validate()
    assert report.ok is True
    assert report.url_count == 4
    assert report.placeholder_count == 1
    assert [i.level for i in report.issues] == ["warning"]

    site_index.sitemap_path.write_text("<urlset></urlset>", encoding="utf-8")
    empty = site_index.validate()
    assert empty.ok is False
    assert {i.message for i in empty.issues} == {"Missing XML declaration.", "Sitemap contains no URLs."}


def test_sync_refuses_to_overwrite_unparseable_sitemap(tmp_path: Path) -> None:
    pages, site_index = _services(tmp_path)
    site_index.sitemap_path.parent.mkdir(parents=True)
    site_index.sitemap_path.write_text("<urlset><url>", encoding="utf-8")
    pages.upsert(TemporaryPageRequest(resource_url="/a.pdf"))

    with pytest.raises(SiteIndexError, match="Unable to parse"):
        site_index.sync()
    assert site_index.sitemap_path.read_text(encoding="utf-8") == "<urlset><url>"
