from pathlib import Path

from stopgap.application.services.health_service import HealthService
from stopgap.application.services.site_index_service import SiteIndexService
from stopgap.application.services.temporary_page_service import TemporaryPageRequest, TemporaryPageService
from stopgap.infrastructure.db.repos.redirect_rule_repo import RedirectRuleRepo
from stopgap.infrastructure.db.repos.resource_entry_repo import ResourceEntryRepo
from stopgap.infrastructure.db.sqlite import get_connection, initialize_schema


def _bootstrap(tmp_path: Path) -> tuple[Path, TemporaryPageService]:
    db_path = tmp_path / "stopgap.db"
    schema_path = (
        Path(__file__).resolve().parents[2]
        / "src"
        / "stopgap"
        / "infrastructure"
        / "db"
        / "schema.sql"
    )
    initialize_schema(db_path, schema_path)
    return db_path, TemporaryPageService(ResourceEntryRepo(db_path), RedirectRuleRepo(db_path))


def test_doctor_passes_for_basic_clean_state(tmp_path: Path) -> None:
    db_path, pages = _bootstrap(tmp_path)
    pages.upsert(TemporaryPageRequest(resource_url="/ressources/guide.pdf"))

    report = HealthService(db_path=db_path).run_doctor()

    assert report.ok is True
    assert report.checks_run == 2
    assert report.db_runtime["journal_mode"] == "wal"
    assert report.db_runtime["foreign_keys"] is True
    assert int(report.db_runtime["busy_timeout_ms"]) >= 30_000
    assert report.issues == []


def test_doctor_flags_temporary_page_without_redirect(tmp_path: Path) -> None:
    db_path, pages = _bootstrap(tmp_path)
    pages.upsert(TemporaryPageRequest(resource_url="/a.pdf"))
    with get_connection(db_path) as conn:
        conn.execute("DELETE FROM redirect_rules WHERE source = ?", ("/a.pdf",))

    report = HealthService(db_path=db_path).run_doctor()

    assert report.ok is False
    assert [(i.check, i.level) for i in report.issues] == [("redirect_integrity", "error")]
    assert "/a.pdf" in report.issues[0].message


def test_doctor_includes_sitemap_validation_when_present(tmp_path: Path) -> None:
    db_path, pages = _bootstrap(tmp_path)
    pages.upsert(TemporaryPageRequest(resource_url="/a.pdf"))
    site_index = SiteIndexService(tmp_path / "sitemap.xml", pages, base_url="https://site.test")
    site_index.sync()

    report = HealthService(db_path=db_path, site_index=site_index).run_doctor()

    assert report.checks_run == 3
    assert report.ok is True
    assert [(i.check, i.level) for i in report.issues] == [("sitemap", "warning")]
