from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from stopgap.application.services.site_index_service import SiteIndexService
from stopgap.infrastructure.db.sqlite import read_connection


@dataclass(slots=True)
class DoctorIssue:
    check: str
    level: str
    message: str


@dataclass(slots=True)
class DoctorReport:
    ok: bool
    checks_run: int
    issues: list[DoctorIssue]
    db_runtime: dict[str, object]


class HealthService:
    def __init__(self, db_path: Path, site_index: SiteIndexService | None = None) -> None:
        self.db_path = db_path
        self.site_index = site_index

    def run_doctor(self) -> DoctorReport:
        issues: list[DoctorIssue] = []
        checks_run = 0
        db_runtime: dict[str, object] = {}

        # Check 1: database runtime pragmas support concurrent access.
        checks_run += 1
        with read_connection(self.db_path) as conn:
            journal_mode_raw = conn.execute("PRAGMA journal_mode;").fetchone()[0]
            busy_timeout_raw = conn.execute("PRAGMA busy_timeout;").fetchone()[0]
            foreign_keys_raw = conn.execute("PRAGMA foreign_keys;").fetchone()[0]
            synchronous_raw = conn.execute("PRAGMA synchronous;").fetchone()[0]

        journal_mode = str(journal_mode_raw).lower()
        busy_timeout_ms = int(busy_timeout_raw)
        foreign_keys = int(foreign_keys_raw)

        db_runtime = {
            "journal_mode": journal_mode,
            "busy_timeout_ms": busy_timeout_ms,
            "foreign_keys": bool(foreign_keys),
            "synchronous": int(synchronous_raw),
        }

        if journal_mode != "wal":
            issues.append(
                DoctorIssue(
                    check="db_runtime",
                    level="error",
                    message=f"SQLite journal_mode is '{journal_mode}', expected 'wal' for concurrent access.",
                )
            )
        if foreign_keys != 1:
            issues.append(
                DoctorIssue(
                    check="db_runtime",
                    level="error",
                    message="SQLite foreign_keys pragma is disabled.",
                )
            )
        if busy_timeout_ms <= 0:
            issues.append(
                DoctorIssue(
                    check="db_runtime",
                    level="error",
                    message="SQLite busy_timeout is disabled; concurrent writes may fail immediately.",
                )
            )
        elif busy_timeout_ms < 1_000:
            issues.append(
                DoctorIssue(
                    check="db_runtime",
                    level="warning",
                    message=f"SQLite busy_timeout is low ({busy_timeout_ms}ms); consider >= 1000ms.",
                )
            )

        # Check 2: every temporary page has exactly one redirect rule and vice versa.
        checks_run += 1
        with read_connection(self.db_path) as conn:
            missing_rules = conn.execute(
                """
                SELECT t.resource_url
                FROM temporary_resources t
                LEFT JOIN redirect_rules r ON r.source = t.resource_url
                WHERE r.source IS NULL
                """
            ).fetchall()
            orphan_rules = conn.execute(
                """
                SELECT r.source
                FROM redirect_rules r
                LEFT JOIN temporary_resources t ON t.resource_url = r.source
                WHERE t.id IS NULL
                """
            ).fetchall()
        for row in missing_rules:
            issues.append(
                DoctorIssue(
                    check="redirect_integrity",
                    level="error",
                    message=f"Temporary page without redirect rule: {row['resource_url']}",
                )
            )
        for row in orphan_rules:
            issues.append(
                DoctorIssue(
                    check="redirect_integrity",
                    level="error",
                    message=f"Redirect rule without temporary page: {row['source']}",
                )
            )

        # Check 3: sitemap structure, when a sitemap is configured.
        if self.site_index is not None and self.site_index.sitemap_path.exists():
            checks_run += 1
            report = self.site_index.validate()
            for issue in report.issues:
                issues.append(DoctorIssue(check="sitemap", level=issue.level, message=issue.message))

        return DoctorReport(
            ok=not any(i.level == "error" for i in issues),
            checks_run=checks_run,
            issues=issues,
            db_runtime=db_runtime,
        )
