from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from stopgap.domain.models.redirect import RedirectRule
from stopgap.infrastructure.db.sqlite import read_connection, write_transaction


class RedirectRuleRepo:
    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    @contextmanager
    def _writer(self, conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with write_transaction(self.db_path) as own:
            yield own

    def upsert(
        self,
        rule: RedirectRule,
        *,
        updated_at: str,
        conn: sqlite3.Connection | None = None,
    ) -> str:
        with self._writer(conn) as c:
            existing = c.execute(
                "SELECT 1 FROM redirect_rules WHERE source = ?",
                (rule.source,),
            ).fetchone()
            if existing:
                c.execute(
                    """
                    UPDATE redirect_rules
                    SET destination = ?, permanent = ?, updated_at = ?
                    WHERE source = ?
                    """,
                    (rule.destination, int(rule.permanent), updated_at, rule.source),
                )
                return "updated"
            c.execute(
                """
                INSERT INTO redirect_rules (source, destination, permanent, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (rule.source, rule.destination, int(rule.permanent), updated_at, updated_at),
            )
            return "inserted"

    def get_by_source(self, source: str) -> RedirectRule | None:
        with read_connection(self.db_path) as c:
            row = c.execute(
                "SELECT * FROM redirect_rules WHERE source = ?",
                (source,),
            ).fetchone()
        return self._to_model(row) if row else None

    def list(self) -> list[RedirectRule]:
        with read_connection(self.db_path) as c:
            rows = c.execute("SELECT * FROM redirect_rules ORDER BY created_at ASC, source ASC").fetchall()
        return [self._to_model(row) for row in rows]

    def delete(self, source: str, *, conn: sqlite3.Connection | None = None) -> bool:
        with self._writer(conn) as c:
            cursor = c.execute("DELETE FROM redirect_rules WHERE source = ?", (source,))
            return cursor.rowcount > 0

    @staticmethod
    def _to_model(row) -> RedirectRule:
        return RedirectRule(
            source=row["source"],
            destination=row["destination"],
            permanent=bool(row["permanent"]),
        )
