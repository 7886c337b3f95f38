from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from stopgap.domain.models.resource_entry import Alternative, ResourceEntry
from stopgap.infrastructure.db.sqlite import read_connection, write_transaction


class ResourceEntryRepo:
    """Registry of temporary resources, keyed by the id derived from the resource URL."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path

    @contextmanager
    def _reader(self, conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with read_connection(self.db_path) as own:
            yield own

    @contextmanager
    def _writer(self, conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with write_transaction(self.db_path) as own:
            yield own

    def upsert(self, entry: ResourceEntry, *, conn: sqlite3.Connection | None = None) -> str:
        with self._writer(conn) as c:
            existing = c.execute(
                "SELECT 1 FROM temporary_resources WHERE id = ?",
                (entry.id,),
            ).fetchone()
            params = (
                entry.resource_url,
                entry.source_url,
                entry.resource_type,
                entry.title,
                entry.description,
                entry.estimated_date,
                entry.priority,
                entry.development_status,
                entry.progress,
                self._alternatives_to_json(entry.alternatives),
                entry.origin,
                entry.updated_at,
            )
            if existing:
                c.execute(
                    """
                    UPDATE temporary_resources
                    SET resource_url = ?,
                        source_url = ?,
                        resource_type = ?,
                        title = ?,
                        description = ?,
                        estimated_date = ?,
                        priority = ?,
                        development_status = ?,
                        progress = ?,
                        alternatives_json = ?,
                        origin = ?,
                        updated_at = ?
                    WHERE id = ?
                    """,
                    (*params, entry.id),
                )
                return "updated"

            c.execute(
                """
                INSERT INTO temporary_resources (
                    resource_url,
                    source_url,
                    resource_type,
                    title,
                    description,
                    estimated_date,
                    priority,
                    development_status,
                    progress,
                    alternatives_json,
                    origin,
                    updated_at,
                    id,
                    created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (*params, entry.id, entry.created_at or entry.updated_at),
            )
            return "inserted"

    def get_by_id(self, entry_id: str, *, conn: sqlite3.Connection | None = None) -> ResourceEntry | None:
        with self._reader(conn) as c:
            row = c.execute(
                "SELECT * FROM temporary_resources WHERE id = ?",
                (entry_id,),
            ).fetchone()
        return self._to_model(row) if row else None

    def exists(self, entry_id: str) -> bool:
        with read_connection(self.db_path) as c:
            row = c.execute(
                "SELECT 1 FROM temporary_resources WHERE id = ? LIMIT 1",
                (entry_id,),
            ).fetchone()
        return row is not None

    def list(self) -> list[ResourceEntry]:
        with read_connection(self.db_path) as c:
            rows = c.execute(
                """
                SELECT * FROM temporary_resources
                ORDER BY created_at ASC, resource_url ASC
                """
            ).fetchall()
        return [self._to_model(row) for row in rows]

    def count(self, *, origin: str | None = None) -> int:
        with read_connection(self.db_path) as c:
            if origin is None:
                row = c.execute("SELECT COUNT(*) AS c FROM temporary_resources").fetchone()
            else:
                row = c.execute(
                    "SELECT COUNT(*) AS c FROM temporary_resources WHERE origin = ?",
                    (origin,),
                ).fetchone()
        return int(row["c"])

    def delete(self, entry_id: str, *, conn: sqlite3.Connection | None = None) -> bool:
        with self._writer(conn) as c:
            cursor = c.execute("DELETE FROM temporary_resources WHERE id = ?", (entry_id,))
            return cursor.rowcount > 0

    @staticmethod
    def _alternatives_to_json(alternatives: list[Alternative]) -> str:
        return json.dumps(
            [
                {"title": a.title, "url": a.url, "description": a.description, "kind": a.kind}
                for a in alternatives
            ],
            ensure_ascii=False,
        )

    @staticmethod
    def _alternatives_from_json(raw: str | None) -> list[Alternative]:
        if not raw:
            return []
        return [
            Alternative(
                title=str(item.get("title") or ""),
                url=str(item.get("url") or ""),
                description=str(item.get("description") or ""),
                kind=str(item.get("kind") or "internal"),
            )
            for item in json.loads(raw)
        ]

    @classmethod
    def _to_model(cls, row) -> ResourceEntry:
        return ResourceEntry(
            id=row["id"],
            resource_url=row["resource_url"],
            source_url=row["source_url"],
            resource_type=row["resource_type"],
            title=row["title"],
            description=row["description"],
            priority=row["priority"],
            development_status=row["development_status"],
            progress=int(row["progress"]),
            estimated_date=row["estimated_date"],
            alternatives=cls._alternatives_from_json(row["alternatives_json"]),
            origin=row["origin"] if "origin" in row.keys() else "manual",
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
