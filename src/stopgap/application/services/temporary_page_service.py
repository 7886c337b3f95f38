from __future__ import annotations

import json
import logging
import sqlite3
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from stopgap.core.errors import PersistenceError, ValidationError
from stopgap.core.files import write_text_atomic
from stopgap.core.ids import resource_id_for
from stopgap.core.resource_naming import default_description, derive_title, infer_resource_type
from stopgap.core.time import now_utc_iso
from stopgap.core.urls import build_placeholder_route, normalize_resource_url
from stopgap.domain.models.redirect import RedirectRule
from stopgap.domain.models.resource_entry import (
    ALTERNATIVE_KINDS,
    DEVELOPMENT_STATUSES,
    ORIGINS,
    PRIORITIES,
    RESOURCE_TYPES,
    Alternative,
    ResourceEntry,
    default_alternatives,
)
from stopgap.infrastructure.db.repos.redirect_rule_repo import RedirectRuleRepo
from stopgap.infrastructure.db.repos.resource_entry_repo import ResourceEntryRepo
from stopgap.infrastructure.db.sqlite import write_transaction

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {
    "source_url",
    "resource_type",
    "title",
    "description",
    "estimated_date",
    "priority",
    "development_status",
    "progress",
    "alternatives",
}


@dataclass(slots=True)
class TemporaryPageRequest:
    """Fields left as None are derived for new records and kept for existing ones."""

    resource_url: str
    source_url: str | None = None
    resource_type: str | None = None
    title: str | None = None
    description: str | None = None
    estimated_date: str | None = None
    priority: str | None = None
    development_status: str | None = None
    progress: int | None = None
    alternatives: list[Alternative] | None = None
    origin: str = "manual"


@dataclass(slots=True)
class TemporaryPageResult:
    entry: ResourceEntry
    route: str
    action: str


@dataclass(slots=True)
class TemporaryPageStats:
    total: int
    by_type: dict[str, int] = field(default_factory=dict)
    by_priority: dict[str, int] = field(default_factory=dict)
    by_status: dict[str, int] = field(default_factory=dict)


class TemporaryPageService:
    def __init__(
        self,
        entry_repo: ResourceEntryRepo,
        redirect_repo: RedirectRuleRepo,
        *,
        placeholder_base: str = "/temporary-resource",
    ) -> None:
        self.entry_repo = entry_repo
        self.redirect_repo = redirect_repo
        self.placeholder_base = placeholder_base
        self.db_path = entry_repo.db_path

    def create(self, request: TemporaryPageRequest) -> str:
        return self.upsert(request).route

    def upsert(self, request: TemporaryPageRequest) -> TemporaryPageResult:
        resource_url = normalize_resource_url(request.resource_url)
        entry_id = resource_id_for(resource_url)
        self._validate_request(request)

        try:
            with write_transaction(self.db_path) as conn:
                existing = self.entry_repo.get_by_id(entry_id, conn=conn)
                if existing is None:
                    entry = self.build_entry(request)
                else:
                    entry = self._merge_request(existing, request)
                entry.updated_at = now_utc_iso()
                if entry.created_at is None:
                    entry.created_at = entry.updated_at
                route = self.route_for(entry)
                action = self.entry_repo.upsert(entry, conn=conn)
                self.redirect_repo.upsert(
                    RedirectRule(source=entry.resource_url, destination=route, permanent=False),
                    updated_at=entry.updated_at,
                    conn=conn,
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to save temporary page for {resource_url}: {exc}") from exc

        created = action == "inserted"
        logger.info(
            "%s temporary page for %s -> %s",
            "Created" if created else "Updated",
            entry.resource_url,
            route,
        )
        return TemporaryPageResult(entry=entry, route=route, action="created" if created else "updated")

    def build_entry(self, request: TemporaryPageRequest) -> ResourceEntry:
        """Build a new record with every missing field derived, without persisting it."""
        resource_url = normalize_resource_url(request.resource_url)
        resource_type = request.resource_type or infer_resource_type(resource_url)
        return ResourceEntry(
            id=resource_id_for(resource_url),
            resource_url=resource_url,
            source_url=request.source_url or "/",
            resource_type=resource_type,
            title=request.title or derive_title(resource_url, resource_type),
            description=request.description or default_description(resource_type),
            priority=request.priority or "medium",
            development_status=request.development_status or "planned",
            progress=request.progress if request.progress is not None else 0,
            estimated_date=request.estimated_date,
            alternatives=list(request.alternatives) if request.alternatives is not None else default_alternatives(),
            origin=request.origin,
        )

    def route_for(self, entry: ResourceEntry) -> str:
        return build_placeholder_route(
            self.placeholder_base,
            resource_url=entry.resource_url,
            source_url=entry.source_url,
            resource_type=entry.resource_type,
            title=entry.title,
            description=entry.description,
            estimated_date=entry.estimated_date,
            priority=entry.priority,
        )

    def update(self, resource_url: str, **changes: Any) -> ResourceEntry | None:
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown temporary page field(s): {', '.join(sorted(unknown))}")
        entry_id = resource_id_for(resource_url)

        try:
            with write_transaction(self.db_path) as conn:
                entry = self.entry_repo.get_by_id(entry_id, conn=conn)
                if entry is None:
                    logger.debug("No temporary page to update for %s", resource_url)
                    return None
                for name, value in changes.items():
                    setattr(entry, name, value)
                self._validate_entry(entry)
                entry.updated_at = now_utc_iso()
                self.entry_repo.upsert(entry, conn=conn)
                self.redirect_repo.upsert(
                    RedirectRule(source=entry.resource_url, destination=self.route_for(entry), permanent=False),
                    updated_at=entry.updated_at,
                    conn=conn,
                )
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to update temporary page for {resource_url}: {exc}") from exc
        return entry

    def remove(self, resource_url: str) -> bool:
        normalized = normalize_resource_url(resource_url)
        try:
            with write_transaction(self.db_path) as conn:
                self.redirect_repo.delete(normalized, conn=conn)
                removed = self.entry_repo.delete(resource_id_for(normalized), conn=conn)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to remove temporary page for {normalized}: {exc}") from exc
        if removed:
            logger.info("Removed temporary page for %s", normalized)
        return removed

    def get(self, resource_url: str) -> ResourceEntry | None:
        try:
            return self.entry_repo.get_by_id(resource_id_for(resource_url))
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to read temporary page registry: {exc}") from exc

    def exists(self, resource_url: str) -> bool:
        try:
            return self.entry_repo.exists(resource_id_for(resource_url))
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to read temporary page registry: {exc}") from exc

    def list(self) -> dict[str, ResourceEntry]:
        try:
            return {entry.id: entry for entry in self.entry_repo.list()}
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to read temporary page registry: {exc}") from exc

    def list_redirects(self) -> list[RedirectRule]:
        try:
            return self.redirect_repo.list()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Unable to read redirect table: {exc}") from exc

    def stats(self) -> TemporaryPageStats:
        entries = list(self.list().values())
        return TemporaryPageStats(
            total=len(entries),
            by_type=dict(Counter(e.resource_type for e in entries)),
            by_priority=dict(Counter(e.priority or "medium" for e in entries)),
            by_status=dict(Counter(e.development_status or "planned" for e in entries)),
        )

    def export_documents(self, config_path: Path, redirects_path: Path) -> tuple[int, int]:
        entries = self.list()
        redirects = self.list_redirects()
        registry_doc = {entry_id: entry_to_document(entry) for entry_id, entry in entries.items()}
        redirect_doc = [
            {"source": r.source, "destination": r.destination, "permanent": r.permanent}
            for r in redirects
        ]
        try:
            write_text_atomic(config_path, json.dumps(registry_doc, indent=2, ensure_ascii=False) + "\n")
            write_text_atomic(redirects_path, json.dumps(redirect_doc, indent=2, ensure_ascii=False) + "\n")
        except OSError as exc:
            raise PersistenceError(f"Unable to write exported documents: {exc}") from exc
        return len(registry_doc), len(redirect_doc)

    def import_documents(self, config_path: Path) -> int:
        """Load a registry document; redirect rules are rebuilt from the imported entries."""
        try:
            raw = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Unable to read registry document {config_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ValidationError(f"Registry document must be a JSON object: {config_path}")

        imported = 0
        for item in raw.values():
            self.upsert(request_from_document(item))
            imported += 1
        return imported

    def _merge_request(self, existing: ResourceEntry, request: TemporaryPageRequest) -> ResourceEntry:
        # A batch or manual pass confirms a reactively created record.
        if existing.origin == "reactive" and request.origin != "reactive":
            existing.origin = request.origin
        for name in _UPDATABLE_FIELDS:
            value = getattr(request, name)
            if value is not None:
                setattr(existing, name, list(value) if name == "alternatives" else value)
        return existing

    def _validate_request(self, request: TemporaryPageRequest) -> None:
        if request.resource_type is not None and request.resource_type not in RESOURCE_TYPES:
            raise ValidationError(f"Unsupported resource type: {request.resource_type}")
        if request.priority is not None and request.priority not in PRIORITIES:
            raise ValidationError(f"Unsupported priority: {request.priority}")
        if request.development_status is not None and request.development_status not in DEVELOPMENT_STATUSES:
            raise ValidationError(f"Unsupported development status: {request.development_status}")
        if request.progress is not None:
            try:
                progress = int(request.progress)
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"Progress must be an integer, got {request.progress!r}") from exc
            if not 0 <= progress <= 100:
                raise ValidationError(f"Progress must be between 0 and 100, got {request.progress}")
        if request.origin not in ORIGINS:
            raise ValidationError(f"Unsupported origin: {request.origin}")
        for alternative in request.alternatives or []:
            if alternative.kind not in ALTERNATIVE_KINDS:
                raise ValidationError(f"Unsupported alternative kind: {alternative.kind}")

    def _validate_entry(self, entry: ResourceEntry) -> None:
        self._validate_request(
            TemporaryPageRequest(
                resource_url=entry.resource_url,
                resource_type=entry.resource_type,
                priority=entry.priority,
                development_status=entry.development_status,
                progress=entry.progress,
                alternatives=entry.alternatives,
                origin=entry.origin,
            )
        )


def entry_to_document(entry: ResourceEntry) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "resourceUrl": entry.resource_url,
        "sourceUrl": entry.source_url,
        "resourceType": entry.resource_type,
        "title": entry.title,
        "description": entry.description,
        "priority": entry.priority,
        "developmentStatus": entry.development_status,
        "progress": entry.progress,
        "alternatives": [
            {"title": a.title, "url": a.url, "description": a.description, "type": a.kind}
            for a in entry.alternatives
        ],
    }
    if entry.estimated_date:
        doc["estimatedDate"] = entry.estimated_date
    return doc


def request_from_document(doc: dict[str, Any]) -> TemporaryPageRequest:
    if not isinstance(doc, dict) or not doc.get("resourceUrl"):
        raise ValidationError("Registry document entries require a resourceUrl.")
    alternatives = doc.get("alternatives")
    return TemporaryPageRequest(
        resource_url=str(doc["resourceUrl"]),
        source_url=doc.get("sourceUrl"),
        resource_type=doc.get("resourceType"),
        title=doc.get("title"),
        description=doc.get("description"),
        estimated_date=doc.get("estimatedDate"),
        priority=doc.get("priority"),
        development_status=doc.get("developmentStatus"),
        progress=doc.get("progress"),
        alternatives=(
            [
                Alternative(
                    title=str(a.get("title") or ""),
                    url=str(a.get("url") or ""),
                    description=str(a.get("description") or ""),
                    kind=str(a.get("type") or a.get("kind") or "internal"),
                )
                for a in alternatives
            ]
            if isinstance(alternatives, list)
            else None
        ),
    )
