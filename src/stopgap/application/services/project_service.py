from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from stopgap.core.config import AppPaths
from stopgap.core.files import ensure_directory
from stopgap.infrastructure.db.repos.resource_entry_repo import ResourceEntryRepo
from stopgap.infrastructure.db.sqlite import initialize_schema


@dataclass(slots=True)
class InitResult:
    paths_created: list[Path]
    db_path: Path
    registered_pages: int
    reactive_pages: int
    sitemap_path: Path
    sitemap_present: bool


class ProjectService:
    """Prepares the registry database and the directories the sync and export commands write to."""

    def __init__(self, paths: AppPaths) -> None:
        self.paths = paths

    def init_project(self) -> InitResult:
        paths_created: list[Path] = []
        for path in (self.paths.stopgap_dir, self.paths.export_dir, self.paths.sitemap_path.parent):
            if not path.exists():
                paths_created.append(path)
            ensure_directory(path)

        initialize_schema(self.paths.db_path)
        entries = ResourceEntryRepo(self.paths.db_path)

        return InitResult(
            paths_created=paths_created,
            db_path=self.paths.db_path,
            registered_pages=entries.count(),
            reactive_pages=entries.count(origin="reactive"),
            sitemap_path=self.paths.sitemap_path,
            sitemap_present=self.paths.sitemap_path.exists(),
        )

    def is_initialized(self) -> bool:
        return self.paths.db_path.exists()
