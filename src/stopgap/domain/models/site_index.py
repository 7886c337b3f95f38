from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class SiteIndexEntry:
    loc: str
    lastmod: str | None = None
    changefreq: str | None = None
    priority: str | None = None
