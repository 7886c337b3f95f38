from __future__ import annotations

from datetime import datetime, timezone


def now_utc() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def now_utc_iso() -> str:
    """Record timestamp: RFC 3339 in UTC with seconds precision."""
    return now_utc().isoformat()


def w3c_date(moment: datetime | None = None) -> str:
    """Calendar date in the W3C datetime profile accepted by sitemap <lastmod>."""
    return (moment or now_utc()).date().isoformat()
