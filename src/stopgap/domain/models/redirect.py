from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class RedirectRule:
    source: str
    destination: str
    permanent: bool = False
