from __future__ import annotations

from dataclasses import dataclass, field

RESOURCE_TYPES = ("download", "page", "guide", "tool", "template", "other")
PRIORITIES = ("high", "medium", "low")
DEVELOPMENT_STATUSES = ("planned", "in_progress", "review", "testing")
ALTERNATIVE_KINDS = ("internal", "external")
ORIGINS = ("manual", "detection", "reactive")


@dataclass(slots=True)
class Alternative:
    title: str
    url: str
    description: str
    kind: str = "internal"


@dataclass(slots=True)
class ResourceEntry:
    id: str
    resource_url: str
    source_url: str
    resource_type: str
    title: str
    description: str
    priority: str = "medium"
    development_status: str = "planned"
    progress: int = 0
    estimated_date: str | None = None
    alternatives: list[Alternative] = field(default_factory=list)
    origin: str = "manual"
    created_at: str | None = None
    updated_at: str | None = None


def default_alternatives() -> list[Alternative]:
    return [
        Alternative(
            title="Ressources disponibles",
            url="/ressources",
            description="Découvrez toutes nos ressources actuellement disponibles",
            kind="internal",
        ),
        Alternative(
            title="Nous contacter",
            url="/contact",
            description="Contactez-nous pour des besoins spécifiques",
            kind="internal",
        ),
    ]
