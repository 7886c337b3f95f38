from __future__ import annotations

import uuid

from stopgap.core.urls import normalize_resource_url


def resource_id_for(resource_url: str) -> str:
    """Registry key of a resource: UUID5 of its normalized URL in the URL namespace."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, normalize_resource_url(resource_url)))
