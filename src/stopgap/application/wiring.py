from __future__ import annotations

from dataclasses import dataclass

from stopgap.application.services.detection_service import DetectionService
from stopgap.application.services.health_service import HealthService
from stopgap.application.services.request_router_service import RequestRouterService
from stopgap.application.services.site_index_service import SiteIndexService
from stopgap.application.services.temporary_page_service import TemporaryPageService
from stopgap.core.config import AppPaths, RemediationSettings
from stopgap.infrastructure.db.repos.redirect_rule_repo import RedirectRuleRepo
from stopgap.infrastructure.db.repos.resource_entry_repo import ResourceEntryRepo
from stopgap.infrastructure.links.http_validator import HttpLinkValidator
from stopgap.infrastructure.links.protocols import LinkScanner, LinkValidator
from stopgap.infrastructure.links.site_scanner import SiteLinkScanner


@dataclass(slots=True)
class RemediationServices:
    pages: TemporaryPageService
    site_index: SiteIndexService
    detection: DetectionService
    router: RequestRouterService
    health: HealthService


def build_services(
    paths: AppPaths,
    settings: RemediationSettings,
    *,
    scanner: LinkScanner | None = None,
    validator: LinkValidator | None = None,
) -> RemediationServices:
    pages = TemporaryPageService(
        ResourceEntryRepo(paths.db_path),
        RedirectRuleRepo(paths.db_path),
        placeholder_base=settings.placeholder_base,
    )
    site_index = SiteIndexService(paths.sitemap_path, pages, base_url=settings.base_url)
    detection = DetectionService(
        pages,
        scanner or SiteLinkScanner(),
        validator or HttpLinkValidator(settings.base_url),
        site_index=site_index,
    )
    return RemediationServices(
        pages=pages,
        site_index=site_index,
        detection=detection,
        router=RequestRouterService(pages, settings.router),
        health=HealthService(paths.db_path, site_index=site_index),
    )
