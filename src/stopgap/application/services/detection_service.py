from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable

from stopgap.application.services.site_index_service import SiteIndexService, SiteIndexSyncResult
from stopgap.application.services.temporary_page_service import TemporaryPageRequest, TemporaryPageService
from stopgap.core.config import DEFAULT_BASE_URL
from stopgap.core.errors import DetectionError
from stopgap.core.resource_naming import infer_resource_type
from stopgap.core.urls import source_file_to_route
from stopgap.domain.models.links import ScannedLink, ScanRequest, ValidationOptions, ValidationResult
from stopgap.domain.models.resource_entry import ResourceEntry
from stopgap.infrastructure.links.protocols import LinkScanner, LinkValidator

logger = logging.getLogger(__name__)

REMEDIABLE_LINK_KINDS = frozenset({"internal", "download"})
CLEANUP_OPTIONS = ValidationOptions(timeout=5.0, retry_attempts=1, batch_size=1, rate_limit_delay=0.0)


@dataclass(frozen=True, slots=True)
class DetectionConfig:
    base_url: str = DEFAULT_BASE_URL
    max_depth: int = 3
    exclude_patterns: tuple[str, ...] = (
        "/api/*",
        "/_next/*",
        "/admin/*",
        "*.css",
        "*.js",
        "*.json",
    )
    include_external: bool = False
    timeout: float = 10.0
    retry_attempts: int = 2
    batch_size: int = 10
    rate_limit_delay: float = 0.1
    user_agent: str = "Stopgap-Link-Checker/1.0"


@dataclass(slots=True)
class BrokenLinkDetail:
    url: str
    source_files: list[str]
    link_kind: str
    error: str
    placeholder_created: bool
    outcome: str
    placeholder_url: str | None = None


@dataclass(slots=True)
class DetectionResult:
    total_links: int = 0
    broken_links: int = 0
    placeholders_created: int = 0
    already_remediated: int = 0
    details: list[BrokenLinkDetail] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    cancelled: bool = False


@dataclass(slots=True)
class CleanupResult:
    checked: int = 0
    removed: int = 0
    removed_urls: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def priority_for_reference_count(count: int) -> str:
    if count >= 5:
        return "high"
    if count >= 2:
        return "medium"
    return "low"


def find_best_source_url(link: ScannedLink, all_links: list[ScannedLink]) -> str:
    """Route of the first other page referencing the same URL, else the link's own page."""
    for candidate in all_links:
        if candidate.url == link.url and candidate.source_file != link.source_file:
            return source_file_to_route(candidate.source_file)
    if link.source_file:
        return source_file_to_route(link.source_file)
    return "/"


def resource_type_for_link(link: ScannedLink) -> str:
    if link.link_kind == "download":
        return "download"
    return infer_resource_type(link.url)


class DetectionService:
    def __init__(
        self,
        page_service: TemporaryPageService,
        scanner: LinkScanner,
        validator: LinkValidator,
        *,
        site_index: SiteIndexService | None = None,
    ) -> None:
        self.page_service = page_service
        self.scanner = scanner
        self.validator = validator
        self.site_index = site_index

    def _scan_exclusions(self, config: DetectionConfig) -> tuple[str, ...]:
        # Temporary pages are never crawled, wherever they are mounted.
        placeholder_pattern = f"{self.page_service.placeholder_base.rstrip('/')}*"
        patterns = tuple(config.exclude_patterns)
        if placeholder_pattern in patterns:
            return patterns
        return patterns + (placeholder_pattern,)

    def detect_and_create_temporary_pages(
        self,
        config: DetectionConfig,
        cancellation_check: Callable[[], bool] | None = None,
    ) -> DetectionResult:
        result = DetectionResult()

        def cancelled() -> bool:
            return cancellation_check is not None and bool(cancellation_check())

        try:
            scanned = self.scanner.scan_site(
                ScanRequest(
                    base_url=config.base_url,
                    max_depth=config.max_depth,
                    exclude_patterns=self._scan_exclusions(config),
                    include_external=config.include_external,
                )
            )
        except Exception as exc:
            message = f"Link scan failed: {exc}"
            logger.exception("Link scan failed for %s", config.base_url)
            result.errors.append(message)
            return result

        result.total_links = len(scanned)
        logger.info("Scan found %d links", result.total_links)

        unique_urls = list(dict.fromkeys(link.url for link in scanned))
        options = ValidationOptions(
            timeout=config.timeout,
            retry_attempts=config.retry_attempts,
            batch_size=config.batch_size,
            rate_limit_delay=config.rate_limit_delay,
            follow_redirects=True,
            user_agent=config.user_agent,
        )
        try:
            validations = self.validator.validate_batch(unique_urls, options, cancellation_check=cancellation_check)
        except Exception as exc:
            logger.exception("Link validation failed")
            result.errors.append(f"Link validation failed: {exc}")
            return result

        if cancelled():
            result.cancelled = True

        broken = [v for v in validations if v.is_broken]
        result.broken_links = len(broken)
        logger.info("%d broken links detected", result.broken_links)

        reference_counts = Counter(link.url for link in scanned)
        links_by_url: dict[str, list[ScannedLink]] = {}
        for link in scanned:
            links_by_url.setdefault(link.url, []).append(link)

        for validation in broken:
            if result.cancelled or cancelled():
                result.cancelled = True
                logger.info("Detection cancelled; %d placeholders kept", result.placeholders_created)
                break
            occurrences = links_by_url.get(validation.url, [])
            self._remediate(validation, occurrences, scanned, reference_counts, result)

        logger.info(
            "Detection finished: %d created, %d already remediated, %d errors",
            result.placeholders_created,
            result.already_remediated,
            len(result.errors),
        )
        return result

    def _remediate(
        self,
        validation: ValidationResult,
        occurrences: list[ScannedLink],
        scanned: list[ScannedLink],
        reference_counts: Counter,
        result: DetectionResult,
    ) -> None:
        source_files = list(dict.fromkeys(link.source_file for link in occurrences)) or ["unknown"]
        link = occurrences[0] if occurrences else None
        link_kind = link.link_kind if link else "unknown"

        if link is None or link.link_kind not in REMEDIABLE_LINK_KINDS:
            result.details.append(
                BrokenLinkDetail(
                    url=validation.url,
                    source_files=source_files,
                    link_kind=link_kind,
                    error=validation.error or "External link unreachable",
                    placeholder_created=False,
                    outcome="skipped_external",
                )
            )
            return

        try:
            page = self.page_service.upsert(
                TemporaryPageRequest(
                    resource_url=validation.url,
                    source_url=find_best_source_url(link, scanned),
                    resource_type=resource_type_for_link(link),
                    priority=priority_for_reference_count(reference_counts[validation.url]),
                    origin="detection",
                )
            )
        except Exception as exc:
            message = f"Failed to create temporary page for {validation.url}: {exc}"
            logger.error(message)
            result.errors.append(message)
            result.details.append(
                BrokenLinkDetail(
                    url=validation.url,
                    source_files=source_files,
                    link_kind=link_kind,
                    error=validation.error or "Unknown error",
                    placeholder_created=False,
                    outcome="failed",
                )
            )
            return

        created = page.action == "created"
        if created:
            result.placeholders_created += 1
        else:
            result.already_remediated += 1
        result.details.append(
            BrokenLinkDetail(
                url=validation.url,
                source_files=source_files,
                link_kind=link_kind,
                error=validation.error or "Resource not found",
                placeholder_created=created,
                outcome=page.action,
                placeholder_url=page.route,
            )
        )

    def cleanup_obsolete_pages(self, max_workers: int = 4) -> CleanupResult:
        result = CleanupResult()
        entries: list[ResourceEntry] = list(self.page_service.list().values())
        result.checked = len(entries)
        if not entries:
            return result

        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            futures = {
                executor.submit(self.validator.validate_link, entry.resource_url, CLEANUP_OPTIONS): entry
                for entry in entries
            }
            for future in as_completed(futures):
                entry = futures[future]
                try:
                    validation = future.result()
                    if validation.status != "valid":
                        continue
                    if self.page_service.remove(entry.resource_url):
                        result.removed += 1
                        result.removed_urls.append(entry.resource_url)
                        logger.info("Removed temporary page, resource is available again: %s", entry.resource_url)
                except Exception as exc:
                    message = f"Failed to check {entry.resource_url}: {exc}"
                    logger.error(message)
                    result.errors.append(message)

        result.removed_urls.sort()
        return result

    def update_site_index(self) -> SiteIndexSyncResult:
        if self.site_index is None:
            raise DetectionError("No site index configured for this detection service.")
        return self.site_index.sync()
