from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from stopgap.application.services.temporary_page_service import TemporaryPageRequest, TemporaryPageService
from stopgap.core.config import RouterSettings
from stopgap.core.errors import ValidationError
from stopgap.core.urls import is_below_directory, matches_route_pattern, normalize_resource_url, path_of

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RouteRequest:
    path: str
    referrer: str | None = None


@dataclass(frozen=True, slots=True)
class RouteDecision:
    action: str
    location: str | None = None
    reason: str = ""

    @property
    def is_redirect(self) -> bool:
        return self.action == "redirect"


PASS_THROUGH = "pass"
REDIRECT = "redirect"


class RequestRouterService:
    """Decides per request whether to send the visitor to a temporary page."""

    def __init__(self, page_service: TemporaryPageService, settings: RouterSettings) -> None:
        self.page_service = page_service
        self.settings = settings
        self._exclusions = tuple(settings.exclude_patterns) + (page_service.placeholder_base,)
        self._extensions = tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in settings.handled_extensions
        )
        self._in_flight: set[str] = set()
        self._lock = threading.Lock()
        self._executor: ThreadPoolExecutor | None = None
        if settings.reactive_creation and settings.reactive_background:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="reactive-temporary-pages")

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def decide(self, request: RouteRequest) -> RouteDecision:
        try:
            return self._decide(request)
        except Exception:
            logger.exception("Routing decision failed for %s; passing through", request.path)
            return RouteDecision(action=PASS_THROUGH, reason="error")

    def is_excluded(self, path: str) -> bool:
        return any(matches_route_pattern(path, pattern) for pattern in self._exclusions)

    def is_handled_resource(self, path: str) -> bool:
        lowered = path.lower()
        if lowered.endswith(self._extensions):
            return True
        return any(is_below_directory(path, prefix) for prefix in self.settings.resource_directories)

    def _decide(self, request: RouteRequest) -> RouteDecision:
        path = path_of(request.path) or "/"
        if self.is_excluded(path):
            return RouteDecision(action=PASS_THROUGH, reason="excluded")
        if not self.settings.reactive_redirect:
            return RouteDecision(action=PASS_THROUGH, reason="disabled")

        try:
            resource_url = normalize_resource_url(path)
        except ValidationError:
            return RouteDecision(action=PASS_THROUGH, reason="no_match")

        rule = self.page_service.redirect_repo.get_by_source(resource_url)
        if rule is not None:
            return RouteDecision(action=REDIRECT, location=rule.destination, reason="known")

        if self.settings.reactive_creation and self.is_handled_resource(resource_url):
            return self._reactive(resource_url, request.referrer)

        return RouteDecision(action=PASS_THROUGH, reason="no_match")

    def _reactive(self, resource_url: str, referrer: str | None) -> RouteDecision:
        page_request = TemporaryPageRequest(
            resource_url=resource_url,
            source_url=path_of(referrer) or "/",
            origin="reactive",
        )
        route = self.page_service.route_for(self.page_service.build_entry(page_request))

        # Queued paths count against the cap until their record is written.
        with self._lock:
            if resource_url in self._in_flight:
                return RouteDecision(action=REDIRECT, location=route, reason="reactive")
            stored = self.page_service.entry_repo.count(origin="reactive")
            if stored + len(self._in_flight) >= self.settings.reactive_max_entries:
                logger.warning("Reactive temporary page cap reached; not creating %s", resource_url)
                return RouteDecision(action=PASS_THROUGH, reason="reactive_cap")
            self._in_flight.add(resource_url)

        if self._executor is not None:
            self._executor.submit(self._persist, page_request)
        else:
            self._persist(page_request)
        return RouteDecision(action=REDIRECT, location=route, reason="reactive")

    def _persist(self, page_request: TemporaryPageRequest) -> None:
        try:
            self.page_service.upsert(page_request)
        except Exception:
            logger.exception("Reactive temporary page creation failed for %s", page_request.resource_url)
        finally:
            with self._lock:
                self._in_flight.discard(page_request.resource_url)
