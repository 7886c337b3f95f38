from __future__ import annotations

import logging
from dataclasses import asdict, is_dataclass
from typing import Any

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import RedirectResponse, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request

from stopgap.application.services.detection_service import DetectionConfig
from stopgap.application.services.project_service import ProjectService
from stopgap.application.services.request_router_service import RequestRouterService, RouteRequest
from stopgap.application.services.temporary_page_service import TemporaryPageRequest
from stopgap.application.wiring import build_services
from stopgap.core.config import AppPaths, RemediationSettings, load_settings
from stopgap.core.errors import StopgapError, ValidationError
from stopgap.core.urls import parse_placeholder_route
from stopgap.domain.models.resource_entry import Alternative

logger = logging.getLogger(__name__)


class AlternativeModel(BaseModel):
    title: str
    url: str
    description: str = ""
    type: str = "internal"


class TemporaryPageCreateRequest(BaseModel):
    resource_url: str
    source_url: str | None = None
    resource_type: str | None = None
    title: str | None = None
    description: str | None = None
    estimated_date: str | None = None
    priority: str | None = None
    development_status: str | None = None
    progress: int | None = None
    alternatives: list[AlternativeModel] | None = None


class TemporaryPageUpdateRequest(BaseModel):
    resource_url: str
    source_url: str | None = None
    resource_type: str | None = None
    title: str | None = None
    description: str | None = None
    estimated_date: str | None = None
    priority: str | None = None
    development_status: str | None = None
    progress: int | None = None
    alternatives: list[AlternativeModel] | None = None


class DetectRequest(BaseModel):
    base_url: str | None = None
    max_depth: int = 3
    include_external: bool = False
    update_sitemap: bool = False


def _jsonable(value: Any) -> Any:
    if is_dataclass(value):
        return asdict(value)
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return value


def _alternatives(models: list[AlternativeModel] | None) -> list[Alternative] | None:
    if models is None:
        return None
    return [Alternative(title=m.title, url=m.url, description=m.description, kind=m.type) for m in models]


class RemediationMiddleware(BaseHTTPMiddleware):
    """Sends requests for known-missing resources to their temporary page."""

    def __init__(self, app: Any, router: RequestRouterService) -> None:
        super().__init__(app)
        self.router = router

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        decision = await run_in_threadpool(
            self.router.decide,
            RouteRequest(path=request.url.path, referrer=request.headers.get("referer")),
        )
        if decision.is_redirect and decision.location:
            logger.debug("Redirecting %s to %s (%s)", request.url.path, decision.location, decision.reason)
            return RedirectResponse(url=decision.location, status_code=307)
        return await call_next(request)


def create_app(paths: AppPaths, settings: RemediationSettings | None = None) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title="Stopgap", version="0.1.0")

    project_service = ProjectService(paths)
    project_service.init_project()
    services = build_services(paths, settings)

    app.add_middleware(RemediationMiddleware, router=services.router)

    @app.on_event("shutdown")
    def _shutdown_router() -> None:
        services.router.shutdown()

    def _fail(exc: StopgapError) -> HTTPException:
        if isinstance(exc, ValidationError):
            return HTTPException(status_code=400, detail=str(exc))
        logger.error("Request failed: %s", exc)
        return HTTPException(status_code=500, detail=str(exc))

    @app.post("/api/init")
    def api_init() -> dict[str, Any]:
        result = project_service.init_project()
        return {
            "ok": True,
            "db_path": str(result.db_path),
            "paths_created": [str(p) for p in result.paths_created],
            "registered_pages": result.registered_pages,
            "reactive_pages": result.reactive_pages,
            "sitemap_present": result.sitemap_present,
        }

    @app.get("/api/temporary-pages")
    def api_list_pages() -> dict[str, Any]:
        try:
            entries = services.pages.list()
        except StopgapError as exc:
            raise _fail(exc) from exc
        return {
            "count": len(entries),
            "items": [
                {**_jsonable(entry), "route": services.pages.route_for(entry)} for entry in entries.values()
            ],
        }

    @app.post("/api/temporary-pages")
    def api_create_page(req: TemporaryPageCreateRequest) -> dict[str, Any]:
        try:
            result = services.pages.upsert(
                TemporaryPageRequest(
                    resource_url=req.resource_url,
                    source_url=req.source_url,
                    resource_type=req.resource_type,
                    title=req.title,
                    description=req.description,
                    estimated_date=req.estimated_date,
                    priority=req.priority,
                    development_status=req.development_status,
                    progress=req.progress,
                    alternatives=_alternatives(req.alternatives),
                )
            )
        except StopgapError as exc:
            raise _fail(exc) from exc
        return {"ok": True, "action": result.action, "route": result.route, "entry": _jsonable(result.entry)}

    @app.patch("/api/temporary-pages")
    def api_update_page(req: TemporaryPageUpdateRequest) -> dict[str, Any]:
        changes = req.model_dump(exclude_unset=True, exclude_none=True)
        resource_url = changes.pop("resource_url")
        if "alternatives" in changes:
            changes["alternatives"] = _alternatives(req.alternatives)
        try:
            entry = services.pages.update(resource_url, **changes)
        except StopgapError as exc:
            raise _fail(exc) from exc
        if entry is None:
            raise HTTPException(status_code=404, detail=f"Temporary page not found: {resource_url}")
        return {"ok": True, "route": services.pages.route_for(entry), "entry": _jsonable(entry)}

    @app.delete("/api/temporary-pages")
    def api_delete_page(url: str = Query(..., min_length=1)) -> dict[str, Any]:
        try:
            removed = services.pages.remove(url)
        except StopgapError as exc:
            raise _fail(exc) from exc
        return {"ok": True, "removed": removed}

    @app.get("/api/temporary-pages/stats")
    def api_page_stats() -> dict[str, Any]:
        try:
            return _jsonable(services.pages.stats())
        except StopgapError as exc:
            raise _fail(exc) from exc

    @app.get("/api/redirects")
    def api_redirects() -> dict[str, Any]:
        try:
            rules = services.pages.list_redirects()
        except StopgapError as exc:
            raise _fail(exc) from exc
        return {"count": len(rules), "items": _jsonable(rules)}

    @app.post("/api/detect")
    def api_detect(req: DetectRequest) -> dict[str, Any]:
        config = DetectionConfig(
            base_url=(req.base_url or settings.base_url).rstrip("/"),
            max_depth=req.max_depth,
            include_external=req.include_external,
        )
        result = services.detection.detect_and_create_temporary_pages(config)
        payload: dict[str, Any] = {"ok": not result.errors, "result": _jsonable(result)}
        if req.update_sitemap:
            try:
                payload["sitemap"] = _jsonable(services.detection.update_site_index())
            except StopgapError as exc:
                raise _fail(exc) from exc
        return payload

    @app.post("/api/sitemap/sync")
    def api_sitemap_sync() -> dict[str, Any]:
        try:
            result = services.site_index.sync()
        except StopgapError as exc:
            raise _fail(exc) from exc
        return {"ok": True, **_jsonable(result)}

    @app.get("/api/sitemap/validate")
    def api_sitemap_validate() -> dict[str, Any]:
        try:
            return _jsonable(services.site_index.validate())
        except StopgapError as exc:
            raise _fail(exc) from exc

    @app.get("/sitemap.xml")
    def sitemap_xml() -> Response:
        if not paths.sitemap_path.exists():
            raise HTTPException(status_code=404, detail="Sitemap not generated yet.")
        return Response(content=paths.sitemap_path.read_text(encoding="utf-8"), media_type="application/xml")

    @app.get(settings.placeholder_base)
    def temporary_resource(request: Request) -> dict[str, Any]:
        payload = parse_placeholder_route(str(request.url))
        if not payload.get("url"):
            raise HTTPException(status_code=400, detail="Missing 'url' parameter.")
        try:
            entry = services.pages.get(payload["url"])
        except StopgapError as exc:
            raise _fail(exc) from exc
        return {
            "resource": payload,
            "registered": entry is not None,
            "entry": _jsonable(entry) if entry is not None else None,
        }

    return app
