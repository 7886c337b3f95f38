import asyncio
from pathlib import Path
from urllib.parse import urlsplit

import pytest
from fastapi.testclient import TestClient

from stopgap.application.services.request_router_service import RequestRouterService
from stopgap.core.config import AppPaths, RemediationSettings, RouterSettings
from stopgap.web.app import create_app


def _paths(tmp_path: Path) -> AppPaths:
    project_root = tmp_path / "proj"
    project_root.mkdir(parents=True, exist_ok=True)
    return AppPaths(
        project_root=project_root,
        stopgap_dir=project_root / ".stopgap",
        db_path=project_root / ".stopgap" / "stopgap.db",
        export_dir=project_root / ".stopgap" / "exports",
        sitemap_path=project_root / "public" / "sitemap.xml",
    )


def _client(tmp_path: Path, **router_overrides) -> TestClient:
    router = RouterSettings(**{"reactive_background": False, **router_overrides})
    settings = RemediationSettings(base_url="https://site.test", router=router)
    return TestClient(create_app(_paths(tmp_path), settings))


def test_web_app_end_to_end_smoke(tmp_path: Path) -> None:
    client = _client(tmp_path)

    r = client.post("/api/init")
    assert r.status_code == 200
    assert r.json()["ok"] is True

    r = client.post(
        "/api/temporary-pages",
        json={"resource_url": "/ressources/guide.pdf", "source_url": "/ressources", "priority": "high"},
    )
    assert r.status_code == 200
    created = r.json()
    assert created["action"] == "created"
    assert "url=%2Fressources%2Fguide.pdf" in created["route"]

    r = client.get("/api/temporary-pages")
    assert r.json()["count"] == 1
    assert r.json()["items"][0]["route"] == created["route"]

    r = client.get("/api/temporary-pages/stats")
    assert r.json() == {
        "total": 1,
        "by_type": {"download": 1},
        "by_priority": {"high": 1},
        "by_status": {"planned": 1},
    }

    r = client.patch(
        "/api/temporary-pages",
        json={"resource_url": "/ressources/guide.pdf", "progress": 50, "development_status": "in_progress"},
    )
    assert r.status_code == 200
    assert r.json()["entry"]["progress"] == 50
    assert r.json()["entry"]["priority"] == "high"

    r = client.get("/api/redirects")
    assert r.json()["items"] == [
        {"source": "/ressources/guide.pdf", "destination": created["route"], "permanent": False}
    ]

    # Broken resource is redirected to its temporary page
    r = client.get("/ressources/guide.pdf", follow_redirects=False)
    assert r.status_code == 307
    location = r.headers["location"]
    assert location == created["route"]

    parts = urlsplit(location)
    r = client.get(f"{parts.path}?{parts.query}")
    assert r.status_code == 200
    assert r.json()["registered"] is True
    assert r.json()["resource"]["url"] == "/ressources/guide.pdf"
    assert r.json()["resource"]["priority"] == "high"

    # Sitemap
    r = client.get("/sitemap.xml")
    assert r.status_code == 404
    r = client.post("/api/sitemap/sync")
    assert r.json()["added"] == 1
    r = client.get("/sitemap.xml")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/xml")
    assert "https://site.test/temporary-resource?url=%2Fressources%2Fguide.pdf" in r.text
    r = client.get("/api/sitemap/validate")
    assert r.json()["ok"] is True
    assert r.json()["placeholder_count"] == 1

    # Removal stops the redirect
    r = client.delete("/api/temporary-pages", params={"url": "/ressources/guide.pdf"})
    assert r.json()["removed"] is True
    r = client.get("/ressources/guide.pdf", follow_redirects=False)
    assert r.status_code == 404


def test_web_app_maps_validation_errors_to_400(tmp_path: Path) -> None:
    client = _client(tmp_path)

    r = client.post("/api/temporary-pages", json={"resource_url": "/a.pdf", "priority": "urgent"})
    assert r.status_code == 400
    assert "priority" in r.json()["detail"]

    r = client.patch("/api/temporary-pages", json={"resource_url": "/missing.pdf", "progress": 10})
    assert r.status_code == 404

    r = client.get("/temporary-resource")
    assert r.status_code == 400


def test_reactive_creation_through_middleware(tmp_path: Path) -> None:
    client = _client(tmp_path, reactive_creation=True)

    r = client.get(
        "/downloads/catalogue.pdf",
        headers={"referer": "https://site.test/ressources"},
        follow_redirects=False,
    )
    assert r.status_code == 307
    assert r.headers["location"].startswith("/temporary-resource?url=%2Fdownloads%2Fcatalogue.pdf")

    items = client.get("/api/temporary-pages").json()["items"]
    assert [(i["resource_url"], i["origin"], i["source_url"]) for i in items] == [
        ("/downloads/catalogue.pdf", "reactive", "/ressources")
    ]

    r = client.get("/api/anything.pdf", follow_redirects=False)
    assert r.status_code == 404
    assert client.get("/api/temporary-pages").json()["count"] == 1


def test_routing_decisions_run_off_the_event_loop(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    loop_threads: list[bool] = []
    original_decide = RequestRouterService.decide

    def recording_decide(self, request):
        try:
            asyncio.get_running_loop()
            loop_threads.append(True)
        except RuntimeError:
            loop_threads.append(False)
        return original_decide(self, request)

    monkeypatch.setattr(RequestRouterService, "decide", recording_decide)
    client = _client(tmp_path)

    r = client.get("/api/temporary-pages")

    assert r.status_code == 200
    assert loop_threads == [False]
