import pytest

from stopgap.core.errors import ValidationError
from stopgap.core.urls import (
    build_placeholder_route,
    is_below_directory,
    is_placeholder_location,
    matches_glob_pattern,
    matches_route_pattern,
    normalize_resource_url,
    parse_placeholder_route,
    path_of,
    resolve_url,
    source_file_to_route,
)


def test_normalize_resource_url() -> None:
    assert normalize_resource_url(" guide.pdf#top ") == "/guide.pdf"
    assert normalize_resource_url("/docs/") == "/docs"
    assert normalize_resource_url("/") == "/"
    assert normalize_resource_url("https://example.org/a.pdf") == "https://example.org/a.pdf"


@pytest.mark.parametrize("raw", ["", "   ", "#anchor"])
def test_normalize_resource_url_rejects_empty(raw: str) -> None:
    with pytest.raises(ValidationError, match="required"):
        normalize_resource_url(raw)


def test_placeholder_route_encodes_parameters_in_order() -> None:
    route = build_placeholder_route(
        "/temporary-resource",
        resource_url="/ressources/guide.pdf",
        source_url="/ressources",
        resource_type="download",
        title="Téléchargement : Guide & Annexes",
        description="Bientôt disponible.",
        priority="high",
    )

    assert route.startswith("/temporary-resource?url=%2Fressources%2Fguide.pdf&source=%2Fressources&type=download")
    assert "estimated=" not in route
    assert route.endswith("&priority=high")

    payload = parse_placeholder_route(route)
    assert payload["url"] == "/ressources/guide.pdf"
    assert payload["title"] == "Téléchargement : Guide & Annexes"
    assert payload["priority"] == "high"


def test_is_placeholder_location_matches_path_structurally() -> None:
    assert is_placeholder_location("https://site.test/temporary-resource?url=%2Fa.pdf", "/temporary-resource")
    assert is_placeholder_location("/temporary-resource", "/temporary-resource")
    assert not is_placeholder_location("https://site.test/temporary-resources", "/temporary-resource")
    assert not is_placeholder_location("https://site.test/blog/temporary-resource-notes", "/temporary-resource")


@pytest.mark.parametrize(
    ("source_file", "expected"),
    [
        ("src/app/guides/page.tsx", "/guides"),
        ("app/page.tsx", "/"),
        ("pages/about.tsx", "/about"),
        ("pages/blog/index.jsx", "/blog"),
        ("/contact", "/contact"),
        ("https://site.test/ressources", "/ressources"),
        ("", "/"),
    ],
)
def test_source_file_to_route(source_file: str, expected: str) -> None:
    assert source_file_to_route(source_file) == expected


def test_matches_route_pattern() -> None:
    assert matches_route_pattern("/api/anything.pdf", "/api/")
    assert matches_route_pattern("/api", "/api/")
    assert not matches_route_pattern("/apiary", "/api/")
    assert matches_route_pattern("/_next/static/app.js", "/_next*")
    assert matches_route_pattern("/temporary-resource", "/temporary-resource")
    assert matches_route_pattern("/temporary-resource/x", "/temporary-resource")
    assert not matches_route_pattern("/temporary-resources", "/temporary-resource")
    assert not matches_route_pattern("/anything", "")


def test_matches_glob_pattern_uses_path_of_absolute_urls() -> None:
    assert matches_glob_pattern("/api/users", "/api/*")
    assert matches_glob_pattern("https://site.test/assets/app.css", "*.css")
    assert not matches_glob_pattern("/ressources/guide.pdf", "/api/*")


def test_path_of_and_resolve_url() -> None:
    assert path_of("https://site.test/a/b?x=1") == "/a/b"
    assert path_of("https://site.test") == "/"
    assert path_of(None) == ""
    assert resolve_url("http://localhost:3000/", "/ressources/guide.pdf") == "http://localhost:3000/ressources/guide.pdf"
    assert resolve_url("http://localhost:3000", "https://other.test/x") == "https://other.test/x"


def test_is_below_directory_excludes_the_directory_itself() -> None:
    assert is_below_directory("/ressources/charte", "/ressources/")
    assert is_below_directory("/downloads/a/b.zip", "/downloads")
    assert not is_below_directory("/ressources", "/ressources/")
    assert not is_below_directory("/ressources/", "/ressources/")
    assert not is_below_directory("/ressources-old/x", "/ressources/")
    assert not is_below_directory("/anything", "/")
