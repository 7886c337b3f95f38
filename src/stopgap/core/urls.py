from __future__ import annotations

import fnmatch
import re
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse

from stopgap.core.errors import ValidationError

_ABSOLUTE_RE = re.compile(r"^[a-z][a-z0-9+.\-]*://", flags=re.IGNORECASE)
_APP_ROOT_RE = re.compile(r"^(?:\./)?(?:src/)?(?:app|pages)(?=/|$)")
_ROUTE_MARKER_RE = re.compile(r"/(?:page|index)\.(?:tsx?|jsx?|mdx?|html?)$")
_FILE_EXT_RE = re.compile(r"\.(?:tsx?|jsx?|mdx?|html?|json)$")


def is_absolute_url(url: str) -> bool:
    return bool(_ABSOLUTE_RE.match(str(url or "").strip()))


def normalize_resource_url(url: str) -> str:
    raw = str(url or "").strip()
    if not raw:
        raise ValidationError("Resource URL is required.")
    raw = raw.split("#", 1)[0]
    if not raw:
        raise ValidationError("Resource URL is required.")
    if not is_absolute_url(raw) and not raw.startswith("/"):
        raw = "/" + raw
    if len(raw) > 1 and raw.endswith("/") and not raw.endswith("://"):
        raw = raw.rstrip("/") or "/"
    return raw


def path_of(url: str | None) -> str:
    """Return the path portion of a URL or path, or "" when there is none."""
    raw = str(url or "").strip()
    if not raw:
        return ""
    parsed = urlparse(raw)
    return parsed.path or ("/" if parsed.netloc else "")


def resolve_url(base_url: str, url: str) -> str:
    if is_absolute_url(url):
        return url
    return urljoin(base_url.rstrip("/") + "/", url.lstrip("/"))


def build_placeholder_route(
    placeholder_base: str,
    *,
    resource_url: str,
    source_url: str,
    resource_type: str,
    title: str,
    description: str,
    estimated_date: str | None = None,
    priority: str | None = None,
) -> str:
    params: list[tuple[str, str]] = [
        ("url", resource_url),
        ("source", source_url),
        ("type", resource_type),
        ("title", title),
        ("description", description),
    ]
    if estimated_date:
        params.append(("estimated", estimated_date))
    if priority:
        params.append(("priority", priority))
    return f"{placeholder_base}?{urlencode(params)}"


def parse_placeholder_route(route: str) -> dict[str, str]:
    parsed = urlparse(route)
    return dict(parse_qsl(parsed.query, keep_blank_values=True))


def is_placeholder_location(location: str, placeholder_base: str) -> bool:
    path = urlparse(str(location or "").strip()).path
    return path.rstrip("/") == placeholder_base.rstrip("/")


def source_file_to_route(source_file: str) -> str:
    """Turn a scanned source file (or page path) into the route it serves."""
    raw = str(source_file or "").strip().replace("\\", "/")
    if not raw:
        return "/"
    if is_absolute_url(raw):
        return path_of(raw) or "/"
    route = _APP_ROOT_RE.sub("", raw)
    route = _ROUTE_MARKER_RE.sub("", route)
    route = _FILE_EXT_RE.sub("", route)
    route = re.sub(r"/(?:page|index)$", "", route)
    if not route.startswith("/"):
        route = "/" + route
    if len(route) > 1:
        route = route.rstrip("/")
    return route or "/"


def matches_route_pattern(path: str, pattern: str) -> bool:
    """Prefix match for patterns ending in "/" or "*", exact or sub-path match otherwise."""
    if not pattern:
        return False
    if pattern.endswith("*"):
        return path.startswith(pattern[:-1])
    if pattern.endswith("/"):
        return path.startswith(pattern) or path == pattern.rstrip("/")
    return path == pattern or path.startswith(pattern.rstrip("/") + "/")


def is_below_directory(path: str, directory: str) -> bool:
    """True for paths strictly inside a directory; the directory itself does not match."""
    prefix = directory.rstrip("/") + "/"
    return prefix != "/" and path.startswith(prefix) and len(path) > len(prefix)


def matches_glob_pattern(url: str, pattern: str) -> bool:
    path = path_of(url) if is_absolute_url(url) else str(url or "")
    return fnmatch.fnmatchcase(path, pattern)
