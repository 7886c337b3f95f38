from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from stopgap.core.errors import ConfigurationError

DEFAULT_STOPGAP_DIRNAME = ".stopgap"
DEFAULT_SITEMAP_RELPATH = Path("public") / "sitemap.xml"
DEFAULT_BASE_URL = "http://localhost:3000"
DEFAULT_PLACEHOLDER_BASE = "/temporary-resource"

DEFAULT_EXCLUDE_PATTERNS: tuple[str, ...] = (
    "/api/",
    "/_next/",
    "/admin/",
    "/static/",
    "/favicon.ico",
    "/robots.txt",
    "/sitemap.xml",
)
DEFAULT_HANDLED_EXTENSIONS: tuple[str, ...] = (
    ".pdf",
    ".doc",
    ".docx",
    ".xls",
    ".xlsx",
    ".ppt",
    ".pptx",
    ".zip",
    ".rar",
)
DEFAULT_RESOURCE_DIRECTORIES: tuple[str, ...] = (
    "/ressources/",
    "/downloads/",
    "/guides/",
    "/outils/",
    "/templates/",
)
DEFAULT_REACTIVE_MAX_ENTRIES = 500


@dataclass(frozen=True)
class AppPaths:
    project_root: Path
    stopgap_dir: Path
    db_path: Path
    export_dir: Path
    sitemap_path: Path


@dataclass(frozen=True)
class RouterSettings:
    exclude_patterns: tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    reactive_redirect: bool = True
    reactive_creation: bool = False
    handled_extensions: tuple[str, ...] = DEFAULT_HANDLED_EXTENSIONS
    resource_directories: tuple[str, ...] = DEFAULT_RESOURCE_DIRECTORIES
    reactive_background: bool = True
    reactive_max_entries: int = DEFAULT_REACTIVE_MAX_ENTRIES


@dataclass(frozen=True)
class RemediationSettings:
    base_url: str = DEFAULT_BASE_URL
    placeholder_base: str = DEFAULT_PLACEHOLDER_BASE
    router: RouterSettings = field(default_factory=RouterSettings)


def load_paths(project_root: Path | None = None) -> AppPaths:
    root = (project_root or Path.cwd()).expanduser().resolve()

    stopgap_home_raw = os.getenv("STOPGAP_HOME")
    if stopgap_home_raw:
        stopgap_dir = Path(stopgap_home_raw).expanduser().resolve()
    else:
        stopgap_dir = root / DEFAULT_STOPGAP_DIRNAME

    sitemap_raw = os.getenv("STOPGAP_SITEMAP_PATH")
    if sitemap_raw:
        sitemap_path = Path(sitemap_raw).expanduser().resolve()
    else:
        sitemap_path = root / DEFAULT_SITEMAP_RELPATH

    return AppPaths(
        project_root=root,
        stopgap_dir=stopgap_dir,
        db_path=stopgap_dir / "stopgap.db",
        export_dir=stopgap_dir / "exports",
        sitemap_path=sitemap_path,
    )


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    items = tuple(part.strip() for part in raw.split(",") if part.strip())
    return items or default


def load_settings() -> RemediationSettings:
    base_url = (os.getenv("STOPGAP_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
    placeholder_base = os.getenv("STOPGAP_PLACEHOLDER_BASE") or DEFAULT_PLACEHOLDER_BASE
    if not placeholder_base.startswith("/"):
        placeholder_base = "/" + placeholder_base
    if placeholder_base.rstrip("/") == "":
        raise ConfigurationError("STOPGAP_PLACEHOLDER_BASE must be a path below the site root, not \"/\".")

    router = RouterSettings(
        exclude_patterns=_env_list("STOPGAP_EXCLUDE_PATTERNS", DEFAULT_EXCLUDE_PATTERNS),
        reactive_redirect=_env_bool("STOPGAP_REACTIVE_REDIRECT", True),
        reactive_creation=_env_bool("STOPGAP_REACTIVE_CREATION", False),
        handled_extensions=_env_list("STOPGAP_HANDLED_EXTENSIONS", DEFAULT_HANDLED_EXTENSIONS),
        resource_directories=_env_list("STOPGAP_RESOURCE_DIRECTORIES", DEFAULT_RESOURCE_DIRECTORIES),
        reactive_background=_env_bool("STOPGAP_REACTIVE_BACKGROUND", True),
        reactive_max_entries=_env_int("STOPGAP_REACTIVE_MAX_ENTRIES", DEFAULT_REACTIVE_MAX_ENTRIES),
    )
    return RemediationSettings(
        base_url=base_url,
        placeholder_base=placeholder_base,
        router=router,
    )
