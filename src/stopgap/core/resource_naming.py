from __future__ import annotations

import re

DOCUMENT_EXTENSIONS: tuple[str, ...] = ("pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "zip", "rar")

_DOCUMENT_EXT_RE = re.compile(r"\.(" + "|".join(DOCUMENT_EXTENSIONS) + r")$", flags=re.IGNORECASE)
_TYPE_RULES: list[tuple[str, tuple[str, ...]]] = [
    ("guide", ("/guide", "/guides")),
    ("tool", ("/tool", "/tools", "/outils")),
    ("template", ("/template", "/templates", "/modele", "/modeles")),
]

TYPE_LABELS: dict[str, str] = {
    "download": "Téléchargement",
    "page": "Page",
    "guide": "Guide",
    "tool": "Outil",
    "template": "Template",
    "other": "Ressource",
}

TYPE_DESCRIPTIONS: dict[str, str] = {
    "download": "Ce fichier est actuellement en cours de création et sera disponible prochainement.",
    "page": "Cette page est actuellement en cours de développement et sera disponible prochainement.",
    "guide": "Ce guide est actuellement en cours de rédaction et sera disponible prochainement.",
    "tool": "Cet outil est actuellement en cours de développement et sera disponible prochainement.",
    "template": "Ce template est actuellement en cours de création et sera disponible prochainement.",
    "other": "Cette ressource est actuellement en cours de développement et sera disponible prochainement.",
}


def _path_only(url: str) -> str:
    return re.sub(r"[?#].*$", "", str(url or "").strip())


def has_document_extension(url: str) -> bool:
    return bool(_DOCUMENT_EXT_RE.search(_path_only(url)))


def _has_segment(path: str, segment: str) -> bool:
    # "/guide" matches "/guide", "/guide/x" and "/guide-x" but not "/guidelines".
    pattern = re.escape(segment) + r"(?:$|[/\-_.])"
    return bool(re.search(pattern, path))


def infer_resource_type(url: str) -> str:
    path = _path_only(url).lower()

    if _has_segment(path, "/download") or _has_segment(path, "/downloads") or has_document_extension(path):
        return "download"

    for resource_type, needles in _TYPE_RULES:
        if any(_has_segment(path, needle) for needle in needles):
            return resource_type

    if path.startswith("/"):
        return "page"
    return "other"


def clean_segment_name(url: str) -> str:
    segments = [segment for segment in _path_only(url).split("/") if segment]
    last = segments[-1] if segments else "ressource"
    cleaned = _DOCUMENT_EXT_RE.sub("", last)
    cleaned = re.sub(r"[-_]+", " ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    if not cleaned:
        cleaned = "ressource"
    return " ".join(word[:1].upper() + word[1:] for word in cleaned.split(" "))


def derive_title(url: str, resource_type: str | None) -> str:
    label = TYPE_LABELS.get(resource_type or "", TYPE_LABELS["other"])
    return f"{label} : {clean_segment_name(url)}"


def default_description(resource_type: str | None) -> str:
    return TYPE_DESCRIPTIONS.get(resource_type or "", TYPE_DESCRIPTIONS["other"])
