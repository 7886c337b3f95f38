from __future__ import annotations

from dataclasses import dataclass, field

LINK_KINDS = ("internal", "external", "download")
VALIDATION_STATUSES = ("valid", "broken", "timeout", "redirect")
BROKEN_STATUSES = frozenset({"broken", "timeout"})


@dataclass(slots=True)
class ScannedLink:
    url: str
    source_file: str
    link_kind: str


@dataclass(slots=True)
class ValidationResult:
    url: str
    status: str
    error: str | None = None
    status_code: int | None = None
    response_time_ms: int | None = None

    @property
    def is_broken(self) -> bool:
        return self.status in BROKEN_STATUSES


@dataclass(frozen=True, slots=True)
class ScanRequest:
    base_url: str
    max_depth: int = 3
    exclude_patterns: tuple[str, ...] = field(default_factory=tuple)
    include_external: bool = False


@dataclass(frozen=True, slots=True)
class ValidationOptions:
    timeout: float = 10.0
    retry_attempts: int = 2
    batch_size: int = 10
    rate_limit_delay: float = 0.1
    follow_redirects: bool = True
    user_agent: str = "Stopgap-Link-Checker/1.0"
