"""Structural interfaces for the link scanning and validation collaborators."""

from __future__ import annotations

from typing import Callable, Protocol

from stopgap.domain.models.links import ScannedLink, ScanRequest, ValidationOptions, ValidationResult


class LinkScanner(Protocol):
    """Discovers links across the site, each tagged with where it was found."""

    def scan_site(self, request: ScanRequest) -> list[ScannedLink]:
        ...


class LinkValidator(Protocol):
    """Checks whether links resolve."""

    def validate_link(self, url: str, options: ValidationOptions) -> ValidationResult:
        ...

    def validate_batch(
        self,
        urls: list[str],
        options: ValidationOptions,
        cancellation_check: Callable[[], bool] | None = None,
    ) -> list[ValidationResult]:
        """Return one result per URL in input order; stops early when cancelled."""
        ...
