from __future__ import annotations

import logging
import socket
import time
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from stopgap.core.urls import resolve_url
from stopgap.domain.models.links import ValidationOptions, ValidationResult

logger = logging.getLogger(__name__)

_NON_RETRYABLE_MARKERS = (
    "invalid url",
    "unknown url type",
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "connection refused",
    "certificate",
    "ssl",
)


class _NoRedirectHandler(urllib.request.HTTPRedirectHandler):
    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


def _open(request: urllib.request.Request, *, timeout: float, follow_redirects: bool):
    if follow_redirects:
        return urllib.request.urlopen(request, timeout=timeout)
    opener = urllib.request.build_opener(_NoRedirectHandler)
    return opener.open(request, timeout=timeout)


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, (socket.timeout, TimeoutError)):
        return True
    reason = getattr(exc, "reason", None)
    return isinstance(reason, (socket.timeout, TimeoutError)) or "timed out" in str(exc).lower()


def _is_non_retryable(exc: BaseException) -> bool:
    message = str(getattr(exc, "reason", None) or exc).lower()
    return any(marker in message for marker in _NON_RETRYABLE_MARKERS)


class HttpLinkValidator:
    """Validates links with HEAD requests, falling back to GET when HEAD is refused."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")

    def validate_link(self, url: str, options: ValidationOptions) -> ValidationResult:
        target = resolve_url(self.base_url, url)
        attempts = max(1, int(options.retry_attempts))
        started = time.perf_counter()
        last = ValidationResult(url=url, status="broken", error="No response")

        for attempt in range(1, attempts + 1):
            try:
                status_code = self._request_status(target, options)
            except Exception as exc:
                elapsed_ms = int((time.perf_counter() - started) * 1000)
                status = "timeout" if _is_timeout(exc) else "broken"
                last = ValidationResult(
                    url=url,
                    status=status,
                    error="Request timeout" if status == "timeout" else str(getattr(exc, "reason", None) or exc),
                    response_time_ms=elapsed_ms,
                )
                logger.debug("Validation attempt %d/%d failed for %s: %s", attempt, attempts, target, exc)
                if status == "broken" and _is_non_retryable(exc):
                    break
                continue

            elapsed_ms = int((time.perf_counter() - started) * 1000)
            result = ValidationResult(
                url=url,
                status=self._status_for_code(status_code),
                status_code=status_code,
                response_time_ms=elapsed_ms,
            )
            if result.status == "broken":
                result.error = f"HTTP {status_code}"
            return result

        return last

    def validate_batch(
        self,
        urls: list[str],
        options: ValidationOptions,
        cancellation_check: Callable[[], bool] | None = None,
    ) -> list[ValidationResult]:
        batch_size = max(1, int(options.batch_size))
        results: list[ValidationResult] = []

        with ThreadPoolExecutor(max_workers=batch_size) as executor:
            for start in range(0, len(urls), batch_size):
                if cancellation_check is not None and cancellation_check():
                    logger.info("Link validation cancelled after %d/%d links", len(results), len(urls))
                    break
                batch = urls[start : start + batch_size]
                results.extend(executor.map(lambda u: self.validate_link(u, options), batch))
                logger.info("Validated %d/%d links", len(results), len(urls))
                if start + batch_size < len(urls) and options.rate_limit_delay > 0:
                    time.sleep(options.rate_limit_delay)
        return results

    def _request_status(self, target: str, options: ValidationOptions) -> int:
        headers = {
            "User-Agent": options.user_agent,
            "Accept": "*/*",
            "Accept-Language": "fr-FR,fr;q=0.9,en;q=0.8",
        }
        for method in ("HEAD", "GET"):
            request = urllib.request.Request(target, headers=headers, method=method)
            try:
                with _open(request, timeout=options.timeout, follow_redirects=options.follow_redirects) as response:
                    return int(response.status)
            except urllib.error.HTTPError as exc:
                if method == "HEAD" and exc.code in {405, 501}:
                    continue
                return int(exc.code)
        raise RuntimeError(f"No response for {target}")

    @staticmethod
    def _status_for_code(code: int) -> str:
        if 200 <= code < 300:
            return "valid"
        if 300 <= code < 400:
            return "redirect"
        return "broken"
