import socket
import urllib.error

import pytest

from stopgap.domain.models.links import ValidationOptions
from stopgap.infrastructure.links import http_validator
from stopgap.infrastructure.links.http_validator import HttpLinkValidator


class _Response:
    def __init__(self, status: int) -> None:
        self.status = status

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        return None


def _http_error(url: str, code: int) -> urllib.error.HTTPError:
    return urllib.error.HTTPError(url, code, "error", hdrs=None, fp=None)


def _options(**overrides) -> ValidationOptions:
    values = {"timeout": 1.0, "retry_attempts": 2, "batch_size": 2, "rate_limit_delay": 0.0}
    values.update(overrides)
    return ValidationOptions(**values)


def test_relative_links_resolve_against_base_url(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[tuple[str, str]] = []

    def fake_open(request, *, timeout, follow_redirects):
        seen.append((request.get_method(), request.full_url))
        return _Response(200)

    monkeypatch.setattr(http_validator, "_open", fake_open)

    result = HttpLinkValidator("http://localhost:3000/").validate_link("/ressources/guide.pdf", _options())

    assert result.status == "valid"
    assert result.status_code == 200
    assert result.url == "/ressources/guide.pdf"
    assert seen == [("HEAD", "http://localhost:3000/ressources/guide.pdf")]


def test_head_refusal_falls_back_to_get(monkeypatch: pytest.MonkeyPatch) -> None:
    methods: list[str] = []

    def fake_open(request, *, timeout, follow_redirects):
        methods.append(request.get_method())
        if request.get_method() == "HEAD":
            raise _http_error(request.full_url, 405)
        return _Response(200)

    monkeypatch.setattr(http_validator, "_open", fake_open)

    result = HttpLinkValidator("https://site.test").validate_link("/outils", _options())

    assert result.status == "valid"
    assert methods == ["HEAD", "GET"]


@pytest.mark.parametrize(("code", "status", "error"), [(404, "broken", "HTTP 404"), (301, "redirect", None)])
def test_status_codes_map_to_validation_status(
    monkeypatch: pytest.MonkeyPatch, code: int, status: str, error: str | None
) -> None:
    def fake_open(request, *, timeout, follow_redirects):
        raise _http_error(request.full_url, code)

    monkeypatch.setattr(http_validator, "_open", fake_open)

    result = HttpLinkValidator("https://site.test").validate_link("/x", _options(follow_redirects=False))

    assert result.status == status
    assert result.status_code == code
    assert result.error == error


def test_timeouts_are_retried_then_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = {"count": 0}

    def fake_open(request, *, timeout, follow_redirects):
        calls["count"] += 1
        raise urllib.error.URLError(socket.timeout("timed out"))

    monkeypatch.setattr(http_validator, "_open", fake_open)

    result = HttpLinkValidator("https://site.test").validate_link("/slow", _options(retry_attempts=3))

    assert result.status == "timeout"
    assert result.error == "Request timeout"
    assert calls["count"] == 3


def test_unresolvable_hosts_are_not_retried(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = {"count": 0}

    def fake_open(request, *, timeout, follow_redirects):
        calls["count"] += 1
        raise urllib.error.URLError("[Errno -2] Name or service not known")

    monkeypatch.setattr(http_validator, "_open", fake_open)

    result = HttpLinkValidator("https://site.test").validate_link("https://gone.invalid/", _options(retry_attempts=3))

    assert result.status == "broken"
    assert "Name or service not known" in result.error
    assert calls["count"] == 1



def test_zero_retry_budget_still_makes_one_attempt(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = {"count": 0}

    def fake_open(request, *, timeout, follow_redirects):
        calls["count"] += 1
        raise ConnectionResetError("connection reset by peer")

    monkeypatch.setattr(http_validator, "_open", fake_open)

    result = HttpLinkValidator("https://site.test").validate_link("/flaky", _options(retry_attempts=0))

    assert calls["count"] == 1
    assert result.status == "broken"
    assert result.error == "connection reset by peer"
    assert result.response_time_ms is not None

def test_validate_batch_keeps_order_and_honours_cancellation(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_open(request, *, timeout, follow_redirects):
        if request.full_url.endswith("/missing"):
            raise _http_error(request.full_url, 404)
        return _Response(204)

    monkeypatch.setattr(http_validator, "_open", fake_open)
    validator = HttpLinkValidator("https://site.test")
    urls = ["/a", "/missing", "/b", "/c"]

    results = validator.validate_batch(urls, _options())
    assert [r.url for r in results] == urls
    assert [r.status for r in results] == ["valid", "broken", "valid", "valid"]

    checks = {"count": 0}

    def cancel_after_first_batch() -> bool:
        checks["count"] += 1
        return checks["count"] > 1

    partial = validator.validate_batch(urls, _options(), cancellation_check=cancel_after_first_batch)
    assert [r.url for r in partial] == ["/a", "/missing"]
