from __future__ import annotations

import pytest
import requests

from geo_registry.common.errors import ProviderUnavailable
from geo_registry.common.http import (
    HttpClient,
    HttpRequestError,
    RetryableHttpError,
    RetryConfig,
    TimeoutConfig,
)


class FakeResponse:
    def __init__(self, status_code: int, payload=None, raises_json: bool = False):
        self.status_code = status_code
        self._payload = payload
        self._raises_json = raises_json

    def json(self):
        if self._raises_json:
            raise ValueError("bad json")
        return self._payload


def test_http_get_json_success(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))

    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(200, {"ok": True}))
    payload = client.get_json("https://example.com")

    assert payload == {"ok": True}


def test_http_sends_user_agent_params_and_timeout_tuple(monkeypatch):
    client = HttpClient(timeout=TimeoutConfig(connect=5, read=10), user_agent="geo-registry-test/1.0")
    seen = {}

    def fake_request(**kwargs):
        seen.update(kwargs)
        return FakeResponse(200, [])

    monkeypatch.setattr(client.session, "request", fake_request)
    client.get_json("https://example.com/search", params={"q": "Darkhan"})

    assert seen["method"] == "GET"
    assert seen["params"] == {"q": "Darkhan"}
    assert seen["timeout"] == (5, 10)
    assert seen["headers"]["User-Agent"] == "geo-registry-test/1.0"


def test_http_retryable_status_raises_retryable_error(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(503, {"x": 1}))

    with pytest.raises(RetryableHttpError):
        client.get_json("https://example.com")


def test_http_client_error_status_is_not_retryable(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(403))

    with pytest.raises(HttpRequestError) as excinfo:
        client.get_json("https://example.com")
    assert not isinstance(excinfo.value, RetryableHttpError)


def test_http_invalid_json_raises(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=1))
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: FakeResponse(200, raises_json=True))

    with pytest.raises(HttpRequestError):
        client.get_json("https://example.com")


def test_http_connection_error_maps_to_provider_unavailable(monkeypatch):
    client = HttpClient()

    def boom(**_kwargs):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(client.session, "request", boom)

    with pytest.raises(ProviderUnavailable):
        client.get_json("https://example.com")


def test_http_default_is_a_single_attempt(monkeypatch):
    client = HttpClient()
    calls = []

    def fake_request(**_kwargs):
        calls.append(1)
        return FakeResponse(503)

    monkeypatch.setattr(client.session, "request", fake_request)
    with pytest.raises(RetryableHttpError):
        client.get_json("https://example.com")
    assert len(calls) == 1


def test_http_configured_retry_recovers(monkeypatch):
    client = HttpClient(retry=RetryConfig(max_attempts=2, multiplier=0.0, max_wait=0.0))
    responses = [FakeResponse(503), FakeResponse(200, {"ok": True})]
    monkeypatch.setattr(client.session, "request", lambda **_kwargs: responses.pop(0))

    assert client.get_json("https://example.com") == {"ok": True}
    assert responses == []
