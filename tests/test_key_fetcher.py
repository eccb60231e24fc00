# tests/test_key_fetcher.py
import httpx
import pytest

from conftest import FakeClock
from pkg_admin.adapters.http.client import HttpClient
from pkg_admin.adapters.jwt.key_fetcher import UrlKeyFetcher, parse_max_age
from pkg_admin.domain.constants import AppErrorCode, JwtErrorCode
from pkg_admin.domain.exceptions import AppError, JwtError

CERT_URL = "https://www.googleapis.com/robot/v1/metadata/x509/securetoken@system.gserviceaccount.com"
KEYS = {"key-1": "-----BEGIN PUBLIC KEY-----\nAAA\n-----END PUBLIC KEY-----\n"}


class CountingHandler:
    """Serves the queued responses in order, repeating the last one."""

    def __init__(self, *responses: dict) -> None:
        self.responses = list(responses)
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        kwargs = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        return httpx.Response(**kwargs)


def fetcher_for(handler, clock) -> UrlKeyFetcher:
    http = HttpClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    return UrlKeyFetcher(CERT_URL, http_client=http, clock=clock)


def test_parse_max_age():
    assert parse_max_age("public, max-age=19302, must-revalidate") == 19302
    assert parse_max_age("max-age=0") == 0
    assert parse_max_age("no-cache") is None
    assert parse_max_age("max-age=soon") is None
    assert parse_max_age(None) is None


def test_invalid_url_is_rejected():
    with pytest.raises(ValueError, match="invalid URL"):
        UrlKeyFetcher("not a url")


@pytest.mark.asyncio
async def test_keys_cached_for_max_age():
    clock = FakeClock()
    handler = CountingHandler(
        dict(status_code=200, json=KEYS, headers={"Cache-Control": "public, max-age=3600"}),
    )
    fetcher = fetcher_for(handler, clock)

    first = await fetcher.fetch_public_keys()
    clock.advance(3_599_000)
    second = await fetcher.fetch_public_keys()

    assert first == KEYS
    assert second == KEYS
    assert handler.calls == 1
    assert fetcher.cache.expires_at_millis == 1_000_000 + 3_600_000


@pytest.mark.asyncio
async def test_keys_refetched_after_max_age():
    clock = FakeClock()
    rotated = {"key-2": "pem-2"}
    handler = CountingHandler(
        dict(status_code=200, json=KEYS, headers={"Cache-Control": "max-age=60"}),
        dict(status_code=200, json=rotated, headers={"Cache-Control": "max-age=60"}),
    )
    fetcher = fetcher_for(handler, clock)

    await fetcher.fetch_public_keys()
    clock.advance(60_000)
    keys = await fetcher.fetch_public_keys()

    assert keys == rotated
    assert handler.calls == 2


@pytest.mark.asyncio
async def test_keys_without_max_age_are_not_cached():
    handler = CountingHandler(dict(status_code=200, json=KEYS))
    fetcher = fetcher_for(handler, FakeClock())

    await fetcher.fetch_public_keys()
    await fetcher.fetch_public_keys()

    assert handler.calls == 2
    assert fetcher.cache.expires_at_millis is None


@pytest.mark.asyncio
async def test_error_response_is_wrapped_with_description():
    handler = CountingHandler(
        dict(status_code=400, json={"error": "invalid_request", "error_description": "bad things"}),
    )
    fetcher = fetcher_for(handler, FakeClock())

    with pytest.raises(JwtError) as exc_info:
        await fetcher.fetch_public_keys()

    assert exc_info.value.code is JwtErrorCode.INTERNAL_ERROR
    assert exc_info.value.message == (
        "Error fetching public keys for Google certs: invalid_request (bad things)"
    )


@pytest.mark.asyncio
async def test_error_field_in_ok_response_is_a_failure():
    handler = CountingHandler(dict(status_code=200, json={"error": "quota"}))
    fetcher = fetcher_for(handler, FakeClock())

    with pytest.raises(JwtError) as exc_info:
        await fetcher.fetch_public_keys()

    assert exc_info.value.message.endswith(": quota")
    assert fetcher.cache is None


@pytest.mark.asyncio
async def test_non_json_response_uses_raw_text():
    handler = CountingHandler(dict(status_code=502, text="Bad Gateway"))
    fetcher = fetcher_for(handler, FakeClock())

    with pytest.raises(JwtError) as exc_info:
        await fetcher.fetch_public_keys()

    assert exc_info.value.message == "Error fetching public keys for Google certs: Bad Gateway"


@pytest.mark.asyncio
async def test_network_failure_propagates():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    fetcher = fetcher_for(handler, FakeClock())

    with pytest.raises(AppError) as exc_info:
        await fetcher.fetch_public_keys()

    assert exc_info.value.code is AppErrorCode.NETWORK_ERROR
