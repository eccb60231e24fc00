from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from ...domain.constants import AppErrorCode
from ...domain.exceptions import AppError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10.0

# retried once before giving up
_RETRYABLE_ERRORS = (httpx.TimeoutException, httpx.NetworkError)


@dataclass(slots=True)
class HttpRequestConfig:
    method: str
    url: str
    headers: Optional[Dict[str, str]] = None
    data: Union[str, bytes, Mapping[str, Any], None] = None
    timeout: Optional[float] = None  # seconds


class HttpResponse:
    """
    Response received from a remote server.

    ``data`` is the parsed JSON body and raises when the body is not JSON;
    use ``is_json()`` to check first.
    """

    _UNPARSED = object()

    def __init__(
        self,
        status: int,
        headers: Mapping[str, str],
        text: str,
        request: str,
        data: Any = _UNPARSED,
        parse_error: Optional[Exception] = None,
    ) -> None:
        self.status = status
        self.headers = httpx.Headers(headers)
        self.text = text
        self._request = request
        self._data = data
        self._parse_error = parse_error

    @classmethod
    def from_httpx(cls, resp: httpx.Response) -> "HttpResponse":
        data: Any = cls._UNPARSED
        parse_error: Optional[Exception] = None
        try:
            data = resp.json()
        except ValueError as exc:
            parse_error = exc
        return cls(
            status=resp.status_code,
            headers=resp.headers,
            text=resp.text,
            request=f"{resp.request.method} {resp.request.url}",
            data=data,
            parse_error=parse_error,
        )

    def is_json(self) -> bool:
        return self._data is not self._UNPARSED

    @property
    def data(self) -> Any:
        if self.is_json():
            return self._data
        raise AppError(
            AppErrorCode.UNABLE_TO_PARSE_RESPONSE,
            f'Error while parsing response data: "{self._parse_error}". Raw server '
            f'response: "{self.text}". Status code: "{self.status}". Outgoing '
            f'request: "{self._request}."',
        )


class HttpError(Exception):
    """Raised for responses with a non-2xx status."""

    def __init__(self, response: HttpResponse) -> None:
        super().__init__(f"Server responded with status {response.status}.")
        self.response = response


class HttpClient:
    """
    Minimal async HTTP client on top of httpx.

    - 2xx responses resolve to an HttpResponse
    - other statuses raise HttpError
    - low-level network errors are retried once, then raised as AppError
      (network-timeout / network-error)
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._timeout = timeout

    async def send(self, config: HttpRequestConfig) -> HttpResponse:
        if self._client is not None:
            return await self._send_with_retry(self._client, config)

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._send_with_retry(client, config)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    async def _send_with_retry(
        self,
        client: httpx.AsyncClient,
        config: HttpRequestConfig,
    ) -> HttpResponse:
        try:
            resp = await self._send_once(client, config)
        except _RETRYABLE_ERRORS as exc:
            logger.debug("Retrying %s %s after %r", config.method, config.url, exc)
            try:
                resp = await self._send_once(client, config)
            except httpx.TimeoutException as retry_exc:
                raise AppError(
                    AppErrorCode.NETWORK_TIMEOUT,
                    f"Error while making request: {retry_exc}.",
                ) from retry_exc
            except httpx.TransportError as retry_exc:
                raise self._network_error(retry_exc) from retry_exc
        except httpx.TransportError as exc:
            raise self._network_error(exc) from exc

        response = HttpResponse.from_httpx(resp)
        if not 200 <= response.status < 300:
            raise HttpError(response)
        return response

    async def _send_once(self, client: httpx.AsyncClient, config: HttpRequestConfig) -> httpx.Response:
        kwargs: Dict[str, Any] = {"headers": config.headers}
        if isinstance(config.data, Mapping):
            kwargs["json"] = dict(config.data)
        elif config.data is not None:
            kwargs["content"] = config.data
        if config.timeout is not None:
            kwargs["timeout"] = config.timeout
        return await client.request(config.method, config.url, **kwargs)

    @staticmethod
    def _network_error(exc: httpx.TransportError) -> AppError:
        return AppError(
            AppErrorCode.NETWORK_ERROR,
            f"Error while making request: {exc}. Error code: {type(exc).__name__}",
        )
