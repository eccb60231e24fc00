from __future__ import annotations

import logging
import time
from typing import Dict, Mapping, Optional

from ...domain.constants import JwtErrorCode
from ...domain.entities import PublicKeyCache
from ...domain.exceptions import JwtError
from ...domain.ports import Clock, KeyFetcher
from ...domain.value_objects import CertificateUrl
from ..http.client import HttpClient, HttpError, HttpRequestConfig

logger = logging.getLogger(__name__)


def _now_millis() -> int:
    return int(time.time() * 1000)


def parse_max_age(cache_control: Optional[str]) -> Optional[int]:
    """
    Extract ``max-age`` (seconds) from a Cache-Control header value.
    """
    if not cache_control:
        return None
    max_age: Optional[int] = None
    for part in cache_control.split(","):
        name, _, value = part.strip().partition("=")
        if name.strip().lower() != "max-age":
            continue
        try:
            max_age = int(value.strip())
        except ValueError:
            logger.debug("Ignoring malformed max-age directive: %r", part)
    return max_age


class UrlKeyFetcher(KeyFetcher):
    """
    Fetches key-id -> PEM maps from a certificate URL, cached until the
    ``max-age`` announced by the server runs out.

    No locking: concurrent callers during a fetch may all hit the network;
    the last response wins, which is harmless for public keys.
    """

    def __init__(
        self,
        client_cert_url: str,
        *,
        http_client: Optional[HttpClient] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._url = CertificateUrl(client_cert_url)
        self._http = http_client or HttpClient()
        self._clock: Clock = clock or _now_millis
        self._cache: Optional[PublicKeyCache] = None

    @property
    def cache(self) -> Optional[PublicKeyCache]:
        return self._cache

    async def fetch_public_keys(self) -> Mapping[str, str]:
        """
        Return the cached keys, or fetch them when missing or stale.

        Raises:
            JwtError(internal-error) for error responses from the endpoint.
        """
        if self._cache is not None and self._cache.is_valid(self._clock()):
            return self._cache.keys
        return await self._refresh()

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    async def _refresh(self) -> Mapping[str, str]:
        logger.debug("Fetching public keys from %s", self._url)
        try:
            resp = await self._http.send(HttpRequestConfig(method="GET", url=str(self._url)))
            # non-JSON bodies and bodies with an "error" field are failures too
            if (
                not resp.is_json()
                or not isinstance(resp.data, Mapping)
                or _error_field(resp.data) is not None
            ):
                raise HttpError(resp)
        except HttpError as exc:
            raise JwtError(JwtErrorCode.INTERNAL_ERROR, _describe_http_error(exc)) from exc

        expires_at: Optional[int] = None
        max_age = parse_max_age(resp.headers.get("cache-control"))
        if max_age is not None:
            expires_at = int(self._clock() + max_age * 1000)

        keys: Dict[str, str] = dict(resp.data)
        self._cache = PublicKeyCache(keys=keys, expires_at_millis=expires_at)
        return keys


def _error_field(data: object) -> object:
    if isinstance(data, Mapping):
        return data.get("error")
    return None


def _describe_http_error(exc: HttpError) -> str:
    message = "Error fetching public keys for Google certs: "
    resp = exc.response
    error = _error_field(resp.data) if resp.is_json() else None
    if error:
        message += f"{error}"
        description = resp.data.get("error_description")
        if description:
            message += f" ({description})"
    else:
        message += resp.text
    return message
