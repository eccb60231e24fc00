from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

import jwt
from cryptography import x509
from jwt.exceptions import (
    DecodeError,
    ExpiredSignatureError,
    ImmatureSignatureError,
    InvalidTokenError as JWTInvalidTokenError,
    PyJWTError,
)

from ...domain.constants import ALGORITHM_RS256, JwtErrorCode, NO_MATCHING_KID_ERROR_MESSAGE
from ...domain.entities import DecodedToken
from ...domain.exceptions import JwtError
from ...domain.ports import KeyFetcher, SignatureVerifier
from ...domain.value_objects import SigningAlgorithm
from ..http.client import HttpClient
from .key_fetcher import UrlKeyFetcher

logger = logging.getLogger(__name__)

KeyLookup = Callable[[Mapping[str, Any]], Awaitable[Any]]

# only the signature and the validity window are checked here; audience,
# issuer and subject belong to the caller
_VERIFY_OPTIONS: Dict[str, Any] = {
    "verify_aud": False,
    "verify_iss": False,
    "verify_iat": False,
    "verify_sub": False,
}

_INVALID_SIGNATURE_MESSAGE = "The provided token has invalid signature."
_TOKEN_EXPIRED_MESSAGE = (
    "The provided token has expired. Get a fresh token from your client app and try again."
)


class PublicKeySignatureVerifier(SignatureVerifier):
    """
    Verifies JWT signatures against the public keys published at a
    certificate URL, picked by the token's ``kid`` header.
    """

    def __init__(
        self,
        client_cert_url: str,
        algorithm: str = ALGORITHM_RS256,
        *,
        http_client: Optional[HttpClient] = None,
        key_fetcher: Optional[KeyFetcher] = None,
    ) -> None:
        self._algorithm = SigningAlgorithm(algorithm)
        self._key_fetcher: KeyFetcher = key_fetcher or UrlKeyFetcher(
            client_cert_url,
            http_client=http_client,
        )

    @property
    def algorithm(self) -> str:
        return str(self._algorithm)

    async def verify(self, token: str) -> None:
        valid = await is_signature_valid(
            token,
            self._get_key,
            algorithms=[str(self._algorithm)],
        )
        if not valid:
            raise JwtError(JwtErrorCode.INVALID_TOKEN, _INVALID_SIGNATURE_MESSAGE)

    async def _get_key(self, header: Mapping[str, Any]) -> Any:
        kid = header.get("kid") or ""
        public_keys = await self._key_fetcher.fetch_public_keys()
        if kid not in public_keys:
            raise JwtError(JwtErrorCode.NO_MATCHING_KID, NO_MATCHING_KID_ERROR_MESSAGE)
        return load_public_key(public_keys[kid])


class EmulatorSignatureVerifier(SignatureVerifier):
    """
    Verifier for tokens minted by the local Auth emulator.

    Emulator tokens are unsigned, so no keys are fetched and the signature is
    not checked; only the validity window is. Never use this in production.
    """

    async def verify(self, token: str) -> None:
        valid = await is_signature_valid(
            token,
            "",
            options={"verify_signature": False, "verify_exp": True, "verify_nbf": True},
        )
        if not valid:
            raise JwtError(JwtErrorCode.INVALID_TOKEN, _INVALID_SIGNATURE_MESSAGE)


def load_public_key(pem: str) -> Any:
    """
    Accept PEM public keys as-is and unwrap PEM X.509 certificates.
    """
    if "BEGIN CERTIFICATE" in pem:
        cert = x509.load_pem_x509_certificate(pem.encode("utf-8"))
        return cert.public_key()
    return pem


async def is_signature_valid(
    token: str,
    key_or_lookup: Union[str, bytes, Any, KeyLookup],
    algorithms: Optional[List[str]] = None,
    options: Optional[Dict[str, Any]] = None,
) -> bool:
    """
    Check the signature and validity window of ``token``.

    Returns False for a bad signature or a malformed token.

    Raises:
        JwtError(token-expired) for an expired token
        JwtError(invalid-argument / no-matching-kid-error) when the key
            lookup fails
        JwtError(invalid-token) for other claim failures
    """
    try:
        header = jwt.get_unverified_header(token)
    except DecodeError:
        return False

    key = key_or_lookup
    if callable(key_or_lookup):
        key = await _lookup_key(key_or_lookup, header)

    try:
        jwt.decode(
            token,
            key,
            algorithms=algorithms,
            options={**_VERIFY_OPTIONS, **(options or {})},
        )
    except ExpiredSignatureError as exc:
        raise JwtError(JwtErrorCode.TOKEN_EXPIRED, _TOKEN_EXPIRED_MESSAGE) from exc
    except ImmatureSignatureError as exc:
        raise JwtError(JwtErrorCode.INVALID_TOKEN, str(exc)) from exc
    except JWTInvalidTokenError as exc:
        logger.debug("Token signature rejected: %s", exc)
        return False
    except PyJWTError as exc:
        raise JwtError(JwtErrorCode.INVALID_TOKEN, str(exc)) from exc
    return True


async def _lookup_key(lookup: KeyLookup, header: Mapping[str, Any]) -> Any:
    try:
        return await lookup(header)
    except JwtError as exc:
        if exc.code is JwtErrorCode.NO_MATCHING_KID:
            raise
        raise JwtError(
            JwtErrorCode.INVALID_ARGUMENT,
            exc.message or "Error fetching public keys.",
        ) from exc
    except Exception as exc:
        raise JwtError(
            JwtErrorCode.INVALID_ARGUMENT,
            str(exc) or "Error fetching public keys.",
        ) from exc


def decode_jwt(token: object) -> DecodedToken:
    """
    Decode ``token`` without verifying it.

    Raises:
        JwtError(invalid-argument) for non-strings and undecodable tokens.
    """
    if not isinstance(token, str):
        raise JwtError(JwtErrorCode.INVALID_ARGUMENT, "The provided token must be a string.")
    try:
        header = jwt.get_unverified_header(token)
        payload = jwt.decode(token, options={"verify_signature": False})
    except PyJWTError as exc:
        raise JwtError(JwtErrorCode.INVALID_ARGUMENT, "Decoding token failed.") from exc
    return DecodedToken(header=dict(header), payload=dict(payload))
