from __future__ import annotations

import logging
from dataclasses import dataclass, field

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials

from .security import TokenExtractor, bearer_scheme
from ...adapters.jwt.signature_verifier import decode_jwt
from ...domain.constants import JwtErrorCode
from ...domain.entities import DecodedToken
from ...domain.exceptions import JwtError
from ...domain.ports import SignatureVerifier

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FastAPITokenVerification:
    """
    FastAPI integration for inbound token verification.

    Dependencies:
      - verify_request: 401 for a missing / expired / invalid token,
        503 when the signing keys cannot be retrieved
      - get_optional_token: None instead of an error
    """

    verifier: SignatureVerifier
    extractor: TokenExtractor = field(default_factory=TokenExtractor)

    async def verify_request(
            self,
            request: Request,
            credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    ) -> DecodedToken:
        """Dependency: require a correctly signed, unexpired token."""
        token = self.extractor.require(request, credentials)
        try:
            return await self._verify(token)
        except JwtError as exc:
            raise self._to_http_exception(exc) from exc

    async def get_optional_token(
            self,
            request: Request,
            credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    ) -> DecodedToken | None:
        """Dependency: verified token when present and valid, else None."""
        token = self.extractor.find(request, credentials)
        if token is None:
            return None
        try:
            return await self._verify(token)
        except JwtError as exc:
            logger.debug("Ignoring unverifiable token: %s", exc.message)
            return None

    async def _verify(self, token: str) -> DecodedToken:
        await self.verifier.verify(token)
        return decode_jwt(token)

    @staticmethod
    def _to_http_exception(exc: JwtError) -> HTTPException:
        if exc.code is JwtErrorCode.INVALID_ARGUMENT:
            # key lookup failed: our problem, not the caller's
            logger.warning("Token verification unavailable: %s", exc.message)
            return HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Token verification is temporarily unavailable",
            )
        detail = "Token expired" if exc.code is JwtErrorCode.TOKEN_EXPIRED else exc.message
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
