from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

# Plug into routes for the OpenAPI "Authorize" button; missing headers are
# handled by TokenExtractor, not by FastAPI.
bearer_scheme = HTTPBearer(auto_error=False)

DEFAULT_COOKIE_NAME = "access_token"


@dataclass(frozen=True, slots=True)
class TokenExtractor:
    """
    Locates the signed token on an incoming request.

    Lookup order: parsed bearer credentials, the raw Authorization header
    (scheme matched case-insensitively), then ``cookie_name``. A
    ``cookie_name`` of None disables the cookie fallback.
    """

    cookie_name: Optional[str] = DEFAULT_COOKIE_NAME

    def find(
        self,
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = None,
    ) -> Optional[str]:
        if credentials is not None and credentials.credentials.strip():
            return credentials.credentials.strip()

        scheme, _, value = request.headers.get("Authorization", "").partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()

        if self.cookie_name:
            return request.cookies.get(self.cookie_name) or None
        return None

    def require(
        self,
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = None,
    ) -> str:
        token = self.find(request, credentials)
        if token is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return token

