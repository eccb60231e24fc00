from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional


@dataclass(frozen=True, slots=True)
class AccessToken:
    """
    OAuth2 bearer token used to authenticate outbound calls.

    Superseded (never mutated) by every refresh.
    """
    access_token: str
    expiration_time_millis: int

    def is_expired(self, now_millis: float) -> bool:
        return self.expiration_time_millis <= now_millis

    def millis_until_expiry(self, now_millis: float) -> float:
        return self.expiration_time_millis - now_millis


@dataclass(frozen=True, slots=True)
class PublicKeyCache:
    """
    Key-id -> PEM map from a certificate endpoint.

    ``expires_at_millis`` is None when the endpoint sent no ``max-age``;
    such a cache is re-fetched on the next lookup.
    """
    keys: Mapping[str, str] = field(default_factory=dict)
    expires_at_millis: Optional[int] = None

    def is_valid(self, now_millis: float) -> bool:
        return self.expires_at_millis is not None and now_millis < self.expires_at_millis


@dataclass(frozen=True, slots=True)
class DecodedToken:
    header: Dict[str, Any] = field(default_factory=dict)
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def kid(self) -> str:
        return self.header.get("kid") or ""
