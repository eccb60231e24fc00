from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping, Protocol, Union, runtime_checkable

TokenListener = Callable[[str], None]
RefreshCallback = Callable[[], Awaitable[None]]
Clock = Callable[[], float]


@runtime_checkable
class Credential(Protocol):
    """
    Port for anything able to mint OAuth2 access tokens.

    Implementations live in the adapters layer (google-auth backed) or are
    supplied by the host application.
    """

    def get_access_token(
        self,
    ) -> Union[Mapping[str, Any], Awaitable[Mapping[str, Any]]]:
        """
        Return (or resolve to) ``{"access_token": str, "expires_in": number}``.

        ``expires_in`` is the remaining lifetime in seconds.
        """
        ...


class KeyFetcher(Protocol):
    async def fetch_public_keys(self) -> Mapping[str, str]:
        """Return the current key-id -> PEM map."""
        ...


class SignatureVerifier(Protocol):
    async def verify(self, token: str) -> None:
        """
        Verify signature and validity window of ``token``.

        Raises:
          - JwtError (token-expired, invalid-token, invalid-argument,
            no-matching-kid-error)
        """
        ...


class RefreshScheduler(Protocol):
    """
    Holds at most one pending refresh.

    ``schedule`` replaces whatever was pending before.
    """

    @property
    def pending(self) -> bool:
        ...

    def schedule(self, delay_millis: float, callback: RefreshCallback) -> None:
        ...

    def cancel(self) -> None:
        ...

    def shutdown(self) -> None:
        ...
