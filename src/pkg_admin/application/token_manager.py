from __future__ import annotations

import asyncio
import functools
import inspect
import json
import logging
import math
import time
from numbers import Real
from typing import Any, List, Mapping, Optional

from ..domain.constants import (
    AppErrorCode,
    MAX_PROACTIVE_REFRESH_ATTEMPTS,
    ONE_MINUTE_MILLIS,
    RefreshState,
    TOKEN_REFRESH_RETRY_DELAY_MILLIS,
    TOKEN_REFRESH_THRESHOLD_MILLIS,
)
from ..domain.entities import AccessToken
from ..domain.exceptions import AppError
from ..domain.ports import Clock, Credential, RefreshCallback, RefreshScheduler, TokenListener
from .scheduler import AsyncioRefreshScheduler

logger = logging.getLogger(__name__)

INVALID_GRANT_HINT = (
    " There are two likely causes: (1) your server time is not properly synced or (2) "
    "your certificate key file has been revoked. To solve (1), re-sync the time on your "
    "server. To solve (2), make sure the key ID for your key file is still present at "
    "https://console.firebase.google.com/iam-admin/serviceaccounts/project. If not, "
    "generate a new key file at "
    "https://console.firebase.google.com/project/_/settings/serviceaccounts/adminsdk."
)


def _now_millis() -> int:
    return int(time.time() * 1000)


class AccessTokenManager:
    """
    Owns the access token of a single app.

    - ``get_token`` serves the cached token while it has not expired and
      serialises every credential call through one lock.
    - Each successful fetch notifies the listeners and re-arms the proactive
      refresh (five minutes before expiry, or on the next minute boundary for
      short-lived tokens).
    - Proactive failures are retried every minute, at most five attempts in a
      row; they never surface to callers.
    """

    def __init__(
        self,
        credential: Credential,
        *,
        scheduler: Optional[RefreshScheduler] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._credential = credential
        self._scheduler: RefreshScheduler = scheduler or AsyncioRefreshScheduler()
        self._clock: Clock = clock or _now_millis

        self._cached_token: Optional[AccessToken] = None
        self._listeners: List[TokenListener] = []
        self._retry_attempts = 0
        # bumped on every successful fetch; stale proactive callbacks compare against it
        self._generation = 0
        self._refreshing = False
        self._deleted = False
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    @property
    def state(self) -> RefreshState:
        if self._deleted:
            return RefreshState.DELETED
        if self._refreshing:
            return RefreshState.REFRESHING
        if self._scheduler.pending:
            return RefreshState.SCHEDULED
        return RefreshState.IDLE

    @property
    def retry_attempts(self) -> int:
        return self._retry_attempts

    async def get_token(self, force_refresh: bool = False) -> AccessToken:
        """
        Return the cached token, or fetch a new one from the credential.

        Raises:
            AppError(invalid-credential) when the credential returns a
            malformed token, AppError(credential-fetch-failed) when it raises,
            AppError(app-deleted) after ``delete()``.
        """
        self._check_deleted()
        if not force_refresh and self._has_valid_token():
            return self._cached_token  # type: ignore[return-value]

        async with self._lock:
            self._check_deleted()
            # another caller may have refreshed while we waited
            if not force_refresh and self._has_valid_token():
                return self._cached_token  # type: ignore[return-value]
            return await self._refresh_token()

    def get_cached_token(self) -> Optional[AccessToken]:
        return self._cached_token

    def add_auth_token_listener(self, listener: TokenListener) -> None:
        """
        Register ``listener``; it is called right away when a token exists.
        """
        self._listeners.append(listener)
        if self._cached_token is not None:
            listener(self._cached_token.access_token)

    def remove_auth_token_listener(self, listener: TokenListener) -> None:
        self._listeners = [other for other in self._listeners if other != listener]

    def delete(self) -> None:
        """Cancel pending refreshes and drop listeners."""
        self._deleted = True
        self._scheduler.shutdown()
        self._listeners.clear()

    # ------------------------------------------------------------------ #
    # Internal: fetching
    # ------------------------------------------------------------------ #

    def _has_valid_token(self) -> bool:
        return self._cached_token is not None and not self._cached_token.is_expired(self._clock())

    def _check_deleted(self) -> None:
        if self._deleted:
            raise AppError(
                AppErrorCode.APP_DELETED,
                "The access token manager has already been deleted.",
            )

    async def _refresh_token(self) -> AccessToken:
        self._refreshing = True
        try:
            try:
                result = self._credential.get_access_token()
                if inspect.isawaitable(result):
                    result = await result
            except Exception as exc:
                raise self._wrap_fetch_error(exc) from exc

            token = self._to_access_token(result)
        finally:
            self._refreshing = False

        # update the cache before notifying; listeners may read it back
        self._cached_token = token
        self._retry_attempts = 0
        self._generation += 1
        logger.debug("Fetched access token valid until %d", token.expiration_time_millis)

        self._schedule_proactive_refresh(token)
        self._notify_listeners(token.access_token)
        return token

    def _notify_listeners(self, access_token: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(access_token)
            except Exception:  # noqa: BLE001
                logger.exception("Auth token listener %r raised", listener)

    def _to_access_token(self, result: Any) -> AccessToken:
        # the credential may be user supplied, so check the shape weakly
        access_token = result.get("access_token") if isinstance(result, Mapping) else None
        expires_in = result.get("expires_in") if isinstance(result, Mapping) else None
        if (
            not isinstance(access_token, str)
            or not access_token
            or isinstance(expires_in, bool)
            or not isinstance(expires_in, Real)
            # nan, inf and lifetimes too large for a millisecond timestamp
            or not math.isfinite(expires_in * 1000)
            or expires_in < 0
        ):
            raise AppError(
                AppErrorCode.INVALID_CREDENTIAL,
                f'Invalid access token generated: "{_describe(result)}". Valid access tokens '
                'must be an object with the "expires_in" (number) and "access_token" '
                "(string) properties.",
            )

        return AccessToken(
            access_token=access_token,
            expiration_time_millis=int(self._clock() + expires_in * 1000),
        )

    @staticmethod
    def _wrap_fetch_error(exc: Exception) -> AppError:
        detail = getattr(exc, "message", None) or str(exc)
        message = (
            'Credential implementation provided to initialize_app() via the "credential" '
            "property failed to fetch a valid Google OAuth2 access token with the following "
            f'error: "{detail}".'
        )
        if "invalid_grant" in message:
            message += INVALID_GRANT_HINT
        return AppError(AppErrorCode.CREDENTIAL_FETCH_FAILED, message)

    # ------------------------------------------------------------------ #
    # Internal: proactive refresh
    # ------------------------------------------------------------------ #

    def _schedule_proactive_refresh(self, token: AccessToken) -> None:
        if self._deleted:
            return

        remaining = token.millis_until_expiry(self._clock())
        delay = remaining - TOKEN_REFRESH_THRESHOLD_MILLIS
        if delay <= 0:
            # short-lived token: refresh on the next minute boundary
            delay = remaining % ONE_MINUTE_MILLIS or ONE_MINUTE_MILLIS
            if delay >= remaining:
                self._scheduler.cancel()
                return

        self._scheduler.schedule(delay, self._proactive_callback())

    def _proactive_callback(self) -> RefreshCallback:
        return functools.partial(self._proactive_refresh, self._generation)

    async def _proactive_refresh(self, generation: int) -> None:
        async with self._lock:
            if self._deleted:
                return
            if generation != self._generation:
                # a fetch finished while this callback was queued and re-armed the timer
                logger.debug("Skipping superseded proactive token refresh")
                return
            try:
                await self._refresh_token()
            except Exception as exc:  # noqa: BLE001
                self._on_proactive_failure(exc)

    def _on_proactive_failure(self, exc: Exception) -> None:
        self._retry_attempts += 1
        if self._deleted:
            return
        if self._retry_attempts < MAX_PROACTIVE_REFRESH_ATTEMPTS:
            logger.warning(
                "Proactive token refresh failed (attempt %d of %d), retrying: %s",
                self._retry_attempts,
                MAX_PROACTIVE_REFRESH_ATTEMPTS,
                exc,
            )
            self._scheduler.schedule(TOKEN_REFRESH_RETRY_DELAY_MILLIS, self._proactive_callback())
            return

        logger.error(
            "Proactive token refresh failed %d times in a row; "
            "waiting for the current token to expire: %s",
            self._retry_attempts,
            exc,
        )


def _describe(result: Any) -> str:
    try:
        return json.dumps(result)
    except (TypeError, ValueError):
        return repr(result)
