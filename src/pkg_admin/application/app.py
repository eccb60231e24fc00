from __future__ import annotations

import dataclasses
import inspect
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional, TypeVar

from ..config.settings import AppOptions
from ..domain.constants import AppErrorCode
from ..domain.exceptions import AppError
from ..domain.ports import Clock, RefreshScheduler
from .token_manager import AccessTokenManager

if TYPE_CHECKING:
    from .registry import AppRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class App:
    """
    Context object for a collection of services sharing one credential and
    one access-token lifecycle.

    Services are created lazily through ``get_or_init_service`` and torn down
    with the app.
    """

    def __init__(
        self,
        options: AppOptions,
        name: str,
        registry: Optional["AppRegistry"] = None,
        *,
        scheduler: Optional[RefreshScheduler] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        if not isinstance(options, AppOptions):
            raise AppError(
                AppErrorCode.INVALID_APP_OPTIONS,
                "Invalid app options passed as the first argument to initialize_app() for the "
                f'app named "{name}". Options must be an AppOptions instance.',
            )

        self._name = name
        self._options = dataclasses.replace(options)
        self._registry = registry
        self._services: Dict[str, Any] = {}
        self._deleted = False

        if self._options.credential is None:
            # imported lazily: google-auth is only needed for ADC
            from ..credential.factory import application_default

            self._options.credential = application_default()

        credential = self._options.credential
        if not callable(getattr(credential, "get_access_token", None)):
            raise AppError(
                AppErrorCode.INVALID_APP_OPTIONS,
                "Invalid app options passed as the first argument to initialize_app() for the "
                f'app named "{name}". The "credential" property must be an object which '
                "implements the Credential interface.",
            )

        self._token_manager = AccessTokenManager(credential, scheduler=scheduler, clock=clock)

    # --- Read-only properties ---------------------------------------------

    @property
    def name(self) -> str:
        self._check_destroyed()
        return self._name

    @property
    def options(self) -> AppOptions:
        self._check_destroyed()
        return dataclasses.replace(self._options)

    @property
    def token_manager(self) -> AccessTokenManager:
        self._check_destroyed()
        return self._token_manager

    @property
    def is_deleted(self) -> bool:
        return self._deleted

    # --- Services -----------------------------------------------------------

    def get_or_init_service(self, name: str, init: Callable[["App"], T]) -> T:
        """Return the service ``name``, creating it with ``init(app)`` once."""
        self._check_destroyed()
        if name not in self._services:
            self._services[name] = init(self)
        return self._services[name]

    # --- Lifecycle ----------------------------------------------------------

    async def delete(self) -> None:
        """
        Render this app unusable: stop token refreshes, drop listeners and
        delete every service that exposes ``delete()``.
        """
        self._check_destroyed()
        if self._registry is not None:
            self._registry._remove_app(self)

        self._token_manager.delete()

        try:
            for service_name, service in list(self._services.items()):
                delete = getattr(service, "delete", None)
                if not callable(delete):
                    continue
                result = delete()
                if inspect.isawaitable(result):
                    await result
                logger.debug("Deleted service %s of app %s", service_name, self._name)
        finally:
            # already unregistered; never leave a half-deleted app usable
            self._services = {}
            self._deleted = True

    def _check_destroyed(self) -> None:
        if self._deleted:
            raise AppError(
                AppErrorCode.APP_DELETED,
                f'App named "{self._name}" has already been deleted.',
            )

    def __repr__(self) -> str:
        return f"App(name={self._name!r}, deleted={self._deleted})"
