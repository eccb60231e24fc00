from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..config.env import options_from_env
from ..config.settings import AppOptions
from ..domain.constants import DEFAULT_APP_NAME, AppErrorCode, AppEvent
from ..domain.exceptions import AppError
from ..domain.ports import Clock, RefreshScheduler
from ..domain.value_objects import AppName
from .app import App

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[App], Any]
AppHook = Callable[[AppEvent, App], None]
ServiceAccessor = Callable[[Optional[App]], Any]


@dataclass(slots=True)
class ServiceRegistration:
    name: str
    factory: ServiceFactory
    app_hook: Optional[AppHook] = None


class AppRegistry:
    """
    Explicit registry of named apps and pluggable services.

    Several registries can coexist (e.g. one per test); the module-level
    ``default_registry`` backs the convenience functions below.
    """

    def __init__(
        self,
        *,
        scheduler_factory: Optional[Callable[[], RefreshScheduler]] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._apps: Dict[str, App] = {}
        self._services: Dict[str, ServiceRegistration] = {}
        self._scheduler_factory = scheduler_factory
        self._clock = clock

    # ------------------------------------------------------------------ #
    # Apps
    # ------------------------------------------------------------------ #

    def initialize_app(
        self,
        options: Optional[AppOptions] = None,
        name: str = DEFAULT_APP_NAME,
    ) -> App:
        """
        Create and register an app.

        Without ``options`` the app is configured from FIREBASE_CONFIG and
        Application Default Credentials.

        Raises:
            AppError(invalid-app-name), AppError(duplicate-app),
            AppError(invalid-app-options)
        """
        self._validate_name(name)
        if name in self._apps:
            if name == DEFAULT_APP_NAME:
                message = (
                    "The default app already exists. This means you called initialize_app() "
                    "more than once without providing an app name as the second argument. In "
                    "most cases you only need to call initialize_app() once. But if you do want "
                    "to initialize multiple apps, pass a second argument to initialize_app() to "
                    "give each app a unique name."
                )
            else:
                message = (
                    f'App named "{name}" already exists. This means you called initialize_app() '
                    "more than once with the same app name as the second argument. Make sure you "
                    "provide a unique name every time you call initialize_app()."
                )
            raise AppError(AppErrorCode.DUPLICATE_APP, message)

        if options is None:
            options = options_from_env()

        app = App(
            options,
            name,
            registry=self,
            scheduler=self._scheduler_factory() if self._scheduler_factory else None,
            clock=self._clock,
        )
        self._apps[name] = app
        logger.debug("Initialized app %s", name)
        self._call_app_hooks(app, AppEvent.CREATE)
        return app

    def get_app(self, name: str = DEFAULT_APP_NAME) -> App:
        self._validate_name(name)
        if name not in self._apps:
            message = (
                "The default app does not exist. "
                if name == DEFAULT_APP_NAME
                else f'App named "{name}" does not exist. '
            )
            message += "Make sure you call initialize_app() before using any of the services."
            raise AppError(AppErrorCode.NO_APP, message)
        return self._apps[name]

    def get_apps(self) -> List[App]:
        return list(self._apps.values())

    async def delete_app(self, app: App) -> None:
        if not isinstance(app, App):
            raise AppError(AppErrorCode.INVALID_ARGUMENT, "Invalid app argument.")
        existing = self.get_app(app.name)
        await existing.delete()

    async def clear_all_apps(self) -> None:
        for app in self.get_apps():
            await self.delete_app(app)

    # ------------------------------------------------------------------ #
    # Services
    # ------------------------------------------------------------------ #

    def register_service(
        self,
        name: str,
        factory: ServiceFactory,
        app_hook: Optional[AppHook] = None,
    ) -> ServiceAccessor:
        """
        Register ``factory`` under ``name``.

        Returns an accessor ``accessor(app=None)`` that yields the (lazily
        created, per-app memoised) service for ``app`` or the default app.
        """
        if not isinstance(name, str) or name == "":
            raise AppError(
                AppErrorCode.INVALID_ARGUMENT,
                f'Invalid service name "{name}" provided. Service name must be a non-empty string.',
            )
        if name in self._services:
            raise AppError(
                AppErrorCode.INTERNAL_ERROR,
                f'Service named "{name}" has already been registered.',
            )
        if not callable(factory):
            raise AppError(
                AppErrorCode.INVALID_ARGUMENT,
                f'Service factory for "{name}" must be callable.',
            )

        self._services[name] = ServiceRegistration(name=name, factory=factory, app_hook=app_hook)

        def accessor(app: Optional[App] = None) -> Any:
            return self.get_service(name, app)

        return accessor

    def get_service(self, name: str, app: Optional[App] = None) -> Any:
        registration = self._services.get(name)
        if registration is None:
            raise AppError(
                AppErrorCode.INTERNAL_ERROR,
                f'Service named "{name}" has not been registered.',
            )
        target = app if app is not None else self.get_app()
        return target.get_or_init_service(name, registration.factory)

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    def _remove_app(self, app: App) -> None:
        """Called by ``App.delete()``."""
        name = app.name
        if self._apps.get(name) is not app:
            return
        self._call_app_hooks(app, AppEvent.DELETE)
        del self._apps[name]
        logger.debug("Removed app %s", name)

    def _call_app_hooks(self, app: App, event: AppEvent) -> None:
        for registration in list(self._services.values()):
            if registration.app_hook is not None:
                registration.app_hook(event, app)

    @staticmethod
    def _validate_name(name: object) -> None:
        try:
            AppName(name)  # type: ignore[arg-type]
        except ValueError as exc:
            raise AppError(AppErrorCode.INVALID_APP_NAME, str(exc)) from exc


default_registry = AppRegistry()


def initialize_app(options: Optional[AppOptions] = None, name: str = DEFAULT_APP_NAME) -> App:
    return default_registry.initialize_app(options, name)


def get_app(name: str = DEFAULT_APP_NAME) -> App:
    return default_registry.get_app(name)


def get_apps() -> List[App]:
    return default_registry.get_apps()


async def delete_app(app: App) -> None:
    """
    Render ``app`` unusable and free its resources (timers, listeners,
    services). Call this before shutting down to stop background refreshes.
    """
    await default_registry.delete_app(app)
