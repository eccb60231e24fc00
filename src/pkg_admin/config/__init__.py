from __future__ import annotations

from .env import (
    FIREBASE_AUTH_EMULATOR_HOST_VAR,
    FIREBASE_CONFIG_VAR,
    auth_emulator_host,
    options_from_env,
    use_auth_emulator,
)
from .settings import AppOptions

__all__ = [
    "AppOptions",
    "FIREBASE_CONFIG_VAR",
    "FIREBASE_AUTH_EMULATOR_HOST_VAR",
    "options_from_env",
    "auth_emulator_host",
    "use_auth_emulator",
]
