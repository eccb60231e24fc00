from __future__ import annotations

import json
import os
from typing import Any, Dict, Optional

from ..domain.constants import AppErrorCode
from ..domain.exceptions import AppError
from .settings import AppOptions

# Holds either inline JSON (starting with "{") or a path to a JSON file.
FIREBASE_CONFIG_VAR = "FIREBASE_CONFIG"
FIREBASE_AUTH_EMULATOR_HOST_VAR = "FIREBASE_AUTH_EMULATOR_HOST"

_OPTION_KEYS = {
    "projectId": "project_id",
    "databaseURL": "database_url",
    "storageBucket": "storage_bucket",
    "serviceAccountId": "service_account_id",
    "databaseAuthVariableOverride": "database_auth_variable_override",
}


def options_from_env() -> AppOptions:
    """
    Build AppOptions from the FIREBASE_CONFIG environment variable.

    Unset or empty -> empty options. Unknown keys are ignored; both the
    camelCase keys of the console config and snake_case names are accepted.
    """
    raw = os.getenv(FIREBASE_CONFIG_VAR)
    if not raw:
        return AppOptions()

    try:
        if raw.lstrip().startswith("{"):
            config = json.loads(raw)
        else:
            with open(raw, "r", encoding="utf-8") as fh:
                config = json.load(fh)
    except (OSError, ValueError) as exc:
        raise AppError(
            AppErrorCode.INVALID_APP_OPTIONS,
            f"Failed to parse app options file: {exc}",
        ) from exc

    if not isinstance(config, dict):
        raise AppError(
            AppErrorCode.INVALID_APP_OPTIONS,
            f"Failed to parse app options file: expected a JSON object, got {type(config).__name__}",
        )

    fields: Dict[str, Any] = {}
    for camel, snake in _OPTION_KEYS.items():
        if camel in config:
            fields[snake] = config[camel]
        elif snake in config:
            fields[snake] = config[snake]
    return AppOptions(**fields)


def _host(key: str) -> Optional[str]:
    raw = os.getenv(key)
    if raw is None:
        return None
    raw = raw.strip()
    return raw or None


def auth_emulator_host() -> Optional[str]:
    return _host(FIREBASE_AUTH_EMULATOR_HOST_VAR)


def use_auth_emulator() -> bool:
    return auth_emulator_host() is not None
