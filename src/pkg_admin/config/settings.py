from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..domain.ports import Credential


@dataclass(slots=True)
class AppOptions:
    """
    Options an app is initialized with.

    Host code decides how to construct this (env, config file, etc.).
    When ``credential`` is None the app falls back to Application Default
    Credentials.
    """
    credential: Optional[Credential] = None
    project_id: Optional[str] = None
    database_url: Optional[str] = None
    storage_bucket: Optional[str] = None
    service_account_id: Optional[str] = None

    # None means "full admin privileges" for database rules
    database_auth_variable_override: Optional[Dict[str, Any]] = None
