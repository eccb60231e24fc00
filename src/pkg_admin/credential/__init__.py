"""
pkg_admin.credential

Credential factories:

- cert(...): service account key (dict or path to the JSON file)
- refresh_token(...): OAuth2 refresh token (dict or path)
- application_default(): Application Default Credentials

Each factory returns an object exposing ``get_access_token()``, which is all
the app needs.
"""

from __future__ import annotations

from ..adapters.google.credentials import (
    ApplicationDefaultCredential,
    RefreshTokenCredential,
    ServiceAccountCredential,
)
from ..domain.ports import Credential
from .factory import (
    application_default,
    cert,
    clear_global_app_default_cred,
    is_application_default,
    refresh_token,
)

__all__ = [
    "Credential",
    "ApplicationDefaultCredential",
    "RefreshTokenCredential",
    "ServiceAccountCredential",
    "application_default",
    "cert",
    "refresh_token",
    "is_application_default",
    "clear_global_app_default_cred",
]
