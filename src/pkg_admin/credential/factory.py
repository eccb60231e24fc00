from __future__ import annotations

import json
from typing import Any, Dict, Mapping, Optional, Union

from ..adapters.google.credentials import (
    ApplicationDefaultCredential,
    RefreshTokenCredential,
    ServiceAccountCredential,
)
from ..domain.ports import Credential

_global_app_default_cred: Optional[Credential] = None
_global_cert_creds: Dict[str, ServiceAccountCredential] = {}
_global_refresh_token_creds: Dict[str, RefreshTokenCredential] = {}


def _cache_key(value: Union[str, Mapping[str, Any]]) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def application_default() -> Credential:
    """
    Credential from Application Default Credentials, shared process-wide.
    """
    global _global_app_default_cred
    if _global_app_default_cred is None:
        _global_app_default_cred = ApplicationDefaultCredential()
    return _global_app_default_cred


def cert(service_account_path_or_object: Union[str, Mapping[str, Any]]) -> Credential:
    """
    Credential for a service account key, memoised per key content/path.
    """
    key = _cache_key(service_account_path_or_object)
    if key not in _global_cert_creds:
        _global_cert_creds[key] = ServiceAccountCredential(service_account_path_or_object)
    return _global_cert_creds[key]


def refresh_token(refresh_token_path_or_object: Union[str, Mapping[str, Any]]) -> Credential:
    """
    Credential for an OAuth2 refresh token, memoised per token content/path.
    """
    key = _cache_key(refresh_token_path_or_object)
    if key not in _global_refresh_token_creds:
        _global_refresh_token_creds[key] = RefreshTokenCredential(refresh_token_path_or_object)
    return _global_refresh_token_creds[key]


def is_application_default(credential: Optional[Credential]) -> bool:
    return isinstance(credential, ApplicationDefaultCredential) or (
        isinstance(credential, RefreshTokenCredential) and credential.implicit
    )


def clear_global_app_default_cred() -> None:
    """Forget the shared ADC credential (tests)."""
    global _global_app_default_cred
    _global_app_default_cred = None
