from __future__ import annotations

import asyncio
import json
import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import google.auth
import google.auth.transport.requests
from cryptography.hazmat.primitives import serialization
from google.oauth2 import credentials as user_credentials
from google.oauth2 import service_account

from ...domain.constants import AppErrorCode
from ...domain.exceptions import AppError
from ...domain.ports import Credential
from ...domain.value_objects import is_non_empty_string

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/firebase.database",
    "https://www.googleapis.com/auth/firebase.messaging",
    "https://www.googleapis.com/auth/identitytoolkit",
    "https://www.googleapis.com/auth/userinfo.email",
]

PathOrMapping = Union[str, Mapping[str, Any]]


class _GoogleAuthCredential(Credential):
    """
    Shared plumbing: build a google-auth credentials object once, refresh it
    in a worker thread and convert the result to ``access_token`` /
    ``expires_in``.
    """

    def __init__(self) -> None:
        self._google_credentials: Any = None
        self._lock = asyncio.Lock()

    def _build_google_credentials(self) -> Any:
        raise NotImplementedError

    async def get_access_token(self) -> Dict[str, Any]:
        async with self._lock:
            if self._google_credentials is None:
                self._google_credentials = await asyncio.to_thread(self._build_google_credentials)
            creds = self._google_credentials
            await asyncio.to_thread(_refresh, creds)
            return populate_credential(creds)


class ServiceAccountCredential(_GoogleAuthCredential):
    """
    Credential backed by a service account JSON key (mapping or file path).
    """

    def __init__(self, service_account_path_or_object: PathOrMapping, implicit: bool = False) -> None:
        super().__init__()
        info = (
            _load_json_file(service_account_path_or_object, "Failed to parse service account json file")
            if isinstance(service_account_path_or_object, str)
            else service_account_path_or_object
        )
        account = _ServiceAccount.from_mapping(info)
        self.project_id = account.project_id
        self.private_key = account.private_key
        self.client_email = account.client_email
        self.implicit = implicit
        self._info = dict(info)

    def _build_google_credentials(self) -> Any:
        info = {
            **self._info,
            "project_id": self.project_id,
            "private_key": self.private_key,
            "client_email": self.client_email,
        }
        info.setdefault("token_uri", "https://oauth2.googleapis.com/token")
        return service_account.Credentials.from_service_account_info(info, scopes=SCOPES)


class RefreshTokenCredential(_GoogleAuthCredential):
    """
    Credential backed by an OAuth2 refresh token (user credentials file).
    """

    def __init__(self, refresh_token_path_or_object: PathOrMapping, implicit: bool = False) -> None:
        super().__init__()
        info = (
            _load_json_file(refresh_token_path_or_object, "Failed to parse refresh token file")
            if isinstance(refresh_token_path_or_object, str)
            else refresh_token_path_or_object
        )
        self._fields = _validate_refresh_token(info)
        self.implicit = implicit

    def _build_google_credentials(self) -> Any:
        return user_credentials.Credentials.from_authorized_user_info(
            {
                "client_id": self._fields["client_id"],
                "client_secret": self._fields["client_secret"],
                "refresh_token": self._fields["refresh_token"],
            },
            scopes=SCOPES,
        )


class ApplicationDefaultCredential(_GoogleAuthCredential):
    """
    Credential discovered from the environment (Application Default
    Credentials): GOOGLE_APPLICATION_CREDENTIALS, gcloud, metadata server.
    """

    def __init__(self) -> None:
        super().__init__()
        self._project_id: Optional[str] = None

    def _build_google_credentials(self) -> Any:
        creds, project_id = _discover_default()
        self._project_id = project_id
        return creds

    async def get_project_id(self) -> Optional[str]:
        if self._project_id is None:
            async with self._lock:
                if self._google_credentials is None:
                    self._google_credentials = await asyncio.to_thread(self._build_google_credentials)
        return self._project_id


# ---------------------------------------------------------------------- #
# Validation helpers
# ---------------------------------------------------------------------- #


class _ServiceAccount:
    __slots__ = ("project_id", "private_key", "client_email")

    def __init__(self, project_id: str, private_key: str, client_email: str) -> None:
        self.project_id = project_id
        self.private_key = private_key
        self.client_email = client_email

    @classmethod
    def from_mapping(cls, json_obj: object) -> "_ServiceAccount":
        if not isinstance(json_obj, Mapping):
            raise AppError(AppErrorCode.INVALID_CREDENTIAL, "Service account must be an object.")

        project_id = _copy_attr(json_obj, "projectId", "project_id")
        private_key = _copy_attr(json_obj, "privateKey", "private_key")
        client_email = _copy_attr(json_obj, "clientEmail", "client_email")

        if not is_non_empty_string(project_id):
            message = 'Service account object must contain a string "project_id" property.'
        elif not is_non_empty_string(private_key):
            message = 'Service account object must contain a string "private_key" property.'
        elif not is_non_empty_string(client_email):
            message = 'Service account object must contain a string "client_email" property.'
        else:
            message = None
        if message is not None:
            raise AppError(AppErrorCode.INVALID_CREDENTIAL, message)

        try:
            serialization.load_pem_private_key(private_key.encode("utf-8"), password=None)
        except (ValueError, TypeError) as exc:
            raise AppError(
                AppErrorCode.INVALID_CREDENTIAL,
                f"Failed to parse private key: {exc}",
            ) from exc

        return cls(project_id, private_key, client_email)


def _validate_refresh_token(json_obj: object) -> Dict[str, str]:
    if not isinstance(json_obj, Mapping):
        raise AppError(AppErrorCode.INVALID_CREDENTIAL, "Refresh token must be an object.")

    fields = {
        "client_id": _copy_attr(json_obj, "clientId", "client_id"),
        "client_secret": _copy_attr(json_obj, "clientSecret", "client_secret"),
        "refresh_token": _copy_attr(json_obj, "refreshToken", "refresh_token"),
        "type": _copy_attr(json_obj, "type", "type"),
    }
    for name, value in fields.items():
        if not is_non_empty_string(value):
            raise AppError(
                AppErrorCode.INVALID_CREDENTIAL,
                f'Refresh token must contain a "{name}" property.',
            )
    return fields  # type: ignore[return-value]


def _copy_attr(source: Mapping[str, Any], key: str, alt: str) -> Any:
    """Read ``key`` or, when missing/empty, its snake_case ``alt``."""
    return source.get(key) or source.get(alt)


def _load_json_file(path: str, error_prefix: str) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, ValueError) as exc:
        raise AppError(AppErrorCode.INVALID_CREDENTIAL, f"{error_prefix}: {exc}") from exc


# ---------------------------------------------------------------------- #
# google-auth glue
# ---------------------------------------------------------------------- #


def _discover_default() -> Tuple[Any, Optional[str]]:
    return google.auth.default(scopes=SCOPES)


def _refresh(creds: Any) -> None:
    creds.refresh(google.auth.transport.requests.Request())


def populate_credential(creds: Any) -> Dict[str, Any]:
    """
    Convert refreshed google-auth credentials to ``access_token`` /
    ``expires_in`` (whole seconds left).
    """
    access_token = getattr(creds, "token", None)
    expiry = getattr(creds, "expiry", None)

    if not is_non_empty_string(access_token):
        raise AppError(
            AppErrorCode.INVALID_CREDENTIAL,
            "Failed to parse Google auth credential: access_token must be a non empty string.",
        )
    if not isinstance(expiry, datetime):
        raise AppError(
            AppErrorCode.INVALID_CREDENTIAL,
            "Failed to parse Google auth credential: Invalid expiry_date.",
        )

    # google-auth keeps expiry as a naive UTC datetime
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    remaining = (expiry - datetime.now(timezone.utc)).total_seconds()
    return {
        "access_token": access_token,
        "expires_in": max(math.floor(remaining), 0),
    }
