# src/pkg_admin/domain/value_objects.py

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit


def is_url(value: object) -> bool:
    """
    Loose well-formedness check: http(s) scheme plus a host.

    Mirrors what the certificate endpoints and emulator hosts look like;
    anything else is treated as a programmer error.
    """
    if not isinstance(value, str) or not value or any(c.isspace() for c in value):
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in {"http", "https"} and bool(parts.hostname)


def is_non_empty_string(value: object) -> bool:
    return isinstance(value, str) and value != ""


# --- Verification value objects -----------------------------------------


@dataclass(frozen=True, slots=True)
class CertificateUrl:
    """
    URL of an endpoint publishing the current signing keys.
    """
    value: str

    def __post_init__(self) -> None:
        if not is_url(self.value):
            raise ValueError("The provided public client certificate URL is an invalid URL.")

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class SigningAlgorithm:
    """
    JWS algorithm identifier (e.g. ``RS256``).
    """
    value: str

    def __post_init__(self) -> None:
        if not is_non_empty_string(self.value):
            raise ValueError("The provided JWT algorithm is an empty string.")

    def __str__(self) -> str:
        return self.value


# --- App value objects ---------------------------------------------------


@dataclass(frozen=True, slots=True)
class AppName:
    value: str

    def __post_init__(self) -> None:
        if not is_non_empty_string(self.value):
            raise ValueError(
                f'Invalid app name "{self.value}" provided. App name must be a non-empty string.'
            )

    def __str__(self) -> str:
        return self.value
