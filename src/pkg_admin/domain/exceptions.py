from __future__ import annotations

from enum import Enum

from .constants import AppErrorCode, JwtErrorCode


class AdminError(Exception):
    """
    Base error carrying a machine-readable ``code`` and a human message.

    Callers should branch on ``code``; the subclasses only exist so that
    ``except AppError`` / ``except JwtError`` read naturally.
    """

    def __init__(self, code: Enum, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AdminError):
            return NotImplemented
        return self.code is other.code and self.message == other.message

    def __hash__(self) -> int:
        return hash((self.code, self.message))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code.value!r}, {self.message!r})"


class AppError(AdminError):
    """Raised for app lifecycle, credential and transport failures."""

    def __init__(self, code: AppErrorCode, message: str) -> None:
        super().__init__(code, message)


class JwtError(AdminError):
    """Raised when a token cannot be verified or decoded."""

    def __init__(self, code: JwtErrorCode, message: str) -> None:
        super().__init__(code, message)
