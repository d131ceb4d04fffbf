"""
Error kinds surfaced to callers of the functions and the HTTP API.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    UNAUTHENTICATED = "unauthenticated"
    PERMISSION_DENIED = "permission-denied"
    INVALID_ARGUMENT = "invalid-argument"
    INTERNAL = "internal"


class ServiceError(Exception):
    """
    A caller-facing failure. The message is safe to return to clients; the
    underlying downstream error (if any) is chained as `__cause__` and only
    logged server-side.
    """

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"ServiceError({self.code.value!r}, {self.message!r})"
