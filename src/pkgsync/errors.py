"""Error taxonomy.

Transport failures travel as values: an operation tracker catches a
``PkgSyncError`` and hands it to its ``finished`` observers. Only programming
errors (for example attaching an error to a package that was never loaded) are
raised to the caller.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    REGISTRY_UNAVAILABLE = "REGISTRY_UNAVAILABLE"
    REGISTRY_REQUEST_FAILED = "REGISTRY_REQUEST_FAILED"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    UNKNOWN_PACKAGE = "UNKNOWN_PACKAGE"
    OPERATION_FAILED = "OPERATION_FAILED"


class PkgSyncError(Exception):
    """Base error carrying a machine-readable code and a retry hint."""

    def __init__(self, code: ErrorCode, message: str, recoverable: bool = False) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.recoverable = recoverable

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "recoverable": self.recoverable,
        }

    def __repr__(self) -> str:
        return f"PkgSyncError(code={self.code.value!r}, message={self.message!r})"
