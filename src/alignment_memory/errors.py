# Alignment Memory - Error Types
# SPDX-License-Identifier: AGPL-3.0

from __future__ import annotations
"""
Shared error types and the storage result channel.

Validation errors are raised to the caller before anything is written.
Storage errors are never raised: load/save report them through StorageResult.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any


class AlignmentMemoryError(Exception):
    """Base class for all alignment memory errors."""
    code: str = "ALIGNMENT_MEMORY_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(AlignmentMemoryError, ValueError):
    """Rejected constraint or mood arguments. Nothing was appended."""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str = "unknown", value: Any = None):
        super().__init__(message, details={"field": field, "value": repr(value)})
        self.field = field


class ConstraintNotFoundError(AlignmentMemoryError, LookupError):
    code = "CONSTRAINT_NOT_FOUND"

    def __init__(self, key: str):
        super().__init__(f"Constraint '{key}' does not exist", details={"key": key})
        self.key = key


@dataclass(frozen=True)
class StorageResult:
    """Outcome of a load or save against the backing file."""
    ok: bool
    path: Path
    error: str | None = None

    @classmethod
    def success(cls, path: Path) -> "StorageResult":
        return cls(ok=True, path=path)

    @classmethod
    def failure(cls, path: Path, exc: BaseException) -> "StorageResult":
        return cls(ok=False, path=path, error=f"{type(exc).__name__}: {exc}")
