"""Error taxonomy for rollup workers.

- ValidationError: malformed scope input (date, week start, span, payload)
- StorageError: read/write failure against the raw-set or rollup store
- ComputationError: math inputs outside their domain
"""

from __future__ import annotations

from typing import Literal

RollupErrorClass = Literal["validation", "storage", "computation", "other"]


class RollupError(Exception):
    """Base class for all rollup worker errors."""

    error_class: RollupErrorClass = "other"


class ValidationError(RollupError, ValueError):
    error_class: RollupErrorClass = "validation"


class StorageError(RollupError):
    error_class: RollupErrorClass = "storage"

    def __init__(self, message: str, *, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class ComputationError(RollupError):
    error_class: RollupErrorClass = "computation"


def classify_error(exc: BaseException) -> RollupErrorClass:
    if isinstance(exc, RollupError):
        return exc.error_class
    return "other"
