"""Result types returned by the storage-facing managers instead of raising."""

from __future__ import annotations

from dataclasses import dataclass, field

from models.locale_models import StorageTier
from utils.time_utils import TimeUtils

__all__: list[str] = ["StorageOperationResult", "ValidationResult"]


@dataclass
class ValidationResult:
    """Outcome of a structural check.

    Attributes:
        is_valid (bool): True when no error was found.
        errors (list[str]): Human-readable description of each problem.
    """

    is_valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass
class StorageOperationResult[T]:
    """Outcome of a storage operation.

    Attributes:
        success (bool): Whether the operation completed.
        data (T | None): Payload on success.
        error (str | None): Failure description.
        source (StorageTier | None): Tier the data came from, for reads.
        timestamp (int): Epoch milliseconds when the result was produced.
        response_time (float): Operation duration in milliseconds.
    """

    success: bool
    data: T | None = None
    error: str | None = None
    source: StorageTier | None = None
    timestamp: int = field(default_factory=TimeUtils.now_ms)
    response_time: float = 0.0
