"""Structured error details shared by DMS components."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Mapping


class ErrorCategory(StrEnum):
    """Coarse failure class used for exit codes, logs and metric labels."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    DEPENDENCY = "dependency"
    INTERNAL = "internal"

    @property
    def retryable_by_default(self) -> bool:
        """Only dependency failures are worth retrying unchanged."""
        return self is ErrorCategory.DEPENDENCY


@dataclass(frozen=True)
class ErrorDetail:
    """One failure as a stable code, a message and a category.

    ``metadata`` carries string identifiers only (ids, operation names,
    exception type names) so a detail can be logged or rendered as JSON
    without further conversion.
    """

    code: str
    message: str
    category: ErrorCategory
    retryable: bool = False
    metadata: Mapping[str, str] = field(default_factory=dict)

    def as_dict(self) -> dict[str, object]:
        return {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
            "metadata": dict(self.metadata),
        }
