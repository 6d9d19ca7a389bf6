"""Constructors for ``ErrorDetail`` values, one per category."""

from __future__ import annotations

from typing import Mapping

from . import codes
from .types import ErrorCategory, ErrorDetail


def _detail(
    category: ErrorCategory,
    message: str,
    code: str,
    metadata: Mapping[str, object] | None,
    retryable: bool | None = None,
) -> ErrorDetail:
    return ErrorDetail(
        code=code,
        message=message,
        category=category,
        retryable=category.retryable_by_default if retryable is None else retryable,
        metadata={str(key): str(value) for key, value in (metadata or {}).items()},
    )


def validation_error(
    message: str,
    *,
    code: str = codes.VALIDATION_ERROR,
    metadata: Mapping[str, object] | None = None,
) -> ErrorDetail:
    """Reject a request the caller can fix."""
    return _detail(ErrorCategory.VALIDATION, message, code, metadata)


def not_found_error(
    message: str,
    *,
    code: str = codes.NOT_FOUND,
    metadata: Mapping[str, object] | None = None,
) -> ErrorDetail:
    return _detail(ErrorCategory.NOT_FOUND, message, code, metadata)


def dependency_error(
    message: str,
    *,
    code: str = codes.DEPENDENCY_FAILURE,
    retryable: bool | None = None,
    metadata: Mapping[str, object] | None = None,
) -> ErrorDetail:
    """Report an external system failure; retryable unless stated otherwise."""
    return _detail(ErrorCategory.DEPENDENCY, message, code, metadata, retryable)


def internal_error(
    message: str,
    *,
    code: str = codes.INTERNAL_ERROR,
    metadata: Mapping[str, object] | None = None,
) -> ErrorDetail:
    return _detail(ErrorCategory.INTERNAL, message, code, metadata)
