"""Map arbitrary exceptions onto ``ErrorDetail``."""

from __future__ import annotations

from typing import Callable

from . import codes
from .factories import dependency_error, internal_error, not_found_error, validation_error
from .types import ErrorDetail

# Checked in order; the first matching type wins.
_BUILTIN_MAPPINGS: tuple[tuple[type[BaseException], Callable[..., ErrorDetail], str], ...] = (
    (ValueError, validation_error, codes.INVALID_ARGUMENT),
    (KeyError, not_found_error, codes.RESOURCE_NOT_FOUND),
    (TimeoutError, dependency_error, codes.DEPENDENCY_TIMEOUT),
    (ConnectionError, dependency_error, codes.DEPENDENCY_UNAVAILABLE),
)


def exception_to_error(exc: BaseException) -> ErrorDetail:
    """Return the detail an exception carries, or one derived from its type."""
    carried = getattr(exc, "detail", None)
    if isinstance(carried, ErrorDetail):
        return carried

    message = str(exc) or type(exc).__name__
    metadata = {"exception_type": type(exc).__name__}
    for exc_type, factory, code in _BUILTIN_MAPPINGS:
        if isinstance(exc, exc_type):
            return factory(message, code=code, metadata=metadata)
    return internal_error(message, code=codes.UNEXPECTED_EXCEPTION, metadata=metadata)
