"""Per-request logging fields carried in a ``ContextVar``.

Tenant, principal and operation identifiers are bound once and then appear
on every record emitted inside that scope. New threads see an empty mapping.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType
from typing import Iterator, Mapping

_EMPTY: Mapping[str, str] = MappingProxyType({})
_bound: ContextVar[Mapping[str, str]] = ContextVar("dms_log_fields", default=_EMPTY)


def get_context() -> dict[str, str]:
    """Return the fields bound in the current scope as a new dict."""
    return dict(_bound.get())


def _merged(values: Mapping[str, object]) -> Mapping[str, str]:
    merged = dict(_bound.get())
    merged.update({str(k): str(v) for k, v in values.items() if v is not None})
    return MappingProxyType(merged)


def bind_context(**values: object) -> None:
    """Add fields to the current scope; ``None`` values are skipped."""
    if values:
        _bound.set(_merged(values))


@contextmanager
def log_context(values: Mapping[str, object]) -> Iterator[None]:
    """Bind ``values`` until the block exits, then restore the prior fields."""
    token = _bound.set(_merged(values))
    try:
        yield
    finally:
        _bound.reset(token)
