"""Request-scoped tenant and principal resolution.

Callers bind an identity with :func:`request_identity`; anything running
outside a bound block (the outbox worker, admin tooling) resolves to the
configured default tenant and principal.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Iterator

from packages.dms_shared.logging import fields, log_context


@dataclass(frozen=True)
class RequestIdentity:
    """Tenant and caller for one request."""

    tenant_id: str
    principal: str


_CURRENT_IDENTITY: ContextVar[RequestIdentity | None] = ContextVar(
    "dms_request_identity", default=None
)


@contextmanager
def request_identity(*, tenant_id: str, principal: str) -> Iterator[RequestIdentity]:
    """Bind ``tenant_id``/``principal`` for the block, including log context."""
    if tenant_id.strip() == "":
        raise ValueError("tenant_id is required")
    identity = RequestIdentity(tenant_id=tenant_id, principal=principal or "system")
    token = _CURRENT_IDENTITY.set(identity)
    try:
        with log_context(
            {fields.TENANT_ID: identity.tenant_id, fields.PRINCIPAL: identity.principal}
        ):
            yield identity
    finally:
        _CURRENT_IDENTITY.reset(token)


class RequestContextProvider:
    """Resolve the active identity, falling back to configured defaults."""

    def __init__(self, *, default_tenant_id: str, default_principal: str = "system") -> None:
        self._default = RequestIdentity(
            tenant_id=default_tenant_id, principal=default_principal
        )

    def current(self) -> RequestIdentity:
        """Return the bound identity or the default one."""
        return _CURRENT_IDENTITY.get() or self._default
