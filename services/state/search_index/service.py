"""Authoritative in-process Python API for the Search Index Service."""

from __future__ import annotations

from abc import ABC, abstractmethod

from sqlalchemy.orm import Session

from services.state.search_index.domain import (
    DriftReport,
    HealthStatus,
    OutboxAction,
    OutboxEvent,
    PageRequest,
    SearchPage,
)
from services.state.search_index.outbox import OutboxTickResult


class SearchIndexService(ABC):
    """Public API for index consistency and hybrid retrieval.

    Tenant and caller identity come from the bound request context; admin
    operations accept an explicit ``tenant_id`` and fall back to it.
    """

    @abstractmethod
    def enqueue_entity_index(
        self,
        *,
        entity_id: str,
        action: OutboxAction | str,
        session: Session | None = None,
    ) -> OutboxEvent:
        """Record a pending index mutation, inside ``session`` when given."""

    @abstractmethod
    def hybrid_search(self, *, query: str, page: PageRequest) -> SearchPage:
        """Return one page of fused, access-trimmed results."""

    @abstractmethod
    def analyze_drift(self, *, tenant_id: str | None = None) -> DriftReport:
        """Compare source chunk ids with indexed chunk ids for one tenant."""

    @abstractmethod
    def reconcile_drift(self, *, tenant_id: str | None = None) -> DriftReport:
        """Re-index one tenant, evict cached searches and re-analyze."""

    @abstractmethod
    def rebuild_tenant_index(self, *, tenant_id: str | None = None) -> int:
        """Queue an upsert for every live document of one tenant."""

    @abstractmethod
    def list_dead_lettered_events(self) -> list[OutboxEvent]:
        """Return dead-lettered outbox events, newest first."""

    @abstractmethod
    def replay_event(self, *, event_id: str) -> OutboxEvent:
        """Return one dead-lettered event to the pending queue."""

    @abstractmethod
    def process_outbox(self) -> OutboxTickResult:
        """Drain the pending outbox once in the calling thread."""

    @abstractmethod
    def evict_search_cache(self) -> int:
        """Drop every cached search page."""

    @abstractmethod
    def start_worker(self) -> None:
        """Start the background outbox processor."""

    @abstractmethod
    def stop_worker(self) -> None:
        """Stop the background outbox processor."""

    @abstractmethod
    def health(self) -> HealthStatus:
        """Return service and dependency readiness."""
