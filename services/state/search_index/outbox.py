"""Outbox processor draining pending index mutations on a fixed interval."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from threading import Event, Lock, Thread

from packages.dms_shared.errors import exception_to_error
from packages.dms_shared.logging import fields, get_logger, log_context
from services.state.search_index.config import SearchIndexSettings
from services.state.search_index.domain import OutboxEvent
from services.state.search_index.indexing import IndexingService
from services.state.search_index.interfaces import OutboxStore

_LOGGER = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class _Outcome(StrEnum):
    PROCESSED = "processed"
    RETRIED = "retried"
    DEAD_LETTERED = "dead_lettered"


def compute_next_retry_at(
    *, now: datetime, retry_count: int, step_seconds: int, cap_seconds: int
) -> datetime:
    """Return ``now`` plus a linear backoff of ``retry_count`` steps, capped."""
    if retry_count < 0:
        raise ValueError("retry_count must be >= 0")
    return now + timedelta(seconds=min(cap_seconds, retry_count * step_seconds))


@dataclass(frozen=True)
class OutboxTickResult:
    """Outcome counts for one drain of the pending queue."""

    processed: int = 0
    retried: int = 0
    dead_lettered: int = 0

    @property
    def attempted(self) -> int:
        return self.processed + self.retried + self.dead_lettered


class OutboxProcessor:
    """Apply pending outbox events and manage their retry state.

    ``run_once`` is serialized by a lock, so a manual drain and the
    background loop never apply the same event concurrently inside one
    process.
    """

    def __init__(
        self,
        *,
        store: OutboxStore,
        indexing: IndexingService,
        settings: SearchIndexSettings,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._indexing = indexing
        self._settings = settings
        self._clock = clock
        self._tick_lock = Lock()
        self._lifecycle_lock = Lock()
        self._stop_event = Event()
        self._worker: Thread | None = None

    def start(self) -> None:
        """Start the background polling thread if it is not running."""
        with self._lifecycle_lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._stop_event.clear()
            self._worker = Thread(
                target=self._run_loop, name="search-index-outbox", daemon=True
            )
            self._worker.start()
        _LOGGER.info(
            "Search index outbox processor started (interval=%ss)",
            self._settings.poll_interval_seconds,
        )

    def stop(self, *, timeout_seconds: float | None = None) -> None:
        """Signal the polling thread to exit and wait for the current tick."""
        with self._lifecycle_lock:
            worker = self._worker
            self._worker = None
        self._stop_event.set()
        if worker is not None:
            worker.join(timeout=timeout_seconds)
        _LOGGER.info("Search index outbox processor stopped")

    @property
    def running(self) -> bool:
        worker = self._worker
        return worker is not None and worker.is_alive()

    def run_once(self) -> OutboxTickResult:
        """Drain every pending event once, oldest first."""
        with self._tick_lock:
            due_at = self._clock() if self._settings.honor_retry_backoff else None
            processed = retried = dead_lettered = 0
            for event in self._store.list_pending(due_at=due_at):
                outcome = self._process_event(event)
                if outcome is _Outcome.PROCESSED:
                    processed += 1
                elif outcome is _Outcome.DEAD_LETTERED:
                    dead_lettered += 1
                else:
                    retried += 1
            return OutboxTickResult(
                processed=processed, retried=retried, dead_lettered=dead_lettered
            )

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                result = self.run_once()
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Search index outbox tick failed")
            else:
                if result.attempted:
                    _LOGGER.info(
                        "Search index outbox tick: processed=%d retried=%d dead_lettered=%d",
                        result.processed,
                        result.retried,
                        result.dead_lettered,
                    )
            self._stop_event.wait(self._settings.poll_interval_seconds)

    def _process_event(self, event: OutboxEvent) -> _Outcome:
        with log_context(
            {
                fields.OUTBOX_EVENT_ID: event.id,
                fields.TENANT_ID: event.tenant_id,
                fields.ENTITY_TYPE: event.entity_type,
                fields.ENTITY_ID: event.entity_id,
                fields.ACTION: event.action,
            }
        ):
            try:
                self._apply(event)
                self._store.mark_processed(event_id=event.id, processed_at=self._clock())
            except Exception as exc:  # noqa: BLE001
                return self._record_failure(event, exc)
            return _Outcome.PROCESSED

    def _apply(self, event: OutboxEvent) -> None:
        if event.is_delete:
            self._indexing.delete_entity_from_index(event.entity_id)
        else:
            self._indexing.index_entity(event.entity_id)

    def _record_failure(self, event: OutboxEvent, exc: Exception) -> _Outcome:
        retry_count = event.retry_count + 1
        next_retry_at = compute_next_retry_at(
            now=self._clock(),
            retry_count=retry_count,
            step_seconds=self._settings.backoff_step_seconds,
            cap_seconds=self._settings.backoff_cap_seconds,
        )
        dead_lettered = retry_count >= event.max_retries
        try:
            self._store.record_failure(
                event_id=event.id,
                retry_count=retry_count,
                next_retry_at=next_retry_at,
                dead_lettered=dead_lettered,
            )
        except Exception:  # noqa: BLE001
            _LOGGER.exception("Failed to record search index outbox failure")
            return _Outcome.RETRIED

        error = exception_to_error(exc)
        with log_context(
            {
                fields.RETRY_COUNT: retry_count,
                fields.MAX_RETRIES: event.max_retries,
                fields.NEXT_RETRY_AT: next_retry_at.isoformat(),
                fields.ERROR_CODE: error.code,
                fields.ERROR_CATEGORY: error.category.value,
            }
        ):
            if dead_lettered:
                _LOGGER.error("Search index outbox event dead-lettered: %s", error.message)
                return _Outcome.DEAD_LETTERED
            _LOGGER.warning("Search index outbox event failed, will retry: %s", error.message)
            return _Outcome.RETRIED
