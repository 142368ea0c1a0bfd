"""In-memory notification mailbox drained by the polling consumer.

The store deduplicates by `unique_key`, keeps records newest-first, drops the
oldest records beyond its capacity and expires records older than its TTL.
Every public method takes the store lock, so dedup check-and-insert,
query-and-mark and sweeps are each one critical section.
"""

import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from hookrelay.common.logging import logger
from hookrelay.common.metrics import (
    duplicate_events_skipped_total,
    mailbox_live_notifications,
    notifications_delivered_total,
    notifications_evicted_total,
    notifications_stored_total,
)
from hookrelay.mailbox.keys import build_key
from hookrelay.mailbox.models import (
    FilterMode,
    NotificationRecord,
    NotificationSummary,
    StoreHealth,
    new_record_id,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_limit(raw: Any, default: int, maximum: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return max(1, min(value, maximum))


class NotificationStore:
    """Deduplicating, TTL- and capacity-bounded notification mailbox."""

    def __init__(
        self,
        ttl: timedelta = timedelta(hours=6),
        capacity: int = 500,
        default_limit: int = 50,
        max_limit: int = 500,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ttl = ttl
        self.capacity = max(1, capacity)
        self.max_limit = max(1, max_limit)
        self.default_limit = _coerce_limit(default_limit, 50, self.max_limit)
        self.clock = clock
        self._records: deque[NotificationRecord] = deque()
        self._seen: set[str] = set()
        self._lock = threading.Lock()

    def push(self, summary: NotificationSummary, payload: Any = None) -> bool:
        """Insert one notification unless its key is already live.

        Returns False for a duplicate; the existing record is left untouched.
        """

        if not summary.unique_key:
            summary = summary.model_copy(
                update={
                    "unique_key": build_key(
                        summary.kind,
                        summary.tenant_id,
                        summary.ticket_id,
                        summary.message_id,
                        summary.source_timestamp,
                    )
                }
            )
        key = summary.unique_key
        with self._lock:
            if key in self._seen:
                logger.info("duplicate notification skipped kind=%s key=%s", summary.kind, key)
                duplicate_events_skipped_total.labels(kind=summary.kind).inc()
                return False
            created_at = self.clock()
            record = NotificationRecord(
                id=new_record_id(created_at),
                created_at=created_at,
                summary=summary,
                payload=payload,
            )
            self._records.appendleft(record)
            self._seen.add(key)
            notifications_stored_total.labels(kind=summary.kind).inc()

            dropped = 0
            while len(self._records) > self.capacity:
                oldest = self._records.pop()
                self._seen.discard(oldest.summary.unique_key)
                dropped += 1
            if dropped:
                notifications_evicted_total.labels(reason="capacity").inc(dropped)
                logger.warning("mailbox over capacity dropped=%s capacity=%s", dropped, self.capacity)
            mailbox_live_notifications.set(len(self._records))
        return True

    def query(
        self,
        mode: Any = FilterMode.MINE,
        user_id: str | None = None,
        limit: Any = None,
        peek: bool = False,
    ) -> list[NotificationRecord]:
        """Return undelivered records newest-first.

        A non-peek call stamps one shared `delivered_at` on every returned
        record, which excludes them from later queries. `mine` without a
        subject behaves exactly like `pending`.
        """

        mode = FilterMode.parse(mode)
        limit = self.default_limit if limit is None else _coerce_limit(limit, self.default_limit, self.max_limit)
        subject = (user_id or "").strip().casefold()
        if mode is FilterMode.MINE and not subject:
            mode = FilterMode.PENDING

        with self._lock:
            self._sweep_locked()
            selected: list[NotificationRecord] = []
            for record in self._records:
                if record.delivered_at is not None:
                    continue
                if not self._matches(record.summary, mode, subject):
                    continue
                selected.append(record)
                if len(selected) >= limit:
                    break
            if not peek and selected:
                delivered_at = self.clock()
                for record in selected:
                    record.delivered_at = delivered_at
                notifications_delivered_total.inc(len(selected))
            return [record.model_copy(deep=True) for record in selected]

    @staticmethod
    def _matches(summary: NotificationSummary, mode: FilterMode, subject: str) -> bool:
        if mode is FilterMode.ALL:
            return True
        if summary.is_pending:
            return True
        if mode is FilterMode.PENDING:
            return False
        return (summary.user_id or "").strip().casefold() == subject

    def sweep(self) -> int:
        """Remove TTL-expired records; returns how many were removed."""

        with self._lock:
            return self._sweep_locked()

    def _sweep_locked(self) -> int:
        cutoff = self.clock() - self.ttl
        expired = [record for record in self._records if record.created_at <= cutoff]
        if not expired:
            return 0
        self._records = deque(record for record in self._records if record.created_at > cutoff)
        for record in expired:
            self._seen.discard(record.summary.unique_key)
        notifications_evicted_total.labels(reason="ttl").inc(len(expired))
        mailbox_live_notifications.set(len(self._records))
        return len(expired)

    def health(self) -> StoreHealth:
        """Live and undelivered counts; expired records are excluded even
        before the next sweep removes them."""

        with self._lock:
            cutoff = self.clock() - self.ttl
            live = [record for record in self._records if record.created_at > cutoff]
            undelivered = sum(1 for record in live if record.delivered_at is None)
            return StoreHealth(live_count=len(live), undelivered_count=undelivered)
