"""Mailbox record shapes shared by the store, cache and HTTP layer."""

from datetime import datetime
from enum import Enum
from secrets import token_hex
from typing import Any

from pydantic import BaseModel


class FilterMode(str, Enum):
    """Poll filters understood by `NotificationStore.query`."""

    PENDING = "pending"
    MINE = "mine"
    ALL = "all"

    @classmethod
    def parse(cls, raw: Any) -> "FilterMode":
        """Coerce user input to a mode, falling back to `mine`."""

        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw or "").strip().lower())
        except ValueError:
            return cls.MINE


class TicketContext(BaseModel):
    """Last-known ticket attributes used to enrich thin message events."""

    user_id: str | None = None
    is_pending: bool = True
    contact_id: str | None = None
    contact_name: str | None = None
    contact_number: str | None = None
    queue_id: str | None = None
    queue_name: str | None = None
    tenant_id: str | None = None


class NotificationSummary(BaseModel):
    """Fixed-shape projection of an event used for filtering and dedup."""

    kind: str
    tenant_id: str | None = None
    ticket_id: str | None = None
    message_id: str | None = None
    user_id: str | None = None
    is_pending: bool = True
    queue_id: str | None = None
    queue_name: str | None = None
    contact_id: str | None = None
    contact_name: str | None = None
    contact_number: str | None = None
    last_message: str | None = None
    unread: bool = False
    unread_count: int = 0
    source_timestamp: str | None = None
    unique_key: str | None = None


class NotificationRecord(BaseModel):
    """One mailbox entry; `payload` is the raw event, kept verbatim."""

    id: str
    created_at: datetime
    delivered_at: datetime | None = None
    summary: NotificationSummary
    payload: Any = None


class StoreHealth(BaseModel):
    live_count: int
    undelivered_count: int


def new_record_id(created_at: datetime) -> str:
    """Time-ordered id with a random suffix for bursts within one millisecond."""

    return f"{int(created_at.timestamp() * 1000):x}-{token_hex(4)}"
