"""Bounded ticket-context cache used to enrich thin message events."""

import threading
from collections import OrderedDict

from hookrelay.mailbox.models import TicketContext


class EnrichmentCache:
    """LRU map of ticket id -> last-known `TicketContext`."""

    def __init__(self, max_entries: int = 2000) -> None:
        self.max_entries = max(1, max_entries)
        self._entries: OrderedDict[str, TicketContext] = OrderedDict()
        self._lock = threading.Lock()

    def put(self, ticket_id, context: TicketContext) -> None:
        key = str(ticket_id)
        with self._lock:
            self._entries[key] = context
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def get(self, ticket_id) -> TicketContext | None:
        """Return cached context or None; a hit refreshes recency."""

        key = str(ticket_id)
        with self._lock:
            context = self._entries.get(key)
            if context is not None:
                self._entries.move_to_end(key)
            return context

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
