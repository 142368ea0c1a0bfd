"""Deduplication key derivation for mailbox notifications."""

from typing import Any

SEPARATOR = "|"

# Escaped values never start with "~", so placeholders cannot collide with them.
PLACEHOLDERS = {
    "kind": "~kind",
    "tenant_id": "~tenant",
    "ticket_id": "~ticket",
    "message_id": "~message",
    "source_timestamp": "~ts",
}

_ESCAPES = (("%", "%25"), (SEPARATOR, "%7C"), ("~", "%7E"))


def _escape(text: str) -> str:
    for raw, escaped in _ESCAPES:
        text = text.replace(raw, escaped)
    return text


def _component(value: Any, field: str) -> str:
    if value is None:
        return PLACEHOLDERS[field]
    text = str(value).strip()
    if not text:
        return PLACEHOLDERS[field]
    return _escape(text)


def build_key(
    kind: Any = None,
    tenant_id: Any = None,
    ticket_id: Any = None,
    message_id: Any = None,
    source_timestamp: Any = None,
) -> str:
    """Return the composite identity of one logical platform event.

    Kind is part of the key because ticket and message events share ticket
    identifiers; the source timestamp separates repeated updates to the same
    ticket. Components are percent-escaped, so distinct tuples always give
    distinct keys.
    """

    return SEPARATOR.join(
        [
            _component(kind, "kind"),
            _component(tenant_id, "tenant_id"),
            _component(ticket_id, "ticket_id"),
            _component(message_id, "message_id"),
            _component(source_timestamp, "source_timestamp"),
        ]
    )
