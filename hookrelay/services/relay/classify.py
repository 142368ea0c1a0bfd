"""Turn raw webhook bodies into a closed set of typed event variants.

Nothing downstream of `classify` looks at the raw body except to keep it as an
opaque payload. Supported shapes:

* relay echo: ``{"event_type": "message_sent", "payload": {...}}``
* panel events: ``{"event": "...", "ticket": {...}}`` and
  ``{"event": "...", "message": {...}}``
* WhatsApp Cloud API: ``{"object": ..., "entry": [{"changes": [{"value": {"messages": [...]}}]}]}``
"""

import unicodedata
from typing import Any, Literal, Union

from pydantic import BaseModel

from hookrelay.mailbox.models import TicketContext

UPDATE_KINDS = {"UpdateOnTicket"}

POSITIVE_REPLIES = (
    "sim",
    "s",
    "ok",
    "okay",
    "receber",
    "pode enviar",
    "enviar",
    "manda",
    "mandar",
    "pode mandar",
    "confirmo",
    "confirmar",
    "confirmado",
)


class OutboundEcho(BaseModel):
    variant: Literal["echo"] = "echo"
    payload: Any


class InboundReply(BaseModel):
    variant: Literal["reply"] = "reply"
    number: str
    text: str = ""
    timestamp: str = ""
    positive: bool = False
    source: str = "panel"
    raw: Any = None


class TicketEvent(BaseModel):
    variant: Literal["ticket"] = "ticket"
    kind: str
    ticket_id: str
    tenant_id: str | None = None
    context: TicketContext
    unread: bool = False
    unread_count: int = 0
    last_message: str | None = None
    source_timestamp: str | None = None
    payload: Any = None

    @property
    def is_update(self) -> bool:
        return self.kind in UPDATE_KINDS


class MessageEvent(BaseModel):
    variant: Literal["message"] = "message"
    kind: str
    ticket_id: str
    tenant_id: str | None = None
    message_id: str | None = None
    body: str | None = None
    from_me: bool = False
    contact_name: str | None = None
    contact_number: str | None = None
    source_timestamp: str | None = None
    payload: Any = None


class Dropped(BaseModel):
    variant: Literal["dropped"] = "dropped"
    reason: str


Classified = Union[OutboundEcho, InboundReply, TicketEvent, MessageEvent, Dropped]


def normalize_text(value: Any) -> str:
    """Lower-case, trimmed, accent-free text."""

    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", str(value).strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def is_positive_reply(text: Any) -> bool:
    """True when a customer answer reads as consent ("sim", "pode enviar", ...)."""

    normalized = normalize_text(text)
    if not normalized:
        return False
    return any(normalized == word or word in normalized for word in POSITIVE_REPLIES)


def _str_or_none(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _int(value: Any) -> int:
    try:
        return max(0, int(value))
    except (TypeError, ValueError, OverflowError):
        return 0


def _interactive_text(msg: dict) -> str:
    interactive = _dict(msg.get("interactive"))
    kind = interactive.get("type")
    if kind in ("button_reply", "list_reply"):
        reply = _dict(interactive.get(kind))
        return str(reply.get("title") or reply.get("id") or "")
    return ""


def _cloud_api_replies(body: dict) -> list[Classified]:
    results: list[Classified] = []
    entries = body.get("entry")
    for entry in entries if isinstance(entries, list) else []:
        changes = _dict(entry).get("changes")
        for change in changes if isinstance(changes, list) else []:
            messages = _dict(_dict(change).get("value")).get("messages")
            for msg in messages if isinstance(messages, list) else []:
                msg = _dict(msg)
                number = _str_or_none(msg.get("from"))
                if not number:
                    results.append(Dropped(reason="cloud_api_message_without_sender"))
                    continue
                text = str(_dict(msg.get("text")).get("body") or "")
                if not text:
                    text = _interactive_text(msg)
                if not text:
                    button = _dict(msg.get("button"))
                    text = str(button.get("payload") or button.get("text") or "")
                results.append(
                    InboundReply(
                        number=number,
                        text=text,
                        timestamp=str(msg.get("timestamp") or ""),
                        positive=is_positive_reply(text),
                        source="cloud_api",
                        raw=msg,
                    )
                )
    if not results:
        results.append(Dropped(reason="cloud_api_without_messages"))
    return results


def _panel_reply(event: Any, message: dict) -> InboundReply | None:
    if event != "NewMessage" or message.get("fromMe") is not False:
        return None
    number = _str_or_none(_dict(message.get("contact")).get("number"))
    if not number:
        number = _str_or_none(_dict(message.get("raw")).get("from"))
    if not number:
        return None
    text = str(message.get("body") or "")
    if not text:
        button = _dict(_dict(message.get("raw")).get("button"))
        text = str(button.get("payload") or button.get("text") or "")
    return InboundReply(
        number=number,
        text=text,
        timestamp=str(message.get("timestamp") or ""),
        positive=is_positive_reply(text),
        source="panel",
        raw=message,
    )


def _ticket_event(body: dict, ticket: dict) -> TicketEvent:
    contact = _dict(ticket.get("contact"))
    queue = _dict(ticket.get("queue"))
    tenant_id = _str_or_none(ticket.get("tenantId")) or _str_or_none(body.get("tenantId"))
    user_id = _str_or_none(ticket.get("userId"))
    if user_id is None:
        user_id = _str_or_none(_dict(ticket.get("user")).get("email"))
    unread_count = _int(ticket.get("unreadMessages"))
    context = TicketContext(
        user_id=user_id,
        is_pending=user_id is None,
        contact_id=_str_or_none(contact.get("id")) or _str_or_none(ticket.get("contactId")),
        contact_name=_str_or_none(contact.get("name")),
        contact_number=_str_or_none(contact.get("number")),
        queue_id=_str_or_none(queue.get("id")) or _str_or_none(ticket.get("queueId")),
        queue_name=_str_or_none(queue.get("name")),
        tenant_id=tenant_id,
    )
    return TicketEvent(
        kind=_str_or_none(body.get("event")) or "TicketEvent",
        ticket_id=str(ticket["id"]).strip(),
        tenant_id=tenant_id,
        context=context,
        unread=unread_count > 0 or ticket.get("unread") is True,
        unread_count=unread_count,
        last_message=_str_or_none(ticket.get("lastMessage")),
        source_timestamp=_str_or_none(ticket.get("updatedAt")) or _str_or_none(body.get("timestamp")),
        payload=body,
    )


def _message_event(body: dict, message: dict) -> MessageEvent:
    contact = _dict(message.get("contact"))
    return MessageEvent(
        kind=_str_or_none(body.get("event")) or "NewMessage",
        ticket_id=str(message["ticketId"]).strip(),
        tenant_id=_str_or_none(message.get("tenantId")) or _str_or_none(body.get("tenantId")),
        message_id=_str_or_none(message.get("id")),
        body=_str_or_none(message.get("body")),
        from_me=message.get("fromMe") is True,
        contact_name=_str_or_none(contact.get("name")),
        contact_number=_str_or_none(contact.get("number")),
        source_timestamp=_str_or_none(message.get("timestamp")) or _str_or_none(message.get("createdAt")),
        payload=body,
    )


def classify(body: Any) -> list[Classified]:
    """Classify one webhook body; never raises for malformed input."""

    if not isinstance(body, dict):
        return [Dropped(reason="body_not_object")]

    if body.get("event_type") == "message_sent":
        payload = body.get("payload")
        return [OutboundEcho(payload=payload if payload is not None else body)]

    if "entry" in body:
        return _cloud_api_replies(body)

    event = body.get("event")
    message = _dict(body.get("message"))
    ticket = _dict(body.get("ticket"))

    if message:
        reply = _panel_reply(event, message)
        if reply is not None:
            return [reply]
    if _str_or_none(ticket.get("id")):
        return [_ticket_event(body, ticket)]
    if message and _str_or_none(message.get("ticketId")):
        return [_message_event(body, message)]
    if message:
        return [Dropped(reason="message_without_ticket")]
    return [Dropped(reason="unrecognized_shape")]
