"""Routing tests: enrichment, relevance filtering and outbound echoes."""

import asyncio
from datetime import timedelta

from hookrelay.mailbox.enrichment import EnrichmentCache
from hookrelay.mailbox.models import FilterMode
from hookrelay.mailbox.replies import ReplySet
from hookrelay.mailbox.store import NotificationStore
from hookrelay.services.relay.router import IngestionRouter

from conftest import FakeNotifier


def _router(clock, notifier) -> IngestionRouter:
    store = NotificationStore(ttl=timedelta(hours=1), clock=clock)
    return IngestionRouter(store, EnrichmentCache(), ReplySet(), notifier)


def _ticket(event, ticket_id="T7", user_id=None, unread=0, updated="u1"):
    return {
        "event": event,
        "tenantId": 1,
        "ticket": {
            "id": ticket_id,
            "userId": user_id,
            "unreadMessages": unread,
            "contact": {"id": 9, "name": "Ana", "number": "5511"},
            "queue": {"id": 4, "name": "Sales"},
            "updatedAt": updated,
        },
    }


def test_thin_message_is_enriched_from_earlier_ticket_event(clock, notifier):
    router = _router(clock, notifier)
    asyncio.run(router.route(_ticket("UpdateOnTicket", user_id="a@x", unread=1)))
    result = asyncio.run(
        router.route({"event": "NewMessage", "message": {"id": "m1", "ticketId": "T7", "fromMe": True, "body": "ok"}})
    )
    assert result.stored == 1

    records = router.store.query(FilterMode.ALL, peek=True)
    message = next(r for r in records if r.summary.kind == "NewMessage")
    assert message.summary.user_id == "a@x"
    assert message.summary.is_pending is False
    assert message.summary.queue_name == "Sales"
    assert message.summary.contact_name == "Ana"
    assert message.summary.message_id == "m1"


def test_thin_message_without_context_is_pending_unknown(clock, notifier):
    router = _router(clock, notifier)
    asyncio.run(router.route({"event": "NewMessage", "message": {"id": "m1", "ticketId": "99", "fromMe": True}}))

    [record] = router.store.query(FilterMode.PENDING, peek=True)
    assert record.summary.is_pending is True
    assert record.summary.queue_name == "unknown"
    assert record.summary.contact_name == "unknown"


def test_update_without_unread_is_dropped_but_cached(clock, notifier):
    router = _router(clock, notifier)
    result = asyncio.run(router.route(_ticket("UpdateOnTicket", user_id="a@x", unread=0)))

    assert result.stored == 0
    assert result.dropped == ["update_without_unread"]
    assert router.enrichment.get("T7").user_id == "a@x"


def test_repeated_ticket_delivery_is_deduplicated(clock, notifier):
    router = _router(clock, notifier)
    first = asyncio.run(router.route(_ticket("NewTicket")))
    second = asyncio.run(router.route(_ticket("NewTicket")))
    later = asyncio.run(router.route(_ticket("NewTicket", updated="u2")))

    assert (first.stored, second.duplicates, later.stored) == (1, 1, 1)


def test_replies_go_to_reply_set_and_consumer(clock, notifier):
    router = _router(clock, notifier)
    result = asyncio.run(
        router.route({"event": "NewMessage", "message": {"fromMe": False, "body": "sim", "contact": {"number": "+55 11 9"}}})
    )

    assert result.replies == 1
    assert router.replies.drain_all() == ["55119"]
    assert router.store.health().live_count == 0
    [(target, payload)] = notifier.sent
    assert target == "consumer"
    assert payload["wa_id"] == "55119"
    assert payload["positive"] is True


def test_echo_only_reaches_panel(clock, notifier):
    router = _router(clock, notifier)
    result = asyncio.run(router.route({"event_type": "message_sent", "payload": {"to": "5511"}}))

    assert result.echoes == 1
    assert notifier.sent == [("panel", {"to": "5511"})]
    assert router.store.health().live_count == 0
    assert len(router.replies) == 0


def test_echo_without_panel_target_is_not_sent(clock):
    notifier = FakeNotifier(targets=())
    router = _router(clock, notifier)
    asyncio.run(router.route({"event_type": "message_sent"}))
    assert notifier.sent == []


def test_garbage_is_dropped_not_raised(clock, notifier):
    router = _router(clock, notifier)
    result = asyncio.run(router.route(["not", "an", "object"]))
    assert result.dropped == ["body_not_object"]


def test_update_with_unread_messages_is_stored(clock, notifier):
    router = _router(clock, notifier)
    result = asyncio.run(router.route(_ticket("UpdateOnTicket", user_id="a@x", unread=3)))

    assert result.stored == 1
    assert result.dropped == []
    [record] = router.store.query(FilterMode.ALL, peek=True)
    assert record.summary.kind == "UpdateOnTicket"
    assert record.summary.unread is True
    assert record.summary.unread_count == 3


def test_update_flagged_unread_without_count_is_stored(clock, notifier):
    router = _router(clock, notifier)
    body = _ticket("UpdateOnTicket", user_id="a@x", unread=0)
    body["ticket"]["unread"] = True
    result = asyncio.run(router.route(body))

    assert result.stored == 1
    [record] = router.store.query(FilterMode.ALL, peek=True)
    assert record.summary.unread is True
    assert record.summary.unread_count == 0


def test_ingest_defers_outbound_sends(clock, notifier):
    """Mailbox work completes without touching the network; sends are returned."""

    router = _router(clock, notifier)
    result, outbound = router.ingest({"event_type": "message_sent", "payload": {"to": "5511"}})

    assert result.echoes == 1
    assert notifier.sent == []
    assert outbound == [("panel", {"to": "5511"})]
    asyncio.run(router.deliver(outbound))
    assert notifier.sent == outbound
