"""Apply classified webhook events to the mailbox and outbound targets."""

from datetime import timedelta

from pydantic import BaseModel, Field

from hookrelay.common.config import RelaySettings
from hookrelay.common.logging import event_kind_ctx, logger, ticket_id_ctx
from hookrelay.common.metrics import webhook_events_dropped_total, webhook_events_total
from hookrelay.mailbox.enrichment import EnrichmentCache
from hookrelay.mailbox.models import NotificationSummary
from hookrelay.mailbox.replies import ReplySet, normalize_number
from hookrelay.mailbox.store import NotificationStore
from hookrelay.mailbox.sweeper import EvictionSweeper
from hookrelay.services.relay.classify import (
    Classified,
    Dropped,
    InboundReply,
    MessageEvent,
    OutboundEcho,
    TicketEvent,
    classify,
)
from hookrelay.services.relay.notifier import CONSUMER, PANEL, Notifier

UNKNOWN = "unknown"


class RouteResult(BaseModel):
    """What one webhook body turned into."""

    stored: int = 0
    duplicates: int = 0
    replies: int = 0
    echoes: int = 0
    dropped: list[str] = Field(default_factory=list)


class RelayState:
    """Mailbox structures owned by one relay process."""

    def __init__(self, config: RelaySettings, notifier: Notifier | None = None) -> None:
        self.config = config
        self.store = NotificationStore(
            ttl=timedelta(seconds=config.notification_ttl_seconds),
            capacity=config.notification_capacity,
            default_limit=config.poll_default_limit,
            max_limit=config.poll_max_limit,
        )
        self.enrichment = EnrichmentCache(max_entries=config.enrichment_max_entries)
        self.replies = ReplySet()
        self.sweeper = EvictionSweeper(self.store, interval_seconds=config.sweep_interval_seconds)
        self.notifier = notifier or Notifier(config)
        self.router = IngestionRouter(self.store, self.enrichment, self.replies, self.notifier)


class IngestionRouter:
    """Routes each classified event to exactly one destination."""

    def __init__(
        self,
        store: NotificationStore,
        enrichment: EnrichmentCache,
        replies: ReplySet,
        notifier: Notifier,
    ) -> None:
        self.store = store
        self.enrichment = enrichment
        self.replies = replies
        self.notifier = notifier

    def ingest(self, body) -> tuple[RouteResult, list[tuple[str, object]]]:
        """Classify and apply one webhook body to the mailbox.

        Returns the outcome and the outbound sends it calls for; nothing in
        here waits on the network.
        """

        result = RouteResult()
        outbound: list[tuple[str, object]] = []
        for item in classify(body):
            webhook_events_total.labels(variant=item.variant).inc()
            kind_token = event_kind_ctx.set(getattr(item, "kind", item.variant))
            ticket_token = ticket_id_ctx.set(getattr(item, "ticket_id", "") or "")
            try:
                self._apply(item, result, outbound)
            finally:
                event_kind_ctx.reset(kind_token)
                ticket_id_ctx.reset(ticket_token)
        return result, outbound

    async def deliver(self, outbound: list[tuple[str, object]]) -> None:
        for target, payload in outbound:
            await self.notifier.send(target, payload)

    async def route(self, body) -> RouteResult:
        """Ingest one body, then run its outbound sends."""

        result, outbound = self.ingest(body)
        await self.deliver(outbound)
        return result

    def _apply(self, item: Classified, result: RouteResult, outbound: list) -> None:
        if isinstance(item, Dropped):
            self._drop(result, item.reason)
        elif isinstance(item, OutboundEcho):
            result.echoes += 1
            if self.notifier.configured(PANEL):
                outbound.append((PANEL, item.payload))
            else:
                logger.info("echo received but panel target is not configured")
        elif isinstance(item, InboundReply):
            self._reply(item, result, outbound)
        elif isinstance(item, TicketEvent):
            self._ticket(item, result)
        elif isinstance(item, MessageEvent):
            self._message(item, result)

    def _drop(self, result: RouteResult, reason: str) -> None:
        logger.info("webhook event dropped reason=%s", reason)
        webhook_events_dropped_total.labels(reason=reason).inc()
        result.dropped.append(reason)

    def _reply(self, item: InboundReply, result: RouteResult, outbound: list) -> None:
        if not self.replies.add(item.number):
            self._drop(result, "reply_without_digits")
            return
        result.replies += 1
        logger.info("reply recorded source=%s positive=%s", item.source, item.positive)
        if self.notifier.configured(CONSUMER):
            outbound.append(
                (
                    CONSUMER,
                    {
                        "wa_id": normalize_number(item.number),
                        "text": item.text,
                        "timestamp": item.timestamp,
                        "positive": item.positive,
                        "raw": item.raw,
                    },
                )
            )

    def _push(self, summary: NotificationSummary, payload, result: RouteResult) -> None:
        if self.store.push(summary, payload):
            result.stored += 1
        else:
            result.duplicates += 1

    def _ticket(self, item: TicketEvent, result: RouteResult) -> None:
        context = item.context
        self.enrichment.put(item.ticket_id, context)
        if item.is_update and not item.unread:
            self._drop(result, "update_without_unread")
            return
        summary = NotificationSummary(
            kind=item.kind,
            tenant_id=item.tenant_id,
            ticket_id=item.ticket_id,
            user_id=context.user_id,
            is_pending=context.user_id is None,
            queue_id=context.queue_id,
            queue_name=context.queue_name,
            contact_id=context.contact_id,
            contact_name=context.contact_name,
            contact_number=context.contact_number,
            last_message=item.last_message,
            unread=item.unread,
            unread_count=item.unread_count,
            source_timestamp=item.source_timestamp,
        )
        self._push(summary, item.payload, result)

    def _message(self, item: MessageEvent, result: RouteResult) -> None:
        context = self.enrichment.get(item.ticket_id)
        if context is None:
            logger.info("no cached context for ticket, notifying as pending")
        summary = NotificationSummary(
            kind=item.kind,
            tenant_id=item.tenant_id or (context.tenant_id if context else None),
            ticket_id=item.ticket_id,
            message_id=item.message_id,
            user_id=context.user_id if context else None,
            is_pending=context.is_pending if context else True,
            queue_id=context.queue_id if context else None,
            queue_name=(context.queue_name if context else None) or UNKNOWN,
            contact_id=context.contact_id if context else None,
            contact_name=item.contact_name or (context.contact_name if context else None) or UNKNOWN,
            contact_number=item.contact_number or (context.contact_number if context else None),
            last_message=item.body,
            unread=not item.from_me,
            unread_count=0 if item.from_me else 1,
            source_timestamp=item.source_timestamp,
        )
        self._push(summary, item.payload, result)
