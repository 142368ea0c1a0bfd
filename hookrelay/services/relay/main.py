"""Relay API + sweeper lifecycle.

Receives platform webhooks, buffers them in the in-memory mailbox and serves
them to the polling consumer.
"""

from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import BackgroundTasks, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse, Response
import uvicorn

from hookrelay.common.config import RelaySettings, settings
from hookrelay.common.logging import configure_logging, logger, trace_id_ctx
from hookrelay.common.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_response,
    replies_drained_total,
)
from hookrelay.common.startup import log_startup_config
from hookrelay.common.tracing import instrument_app, setup_tracing
from hookrelay.services.relay.notifier import Notifier
from hookrelay.services.relay.router import RelayState

TRUTHY = {"1", "true", "yes", "on"}


def _presented_token(authorization: str | None, x_access_token: str | None, token: str | None) -> str | None:
    """First credential present wins: bearer header, custom header, query param."""

    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
    if x_access_token:
        return x_access_token
    if token:
        return token
    return None


def enforce_poll_token(config: RelaySettings, presented: str | None) -> None:
    """Reject consumer reads that do not carry the configured token."""

    if not config.poll_token or presented == config.poll_token:
        return
    logger.warning("poll rejected: %s", "missing token" if presented is None else "invalid token")
    raise HTTPException(status_code=401, detail="unauthorized")


def create_app(config: RelaySettings = settings, notifier: Notifier | None = None) -> FastAPI:
    """Build the relay app with its own mailbox state."""

    state = RelayState(config, notifier=notifier)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Run the eviction sweeper with application lifecycle."""

        state.sweeper.start()
        yield
        await state.sweeper.stop()

    app = FastAPI(title="Hook Relay", lifespan=lifespan)
    app.state.relay = state
    if config.otel_enabled:
        instrument_app(app)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency for every HTTP call."""

        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=config.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=config.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    @app.get("/")
    def verify(
        mode: str | None = Query(default=None, alias="hub.mode"),
        verify_token: str | None = Query(default=None, alias="hub.verify_token"),
        challenge: str | None = Query(default=None, alias="hub.challenge"),
    ):
        """Webhook registration handshake: echo the challenge for our token."""

        if mode == "subscribe" and verify_token == config.verify_token:
            logger.info("webhook verified")
            return PlainTextResponse(challenge or "")
        return Response(status_code=403)

    @app.post("/")
    async def receive(
        request: Request,
        background_tasks: BackgroundTasks,
        x_trace_id: str | None = Header(default=None),
    ):
        """Webhook ingress. Always acknowledges so the platform does not retry.

        Outbound sends run after the acknowledgment has been written.
        """

        trace_id_ctx.set(x_trace_id or str(uuid4()))
        try:
            body = await request.json()
        except ValueError:
            body = None
        try:
            result, outbound = state.router.ingest(body)
            if outbound:
                background_tasks.add_task(state.router.deliver, outbound)
            logger.info(
                "webhook handled stored=%s duplicates=%s replies=%s echoes=%s dropped=%s",
                result.stored,
                result.duplicates,
                result.replies,
                result.echoes,
                result.dropped,
            )
        except Exception as exc:
            logger.exception("webhook_route_error error=%s", exc)
        return {"ok": True}

    @app.get("/notifications")
    def poll_notifications(
        mode: str | None = None,
        user: str | None = None,
        limit: str | None = None,
        peek: str | None = None,
        token: str | None = None,
        authorization: str | None = Header(default=None),
        x_access_token: str | None = Header(default=None),
    ):
        """Hand undelivered notifications to the consumer (newest first)."""

        enforce_poll_token(config, _presented_token(authorization, x_access_token, token))
        is_peek = (peek or "").strip().lower() in TRUTHY
        records = state.store.query(mode=mode, user_id=user, limit=limit, peek=is_peek)
        delivered_at = None
        if records and not is_peek:
            delivered_at = records[0].delivered_at.isoformat()
        return {
            "count": len(records),
            "delivered_at": delivered_at,
            "items": [record.model_dump(mode="json") for record in records],
        }

    @app.get("/replies")
    def drain_replies(
        token: str | None = None,
        authorization: str | None = Header(default=None),
        x_access_token: str | None = Header(default=None),
    ):
        """Return and clear every number that answered since the last drain."""

        enforce_poll_token(config, _presented_token(authorization, x_access_token, token))
        numbers = state.replies.drain_all()
        if numbers:
            replies_drained_total.inc(len(numbers))
        return {"count": len(numbers), "numbers": numbers}

    @app.get("/health")
    def health():
        """Container health probe endpoint with mailbox counters."""

        store_health = state.store.health()
        return {
            "ok": True,
            "live": store_health.live_count,
            "undelivered": store_health.undelivered_count,
            "replies": len(state.replies),
            "enrichment": len(state.enrichment),
        }

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    return app


configure_logging()
setup_tracing(settings)
log_startup_config(
    settings,
    [
        "verify_token",
        "poll_token",
        "panel_url",
        "consumer_url",
        "notification_ttl_seconds",
        "notification_capacity",
        "sweep_interval_seconds",
    ],
)
app = create_app(settings)


def run() -> None:
    """Console entrypoint: serve the relay with uvicorn."""

    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
