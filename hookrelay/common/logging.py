"""Structured JSON logging with request/event context fields."""

import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from hookrelay.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
event_kind_ctx: ContextVar[str] = ContextVar("event_kind", default="")
ticket_id_ctx: ContextVar[str] = ContextVar("ticket_id", default="")


class ContextFilter(logging.Filter):
    """Inject service and correlation identifiers into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.trace_id = trace_id_ctx.get()
        record.event_kind = event_kind_ctx.get()
        record.ticket_id = ticket_id_ctx.get()
        return True


def configure_logging() -> None:
    """Configure root logger once per relay process."""

    handler = logging.StreamHandler(sys.stdout)
    context_filter = ContextFilter()
    handler.addFilter(context_filter)
    formatter = JsonFormatter(
        "%(asctime)s %(levelname)s %(service_name)s %(trace_id)s %(event_kind)s %(ticket_id)s %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(settings.log_level)
    root.addFilter(context_filter)


logger = logging.getLogger("hookrelay")
