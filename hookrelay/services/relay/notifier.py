"""Best-effort outbound delivery to the ticket panel and the consumer callback."""

from typing import Any

import httpx

from hookrelay.common.config import RelaySettings
from hookrelay.common.logging import logger
from hookrelay.common.metrics import outbound_requests_total

PANEL = "panel"
CONSUMER = "consumer"


class Notifier:
    """Single-attempt JSON POSTs with a bounded timeout.

    Failures are logged and reported as False; nothing is retried and nothing
    is raised to the caller.
    """

    def __init__(self, config: RelaySettings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.timeout = config.outbound_timeout_seconds
        self.transport = transport
        self.targets: dict[str, tuple[str, dict[str, str]]] = {}
        if config.panel_url and config.panel_token:
            self.targets[PANEL] = (
                config.panel_url,
                {"Authorization": f"Bearer {config.panel_token}"},
            )
        if config.consumer_url:
            headers = {}
            if config.consumer_secret:
                headers["X-Webhook-Secret"] = config.consumer_secret
            self.targets[CONSUMER] = (config.consumer_url, headers)

    def configured(self, target: str) -> bool:
        return target in self.targets

    async def send(self, target: str, payload: Any) -> bool:
        if target not in self.targets:
            outbound_requests_total.labels(target=target, outcome="skipped").inc()
            return False
        url, headers = self.targets[target]
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("outbound %s failed url=%s error=%s", target, url, exc)
            outbound_requests_total.labels(target=target, outcome="error").inc()
            return False
        if resp.status_code >= 400:
            logger.warning(
                "outbound %s rejected status=%s body=%s",
                target,
                resp.status_code,
                resp.text[:500],
            )
            outbound_requests_total.labels(target=target, outcome="rejected").inc()
            return False
        outbound_requests_total.labels(target=target, outcome="ok").inc()
        return True
