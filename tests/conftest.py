"""Shared fixtures for mailbox and relay tests."""

from datetime import datetime, timedelta, timezone

import pytest

from hookrelay.mailbox.models import NotificationSummary


class FakeClock:
    """Manually advanced clock injected into stores."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeNotifier:
    """Records outbound sends instead of calling HTTP targets."""

    def __init__(self, targets=("panel", "consumer")) -> None:
        self.targets = set(targets)
        self.sent: list[tuple[str, object]] = []

    def configured(self, target: str) -> bool:
        return target in self.targets

    async def send(self, target: str, payload) -> bool:
        self.sent.append((target, payload))
        return True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return FakeNotifier()


def make_summary(ticket_id="1", kind="NewTicket", user_id=None, ts="t0", **extra) -> NotificationSummary:
    return NotificationSummary(
        kind=kind,
        tenant_id="1",
        ticket_id=ticket_id,
        user_id=user_id,
        is_pending=user_id is None,
        source_timestamp=ts,
        **extra,
    )
