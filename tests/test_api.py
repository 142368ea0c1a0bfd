"""HTTP surface tests: ingress, polling, auth and verification."""

from fastapi.testclient import TestClient

from hookrelay.common.config import RelaySettings
from hookrelay.services.relay.main import create_app

from conftest import FakeNotifier

NEW_TICKET = {"event": "NewTicket", "tenantId": 1, "ticket": {"id": 55, "userId": None, "updatedAt": "u1"}}


def _client(clock=None, **overrides) -> TestClient:
    values = {"poll_token": "", "notification_ttl_seconds": 3600}
    values.update(overrides)
    app = create_app(RelaySettings(**values), notifier=FakeNotifier())
    if clock is not None:
        app.state.relay.store.clock = clock
    return TestClient(app)


def test_end_to_end_pending_ticket_lifecycle(clock):
    """NewTicket -> pending poll -> empty poll -> TTL -> nothing live."""

    with _client(clock) as client:
        assert client.post("/", json=NEW_TICKET).json() == {"ok": True}

        first = client.get("/notifications", params={"mode": "pending"}).json()
        assert first["count"] == 1
        assert first["items"][0]["summary"]["is_pending"] is True
        assert first["items"][0]["summary"]["ticket_id"] == "55"
        assert first["delivered_at"] is not None

        second = client.get("/notifications", params={"mode": "pending"}).json()
        assert second == {"count": 0, "delivered_at": None, "items": []}

        clock.advance(hours=1)
        health = client.get("/health").json()
        assert health["live"] == 0


def test_ingress_always_acknowledges(clock):
    with _client(clock) as client:
        assert client.post("/", content=b"not json", headers={"content-type": "application/json"}).status_code == 200
        assert client.post("/", json={"unknown": True}).status_code == 200
        assert client.post("/", json=[1, 2]).status_code == 200


def test_peek_keeps_records_for_next_poll(clock):
    with _client(clock) as client:
        client.post("/", json=NEW_TICKET)
        peeked = client.get("/notifications", params={"mode": "all", "peek": "true"}).json()
        assert peeked["delivered_at"] is None
        taken = client.get("/notifications", params={"mode": "all"}).json()
        assert [i["id"] for i in taken["items"]] == [i["id"] for i in peeked["items"]]


def test_bad_filter_params_fall_back(clock):
    with _client(clock) as client:
        client.post("/", json=NEW_TICKET)
        response = client.get("/notifications", params={"mode": "weird", "limit": "lots", "peek": "maybe"})
        assert response.status_code == 200
        assert response.json()["count"] == 1


def test_poll_token_required_when_configured(clock):
    with _client(clock, poll_token="s3cret") as client:
        client.post("/", json=NEW_TICKET)

        denied = client.get("/notifications", params={"mode": "all"})
        assert denied.status_code == 401
        assert denied.json() == {"detail": "unauthorized"}
        # bearer header is checked first, so a valid query token does not rescue it
        assert client.get(
            "/notifications",
            params={"mode": "all", "token": "s3cret"},
            headers={"Authorization": "Bearer wrong"},
        ).status_code == 401

        ok = client.get("/notifications", params={"mode": "all", "peek": "1"}, headers={"X-Access-Token": "s3cret"})
        assert ok.json()["count"] == 1
        ok = client.get("/notifications", params={"mode": "all", "token": "s3cret"})
        assert ok.json()["count"] == 1
        assert client.get("/replies", headers={"Authorization": "Bearer s3cret"}).status_code == 200


def test_replies_are_drained(clock):
    with _client(clock) as client:
        for _ in range(2):
            client.post(
                "/",
                json={"entry": [{"changes": [{"value": {"messages": [{"from": "5511999", "text": {"body": "ok"}}]}}]}]},
            )
        assert client.get("/replies").json() == {"count": 1, "numbers": ["5511999"]}
        assert client.get("/replies").json() == {"count": 0, "numbers": []}


def test_verification_handshake():
    with _client(verify_token="vt") as client:
        ok = client.get("/", params={"hub.mode": "subscribe", "hub.verify_token": "vt", "hub.challenge": "42"})
        assert ok.status_code == 200
        assert ok.text == "42"
        bad = client.get("/", params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "42"})
        assert bad.status_code == 403


def test_metrics_endpoint():
    with _client() as client:
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "webhook_events_total" in response.text


def test_outbound_sends_run_after_acknowledgment(clock):
    with _client(clock) as client:
        notifier = client.app.state.relay.notifier
        response = client.post("/", json={"event_type": "message_sent", "payload": {"to": "5511"}})
        assert response.json() == {"ok": True}
        assert notifier.sent == [("panel", {"to": "5511"})]
