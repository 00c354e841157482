import json
import logging
from fastapi.testclient import TestClient
from delivery.main import app
from delivery.core.config import settings
from delivery.core.logging import JsonFormatter, correlation_id_var


def test_broadcast_requires_api_key(monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "secret")
    client = TestClient(app)
    broker = app.state.broker
    mb = broker.connect(11)
    try:
        r1 = client.post("/sse/broadcast", json={"event": "maintenance", "data": {"at": "22:00"}})
        assert r1.status_code == 401
        r2 = client.post(
            "/sse/broadcast",
            json={"event": "maintenance", "data": {"at": "22:00"}},
            headers={"X-API-Key": "nope"},
        )
        assert r2.status_code == 401
        assert len(mb) == 0

        r3 = client.post(
            "/sse/broadcast?api_key=secret",
            json={"event": "maintenance", "data": {"at": "22:00"}},
        )
        assert r3.status_code == 200
        assert r3.json()["delivered"] >= 1
        assert mb.drain() == [b'event: maintenance\ndata: {"at":"22:00"}\n\n']
    finally:
        broker.disconnect(11, mb)


def test_broadcast_rejects_bad_event_name():
    client = TestClient(app)
    r = client.post("/sse/broadcast", json={"event": "two\nlines", "data": {}})
    assert r.status_code == 400


def test_stats_lists_connected_users():
    client = TestClient(app)
    broker = app.state.broker
    mb = broker.connect(12)
    try:
        body = client.get("/sse/stats").json()
        assert body["connected"] >= 1
        assert {"user_id": 12, "queued": 0, "dropped": 0} in body["subscribers"]
    finally:
        broker.disconnect(12, mb)


def test_rate_limit(monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_PER_MINUTE", 2)
    monkeypatch.setattr(settings, "RATE_LIMIT_PATHS", ["/sse/stats"])
    client = TestClient(app)
    assert client.get("/sse/stats").status_code == 200
    assert client.get("/sse/stats").status_code == 200
    assert client.get("/sse/stats").status_code == 429
    # other paths are not limited
    assert client.get("/health").status_code == 200


def test_request_id_is_echoed():
    client = TestClient(app)
    r = client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"
    assert r.json()["status"] == "ok"
    assert client.get("/health").headers["X-Request-ID"]


def test_json_formatter_includes_extras():
    token = correlation_id_var.set("cid-1")
    try:
        record = logging.LogRecord("delivery.realtime.broker", logging.WARNING, __file__, 1, "mailbox full", None, None)
        record.user_id = 5
        record.event = "order_update"
        out = json.loads(JsonFormatter().format(record))
    finally:
        correlation_id_var.reset(token)
    assert out["level"] == "WARNING"
    assert out["message"] == "mailbox full"
    assert out["correlation_id"] == "cid-1"
    assert out["user_id"] == 5 and out["event"] == "order_update"


def test_default_rate_limit_covers_broadcast():
    from delivery.core.config import Settings

    assert Settings().RATE_LIMIT_PATHS == ["/sse/broadcast"]
