import json
import logging
import pytest
from delivery.realtime.broker import NotificationBroker, ORDER_UPDATE, ORDER_DELETED
from delivery.realtime.errors import EncodingFailure, NotConnected


def _parse(frame: bytes):
    event_line, data_line = frame.decode("utf-8").rstrip("\n").split("\n")
    return event_line.split(": ", 1)[1], json.loads(data_line.split(": ", 1)[1])


def test_notify_unknown_user_raises_not_connected():
    broker = NotificationBroker()
    with pytest.raises(NotConnected) as exc:
        broker.notify_one(404, "order_update", {"id": 1})
    assert exc.value.user_id == 404


def test_notify_one_enqueues_in_order():
    broker = NotificationBroker()
    mb = broker.connect(1)
    assert broker.notify_one(1, "a", {"n": 1}) is True
    assert broker.notify_one(1, "b", {"n": 2}) is True
    assert [_parse(f) for f in mb.drain()] == [("a", {"n": 1}), ("b", {"n": 2})]


def test_full_mailbox_still_succeeds_and_keeps_oldest():
    broker = NotificationBroker(capacity=2)
    mb = broker.connect(1)
    results = [broker.notify_one(1, "tick", {"n": i}) for i in range(3)]
    assert results == [True, True, False]
    assert [data["n"] for _, data in map(_parse, mb.drain())] == [0, 1]
    assert mb.dropped == 1


def test_encoding_failure_enqueues_nothing():
    broker = NotificationBroker()
    mb = broker.connect(1)
    with pytest.raises(EncodingFailure):
        broker.notify_one(1, "bad", {"x": object()})
    assert len(mb) == 0


def test_disconnect_then_notify_is_not_connected():
    broker = NotificationBroker()
    mb = broker.connect(1)
    broker.disconnect(1)
    assert mb.closed
    with pytest.raises(NotConnected):
        broker.notify_one(1, "a", {})


def test_broadcast_reaches_every_subscriber():
    broker = NotificationBroker(capacity=1)
    boxes = {uid: broker.connect(uid) for uid in (1, 2, 3)}
    boxes[3].offer(b"filler")
    res = broker.broadcast_all("maintenance", {"at": "22:00"})
    assert (res.delivered, res.dropped, res.recipients) == (2, 1, 3)
    assert boxes[1].drain() == boxes[2].drain()
    assert boxes[3].drain() == [b"filler"]


def test_broadcast_with_nobody_connected():
    res = NotificationBroker().broadcast_all("maintenance", {})
    assert res.recipients == 0


def test_order_update_goes_to_owner_only_when_unassigned():
    broker = NotificationBroker()
    mb = broker.connect(5)
    sent = broker.notify_order_update(
        {"userId": 5, "deliveryId": None, "status": "pending", "id": 42}
    )
    assert sent == 1
    frames = mb.drain()
    assert len(frames) == 1
    event, data = _parse(frames[0])
    assert event == ORDER_UPDATE
    assert data["id"] == 42 and data["status"] == "pending"
    assert b'"id":42' in frames[0] and b'"status":"pending"' in frames[0]


def test_order_update_reaches_delivery_agent():
    broker = NotificationBroker()
    owner, agent = broker.connect(5), broker.connect(8)

    class Snapshot:
        user_id = 5
        delivery_id = 8
        id = 3
        status = "pickup"

    # agent connected, owner connected: both get it; unknown ids are skipped
    assert broker.notify_order_update(Snapshot()) == 2
    assert len(owner.drain()) == 1 and len(agent.drain()) == 1

    broker.disconnect(5)
    assert broker.notify_order_update({"user_id": 5, "delivery_id": 8, "id": 3}) == 1


def test_order_deleted():
    broker = NotificationBroker()
    owner, agent = broker.connect(5), broker.connect(8)
    assert broker.notify_order_deleted(42, 5, 8) == 2
    assert _parse(owner.drain()[0]) == (ORDER_DELETED, {"id": 42})
    assert _parse(agent.drain()[0]) == (ORDER_DELETED, {"id": 42})


def test_reconnect_routes_to_newest_mailbox():
    broker = NotificationBroker()
    first = broker.connect(5)
    second = broker.connect(5)
    assert first.closed
    broker.notify_one(5, "order_update", {"id": 1})
    assert first.drain() == []
    assert len(second.drain()) == 1
    # the replaced stream's cleanup leaves the new one alone
    broker.disconnect(5, first)
    assert broker.registry.lookup(5) is second


def test_stats_and_close():
    broker = NotificationBroker(capacity=1)
    mb = broker.connect(2)
    broker.connect(1)
    broker.notify_one(2, "a", {})
    broker.notify_one(2, "a", {})
    stats = broker.stats()
    assert stats["connected"] == 2
    assert stats["subscribers"][1] == {"user_id": 2, "queued": 1, "dropped": 1}
    broker.close()
    assert mb.closed
    assert broker.stats()["connected"] == 0


def test_connect_logs_reconnect_from_registry_result(caplog):
    broker = NotificationBroker()
    with caplog.at_level(logging.INFO, logger="delivery.realtime.broker"):
        broker.connect(5)
        broker.connect(5)
        broker.disconnect(5)
        broker.connect(5)
    messages = [r.getMessage() for r in caplog.records if r.name == "delivery.realtime.broker"]
    assert messages == [
        "subscriber connected",
        "subscriber reconnected, previous stream closed",
        "subscriber disconnected",
        "subscriber connected",
    ]
