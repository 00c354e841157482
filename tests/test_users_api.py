import json
from fastapi.testclient import TestClient
from delivery.infra.db import Base, engine
from delivery.main import app


def setup_function():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    app.state.broker.close()


def _parse(frame: bytes):
    event_line, data_line = frame.decode("utf-8").rstrip("\n").split("\n")
    return event_line.split(": ", 1)[1], json.loads(data_line.split(": ", 1)[1])


def test_create_and_get_user():
    client = TestClient(app)
    res = client.post("/api/users", json={"name": "cliente1", "address": "Calle 123"})
    assert res.status_code == 201, res.text
    user = res.json()
    assert user["role"] == "customer"
    assert user["address"] == "Calle 123"

    got = client.get(f"/api/users/{user['id']}")
    assert got.status_code == 200
    assert got.json() == user
    assert client.get("/api/users/9999").status_code == 404
    assert [u["id"] for u in client.get("/api/users").json()] == [user["id"]]


def test_duplicate_name_and_bad_role():
    client = TestClient(app)
    assert client.post("/api/users", json={"name": "repartidor1", "role": "delivery"}).status_code == 201
    assert client.post("/api/users", json={"name": "repartidor1"}).status_code == 409
    assert client.post("/api/users", json={"name": "x", "role": "admin"}).status_code == 422


def test_fresh_database_order_flow_over_http():
    client = TestClient(app)
    customer = client.post("/api/users", json={"name": "cliente1"}).json()
    courier = client.post("/api/users", json={"name": "repartidor1", "role": "delivery"}).json()
    broker = app.state.broker
    owner_mb = broker.connect(customer["id"])
    courier_mb = broker.connect(courier["id"])

    res = client.post(
        "/api/orders",
        json={
            "title": "Pizza",
            "description": "Large",
            "establishmentName": "Luigi",
            "userId": customer["id"],
        },
    )
    assert res.status_code == 201, res.text
    oid = res.json()["id"]
    [frame] = owner_mb.drain()
    event, data = _parse(frame)
    assert event == "order_update"
    assert data["id"] == oid and data["status"] == "pending"

    res = client.post(f"/api/orders/{oid}/assign", json={"deliveryId": courier["id"]})
    assert res.status_code == 200
    assert _parse(courier_mb.drain()[0])[1]["status"] == "pickup"
    assert len(owner_mb.drain()) == 1
