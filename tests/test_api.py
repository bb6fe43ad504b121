"""
Tests for the HTTP surface (`api/`).

Each test gets a fresh app over in-memory stores and a recording notifier.
Admin tokens are minted with python-jose using the test secret.
"""

from __future__ import annotations

import csv
from io import StringIO

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from conftest import RecordingNotifier, add_ticket_type

from api.dependencies import JWT_ALGORITHM, build_container
from api.main import create_app
from api.settings import Settings
from domain.identity import ROLE_ADMIN, ROLE_SUPER_ADMIN
from repositories.memory import InMemoryDatabase, InMemoryOrderStore, InMemoryTicketStore
from services.csv_export_service import CSV_HEADER, UTF8_BOM

SECRET = "test-secret"


def _token(role: str = ROLE_ADMIN, caller_id: str = "admin-1", secret: str = SECRET) -> str:
    return jwt.encode({"id": caller_id, "username": "alice", "role": role}, secret, algorithm=JWT_ALGORITHM)


def _auth(role: str = ROLE_ADMIN, **kwargs) -> dict:
    return {"Authorization": f"Bearer {_token(role, **kwargs)}"}


@pytest.fixture
def api_db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def api_notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(api_db, api_notifier) -> TestClient:
    settings = Settings(jwt_secret=SECRET)
    container = build_container(
        settings,
        ticket_store=InMemoryTicketStore(api_db),
        order_store=InMemoryOrderStore(api_db),
        notifier=api_notifier,
    )
    return TestClient(create_app(settings, container))


@pytest.fixture
def general(api_db):
    return add_ticket_type(InMemoryTicketStore(api_db), name="General", price="100.00", quota=2)


@pytest.fixture
def student(api_db):
    return add_ticket_type(InMemoryTicketStore(api_db), name="Student", price="50.00")


def _create(client: TestClient, body: dict) -> dict:
    response = client.post("/api/v1/orders", json=body)
    assert response.status_code == 201, response.text
    return response.json()["order"]


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_list_tickets(client, general, student, api_db) -> None:
    add_ticket_type(InMemoryTicketStore(api_db), name="Hidden", price="1.00", is_active=False)

    tickets = client.get("/api/v1/tickets").json()["tickets"]

    assert [t["name"] for t in tickets] == ["Student", "General"]
    assert tickets[0]["remaining"] is None
    assert tickets[1]["remaining"] == 2
    assert tickets[1]["price"] == "100.00"


def test_create_order_per_attendee(client, general, student) -> None:
    order = _create(client, {
        "customerEmail": "ada@example.com",
        "attendees": [
            {"name": "Ada", "ticketTypeId": general.id},
            {"name": "Alan", "ticketTypeId": student.id},
        ],
    })

    assert order["status"] == "pending"
    assert order["total_amount"] == "150.00"
    assert order["quantity"] == 2
    assert order["ticket_name"] == "General, Student"
    assert [a["ticket_price"] for a in order["attendees"]] == ["100.00", "50.00"]


def test_create_order_legacy_shape(client, student) -> None:
    order = _create(client, {
        "customerName": "Ada",
        "customerEmail": "ada@example.com",
        "customerPhone": "021 555 0100",
        "ticketTypeId": student.id,
        "quantity": 3,
    })

    assert order["customer_name"] == "Ada"
    assert order["customer_phone"] == "021 555 0100"
    assert [a["name"] for a in order["attendees"]] == ["Ada", "Ada", "Ada"]
    assert order["total_amount"] == "150.00"


@pytest.mark.parametrize("quantity", [0, 6, 10**9])
def test_legacy_quantity_out_of_range(client, student, quantity: int) -> None:
    response = client.post("/api/v1/orders", json={
        "customerName": "Ada",
        "customerEmail": "ada@example.com",
        "ticketTypeId": student.id,
        "quantity": quantity,
    })

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_create_order_malformed_body(client) -> None:
    response = client.post("/api/v1/orders", json={"customerEmail": "ada@example.com"})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_create_order_sold_out(client, general) -> None:
    body = {"customerEmail": "ada@example.com", "attendees": [{"name": "A", "ticketTypeId": general.id}] * 2}
    _create(client, body)

    response = client.post("/api/v1/orders", json=body)

    assert response.status_code == 400
    assert response.json()["code"] == "INSUFFICIENT_INVENTORY"


def test_create_order_unknown_ticket_type(client) -> None:
    response = client.post("/api/v1/orders", json={
        "customerEmail": "ada@example.com",
        "attendees": [{"name": "Ada", "ticketTypeId": 404}],
    })

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_TICKET_TYPE"


def test_get_order_and_not_found(client, student) -> None:
    order = _create(client, {"customerEmail": "a@b.com", "attendees": [{"name": "X", "ticketTypeId": student.id}]})

    assert client.get(f"/api/v1/orders/{order['order_no']}").json()["order"]["id"] == order["id"]
    missing = client.get("/api/v1/orders/TNOPE")
    assert missing.status_code == 404
    assert missing.json()["code"] == "ORDER_NOT_FOUND"


def test_pay_order_once(client, student, api_notifier) -> None:
    order = _create(client, {"customerEmail": "a@b.com", "attendees": [{"name": "X", "ticketTypeId": student.id}]})

    first = client.post(f"/api/v1/orders/{order['order_no']}/pay")
    second = client.post(f"/api/v1/orders/{order['order_no']}/pay")

    assert first.status_code == 200
    assert first.json()["order"]["status"] == "paid"
    assert first.json()["order"]["paid_at"] is not None
    assert second.status_code == 400
    assert second.json()["code"] == "ALREADY_PAID"
    assert len(api_notifier.sent) == 1


def test_admin_endpoints_require_token(client) -> None:
    assert client.get("/api/v1/admin/orders").status_code == 401
    bad = client.get("/api/v1/admin/orders", headers=_auth(secret="wrong-secret"))
    assert bad.status_code == 401
    assert bad.json()["code"] == "UNAUTHORIZED"


def test_non_admin_role_is_forbidden(client) -> None:
    response = client.get("/api/v1/admin/orders", headers=_auth(role="attendee"))

    assert response.status_code == 403
    assert response.json()["code"] == "PERMISSION_DENIED"


def test_admin_order_list(client, student) -> None:
    for i in range(3):
        _create(client, {"customerEmail": f"u{i}@b.com", "attendees": [{"name": f"U{i}", "ticketTypeId": student.id}]})

    body = client.get("/api/v1/admin/orders?page=1&pageSize=2", headers=_auth()).json()

    assert body["total"] == 3
    assert body["pageSize"] == 2
    assert body["totalPages"] == 2
    assert len(body["orders"]) == 2

    filtered = client.get("/api/v1/admin/orders?search=U1@", headers=_auth()).json()
    assert [o["customer_email"] for o in filtered["orders"]] == ["u1@b.com"]

    bad_status = client.get("/api/v1/admin/orders?status=refunded", headers=_auth())
    assert bad_status.status_code == 400


def test_confirm_and_verify_transfer(client, student) -> None:
    order = _create(client, {"customerEmail": "a@b.com", "attendees": [{"name": "X", "ticketTypeId": student.id}]})
    order_no = order["order_no"]

    early = client.post(
        f"/api/v1/admin/orders/{order_no}/verify-transfer", json={"payerBankLast4": "1234"}, headers=_auth()
    )
    assert early.status_code == 400
    assert early.json()["code"] == "INVALID_ORDER_STATE"

    confirmed = client.post(f"/api/v1/admin/orders/{order_no}/confirm-payment", headers=_auth())
    assert confirmed.json()["order"]["status"] == "paid"

    malformed = client.post(
        f"/api/v1/admin/orders/{order_no}/verify-transfer", json={"payerBankLast4": "12"}, headers=_auth()
    )
    assert malformed.status_code == 400

    verified = client.post(
        f"/api/v1/admin/orders/{order_no}/verify-transfer", json={"payerBankLast4": "1234"}, headers=_auth()
    )
    assert verified.status_code == 200
    assert verified.json()["order"]["payer_bank_last4"] == "1234"
    assert verified.json()["order"]["verified_by"] == "admin-1"

    again = client.post(
        f"/api/v1/admin/orders/{order_no}/verify-transfer", json={"payerBankLast4": "5678"}, headers=_auth()
    )
    assert again.status_code == 400
    assert again.json()["code"] == "ALREADY_VERIFIED"


def test_export_csv_with_query_token(client, student) -> None:
    order = _create(client, {"customerEmail": "a@b.com", "attendees": [{"name": "X", "ticketTypeId": student.id}]})
    client.post(f"/api/v1/orders/{order['order_no']}/pay")

    response = client.get(f"/api/v1/admin/orders/export?token={_token()}")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment" in response.headers["content-disposition"]
    text = response.content.decode("utf-8")
    assert text.startswith(UTF8_BOM)
    rows = list(csv.reader(StringIO(text[len(UTF8_BOM):])))
    assert rows[0] == CSV_HEADER
    assert rows[1][0] == order["order_no"]
    assert rows[1][CSV_HEADER.index("Status")] == "Paid"


def test_ticket_management_requires_super_admin(client, general) -> None:
    body = {"name": "Workshop", "price": "49.00", "quota": 20}

    assert client.post("/api/v1/admin/tickets", json=body, headers=_auth()).status_code == 403

    created = client.post("/api/v1/admin/tickets", json=body, headers=_auth(ROLE_SUPER_ADMIN))
    assert created.status_code == 201
    ticket = created.json()["ticket"]
    assert ticket["price"] == "49.00"

    listed = client.get("/api/v1/admin/tickets", headers=_auth()).json()["tickets"]
    assert {t["name"] for t in listed} == {"General", "Workshop"}

    updated = client.put(
        f"/api/v1/admin/tickets/{ticket['id']}", json={"isActive": False}, headers=_auth(ROLE_SUPER_ADMIN)
    )
    assert updated.json()["ticket"]["is_active"] is False

    deleted = client.delete(f"/api/v1/admin/tickets/{ticket['id']}", headers=_auth(ROLE_SUPER_ADMIN))
    assert deleted.status_code == 200
    assert client.delete(f"/api/v1/admin/tickets/{ticket['id']}", headers=_auth(ROLE_SUPER_ADMIN)).status_code == 404


def test_delete_ticket_type_with_orders_is_refused(client, student) -> None:
    _create(client, {"customerEmail": "a@b.com", "attendees": [{"name": "X", "ticketTypeId": student.id}]})

    response = client.delete(f"/api/v1/admin/tickets/{student.id}", headers=_auth(ROLE_SUPER_ADMIN))

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
