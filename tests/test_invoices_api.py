from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from freelance_crm.app.db.base import Base
from freelance_crm.app.db.session import engine
from freelance_crm.app.main import app
from freelance_crm.app.services import notifications


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def outbox():
    sent = []
    previous = notifications.set_sink(sent.append)
    yield sent
    notifications.set_sink(previous)


def register_and_login(client: TestClient, email: str, password: str) -> str:
    client.post("/auth/register", json={"email": email, "password": password})
    resp = client.post("/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200
    return resp.json()["data"]["access_token"]


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def create_client(client: TestClient, token: str) -> int:
    resp = client.post(
        "/clients",
        json={"type": "company", "company_name": "ACME GmbH", "contact_name": "Jo", "email": "jo@acme.de"},
        headers=auth(token),
    )
    assert resp.status_code == 201
    return resp.json()["data"]["id"]


def create_invoice(client: TestClient, token: str, client_id: int, **overrides):
    payload = {
        "client_id": client_id,
        "items": [
            {"description": "Beratung", "quantity": "4", "unit": "Stunden", "unit_price": "90.00"},
            {"description": "Lizenz", "quantity": "1", "unit_price": "140.00", "vat_rate": "7"},
        ],
    }
    payload.update(overrides)
    return client.post("/invoices", json=payload, headers=auth(token))


def test_create_invoice_computes_totals_and_number():
    client = TestClient(app)
    token = register_and_login(client, "inv1@example.com", "secret123")
    resp = create_invoice(client, token, create_client(client, token))
    assert resp.status_code == 201
    data = resp.json()["data"]
    year = datetime.now(UTC).year
    assert data["number"] == f"{year}-001"
    assert data["status"] == "draft"
    assert data["subtotal"] == "500.00"
    assert data["vat_rate"] == "19.00"
    assert data["vat_amount"] == "95.00"
    assert data["total"] == "595.00"
    # Line VAT is informational only
    assert data["items"][1]["vat_amount"] == "9.80"
    issued = datetime.fromisoformat(data["issued_at"]).date()
    due = datetime.fromisoformat(data["due_at"]).date()
    assert due - issued == timedelta(days=14)


def test_invoice_numbers_are_sequential():
    client = TestClient(app)
    token = register_and_login(client, "inv2@example.com", "secret123")
    client_id = create_client(client, token)
    numbers = [create_invoice(client, token, client_id).json()["data"]["number"] for _ in range(3)]
    year = datetime.now(UTC).year
    assert numbers == [f"{year}-001", f"{year}-002", f"{year}-003"]


def test_invoice_requires_items():
    client = TestClient(app)
    token = register_and_login(client, "inv3@example.com", "secret123")
    resp = create_invoice(client, token, create_client(client, token), items=[])
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_update_draft_replaces_items_and_recalculates():
    client = TestClient(app)
    token = register_and_login(client, "inv4@example.com", "secret123")
    data = create_invoice(client, token, create_client(client, token)).json()["data"]
    keep = data["items"][0]
    resp = client.put(
        f"/invoices/{data['id']}",
        json={
            "items": [
                {"id": keep["id"], "description": "Beratung", "quantity": "2", "unit_price": "90.00"},
                {"description": "Reisekosten", "quantity": "1", "unit_price": "20.00"},
            ]
        },
        headers=auth(token),
    )
    assert resp.status_code == 200
    updated = resp.json()["data"]
    assert [item["description"] for item in updated["items"]] == ["Beratung", "Reisekosten"]
    assert updated["items"][0]["id"] == keep["id"]
    assert updated["subtotal"] == "200.00"
    assert updated["total"] == "238.00"


def test_sent_invoice_cannot_be_edited_or_deleted(outbox):
    client = TestClient(app)
    token = register_and_login(client, "inv5@example.com", "secret123")
    invoice_id = create_invoice(client, token, create_client(client, token)).json()["data"]["id"]

    resp = client.post(f"/invoices/{invoice_id}/send", headers=auth(token))
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "sent"
    assert [e.kind for e in outbox] == [notifications.INVOICE_EMAIL]

    resp = client.put(f"/invoices/{invoice_id}", json={"notes": "changed"}, headers=auth(token))
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "INVOICE_NOT_DRAFT"

    resp = client.delete(f"/invoices/{invoice_id}", headers=auth(token))
    assert resp.json()["error"]["code"] == "CANNOT_DELETE_INVOICE"
    assert "Current status: sent" in resp.json()["error"]["suggestions"]


def test_mark_paid_flow():
    client = TestClient(app)
    token = register_and_login(client, "inv6@example.com", "secret123")
    invoice_id = create_invoice(client, token, create_client(client, token)).json()["data"]["id"]

    resp = client.post(f"/invoices/{invoice_id}/mark-paid", headers=auth(token))
    assert resp.json()["error"]["code"] == "INVOICE_NOT_SENT"

    client.post(f"/invoices/{invoice_id}/send", headers=auth(token))
    resp = client.post(
        f"/invoices/{invoice_id}/mark-paid",
        json={"paid_at": "2026-04-20", "payment_method": "Überweisung"},
        headers=auth(token),
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "paid"
    assert resp.json()["data"]["paid_at"] == "2026-04-20"

    resp = client.post(f"/invoices/{invoice_id}/mark-paid", headers=auth(token))
    assert resp.json()["error"]["code"] == "ALREADY_PAID"

    resp = client.post(f"/invoices/{invoice_id}/cancel", headers=auth(token))
    assert resp.json()["error"]["code"] == "INVALID_TRANSITION"


def test_delete_draft_keeps_number_reserved():
    client = TestClient(app)
    token = register_and_login(client, "inv7@example.com", "secret123")
    client_id = create_client(client, token)
    first = create_invoice(client, token, client_id).json()["data"]
    assert client.delete(f"/invoices/{first['id']}", headers=auth(token)).status_code == 200
    assert client.get(f"/invoices/{first['id']}", headers=auth(token)).status_code == 404
    second = create_invoice(client, token, client_id).json()["data"]
    assert second["number"] != first["number"]


def test_other_users_invoice_is_not_found():
    client = TestClient(app)
    token_a = register_and_login(client, "inv8@example.com", "secret123")
    token_b = register_and_login(client, "inv9@example.com", "secret123")
    invoice_id = create_invoice(client, token_a, create_client(client, token_a)).json()["data"]["id"]
    for resp in (
        client.get(f"/invoices/{invoice_id}", headers=auth(token_b)),
        client.post(f"/invoices/{invoice_id}/send", headers=auth(token_b)),
    ):
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "Invoice not found"


def test_from_project_requires_invoiceable_status():
    client = TestClient(app)
    token = register_and_login(client, "inv10@example.com", "secret123")
    client_id = create_client(client, token)
    project = client.post(
        "/projects", json={"client_id": client_id, "title": "Shop", "type": "fixed"}, headers=auth(token)
    ).json()["data"]
    resp = client.post("/invoices/from-project", json={"project_id": project["id"]}, headers=auth(token))
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "PROJECT_CANNOT_BE_INVOICED"
    assert error["message"] == "Project in status 'Entwurf' cannot be invoiced."


def test_list_filters_by_status():
    client = TestClient(app)
    token = register_and_login(client, "inv11@example.com", "secret123")
    client_id = create_client(client, token)
    first = create_invoice(client, token, client_id).json()["data"]["id"]
    create_invoice(client, token, client_id)
    client.post(f"/invoices/{first}/send", headers=auth(token))

    resp = client.get("/invoices", params={"status": "sent"}, headers=auth(token))
    assert [inv["id"] for inv in resp.json()["data"]] == [first]
    assert resp.json()["meta"] == {"total": 1}
    resp = client.get("/invoices", params={"status": "bogus"}, headers=auth(token))
    assert resp.status_code == 422
