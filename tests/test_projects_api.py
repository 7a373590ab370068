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
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()["data"]["access_token"]


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


def create_project(client: TestClient, token: str, client_id: int, **overrides) -> dict:
    payload = {
        "client_id": client_id,
        "title": "Website Relaunch",
        "type": "fixed",
        "items": [
            {"description": "Design", "quantity": "2", "unit": "Tage", "unit_price": "600.00"},
            {"description": "Umsetzung", "quantity": "1", "unit_price": "1500.00"},
        ],
    }
    payload.update(overrides)
    resp = client.post("/projects", json=payload, headers=auth(token))
    assert resp.status_code == 201, resp.json()
    return resp.json()["data"]


def transition(client: TestClient, token: str, project_id: int, status: str, **extra):
    return client.post(f"/projects/{project_id}/transition", json={"status": status, **extra}, headers=auth(token))


def test_create_project_starts_as_draft_with_positions():
    client = TestClient(app)
    token = register_and_login(client, "projects1@example.com", "secret123")
    data = create_project(client, token, create_client(client, token))
    assert data["status"] == "draft"
    assert [item["position"] for item in data["items"]] == [1, 2]
    assert data["total_value"] == "2700.00"


def test_project_for_foreign_client_is_rejected():
    client = TestClient(app)
    token_a = register_and_login(client, "projects2@example.com", "secret123")
    token_b = register_and_login(client, "projects3@example.com", "secret123")
    client_id = create_client(client, token_a)
    resp = client.post(
        "/projects", json={"client_id": client_id, "title": "X", "type": "fixed"}, headers=auth(token_b)
    )
    assert resp.status_code == 404
    assert resp.json()["error"]["message"] == "Client not found"


def test_both_prices_is_validation_error():
    client = TestClient(app)
    token = register_and_login(client, "projects4@example.com", "secret123")
    client_id = create_client(client, token)
    resp = client.post(
        "/projects",
        json={"client_id": client_id, "title": "X", "type": "fixed", "hourly_rate": "80", "fixed_price": "900"},
        headers=auth(token),
    )
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_send_creates_followup_and_queues_offer_email(outbox):
    client = TestClient(app)
    token = register_and_login(client, "projects5@example.com", "secret123")
    project = create_project(client, token, create_client(client, token))

    resp = transition(client, token, project["id"], "sent")
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "sent"
    assert resp.json()["data"]["offer_sent_at"] is not None

    reminders = client.get("/reminders", headers=auth(token)).json()["data"]
    assert len(reminders) == 1
    assert reminders[0]["system_type"] == "offer_followup"
    assert reminders[0]["remindable_type"] == "project"
    assert reminders[0]["title"] == "Angebot nachfassen: Website Relaunch"

    assert [(e.kind, e.entity_id) for e in outbox] == [(notifications.OFFER_EMAIL, project["id"])]


def test_full_lifecycle_and_reopen():
    client = TestClient(app)
    token = register_and_login(client, "projects6@example.com", "secret123")
    project_id = create_project(client, token, create_client(client, token))["id"]

    assert transition(client, token, project_id, "sent").status_code == 200
    assert transition(client, token, project_id, "accepted").status_code == 200
    resp = transition(client, token, project_id, "in_progress", start_date="2026-04-01")
    assert resp.json()["data"]["start_date"] == "2026-04-01"
    resp = transition(client, token, project_id, "completed", end_date="2026-05-15")
    assert resp.json()["data"]["end_date"] == "2026-05-15"

    resp = transition(client, token, project_id, "in_progress")
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "in_progress"
    assert resp.json()["data"]["end_date"] is None


def test_invalid_transition_envelope():
    client = TestClient(app)
    token = register_and_login(client, "projects7@example.com", "secret123")
    project_id = create_project(client, token, create_client(client, token))["id"]
    resp = transition(client, token, project_id, "completed")
    assert resp.status_code == 422
    assert resp.json() == {
        "success": False,
        "error": {
            "code": "INVALID_TRANSITION",
            "message": "Cannot transition from 'draft' to 'completed'.",
            "suggestions": ["Current status: draft", "Allowed transitions: sent, cancelled"],
        },
    }
    assert client.get(f"/projects/{project_id}", headers=auth(token)).json()["data"]["status"] == "draft"


def test_unknown_status_is_invalid_status():
    client = TestClient(app)
    token = register_and_login(client, "projects8@example.com", "secret123")
    project_id = create_project(client, token, create_client(client, token))["id"]
    resp = transition(client, token, project_id, "finished")
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "INVALID_STATUS"


def test_delete_project_with_invoice_is_rejected():
    client = TestClient(app)
    token = register_and_login(client, "projects9@example.com", "secret123")
    project_id = create_project(client, token, create_client(client, token))["id"]
    transition(client, token, project_id, "sent")
    transition(client, token, project_id, "accepted")
    resp = client.post("/invoices/from-project", json={"project_id": project_id}, headers=auth(token))
    assert resp.status_code == 201

    resp = client.delete(f"/projects/{project_id}", headers=auth(token))
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "PROJECT_HAS_INVOICES"
    assert error["message"] == "Cannot delete project with existing invoices."


def test_list_projects_filters_by_status():
    client = TestClient(app)
    token = register_and_login(client, "projects10@example.com", "secret123")
    client_id = create_client(client, token)
    first = create_project(client, token, client_id)["id"]
    create_project(client, token, client_id, title="Zweites Projekt")
    transition(client, token, first, "sent")

    resp = client.get("/projects", params={"status": "sent"}, headers=auth(token))
    assert [p["id"] for p in resp.json()["data"]] == [first]
    resp = client.get("/projects", params={"status": "bogus"}, headers=auth(token))
    assert resp.json()["error"]["code"] == "INVALID_STATUS"
