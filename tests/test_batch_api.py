import pytest
from fastapi.testclient import TestClient

from freelance_crm.app.core.errors import BatchReferenceError
from freelance_crm.app.db.base import Base
from freelance_crm.app.db.session import engine
from freelance_crm.app.main import app
from freelance_crm.app.services.batch import resolve_references


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def register_and_login(client: TestClient, email: str, password: str) -> str:
    client.post("/auth/register", json={"email": email, "password": password})
    response = client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()["data"]["access_token"]


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


CLIENT_DATA = {"type": "company", "company_name": "ACME GmbH", "contact_name": "Jo", "email": "jo@acme.de"}


def test_batch_with_references_commits_everything():
    client = TestClient(app)
    token = register_and_login(client, "batch1@example.com", "secret123")
    operations = [
        {"action": "create", "resource": "clients", "data": {**CLIENT_DATA, "$ref": "acme"}},
        {
            "action": "create",
            "resource": "projects",
            "data": {
                "$ref": "shop",
                "client_id": "$ref:acme",
                "title": "Shop",
                "type": "fixed",
                "items": [{"description": "Setup", "quantity": "1", "unit_price": "1000.00"}],
            },
        },
        {"action": "transition", "resource": "projects", "id": "$ref:shop", "data": {"status": "sent"}},
        {"action": "transition", "resource": "projects", "id": "$ref:shop", "data": {"status": "accepted"}},
        {"action": "from_project", "resource": "invoices", "data": {"project_id": "$ref:shop", "$ref": "inv"}},
        {
            "action": "create",
            "resource": "reminders",
            "data": {
                "title": "Zahlung prüfen",
                "due_at": "2026-06-01T09:00:00Z",
                "remindable_type": "invoice",
                "remindable_id": "$ref:inv",
            },
        },
    ]
    resp = client.post("/batch", json={"operations": operations}, headers=auth(token))
    assert resp.status_code == 200, resp.json()
    body = resp.json()["data"]
    assert body["total"] == 6
    assert body["succeeded"] == 6
    assert body["failed"] == 0
    assert body["batch_id"].startswith("batch_")
    assert [r["index"] for r in body["results"]] == list(range(6))
    assert body["results"][0]["ref"] == "acme"
    assert body["results"][2]["ref"] is None
    assert body["results"][4]["ref"] == "inv"
    assert body["results"][5]["data"]["id"] is not None

    client_id = body["results"][0]["data"]["id"]
    project_id = body["results"][1]["data"]["id"]
    projects = client.get("/projects", headers=auth(token)).json()["data"]
    assert [(p["id"], p["client_id"], p["status"]) for p in projects] == [(project_id, client_id, "accepted")]
    invoices = client.get("/invoices", headers=auth(token)).json()["data"]
    assert len(invoices) == 1
    assert invoices[0]["total"] == "1190.00"


def test_started_timer_can_be_referenced_and_stopped():
    client = TestClient(app)
    token = register_and_login(client, "batch-timer@example.com", "secret123")
    operations = [
        {"action": "create", "resource": "clients", "data": {**CLIENT_DATA, "$ref": "acme"}},
        {
            "action": "create",
            "resource": "projects",
            "data": {"$ref": "dev", "client_id": "$ref:acme", "title": "Support", "type": "hourly", "hourly_rate": "80.00"},
        },
        {"action": "start", "resource": "time_entries", "data": {"project_id": "$ref:dev", "$ref": "timer"}},
        {"action": "stop", "resource": "time_entries", "id": "$ref:timer"},
    ]
    resp = client.post("/batch", json={"operations": operations}, headers=auth(token))
    assert resp.status_code == 200, resp.json()
    results = resp.json()["data"]["results"]
    assert results[2]["ref"] == "timer"
    assert results[3]["ref"] is None
    entry_id = results[2]["data"]["id"]
    assert results[3]["data"]["id"] == entry_id

    entry = client.get(f"/time-entries/{entry_id}", headers=auth(token)).json()["data"]
    assert entry["ended_at"] is not None


def test_failing_operation_rolls_back_whole_batch():
    client = TestClient(app)
    token = register_and_login(client, "batch2@example.com", "secret123")
    operations = [
        {"action": "create", "resource": "client", "data": {**CLIENT_DATA, "$ref": "c"}},
        {"action": "create", "resource": "project", "data": {"client_id": "$ref:c", "title": "P", "type": "fixed", "$ref": "p"}},
        {"action": "transition", "resource": "project", "id": "$ref:p", "data": {"status": "completed"}},
    ]
    resp = client.post("/batch", json={"operations": operations}, headers=auth(token))
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "BATCH_FAILED"
    assert error["message"] == "Cannot transition from 'draft' to 'completed'."
    assert error["suggestions"] == [
        "Operation 2 failed.",
        "All operations have been rolled back.",
        "Fix the error and retry the entire batch.",
    ]
    assert client.get("/clients", headers=auth(token)).json()["data"] == []
    assert client.get("/projects", headers=auth(token)).json()["data"] == []


def test_unresolved_reference_fails_batch():
    client = TestClient(app)
    token = register_and_login(client, "batch3@example.com", "secret123")
    operations = [
        {"action": "create", "resource": "client", "data": CLIENT_DATA},
        {"action": "create", "resource": "project", "data": {"client_id": "$ref:missing", "title": "P", "type": "fixed"}},
    ]
    resp = client.post("/batch", json={"operations": operations}, headers=auth(token))
    assert resp.json()["error"]["code"] == "BATCH_FAILED"
    assert resp.json()["error"]["message"] == "Unresolved reference: $ref:missing"
    assert client.get("/clients", headers=auth(token)).json()["data"] == []


def test_schema_errors_and_unknown_resources_fail_batch():
    client = TestClient(app)
    token = register_and_login(client, "batch4@example.com", "secret123")
    resp = client.post(
        "/batch",
        json={"operations": [{"action": "create", "resource": "client", "data": {"type": "company"}}]},
        headers=auth(token),
    )
    assert resp.json()["error"]["code"] == "BATCH_FAILED"
    assert resp.json()["error"]["message"].startswith("Validation failed:")

    resp = client.post(
        "/batch", json={"operations": [{"action": "create", "resource": "leads", "data": {}}]}, headers=auth(token)
    )
    assert resp.json()["error"]["message"] == "Unknown resource: leads"


def test_batch_cannot_touch_other_users_records():
    client = TestClient(app)
    token_a = register_and_login(client, "batch5@example.com", "secret123")
    token_b = register_and_login(client, "batch6@example.com", "secret123")
    client_id = client.post("/clients", json=CLIENT_DATA, headers=auth(token_a)).json()["data"]["id"]
    resp = client.post(
        "/batch",
        json={"operations": [{"action": "update", "resource": "client", "id": client_id, "data": {"city": "Köln"}}]},
        headers=auth(token_b),
    )
    assert resp.json()["error"]["code"] == "BATCH_FAILED"
    assert resp.json()["error"]["message"] == "Client not found"


def test_batch_size_limits():
    client = TestClient(app)
    token = register_and_login(client, "batch7@example.com", "secret123")
    resp = client.post("/batch", json={"operations": []}, headers=auth(token))
    assert resp.status_code == 422
    too_many = [{"action": "create", "resource": "client", "data": CLIENT_DATA}] * 51
    resp = client.post("/batch", json={"operations": too_many}, headers=auth(token))
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_validate_reports_per_operation_without_writing():
    client = TestClient(app)
    token = register_and_login(client, "batch8@example.com", "secret123")
    operations = [
        {"action": "create", "resource": "clients", "data": {**CLIENT_DATA, "$ref": "c"}},
        {"action": "create", "resource": "projects", "data": {"client_id": "$ref:c", "type": "weird"}},
        {"action": "update", "resource": "projects", "data": {"title": "x"}},
        {"action": "mark_paid", "resource": "clients", "id": 1},
        {"action": "fly", "resource": "clients"},
        {"action": "create", "resource": "reminders", "data": {"title": "T", "due_at": "2026-05-01", "remindable_id": "$ref:later"}},
    ]
    resp = client.post("/validate", json={"operations": operations}, headers=auth(token))
    assert resp.status_code == 200
    body = resp.json()["data"]
    assert body["valid"] is False
    assert body["total"] == 6
    results = body["validations"]
    assert results[0] == {"index": 0, "valid": True, "errors": None, "warnings": None}
    assert results[1]["errors"] == ["Project title is required.", 'Invalid project type. Use "fixed" or "hourly".']
    assert results[2]["errors"] == ["ID is required for update action."]
    assert results[3]["errors"][0].startswith("Invalid action for client: mark_paid.")
    assert results[4]["errors"][0].startswith("Unknown action: fly.")
    assert results[5]["valid"] is True
    assert results[5]["warnings"] == ["Reference '$ref:later' is not defined by an earlier operation."]
    assert client.get("/clients", headers=auth(token)).json()["data"] == []


def test_resolve_references_nested():
    data = {"client_id": "$ref:c", "items": [{"project_id": "$ref:p"}, "plain"], "n": 3}
    assert resolve_references(data, {"c": 1, "p": 2}) == {
        "client_id": 1,
        "items": [{"project_id": 2}, "plain"],
        "n": 3,
    }
    with pytest.raises(BatchReferenceError):
        resolve_references({"id": "$ref:x"}, {})
