import pytest
from fastapi.testclient import TestClient

from freelance_crm.app.db.base import Base
from freelance_crm.app.db.session import engine
from freelance_crm.app.main import app


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


def create_client(client: TestClient, token: str, **overrides) -> dict:
    payload = {"type": "company", "company_name": "ACME GmbH", "contact_name": "Jo Weber", "email": "jo@acme.de"}
    payload.update(overrides)
    resp = client.post("/clients", json=payload, headers=auth(token))
    assert resp.status_code == 201
    return resp.json()["data"]


def test_create_client_defaults_country():
    client = TestClient(app)
    token = register_and_login(client, "clients1@example.com", "secret123")
    data = create_client(client, token)
    assert data["display_name"] == "ACME GmbH"
    assert data["country"] == "DE"


def test_individual_display_name_is_contact():
    client = TestClient(app)
    token = register_and_login(client, "clients2@example.com", "secret123")
    data = create_client(client, token, type="individual", company_name=None, contact_name="Eva Klein")
    assert data["display_name"] == "Eva Klein"


def test_list_clients_is_scoped_and_searchable():
    client = TestClient(app)
    token_a = register_and_login(client, "clientsa@example.com", "secret123")
    token_b = register_and_login(client, "clientsb@example.com", "secret123")
    create_client(client, token_a)
    create_client(client, token_a, company_name="Beta AG", email="info@beta.de")
    create_client(client, token_b, company_name="Hidden Ltd")

    resp = client.get("/clients", headers=auth(token_a))
    assert resp.status_code == 200
    body = resp.json()
    assert body["meta"] == {"total": 2}
    assert {c["company_name"] for c in body["data"]} == {"ACME GmbH", "Beta AG"}

    resp = client.get("/clients", params={"search": "beta"}, headers=auth(token_a))
    assert [c["company_name"] for c in resp.json()["data"]] == ["Beta AG"]


def test_other_users_client_is_not_found():
    client = TestClient(app)
    token_a = register_and_login(client, "clientsc@example.com", "secret123")
    token_b = register_and_login(client, "clientsd@example.com", "secret123")
    client_id = create_client(client, token_a)["id"]

    for method in ("get", "delete"):
        resp = getattr(client, method)(f"/clients/{client_id}", headers=auth(token_b))
        assert resp.status_code == 404
        assert resp.json()["error"] == {"code": "NOT_FOUND", "message": "Client not found"}
    resp = client.put(f"/clients/{client_id}", json={"city": "Berlin"}, headers=auth(token_b))
    assert resp.status_code == 404


def test_update_client():
    client = TestClient(app)
    token = register_and_login(client, "clientse@example.com", "secret123")
    client_id = create_client(client, token)["id"]
    resp = client.put(f"/clients/{client_id}", json={"city": "Hamburg"}, headers=auth(token))
    assert resp.status_code == 200
    assert resp.json()["data"]["city"] == "Hamburg"
    assert resp.json()["data"]["company_name"] == "ACME GmbH"


def test_delete_client_soft_deletes():
    client = TestClient(app)
    token = register_and_login(client, "clientsf@example.com", "secret123")
    client_id = create_client(client, token)["id"]
    resp = client.delete(f"/clients/{client_id}", headers=auth(token))
    assert resp.status_code == 200
    assert resp.json()["data"] == {"id": client_id, "deleted": True}
    assert client.get(f"/clients/{client_id}", headers=auth(token)).status_code == 404


def test_delete_client_with_projects_is_rejected():
    client = TestClient(app)
    token = register_and_login(client, "clientsg@example.com", "secret123")
    client_id = create_client(client, token)["id"]
    client.post("/projects", json={"client_id": client_id, "title": "Shop", "type": "fixed"}, headers=auth(token))
    resp = client.delete(f"/clients/{client_id}", headers=auth(token))
    assert resp.status_code == 422
    error = resp.json()["error"]
    assert error["code"] == "CLIENT_HAS_RELATIONS"
    assert error["suggestions"][0] == "Client has 1 project(s) and 0 invoice(s)."


def test_invalid_client_type_filter_is_validation_error():
    client = TestClient(app)
    token = register_and_login(client, "clientsh@example.com", "secret123")
    resp = client.get("/clients", params={"type": "alien"}, headers=auth(token))
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
