from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from pydantic import SecretStr

from app.config import settings
from app.core.security import create_access_token, hash_password
from app.database import get_db
from app.main import app
from app.services.workflow_registry import DISABLE_DEFAULT, ITEM_MUST_BE_PUBLISHED, listing_cache


@pytest.fixture
def client(db_session):
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    listing_cache.clean()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        listing_cache.clean()


@pytest.fixture
def auth_headers():
    token = create_access_token(settings.admin_email)
    return {"Authorization": f"Bearer {token}"}


def _create(client, headers, **payload):
    body = {"title": "Workflow", "published": 1, "default": False}
    body.update(payload)
    return client.post("/api/v1/workflows/", json=body, headers=headers)


def test_workflow_routes_require_token(client):
    response = client.get("/api/v1/workflows/")
    assert response.status_code == 401


def test_create_list_and_fetch(client, auth_headers):
    created = _create(client, auth_headers, title="Editorial", default=True)
    assert created.status_code == 201
    body = created.json()
    assert body["default"] is True
    assert body["extension"] == settings.workflow_default_extension
    assert body["created_by"] == settings.admin_user_id

    listing = client.get("/api/v1/workflows/", headers=auth_headers).json()
    assert listing["total"] == 1
    assert listing["items"][0]["title"] == "Editorial"

    detail = client.get(f"/api/v1/workflows/{body['id']}", headers=auth_headers)
    assert detail.status_code == 200
    assert client.get("/api/v1/workflows/999", headers=auth_headers).status_code == 404


def test_create_rejects_unpublished_default(client, auth_headers):
    response = _create(client, auth_headers, published=0, default=True)
    assert response.status_code == 400
    assert response.json()["detail"] == [ITEM_MUST_BE_PUBLISHED]


def test_update_cannot_drop_only_default(client, auth_headers):
    first = _create(client, auth_headers, default=True).json()

    response = client.put(
        f"/api/v1/workflows/{first['id']}",
        json={"title": "Renamed", "published": 1, "default": False},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == [DISABLE_DEFAULT]


def test_make_default_and_unpublish_batch(client, auth_headers):
    first = _create(client, auth_headers, title="One", default=True).json()
    second = _create(client, auth_headers, title="Two").json()

    made = client.post(f"/api/v1/workflows/{second['id']}/default", headers=auth_headers)
    assert made.status_code == 200
    assert made.json()["default"] is True
    assert client.get(f"/api/v1/workflows/{first['id']}", headers=auth_headers).json()["default"] is False

    result = client.post(
        "/api/v1/workflows/unpublish",
        json={"ids": [first["id"], second["id"]]},
        headers=auth_headers,
    ).json()
    assert result["ids"] == [first["id"]]
    assert result["errors"] == [ITEM_MUST_BE_PUBLISHED]


def test_trash_then_delete(client, auth_headers):
    _create(client, auth_headers, title="Home", default=True)
    spare = _create(client, auth_headers, title="Spare").json()

    trashed = client.post("/api/v1/workflows/trash", json={"ids": [spare["id"]]}, headers=auth_headers)
    assert trashed.json()["success"] is True

    actions = client.get("/api/v1/workflows/actions", params={"published": -2}, headers=auth_headers).json()
    assert actions["actions"][-1] == "delete"

    deleted = client.post("/api/v1/workflows/delete", json={"ids": [spare["id"]]}, headers=auth_headers).json()
    assert deleted == {"success": True, "ids": [spare["id"]], "errors": []}
    assert client.get(f"/api/v1/workflows/{spare['id']}", headers=auth_headers).status_code == 404


def test_states_and_transitions(client, auth_headers):
    workflow = _create(client, auth_headers, default=True).json()

    states = client.get(f"/api/v1/workflows/{workflow['id']}/states", headers=auth_headers).json()
    assert [state["title"] for state in states] == ["Published"]
    state_id = states[0]["id"]

    response = client.post(
        f"/api/v1/workflows/{workflow['id']}/transitions",
        json={"title": "Republish", "from_state_id": state_id, "to_state_id": state_id},
        headers=auth_headers,
    )
    assert response.status_code == 201
    assert response.json()["workflow_id"] == workflow["id"]


def test_extension_query_scopes_requests(client, auth_headers):
    _create(client, auth_headers, title="Content", default=True)
    users = client.post(
        "/api/v1/workflows/",
        params={"extension": "com_users"},
        json={"title": "Users", "published": 1, "default": True},
        headers=auth_headers,
    )
    assert users.status_code == 201
    assert users.json()["extension"] == "com_users"

    listing = client.get("/api/v1/workflows/", params={"extension": "com_users"}, headers=auth_headers).json()
    assert [item["title"] for item in listing["items"]] == ["Users"]


def test_login_issues_token(client, monkeypatch):
    monkeypatch.setattr(settings, "admin_password_hash", SecretStr(hash_password("s3cret", "00ff00ff")))

    response = client.post(
        "/api/v1/auth/login",
        json={"email": settings.admin_email, "password": "s3cret"},
    )
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["id"] == settings.admin_user_id

    bad = client.post("/api/v1/auth/login", json={"email": settings.admin_email, "password": "nope"})
    assert bad.status_code == 401


def test_update_from_other_extension_is_not_found(client, auth_headers):
    home = _create(client, auth_headers, title="Content", default=True).json()

    response = client.put(
        f"/api/v1/workflows/{home['id']}",
        params={"extension": "com_users"},
        json={"title": "Hijacked", "published": 1, "default": True},
        headers=auth_headers,
    )
    assert response.status_code == 404

    detail = client.get(f"/api/v1/workflows/{home['id']}", headers=auth_headers).json()
    assert detail["extension"] == settings.workflow_default_extension
    assert detail["title"] == "Content"
    assert detail["default"] is True
