from __future__ import annotations

from datetime import date, timedelta

from user_service.domain.account import Role
from user_service.domain.contracts import StoreError


def _register_payload(**overrides) -> dict:
    payload = {
        "first_name": "Alice",
        "last_name": "Smith",
        "birth_date": "1990-05-17",
        "email": "alice@example.com",
        "password": "Aa1111",
    }
    payload.update(overrides)
    return payload


def _register(client, **overrides) -> dict:
    response = client.post("/api/auth/register", json=_register_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


def _bearer(body: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {body['access_token']}"}


def test_register_returns_account_and_token(api_client):
    client, _ = api_client

    body = _register(client, role="admin")

    assert body["account"]["email"] == "alice@example.com"
    assert body["account"]["role"] == "user"
    assert body["account"]["is_active"] is True
    assert "password" not in body["account"]
    assert "password_hash" not in body["account"]
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == 86400
    assert body["access_token"].count(".") == 2


def test_register_duplicate_email(api_client):
    client, _ = api_client
    _register(client)

    response = client.post(
        "/api/auth/register", json=_register_payload(email="ALICE@example.com")
    )

    assert response.status_code == 409
    assert response.json()["code"] == "DUPLICATE_EMAIL"


def test_register_weak_password(api_client):
    client, _ = api_client

    response = client.post("/api/auth/register", json=_register_payload(password="short"))

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "WEAK_PASSWORD"
    assert "Password must contain at least one digit" in body["violations"]


def test_register_rejects_future_birth_date(api_client):
    client, _ = api_client
    tomorrow = (date.today() + timedelta(days=1)).isoformat()

    response = client.post("/api/auth/register", json=_register_payload(birth_date=tomorrow))

    assert response.status_code == 422


def test_register_rejects_invalid_email(api_client):
    client, _ = api_client

    response = client.post("/api/auth/register", json=_register_payload(email="not-an-email"))

    assert response.status_code == 422


def test_login_flow(api_client):
    client, _ = api_client
    _register(client)

    ok = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "Aa1111"})
    wrong = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "Aa1112"})
    unknown = client.post("/api/auth/login", json={"email": "bob@example.com", "password": "Aa1111"})

    assert ok.status_code == 200
    assert ok.json()["account"]["email"] == "alice@example.com"
    assert wrong.status_code == 401
    assert unknown.status_code == 401
    assert wrong.json() == unknown.json()


def test_blocked_account_cannot_login(api_client, admin_headers):
    client, _ = api_client
    user = _register(client)

    blocked = client.patch(
        f"/api/users/{user['account']['id']}/block",
        json={"is_active": False},
        headers=admin_headers,
    )
    login = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "Aa1111"})

    assert blocked.status_code == 200
    assert blocked.json()["is_active"] is False
    assert login.status_code == 403
    assert login.json()["code"] == "ACCOUNT_BLOCKED"


def test_me_returns_current_account(api_client):
    client, _ = api_client
    user = _register(client)

    response = client.get("/api/auth/me", headers=_bearer(user))

    assert response.status_code == 200
    assert response.json()["id"] == user["account"]["id"]


def test_missing_token_is_challenged(api_client):
    client, _ = api_client

    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_MISSING"
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_malformed_token_is_rejected(api_client):
    client, _ = api_client

    response = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})

    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_INVALID"


def test_refresh_issues_new_token(api_client):
    client, app = api_client
    user = _register(client)

    response = client.post("/api/auth/refresh", headers=_bearer(user))

    assert response.status_code == 200
    claims = app.state.token_service.verify(response.json()["access_token"]).claims
    assert claims.account_id == user["account"]["id"]


def test_refresh_without_token(api_client):
    client, _ = api_client

    response = client.post("/api/auth/refresh")

    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_MISSING"


def test_listing_requires_admin(api_client, admin_headers):
    client, _ = api_client
    user = _register(client)

    forbidden = client.get("/api/users", headers=_bearer(user))
    allowed = client.get("/api/users", params={"page": 1, "limit": 1}, headers=admin_headers)

    assert forbidden.status_code == 403
    assert forbidden.json()["code"] == "FORBIDDEN"
    assert allowed.status_code == 200
    body = allowed.json()
    assert body["total"] == 2
    assert body["total_pages"] == 2
    assert body["has_next"] is True
    assert body["items"][0]["email"] == "alice@example.com"


def test_listing_filters_by_role(api_client, admin_headers):
    client, _ = api_client
    _register(client)

    response = client.get("/api/users", params={"role": "admin"}, headers=admin_headers)

    assert response.status_code == 200
    assert [item["role"] for item in response.json()["items"]] == ["admin"]


def test_listing_rejects_oversized_limit(api_client, admin_headers):
    client, _ = api_client

    response = client.get("/api/users", params={"limit": 500}, headers=admin_headers)

    assert response.status_code == 422


def test_admin_creates_account_with_role(api_client, admin_headers):
    client, _ = api_client

    response = client.post(
        "/api/users",
        json=_register_payload(email="ops@example.com", role="admin"),
        headers=admin_headers,
    )

    assert response.status_code == 201
    assert response.json()["role"] == Role.admin.value


def test_user_cannot_create_accounts(api_client):
    client, _ = api_client
    user = _register(client)

    response = client.post(
        "/api/users",
        json=_register_payload(email="ops@example.com", role="admin"),
        headers=_bearer(user),
    )

    assert response.status_code == 403


def test_owner_can_read_and_update_self_only(api_client):
    client, _ = api_client
    alice = _register(client)
    bob = _register(client, email="bob@example.com")
    alice_id = alice["account"]["id"]

    own = client.get(f"/api/users/{alice_id}", headers=_bearer(alice))
    other = client.get(f"/api/users/{alice_id}", headers=_bearer(bob))
    updated = client.put(
        f"/api/users/{alice_id}",
        json={"first_name": "Alicia", "middle_name": "Jane"},
        headers=_bearer(alice),
    )
    foreign_update = client.put(
        f"/api/users/{alice_id}", json={"first_name": "Mallory"}, headers=_bearer(bob)
    )

    assert own.status_code == 200
    assert other.status_code == 403
    assert updated.status_code == 200
    assert updated.json()["first_name"] == "Alicia"
    assert updated.json()["middle_name"] == "Jane"
    assert foreign_update.status_code == 403


def test_update_can_clear_middle_name(api_client):
    client, _ = api_client
    alice = _register(client, middle_name="Jane")
    alice_id = alice["account"]["id"]

    response = client.put(
        f"/api/users/{alice_id}", json={"middle_name": None}, headers=_bearer(alice)
    )

    assert response.status_code == 200
    assert response.json()["middle_name"] is None


def test_admin_reads_any_account(api_client, admin_headers):
    client, _ = api_client
    alice = _register(client)

    response = client.get(f"/api/users/{alice['account']['id']}", headers=admin_headers)
    missing = client.get("/api/users/9999", headers=admin_headers)

    assert response.status_code == 200
    assert missing.status_code == 404
    assert missing.json()["code"] == "NOT_FOUND"


def test_change_password(api_client):
    client, _ = api_client
    alice = _register(client)
    url = f"/api/users/{alice['account']['id']}/password"

    wrong = client.patch(
        url, json={"old_password": "nope", "new_password": "Bb2222"}, headers=_bearer(alice)
    )
    changed = client.patch(
        url, json={"old_password": "Aa1111", "new_password": "Bb2222"}, headers=_bearer(alice)
    )
    login = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "Bb2222"})

    assert wrong.status_code == 400
    assert wrong.json()["code"] == "CURRENT_PASSWORD_INVALID"
    assert changed.status_code == 204
    assert login.status_code == 200


def test_admin_cannot_be_blocked_or_deleted(api_client, admin_headers):
    client, _ = api_client
    me = client.get("/api/auth/me", headers=admin_headers).json()

    blocked = client.patch(
        f"/api/users/{me['id']}/block", json={"is_active": False}, headers=admin_headers
    )
    deleted = client.delete(f"/api/users/{me['id']}", headers=admin_headers)

    assert blocked.status_code == 403
    assert blocked.json()["code"] == "CANNOT_BLOCK_ADMIN"
    assert deleted.status_code == 403
    assert deleted.json()["code"] == "CANNOT_DELETE_ADMIN"


def test_block_requires_admin(api_client):
    client, _ = api_client
    alice = _register(client)

    response = client.patch(
        f"/api/users/{alice['account']['id']}/block",
        json={"is_active": False},
        headers=_bearer(alice),
    )

    assert response.status_code == 403


def test_delete_account(api_client, admin_headers):
    client, _ = api_client
    alice = _register(client)
    alice_id = alice["account"]["id"]

    deleted = client.delete(f"/api/users/{alice_id}", headers=admin_headers)
    again = client.delete(f"/api/users/{alice_id}", headers=admin_headers)
    me = client.get("/api/auth/me", headers=_bearer(alice))

    assert deleted.status_code == 204
    assert again.status_code == 404
    assert me.status_code == 404


def test_store_failure_returns_internal_error(api_client, repository):
    client, _ = api_client
    repository.fail_with = StoreError("connection lost")

    response = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "Aa1111"})

    assert response.status_code == 500
    assert response.json()["code"] == "INTERNAL_ERROR"
