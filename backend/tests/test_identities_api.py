"""
Tests for registration, login, token rotation and profile endpoints.
"""

from fastapi.testclient import TestClient
from sqlmodel import Session

from vidhub.services import relationship_toggle
from vidhub.services.relationship_toggle import SUBSCRIPTION

from tests.helpers import auth_headers

AVATAR = ("avatar.png", b"\x89PNG avatar", "image/png")


def _register(client: TestClient, **overrides):
    data = {
        "full_name": "Carol Example",
        "email": "Carol@Example.com",
        "username": "Carol",
        "password": "hunter22",
    }
    data.update(overrides)
    return client.post("/api/v1/users/register", data=data, files={"avatar": AVATAR})


def _login(client: TestClient, username="carol", password="hunter22"):
    return client.post("/api/v1/users/login", json={"username": username, "password": password})


def test_register_returns_public_identity(client: TestClient, media_storage):
    response = _register(client)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["status_code"] == 201
    user = body["data"]
    assert user["username"] == "carol"
    assert user["email"] == "carol@example.com"
    assert user["avatar"] == "https://media.test/1"
    assert user["cover_image"] == ""
    assert "password_hash" not in user
    assert media_storage.uploads == [b"\x89PNG avatar"]


def test_register_with_cover_image(client: TestClient):
    response = client.post(
        "/api/v1/users/register",
        data={"full_name": "Dan", "email": "dan@example.com", "username": "dan", "password": "pw123456"},
        files={"avatar": AVATAR, "cover_image": ("cover.jpg", b"cover", "image/jpeg")},
    )

    assert response.status_code == 201
    assert response.json()["data"]["cover_image"] == "https://media.test/2"


def test_register_rejects_blank_fields(client: TestClient):
    response = _register(client, full_name="   ")

    assert response.status_code == 400
    body = response.json()
    assert body == {"status_code": 400, "message": "All fields are required", "errors": [], "success": False}


def test_register_requires_avatar(client: TestClient):
    response = client.post(
        "/api/v1/users/register",
        data={"full_name": "Eve", "email": "eve@example.com", "username": "eve", "password": "pw123456"},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Avatar file is required"


def test_register_duplicate_username_or_email_conflicts(client: TestClient):
    assert _register(client).status_code == 201

    same_username = _register(client, email="other@example.com")
    same_email = _register(client, username="someone-else")

    assert same_username.status_code == 409
    assert same_email.status_code == 409
    assert same_email.json()["success"] is False


def test_login_returns_tokens_and_sets_cookies(client: TestClient):
    _register(client)

    response = _login(client)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["user"]["username"] == "carol"
    assert data["access_token"] and data["refresh_token"]
    assert response.cookies.get("access_token") == data["access_token"]
    assert response.cookies.get("refresh_token") == data["refresh_token"]


def test_login_by_email(client: TestClient):
    _register(client)

    response = client.post("/api/v1/users/login", json={"email": "CAROL@example.com", "password": "hunter22"})

    assert response.status_code == 200


def test_bad_login_is_401(client: TestClient):
    _register(client)

    wrong_password = _login(client, password="nope")
    unknown_user = _login(client, username="nobody")

    assert wrong_password.status_code == unknown_user.status_code == 401
    assert wrong_password.json()["message"] == unknown_user.json()["message"]


def test_refresh_rotates_and_rejects_replay(client: TestClient):
    _register(client)
    original = _login(client).json()["data"]["refresh_token"]
    client.cookies.clear()

    rotated = client.post("/api/v1/users/refresh-token", json={"refresh_token": original})
    assert rotated.status_code == 200
    new_refresh = rotated.json()["data"]["refresh_token"]
    assert new_refresh != original

    client.cookies.clear()
    replay = client.post("/api/v1/users/refresh-token", json={"refresh_token": original})
    assert replay.status_code == 401
    assert replay.json()["message"] == "Refresh token has already been used; please log in again"

    # The lineage that won keeps working
    client.cookies.clear()
    again = client.post("/api/v1/users/refresh-token", json={"refresh_token": new_refresh})
    assert again.status_code == 200


def test_refresh_reads_cookie(client: TestClient):
    _register(client)
    _login(client)

    response = client.post("/api/v1/users/refresh-token")

    assert response.status_code == 200
    assert response.cookies.get("refresh_token") == response.json()["data"]["refresh_token"]


def test_refresh_without_token_is_401(client: TestClient):
    response = client.post("/api/v1/users/refresh-token")

    assert response.status_code == 401
    assert response.json()["message"] == "Missing refresh token"


def test_logout_revokes_refresh_but_not_access(client: TestClient):
    _register(client)
    tokens = _login(client).json()["data"]
    client.cookies.clear()
    headers = {"Authorization": f"Bearer {tokens['access_token']}"}

    assert client.post("/api/v1/users/logout", headers=headers).status_code == 200

    refreshed = client.post("/api/v1/users/refresh-token", json={"refresh_token": tokens["refresh_token"]})
    assert refreshed.status_code == 401
    # Access tokens are stateless and stay valid until they expire
    assert client.get("/api/v1/users/me", headers=headers).status_code == 200


def test_protected_route_requires_token(client: TestClient):
    response = client.get("/api/v1/users/me")

    assert response.status_code == 401
    assert response.json()["message"] == "Missing access token"


def test_garbage_bearer_token_is_401(client: TestClient):
    response = client.get("/api/v1/users/me", headers={"Authorization": "Bearer nonsense"})

    assert response.status_code == 401


def test_change_password(client: TestClient, alice):
    headers = auth_headers(alice.id)

    wrong = client.post(
        "/api/v1/users/change-password",
        json={"old_password": "bad", "new_password": "brand-new"},
        headers=headers,
    )
    ok = client.post(
        "/api/v1/users/change-password",
        json={"old_password": "secret-pass", "new_password": "brand-new"},
        headers=headers,
    )

    assert wrong.status_code == 401
    assert ok.status_code == 200
    assert _login(client, "alice", "brand-new").status_code == 200
    assert _login(client, "alice", "secret-pass").status_code == 401


def test_update_account(client: TestClient, alice, bob):
    headers = auth_headers(alice.id)

    updated = client.patch("/api/v1/users/me", json={"full_name": "Alice Liddell"}, headers=headers)
    taken = client.patch("/api/v1/users/me", json={"email": "bob@example.com"}, headers=headers)
    empty = client.patch("/api/v1/users/me", json={}, headers=headers)

    assert updated.json()["data"]["full_name"] == "Alice Liddell"
    assert taken.status_code == 409
    assert empty.status_code == 400


def test_update_avatar_and_cover_image(client: TestClient, alice):
    headers = auth_headers(alice.id)

    avatar = client.patch("/api/v1/users/me/avatar", files={"avatar": AVATAR}, headers=headers)
    cover = client.patch(
        "/api/v1/users/me/cover-image", files={"cover_image": ("c.jpg", b"c", "image/jpeg")}, headers=headers
    )
    missing = client.patch("/api/v1/users/me/avatar", headers=headers)

    assert avatar.json()["data"]["avatar"] == "https://media.test/1"
    assert cover.json()["data"]["cover_image"] == "https://media.test/2"
    assert cover.json()["data"]["avatar"] == "https://media.test/1"
    assert missing.status_code == 400


def test_channel_profile(client: TestClient, session: Session, alice, bob):
    relationship_toggle.toggle(session, SUBSCRIPTION, bob.id, alice.id)

    anonymous = client.get("/api/v1/users/channel/alice")
    as_bob = client.get("/api/v1/users/channel/ALICE", headers=auth_headers(bob.id))

    profile = anonymous.json()["data"]
    assert profile["username"] == "alice"
    assert "email" not in profile
    assert profile["subscribers_count"] == 1
    assert profile["channels_subscribed_to_count"] == 0
    assert profile["is_subscribed"] is False
    assert as_bob.json()["data"]["is_subscribed"] is True


def test_unknown_channel_is_404(client: TestClient):
    response = client.get("/api/v1/users/channel/ghost")

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_health(client: TestClient):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Request-ID"]
