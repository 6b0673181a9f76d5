import uuid

import pytest

from tunedeck.auth import parse_authorization_header
from tunedeck.errors import InvalidTokenError, NoTokenError


def _register(client, password="secret"):
    username = f"user_{uuid.uuid4().hex}"
    email = f"{username}@example.com"
    resp = client.post(
        "/auth/signup",
        json={"email": email, "username": username, "password": password},
    )
    assert resp.status_code == 200
    user_id = resp.json()["user_id"]
    resp = client.post("/auth/signin", json={"email": email, "password": password})
    assert resp.status_code == 200
    return user_id, resp.json()


def _bearer(tokens):
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.mark.parametrize("header", [None, ""])
def test_missing_header_is_no_token(header):
    with pytest.raises(NoTokenError):
        parse_authorization_header(header)


@pytest.mark.parametrize("header", ["Bearer", "Token abc", "bearer abc", "Bearer a b", "Bearer  abc"])
def test_malformed_header_is_invalid_token(header):
    with pytest.raises(InvalidTokenError):
        parse_authorization_header(header)


def test_bearer_header_yields_token():
    assert parse_authorization_header("Bearer abc.def.ghi") == "abc.def.ghi"


def test_register_and_login(client):
    user_id, tokens = _register(client)

    assert user_id
    assert tokens["access_token"] and tokens["refresh_token"]
    assert tokens["token_type"] == "bearer"


def test_login_with_wrong_password_is_unauthorized(client):
    username = f"user_{uuid.uuid4().hex}"
    email = f"{username}@example.com"
    client.post("/auth/signup", json={"email": email, "username": username, "password": "secret"})

    resp = client.post("/auth/signin", json={"email": email, "password": "wrong"})

    assert resp.status_code == 401
    assert resp.json() == {"ok": False, "error": "user credentials are invalid error"}


def test_request_without_token_is_rejected(client):
    resp = client.get("/tracks")

    assert resp.status_code == 401
    assert resp.json() == {"ok": False, "error": "no token provided error"}
    assert resp.headers["WWW-Authenticate"] == "Bearer"


@pytest.mark.parametrize("header", ["Bearer", "Token abc", "Bearer a b", "Bearer not-a-jwt"])
def test_request_with_bad_header_is_rejected(client, header):
    resp = client.get("/tracks", headers={"Authorization": header})

    assert resp.status_code == 401
    assert resp.json() == {"ok": False, "error": "token is invalid error"}


def test_valid_access_token_is_accepted(client):
    _, tokens = _register(client)

    resp = client.get("/tracks", headers=_bearer(tokens))

    assert resp.status_code == 200
    assert resp.json() == []


def test_refresh_token_cannot_authenticate_requests(client):
    _, tokens = _register(client)

    resp = client.get("/tracks", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})

    assert resp.status_code == 401


def test_refresh_rotates_exactly_once(client):
    _, tokens = _register(client)

    resp = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    rotated = resp.json()
    assert rotated["refresh_token"] != tokens["refresh_token"]

    resp = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 401
    assert resp.json()["error"] == "token is invalid error"


def test_sign_out_revokes_refresh_token(client):
    _, tokens = _register(client)

    resp = client.post("/auth/signout", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}

    resp = client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
    assert resp.status_code == 401
    # access tokens are stateless and outlive sign out
    assert client.get("/tracks", headers=_bearer(tokens)).status_code == 200


def test_user_routes_require_matching_identity(client):
    alice_id, alice_tokens = _register(client)
    bob_id, _ = _register(client)

    assert client.get(f"/users/{alice_id}/tracks", headers=_bearer(alice_tokens)).status_code == 200

    for path in (f"/users/{bob_id}/tracks", f"/users/{bob_id}/playlists"):
        resp = client.get(path, headers=_bearer(alice_tokens))
        assert resp.status_code == 403
        assert resp.json() == {
            "ok": False,
            "error": "You are not allowed to fetch/modify audio for this user",
        }
