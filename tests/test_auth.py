"""Tests for registration, login and the session cookie."""
from __future__ import annotations

from flask_jwt_extended import decode_token

import auth
from models import User
from tests.conftest import PASSWORD


def _set_cookies(resp):
    return resp.headers.getlist("Set-Cookie")


def _session_cookie(resp):
    return next(c for c in _set_cookies(resp) if c.startswith("auth-token="))


def test_email_validation():
    assert auth.is_valid_email("reader@example.com")
    assert not auth.is_valid_email("reader@example")
    assert not auth.is_valid_email("reader example@x.com")
    assert not auth.is_valid_email("")


def test_password_rules_report_first_failure():
    assert auth.is_valid_password("short1A") == (False, "Password must be at least 8 characters long")
    assert auth.is_valid_password("ALLUPPER1") == (False, "Password must contain at least one lowercase letter")
    assert auth.is_valid_password("alllower1") == (False, "Password must contain at least one uppercase letter")
    assert auth.is_valid_password("NoDigitsHere") == (False, "Password must contain at least one number")
    assert auth.is_valid_password("Valid123")[0] is True


def test_username_and_display_name_rules():
    assert not auth.is_valid_username("ab")[0]
    assert not auth.is_valid_username("a" * 21)[0]
    assert not auth.is_valid_username("bad name")[0]
    assert auth.is_valid_username("good_name-1")[0]
    assert not auth.is_valid_display_name("A")[0]
    assert not auth.is_valid_display_name("x" * 51)[0]
    assert auth.is_valid_display_name("Jo")[0]


def test_hash_and_verify_password(app):
    hashed = auth.hash_password(PASSWORD)
    assert hashed != PASSWORD
    assert auth.verify_password(PASSWORD, hashed)
    assert not auth.verify_password("Wrong1234", hashed)
    assert not auth.verify_password("A1" + "x" * 80, hashed)


def test_register_sets_seven_day_cookie(client):
    resp = client.post(
        "/auth/register",
        json={"email": "Reader@Example.com", "username": "reader", "displayName": "Reader", "password": PASSWORD},
    )

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["success"] is True
    assert body["user"]["email"] == "reader@example.com"
    assert "password" not in body["user"]
    cookie = _session_cookie(resp)
    assert "Max-Age=604800" in cookie
    assert "HttpOnly" in cookie

    stored = User.objects.get(username="reader")
    assert stored.password != PASSWORD
    assert stored.is_active is True
    assert stored.email_verified is False


def test_token_carries_profile_claims(app, register):
    _, user = register("claims")
    result = auth.login_user("claims@example.com", PASSWORD)

    claims = decode_token(result["token"])
    assert claims["sub"] == user["id"]
    assert claims["email"] == "claims@example.com"
    assert claims["username"] == "claims"
    assert claims["displayName"] == "Avid Reader"


def test_register_duplicate_email_fails(client, register):
    register("first", email="same@example.com")

    resp = client.post(
        "/auth/register",
        json={"email": "same@example.com", "username": "second", "displayName": "Second", "password": PASSWORD},
    )

    assert resp.status_code == 409
    assert resp.get_json() == {"success": False, "message": "Email or username is already in use"}


def test_register_validation_message(client):
    resp = client.post(
        "/auth/register",
        json={"email": "weak@example.com", "username": "weak", "displayName": "Weak", "password": "lowercase1"},
    )

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Password must contain at least one uppercase letter"
    assert User.objects.count() == 0


def test_register_checks_email_before_password(client):
    resp = client.post("/auth/register", json={"email": "nope", "password": "x"})

    assert resp.get_json()["message"] == "Invalid email"


def test_login_success_updates_last_login(client, register):
    register("login")
    assert User.objects.get(username="login").last_login is None

    resp = client.post("/auth/login", json={"email": "login@example.com", "password": PASSWORD})

    assert resp.status_code == 200
    assert resp.get_json()["message"] == "Logged in successfully"
    assert "Max-Age=604800" in _session_cookie(resp)
    assert User.objects.get(username="login").last_login is not None


def test_login_rejects_bad_credentials(client, register):
    register("login")

    wrong_password = client.post("/auth/login", json={"email": "login@example.com", "password": "Wrong1234"})
    unknown = client.post("/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})
    missing = client.post("/auth/login", json={"email": "login@example.com"})

    assert wrong_password.status_code == 401
    assert wrong_password.get_json()["message"] == "Invalid credentials"
    assert unknown.get_json()["message"] == "Invalid credentials"
    assert missing.status_code == 400
    assert missing.get_json()["message"] == "Email and password are required"


def test_login_rejects_deactivated_account(client, register):
    register("gone")
    User.objects(username="gone").update_one(set__is_active=False)

    resp = client.post("/auth/login", json={"email": "gone@example.com", "password": PASSWORD})

    assert resp.status_code == 403
    assert resp.get_json()["message"] == "Account deactivated"


def test_me_and_logout(register):
    client, user = register("session")

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.get_json()["user"]["id"] == user["id"]

    logout = client.post("/auth/logout")
    assert logout.status_code == 200

    after = client.get("/auth/me")
    assert after.status_code == 401
    assert after.get_json()["message"] == "No active session"


def test_me_with_garbage_token(client):
    resp = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})

    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Invalid token"


def test_me_for_deactivated_user(register):
    client, _ = register("inactive")
    User.objects(username="inactive").update_one(set__is_active=False)

    resp = client.get("/auth/me")

    assert resp.status_code == 401
    assert resp.get_json()["message"] == "User not found or inactive"


def test_protected_route_requires_session(client):
    resp = client.post("/reviews", json={})

    assert resp.status_code == 401
    assert resp.get_json()["error"] == "Authentication required"


def test_is_authenticated(app, register):
    register("checker")
    token = auth.login_user("checker@example.com", PASSWORD)["token"]

    with app.test_request_context("/", headers={"Authorization": f"Bearer {token}"}):
        assert auth.is_authenticated() is True
    with app.test_request_context("/"):
        assert auth.is_authenticated() is False


def test_register_with_non_string_fields(client):
    resp = client.post("/auth/register", json={"email": 5, "username": ["x"], "password": 12345678})

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Invalid email"


def test_login_with_non_string_password(client, register):
    register("typed")

    resp = client.post("/auth/login", json={"email": "typed@example.com", "password": 12345678})

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Email and password are required"


def test_non_object_body_is_rejected(client):
    resp = client.post("/auth/login", json=["typed@example.com", PASSWORD])

    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Request body must be a JSON object"}
