from datetime import datetime, timedelta, timezone

from jose import jwt

from pdv.auth.session import decode_token, resolve_session_user
from pdv.config import settings

from conftest import TEST_PASSWORD


def test_login_sets_http_only_session_cookie(client, create_user):
    user = create_user("admin", is_admin=True)

    response = client.post("/api/auth/login", json={"username": "admin", "password": TEST_PASSWORD})

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["username"] == "admin"
    assert body["user"]["is_admin"] is True
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith(f"{settings.session_cookie_name}=")
    assert "HttpOnly" in set_cookie
    assert "samesite=lax" in set_cookie.lower()
    token = response.cookies[settings.session_cookie_name]
    assert decode_token(token)["sub"] == str(user.id)


def test_login_with_wrong_password_is_rejected(client, create_user):
    create_user("admin")

    response = client.post("/api/auth/login", json={"username": "admin", "password": "wrong-password"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid credentials"
    assert settings.session_cookie_name not in response.cookies


def test_login_with_unknown_user_is_rejected(client):
    response = client.post("/api/auth/login", json={"username": "ghost", "password": "whatever"})

    assert response.status_code == 401


def test_login_requires_both_fields(client):
    response = client.post("/api/auth/login", json={"username": "admin"})

    assert response.status_code == 422


def test_session_cookie_resolves_current_user(client, create_user):
    create_user("caixa", is_admin=False)
    client.post("/api/auth/login", json={"username": "caixa", "password": TEST_PASSWORD})

    response = client.get("/api/auth/me")

    assert response.status_code == 200
    assert response.json()["username"] == "caixa"
    assert response.json()["is_admin"] is False


def test_logout_clears_cookie(client, create_user):
    create_user("admin")
    client.post("/api/auth/login", json={"username": "admin", "password": TEST_PASSWORD})

    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert client.get("/api/auth/me").status_code == 401


def test_expired_or_foreign_tokens_resolve_to_nobody(db_session, create_user):
    user = create_user("admin")
    expired = jwt.encode(
        {"sub": str(user.id), "type": "session", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.session_secret,
        algorithm=settings.session_algorithm,
    )
    wrong_type = jwt.encode(
        {"sub": str(user.id), "type": "refresh", "exp": datetime.now(timezone.utc) + timedelta(minutes=5)},
        settings.session_secret,
        algorithm=settings.session_algorithm,
    )
    forged = jwt.encode({"sub": str(user.id), "type": "session"}, "another-secret", algorithm="HS256")

    assert resolve_session_user(db_session, expired) is None
    assert resolve_session_user(db_session, wrong_type) is None
    assert resolve_session_user(db_session, forged) is None
    assert resolve_session_user(db_session, None) is None


def test_login_is_rate_limited(client):
    statuses = [
        client.post("/api/auth/login", json={"username": "ghost", "password": "whatever"}).status_code
        for _ in range(11)
    ]

    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429
