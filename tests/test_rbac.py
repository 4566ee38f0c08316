from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from pdv.auth.session import get_current_user, require_admin


class DummyUser:
    def __init__(self, is_admin: bool):
        self.id = 1
        self.username = "admin" if is_admin else "caixa"
        self.is_admin = is_admin


def _build_app() -> FastAPI:
    app = FastAPI()

    @app.get("/admin")
    def admin_route(_: object = Depends(require_admin)):
        return {"ok": True}

    @app.get("/profile")
    def profile_route(_: object = Depends(get_current_user)):
        return {"ok": True}

    return app


def test_admin_route_requires_admin_flag():
    app = _build_app()
    client = TestClient(app)

    app.dependency_overrides[get_current_user] = lambda: DummyUser(is_admin=False)
    response = client.get("/admin")
    assert response.status_code == 403

    app.dependency_overrides[get_current_user] = lambda: DummyUser(is_admin=True)
    response = client.get("/admin")
    assert response.status_code == 200


def test_regular_user_reaches_authenticated_routes():
    app = _build_app()
    client = TestClient(app)

    app.dependency_overrides[get_current_user] = lambda: DummyUser(is_admin=False)
    assert client.get("/profile").status_code == 200
