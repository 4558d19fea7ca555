from datetime import datetime, timedelta, timezone

from jose import jwt

import admins
import settings
from auth import create_access_token
from tests.conftest import PASSWORD


def test_login_sets_cookie_and_me_returns_admin(client, make_admin):
    admin = make_admin()
    r = client.post("/api/admin/login", json={"email": "ADMIN@example.com", "password": PASSWORD})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["admin"]["email"] == "admin@example.com"
    assert "password_hash" not in body["admin"]
    set_cookie = r.headers["set-cookie"].lower()
    assert "token=" in set_cookie
    assert "httponly" in set_cookie
    assert "samesite=lax" in set_cookie
    assert "max-age=604800" in set_cookie

    r = client.get("/api/admin/me")
    assert r.status_code == 200
    me = r.json()["admin"]
    assert me["id"] == str(admin["_id"])
    assert me["last_login"] is not None


def test_login_rejects_wrong_password(client, make_admin):
    make_admin()
    r = client.post("/api/admin/login", json={"email": "admin@example.com", "password": "nope"})
    assert r.status_code == 401
    assert r.json()["success"] is False


def test_login_rejects_deactivated_account(client, make_admin):
    make_admin(is_active=False)
    r = client.post("/api/admin/login", json={"email": "admin@example.com", "password": PASSWORD})
    assert r.status_code == 403


def test_logout_clears_cookie(client, make_admin):
    make_admin()
    client.post("/api/admin/login", json={"email": "admin@example.com", "password": PASSWORD})
    r = client.post("/api/admin/logout")
    assert r.status_code == 200
    assert "token=" in r.headers["set-cookie"]
    assert client.get("/api/admin/me").status_code == 401


def test_guard_requires_cookie(client):
    r = client.get("/api/admin/me")
    assert r.status_code == 401
    assert r.json()["reason"] == "missing"


def test_guard_distinguishes_invalid_and_expired(client, make_admin):
    admin = make_admin()
    client.cookies.set("token", "not-a-jwt")
    r = client.get("/api/admin/me")
    assert r.status_code == 401
    assert r.json()["reason"] == "invalid"

    client.cookies.set("token", create_access_token(admin, expires_delta=timedelta(seconds=-5)))
    r = client.get("/api/admin/me")
    assert r.status_code == 401
    assert r.json()["reason"] == "expired"


def test_guard_rejects_non_admin_role(client, make_admin):
    admin = make_admin()
    token = jwt.encode(
        {
            "sub": str(admin["_id"]),
            "email": admin["email"],
            "role": "visitor",
            "exp": datetime.now(timezone.utc) + timedelta(hours=1),
        },
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    client.cookies.set("token", token)
    assert client.get("/api/admin/me").status_code == 403


def test_guard_rejects_revoked_account_with_valid_token(client, mongo, make_admin, login_as):
    admin = make_admin()
    login_as(admin)
    assert client.get("/api/admin/me").status_code == 200
    mongo.admin.update_one({"_id": admin["_id"]}, {"$set": {"is_active": False}})
    r = client.get("/api/admin/me")
    assert r.status_code == 401
    assert r.json()["reason"] == "revoked"


def test_create_first_only_once(client):
    payload = {"name": "Owner", "email": "owner@example.com", "password": PASSWORD}
    r = client.post("/api/admin/create-first", json=payload)
    assert r.status_code == 201
    assert r.json()["admin"]["role"] == "super_admin"

    r = client.post("/api/admin/create-first", json={**payload, "email": "other@example.com"})
    assert r.status_code == 400


def test_super_admin_creates_and_lists_admins(admin_client):
    r = admin_client.post(
        "/api/admin/create",
        json={"name": "Helper", "email": "helper@example.com", "password": PASSWORD},
    )
    assert r.status_code == 201
    assert r.json()["admin"]["role"] == "admin"

    r = admin_client.post(
        "/api/admin/create",
        json={"name": "Dup", "email": "Helper@example.com", "password": PASSWORD},
    )
    assert r.status_code == 409

    r = admin_client.get("/api/admin/list")
    assert r.status_code == 200
    assert r.json()["count"] == 2


def test_plain_admin_cannot_manage_accounts(client, make_admin, login_as):
    other = make_admin(email="other@example.com")
    login_as(make_admin())
    assert client.get("/api/admin/list").status_code == 403
    assert client.put(f"/api/admin/{other['_id']}/toggle-status").status_code == 403
    assert client.delete(f"/api/admin/{other['_id']}").status_code == 403
    r = client.post("/api/admin/create", json={"name": "X", "email": "x@example.com", "password": PASSWORD})
    assert r.status_code == 403


def test_toggle_and_delete_other_admin(admin_client, make_admin, mongo):
    other = make_admin(email="other@example.com")
    r = admin_client.put(f"/api/admin/{other['_id']}/toggle-status")
    assert r.status_code == 200
    assert r.json()["admin"]["is_active"] is False
    assert mongo.admin.find_one({"_id": other["_id"]})["is_active"] is False

    r = admin_client.delete(f"/api/admin/{other['_id']}")
    assert r.status_code == 200
    assert mongo.admin.find_one({"_id": other["_id"]}) is None
    assert admin_client.delete(f"/api/admin/{other['_id']}").status_code == 404


def test_cannot_toggle_or_delete_self(admin_client, super_admin, mongo):
    own_id = str(super_admin["_id"])
    assert admin_client.put(f"/api/admin/{own_id}/toggle-status").status_code == 400
    assert admin_client.delete(f"/api/admin/{own_id}").status_code == 400
    assert admin_client.put(f"/api/admin/{own_id.upper()}/toggle-status").status_code == 400
    assert admin_client.delete(f"/api/admin/{own_id.upper()}").status_code == 400
    assert mongo.admin.find_one({"_id": super_admin["_id"]})["is_active"] is True


def test_concurrent_create_with_same_email_is_a_conflict(admin_client, make_admin, monkeypatch):
    real_create = admins.create_document

    def create_after_competitor(name, data):
        make_admin(email="race@example.com")
        return real_create(name, data)

    monkeypatch.setattr(admins, "create_document", create_after_competitor)
    r = admin_client.post("/api/admin/create", json={
        "name": "Late", "email": "race@example.com", "password": PASSWORD, "role": "admin",
    })
    assert r.status_code == 409
    assert r.json() == {"success": False, "message": "This email is already in use."}
